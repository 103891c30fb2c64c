"""Geometric preprocessing for point clouds."""

import numpy as np


def compute_normals(points, k=30):
    """
    Estimate unit surface normals with Open3D.

    Normals are oriented toward the origin, which is where the sensor sits
    for scans loaded in their own frame.

    Args:
        points: (n, 3) array of points
        k: Number of neighbors used for the local plane fit

    Returns:
        (n, 3) array of normals
    """
    import open3d as o3d

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)
    pcd.estimate_normals(
        search_param=o3d.geometry.KDTreeSearchParamKNN(knn=k)
    )
    pcd.orient_normals_towards_camera_location(camera_location=np.array([0., 0., 0.]))

    return np.asarray(pcd.normals)


def attach_normals(cloud, k=30):
    """Compute normals for ``cloud`` and store them in its "normals" channel."""
    cloud.add_descriptor("normals", compute_normals(cloud.points, k=k))
    return cloud
