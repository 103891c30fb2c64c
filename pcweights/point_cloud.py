"""Point cloud container with named per-point descriptor channels."""

import logging

import numpy as np

logger = logging.getLogger(__name__)


class PointCloud:
    """
    Points plus descriptor channels (normals, colors, ...).

    Points are stored one per row, shape (n, d). Every descriptor channel is
    an (n, k) array whose rows are aligned with the points.
    """

    def __init__(self, points, descriptors=None):
        """
        Initialize a point cloud.

        Args:
            points: Array-like of shape (n, d)
            descriptors: Optional mapping of channel name to (n, k) array
        """
        self.points = np.asarray(points, dtype=float)
        if self.points.ndim != 2:
            raise ValueError(f"points must be a 2D array, got shape {self.points.shape}")
        self.descriptors = {}
        for name, values in (descriptors or {}).items():
            self.add_descriptor(name, values)

    @classmethod
    def from_o3d(cls, o3d_pcd):
        """Build from an Open3D PointCloud, keeping its normals and colors."""
        descriptors = {}
        if o3d_pcd.has_normals():
            descriptors["normals"] = np.asarray(o3d_pcd.normals)
        if o3d_pcd.has_colors():
            descriptors["colors"] = np.asarray(o3d_pcd.colors)
        return cls(np.asarray(o3d_pcd.points), descriptors)

    @classmethod
    def from_file(cls, filepath):
        """Load point cloud from file."""
        import open3d as o3d

        pcd = o3d.io.read_point_cloud(str(filepath))
        cloud = cls.from_o3d(pcd)
        logger.info("Loaded %d points from %s (descriptors: %s)",
                    len(cloud), filepath, ", ".join(cloud.descriptors) or "none")
        return cloud

    def add_descriptor(self, name, values):
        """Attach a descriptor channel. 1D input is treated as a single column."""
        values = np.asarray(values, dtype=float)
        if values.ndim == 1:
            values = values[:, np.newaxis]
        if values.shape[0] != self.points.shape[0]:
            raise ValueError(
                f"Descriptor '{name}' has {values.shape[0]} rows, "
                f"expected {self.points.shape[0]}"
            )
        self.descriptors[name] = values

    def has_descriptor(self, name):
        return name in self.descriptors

    def get_descriptor_by_name(self, name):
        """
        Return the named descriptor channel.

        A missing channel yields an (n, 0) array instead of raising, so callers
        can test ``descriptor.shape[1] == 0``.
        """
        if name in self.descriptors:
            return self.descriptors[name]
        return np.empty((self.points.shape[0], 0))

    def downsample(self, voxel_size):
        """
        Downsample point cloud using voxel grid.

        Descriptor channels are not carried over.

        Args:
            voxel_size: Size of voxels for downsampling

        Returns:
            New PointCloud holding one averaged point per occupied voxel
        """
        if self.points.shape[0] == 0:
            return PointCloud(self.points)

        min_bound = np.min(self.points, axis=0)
        voxel_indices = np.floor((self.points - min_bound) / voxel_size).astype(np.int64)

        _, inverse, counts = np.unique(voxel_indices, axis=0,
                                       return_inverse=True, return_counts=True)
        inverse = inverse.reshape(-1)
        sums = np.zeros((counts.shape[0], self.points.shape[1]))
        np.add.at(sums, inverse, self.points)
        return PointCloud(sums / counts[:, np.newaxis])

    def to_o3d(self, points=None, color=None):
        """
        Convert to Open3D PointCloud object.

        Args:
            points: Optional custom points array (default: self.points)
            color: Optional uniform color [r, g, b]

        Returns:
            Open3D PointCloud object
        """
        import open3d as o3d

        pcd = o3d.geometry.PointCloud()
        pts = points if points is not None else self.points
        pcd.points = o3d.utility.Vector3dVector(pts)

        if self.has_descriptor("normals") and points is None:
            pcd.normals = o3d.utility.Vector3dVector(self.descriptors["normals"])
        if color is not None:
            pcd.paint_uniform_color(color)
        elif self.has_descriptor("colors") and points is None:
            pcd.colors = o3d.utility.Vector3dVector(self.descriptors["colors"])

        return pcd

    def __len__(self):
        return len(self.points)
