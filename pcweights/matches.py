"""Correspondence sets between a reading and a reference point cloud."""

import logging

import numpy as np
from joblib import Parallel, delayed

from .kdtree import KDTree
from .utils import time_function, knn_search

logger = logging.getLogger(__name__)

# ratio * count is snapped to the nearest integer when closer than this
_QUANTILE_TOLERANCE = 1e-9


class Matches:
    """
    Candidate matches for every reading point.

    ``ids[y, x]`` is the reference index of the y-th closest candidate of
    reading point x and ``dists[y, x]`` its distance. Both grids have shape
    (knn, n_reading). Absent candidates hold ``INVALID_ID`` / ``INVALID_DIST``.
    """

    INVALID_ID = -1
    INVALID_DIST = np.inf

    def __init__(self, dists, ids):
        self.dists = np.asarray(dists, dtype=float)
        self.ids = np.asarray(ids, dtype=np.int64)
        if self.dists.shape != self.ids.shape:
            raise ValueError(
                f"dists and ids must have the same shape, got {self.dists.shape} and {self.ids.shape}"
            )
        if self.dists.ndim != 2:
            raise ValueError(f"Matches grids must be 2D, got shape {self.dists.shape}")

    @property
    def shape(self):
        return self.dists.shape

    def get_dists_quantile(self, quantile):
        """
        Quantile over all finite distances.

        Returns the smallest finite distance ``v`` such that at least
        ``quantile`` of the finite distances are ``<= v``. Returns inf when no
        finite distance exists, which makes threshold tests keep everything.
        """
        if quantile < 0.0 or quantile > 1.0:
            raise ValueError(f"quantile must be between 0 and 1, got {quantile}")

        values = self.dists[np.isfinite(self.dists)]
        if values.size == 0:
            return np.inf

        values = np.sort(values)
        position = quantile * values.size
        nearest = np.round(position)
        if abs(position - nearest) < _QUANTILE_TOLERANCE:
            position = nearest
        index = int(np.clip(np.ceil(position) - 1, 0, values.size - 1))
        return float(values[index])

    def __repr__(self):
        return f"Matches(knn={self.dists.shape[0]}, points={self.dists.shape[1]})"


@time_function
def match_points(reading, reference, knn=1, max_dist=np.inf, n_jobs=1, leaf_size=128):
    """
    Find the ``knn`` closest reference points of every reading point.

    Args:
        reading: PointCloud or (n, d) array of query points
        reference: PointCloud or (m, d) array of points to search in
        knn: Number of candidates per reading point
        max_dist: Candidates farther than this are reported as absent
        n_jobs: joblib workers; 1 runs in-process
        leaf_size: KD-tree leaf size

    Returns:
        Matches with grids of shape (knn, n)
    """
    if knn < 1:
        raise ValueError(f"knn must be at least 1, got {knn}")

    reading_points = np.asarray(getattr(reading, "points", reading), dtype=float)
    reference_points = np.asarray(getattr(reference, "points", reference), dtype=float)

    n_reading = reading_points.shape[0]
    ids = np.full((knn, n_reading), Matches.INVALID_ID, dtype=np.int64)
    dists = np.full((knn, n_reading), Matches.INVALID_DIST)
    if n_reading == 0 or reference_points.shape[0] == 0:
        return Matches(dists, ids)

    tree = KDTree(leaf_size=leaf_size, dimension=reference_points.shape[1])
    root = tree.build(reference_points)

    if n_jobs == 1:
        results = [knn_search(p, root, reference_points, knn, max_dist) for p in reading_points]
    else:
        results = Parallel(n_jobs=n_jobs, backend='loky')(
            delayed(knn_search)(p, root, reference_points, knn, max_dist)
            for p in reading_points
        )

    for x, (point_ids, point_dists) in enumerate(results):
        ids[:, x] = point_ids
        dists[:, x] = point_dists

    logger.debug("Matched %d reading points against %d reference points (knn=%d)",
                 n_reading, reference_points.shape[0], knn)
    return Matches(dists, ids)
