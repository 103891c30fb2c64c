import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from pcweights.matches import Matches
from pcweights.point_cloud import PointCloud


def make_matches(dists, ids=None):
    dists = np.atleast_2d(np.asarray(dists, dtype=float))
    if ids is None:
        ids = np.zeros(dists.shape, dtype=np.int64)
    return Matches(dists, ids)


@pytest.fixture
def clouds():
    """Two small clouds without descriptors."""
    reading = PointCloud(np.zeros((4, 3)))
    reference = PointCloud(np.ones((4, 3)))
    return reading, reference
