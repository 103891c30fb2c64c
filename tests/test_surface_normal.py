import logging

import numpy as np
import pytest

from pcweights.matches import Matches
from pcweights.outlier_filters import SurfaceNormalOutlierFilter
from pcweights.point_cloud import PointCloud
from tests.conftest import make_matches

SKIP_MESSAGE = "surface normals not available"


def cloud_with_normals(normals):
    normals = np.asarray(normals, dtype=float)
    return PointCloud(np.zeros((normals.shape[0], 3)), {"normals": normals})


@pytest.fixture
def reading():
    return cloud_with_normals([[0, 0, 1], [0, 0, 1], [0, 0, 1]])


@pytest.fixture
def matches():
    return make_matches(np.ones((2, 3)), ids=[[0, 1, 2], [2, 0, 1]])


def test_parallel_normals_are_kept(reading, matches):
    # not unit length on purpose
    reference = cloud_with_normals([[0, 0, 2], [0, 0, 0.5], [0, 0, 10]])
    weights = SurfaceNormalOutlierFilter(maxAngle=0.1).compute(reading, reference, matches)
    np.testing.assert_array_equal(weights, np.ones((2, 3)))


def test_orthogonal_normals_are_rejected(reading, matches):
    reference = cloud_with_normals([[1, 0, 0], [0, 1, 0], [1, 1, 0]])
    weights = SurfaceNormalOutlierFilter(maxAngle=0.1).compute(reading, reference, matches)
    np.testing.assert_array_equal(weights, np.zeros((2, 3)))


def test_flipped_normals_are_kept(reading, matches):
    reference = cloud_with_normals([[0, 0, -1], [0, 0, -1], [0, 0, 1]])
    weights = SurfaceNormalOutlierFilter(maxAngle=0.1).compute(reading, reference, matches)
    np.testing.assert_array_equal(weights, np.ones((2, 3)))


def test_angle_threshold_selects_by_id(reading):
    angle = np.deg2rad(30)
    reference = cloud_with_normals([
        [0, 0, 1],
        [np.sin(angle), 0, np.cos(angle)],
        [1, 0, 0],
    ])
    matches = make_matches(np.ones((1, 3)), ids=[[0, 1, 2]])

    weights = SurfaceNormalOutlierFilter(maxAngle=np.deg2rad(45)).compute(reading, reference, matches)
    np.testing.assert_array_equal(weights, [[1, 1, 0]])

    weights = SurfaceNormalOutlierFilter(maxAngle=np.deg2rad(20)).compute(reading, reference, matches)
    np.testing.assert_array_equal(weights, [[1, 0, 0]])


def test_eps_is_cosine_of_max_angle():
    assert SurfaceNormalOutlierFilter(maxAngle=np.pi / 3).eps == pytest.approx(0.5)


def test_zero_length_normal_is_rejected(matches):
    reading = cloud_with_normals([[0, 0, 0], [0, 0, 1], [0, 0, 1]])
    reference = cloud_with_normals([[0, 0, 1], [0, 0, 1], [0, 0, 1]])
    weights = SurfaceNormalOutlierFilter(maxAngle=0.1).compute(reading, reference, matches)
    np.testing.assert_array_equal(weights, [[0, 1, 1], [0, 1, 1]])


def test_absent_candidates_are_rejected(reading):
    reference = cloud_with_normals([[0, 0, 1], [0, 0, 1], [0, 0, 1]])
    matches = Matches([[1.0, 1.0, 1.0], [np.inf, 2.0, np.inf]],
                      [[0, 1, 2], [Matches.INVALID_ID, 0, Matches.INVALID_ID]])
    weights = SurfaceNormalOutlierFilter(maxAngle=0.1).compute(reading, reference, matches)
    np.testing.assert_array_equal(weights, [[1, 1, 1], [0, 1, 0]])


@pytest.mark.parametrize("missing", ["reading", "reference", "both"])
def test_missing_normals_keep_everything_and_log_once(caplog, reading, matches, missing):
    reference = cloud_with_normals([[1, 0, 0], [1, 0, 0], [1, 0, 0]])
    bare = PointCloud(np.zeros((3, 3)))
    if missing in ("reading", "both"):
        reading = bare
    if missing in ("reference", "both"):
        reference = bare

    outlier_filter = SurfaceNormalOutlierFilter(maxAngle=0.1)
    caplog.set_level(logging.INFO, logger="pcweights.outlier_filters")

    for _ in range(3):
        weights = outlier_filter.compute(reading, reference, matches)
        np.testing.assert_array_equal(weights, np.ones((2, 3)))

    skipped = [r for r in caplog.records if SKIP_MESSAGE in r.getMessage()]
    assert len(skipped) == 1
    assert skipped[0].levelno == logging.INFO
    assert outlier_filter.warning_printed


def test_latch_is_per_instance(caplog, matches):
    bare = PointCloud(np.zeros((3, 3)))
    caplog.set_level(logging.INFO, logger="pcweights.outlier_filters")

    SurfaceNormalOutlierFilter().compute(bare, bare, matches)
    SurfaceNormalOutlierFilter().compute(bare, bare, matches)

    assert len([r for r in caplog.records if SKIP_MESSAGE in r.getMessage()]) == 2
