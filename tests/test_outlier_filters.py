import numpy as np
import pytest

from pcweights.errors import ConfigurationError
from pcweights.outlier_filters import (
    MaxDistOutlierFilter, MedianDistOutlierFilter, MinDistOutlierFilter,
    NullDescriptorOutlierFilter, NullFeatureOutlierFilter, OUTLIER_FILTERS,
    SurfaceNormalOutlierFilter, TrimmedDistOutlierFilter, VarTrimmedDistOutlierFilter,
    get_outlier_filter,
)
from tests.conftest import make_matches


GRID = [[0.5, 1.0, 2.0, np.inf],
        [1.5, 3.0, 0.0, 0.9]]


@pytest.mark.parametrize("filter_cls", [NullFeatureOutlierFilter, NullDescriptorOutlierFilter])
@pytest.mark.parametrize("shape", [(1, 5), (3, 7), (0, 0), (2, 0)])
def test_null_filters_return_ones(clouds, filter_cls, shape):
    matches = make_matches(np.full(shape, 2.0).reshape(shape))
    weights = filter_cls().compute(*clouds, matches)
    assert weights.shape == shape
    assert np.all(weights == 1)


def test_max_dist_boundary_is_kept(clouds):
    weights = MaxDistOutlierFilter(maxDist=1.0).compute(*clouds, make_matches(GRID))
    expected = [[1, 1, 0, 0],
                [0, 0, 1, 1]]
    np.testing.assert_array_equal(weights, expected)


def test_max_dist_matches_strict_comparison(clouds):
    rng = np.random.default_rng(3)
    dists = rng.uniform(0, 10, size=(4, 50))
    weights = MaxDistOutlierFilter(maxDist=5.0).compute(*clouds, make_matches(dists))
    np.testing.assert_array_equal(weights == 0, dists > 5.0)


def test_min_dist_boundary_is_kept(clouds):
    weights = MinDistOutlierFilter(minDist=1.0).compute(*clouds, make_matches(GRID))
    expected = [[0, 1, 1, 1],
                [1, 1, 0, 0]]
    np.testing.assert_array_equal(weights, expected)


def test_median_dist_rejects_above_factor_times_median(clouds):
    matches = make_matches([[1.0, 2.0, 3.0, 4.0, 100.0]])

    weights = MedianDistOutlierFilter(factor=2.0).compute(*clouds, matches)
    np.testing.assert_array_equal(weights, [[1, 1, 1, 1, 0]])

    weights = MedianDistOutlierFilter(factor=1.0).compute(*clouds, matches)
    np.testing.assert_array_equal(weights, [[1, 1, 1, 0, 0]])


def test_median_dist_ignores_infinite_distances(clouds):
    matches = make_matches([[1.0, 2.0, 3.0, np.inf, np.inf, np.inf]])
    weights = MedianDistOutlierFilter(factor=1.0).compute(*clouds, matches)
    np.testing.assert_array_equal(weights, [[1, 1, 0, 0, 0, 0]])


def test_median_dist_without_finite_distance_keeps_everything(clouds):
    matches = make_matches([[np.inf, np.inf]])
    weights = MedianDistOutlierFilter(factor=3.0).compute(*clouds, matches)
    np.testing.assert_array_equal(weights, [[1, 1]])


@pytest.mark.parametrize("ratio", [0.1, 0.3, 0.5, 0.7, 0.9])
def test_trimmed_keeps_ratio_of_distinct_distances(clouds, ratio):
    rng = np.random.default_rng(0)
    dists = rng.permutation(np.arange(1, 21, dtype=float)).reshape(2, 10)
    weights = TrimmedDistOutlierFilter(ratio=ratio).compute(*clouds, make_matches(dists))

    assert weights.sum() == int(round(ratio * dists.size))
    kept = np.sort(dists[weights == 1])
    np.testing.assert_array_equal(kept, np.arange(1, kept.size + 1))


@pytest.mark.parametrize("outlier_filter", [
    MaxDistOutlierFilter(maxDist=1.0),
    MinDistOutlierFilter(minDist=0.7),
    MedianDistOutlierFilter(factor=1.5),
    TrimmedDistOutlierFilter(ratio=0.6),
    VarTrimmedDistOutlierFilter(minRatio=0.2, maxRatio=0.9, **{"lambda": 1.5}),
])
def test_compute_is_idempotent_and_leaves_inputs_alone(clouds, outlier_filter):
    matches = make_matches(GRID, ids=[[0, 1, 2, 3], [1, 2, 3, 0]])
    dists_before = matches.dists.copy()
    ids_before = matches.ids.copy()

    first = outlier_filter.compute(*clouds, matches)
    second = outlier_filter.compute(*clouds, matches)

    assert first.shape == matches.dists.shape
    assert np.array_equal(first, second)
    assert set(np.unique(first)) <= {0.0, 1.0}
    np.testing.assert_array_equal(matches.dists, dists_before)
    np.testing.assert_array_equal(matches.ids, ids_before)


def test_registry_holds_every_filter():
    assert set(OUTLIER_FILTERS) == {
        "NullFeatureOutlierFilter", "NullDescriptorOutlierFilter", "MaxDistOutlierFilter",
        "MinDistOutlierFilter", "MedianDistOutlierFilter", "TrimmedDistOutlierFilter",
        "VarTrimmedDistOutlierFilter", "SurfaceNormalOutlierFilter",
    }


def test_get_outlier_filter_by_name_and_alias():
    by_name = get_outlier_filter("MaxDistOutlierFilter", {"maxDist": 0.25})
    by_alias = get_outlier_filter("max_dist", {"max_dist": 0.25})

    assert isinstance(by_name, MaxDistOutlierFilter)
    assert isinstance(by_alias, MaxDistOutlierFilter)
    assert by_name.params == by_alias.params
    assert isinstance(get_outlier_filter("surface_normal"), SurfaceNormalOutlierFilter)


def test_get_outlier_filter_uses_defaults():
    outlier_filter = get_outlier_filter("trimmed")
    assert outlier_filter.params.ratio == pytest.approx(0.85)


def test_get_outlier_filter_rejects_unknown_name():
    with pytest.raises(ConfigurationError, match="Unknown outlier filter"):
        get_outlier_filter("RandomOutlierFilter")


def test_repr_shows_parameters():
    assert repr(MaxDistOutlierFilter(maxDist=2.0)) == "MaxDistOutlierFilter(maxDist=2.0)"
