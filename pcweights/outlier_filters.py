"""
Outlier filters: per-correspondence weights for the registration loop.

Every filter maps (reading cloud, reference cloud, matches) to a weight
matrix shaped like ``matches.dists``. A weight of 0 removes the match from
the transformation estimate, 1 keeps it.
"""

import logging
from abc import ABC, abstractmethod

import numpy as np
import yaml
from pydantic import ValidationError

from .config import (NullParams, MaxDistParams, MinDistParams, MedianDistParams,
                     TrimmedDistParams, VarTrimmedDistParams, SurfaceNormalParams)
from .errors import ConfigurationError, NoCandidatesError
from .matches import Matches

logger = logging.getLogger(__name__)


def _format_validation_error(filter_name, exc):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        if location:
            problems.append(f"parameter '{location}' = {error.get('input')!r}: {error['msg']}")
        else:
            problems.append(error["msg"])
    return f"{filter_name}: " + "; ".join(problems)


def _threshold_weights(dists, limit):
    return np.where(dists > limit, 0.0, 1.0)


class OutlierFilter(ABC):
    """
    Base class of the filter family.

    Subclasses set ``name`` and ``Params`` (a pydantic model) and implement
    ``compute``. Parameters are validated once, at construction.
    """

    name = "OutlierFilter"
    Params = NullParams

    def __init__(self, **params):
        try:
            self.params = self.Params(**params)
        except ValidationError as exc:
            raise ConfigurationError(_format_validation_error(self.name, exc)) from exc

    @abstractmethod
    def compute(self, reading, reference, matches):
        """
        Weight every candidate match.

        Args:
            reading: PointCloud the matches start from
            reference: PointCloud the matches point into
            matches: Matches with ``dists`` and ``ids`` of shape (knn, n)

        Returns:
            Weight array of the same shape as ``matches.dists``
        """

    def __repr__(self):
        params = ", ".join(f"{key}={value}" for key, value
                           in self.params.model_dump(by_alias=True).items())
        return f"{self.name}({params})"


class NullFeatureOutlierFilter(OutlierFilter):
    """Keeps every feature match."""

    name = "NullFeatureOutlierFilter"

    def compute(self, reading, reference, matches):
        return np.ones(matches.ids.shape)


class NullDescriptorOutlierFilter(OutlierFilter):
    """Keeps every descriptor match."""

    name = "NullDescriptorOutlierFilter"

    def compute(self, reading, reference, matches):
        return np.ones(matches.ids.shape)


class MaxDistOutlierFilter(OutlierFilter):
    """Rejects matches farther than ``maxDist``."""

    name = "MaxDistOutlierFilter"
    Params = MaxDistParams

    def compute(self, reading, reference, matches):
        return _threshold_weights(matches.dists, self.params.max_dist)


class MinDistOutlierFilter(OutlierFilter):
    """Rejects matches closer than ``minDist``."""

    name = "MinDistOutlierFilter"
    Params = MinDistParams

    def compute(self, reading, reference, matches):
        return np.where(matches.dists < self.params.min_dist, 0.0, 1.0)


class MedianDistOutlierFilter(OutlierFilter):
    """Rejects matches farther than ``factor`` times the median distance."""

    name = "MedianDistOutlierFilter"
    Params = MedianDistParams

    def compute(self, reading, reference, matches):
        median = matches.get_dists_quantile(0.5)
        limit = self.params.factor * median
        logger.debug("%s: median %g, limit %g", self.name, median, limit)
        return _threshold_weights(matches.dists, limit)


class TrimmedDistOutlierFilter(OutlierFilter):
    """Keeps the ``ratio`` closest fraction of the matches."""

    name = "TrimmedDistOutlierFilter"
    Params = TrimmedDistParams

    def compute(self, reading, reference, matches):
        limit = matches.get_dists_quantile(self.params.ratio)
        return _threshold_weights(matches.dists, limit)


def _trim_window(n_total, n_valid, min_ratio, max_ratio):
    # Bounds come from the nominal count but index the valid distances only,
    # so clamp them to a non-empty window inside the valid list.
    min_el = int(np.floor(min_ratio * n_total))
    max_el = int(np.floor(max_ratio * n_total))
    max_el = min(max(max_el, min_el + 1), n_valid)
    min_el = min(min_el, max_el - 1)
    return min_el, max_el


def trimmed_scores(sorted_dists, n_total, min_el, max_el, lambda_):
    """
    Score of every candidate cutoff index in ``[min_el, max_el)``.

    score(i) = (ratio_i ** lambda) ** -2 / rank_i * (lower_sum + sorted_dists[i])
    with rank_i = i + 1, ratio_i = rank_i / n_total and lower_sum the sum of
    the distances below ``min_el``. Only the distance at the cutoff is added,
    not the cumulative sum of the window.
    """
    lower_sum = sorted_dists[:min_el].sum()
    ranks = np.arange(min_el + 1, max_el + 1, dtype=float)
    ratios = ranks / n_total
    return (ratios ** lambda_) ** -2.0 * (1.0 / ranks) * (lower_sum + sorted_dists[min_el:max_el])


def optimize_inlier_ratio(dists, min_ratio, max_ratio, lambda_):
    """
    Find the trim ratio minimizing the trimmed residual scale.

    Args:
        dists: Distance grid; infinite and non-positive entries are ignored
            but still count in the nominal total
        min_ratio: Lower bound of the searched ratio
        max_ratio: Upper bound of the searched ratio
        lambda_: Exponent penalizing small ratios

    Returns:
        The tuned ratio, ``(i* + 1) / N`` with ``i*`` the best index into the
        sorted valid distances and ``N`` the size of ``dists``

    Raises:
        NoCandidatesError: if no distance is finite and strictly positive
    """
    dists = np.asarray(dists, dtype=float)
    n_total = dists.size

    valid = dists[np.isfinite(dists) & (dists > 0)]
    if valid.size == 0:
        raise NoCandidatesError("no outlier to filter: no finite, positive distance")

    sorted_dists = np.sort(valid)
    min_el, max_el = _trim_window(n_total, sorted_dists.size, min_ratio, max_ratio)

    scores = trimmed_scores(sorted_dists, n_total, min_el, max_el, lambda_)
    # argmin keeps the first occurrence on ties
    best_index = min_el + int(np.argmin(scores))
    return (best_index + 1) / n_total


class VarTrimmedDistOutlierFilter(OutlierFilter):
    """
    Trimmed filter whose ratio is re-optimized on every call.

    The ratio is searched in ``[minRatio, maxRatio]`` so that it follows the
    inlier fraction as the registration converges.
    """

    name = "VarTrimmedDistOutlierFilter"
    Params = VarTrimmedDistParams

    def optimize_inlier_ratio(self, matches):
        return optimize_inlier_ratio(matches.dists, self.params.min_ratio,
                                     self.params.max_ratio, self.params.lambda_)

    def compute(self, reading, reference, matches):
        tuned_ratio = self.optimize_inlier_ratio(matches)
        logger.info("Optimized ratio: %g", tuned_ratio)

        limit = matches.get_dists_quantile(tuned_ratio)
        return _threshold_weights(matches.dists, limit)


def _normalized(vectors):
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    return np.divide(vectors, norms, out=np.zeros_like(vectors), where=norms > 0)


class SurfaceNormalOutlierFilter(OutlierFilter):
    """
    Rejects matches whose surface normals differ by more than ``maxAngle``.

    The sign of the normals is ignored. When either cloud has no "normals"
    channel the filter keeps everything and says so once.
    """

    name = "SurfaceNormalOutlierFilter"
    Params = SurfaceNormalParams

    def __init__(self, **params):
        super().__init__(**params)
        self.eps = float(np.cos(self.params.max_angle))
        self.warning_printed = False

    def mark_warned(self):
        self.warning_printed = True

    def compute(self, reading, reference, matches):
        normals_reading = reading.get_descriptor_by_name("normals")
        normals_reference = reference.get_descriptor_by_name("normals")

        if normals_reading.shape[1] == 0 or normals_reference.shape[1] == 0:
            if not self.warning_printed:
                logger.info("%s: surface normals not available. Skipping filtering", self.name)
                self.mark_warned()
            return np.ones(matches.dists.shape)

        valid = (matches.ids != Matches.INVALID_ID) & (matches.ids < normals_reference.shape[0])
        if not valid.any():
            return np.zeros(matches.dists.shape)

        normal_read = _normalized(np.asarray(normals_reading, dtype=float))
        normal_ref = _normalized(np.asarray(normals_reference, dtype=float))

        ref_per_match = normal_ref[np.where(valid, matches.ids, 0)]
        values = np.abs(np.sum(normal_read[np.newaxis, :, :] * ref_per_match, axis=2))

        return np.where(valid & (values >= self.eps), 1.0, 0.0)


OUTLIER_FILTERS = {
    cls.name: cls for cls in (
        NullFeatureOutlierFilter,
        NullDescriptorOutlierFilter,
        MaxDistOutlierFilter,
        MinDistOutlierFilter,
        MedianDistOutlierFilter,
        TrimmedDistOutlierFilter,
        VarTrimmedDistOutlierFilter,
        SurfaceNormalOutlierFilter,
    )
}

FILTER_ALIASES = {
    'null': NullFeatureOutlierFilter.name,
    'max_dist': MaxDistOutlierFilter.name,
    'min_dist': MinDistOutlierFilter.name,
    'median': MedianDistOutlierFilter.name,
    'trimmed': TrimmedDistOutlierFilter.name,
    'var_trimmed': VarTrimmedDistOutlierFilter.name,
    'surface_normal': SurfaceNormalOutlierFilter.name,
}


def get_outlier_filter(name, params=None):
    """
    Build an outlier filter from its name and parameters.

    Args:
        name: Registered filter name (e.g. 'MaxDistOutlierFilter') or alias
            (e.g. 'max_dist')
        params: Mapping of parameter name to value

    Returns:
        Configured OutlierFilter
    """
    if params is None:
        params = {}

    filter_name = FILTER_ALIASES.get(name, name)
    if filter_name not in OUTLIER_FILTERS:
        known = ", ".join(sorted(OUTLIER_FILTERS))
        raise ConfigurationError(f"Unknown outlier filter '{name}'. Use one of: {known}")
    if not isinstance(params, dict):
        raise ConfigurationError(f"{filter_name}: parameters must be a mapping, got {params!r}")

    return OUTLIER_FILTERS[filter_name](**params)


class OutlierFilterChain:
    """Several filters applied together; their weights are multiplied."""

    def __init__(self, filters=None):
        self.filters = list(filters or [])

    @classmethod
    def from_config(cls, entries):
        """
        Build a chain from a list of filter entries.

        Each entry is a filter name, or a one-key mapping
        ``{name: {param: value, ...}}``.
        """
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise ConfigurationError(f"Outlier filter chain must be a list, got {type(entries).__name__}")

        filters = []
        for entry in entries:
            if isinstance(entry, str):
                filters.append(get_outlier_filter(entry))
            elif isinstance(entry, dict) and len(entry) == 1:
                (name, params), = entry.items()
                filters.append(get_outlier_filter(name, params or {}))
            else:
                raise ConfigurationError(f"Invalid outlier filter entry: {entry!r}")
        return cls(filters)

    def compute(self, reading, reference, matches):
        weights = np.ones(matches.dists.shape)
        for outlier_filter in self.filters:
            weights *= outlier_filter.compute(reading, reference, matches)
        return weights

    def __len__(self):
        return len(self.filters)

    def __repr__(self):
        return f"OutlierFilterChain({self.filters!r})"


def load_filter_chain(filepath):
    """
    Load an outlier filter chain from a YAML file.

    The document is either a list of entries or a mapping with an
    ``outlierFilters`` list, as in libpointmatcher ICP configurations.
    """
    with open(filepath, 'r') as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse filter configuration {filepath}: {exc}") from exc

    if isinstance(document, dict):
        if 'outlierFilters' not in document:
            raise ConfigurationError(f"{filepath}: missing 'outlierFilters' section")
        document = document['outlierFilters']

    chain = OutlierFilterChain.from_config(document)
    logger.info("Loaded %d outlier filters from %s", len(chain), filepath)
    return chain
