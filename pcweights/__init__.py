"""
pcweights - Correspondence outlier weighting for point cloud registration

Weights the candidate matches of an ICP iteration:
- Distance thresholds (absolute, median-relative, fixed trim)
- Adaptive trimming with per-iteration inlier ratio optimization
- Surface normal consistency
- KD-tree based correspondence search to feed the filters
"""

from .errors import ConfigurationError, NoCandidatesError
from .matches import Matches, match_points
from .outlier_filters import (OutlierFilter, OutlierFilterChain, get_outlier_filter,
                              load_filter_chain, optimize_inlier_ratio, OUTLIER_FILTERS)
from .point_cloud import PointCloud
from .transforms import compute_normals, attach_normals
from .visualization import plot_distance_histogram, plot_filter_comparison

__version__ = "1.0.0"
__all__ = ["ConfigurationError", "NoCandidatesError", "Matches", "match_points",
           "OutlierFilter", "OutlierFilterChain", "get_outlier_filter",
           "load_filter_chain", "optimize_inlier_ratio", "OUTLIER_FILTERS",
           "PointCloud", "compute_normals", "attach_normals",
           "plot_distance_histogram", "plot_filter_comparison"]
