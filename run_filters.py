#!/usr/bin/env python3
"""
Main entry point for correspondence outlier filtering.

Loads two point clouds, matches them with a KD-tree and reports which
matches an outlier filter keeps.
"""

import argparse
import logging
import sys

import numpy as np

from pcweights import (ConfigurationError, NoCandidatesError, OUTLIER_FILTERS, PointCloud,
                       attach_normals, get_outlier_filter, load_filter_chain, match_points)
from pcweights.outlier_filters import FILTER_ALIASES
from pcweights.visualization import plot_distance_histogram, plot_filter_comparison


def parse_params(pairs):
    """Turn ['maxDist=0.5', ...] into {'maxDist': 0.5, ...}."""
    params = {}
    for pair in pairs or []:
        if '=' not in pair:
            raise ConfigurationError(f"Parameter '{pair}' must look like name=value")
        key, value = pair.split('=', 1)
        try:
            params[key.strip()] = float(value)
        except ValueError:
            raise ConfigurationError(f"Parameter '{key}' needs a numeric value, got '{value}'")
    return params


def load_clouds(source_path, target_path, voxel=None, normals=False):
    """Load reading and reference clouds with optional downsampling and normals."""
    print(f"\nLoading point clouds...")
    print(f"  Reading:   {source_path}")
    print(f"  Reference: {target_path}")

    reading = PointCloud.from_file(source_path)
    reference = PointCloud.from_file(target_path)

    if voxel:
        reading = reading.downsample(voxel)
        reference = reference.downsample(voxel)
        print(f"  Downsampled with voxel size {voxel}")

    if normals:
        attach_normals(reading)
        attach_normals(reference)
        print(f"  Normals computed")

    print(f"  Reading points:   {len(reading)}")
    print(f"  Reference points: {len(reference)}")
    return reading, reference


def summarize(description, weights):
    total = weights.size
    kept = int(np.count_nonzero(weights))
    fraction = kept / total if total else 0.0
    print(f"{description:<35} kept {kept:>8} / {total:<8} ({fraction*100:.1f}%)")
    return {'description': description, 'kept': kept, 'total': total}


def run_filter(args):
    """Run a single outlier filter."""
    print("\n" + "="*80)
    print("Outlier Filtering")
    print("="*80)

    outlier_filter = get_outlier_filter(args.filter, parse_params(args.param))
    reading, reference = load_clouds(args.source, args.target, args.voxel, args.normals)

    matches = match_points(reading, reference, knn=args.knn, max_dist=args.max_dist, n_jobs=args.jobs)
    weights = outlier_filter.compute(reading, reference, matches)

    print(f"\n{'='*80}")
    print("RESULTS")
    print("="*80)
    print(f"Filter: {outlier_filter!r}")
    summarize(outlier_filter.name, weights)

    if args.plot:
        plot_distance_histogram(matches, weights, title=outlier_filter.name)


def run_chain(args):
    """Run a filter chain loaded from YAML."""
    chain = load_filter_chain(args.config)
    reading, reference = load_clouds(args.source, args.target, args.voxel, args.normals)

    matches = match_points(reading, reference, knn=args.knn, max_dist=args.max_dist, n_jobs=args.jobs)

    print(f"\n{'='*80}")
    print("RESULTS")
    print("="*80)
    for outlier_filter in chain.filters:
        summarize(outlier_filter.name, outlier_filter.compute(reading, reference, matches))
    weights = chain.compute(reading, reference, matches)
    summarize("Combined", weights)

    if args.plot:
        plot_distance_histogram(matches, weights, title=f"Chain: {args.config}")


def compare_filters(args):
    """Compare every registered filter with its default parameters."""
    print("\n" + "="*80)
    print("Comparing Outlier Filters")
    print("="*80)

    reading, reference = load_clouds(args.source, args.target, args.voxel, args.normals)
    matches = match_points(reading, reference, knn=args.knn, max_dist=args.max_dist, n_jobs=args.jobs)

    results = []
    for name in OUTLIER_FILTERS:
        outlier_filter = get_outlier_filter(name)
        try:
            weights = outlier_filter.compute(reading, reference, matches)
        except NoCandidatesError as e:
            print(f"{name:<35} failed: {e}")
            continue
        results.append(summarize(name, weights))

    if args.plot and results:
        plot_filter_comparison(results)


def add_common_arguments(parser):
    parser.add_argument('source', type=str, help='Path to reading point cloud')
    parser.add_argument('target', type=str, help='Path to reference point cloud')
    parser.add_argument('--knn', type=int, default=1, help='Candidates per reading point')
    parser.add_argument('--max-dist', type=float, default=np.inf,
                        help='Matches farther than this are marked absent')
    parser.add_argument('--voxel', type=float, default=None, help='Voxel size for downsampling')
    parser.add_argument('--normals', action='store_true', help='Estimate surface normals')
    parser.add_argument('--jobs', type=int, default=1, help='Parallel workers for matching')
    parser.add_argument('--plot', action='store_true', help='Plot the results')


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Correspondence Outlier Filtering',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Maximum distance filter
  python run_filters.py filter scan1.ply scan2.ply --filter max_dist --param maxDist=0.5

  # Adaptive trimming with a histogram of the result
  python run_filters.py filter scan1.ply scan2.ply --filter var_trimmed --plot

  # Normal consistency on downsampled clouds
  python run_filters.py filter scan1.ply scan2.ply --filter surface_normal --normals --voxel 0.05

  # Filter chain from a YAML file
  python run_filters.py chain scan1.ply scan2.ply --config filters.yaml

  # Compare all filters
  python run_filters.py compare scan1.ply scan2.ply --plot
        """
    )
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='mode', help='Filtering mode')

    filter_parser = subparsers.add_parser('filter', help='Run one outlier filter')
    add_common_arguments(filter_parser)
    filter_parser.add_argument('--filter', type=str, default='trimmed',
                               choices=sorted(FILTER_ALIASES) + sorted(OUTLIER_FILTERS),
                               help='Outlier filter')
    filter_parser.add_argument('--param', type=str, action='append',
                               help='Filter parameter as name=value (repeatable)')

    chain_parser = subparsers.add_parser('chain', help='Run a filter chain from YAML')
    add_common_arguments(chain_parser)
    chain_parser.add_argument('--config', type=str, required=True, help='YAML filter chain')

    compare_parser = subparsers.add_parser('compare', help='Compare all outlier filters')
    add_common_arguments(compare_parser)

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s %(name)s: %(message)s')

    if args.mode is None:
        parser.print_help()
        return 1

    try:
        if args.mode == 'filter':
            run_filter(args)
        elif args.mode == 'chain':
            run_chain(args)
        elif args.mode == 'compare':
            compare_filters(args)
    except (ConfigurationError, NoCandidatesError) as e:
        print(f"\nError: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
