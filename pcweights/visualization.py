"""Visualization utilities for outlier filter results."""

import logging

import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)


def plot_distance_histogram(matches, weights, title='Correspondence Distances',
                            save_path='distance_histogram.png', show=True, bins=50):
    """
    Plot the distance distribution split into kept and rejected matches.

    Args:
        matches: Matches the weights were computed for
        weights: Weight array with the shape of ``matches.dists``
        title: Plot title
        save_path: Path to save the plot, or None
        show: Whether to open the plot window
        bins: Number of histogram bins

    Returns:
        The matplotlib figure
    """
    dists = matches.dists
    finite = np.isfinite(dists)
    kept = dists[finite & (weights > 0)]
    rejected = dists[finite & (weights == 0)]

    fig, ax = plt.subplots(figsize=(12, 7))

    all_finite = dists[finite]
    edges = np.histogram_bin_edges(all_finite, bins=bins) if all_finite.size else bins
    ax.hist(kept, bins=edges, color='#2E86AB', alpha=0.8, label=f'Kept ({kept.size})')
    ax.hist(rejected, bins=edges, color='red', alpha=0.6, label=f'Rejected ({rejected.size})')

    if kept.size:
        ax.axvline(x=kept.max(), color='green', linestyle='--', linewidth=1.5,
                   alpha=0.7, label=f'Largest kept: {kept.max():.4f}')

    ax.set_xlabel('Distance', fontsize=12)
    ax.set_ylabel('Matches', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best')

    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=150)
        logger.info("Distance histogram saved to '%s'", save_path)
    if show:
        plt.show()
    return fig


def plot_filter_comparison(results, save_path='filter_comparison.png', show=True):
    """
    Compare outlier filters side-by-side.

    Args:
        results: List of dictionaries with 'description', 'kept' and 'total' keys
        save_path: Path to save the plot, or None
        show: Whether to open the plot window

    Returns:
        The matplotlib figure
    """
    fig, ax = plt.subplots(figsize=(15, 6))

    descriptions = [r['description'] for r in results]
    fractions = [r['kept'] / r['total'] if r['total'] else 0.0 for r in results]

    x_pos = np.arange(len(descriptions))
    ax.bar(x_pos, fractions, color='#2E86AB', alpha=0.7)
    ax.set_xlabel('Outlier Filter', fontsize=12)
    ax.set_ylabel('Fraction Kept', fontsize=12)
    ax.set_title('Outlier Filter Comparison', fontsize=14, fontweight='bold')
    ax.set_xticks(x_pos)
    ax.set_xticklabels([d.replace('OutlierFilter', '') for d in descriptions],
                       rotation=15, ha='right')
    ax.set_ylim(0, 1.1)
    ax.grid(True, alpha=0.3, axis='y')

    for i, (fraction, result) in enumerate(zip(fractions, results)):
        ax.text(i, fraction, f"{fraction:.2f}\n({result['kept']}/{result['total']})",
                ha='center', va='bottom', fontsize=9)

    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=150)
        logger.info("Comparison plot saved to '%s'", save_path)
    if show:
        plt.show()
    return fig
