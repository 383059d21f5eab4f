"""
Fire-Count Strata Module
========================

Fire counts are unevenly distributed across plots: most plots burned once or
twice, a handful burned many times. This module provides the two ways the
analysis deals with that:

- Observation weights from the fire-count distribution. Each distinct count k
  gets weight_init(k) = count(k) / N, rescaled so the mean over distinct
  counts is exactly 1. The overall likelihood keeps its magnitude while the
  sparsely sampled strata contribute more relative uncertainty.
- Categorical binning of fire counts into ordered classes
  ("0to1", "2to3", "4plus") for the categorical-term model variants.
"""

import numpy as np
import pandas as pd

try:
    from .config import COLS, FIRE_BREAKS, FIRE_LABELS
except ImportError:
    from config import COLS, FIRE_BREAKS, FIRE_LABELS


# ============================================================================
# WEIGHTS
# ============================================================================

def fire_weight_lookup(fire_counts):
    """
    Weight lookup table for each distinct fire count.

    Parameters
    ----------
    fire_counts : array-like
        One fire count per observation

    Returns
    -------
    DataFrame
        Columns: fires, n, weight_init, weight.
        weight_init = n / N_total; weight = weight_init / mean(weight_init),
        so the mean of `weight` over the rows of this table is 1.
    """
    values = pd.Series(np.asarray(fire_counts, dtype=float))

    if len(values) == 0:
        raise ValueError("Cannot compute weights from an empty sequence of fire counts")
    if values.isna().any():
        raise ValueError(f"Fire counts contain {values.isna().sum()} missing values")

    counts = values.value_counts().sort_index()
    lookup = pd.DataFrame({
        'fires': counts.index.values,
        'n': counts.values.astype(int),
    })
    lookup['weight_init'] = lookup['n'] / len(values)
    lookup['weight'] = lookup['weight_init'] / lookup['weight_init'].mean()

    return lookup


def compute_fire_weights(fire_counts):
    """
    Per-observation weights aligned to the input order.

    Examples
    --------
    >>> w = compute_fire_weights([0, 0, 0, 1, 5])
    >>> w.round(3)
    array([1.8, 1.8, 1.8, 0.6, 0.6])
    """
    values = np.asarray(fire_counts, dtype=float)
    lookup = fire_weight_lookup(values)
    mapping = dict(zip(lookup['fires'], lookup['weight']))
    return np.array([mapping[v] for v in values])


def print_weight_summary(lookup):
    """Print the weight lookup in the same layout as the other reports."""
    print("\n" + "=" * 50)
    print("FIRE-COUNT WEIGHTS")
    print("=" * 50)
    print(f"{'Fires':>8} {'n':>6} {'w_init':>10} {'weight':>10}")
    print("-" * 50)
    for _, row in lookup.iterrows():
        print(f"{row['fires']:>8.0f} {row['n']:>6d} {row['weight_init']:>10.4f} {row['weight']:>10.4f}")
    print("-" * 50)
    print(f"Mean weight over fire-count groups: {lookup['weight'].mean():.4f}")


# ============================================================================
# BINNING
# ============================================================================

def bin_fire_count(fire_counts, breaks=FIRE_BREAKS, labels=FIRE_LABELS):
    """
    Bin fire counts into ordered classes.

    Intervals are left-inclusive and right-exclusive, so with the default
    breaks (-1, 2, 4, inf) a count of 1 is "0to1", 2 is "2to3" and 4 is
    "4plus". Counts outside the breaks become NaN.

    Parameters
    ----------
    fire_counts : array-like
    breaks : list
        Bin edges, increasing
    labels : list of str
        One label per interval

    Returns
    -------
    Categorical
        Ordered categorical aligned to the input
    """
    if len(labels) != len(breaks) - 1:
        raise ValueError(
            f"Need {len(breaks) - 1} labels for {len(breaks)} breaks, got {len(labels)}"
        )

    return pd.cut(
        np.asarray(fire_counts, dtype=float),
        bins=breaks,
        labels=labels,
        right=False,
        ordered=True,
    )


def add_fire_class(df, fire_col=None, class_col=None):
    """Return a copy of df with the binned fire-count column added."""
    fire_col = fire_col or COLS['fires']
    class_col = class_col or COLS['fire_class']

    df = df.copy()
    df[class_col] = bin_fire_count(df[fire_col].values)
    return df
