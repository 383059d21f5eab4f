"""
Data Loading Module for the Soil C/N Fire Analysis
===================================================

This module handles loading and assembling the two input tables:
- Site metadata: one row per plot (fire count, harvest status, coordinates,
  micro-site type, site grouping)
- Sample means: one row per plot (total C and N, bulk density, core depth,
  top soil depth)

The analysis table is a left join of sample means onto sites by plot id,
plus the derived quantities:

    carbontha   = depth × bulk density × total C (%)     (Mg/ha)
    nitrogentha = depth × bulk density × total N (%)     (Mg/ha)
    cn_ratio    = total C / total N

Dependencies:
- pandas
- numpy
- pyarrow (optional, for parquet inputs)
"""

import os
from pathlib import Path

import numpy as np
import pandas as pd

# Handle imports for both package and direct execution
try:
    from .config import (
        COLS, DATA_DIR, SITE_DATA_FILE, SAMPLE_DATA_FILE,
        SITE_REQUIRED_COLS, SAMPLE_REQUIRED_COLS, get_data_path
    )
    from .fire_strata import add_fire_class
except ImportError:
    from config import (
        COLS, DATA_DIR, SITE_DATA_FILE, SAMPLE_DATA_FILE,
        SITE_REQUIRED_COLS, SAMPLE_REQUIRED_COLS, get_data_path
    )
    from fire_strata import add_fire_class


# ============================================================================
# TABLE LOADING
# ============================================================================

def load_table(path):
    """
    Load a tabular dataset from csv, tab-delimited text or parquet.

    Parameters
    ----------
    path : str or Path

    Returns
    -------
    DataFrame
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == '.csv':
        return pd.read_csv(path)
    elif suffix in ('.tsv', '.txt'):
        return pd.read_csv(path, sep='\t')
    elif suffix == '.parquet':
        return pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported file type '{suffix}' for {path}. Use .csv, .tsv/.txt or .parquet")


def _check_columns(df, required_keys, table_name):
    """Raise if any required (COLS-mapped) column is missing."""
    missing = [COLS[key] for key in required_keys if COLS[key] not in df.columns]
    if missing:
        raise ValueError(
            f"{table_name} is missing required columns {missing}. Available: {list(df.columns)}"
        )


def _normalize_labels(df, column):
    """Lower-case, stripped string labels for a categorical column."""
    if column in df.columns:
        df[column] = df[column].astype(str).str.strip().str.lower()
    return df


def load_site_data(path=None, verbose=True):
    """
    Load per-plot site metadata.

    Parameters
    ----------
    path : str, optional
        Defaults to SITE_DATA_FILE inside DATA_DIR
    verbose : bool

    Returns
    -------
    DataFrame
    """
    path = path or get_data_path(SITE_DATA_FILE)
    if verbose:
        print(f"Loading site data: {path}")

    sites = load_table(path)
    _check_columns(sites, SITE_REQUIRED_COLS, "Site table")

    sites = _normalize_labels(sites, COLS['harvest'])
    sites = _normalize_labels(sites, COLS['microsite'])

    if verbose:
        print(f"  {len(sites)} plots, {sites[COLS['site']].nunique()} sites")

    return sites


def load_sample_data(path=None, verbose=True):
    """
    Load per-plot sample means.

    The soil depth column is optional; when absent it is added as all-missing
    so the downstream filtering behaves the same way.
    """
    path = path or get_data_path(SAMPLE_DATA_FILE)
    if verbose:
        print(f"Loading sample means: {path}")

    samples = load_table(path)
    _check_columns(samples, SAMPLE_REQUIRED_COLS, "Sample table")

    if COLS['soil_depth'] not in samples.columns:
        samples[COLS['soil_depth']] = np.nan

    if verbose:
        print(f"  {len(samples)} sample rows")

    return samples


# ============================================================================
# DERIVED QUANTITIES
# ============================================================================

def derive_soil_quantities(df):
    """
    Add carbon and nitrogen stocks and the C:N ratio.

    Examples
    --------
    >>> df = pd.DataFrame({'depth': [20], 'bd': [1.1], 'tc': [3], 'tn': [0.15]})
    >>> derive_soil_quantities(df)['carbontha'].iloc[0]
    66.0
    """
    df = df.copy()
    depth = df[COLS['depth']]
    bd = df[COLS['bd']]
    tc = df[COLS['tc']]
    tn = df[COLS['tn']]

    df[COLS['carbontha']] = depth * bd * tc
    df[COLS['nitrogentha']] = depth * bd * tn
    df[COLS['cn_ratio']] = (tc / tn.where(tn > 0)).astype(float)

    return df


# ============================================================================
# ANALYSIS TABLE
# ============================================================================

def assemble_analysis_table(sites, samples, verbose=True):
    """
    Join sample means onto site metadata and derive analysis quantities.

    Parameters
    ----------
    sites : DataFrame
        Site table, one row per plot
    samples : DataFrame
        Sample-means table
    verbose : bool

    Returns
    -------
    DataFrame
        One row per matched sample row. Every plot id in the result exists
        in the site table, and the row count never exceeds len(samples).

    Raises
    ------
    pandas.errors.MergeError
        If the site table holds duplicate plot ids
    ValueError
        If no sample row matches a plot
    """
    plot_col = COLS['plot']

    merged = samples.merge(
        sites,
        on=plot_col,
        how='left',
        validate='many_to_one',
        suffixes=('', '_site'),
        indicator=True,
    )

    matched = merged['_merge'] == 'both'
    n_unmatched = int((~matched).sum())
    merged = merged.loc[matched].drop(columns=['_merge']).reset_index(drop=True)

    if len(merged) == 0:
        raise ValueError(
            f"Joining {len(samples)} sample rows to {len(sites)} plots on '{plot_col}' produced no matches"
        )

    merged = derive_soil_quantities(merged)
    merged = add_fire_class(merged)

    if verbose:
        print(f"\nAssembled analysis table: {len(merged)} rows")
        if n_unmatched:
            print(f"  Dropped {n_unmatched} sample rows with no matching plot")
        n_missing_depth = int(merged[COLS['soil_depth']].isna().sum())
        if n_missing_depth:
            print(f"  {n_missing_depth} rows have no soil depth (filtered where depth is used)")

    return merged


def load_analysis_data(site_path=None, sample_path=None, verbose=True):
    """Load both input tables and return the assembled analysis table."""
    sites = load_site_data(site_path, verbose=verbose)
    samples = load_sample_data(sample_path, verbose=verbose)
    return assemble_analysis_table(sites, samples, verbose=verbose)


def drop_missing(df, columns, verbose=True):
    """
    Filter rows with missing values in the given columns.

    Used for the soil depth predictor: rows are dropped before any model or
    plot that uses it, never imputed.
    """
    columns = [columns] if isinstance(columns, str) else list(columns)
    keep = df[columns].notna().all(axis=1)
    n_dropped = int((~keep).sum())

    if verbose and n_dropped:
        print(f"  Removed {n_dropped} rows with missing {', '.join(columns)}")

    return df.loc[keep].reset_index(drop=True)


# ============================================================================
# SUMMARIES
# ============================================================================

def summarize_analysis_table(df, verbose=True):
    """
    Counts and means by harvest status × micro-site.

    Returns
    -------
    DataFrame
    """
    group_cols = [COLS['harvest'], COLS['microsite']]
    value_cols = [COLS[k] for k in ('fires', 'tc', 'tn', 'carbontha', 'nitrogentha', 'cn_ratio')]

    summary = df.groupby(group_cols, observed=True)[value_cols].mean()
    summary.insert(0, 'n', df.groupby(group_cols, observed=True).size())
    summary = summary.reset_index()

    if verbose:
        print("\n" + "=" * 70)
        print("ANALYSIS TABLE SUMMARY")
        print("=" * 70)
        print(f"Rows: {len(df)}   Plots: {df[COLS['plot']].nunique()}   Sites: {df[COLS['site']].nunique()}")
        print(f"Fire counts: {int(df[COLS['fires']].min())} to {int(df[COLS['fires']].max())}")
        print(f"\nFire classes:")
        for label, count in df[COLS['fire_class']].value_counts(sort=False).items():
            print(f"  {label:<8}: {count}")
        print()
        print(summary.round(2).to_string(index=False))

    return summary


def quick_data_check():
    """
    Report which configured input files exist.

    Returns
    -------
    dict
        file name -> bool
    """
    print("\n" + "=" * 60)
    print("DATA AVAILABILITY CHECK")
    print("=" * 60)
    print(f"Data directory: {os.path.abspath(DATA_DIR)}")

    status = {}
    for name in (SITE_DATA_FILE, SAMPLE_DATA_FILE):
        exists = os.path.exists(get_data_path(name))
        status[name] = exists
        print(f"  [{'✓' if exists else '✗'}] {name}")

    if not all(status.values()):
        print("\nSet SOIL_DATA_DIR or edit DATA_DIR in config.py")

    return status
