"""
Configuration settings for the Soil Carbon / Fire Frequency Analysis
=====================================================================

This module contains all paths, parameters, and constants for the analysis.
Users should modify the PATHS section for their specific system, or point
SOIL_DATA_DIR at the folder holding the two input tables.

Project: Soil C, N and C:N response to fire frequency and logging history
"""

import os
from pathlib import Path

import numpy as np

# ============================================================================
# PATHS - USER MODIFIES THESE FOR THEIR SYSTEM
# ============================================================================

# Folder holding the input tables (relative to the working directory)
DATA_DIR = os.environ.get("SOIL_DATA_DIR", "data")

# Per-plot site metadata (fire count, harvest status, coordinates, microsite)
SITE_DATA_FILE = "site_data.csv"

# Per-plot sample means (total C and N, bulk density, core and soil depth)
SAMPLE_DATA_FILE = "sample_means.csv"

# Output directory for figures, prediction tables and the report
OUTPUT_DIR = "outputs"

# Correlogram results are pickled here after the first computation
CACHE_DIR = os.path.join(OUTPUT_DIR, "cache")

# ============================================================================
# COLUMN NAME MAPPING
# ============================================================================

COLS = {
    # Site table
    'plot': 'plot',                # Plot identifier (join key)
    'site': 'site',                # Site identifier (random-effect grouping)
    'fires': 'fires',              # Number of fires since FIRE_REFERENCE_YEAR
    'harvest': 'harvest',          # 'unharvested' / 'harvested'
    'easting': 'easting',          # Projected x coordinate (m)
    'northing': 'northing',        # Projected y coordinate (m)
    'microsite': 'microsite',      # 'open' / 'tree'
    # Sample table
    'tc': 'tc',                    # Total carbon (%)
    'tn': 'tn',                    # Total nitrogen (%)
    'bd': 'bd',                    # Bulk density (g/cm³)
    'depth': 'depth',              # Core depth (cm)
    'soil_depth': 'soil_depth',    # Top soil depth (cm), may be missing
    # Derived
    'carbontha': 'carbontha',      # Carbon stock (Mg/ha)
    'nitrogentha': 'nitrogentha',  # Nitrogen stock (Mg/ha)
    'cn_ratio': 'cn_ratio',        # C:N ratio
    'fire_class': 'fire_class',    # Binned fire count
}

SITE_REQUIRED_COLS = ['plot', 'site', 'fires', 'harvest', 'easting', 'northing', 'microsite']
SAMPLE_REQUIRED_COLS = ['plot', 'tc', 'tn', 'bd', 'depth']

HARVEST_LEVELS = ['unharvested', 'harvested']
MICROSITE_LEVELS = ['open', 'tree']

# Fire counts are tallied from this year onward
FIRE_REFERENCE_YEAR = 1939

# ============================================================================
# FIRE-COUNT STRATA
# ============================================================================

# Left-inclusive / right-exclusive: [-1, 2) [2, 4) [4, inf)
FIRE_BREAKS = [-1, 2, 4, np.inf]
FIRE_LABELS = ['0to1', '2to3', '4plus']

# ============================================================================
# RESPONSES
# ============================================================================

RESPONSES = {
    'tc': {
        'column': 'tc',
        'transform': 'log',
        'label': 'Total C (%)',
    },
    'carbontha': {
        'column': 'carbontha',
        'transform': 'log',
        'label': 'Soil C (Mg/ha)',
    },
    'nitrogentha': {
        'column': 'nitrogentha',
        'transform': 'log',
        'label': 'Soil N (Mg/ha)',
    },
    'cn_ratio': {
        'column': 'cn_ratio',
        'transform': 'log',
        'label': 'C:N ratio',
    },
}

# ============================================================================
# MODEL SPECIFICATIONS
# ============================================================================

DEFAULT_MODEL_SPEC = {
    'name': 'model',
    'fire': 'smooth',            # 'smooth', 'linear', 'categorical' or None
    'fire_by_harvest': False,
    'fire_k': 4,                 # basis dimension (n_splines) for the fire smooth
    'fire_fixed_df': True,       # True: fixed flexibility; False: penalised
    'depth': None,               # 'smooth', 'linear' or None
    'depth_k': 5,
    'depth_fixed_df': False,
    'harvest': True,
    'microsite': True,
    'random_effect': True,       # random intercept per site
    'family': 'gaussian',        # 'gaussian' or 'scat'
    'weighted': False,           # fire-count weights
}

# Fitted for every response, in this order
MODEL_SEQUENCE = [
    {'name': 'null', 'fire': None},
    {'name': 'fire_linear', 'fire': 'linear'},
    {'name': 'fire_categorical', 'fire': 'categorical'},
    {'name': 'fire_smooth_fixed', 'fire': 'smooth', 'fire_fixed_df': True},
    {'name': 'fire_smooth_penalized', 'fire': 'smooth', 'fire_fixed_df': False},
    {'name': 'fire_by_harvest', 'fire': 'smooth', 'fire_by_harvest': True},
    {'name': 'fire_smooth_weighted', 'fire': 'smooth', 'weighted': True},
    {'name': 'fire_smooth_depth', 'fire': 'smooth', 'depth': 'smooth'},
]

# Response-specific additions
EXTRA_MODELS = {
    'cn_ratio': [
        {'name': 'fire_smooth_scat', 'fire': 'smooth', 'family': 'scat'},
    ],
}

# Model used for the exported prediction tables ('best' = lowest AIC)
PREDICTION_MODELS = {
    'carbontha': 'fire_smooth_fixed',
    'nitrogentha': 'fire_smooth_fixed',
    'cn_ratio': 'fire_smooth_scat',
}

PREDICTION_FILES = {
    'carbontha': 'predictions_carbon.csv',
    'nitrogentha': 'predictions_nitrogen.csv',
    'cn_ratio': 'predictions_cn_ratio.csv',
}

PREDICTION_TABLE_SEP = ','

# Half-width of the approximate 95% interval, in standard errors
INTERVAL_SE_MULTIPLIER = 2.0

# ============================================================================
# FITTING PARAMETERS
# ============================================================================

# Penalty on unpenalised ("fixed df") smooths and fixed categorical effects;
# kept just above zero so pygam's solver stays well conditioned
FIXED_DF_LAM = 1e-6
FIXED_EFFECT_LAM = 1e-6

# Candidate smoothing parameters searched for penalised terms
SMOOTH_LAM_GRID = list(np.logspace(-3, 3, 7))
RANDOM_EFFECT_LAM_GRID = list(np.logspace(-2, 2, 5))

# Scaled-t family
SCAT_MIN_DF = 3.0
SCAT_MAX_DF = 100.0
SCAT_MAX_ITER = 50
SCAT_TOL = 1e-6

GAM_MAX_ITER = 100

# AIC differences used for the qualitative comparison labels
AIC_ON_PAR = 2.0
AIC_LESS_SUPPORTED = 10.0

# ============================================================================
# SPATIAL CORRELOGRAM
# ============================================================================

# Load pickled correlograms instead of recomputing when they exist
USE_CACHED_CORRELOGRAMS = True

CORRELOGRAM_N_BINS = 15
CORRELOGRAM_N_BOOTSTRAP = 500
CORRELOGRAM_EVAL_POINTS = 100
# Correlation is estimated out to this fraction of the largest plot separation
CORRELOGRAM_MAX_DISTANCE_FRACTION = 1.0 / 3.0
MIN_CORRELOGRAM_POINTS = 10

# ============================================================================
# PROCESSING PARAMETERS
# ============================================================================

# Random seed for reproducibility
RANDOM_SEED = 42

# ============================================================================
# VISUALIZATION PARAMETERS
# ============================================================================

PLOT_STYLE = 'seaborn-v0_8-whitegrid'

PLOT_PARAMS = {
    'font.size': 12,
    'axes.labelsize': 14,
    'axes.titlesize': 16,
    'legend.fontsize': 11,
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'figure.figsize': (10, 6),
}

HARVEST_COLORS = {
    'unharvested': '#1b7837',
    'harvested': '#b2182b',
}

MICROSITE_LINESTYLES = {
    'open': '-',
    'tree': '--',
}


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def ensure_output_dir():
    """Create output directory if it doesn't exist."""
    Path(OUTPUT_DIR).mkdir(parents=True, exist_ok=True)
    return OUTPUT_DIR


def ensure_cache_dir(cache_dir=None):
    """Create the correlogram cache directory if it doesn't exist."""
    cache_dir = cache_dir or CACHE_DIR
    Path(cache_dir).mkdir(parents=True, exist_ok=True)
    return cache_dir


def get_data_path(filename):
    """Full path of an input table inside DATA_DIR."""
    return str(Path(DATA_DIR) / filename)


def get_response_config(response):
    """Look up a response definition, with a clear error for unknown names."""
    if response not in RESPONSES:
        raise ValueError(f"Unknown response: {response}. Available: {list(RESPONSES.keys())}")
    return RESPONSES[response]


def print_config_summary():
    """Print summary of current configuration."""
    print("=" * 60)
    print("SOIL C/N FIRE ANALYSIS - Configuration Summary")
    print("=" * 60)
    print(f"\nInput Data ({DATA_DIR}):")
    for name in (SITE_DATA_FILE, SAMPLE_DATA_FILE):
        path = get_data_path(name)
        exists = "✓" if os.path.exists(path) else "✗"
        print(f"  [{exists}] {path}")
    print(f"\nResponses: {', '.join(RESPONSES)}")
    print(f"Models per response: {len(MODEL_SEQUENCE)}")
    print(f"Fire strata: {FIRE_LABELS} (breaks {FIRE_BREAKS})")
    print(f"\nOutput Directory: {OUTPUT_DIR}")
    print(f"Correlogram cache: {CACHE_DIR} (use cached: {USE_CACHED_CORRELOGRAMS})")
    print("=" * 60)


if __name__ == "__main__":
    print_config_summary()
