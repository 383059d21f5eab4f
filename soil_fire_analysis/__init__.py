"""
Soil Fire Analysis Package
==========================

A Python package for analyzing how soil carbon and nitrogen (concentration,
stock and C:N ratio) respond to repeated wildfire and to logging history.

Core approach: generalized additive models of the log-transformed responses
on fire count, harvest status and micro-site type with a random intercept per
site, compared by AIC and checked for leftover spatial structure with spline
correlograms.

Modules:
    config             - Configuration settings and paths
    data_loading       - Load and join the site and sample tables
    fire_strata        - Fire-count weights and fire classes
    gam_models         - GAM fitting, scaled-t family, AIC comparison
    prediction         - Population-level predictions with intervals
    spatial_statistics - Spline correlograms, Moran's I, result cache
    model_diagnostics  - Residual checks
    visualization      - Publication-quality plotting
    report             - HTML report of a run
    main               - Orchestration and pipeline

Quick Start:
    >>> from soil_fire_analysis import load_data, analyze_response
    >>> df = load_data()
    >>> carbon = analyze_response(df, 'carbontha')

Project: Soil C, N and C:N response to fire frequency and logging history
"""

__version__ = '0.1.0'

# Import key functions for convenient access
from .config import (
    COLS, RESPONSES, MODEL_SEQUENCE, FIRE_BREAKS, FIRE_LABELS,
    ensure_output_dir, print_config_summary
)

from .data_loading import (
    load_site_data,
    load_sample_data,
    assemble_analysis_table,
    load_analysis_data,
    quick_data_check,
    summarize_analysis_table
)

from .fire_strata import (
    fire_weight_lookup,
    compute_fire_weights,
    bin_fire_count
)

from .gam_models import (
    FittedGAM,
    fit_gam,
    fit_model_sequence,
    compare_models,
    select_model
)

from .prediction import (
    build_prediction_grid,
    predict_with_intervals,
    export_prediction_summaries
)

from .spatial_statistics import (
    spline_correlogram,
    compute_morans_i,
    correlogram_for_response
)

from .model_diagnostics import residual_diagnostics

from .visualization import (
    plot_prediction_curves,
    plot_model_comparison,
    plot_correlogram,
    setup_plot_style
)

from .main import (
    load_data,
    analyze_weights,
    analyze_response,
    run_full_analysis,
    quick_start
)
