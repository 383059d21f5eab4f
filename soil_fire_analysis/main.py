"""
Soil C/N Fire Analysis - Main Orchestration Script
===================================================

This script provides the main entry point for running the analysis. It can be
run directly or individual functions can be called interactively in
Spyder/IPython.

Usage:
    # Run full analysis
    python -m soil_fire_analysis.main --full

    # Or import and run specific analyses:
    from soil_fire_analysis.main import *
    df = load_data()
    carbon = analyze_response(df, 'carbontha')

Questions:
    Q1: Does soil C (concentration and stock) change with fire frequency?
    Q2: Does soil N stock change with fire frequency?
    Q3: Does the C:N ratio shift with fire frequency?
    Q4: Do logging history and micro-site modify these responses?
    Q5: Do residuals retain spatial structure beyond the site effect?
"""

import sys
import time
import warnings
from pathlib import Path
from contextlib import contextmanager
from datetime import timedelta

# Add module directory to path if running directly
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent))

import matplotlib.pyplot as plt


# ============================================================================
# RUNTIME TRACKING
# ============================================================================

class AnalysisTimer:
    """
    Track runtime for analysis steps with formatted output.

    Usage:
        timer = AnalysisTimer()
        timer.start("Loading data")
        # ... do work ...
        timer.stop()
        timer.summary()
    """

    def __init__(self):
        self.steps = []
        self.current_step = None
        self.start_time = None
        self.overall_start = None

    def start(self, step_name):
        """Start timing a new step."""
        if self.overall_start is None:
            self.overall_start = time.time()

        self.current_step = step_name
        self.start_time = time.time()

    def stop(self):
        """Stop timing current step and record."""
        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time
        self.steps.append({
            'step': self.current_step,
            'duration': elapsed,
        })
        self.start_time = None
        self.current_step = None
        return elapsed

    def elapsed_str(self, seconds):
        """Format seconds as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            return f"{seconds/60:.1f}min"
        else:
            return str(timedelta(seconds=int(seconds)))

    def summary(self):
        """Print summary of all step timings."""
        if not self.steps:
            print("\nNo timing data recorded.")
            return

        total = sum(s['duration'] for s in self.steps)
        overall = time.time() - self.overall_start if self.overall_start else total

        print("\n" + "=" * 60)
        print("RUNTIME SUMMARY")
        print("=" * 60)
        print(f"{'Step':<40} {'Duration':>15}")
        print("-" * 60)

        for step in self.steps:
            duration_str = self.elapsed_str(step['duration'])
            pct = (step['duration'] / total) * 100 if total > 0 else 0
            print(f"{step['step']:<40} {duration_str:>10} ({pct:>4.1f}%)")

        print("-" * 60)
        print(f"{'Total (all steps)':<40} {self.elapsed_str(total):>15}")
        print(f"{'Overall runtime':<40} {self.elapsed_str(overall):>15}")
        print("=" * 60)

        return {
            'steps': self.steps.copy(),
            'total': total,
            'overall': overall,
        }


@contextmanager
def timed_step(timer, step_name):
    """Context manager for timing analysis steps."""
    timer.start(step_name)
    try:
        yield
    finally:
        elapsed = timer.stop()
        if elapsed:
            print(f"  [DONE] {step_name} completed in {timer.elapsed_str(elapsed)}")


def print_step_header(step_num, total_steps, title):
    """Print a formatted step header with progress."""
    bar_width = 30
    pct = step_num / total_steps
    filled = int(bar_width * pct)
    bar = "█" * filled + "░" * (bar_width - filled)

    print(f"\n[{bar}] Step {step_num}/{total_steps}")
    print("-" * 60)
    print(f"  {title}")
    print("-" * 60)


# Import project modules - handle both package and direct execution
try:
    from .config import (
        COLS, RESPONSES, OUTPUT_DIR, PREDICTION_MODELS, PREDICTION_FILES,
        USE_CACHED_CORRELOGRAMS, CORRELOGRAM_N_BOOTSTRAP,
        ensure_output_dir, print_config_summary
    )
    from .data_loading import load_analysis_data, summarize_analysis_table, quick_data_check
    from .fire_strata import fire_weight_lookup, print_weight_summary
    from .gam_models import fit_model_sequence, compare_models, select_model
    from .prediction import build_prediction_grid, predict_with_intervals, export_prediction_summaries
    from .spatial_statistics import correlogram_for_response, compute_morans_i
    from .model_diagnostics import residual_diagnostics
    from .visualization import (
        plot_fire_distribution, plot_response_by_fire, plot_prediction_curves,
        plot_model_comparison, plot_residual_diagnostics, plot_correlogram
    )
    from .report import write_html_report
except ImportError:
    from config import (
        COLS, RESPONSES, OUTPUT_DIR, PREDICTION_MODELS, PREDICTION_FILES,
        USE_CACHED_CORRELOGRAMS, CORRELOGRAM_N_BOOTSTRAP,
        ensure_output_dir, print_config_summary
    )
    from data_loading import load_analysis_data, summarize_analysis_table, quick_data_check
    from fire_strata import fire_weight_lookup, print_weight_summary
    from gam_models import fit_model_sequence, compare_models, select_model
    from prediction import build_prediction_grid, predict_with_intervals, export_prediction_summaries
    from spatial_statistics import correlogram_for_response, compute_morans_i
    from model_diagnostics import residual_diagnostics
    from visualization import (
        plot_fire_distribution, plot_response_by_fire, plot_prediction_curves,
        plot_model_comparison, plot_residual_diagnostics, plot_correlogram
    )
    from report import write_html_report


# ============================================================================
# DATA
# ============================================================================

def load_data(site_path=None, sample_path=None, verbose=True):
    """
    Load and assemble the analysis table.

    Returns
    -------
    DataFrame
    """
    df = load_analysis_data(site_path, sample_path, verbose=verbose)
    if verbose:
        summarize_analysis_table(df)
    return df


def analyze_weights(df, output_dir=None, save_figures=True, verbose=True):
    """
    Fire-count weight lookup and its figure.

    Returns
    -------
    dict
        'lookup', 'figure' (path or None)
    """
    output_dir = output_dir or ensure_output_dir()
    lookup = fire_weight_lookup(df[COLS['fires']].values)
    if verbose:
        print_weight_summary(lookup)

    figure = None
    if save_figures:
        figure = Path(output_dir) / "fire_weights.png"
        fig, _ = plot_fire_distribution(lookup, save_path=figure)
        plt.close(fig)

    return {'lookup': lookup, 'figure': figure}


# ============================================================================
# PER-RESPONSE ANALYSIS
# ============================================================================

def analyze_response(df, response, specs=None, lam_grid=None, model_name=None,
                     run_correlograms=True, use_cache=USE_CACHED_CORRELOGRAMS,
                     n_bootstrap=CORRELOGRAM_N_BOOTSTRAP, cache_dir=None, output_dir=None,
                     save_figures=True, verbose=True):
    """
    Fit, compare, predict and diagnose one response.

    Parameters
    ----------
    df : DataFrame
        Analysis table
    response : str
        Key in config.RESPONSES
    specs : list of dict, optional
        Model specs; defaults to the configured sequence for the response
    lam_grid : dict, optional
        Smoothing-parameter grid overrides (see fit_gam)
    model_name : str, optional
        Model used for predictions and diagnostics; defaults to
        PREDICTION_MODELS[response] or the lowest-AIC model
    run_correlograms : bool
    use_cache : bool
        Reload pickled correlograms when present
    n_bootstrap : int
    cache_dir : str, optional
        Correlogram cache folder; defaults to config.CACHE_DIR
    output_dir : str, optional
    save_figures : bool
    verbose : bool

    Returns
    -------
    dict
        'models', 'comparison', 'selected', 'predictions', 'diagnostics',
        'morans_i', 'correlograms', 'figures'
    """
    output_dir = output_dir or ensure_output_dir()
    figures = {}

    models = fit_model_sequence(df, response, specs=specs, lam_grid=lam_grid, verbose=verbose)

    # AIC only compares models fitted to the same rows
    n_full = max(m.n_obs for m in models.values())
    comparable = {name: m for name, m in models.items() if m.n_obs == n_full}
    comparison = compare_models(comparable, verbose=verbose)

    model_name = model_name or PREDICTION_MODELS.get(response, 'best')
    if model_name != 'best' and model_name not in models:
        message = (f"Prediction model '{model_name}' was not fitted for {response}; "
                   f"using the lowest-AIC model instead")
        warnings.warn(message)
        if verbose:
            print(f"  ⚠ {message}")
        model_name = 'best'
    selected = select_model(comparable if model_name == 'best' else models, model_name)
    if verbose:
        print(f"\nSelected model for {response}: {selected.name}")
        selected.summary()

    grid = build_prediction_grid(selected.data, observed_classes_only=selected.uses_fire_class)
    predictions = predict_with_intervals(selected, grid)
    diagnostics = residual_diagnostics(selected, verbose=verbose)

    coords = selected.data[[COLS['easting'], COLS['northing']]].to_numpy(dtype=float)
    morans = compute_morans_i(selected.residuals(), coords, verbose=verbose)

    correlograms = {}
    if run_correlograms:
        correlograms['raw'] = correlogram_for_response(
            df, response, use_cache=use_cache, cache_dir=cache_dir, n_bootstrap=n_bootstrap,
            verbose=verbose
        )
        correlograms['resid'] = correlogram_for_response(
            df, response, model=selected, use_cache=use_cache, cache_dir=cache_dir,
            n_bootstrap=n_bootstrap, verbose=verbose
        )

    if save_figures:
        prefix = Path(output_dir) / response

        figures['raw'] = f"{prefix}_by_fire.png"
        fig, _ = plot_response_by_fire(df, response, save_path=figures['raw'])
        plt.close(fig)

        figures['comparison'] = f"{prefix}_model_comparison.png"
        fig, _ = plot_model_comparison(comparison, save_path=figures['comparison'])
        plt.close(fig)

        figures['predictions'] = f"{prefix}_predictions.png"
        fig, _ = plot_prediction_curves(predictions, response, data=selected.data,
                                        save_path=figures['predictions'])
        plt.close(fig)

        figures['residuals'] = f"{prefix}_residuals.png"
        fig, _ = plot_residual_diagnostics(selected, save_path=figures['residuals'])
        plt.close(fig)

        for variant, result in correlograms.items():
            figures[f'correlogram_{variant}'] = f"{prefix}_correlogram_{variant}.png"
            fig, _ = plot_correlogram(result, save_path=figures[f'correlogram_{variant}'])
            plt.close(fig)

    return {
        'models': models,
        'comparison': comparison,
        'selected': selected,
        'predictions': predictions,
        'diagnostics': diagnostics,
        'morans_i': morans,
        'correlograms': correlograms,
        'figures': figures,
    }


# ============================================================================
# FULL PIPELINE
# ============================================================================

def _report_sections(df, weights, results, exported):
    sections = [(
        "Data",
        [f"{len(df)} plots from {df[COLS['site']].nunique()} sites; "
         f"fire counts {int(df[COLS['fires']].min())} to {int(df[COLS['fires']].max())}.",
         summarize_analysis_table(df, verbose=False).round(2)],
    ), (
        "Fire-count weights",
        [weights['lookup']] + ([weights['figure']] if weights['figure'] else []),
    )]

    for response, result in results.items():
        selected = result['selected']
        diag = result['diagnostics']
        items = [
            result['comparison'][['model', 'family', 'n_obs', 'edof', 'aic', 'delta_aic', 'verdict']],
            f"Selected model: {selected.name} (AIC {selected.aic:.2f}).",
            selected.coefficient_summary(),
            f"Breusch-Pagan p = {diag['heteroscedasticity']['p_value']:.4f}; "
            f"Shapiro-Wilk p = {diag['normality']['p_value']:.4f}; "
            f"Moran's I of residuals = {result['morans_i']['I']:.3f} (p = {result['morans_i']['p_value']:.4f}).",
        ]
        items.extend(result['figures'].values())
        sections.append((RESPONSES[response]['label'], items))

    if exported:
        sections.append((
            "Prediction tables",
            [f"{PREDICTION_FILES[r]}: {len(t)} rows" for r, t in exported.items()],
        ))

    return sections


def run_full_analysis(site_path=None, sample_path=None, responses=None,
                      use_cache=USE_CACHED_CORRELOGRAMS, n_bootstrap=CORRELOGRAM_N_BOOTSTRAP,
                      lam_grid=None, cache_dir=None, output_dir=None, verbose=True):
    """
    Run the complete pipeline: load, weight, fit, predict, diagnose, export.

    Returns
    -------
    dict
        'data', 'weights', 'responses' (per-response results),
        'predictions' (exported tables), 'report', 'timing'
    """
    timer = AnalysisTimer()
    output_dir = output_dir or ensure_output_dir()
    responses = responses or list(RESPONSES.keys())
    total_steps = len(responses) + 3

    print("\n" + "=" * 60)
    print("SOIL C/N FIRE ANALYSIS - FULL PIPELINE")
    print("=" * 60)

    print_step_header(1, total_steps, "Loading and assembling data")
    with timed_step(timer, "Load data"):
        df = load_data(site_path, sample_path, verbose=verbose)

    print_step_header(2, total_steps, "Fire-count weights")
    with timed_step(timer, "Weights"):
        weights = analyze_weights(df, output_dir=output_dir, verbose=verbose)

    results = {}
    for i, response in enumerate(responses, start=3):
        print_step_header(i, total_steps, f"Response: {RESPONSES[response]['label']}")
        with timed_step(timer, f"Analyze {response}"):
            results[response] = analyze_response(
                df, response, lam_grid=lam_grid, use_cache=use_cache,
                n_bootstrap=n_bootstrap, cache_dir=cache_dir, output_dir=output_dir,
                verbose=verbose
            )

    print_step_header(total_steps, total_steps, "Prediction tables and report")
    with timed_step(timer, "Export"):
        models_by_response = {r: res['models'] for r, res in results.items()}
        exported = export_prediction_summaries(models_by_response, df, output_dir=output_dir,
                                               verbose=verbose)
        report = write_html_report(
            _report_sections(df, weights, results, exported),
            path=Path(output_dir) / "analysis_report.html",
        )

    timing = timer.summary()

    return {
        'data': df,
        'weights': weights,
        'responses': results,
        'predictions': exported,
        'report': report,
        'timing': timing,
    }


def quick_start():
    """
    Quick start guide for interactive use.
    """
    print(f"""
SOIL C/N FIRE ANALYSIS - Quick Start Guide
==========================================

1. Check data availability:
   >>> quick_data_check()

2. Load the analysis table:
   >>> df = load_data()

3. Analyze one response:
   >>> carbon = analyze_response(df, 'carbontha')
   >>> carbon['comparison']                 # AIC table
   >>> carbon['selected'].summary()         # term table
   >>> carbon['predictions']                # fitted curve with ±2 SE bounds

4. Run the full pipeline:
   >>> results = run_full_analysis()
   >>> run_full_analysis(use_cache=False)   # recompute correlograms

Responses: {', '.join(RESPONSES)}

Outputs (in {OUTPUT_DIR}):
- Figures per response (raw data, model comparison, predictions, residuals,
  correlograms)
- {', '.join(PREDICTION_FILES.values())}
- analysis_report.html
- cache/correlog_*.pkl (bootstrap correlograms)
""")


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Soil C/N Fire Analysis')
    parser.add_argument('--check', action='store_true',
                        help='Check data availability only')
    parser.add_argument('--config', action='store_true',
                        help='Print the configuration summary')
    parser.add_argument('--full', action='store_true',
                        help='Run full analysis pipeline')
    parser.add_argument('--response', choices=list(RESPONSES.keys()),
                        help='Analyze a single response')
    parser.add_argument('--recompute-correlograms', action='store_true',
                        help='Ignore cached correlograms')
    parser.add_argument('--bootstrap', type=int, default=CORRELOGRAM_N_BOOTSTRAP,
                        help=f'Bootstrap resamples for correlograms (default: {CORRELOGRAM_N_BOOTSTRAP})')

    args = parser.parse_args()
    use_cache = USE_CACHED_CORRELOGRAMS and not args.recompute_correlograms

    if args.check:
        quick_data_check()
    elif args.config:
        print_config_summary()
    elif args.full:
        run_full_analysis(use_cache=use_cache, n_bootstrap=args.bootstrap)
    elif args.response:
        df = load_data()
        analyze_response(df, args.response, use_cache=use_cache, n_bootstrap=args.bootstrap)
    else:
        quick_start()
