"""
Prediction Module
=================

Population-level predictions with approximate 95% intervals.

A prediction grid is the Cartesian product of fire count × harvest status ×
micro-site × soil depth. Every row carries a placeholder site (any site known
to the model) and re_switch = 0, which zeroes the site intercept so the
prediction describes an average site.

Intervals are built on the link / transform scale as fit ± 2 SE and each
bound is back-transformed on its own:

    prediction = g(f),  lower = g(f - 2s),  upper = g(f + 2s)

Under a nonlinear g (exp for log-scale models) the interval is asymmetric
around the prediction and no bias correction is applied.
"""

import itertools
from pathlib import Path

import numpy as np
import pandas as pd

try:
    from .config import (
        COLS, OUTPUT_DIR, PREDICTION_FILES, PREDICTION_MODELS, HARVEST_LEVELS, MICROSITE_LEVELS,
        PREDICTION_TABLE_SEP, INTERVAL_SE_MULTIPLIER, ensure_output_dir
    )
    from .fire_strata import bin_fire_count
    from .gam_models import TRANSFORMS, _ordered_levels, select_model
except ImportError:
    from config import (
        COLS, OUTPUT_DIR, PREDICTION_FILES, PREDICTION_MODELS, HARVEST_LEVELS, MICROSITE_LEVELS,
        PREDICTION_TABLE_SEP, INTERVAL_SE_MULTIPLIER, ensure_output_dir
    )
    from fire_strata import bin_fire_count
    from gam_models import TRANSFORMS, _ordered_levels, select_model


GRID_COLUMNS = [COLS['fires'], COLS['harvest'], COLS['microsite'], COLS['soil_depth']]


def build_prediction_grid(df, fire_values=None, harvest_levels=None,
                          microsite_levels=None, soil_depth_values=None,
                          placeholder_site=None, observed_classes_only=False):
    """
    Synthetic covariate combinations for population-level prediction.

    Parameters
    ----------
    df : DataFrame
        Analysis table (or a fitted model's data) used for defaults
    fire_values : array-like, optional
        Defaults to every integer from the minimum to the maximum fire count
    harvest_levels, microsite_levels : list, optional
        Default to the observed levels, in the configured level order
    soil_depth_values : array-like, optional
        Defaults to the median observed soil depth (0 if none observed)
    placeholder_site : optional
        Site value for the random-effect column; defaults to the first site
    observed_classes_only : bool
        Keep only fire counts whose fire class occurs in df. Needed for
        models with a categorical fire term, which know only those classes

    Returns
    -------
    DataFrame
        Grid columns, fire_class, site placeholder and re_switch = 0
    """
    fire_col = COLS['fires']

    if fire_values is None:
        fire_values = np.arange(int(np.floor(df[fire_col].min())), int(np.ceil(df[fire_col].max())) + 1)
    if observed_classes_only:
        observed = np.asarray(bin_fire_count(df[fire_col].dropna().values)).astype(str)
        fire_values = np.asarray(fire_values)
        classes = np.asarray(bin_fire_count(fire_values)).astype(str)
        fire_values = fire_values[np.isin(classes, observed)]
    if harvest_levels is None:
        harvest_levels = _ordered_levels(df[COLS['harvest']].dropna(), HARVEST_LEVELS)
    if microsite_levels is None:
        microsite_levels = _ordered_levels(df[COLS['microsite']].dropna(), MICROSITE_LEVELS)
    if soil_depth_values is None:
        depths = df[COLS['soil_depth']].dropna() if COLS['soil_depth'] in df.columns else pd.Series(dtype=float)
        soil_depth_values = [float(depths.median()) if len(depths) else 0.0]
    if placeholder_site is None:
        placeholder_site = sorted(df[COLS['site']].astype(str).unique())[0]

    grid = pd.DataFrame(
        list(itertools.product(fire_values, harvest_levels, microsite_levels, soil_depth_values)),
        columns=GRID_COLUMNS,
    )
    grid[COLS['fire_class']] = bin_fire_count(grid[fire_col].values)
    grid[COLS['site']] = placeholder_site
    grid['re_switch'] = 0

    return grid


def back_transform_interval(fit, se, back_transform=np.exp, multiplier=INTERVAL_SE_MULTIPLIER):
    """
    Point prediction and interval bounds from link-scale fit and SE.

    Examples
    --------
    >>> pred, lo, hi = back_transform_interval(np.array([1.0]), np.array([0.1]))
    >>> bool(lo[0] < pred[0] < hi[0])
    True
    """
    g = back_transform if back_transform is not None else (lambda x: x)
    fit = np.asarray(fit, dtype=float)
    se = np.asarray(se, dtype=float)
    return g(fit), g(fit - multiplier * se), g(fit + multiplier * se)


def predict_with_intervals(model, grid, back_transform='auto'):
    """
    Predict a fitted model over a grid.

    Parameters
    ----------
    model : FittedGAM
    grid : DataFrame
        From build_prediction_grid()
    back_transform : callable, None or 'auto'
        'auto' inverts the model's response transform (exp for log models);
        None keeps the link scale

    Returns
    -------
    DataFrame
        Grid plus fit, se (link scale), prediction, lower, upper
    """
    if isinstance(back_transform, str) and back_transform == 'auto':
        back_transform = TRANSFORMS[model.transform][1]

    fit, se = model.predict_link(grid)
    prediction, lower, upper = back_transform_interval(fit, se, back_transform)

    result = grid.copy()
    result['fit'] = fit
    result['se'] = se
    result['prediction'] = prediction
    result['lower'] = lower
    result['upper'] = upper
    return result


def export_prediction_table(predictions, path, sep=PREDICTION_TABLE_SEP, verbose=True):
    """
    Write grid columns with prediction and bounds, rounded to two decimals.

    Returns
    -------
    DataFrame
        The table as written
    """
    columns = [c for c in GRID_COLUMNS if c in predictions.columns] + ['prediction', 'lower', 'upper']
    table = predictions[columns].copy()
    table[['prediction', 'lower', 'upper']] = table[['prediction', 'lower', 'upper']].round(2)
    table[COLS['soil_depth']] = table[COLS['soil_depth']].round(2)

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, sep=sep, index=False)

    if verbose:
        print(f"Prediction table saved to: {path} ({len(table)} rows)")

    return table


def export_prediction_summaries(models_by_response, df, output_dir=None,
                                model_names=None, verbose=True):
    """
    Write the carbon, nitrogen and C:N prediction tables.

    Parameters
    ----------
    models_by_response : dict
        response -> {model name -> FittedGAM}
    df : DataFrame
        Analysis table; only used to report the row count
    output_dir : str, optional
    model_names : dict, optional
        response -> model name (or 'best'); defaults to PREDICTION_MODELS

    Returns
    -------
    dict
        response -> exported DataFrame
    """
    output_dir = output_dir or ensure_output_dir()
    model_names = model_names or PREDICTION_MODELS

    if verbose:
        print("\n" + "=" * 60)
        print(f"EXPORTING PREDICTION TABLES ({len(df)} analysis rows)")
        print("=" * 60)

    exported = {}
    for response, filename in PREDICTION_FILES.items():
        if response not in models_by_response:
            continue
        model = select_model(models_by_response[response], model_names.get(response, 'best'))
        grid = build_prediction_grid(model.data, observed_classes_only=model.uses_fire_class)
        predictions = predict_with_intervals(model, grid)
        if verbose:
            print(f"  {response}: model '{model.name}'")
        exported[response] = export_prediction_table(
            predictions, Path(output_dir) / filename, verbose=verbose
        )

    return exported
