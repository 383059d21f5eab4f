"""
Model Diagnostics Module

Residual checks for the fitted GAMs.

**Scientific Problem:**
The Gaussian models on the log scale assume residuals with no leftover
trend, constant variance and roughly normal tails. Violations show up as:
- Trend against fitted values or fire count (a term is mis-specified)
- Variance growing with the fitted value (heteroscedasticity)
- Heavy tails (the motivation for the scaled-t family on the C:N ratio)

**Solution:**
1. Regress residuals on fitted values and on each covariate
2. Breusch-Pagan test against the fitted values
3. Shapiro-Wilk, skewness and excess kurtosis of standardized residuals
"""

from typing import Any, Dict

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats
from statsmodels.stats.diagnostic import het_breuschpagan

try:
    from .config import COLS
except ImportError:
    from config import COLS


def check_residual_trend(residuals, covariate, name='fitted'):
    """
    Linear trend of residuals against a covariate.

    Returns
    -------
    dict
        'covariate', 'slope', 'r_squared', 'p_value', 'trend' (p < 0.05)
    """
    residuals = np.asarray(residuals, dtype=float)
    covariate = np.asarray(covariate, dtype=float)
    valid = np.isfinite(residuals) & np.isfinite(covariate)

    if valid.sum() < 3 or np.ptp(covariate[valid]) == 0:
        return {'covariate': name, 'slope': np.nan, 'r_squared': np.nan,
                'p_value': np.nan, 'trend': False}

    fit = stats.linregress(covariate[valid], residuals[valid])
    return {
        'covariate': name,
        'slope': float(fit.slope),
        'r_squared': float(fit.rvalue ** 2),
        'p_value': float(fit.pvalue),
        'trend': bool(fit.pvalue < 0.05),
    }


def check_heteroscedasticity(residuals, fitted):
    """
    Breusch-Pagan test of residual variance against fitted values.

    Returns
    -------
    dict
        'lm_statistic', 'p_value', 'heteroscedastic' (p < 0.05)
    """
    residuals = np.asarray(residuals, dtype=float)
    exog = sm.add_constant(np.asarray(fitted, dtype=float), has_constant='add')
    lm, lm_pvalue, _, _ = het_breuschpagan(residuals, exog)
    return {
        'lm_statistic': float(lm),
        'p_value': float(lm_pvalue),
        'heteroscedastic': bool(lm_pvalue < 0.05),
    }


def check_residual_normality(residuals):
    """
    Tail behaviour of (standardized) residuals.

    Returns
    -------
    dict
        'shapiro_w', 'p_value', 'skewness', 'excess_kurtosis', 'heavy_tailed'
    """
    residuals = np.asarray(residuals, dtype=float)
    residuals = residuals[np.isfinite(residuals)]

    if len(residuals) < 3:
        return {'shapiro_w': np.nan, 'p_value': np.nan, 'skewness': np.nan,
                'excess_kurtosis': np.nan, 'heavy_tailed': False}

    w, p = stats.shapiro(residuals)
    kurt = float(stats.kurtosis(residuals))
    return {
        'shapiro_w': float(w),
        'p_value': float(p),
        'skewness': float(stats.skew(residuals)),
        'excess_kurtosis': kurt,
        'heavy_tailed': bool(p < 0.05 and kurt > 1.0),
    }


def residual_diagnostics(model, verbose: bool = True) -> Dict[str, Any]:
    """
    Run all residual checks on a fitted model.

    Parameters
    ----------
    model : FittedGAM
    verbose : bool

    Returns
    -------
    dict
        'trend' (DataFrame, one row per covariate), 'heteroscedasticity',
        'normality', 'n_obs'
    """
    residuals = model.residuals()
    fitted = model.fitted_values()
    data = model.data

    trends = [check_residual_trend(residuals, fitted, 'fitted')]
    trends.append(check_residual_trend(residuals, data[COLS['fires']], COLS['fires']))
    depth = data[COLS['soil_depth']] if COLS['soil_depth'] in data.columns else None
    if depth is not None and depth.notna().sum() >= 3:
        trends.append(check_residual_trend(residuals, depth, COLS['soil_depth']))

    results = {
        'model': model.name,
        'n_obs': model.n_obs,
        'trend': pd.DataFrame(trends),
        'heteroscedasticity': check_heteroscedasticity(residuals, fitted),
        'normality': check_residual_normality(model.residuals(standardized=True)),
    }

    if verbose:
        print("\n" + "=" * 60)
        print(f"RESIDUAL DIAGNOSTICS: {model.name} ({model.response})")
        print("=" * 60)
        print("\nResidual trend:")
        for row in trends:
            flag = "  ⚠ trend" if row['trend'] else ""
            print(f"  vs {row['covariate']:<12}: slope = {row['slope']:>9.4f}, p = {row['p_value']:.4f}{flag}")
        het = results['heteroscedasticity']
        print(f"\nBreusch-Pagan: LM = {het['lm_statistic']:.3f}, p = {het['p_value']:.4f}")
        if het['heteroscedastic']:
            print("  ⚠ Residual variance changes with the fitted value")
        norm = results['normality']
        print(f"\nShapiro-Wilk: W = {norm['shapiro_w']:.4f}, p = {norm['p_value']:.4f}")
        print(f"Skewness = {norm['skewness']:.3f}, excess kurtosis = {norm['excess_kurtosis']:.3f}")
        if norm['heavy_tailed']:
            print("  ⚠ Heavy residual tails; consider the scaled-t family")

    return results
