"""
Visualization Module for the Soil C/N Fire Analysis
====================================================

This module provides publication-quality plotting functions for:
- The fire-count distribution and its weights
- Raw responses against fire count
- Fitted curves with interval ribbons per harvest status × micro-site
- AIC comparison of the model sequence
- Residual diagnostics
- Spatial correlograms

All plots are designed for publication quality with customizable styling.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
from scipy import stats

# Handle imports for both package and direct execution
try:
    from .config import (
        PLOT_STYLE, PLOT_PARAMS, COLS, RESPONSES,
        HARVEST_COLORS, MICROSITE_LINESTYLES
    )
except ImportError:
    from config import (
        PLOT_STYLE, PLOT_PARAMS, COLS, RESPONSES,
        HARVEST_COLORS, MICROSITE_LINESTYLES
    )


# ============================================================================
# PLOT SETUP
# ============================================================================

def setup_plot_style():
    """Apply publication-quality plot settings."""
    try:
        plt.style.use(PLOT_STYLE)
    except OSError:
        sns.set_theme(style='whitegrid')
    plt.rcParams.update(PLOT_PARAMS)


def _save(fig, save_path):
    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Figure saved to: {save_path}")


def _response_label(response):
    return RESPONSES[response]['label'] if response in RESPONSES else response


# ============================================================================
# DATA OVERVIEW
# ============================================================================

def plot_fire_distribution(lookup, figsize=(10, 5), save_path=None):
    """
    Plots per fire count with the derived weights on a second axis.

    Parameters
    ----------
    lookup : DataFrame
        Output from fire_weight_lookup()

    Returns
    -------
    tuple
        (fig, ax)
    """
    setup_plot_style()
    fig, ax = plt.subplots(figsize=figsize)

    ax.bar(lookup['fires'], lookup['n'], width=0.7, color='steelblue',
           edgecolor='navy', alpha=0.8, label='Plots')
    ax.set_xlabel('Number of fires', fontsize=14)
    ax.set_ylabel('Number of observations', fontsize=14)
    ax.set_xticks(lookup['fires'])

    ax2 = ax.twinx()
    ax2.plot(lookup['fires'], lookup['weight'], 'o-', color='darkred', linewidth=2, label='Weight')
    ax2.axhline(1.0, color='darkred', linestyle=':', alpha=0.6)
    ax2.set_ylabel('Scaled weight', fontsize=14, color='darkred')
    ax2.grid(False)

    ax.set_title('Fire-count distribution and observation weights', fontsize=16, fontweight='bold')
    plt.tight_layout()
    _save(fig, save_path)

    return fig, ax


def plot_response_by_fire(df, response, log_scale=True, figsize=(12, 5), save_path=None):
    """
    Raw response against fire count, one panel per micro-site.

    Returns
    -------
    tuple
        (fig, axes)
    """
    setup_plot_style()
    column = RESPONSES[response]['column'] if response in RESPONSES else response
    microsites = sorted(df[COLS['microsite']].dropna().unique())

    fig, axes = plt.subplots(1, len(microsites), figsize=figsize, sharey=True, squeeze=False)
    axes = axes[0]

    for ax, microsite in zip(axes, microsites):
        subset = df[df[COLS['microsite']] == microsite]
        sns.stripplot(
            data=subset, x=COLS['fires'], y=column, hue=COLS['harvest'],
            palette=HARVEST_COLORS, dodge=True, alpha=0.7, size=6, ax=ax,
            native_scale=True,
        )
        ax.set_title(f'Micro-site: {microsite}', fontsize=14)
        ax.set_xlabel('Number of fires', fontsize=12)
        if log_scale:
            ax.set_yscale('log')

    axes[0].set_ylabel(_response_label(response), fontsize=12)
    plt.tight_layout()
    _save(fig, save_path)

    return fig, axes


# ============================================================================
# PREDICTIONS
# ============================================================================

def plot_prediction_curves(predictions, response, data=None, figsize=(12, 5), save_path=None):
    """
    Fitted mean and interval ribbon against fire count.

    One panel per micro-site, one line per harvest status. If data is
    given the observations are overlaid.

    Parameters
    ----------
    predictions : DataFrame
        Output from predict_with_intervals()
    response : str
    data : DataFrame, optional
        Observations (e.g. model.data)

    Returns
    -------
    tuple
        (fig, axes)
    """
    setup_plot_style()
    column = RESPONSES[response]['column'] if response in RESPONSES else response
    microsites = list(pd.unique(predictions[COLS['microsite']]))

    fig, axes = plt.subplots(1, len(microsites), figsize=figsize, sharey=True, squeeze=False)
    axes = axes[0]

    for ax, microsite in zip(axes, microsites):
        panel = predictions[predictions[COLS['microsite']] == microsite]
        for harvest, curve in panel.groupby(COLS['harvest'], sort=False):
            curve = curve.sort_values(COLS['fires'])
            color = HARVEST_COLORS.get(harvest, None)
            ax.fill_between(curve[COLS['fires']], curve['lower'], curve['upper'],
                            color=color, alpha=0.2)
            ax.plot(curve[COLS['fires']], curve['prediction'], color=color,
                    linestyle=MICROSITE_LINESTYLES.get(microsite, '-'), linewidth=2.5,
                    label=harvest)

            if data is not None:
                obs = data[(data[COLS['microsite']] == microsite) & (data[COLS['harvest']] == harvest)]
                ax.scatter(obs[COLS['fires']], obs[column], color=color, alpha=0.5, s=20,
                           edgecolor='none')

        ax.set_title(f'Micro-site: {microsite}', fontsize=14)
        ax.set_xlabel('Number of fires', fontsize=12)
        ax.legend(title='Harvest', fontsize=10)

    axes[0].set_ylabel(_response_label(response), fontsize=12)
    fig.suptitle(f'{_response_label(response)}: fitted mean ± 2 SE', fontsize=16, fontweight='bold')
    plt.tight_layout()
    _save(fig, save_path)

    return fig, axes


# ============================================================================
# MODEL COMPARISON
# ============================================================================

def plot_model_comparison(comparison, figsize=(10, 6), save_path=None):
    """
    ΔAIC bar chart from compare_models().

    Returns
    -------
    tuple
        (fig, ax)
    """
    setup_plot_style()
    fig, ax = plt.subplots(figsize=figsize)

    table = comparison.sort_values('delta_aic', ascending=False)
    colors = ['#1b7837' if d <= 2 else '#fdb863' if d <= 10 else '#b2182b'
              for d in table['delta_aic']]

    ax.barh(table['model'], table['delta_aic'], color=colors, edgecolor='black', alpha=0.85)
    ax.axvline(2, color='gray', linestyle='--', alpha=0.7)
    ax.axvline(10, color='gray', linestyle=':', alpha=0.7)
    ax.set_xlabel('ΔAIC (relative to best model)', fontsize=14)
    ax.set_title(f"Model comparison: {', '.join(comparison['response'].unique())}",
                 fontsize=16, fontweight='bold')

    for y, (delta, aic) in enumerate(zip(table['delta_aic'], table['aic'])):
        ax.annotate(f'AIC {aic:.1f}', xy=(delta, y), xytext=(4, 0), textcoords='offset points',
                    va='center', fontsize=9)

    plt.tight_layout()
    _save(fig, save_path)

    return fig, ax


# ============================================================================
# DIAGNOSTICS
# ============================================================================

def plot_residual_diagnostics(model, figsize=(12, 10), save_path=None):
    """
    Four-panel residual check: residuals vs fitted, normal QQ,
    scale-location and residuals vs fire count.

    Returns
    -------
    tuple
        (fig, axes)
    """
    setup_plot_style()
    fitted = model.fitted_values()
    residuals = model.residuals()
    standardized = model.residuals(standardized=True)
    fires = model.data[COLS['fires']].to_numpy(dtype=float)

    fig, axes = plt.subplots(2, 2, figsize=figsize)

    ax = axes[0, 0]
    ax.scatter(fitted, residuals, alpha=0.6, color='steelblue', edgecolor='none')
    ax.axhline(0, color='black', linewidth=1)
    sns.regplot(x=fitted, y=residuals, scatter=False, lowess=True, color='darkred', ax=ax)
    ax.set_xlabel('Fitted value', fontsize=12)
    ax.set_ylabel('Residual', fontsize=12)
    ax.set_title('A) Residuals vs fitted', fontsize=14, fontweight='bold')

    ax = axes[0, 1]
    stats.probplot(standardized, dist='norm', plot=ax)
    ax.set_title('B) Normal QQ', fontsize=14, fontweight='bold')

    ax = axes[1, 0]
    ax.scatter(fitted, np.sqrt(np.abs(standardized)), alpha=0.6, color='steelblue', edgecolor='none')
    ax.set_xlabel('Fitted value', fontsize=12)
    ax.set_ylabel('√|standardized residual|', fontsize=12)
    ax.set_title('C) Scale-location', fontsize=14, fontweight='bold')

    ax = axes[1, 1]
    ax.scatter(fires, residuals, alpha=0.6, color='steelblue', edgecolor='none')
    ax.axhline(0, color='black', linewidth=1)
    ax.set_xlabel('Number of fires', fontsize=12)
    ax.set_ylabel('Residual', fontsize=12)
    ax.set_title('D) Residuals vs fire count', fontsize=14, fontweight='bold')

    fig.suptitle(f'Residual diagnostics: {model.name} ({model.response})', fontsize=16, fontweight='bold')
    plt.tight_layout()
    _save(fig, save_path)

    return fig, axes


def plot_correlogram(result, title=None, figsize=(10, 6), save_path=None):
    """
    Smooth correlogram with bootstrap envelope and distance-class means.

    Parameters
    ----------
    result : dict
        Output from spline_correlogram()

    Returns
    -------
    tuple
        (fig, ax)
    """
    setup_plot_style()
    fig, ax = plt.subplots(figsize=figsize)

    ax.fill_between(result['distance'], result['lower'], result['upper'],
                    color='gray', alpha=0.3, label='95% bootstrap envelope')
    ax.plot(result['distance'], result['correlation'], color='black', linewidth=2.5,
            label='Spline correlogram')

    filled = result['class_n_pairs'] > 0
    ax.scatter(result['class_centers'][filled], result['class_correlation'][filled],
               s=20 + 80 * result['class_n_pairs'][filled] / result['class_n_pairs'].max(),
               color='darkred', alpha=0.7, zorder=3, label='Distance-class mean')

    ax.axhline(0, color='black', linestyle='--', linewidth=1)
    ax.set_xlabel('Distance', fontsize=14)
    ax.set_ylabel("Correlation (Moran's I)", fontsize=14)
    ax.set_ylim(-1, 1)
    if title is None:
        variant = 'residuals' if result.get('variant') == 'resid' else 'raw values'
        title = f"Correlogram: {result.get('response', '')} {variant}"
    ax.set_title(title, fontsize=16, fontweight='bold')
    ax.legend(fontsize=10)

    plt.tight_layout()
    _save(fig, save_path)

    return fig, ax
