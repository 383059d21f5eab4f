"""
C:N Ratio: Gaussian vs Scaled-t Family
======================================

This example fits the fire smooth for the C:N ratio twice, once with a
Gaussian family and once with the scaled-t family, and compares them by AIC.
The C:N ratio has a few plots with very high values; the t family gives them
less pull on the fitted curve.

Usage:
    python example_cn_ratio_families.py

Outputs:
    - cn_ratio_families.png (fitted curves for both families)
    - predictions_cn_ratio_gaussian.csv, predictions_cn_ratio_scat.csv
    - Console output with the AIC comparison and estimated t degrees of freedom
"""

import matplotlib.pyplot as plt

from soil_fire_analysis import (
    load_data,
    fit_gam,
    compare_models,
    build_prediction_grid,
    predict_with_intervals,
    ensure_output_dir
)
from soil_fire_analysis.model_diagnostics import residual_diagnostics
from soil_fire_analysis.prediction import export_prediction_table

print("\n" + "=" * 70)
print("C:N RATIO - GAUSSIAN VS SCALED-T")
print("=" * 70)

# Step 1: Load
print("\n[STEP 1/3] Loading analysis table...")
df = load_data(verbose=False)
print(f"  {len(df)} plots")

# Step 2: Fit both families
print("\n[STEP 2/3] Fitting models...")
models = {
    'gaussian': fit_gam(df, {'name': 'fire_smooth_gaussian', 'fire': 'smooth'}, 'cn_ratio', verbose=False),
    'scat': fit_gam(df, {'name': 'fire_smooth_scat', 'fire': 'smooth', 'family': 'scat'}, 'cn_ratio', verbose=False),
}
compare_models(models)
print(f"\n  Scaled-t degrees of freedom: {models['scat'].nu:.1f}")

for family, model in models.items():
    kurt = residual_diagnostics(model, verbose=False)['normality']['excess_kurtosis']
    print(f"  {family:<9} residual excess kurtosis: {kurt:.2f}")

# Step 3: Predictions
print("\n[STEP 3/3] Predictions...")
output_dir = ensure_output_dir()
fig, ax = plt.subplots(figsize=(10, 6))

for (family, model), color in zip(models.items(), ['steelblue', 'darkred']):
    grid = build_prediction_grid(model.data, harvest_levels=['unharvested'], microsite_levels=['open'])
    predictions = predict_with_intervals(model, grid)
    export_prediction_table(predictions, f"{output_dir}/predictions_cn_ratio_{family}.csv")

    ax.fill_between(predictions['fires'], predictions['lower'], predictions['upper'], color=color, alpha=0.2)
    ax.plot(predictions['fires'], predictions['prediction'], color=color, linewidth=2.5,
            label=f"{family} (AIC {model.aic:.1f})")

ax.set_xlabel('Number of fires', fontsize=14)
ax.set_ylabel('C:N ratio', fontsize=14)
ax.set_title('C:N ratio, unharvested open plots', fontsize=16, fontweight='bold')
ax.legend()
fig.savefig(f"{output_dir}/cn_ratio_families.png", dpi=300, bbox_inches='tight')
print(f"\nFigure saved to: {output_dir}/cn_ratio_families.png")

print("\n" + "=" * 70)
print("DONE")
print("=" * 70)
