"""
Tests for population-level predictions and the exported tables.
"""

import numpy as np
import pandas as pd
import pytest

from soil_fire_analysis.gam_models import fit_gam
from soil_fire_analysis.prediction import (
    build_prediction_grid, back_transform_interval, predict_with_intervals,
    export_prediction_table, export_prediction_summaries
)


def test_bounds_are_back_transformed_separately():
    fit = np.array([0.0, 1.0, 2.5])
    se = np.array([0.1, 0.2, 0.05])
    pred, lower, upper = back_transform_interval(fit, se)

    np.testing.assert_allclose(pred, np.exp(fit))
    np.testing.assert_allclose(lower, np.exp(fit - 2 * se))
    np.testing.assert_allclose(upper, np.exp(fit + 2 * se))
    assert np.all(lower < pred) and np.all(pred < upper)
    # asymmetric on the response scale
    assert np.all(upper - pred > pred - lower)


def test_identity_back_transform_is_symmetric():
    pred, lower, upper = back_transform_interval(np.array([3.0]), np.array([0.5]), back_transform=None)
    assert pred[0] == 3.0
    assert lower[0] == pytest.approx(2.0)
    assert upper[0] == pytest.approx(4.0)


def test_zero_se_collapses_interval():
    pred, lower, upper = back_transform_interval(np.array([1.0]), np.array([0.0]))
    assert lower[0] == pred[0] == upper[0]


def test_grid_is_full_cartesian_product(analysis_table):
    grid = build_prediction_grid(analysis_table)

    n_fires = analysis_table['fires'].max() - analysis_table['fires'].min() + 1
    assert len(grid) == n_fires * 2 * 2
    assert (grid['re_switch'] == 0).all()
    assert grid['site'].nunique() == 1
    assert list(grid['fire_class'].astype(str).unique()) == ['0to1', '2to3', '4plus']


def test_grid_accepts_explicit_values(analysis_table):
    grid = build_prediction_grid(analysis_table, fire_values=[0, 5], harvest_levels=['harvested'],
                                 microsite_levels=['open', 'tree'], soil_depth_values=[10, 20])
    assert len(grid) == 2 * 1 * 2 * 2


def test_predictions_bracket_the_estimate(carbon_models):
    model = carbon_models['fire_smooth_fixed']
    predictions = predict_with_intervals(model, build_prediction_grid(model.data))

    assert (predictions['se'] > 0).all()
    assert (predictions['lower'] < predictions['prediction']).all()
    assert (predictions['prediction'] < predictions['upper']).all()
    np.testing.assert_allclose(predictions['prediction'], np.exp(predictions['fit']))


def test_placeholder_site_does_not_change_predictions(carbon_models):
    model = carbon_models['fire_smooth_fixed']
    sites = sorted(model.data['site'].unique())

    first = predict_with_intervals(model, build_prediction_grid(model.data, placeholder_site=sites[0]))
    last = predict_with_intervals(model, build_prediction_grid(model.data, placeholder_site=sites[-1]))

    np.testing.assert_allclose(first['fit'], last['fit'])
    np.testing.assert_allclose(first['se'], last['se'])


def test_switching_site_effect_on_changes_predictions(carbon_models):
    model = carbon_models['fire_linear']
    grid = build_prediction_grid(model.data)

    population, _ = model.predict_link(grid)
    site_level, _ = model.predict_link(grid, random_effect_switch=1)

    assert not np.allclose(population, site_level)


def test_unknown_level_in_grid_rejected(carbon_models):
    model = carbon_models['fire_linear']
    grid = build_prediction_grid(model.data, harvest_levels=['clearfelled'])
    with pytest.raises(ValueError, match="harvest"):
        predict_with_intervals(model, grid)


def test_exported_table_is_rounded(tmp_path, carbon_models):
    model = carbon_models['fire_linear']
    predictions = predict_with_intervals(model, build_prediction_grid(model.data))
    path = tmp_path / "out.csv"

    table = export_prediction_table(predictions, path, verbose=False)
    reread = pd.read_csv(path)

    assert list(reread.columns) == ['fires', 'harvest', 'microsite', 'soil_depth',
                                    'prediction', 'lower', 'upper']
    np.testing.assert_allclose(reread['prediction'], table['prediction'])
    np.testing.assert_allclose(table['prediction'], table['prediction'].round(2))


def test_summaries_written_per_response(tmp_path, analysis_table, carbon_models):
    exported = export_prediction_summaries(
        {'carbontha': carbon_models}, analysis_table, output_dir=tmp_path,
        model_names={'carbontha': 'fire_smooth_fixed'}, verbose=False,
    )

    assert list(exported) == ['carbontha']
    assert (tmp_path / "predictions_carbon.csv").exists()
    assert not (tmp_path / "predictions_nitrogen.csv").exists()


# ============================================================================
# GAPS IN THE FIRE CLASSES
# ============================================================================

def test_numeric_fire_model_predicts_across_missing_class(gapped_table, fast_lams):
    assert '2to3' not in set(gapped_table['fire_class'].astype(str))
    model = fit_gam(gapped_table, {'name': 'fire_linear', 'fire': 'linear'}, 'carbontha',
                    lam_grid=fast_lams, verbose=False)
    grid = build_prediction_grid(model.data)

    predictions = predict_with_intervals(model, grid)

    assert {2, 3} <= set(predictions['fires'])
    assert np.isfinite(predictions['prediction']).all()


def test_categorical_model_grid_keeps_observed_classes(gapped_table, fast_lams):
    model = fit_gam(gapped_table, {'name': 'cat', 'fire': 'categorical'}, 'carbontha',
                    lam_grid=fast_lams, verbose=False)
    grid = build_prediction_grid(model.data, observed_classes_only=model.uses_fire_class)

    assert set(grid['fire_class'].astype(str)) == {'0to1', '4plus'}
    assert not set(grid['fires']) & {2, 3}
    predictions = predict_with_intervals(model, grid)
    assert (predictions['lower'] < predictions['upper']).all()


def test_summaries_handle_categorical_model_with_missing_class(tmp_path, gapped_table, fast_lams):
    model = fit_gam(gapped_table, {'name': 'cat', 'fire': 'categorical'}, 'carbontha',
                    lam_grid=fast_lams, verbose=False)
    exported = export_prediction_summaries({'carbontha': {'cat': model}}, gapped_table,
                                           output_dir=tmp_path, model_names={'carbontha': 'cat'},
                                           verbose=False)

    assert not set(exported['carbontha']['fires']) & {2, 3}


def test_grid_levels_follow_configured_order(analysis_table):
    grid = build_prediction_grid(analysis_table)

    assert list(grid['harvest'].unique()) == ['unharvested', 'harvested']
    assert list(grid['microsite'].unique()) == ['open', 'tree']
