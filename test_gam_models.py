"""
Tests for GAM fitting and AIC comparison.

Models are fitted with a short smoothing-parameter grid to keep runtime down.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from soil_fire_analysis.config import MODEL_SEQUENCE, EXTRA_MODELS, SCAT_MIN_DF, SCAT_MAX_DF
from soil_fire_analysis.gam_models import (
    resolve_spec, model_sequence_for, build_design, fit_gam, fit_model_sequence,
    compare_models, select_model, FittedGAM
)


# ============================================================================
# SPECS AND DESIGN
# ============================================================================

def test_resolve_spec_fills_defaults():
    spec = resolve_spec({'name': 'x', 'fire': 'linear'})
    assert spec['fire'] == 'linear'
    assert spec['random_effect'] is True
    assert spec['family'] == 'gaussian'


@pytest.mark.parametrize("bad", [
    {'colour': 'red'},
    {'fire': 'cubic'},
    {'family': 'poisson'},
    {'fire': 'linear', 'fire_by_harvest': True},
    {'fire_k': 3},
])
def test_resolve_spec_rejects_invalid(bad):
    with pytest.raises(ValueError):
        resolve_spec(bad)


def test_cn_ratio_sequence_has_scaled_t_model():
    names = [spec['name'] for spec in model_sequence_for('cn_ratio')]
    assert names[:len(MODEL_SEQUENCE)] == [spec['name'] for spec in MODEL_SEQUENCE]
    assert [spec['name'] for spec in EXTRA_MODELS['cn_ratio']] == names[len(MODEL_SEQUENCE):]
    assert len(model_sequence_for('carbontha')) == len(MODEL_SEQUENCE)


def test_design_uses_log_response(analysis_table):
    design = build_design(analysis_table, {'fire': 'linear'}, 'carbontha', 'log')
    np.testing.assert_allclose(design['y'], np.log(analysis_table['carbontha']))
    assert design['weights'] is None
    assert design['levels']['harvest'] == ['unharvested', 'harvested']


def test_design_with_depth_drops_missing_depth(analysis_table):
    design = build_design(analysis_table, {'depth': 'smooth'}, 'carbontha', 'log')
    assert len(design['y']) == analysis_table['soil_depth'].notna().sum()


def test_log_of_nonpositive_response_rejected(analysis_table):
    df = analysis_table.copy()
    df.loc[0, 'carbontha'] = 0.0
    with pytest.raises(ValueError, match="positive"):
        build_design(df, {}, 'carbontha', 'log')


def test_weighted_design_carries_fire_weights(analysis_table):
    design = build_design(analysis_table, {'weighted': True}, 'carbontha', 'log')
    per_count = pd.Series(design['weights']).groupby(design['data']['fires'].values).first()
    assert per_count.mean() == pytest.approx(1.0)


# ============================================================================
# FITTING
# ============================================================================

def test_sequence_returns_models_in_order(carbon_models):
    assert list(carbon_models) == ['null', 'fire_linear', 'fire_smooth_fixed']
    for model in carbon_models.values():
        assert isinstance(model, FittedGAM)
        assert np.isfinite(model.aic)
        assert model.transform == 'log'


def test_residuals_are_response_minus_fitted(carbon_models):
    model = carbon_models['fire_linear']
    np.testing.assert_allclose(model.residuals(), model.y - model.fitted_values())
    assert model.residuals(standardized=True).std() == pytest.approx(
        model.residuals().std() / np.sqrt(model.scale))


def test_coefficient_summary_lists_terms(carbon_models):
    table = carbon_models['fire_smooth_fixed'].coefficient_summary()
    terms = set(table['term'])

    assert {'s(fire)', 'harvest[harvested]', 'microsite[tree]', 're(site)'} <= terms
    assert table.loc[table['type'] == 'factor', 'std_error'].gt(0).all()


def test_summary_returns_fit_statistics(carbon_models):
    info = carbon_models['fire_linear'].summary(verbose=False)
    assert info['n_obs'] == carbon_models['fire_linear'].n_obs
    assert info['nu'] is None
    assert isinstance(info['terms'], pd.DataFrame)


def test_penalized_smooth_picks_from_grid(analysis_table, fast_lams):
    model = fit_gam(analysis_table, {'name': 'pen', 'fire_fixed_df': False}, 'carbontha',
                    lam_grid=fast_lams, verbose=False)
    assert model.lams['fire'] in fast_lams['fire']
    assert model.lams['re'] in fast_lams['re']


def test_by_harvest_smooth_has_one_curve_per_level(analysis_table, fast_lams):
    model = fit_gam(analysis_table, {'name': 'by', 'fire_by_harvest': True}, 'carbontha',
                    lam_grid=fast_lams, verbose=False)
    labels = [label for label, _, _ in model.term_info]
    assert 's(fire):unharvested' in labels
    assert 's(fire):harvested' in labels


def test_categorical_fire_term(analysis_table, fast_lams):
    model = fit_gam(analysis_table, {'name': 'cat', 'fire': 'categorical'}, 'tc',
                    lam_grid=fast_lams, verbose=False)
    terms = set(model.coefficient_summary()['term'])
    assert {'fire_class[2to3]', 'fire_class[4plus]'} <= terms


def test_scaled_t_family_estimates_df(analysis_table, fast_lams):
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        model = fit_gam(analysis_table, {'name': 'scat', 'family': 'scat'}, 'cn_ratio',
                        lam_grid=fast_lams, verbose=False)

    assert model.family == 'scat'
    assert SCAT_MIN_DF <= model.nu <= SCAT_MAX_DF
    assert np.isfinite(model.aic)
    assert model.aic == pytest.approx(-2 * model.loglik + 2 * (model.edof + 2))


def test_identity_transform(analysis_table, fast_lams):
    model = fit_gam(analysis_table, {'name': 'raw', 'fire': 'linear'}, 'tc', transform=None,
                    lam_grid=fast_lams, verbose=False)
    np.testing.assert_allclose(model.y, analysis_table['tc'])


# ============================================================================
# COMPARISON
# ============================================================================

def test_comparison_sorted_with_best_first(carbon_models):
    table = compare_models(carbon_models, verbose=False)

    assert table['delta_aic'].iloc[0] == 0
    assert table['verdict'].iloc[0] == 'best'
    assert table['aic'].is_monotonic_increasing
    assert (table['delta_aic'] >= 0).all()


def test_select_best_is_lowest_aic(carbon_models):
    best = select_model(carbon_models)
    assert best.aic == min(m.aic for m in carbon_models.values())
    assert select_model(carbon_models, 'null') is carbon_models['null']

    with pytest.raises(ValueError):
        select_model(carbon_models, 'missing')


def test_comparison_warns_on_different_rows(analysis_table, carbon_models, fast_lams):
    depth = fit_gam(analysis_table, {'name': 'depth', 'depth': 'linear'}, 'carbontha',
                    lam_grid=fast_lams, verbose=False)
    with pytest.warns(UserWarning, match="different numbers of rows"):
        compare_models([carbon_models['null'], depth], verbose=False)


def test_comparison_warns_on_different_responses(analysis_table, carbon_models, fast_lams):
    other = fit_gam(analysis_table, {'name': 'tc', 'fire': 'linear'}, 'tc',
                    lam_grid=fast_lams, verbose=False)
    with pytest.warns(UserWarning, match="not comparable"):
        compare_models([carbon_models['fire_linear'], other], verbose=False)


def test_weighted_fit_is_on_the_unweighted_likelihood_scale(analysis_table, carbon_models, fast_lams):
    weighted = fit_gam(analysis_table, {'name': 'fire_linear_weighted', 'fire': 'linear', 'weighted': True},
                       'carbontha', lam_grid=fast_lams, verbose=False)
    unweighted = carbon_models['fire_linear']

    assert weighted.prior_weights is not None
    assert np.isfinite(weighted.loglik) and np.isfinite(weighted.aic)
    # fire weights are rescaled to mean 1, so the log-likelihoods share a scale
    assert abs(weighted.aic - unweighted.aic) < 0.5 * abs(unweighted.aic) + 20

    with warnings.catch_warnings():
        warnings.simplefilter('error')
        table = compare_models([unweighted, weighted], verbose=False)
    assert set(table['weighted']) == {True, False}


def test_empty_comparison_rejected():
    with pytest.raises(ValueError):
        compare_models({})


def test_fit_model_sequence_defaults_to_configured_specs(analysis_table, fast_lams, monkeypatch):
    import soil_fire_analysis.gam_models as gam_models

    monkeypatch.setattr(gam_models, 'MODEL_SEQUENCE', [{'name': 'only', 'fire': 'linear'}])
    models = fit_model_sequence(analysis_table, 'nitrogentha', lam_grid=fast_lams, verbose=False)
    assert list(models) == ['only']
