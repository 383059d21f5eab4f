"""
End-to-end run of the pipeline on the synthetic landscape.
"""

import warnings

import pytest

from soil_fire_analysis.main import AnalysisTimer, analyze_response, run_full_analysis


@pytest.fixture
def input_files(tmp_path, site_table, sample_table):
    site_path = tmp_path / "site_data.csv"
    sample_path = tmp_path / "sample_means.csv"
    site_table.to_csv(site_path, index=False)
    sample_table.to_csv(sample_path, index=False)
    return site_path, sample_path


def test_timer_records_steps():
    timer = AnalysisTimer()
    timer.start("one")
    timer.stop()
    timer.start("two")
    timer.stop()

    summary = timer.summary()
    assert [s['step'] for s in summary['steps']] == ['one', 'two']
    assert summary['total'] >= 0


def test_analyze_response_without_correlograms(tmp_path, analysis_table, fast_lams):
    specs = [
        {'name': 'null', 'fire': None},
        {'name': 'fire_smooth_fixed', 'fire': 'smooth'},
        {'name': 'fire_smooth_depth', 'fire': 'smooth', 'depth': 'smooth'},
    ]
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        result = analyze_response(analysis_table, 'carbontha', specs=specs, lam_grid=fast_lams,
                                  run_correlograms=False, output_dir=tmp_path, verbose=False)

    assert result['selected'].name == 'fire_smooth_fixed'
    # the depth model is fitted to fewer rows and left out of the AIC table
    assert set(result['comparison']['model']) == {'null', 'fire_smooth_fixed'}
    assert set(result['models']) == {'null', 'fire_smooth_fixed', 'fire_smooth_depth'}
    assert result['correlograms'] == {}
    assert len(result['predictions']) > 0
    assert (tmp_path / "carbontha_predictions.png").exists()


def test_full_pipeline_writes_outputs(tmp_path, input_files, fast_lams):
    site_path, sample_path = input_files
    out = tmp_path / "outputs"

    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        results = run_full_analysis(site_path, sample_path, responses=['carbontha'],
                                    n_bootstrap=5, lam_grid=fast_lams,
                                    cache_dir=tmp_path / "cache", output_dir=out, verbose=False)

    assert set(results['responses']) == {'carbontha'}
    assert set(results['responses']['carbontha']['correlograms']) == {'raw', 'resid'}
    assert (out / "predictions_carbon.csv").exists()
    assert (out / "fire_weights.png").exists()
    assert (tmp_path / "cache" / "correlog_carbontha_resid.pkl").exists()
    assert results['report'].exists()
    assert "Soil C (Mg/ha)" in results['report'].read_text(encoding='utf-8')


def test_unfitted_prediction_model_falls_back_with_warning(tmp_path, analysis_table, fast_lams):
    specs = [
        {'name': 'null', 'fire': None},
        {'name': 'fire_linear', 'fire': 'linear'},
    ]
    with pytest.warns(UserWarning, match="'fire_smoth' was not fitted"):
        result = analyze_response(analysis_table, 'carbontha', specs=specs, lam_grid=fast_lams,
                                  model_name='fire_smoth', run_correlograms=False,
                                  output_dir=tmp_path, verbose=False)

    assert result['selected'].name == result['comparison']['model'].iloc[0]
