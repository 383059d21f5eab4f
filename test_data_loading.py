"""
Tests for loading and joining the site and sample tables.
"""

import numpy as np
import pandas as pd
import pytest

from soil_fire_analysis.data_loading import (
    load_table, load_site_data, load_sample_data, derive_soil_quantities,
    assemble_analysis_table, load_analysis_data, drop_missing, summarize_analysis_table
)


def test_stock_is_depth_times_density_times_concentration():
    df = pd.DataFrame({'depth': [20], 'bd': [1.1], 'tc': [3], 'tn': [0.15]})
    out = derive_soil_quantities(df)

    assert out['carbontha'].iloc[0] == pytest.approx(66.0)
    assert out['nitrogentha'].iloc[0] == pytest.approx(3.3)
    assert out['cn_ratio'].iloc[0] == pytest.approx(20.0)


def test_zero_nitrogen_gives_missing_ratio():
    df = pd.DataFrame({'depth': [10], 'bd': [1.0], 'tc': [2.0], 'tn': [0.0]})
    assert np.isnan(derive_soil_quantities(df)['cn_ratio'].iloc[0])


def test_join_keeps_only_known_plots(site_table, sample_table):
    extra = pd.DataFrame({'plot': ['GHOST'], 'tc': [2.0], 'tn': [0.1], 'bd': [1.0],
                          'depth': [10.0], 'soil_depth': [np.nan]})
    samples = pd.concat([sample_table, extra], ignore_index=True)

    table = assemble_analysis_table(site_table, samples, verbose=False)

    assert len(table) <= len(samples)
    assert set(table['plot']) <= set(site_table['plot'])
    assert 'GHOST' not in set(table['plot'])
    assert '_merge' not in table.columns


def test_join_allows_several_samples_per_plot(site_table, sample_table):
    samples = pd.concat([sample_table, sample_table.iloc[:3]], ignore_index=True)
    table = assemble_analysis_table(site_table, samples, verbose=False)
    assert len(table) == len(samples)


def test_join_carries_site_attributes_and_derived_columns(analysis_table, site_table):
    for column in ['site', 'fires', 'harvest', 'easting', 'northing', 'microsite',
                   'carbontha', 'nitrogentha', 'cn_ratio', 'fire_class']:
        assert column in analysis_table.columns
    assert len(analysis_table) == len(site_table)


def test_duplicate_plot_ids_rejected(site_table, sample_table):
    sites = pd.concat([site_table, site_table.iloc[:1]], ignore_index=True)
    with pytest.raises(pd.errors.MergeError):
        assemble_analysis_table(sites, sample_table, verbose=False)


def test_no_matching_plots_rejected(site_table, sample_table):
    samples = sample_table.assign(plot=lambda d: 'X' + d['plot'])
    with pytest.raises(ValueError):
        assemble_analysis_table(site_table, samples, verbose=False)


def test_load_from_files(tmp_path, site_table, sample_table):
    site_path = tmp_path / "sites.csv"
    sample_path = tmp_path / "samples.tsv"
    site_table.assign(harvest=site_table['harvest'].str.upper()).to_csv(site_path, index=False)
    sample_table.drop(columns=['soil_depth']).to_csv(sample_path, sep='\t', index=False)

    table = load_analysis_data(site_path, sample_path, verbose=False)

    assert len(table) == len(site_table)
    assert set(table['harvest']) == {'harvested', 'unharvested'}
    assert table['soil_depth'].isna().all()


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_table(tmp_path / "nope.csv")


def test_unsupported_suffix_raises(tmp_path):
    path = tmp_path / "table.xlsx"
    path.write_text("plot\n1\n")
    with pytest.raises(ValueError):
        load_table(path)


def test_missing_required_column_raises(tmp_path, site_table, sample_table):
    site_path = tmp_path / "sites.csv"
    site_table.drop(columns=['easting']).to_csv(site_path, index=False)
    with pytest.raises(ValueError, match="easting"):
        load_site_data(site_path, verbose=False)

    sample_path = tmp_path / "samples.csv"
    sample_table.drop(columns=['bd']).to_csv(sample_path, index=False)
    with pytest.raises(ValueError, match="bd"):
        load_sample_data(sample_path, verbose=False)


def test_drop_missing_filters_soil_depth(analysis_table):
    kept = drop_missing(analysis_table, 'soil_depth', verbose=False)
    assert kept['soil_depth'].notna().all()
    assert len(kept) == analysis_table['soil_depth'].notna().sum()


def test_summary_covers_every_group(analysis_table):
    summary = summarize_analysis_table(analysis_table, verbose=False)
    assert summary['n'].sum() == len(analysis_table)
    assert len(summary) == 4
