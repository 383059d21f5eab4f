"""
Shared fixtures: a small synthetic landscape of sites and plots.

Twelve sites on a 4 x 3 grid (1 km apart), six plots per site within a few
tens of metres of the site centre. Fire count and harvest status are site
properties; micro-site alternates between plots. Soil C rises gently with
fire count and carries a site intercept.
"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from soil_fire_analysis.data_loading import assemble_analysis_table

N_SITES = 12
PLOTS_PER_SITE = 6
FAST_LAMS = {'fire': [0.1, 10.0], 'depth': [1.0], 're': [1.0]}


def make_site_table(seed=0):
    rng = np.random.default_rng(seed)
    rows = []
    site_fires = [0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 6, 6]
    for k in range(N_SITES):
        cx, cy = 1000.0 * (k % 4), 1000.0 * (k // 4)
        harvest = 'harvested' if k % 2 else 'unharvested'
        for p in range(PLOTS_PER_SITE):
            rows.append({
                'plot': f"S{k:02d}P{p}",
                'site': f"S{k:02d}",
                'fires': site_fires[k],
                'harvest': harvest,
                'easting': cx + rng.uniform(-20, 20),
                'northing': cy + rng.uniform(-20, 20),
                'microsite': 'tree' if p % 2 else 'open',
            })
    return pd.DataFrame(rows)


def make_sample_table(sites, seed=1):
    rng = np.random.default_rng(seed)
    site_effect = dict(zip(sorted(sites['site'].unique()), rng.normal(0, 0.15, N_SITES)))

    log_tc = (
        1.0
        + 0.08 * sites['fires'].to_numpy()
        - 0.10 * (sites['harvest'] == 'harvested').to_numpy()
        + 0.05 * (sites['microsite'] == 'tree').to_numpy()
        + sites['site'].map(site_effect).to_numpy()
        + rng.normal(0, 0.1, len(sites))
    )
    tc = np.exp(log_tc)
    cn = 20.0 + 1.5 * sites['fires'].to_numpy() + rng.standard_t(4, len(sites))
    soil_depth = rng.uniform(5, 30, len(sites))
    soil_depth[::9] = np.nan

    return pd.DataFrame({
        'plot': sites['plot'].to_numpy(),
        'tc': tc,
        'tn': tc / cn,
        'bd': rng.uniform(0.8, 1.3, len(sites)),
        'depth': 10.0,
        'soil_depth': soil_depth,
    })


@pytest.fixture(scope="session")
def site_table():
    return make_site_table()


@pytest.fixture(scope="session")
def sample_table(site_table):
    return make_sample_table(site_table)


@pytest.fixture(scope="session")
def analysis_table(site_table, sample_table):
    return assemble_analysis_table(site_table, sample_table, verbose=False)


@pytest.fixture(scope="session")
def fast_lams():
    return dict(FAST_LAMS)


@pytest.fixture(scope="session")
def carbon_models(analysis_table):
    from soil_fire_analysis.gam_models import fit_model_sequence

    specs = [
        {'name': 'null', 'fire': None},
        {'name': 'fire_linear', 'fire': 'linear'},
        {'name': 'fire_smooth_fixed', 'fire': 'smooth', 'fire_fixed_df': True},
    ]
    return fit_model_sequence(analysis_table, 'carbontha', specs=specs,
                              lam_grid=FAST_LAMS, verbose=False)


@pytest.fixture(scope="session")
def gapped_table():
    """Landscape with no site burnt two or three times (no '2to3' class)."""
    sites = make_site_table()
    sites['fires'] = sites['fires'].replace({2: 1, 3: 4})
    return assemble_analysis_table(sites, make_sample_table(sites), verbose=False)
