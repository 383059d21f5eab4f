"""
GAM Fitting Module
==================

Fits the sequence of additive models relating a soil response (total C,
C and N stocks, C:N ratio; usually log-transformed) to fire count, harvest
status, micro-site type, soil depth and a random intercept per site.

Fitting is delegated to pygam (penalised B-spline GAMs):

- Smooth terms use a P-spline basis with `fire_k` basis functions. A
  "fixed df" smooth is left (almost) unpenalised so its flexibility is set by
  the basis dimension alone. A penalised smooth has its smoothing parameter
  chosen by AIC over a grid; the second-derivative penalty shrinks it toward
  a straight line.
- The random intercept per site is a site factor with an identity (l2)
  penalty, i.e. a ridge-shrunk intercept per site. Its penalty is searched
  on the same grid.
- Family 'gaussian' is a normal model on the transformed scale. Family
  'scat' (scaled t) refits the same terms by EM with Student-t observation
  weights (nu + 1) / (nu + r²/σ²), re-estimating nu by maximum likelihood.

Model comparison uses AIC only: lower is preferred, and differences are
labelled qualitatively (on par / less supported / clearly worse).
"""

import itertools
import operator
import warnings
from functools import reduce

import numpy as np
import pandas as pd
from pygam import LinearGAM, f, l, s
from scipy import optimize, stats

try:
    from .config import (
        COLS, RESPONSES, DEFAULT_MODEL_SPEC, MODEL_SEQUENCE, EXTRA_MODELS,
        HARVEST_LEVELS, MICROSITE_LEVELS, FIRE_LABELS,
        FIXED_DF_LAM, FIXED_EFFECT_LAM, SMOOTH_LAM_GRID, RANDOM_EFFECT_LAM_GRID,
        SCAT_MIN_DF, SCAT_MAX_DF, SCAT_MAX_ITER, SCAT_TOL, GAM_MAX_ITER,
        AIC_ON_PAR, AIC_LESS_SUPPORTED, get_response_config
    )
    from .fire_strata import bin_fire_count, compute_fire_weights
except ImportError:
    from config import (
        COLS, RESPONSES, DEFAULT_MODEL_SPEC, MODEL_SEQUENCE, EXTRA_MODELS,
        HARVEST_LEVELS, MICROSITE_LEVELS, FIRE_LABELS,
        FIXED_DF_LAM, FIXED_EFFECT_LAM, SMOOTH_LAM_GRID, RANDOM_EFFECT_LAM_GRID,
        SCAT_MIN_DF, SCAT_MAX_DF, SCAT_MAX_ITER, SCAT_TOL, GAM_MAX_ITER,
        AIC_ON_PAR, AIC_LESS_SUPPORTED, get_response_config
    )
    from fire_strata import bin_fire_count, compute_fire_weights


# Column layout of the numeric feature matrix handed to pygam. Harvest
# indicator columns for by-harvest smooths follow from N_BASE_FEATURES on.
FEATURES = ['fire', 'harvest', 'microsite', 'soil_depth', 'site', 'fire_class']
FEATURE_INDEX = {name: i for i, name in enumerate(FEATURES)}
N_BASE_FEATURES = len(FEATURES)

TRANSFORMS = {
    None: (lambda x: x, lambda x: x),
    'log': (np.log, np.exp),
}

FAMILIES = ('gaussian', 'scat')


# ============================================================================
# MODEL SPECIFICATION
# ============================================================================

def resolve_spec(spec):
    """Fill a partial model spec with DEFAULT_MODEL_SPEC and validate it."""
    unknown = set(spec) - set(DEFAULT_MODEL_SPEC)
    if unknown:
        raise ValueError(f"Unknown model spec keys: {sorted(unknown)}")

    full = dict(DEFAULT_MODEL_SPEC)
    full.update(spec)

    if full['fire'] not in (None, 'smooth', 'linear', 'categorical'):
        raise ValueError(f"Unknown fire term: {full['fire']}")
    if full['depth'] not in (None, 'smooth', 'linear'):
        raise ValueError(f"Unknown depth term: {full['depth']}")
    if full['family'] not in FAMILIES:
        raise ValueError(f"Unknown family: {full['family']}. Available: {list(FAMILIES)}")
    if full['fire_by_harvest'] and full['fire'] != 'smooth':
        raise ValueError("fire_by_harvest requires a smooth fire term")
    if full['fire'] == 'smooth' and full['fire_k'] < 4:
        raise ValueError("fire_k must be at least 4 for a cubic spline basis")

    return full


def model_sequence_for(response):
    """Configured model specs for a response (common sequence + extras)."""
    return [dict(spec) for spec in MODEL_SEQUENCE] + [dict(spec) for spec in EXTRA_MODELS.get(response, [])]


# ============================================================================
# DESIGN
# ============================================================================

def _ordered_levels(values, preferred=()):
    """Observed levels, in the preferred order first, then sorted."""
    observed = pd.unique(pd.Series(values).astype(str))
    ordered = [level for level in preferred if level in set(observed)]
    rest = sorted(level for level in observed if level not in ordered)
    return ordered + rest


def _codes(values, levels, name):
    """Integer codes of values against a level list."""
    lookup = {level: i for i, level in enumerate(levels)}
    values = pd.Series(values).astype(str)
    unknown = sorted(set(values) - set(lookup))
    if unknown:
        raise ValueError(f"Unknown {name} level(s) {unknown}. Known: {levels}")
    return values.map(lookup).to_numpy(dtype=float)


def encode_features(frame, levels, uses_depth=True, uses_fire_class=True):
    """
    Build the numeric feature matrix for pygam.

    Parameters
    ----------
    frame : DataFrame
        Analysis table or prediction grid
    levels : dict
        Level lists for 'harvest', 'microsite', 'site', 'fire_class'
    uses_depth : bool
        If False the soil depth column is filled with zeros
    uses_fire_class : bool
        If False the fire class column is filled with zeros, so fire counts
        from classes absent in the training data can still be encoded

    Returns
    -------
    ndarray (n, N_BASE_FEATURES + n_harvest_levels)
    """
    n = len(frame)
    fire = frame[COLS['fires']].to_numpy(dtype=float)

    if not uses_fire_class:
        fire_class_codes = np.zeros(n)
    elif COLS['fire_class'] in frame.columns:
        fire_class_codes = _codes(frame[COLS['fire_class']], levels['fire_class'], 'fire class')
    else:
        fire_class_codes = _codes(bin_fire_count(fire), levels['fire_class'], 'fire class')

    harvest = _codes(frame[COLS['harvest']], levels['harvest'], 'harvest')
    columns = [
        fire,
        harvest,
        _codes(frame[COLS['microsite']], levels['microsite'], 'microsite'),
        frame[COLS['soil_depth']].to_numpy(dtype=float) if uses_depth else np.zeros(n),
        _codes(frame[COLS['site']], levels['site'], 'site'),
        fire_class_codes,
    ]
    for j in range(len(levels['harvest'])):
        columns.append((harvest == j).astype(float))

    return np.column_stack(columns)


def build_design(df, spec, response, transform='log'):
    """
    Encode the analysis table for one model.

    Rows missing the response or any predictor used by the spec are dropped
    (soil depth rows are only dropped when the spec has a depth term).

    Returns
    -------
    dict
        'data' (filtered DataFrame), 'X', 'y' (transformed response),
        'weights' (or None), 'levels'
    """
    spec = resolve_spec(spec)
    response_col = get_response_config(response)['column'] if response in RESPONSES else response
    if response_col not in df.columns:
        raise ValueError(f"Response column '{response_col}' not found. Available: {list(df.columns)}")
    if transform not in TRANSFORMS:
        raise ValueError(f"Unknown transform: {transform}. Available: {list(TRANSFORMS)}")

    used = [COLS['fires'], COLS['harvest'], COLS['microsite'], COLS['site'], response_col]
    uses_depth = spec['depth'] is not None
    if uses_depth:
        used.append(COLS['soil_depth'])

    data = df.dropna(subset=used).reset_index(drop=True)
    if len(data) == 0:
        raise ValueError(f"No complete rows for response '{response_col}' with columns {used}")

    if COLS['fire_class'] not in data.columns:
        data[COLS['fire_class']] = bin_fire_count(data[COLS['fires']].values)

    y_raw = data[response_col].to_numpy(dtype=float)
    if transform == 'log' and np.any(y_raw <= 0):
        raise ValueError(
            f"Log transform needs a positive response; '{response_col}' has {int(np.sum(y_raw <= 0))} values <= 0"
        )
    forward, _ = TRANSFORMS[transform]
    y = forward(y_raw)

    levels = {
        'harvest': _ordered_levels(data[COLS['harvest']], HARVEST_LEVELS),
        'microsite': _ordered_levels(data[COLS['microsite']], MICROSITE_LEVELS),
        'site': _ordered_levels(data[COLS['site']]),
        'fire_class': _ordered_levels(data[COLS['fire_class']].astype(str), FIRE_LABELS),
    }

    X = encode_features(data, levels, uses_depth=uses_depth,
                        uses_fire_class=spec['fire'] == 'categorical')
    weights = compute_fire_weights(data[COLS['fires']].values) if spec['weighted'] else None

    return {
        'data': data,
        'X': X,
        'y': y,
        'weights': weights,
        'levels': levels,
        'response_col': response_col,
    }


# ============================================================================
# TERMS
# ============================================================================

def _penalty_groups(spec, levels):
    """Names of the term groups whose smoothing parameter is searched."""
    groups = []
    if spec['fire'] == 'smooth' and not spec['fire_fixed_df']:
        groups.append('fire')
    if spec['depth'] == 'smooth' and not spec['depth_fixed_df']:
        groups.append('depth')
    if spec['random_effect'] and len(levels['site']) > 1:
        groups.append('re')
    return groups


def _build_terms(spec, levels, lams):
    """
    pygam terms for a spec.

    Returns
    -------
    terms : list of pygam terms
    term_info : list of (label, kind, variable) aligned to terms
    """
    terms = []
    term_info = []

    fire = FEATURE_INDEX['fire']
    if spec['fire'] == 'linear':
        terms.append(l(fire, lam=FIXED_EFFECT_LAM))
        term_info.append(('fire', 'linear', 'fire'))
    elif spec['fire'] == 'categorical':
        terms.append(f(FEATURE_INDEX['fire_class'], lam=FIXED_EFFECT_LAM, penalties='l2'))
        term_info.append(('fire_class', 'factor', 'fire_class'))
    elif spec['fire'] == 'smooth':
        lam = FIXED_DF_LAM if spec['fire_fixed_df'] else lams['fire']
        if spec['fire_by_harvest']:
            for j, level in enumerate(levels['harvest']):
                terms.append(s(fire, n_splines=spec['fire_k'], lam=lam, by=N_BASE_FEATURES + j))
                term_info.append((f's(fire):{level}', 'smooth', 'fire'))
        else:
            terms.append(s(fire, n_splines=spec['fire_k'], lam=lam))
            term_info.append(('s(fire)', 'smooth', 'fire'))

    if spec['harvest'] and len(levels['harvest']) > 1:
        terms.append(f(FEATURE_INDEX['harvest'], lam=FIXED_EFFECT_LAM, penalties='l2'))
        term_info.append(('harvest', 'factor', 'harvest'))

    if spec['microsite'] and len(levels['microsite']) > 1:
        terms.append(f(FEATURE_INDEX['microsite'], lam=FIXED_EFFECT_LAM, penalties='l2'))
        term_info.append(('microsite', 'factor', 'microsite'))

    depth = FEATURE_INDEX['soil_depth']
    if spec['depth'] == 'linear':
        terms.append(l(depth, lam=FIXED_EFFECT_LAM))
        term_info.append(('soil_depth', 'linear', 'soil_depth'))
    elif spec['depth'] == 'smooth':
        lam = FIXED_DF_LAM if spec['depth_fixed_df'] else lams['depth']
        terms.append(s(depth, n_splines=spec['depth_k'], lam=lam))
        term_info.append(('s(soil_depth)', 'smooth', 'soil_depth'))

    if spec['random_effect'] and len(levels['site']) > 1:
        terms.append(f(FEATURE_INDEX['site'], lam=lams['re'], penalties='l2'))
        term_info.append(('re(site)', 'random', 'site'))

    if not terms:
        raise ValueError("Model spec produces no terms")

    return terms, term_info


def _fit_linear_gam(terms, X, y, weights):
    gam = LinearGAM(reduce(operator.add, terms), max_iter=GAM_MAX_ITER)
    return gam.fit(X, y, weights=weights)


# ============================================================================
# SCALED-T FAMILY
# ============================================================================

def _t_loglik(residuals, nu, sigma, weights):
    return float(np.sum(weights * stats.t.logpdf(residuals, df=nu, scale=sigma)))


def _estimate_t_df(residuals, sigma, weights):
    """Maximum-likelihood degrees of freedom for fixed residuals and scale."""
    result = optimize.minimize_scalar(
        lambda nu: -_t_loglik(residuals, nu, sigma, weights),
        bounds=(SCAT_MIN_DF, SCAT_MAX_DF),
        method='bounded',
    )
    return float(result.x)


def _fit_scaled_t(gam, X, y, base_weights, verbose=False):
    """
    Refit a Gaussian GAM as a scaled-t model by EM.

    Returns
    -------
    dict
        'gam', 'nu', 'sigma', 'loglik', 'weights' (final working weights),
        'n_iter', 'converged'
    """
    residuals = y - gam.predict(X)
    sigma2 = np.sum(base_weights * residuals ** 2) / np.sum(base_weights)
    nu = _estimate_t_df(residuals, np.sqrt(sigma2), base_weights)
    loglik_prev = _t_loglik(residuals, nu, np.sqrt(sigma2), base_weights)

    converged = False
    working = base_weights
    for iteration in range(1, SCAT_MAX_ITER + 1):
        u = (nu + 1.0) / (nu + residuals ** 2 / sigma2)
        working = base_weights * u
        gam.fit(X, y, weights=working)

        residuals = y - gam.predict(X)
        sigma2 = np.sum(working * residuals ** 2) / np.sum(base_weights)
        nu = _estimate_t_df(residuals, np.sqrt(sigma2), base_weights)
        loglik = _t_loglik(residuals, nu, np.sqrt(sigma2), base_weights)

        if verbose:
            print(f"    EM {iteration:>2}: nu = {nu:6.2f}, sigma = {np.sqrt(sigma2):.4f}, loglik = {loglik:.3f}")

        if abs(loglik - loglik_prev) < SCAT_TOL * (abs(loglik) + 1.0):
            converged = True
            break
        loglik_prev = loglik

    if not converged:
        warnings.warn(f"Scaled-t EM did not converge in {SCAT_MAX_ITER} iterations")

    return {
        'gam': gam,
        'nu': nu,
        'sigma': float(np.sqrt(sigma2)),
        'loglik': loglik,
        'weights': working,
        'n_iter': iteration,
        'converged': converged,
    }


# ============================================================================
# FITTED MODEL
# ============================================================================

def _signif_stars(p):
    if p is None or not np.isfinite(p):
        return ''
    if p < 0.001:
        return '***'
    if p < 0.01:
        return '**'
    if p < 0.05:
        return '*'
    if p < 0.1:
        return '.'
    return ''


class FittedGAM:
    """
    Result of fit_gam().

    Holds the pygam model with the encoding needed to query it; use the
    methods rather than the pygam object directly.
    """

    def __init__(self, name, spec, response, transform, gam, design, term_info,
                 lams, family_fit=None):
        self.name = name
        self.spec = spec
        self.response = response
        self.response_col = design['response_col']
        self.transform = transform
        self.gam = gam
        self.data = design['data']
        self.X = design['X']
        self.y = design['y']
        self.levels = design['levels']
        self.prior_weights = design['weights']
        self.term_info = term_info
        self.lams = lams
        self.family = spec['family']
        self.n_obs = len(self.y)
        self.edof = float(gam.statistics_['edof'])

        if family_fit is None:
            self.nu = None
            self.em_converged = None
            self.scale = float(gam.statistics_['scale'])
            self.loglik = float(gam.statistics_['loglikelihood'])
            self.aic = float(gam.statistics_['AIC'])
        else:
            self.nu = family_fit['nu']
            self.scale = family_fit['sigma'] ** 2
            self.loglik = family_fit['loglik']
            # scale and degrees of freedom are estimated on top of the edof
            self.aic = -2.0 * self.loglik + 2.0 * (self.edof + 2.0)
            self.em_converged = family_fit['converged']

    def __repr__(self):
        return (f"FittedGAM(name='{self.name}', response='{self.response}', "
                f"family='{self.family}', n={self.n_obs}, AIC={self.aic:.2f})")

    @property
    def uses_depth(self):
        return self.spec['depth'] is not None

    @property
    def uses_fire_class(self):
        return self.spec['fire'] == 'categorical'

    def _term_indices(self, label):
        for i, (term_label, _, _) in enumerate(self.term_info):
            if term_label == label:
                return i
        return None

    def fitted_values(self):
        """Fitted values on the transformed scale, site effects included."""
        return self.gam.predict(self.X)

    def residuals(self, standardized=False):
        """
        Residuals on the transformed scale.

        Standardized residuals are divided by the estimated scale (and
        multiplied by the square root of the prior weights, if any).
        """
        raw = self.y - self.fitted_values()
        if not standardized:
            return raw
        weights = self.prior_weights if self.prior_weights is not None else np.ones_like(raw)
        return raw * np.sqrt(weights) / np.sqrt(self.scale)

    def model_matrix(self, frame):
        """pygam model matrix for new covariate rows."""
        X = encode_features(frame, self.levels, uses_depth=self.uses_depth,
                            uses_fire_class=self.uses_fire_class)
        return self.gam._modelmat(X).toarray()

    def predict_link(self, frame, random_effect_switch=None):
        """
        Predictions and standard errors on the link / transform scale.

        Parameters
        ----------
        frame : DataFrame
            Covariate rows; must hold a site value known to the model (a
            placeholder is fine when the random effect is switched off)
        random_effect_switch : array-like or scalar, optional
            1 keeps the site intercept, 0 drops it (population-level
            prediction). Defaults to frame['re_switch'] if present, else 0.

        Returns
        -------
        (fit, se) : tuple of ndarray
        """
        M = self.model_matrix(frame)

        if random_effect_switch is None:
            random_effect_switch = frame['re_switch'].to_numpy() if 're_switch' in frame.columns else 0
        switch = np.broadcast_to(np.asarray(random_effect_switch, dtype=float), (len(frame),))

        re_index = self._term_indices('re(site)')
        if re_index is not None:
            cols = self.gam.terms.get_coef_indices(re_index)
            M[:, cols] = M[:, cols] * switch[:, np.newaxis]

        coef = self.gam.coef_
        cov = self.gam.statistics_['cov']
        fit = M @ coef
        se = np.sqrt(np.maximum(np.sum((M @ cov) * M, axis=1), 0.0))
        return fit, se

    def coefficient_summary(self):
        """
        Term table.

        Parametric terms (linear and factor contrasts against the first
        level) report estimate, standard error, z and p. Smooth and random
        terms report effective degrees of freedom and pygam's p-value.

        Returns
        -------
        DataFrame
        """
        coef = self.gam.coef_
        cov = self.gam.statistics_['cov']
        p_values = self.gam.statistics_.get('p_values', [])
        edof_per_coef = self.gam.statistics_.get('edof_per_coef')

        rows = []
        for i, (label, kind, variable) in enumerate(self.term_info):
            idx = np.asarray(self.gam.terms.get_coef_indices(i))

            if kind == 'linear':
                est = coef[idx[0]]
                se = np.sqrt(cov[idx[0], idx[0]])
                z = est / se if se > 0 else np.nan
                p = 2 * stats.norm.sf(abs(z))
                rows.append({'term': label, 'type': kind, 'estimate': est, 'std_error': se,
                             'statistic': z, 'p_value': p, 'edof': 1.0})

            elif kind == 'factor':
                levels = self.levels[variable]
                for j in range(1, len(levels)):
                    contrast = np.zeros(len(coef))
                    contrast[idx[j]] = 1.0
                    contrast[idx[0]] = -1.0
                    est = contrast @ coef
                    se = np.sqrt(max(contrast @ cov @ contrast, 0.0))
                    z = est / se if se > 0 else np.nan
                    p = 2 * stats.norm.sf(abs(z))
                    rows.append({'term': f'{label}[{levels[j]}]', 'type': kind, 'estimate': est,
                                 'std_error': se, 'statistic': z, 'p_value': p, 'edof': 1.0})

            else:
                edof = float(np.sum(np.asarray(edof_per_coef)[idx])) if edof_per_coef is not None else np.nan
                p = float(p_values[i]) if i < len(p_values) else np.nan
                rows.append({'term': label, 'type': kind, 'estimate': np.nan, 'std_error': np.nan,
                             'statistic': np.nan, 'p_value': p, 'edof': edof})

        table = pd.DataFrame(rows, columns=['term', 'type', 'estimate', 'std_error',
                                            'statistic', 'p_value', 'edof'])
        table['signif'] = [_signif_stars(p) for p in table['p_value']]
        return table

    def summary(self, verbose=True):
        """Fit statistics and the coefficient table."""
        table = self.coefficient_summary()
        info = {
            'name': self.name,
            'response': self.response,
            'transform': self.transform,
            'family': self.family,
            'n_obs': self.n_obs,
            'edof': self.edof,
            'loglik': self.loglik,
            'aic': self.aic,
            'scale': self.scale,
            'nu': self.nu,
            'em_converged': self.em_converged,
            'lams': dict(self.lams),
            'terms': table,
        }

        if verbose:
            print("\n" + "=" * 70)
            print(f"GAM: {self.name}  ({self.response}, {self.transform or 'identity'} scale, {self.family})")
            print("=" * 70)
            print(f"n = {self.n_obs}   edof = {self.edof:.2f}   logLik = {self.loglik:.2f}   AIC = {self.aic:.2f}")
            if self.nu is not None:
                print(f"Scaled t: nu = {self.nu:.2f}, sigma = {np.sqrt(self.scale):.4f}")
            if self.lams:
                lam_str = ", ".join(f"{k}={v:.3g}" for k, v in self.lams.items())
                print(f"Smoothing parameters: {lam_str}")
            print()
            print(table.round(4).to_string(index=False))
            print("---\nSignif. codes: 0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1")

        return info


# ============================================================================
# FITTING
# ============================================================================

def fit_gam(df, spec, response, transform='default', lam_grid=None, verbose=True):
    """
    Fit one model spec to the analysis table.

    Parameters
    ----------
    df : DataFrame
        Analysis table from load_analysis_data()
    spec : dict
        Partial model spec (see config.DEFAULT_MODEL_SPEC)
    response : str
        Key in config.RESPONSES or a column name
    transform : str or None, optional
        'log', None (identity) or 'default': the response's configured transform
        (or 'log' for a bare column name)
    lam_grid : dict, optional
        Override candidate smoothing parameters per group:
        {'fire': [...], 'depth': [...], 're': [...]}
    verbose : bool

    Returns
    -------
    FittedGAM
    """
    spec = resolve_spec(spec)
    if transform == 'default':
        transform = RESPONSES[response]['transform'] if response in RESPONSES else 'log'

    design = build_design(df, spec, response, transform)
    groups = _penalty_groups(spec, design['levels'])

    grids = {
        'fire': list(SMOOTH_LAM_GRID),
        'depth': list(SMOOTH_LAM_GRID),
        're': list(RANDOM_EFFECT_LAM_GRID),
    }
    if lam_grid:
        grids.update({k: list(v) for k, v in lam_grid.items()})

    if verbose:
        n_candidates = int(np.prod([len(grids[g]) for g in groups])) if groups else 1
        print(f"\nFitting {spec['name']} for {response} (n = {len(design['y'])}, "
              f"{n_candidates} smoothing candidate(s))")

    best = None
    for combo in itertools.product(*[grids[g] for g in groups]):
        lams = dict(zip(groups, combo))
        terms, term_info = _build_terms(spec, design['levels'], lams)
        gam = _fit_linear_gam(terms, design['X'], design['y'], design['weights'])
        aic = gam.statistics_['AIC']
        if best is None or aic < best[0]:
            best = (aic, gam, term_info, lams)

    _, gam, term_info, lams = best

    family_fit = None
    if spec['family'] == 'scat':
        base_weights = design['weights'] if design['weights'] is not None else np.ones(len(design['y']))
        family_fit = _fit_scaled_t(gam, design['X'], design['y'], base_weights, verbose=verbose)
        gam = family_fit['gam']

    model = FittedGAM(spec['name'], spec, response, transform, gam, design, term_info, lams, family_fit)

    if verbose:
        print(f"  AIC = {model.aic:.2f}, edof = {model.edof:.2f}")

    return model


def fit_model_sequence(df, response, specs=None, lam_grid=None, verbose=True):
    """
    Fit every model in the configured sequence for one response.

    Returns
    -------
    dict
        name -> FittedGAM, in fitting order
    """
    specs = specs if specs is not None else model_sequence_for(response)

    if verbose:
        print("\n" + "=" * 70)
        print(f"MODEL SEQUENCE: {response} ({len(specs)} models)")
        print("=" * 70)

    models = {}
    for spec in specs:
        model = fit_gam(df, spec, response, lam_grid=lam_grid, verbose=verbose)
        models[model.name] = model

    return models


# ============================================================================
# COMPARISON
# ============================================================================

def _aic_verdict(delta):
    if delta == 0:
        return 'best'
    if delta <= AIC_ON_PAR:
        return 'on par'
    if delta <= AIC_LESS_SUPPORTED:
        return 'less supported'
    return 'clearly worse'


def compare_models(models, verbose=True):
    """
    AIC comparison table.

    Parameters
    ----------
    models : dict or list of FittedGAM

    Returns
    -------
    DataFrame
        Sorted by AIC with delta_aic and a qualitative verdict
    """
    if isinstance(models, dict):
        models = list(models.values())
    if not models:
        raise ValueError("No models to compare")

    table = pd.DataFrame([{
        'model': m.name,
        'response': m.response,
        'transform': m.transform or 'identity',
        'family': m.family,
        'weighted': m.prior_weights is not None,
        'n_obs': m.n_obs,
        'edof': m.edof,
        'loglik': m.loglik,
        'aic': m.aic,
    } for m in models])

    if table['response'].nunique() > 1 or table['transform'].nunique() > 1:
        warnings.warn("Models have different responses or transforms; AIC values are not comparable")
    if table['n_obs'].nunique() > 1:
        warnings.warn(f"Models were fitted to different numbers of rows {sorted(table['n_obs'].unique())}; "
                      "AIC differences involving them are not comparable")

    table = table.sort_values('aic').reset_index(drop=True)
    table['delta_aic'] = table['aic'] - table['aic'].iloc[0]
    table['verdict'] = [_aic_verdict(d) for d in table['delta_aic']]

    if verbose:
        print("\n" + "=" * 70)
        print(f"MODEL COMPARISON (AIC): {', '.join(table['response'].unique())}")
        print("=" * 70)
        print(f"{'Model':<26} {'Family':<9} {'n':>5} {'edof':>7} {'AIC':>10} {'ΔAIC':>8}  Verdict")
        print("-" * 70)
        for _, row in table.iterrows():
            print(f"{row['model']:<26} {row['family']:<9} {row['n_obs']:>5d} {row['edof']:>7.2f} "
                  f"{row['aic']:>10.2f} {row['delta_aic']:>8.2f}  {row['verdict']}")

    return table


def select_model(models, name='best'):
    """Pick a model by name, or the lowest-AIC model with name='best'."""
    if name == 'best':
        return min(models.values(), key=lambda m: m.aic)
    if name not in models:
        raise ValueError(f"Unknown model: {name}. Available: {list(models.keys())}")
    return models[name]
