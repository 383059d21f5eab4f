"""
Spatial Statistics Module

Spatial autocorrelation diagnostics for the plot-level responses and model
residuals.

**Scientific Problem:**
The models absorb clustering with a random intercept per site, which
assumes plots are independent once the site effect is removed. Nearby
plots sharing soils, stand history or fire behaviour can violate this,
leading to:
- Underestimated standard errors
- Overly optimistic p-values for the fire terms

**Solution:**
1. Spline correlogram: Moran-type correlation against distance with a
   bootstrap envelope, for the raw response and for model residuals
2. Global Moran's I with a permutation test as a single-number check
3. Cache the (slow) bootstrap results to disk so later runs reload them
"""

import pickle
import warnings
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import numpy as np
import pandas as pd
from scipy.interpolate import make_smoothing_spline
from scipy.spatial.distance import pdist, squareform

try:
    from .config import (
        COLS, RESPONSES, RANDOM_SEED, USE_CACHED_CORRELOGRAMS,
        CORRELOGRAM_N_BINS, CORRELOGRAM_N_BOOTSTRAP, CORRELOGRAM_EVAL_POINTS,
        CORRELOGRAM_MAX_DISTANCE_FRACTION, MIN_CORRELOGRAM_POINTS, ensure_cache_dir
    )
except ImportError:
    from config import (
        COLS, RESPONSES, RANDOM_SEED, USE_CACHED_CORRELOGRAMS,
        CORRELOGRAM_N_BINS, CORRELOGRAM_N_BOOTSTRAP, CORRELOGRAM_EVAL_POINTS,
        CORRELOGRAM_MAX_DISTANCE_FRACTION, MIN_CORRELOGRAM_POINTS, ensure_cache_dir
    )

# make_smoothing_spline needs at least this many distinct abscissas
MIN_SPLINE_POINTS = 5


# ============================================================================
# SPLINE CORRELOGRAM
# ============================================================================

def _correlogram_curve(coords, values, edges, xout):
    """
    Moran-type correlation by distance class and its smooth.

    Values are standardised with the population SD, so the mean of
    z_i * z_j over the pairs in a class is the class correlation.
    """
    n_bins = len(edges) - 1
    empty = {
        'centers': np.full(n_bins, np.nan),
        'means': np.full(n_bins, np.nan),
        'counts': np.zeros(n_bins, dtype=int),
        'smooth': np.full(len(xout), np.nan),
        'y_intercept': np.nan,
    }

    sd = values.std()
    if sd == 0 or len(values) < 3:
        return empty

    z = (values - values.mean()) / sd
    distances = pdist(coords)
    i, j = np.triu_indices(len(values), k=1)
    products = z[i] * z[j]

    bin_idx = np.digitize(distances, edges) - 1
    keep = (distances > 0) & (bin_idx >= 0) & (bin_idx < n_bins)
    bin_idx = bin_idx[keep]

    counts = np.bincount(bin_idx, minlength=n_bins)
    with np.errstate(invalid='ignore', divide='ignore'):
        means = np.bincount(bin_idx, weights=products[keep], minlength=n_bins) / counts
        centers = np.bincount(bin_idx, weights=distances[keep], minlength=n_bins) / counts

    filled = counts > 0
    if filled.sum() >= MIN_SPLINE_POINTS:
        spline = make_smoothing_spline(centers[filled], means[filled], w=counts[filled].astype(float))
        smooth = spline(xout)
        y_intercept = float(spline(0.0))
    elif filled.any():
        smooth = np.interp(xout, centers[filled], means[filled])
        y_intercept = float(means[filled][0])
    else:
        return empty

    return {
        'centers': centers,
        'means': means,
        'counts': counts,
        'smooth': smooth,
        'y_intercept': y_intercept,
    }


def _x_intercept(xout, curve):
    """First distance where the curve drops from positive to non-positive."""
    if not np.all(np.isfinite(curve)):
        return np.nan
    crossings = np.where((curve[:-1] > 0) & (curve[1:] <= 0))[0]
    if len(crossings) == 0:
        return np.nan
    k = crossings[0]
    x0, x1 = xout[k], xout[k + 1]
    y0, y1 = curve[k], curve[k + 1]
    return float(x0 + (x1 - x0) * y0 / (y0 - y1))


def spline_correlogram(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    n_bins: int = CORRELOGRAM_N_BINS,
    max_distance: Optional[float] = None,
    n_bootstrap: int = CORRELOGRAM_N_BOOTSTRAP,
    n_eval: int = CORRELOGRAM_EVAL_POINTS,
    seed: int = RANDOM_SEED,
    verbose: bool = True
) -> Dict[str, Any]:
    """
    Spatial correlogram with a smoothing spline and bootstrap envelope.

    Parameters
    ----------
    x, y : ndarray
        Point coordinates (easting, northing)
    z : ndarray
        Value per point (raw response or model residual)
    n_bins : int
        Number of equal-width distance classes up to max_distance
    max_distance : float, optional
        Largest distance considered; defaults to a third of the largest
        pairwise distance
    n_bootstrap : int
        Bootstrap resamples of the points for the pointwise envelope
    n_eval : int
        Points on the distance grid where the smooth is evaluated
    seed : int
    verbose : bool

    Returns
    -------
    dict
        'distance', 'correlation', 'lower', 'upper' (smooth and 95% envelope
        on the evaluation grid), 'class_centers', 'class_correlation',
        'class_n_pairs', 'x_intercept', 'x_intercept_ci', 'y_intercept',
        'y_intercept_ci', 'n', 'n_bootstrap', 'max_distance'

    Examples
    --------
    >>> result = spline_correlogram(df['easting'], df['northing'], residuals)
    >>> print(f"Correlation at distance 0: {result['y_intercept']:.2f}")
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    z = np.asarray(z, dtype=float)

    if not (len(x) == len(y) == len(z)):
        raise ValueError("Coordinates and values must have the same length")

    valid = np.isfinite(x) & np.isfinite(y) & np.isfinite(z)
    x, y, z = x[valid], y[valid], z[valid]
    n = len(z)

    if n < MIN_CORRELOGRAM_POINTS:
        raise ValueError(
            f"Only {n} valid points; at least {MIN_CORRELOGRAM_POINTS} are needed for a correlogram"
        )

    coords = np.column_stack([x, y])
    if max_distance is None:
        max_distance = pdist(coords).max() * CORRELOGRAM_MAX_DISTANCE_FRACTION

    edges = np.linspace(0.0, max_distance, n_bins + 1)
    xout = np.linspace(0.0, max_distance, n_eval)

    observed = _correlogram_curve(coords, z, edges, xout)

    n_empty = int(np.sum(observed['counts'] == 0))
    if n_empty:
        warnings.warn(f"{n_empty} of {n_bins} distance classes hold no point pairs")

    rng = np.random.default_rng(seed)
    boot_curves = np.full((n_bootstrap, n_eval), np.nan)
    boot_x = np.full(n_bootstrap, np.nan)
    boot_y = np.full(n_bootstrap, np.nan)
    for b in range(n_bootstrap):
        idx = rng.integers(0, n, n)
        curve = _correlogram_curve(coords[idx], z[idx], edges, xout)
        boot_curves[b] = curve['smooth']
        boot_x[b] = _x_intercept(xout, curve['smooth'])
        boot_y[b] = curve['y_intercept']

    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=RuntimeWarning)
        lower = np.nanpercentile(boot_curves, 2.5, axis=0) if n_bootstrap else np.full(n_eval, np.nan)
        upper = np.nanpercentile(boot_curves, 97.5, axis=0) if n_bootstrap else np.full(n_eval, np.nan)
        x_ci = tuple(np.nanpercentile(boot_x, [2.5, 97.5])) if np.isfinite(boot_x).any() else (np.nan, np.nan)
        y_ci = tuple(np.nanpercentile(boot_y, [2.5, 97.5])) if np.isfinite(boot_y).any() else (np.nan, np.nan)

    results = {
        'distance': xout,
        'correlation': observed['smooth'],
        'lower': lower,
        'upper': upper,
        'class_centers': observed['centers'],
        'class_correlation': observed['means'],
        'class_n_pairs': observed['counts'],
        'x_intercept': _x_intercept(xout, observed['smooth']),
        'x_intercept_ci': x_ci,
        'y_intercept': observed['y_intercept'],
        'y_intercept_ci': y_ci,
        'n': n,
        'n_bootstrap': n_bootstrap,
        'max_distance': float(max_distance),
    }

    if verbose:
        print("\n" + "=" * 60)
        print("SPLINE CORRELOGRAM")
        print("=" * 60)
        print(f"Points: n = {n}   Distance classes: {n_bins} up to {max_distance:,.0f}")
        print(f"Bootstrap resamples: {n_bootstrap}")
        print(f"Correlation at distance 0: {results['y_intercept']:.3f} "
              f"(95% CI {y_ci[0]:.3f} to {y_ci[1]:.3f})")
        if np.isfinite(results['x_intercept']):
            print(f"Distance where correlation first reaches 0: {results['x_intercept']:,.0f}")
        else:
            print("Correlation does not cross 0 within the distance range")
        if np.isfinite(y_ci[0]) and y_ci[0] > 0:
            print("*** Nearby points are more similar than distant ones ***")

    return results


# ============================================================================
# GLOBAL MORAN'S I
# ============================================================================

def _create_spatial_weights(
    coordinates: np.ndarray,
    distance_threshold: Optional[float] = None
) -> np.ndarray:
    """
    Row-standardised spatial weights matrix.

    Inverse-distance weights when no threshold is given, otherwise binary
    weights for neighbours within the threshold. Coincident points get
    weight 0.
    """
    distances = squareform(pdist(np.asarray(coordinates, dtype=float)))

    if distance_threshold is None:
        with np.errstate(divide='ignore'):
            W = np.where(distances > 0, 1.0 / distances, 0.0)
    else:
        W = ((distances > 0) & (distances <= distance_threshold)).astype(float)

    row_sums = W.sum(axis=1)
    row_sums[row_sums == 0] = 1
    return W / row_sums[:, np.newaxis]


def _interpret_morans_i(I: float, p_value: float) -> str:
    """Interpret Moran's I statistic."""
    if p_value >= 0.05:
        return "No significant spatial pattern (random)"
    elif I > 0:
        return "Positive autocorrelation (clustering): similar values cluster spatially"
    elif I < 0:
        return "Negative autocorrelation (dispersion): dissimilar values neighbor each other"
    else:
        return "Spatial randomness"


def compute_morans_i(
    values: np.ndarray,
    coordinates: np.ndarray,
    distance_threshold: Optional[float] = None,
    n_permutations: int = 999,
    seed: int = RANDOM_SEED,
    verbose: bool = True
) -> Dict[str, Any]:
    """
    Compute Moran's I statistic to test for spatial autocorrelation.

    Moran's I ranges from -1 (perfect dispersion) to +1 (perfect clustering).
    I ≈ 0 indicates spatial randomness.

    Parameters
    ----------
    values : ndarray
        Variable to test (e.g., model residuals)
    coordinates : ndarray
        Spatial coordinates (n_observations, 2) as [easting, northing]
    distance_threshold : float, optional
        Neighbour distance; if None, inverse distance weighting is used
    n_permutations : int
        Random permutations for the significance test
    seed : int
    verbose : bool

    Returns
    -------
    dict
        'I', 'expected_I', 'p_value', 'significant', 'n_permutations',
        'interpretation'

    References
    ----------
    Moran, P. A. P. (1950). Notes on continuous stochastic phenomena.
    Biometrika, 37(1/2), 17-23.
    """
    values = np.asarray(values, dtype=float)
    coordinates = np.asarray(coordinates, dtype=float)
    n = len(values)

    if len(coordinates) != n:
        raise ValueError("Length of values and coordinates must match")

    W = _create_spatial_weights(coordinates, distance_threshold)
    S0 = W.sum()

    y = values - values.mean()
    denominator = S0 * np.sum(y ** 2)

    if denominator == 0:
        return {'I': np.nan, 'p_value': np.nan, 'significant': False}

    I = n * (y @ W @ y) / denominator
    expected_I = -1.0 / (n - 1)

    rng = np.random.default_rng(seed)
    I_perm = np.empty(n_permutations)
    for k in range(n_permutations):
        y_perm = rng.permutation(y)
        I_perm[k] = n * (y_perm @ W @ y_perm) / denominator

    # two-sided, counting the observed statistic among the permutations
    p_value = (np.sum(np.abs(I_perm - expected_I) >= abs(I - expected_I)) + 1) / (n_permutations + 1)

    results = {
        'I': float(I),
        'expected_I': expected_I,
        'p_value': float(p_value),
        'significant': bool(p_value < 0.05),
        'n_permutations': n_permutations,
        'interpretation': _interpret_morans_i(I, p_value)
    }

    if verbose:
        print("\n" + "=" * 60)
        print("MORAN'S I SPATIAL AUTOCORRELATION TEST")
        print("=" * 60)
        print(f"\nSample size: n = {n}")
        print(f"Moran's I: {I:.4f}")
        print(f"Expected I (under H0): {expected_I:.4f}")
        print(f"P-value ({n_permutations} permutations): {p_value:.4f}")
        print(f"\nInterpretation: {results['interpretation']}")

    return results


# ============================================================================
# CACHING
# ============================================================================

def load_or_compute_correlogram(
    name: str,
    compute: Callable[[], Dict[str, Any]],
    use_cache: bool = USE_CACHED_CORRELOGRAMS,
    cache_dir: Optional[str] = None,
    verbose: bool = True
) -> Dict[str, Any]:
    """
    Reload a pickled correlogram, or compute and pickle it.

    Parameters
    ----------
    name : str
        Cache file stem, e.g. 'correlog_carbontha_resid'
    compute : callable
        Zero-argument function returning the correlogram dict
    use_cache : bool
        If False the result is always recomputed (and the cache refreshed)
    cache_dir : str, optional
    verbose : bool
    """
    cache_dir = ensure_cache_dir(cache_dir)
    path = Path(cache_dir) / f"{name}.pkl"

    if use_cache and path.exists():
        with open(path, 'rb') as fh:
            result = pickle.load(fh)
        if verbose:
            print(f"Loaded cached correlogram: {path}")
        return result

    result = compute()
    with open(path, 'wb') as fh:
        pickle.dump(result, fh)
    if verbose:
        print(f"Correlogram cached to: {path}")

    return result


def correlogram_for_response(
    df: pd.DataFrame,
    response: str,
    model=None,
    use_cache: bool = USE_CACHED_CORRELOGRAMS,
    cache_dir: Optional[str] = None,
    n_bootstrap: int = CORRELOGRAM_N_BOOTSTRAP,
    verbose: bool = True
) -> Dict[str, Any]:
    """
    Raw-response or residual correlogram for one response, through the cache.

    With a fitted model the residuals of that model are used (on the model's
    own rows); otherwise the raw response values from df.
    """
    if model is not None:
        data = model.data
        values = model.residuals()
        variant = 'resid'
    else:
        column = RESPONSES[response]['column'] if response in RESPONSES else response
        data = df.dropna(subset=[column])
        values = data[column].to_numpy(dtype=float)
        variant = 'raw'

    x = data[COLS['easting']].to_numpy(dtype=float)
    y = data[COLS['northing']].to_numpy(dtype=float)

    if verbose:
        print(f"\nCorrelogram: {response} ({'residuals' if variant == 'resid' else 'raw values'})")

    result = load_or_compute_correlogram(
        f"correlog_{response}_{variant}",
        lambda: spline_correlogram(x, y, values, n_bootstrap=n_bootstrap, verbose=verbose),
        use_cache=use_cache,
        cache_dir=cache_dir,
        verbose=verbose,
    )
    result['variant'] = variant
    result['response'] = response
    return result
