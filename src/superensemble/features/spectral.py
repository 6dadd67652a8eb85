"""Autoregressive spectral-density features of catch series.

A raw periodogram of a 10-40 year catch series is too noisy to be useful as
a predictor, so the density is taken from an AR model fitted by Yule-Walker
with the order chosen by AIC. Series have different lengths, which gives
different native frequency grids; densities are therefore interpolated at a
fixed set of target frequencies so every stock yields the same columns.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

import numpy as np
import pandas as pd
from statsmodels.tsa.stattools import acovf, levinson_durbin

log = logging.getLogger(__name__)

DEFAULT_FREQUENCIES = (1 / 5, 1 / 20)
MIN_OBSERVATIONS = 10
N_FREQ = 500


def spectral_column(freq: float) -> str:
    """Return the wide-table column name for a target frequency.

    >>> spectral_column(1 / 20)
    'spec_freq_0.05'
    """
    return f"spec_freq_{format(freq, 'g')}"


def spectral_columns(freq_vec: Iterable[float] = DEFAULT_FREQUENCIES) -> list[str]:
    return [spectral_column(f) for f in freq_vec]


def _select_ar_order(x: np.ndarray, order_max: int) -> tuple[int, np.ndarray, float]:
    """Fit AR(0..order_max) by Yule-Walker and keep the lowest-AIC order.

    One Levinson-Durbin pass over the biased autocovariance of the demeaned
    series yields the coefficients and innovation variance of every order.

    Returns:
        (order, coefficients, innovation variance) of the selected model.
    """
    n = len(x)
    acov = acovf(x, adjusted=False, demean=True, fft=False)[: order_max + 1]
    best_order = 0
    best_phi = np.zeros(0)
    best_var = float(acov[0])
    best_aic = n * math.log(best_var)
    if order_max < 1:
        return best_order, best_phi, best_var

    with np.errstate(divide="ignore", invalid="ignore"):
        _, _, _, sig, phi = levinson_durbin(acov, nlags=order_max, isacov=True)

    for k in range(1, order_max + 1):
        var = float(sig[k])
        if not np.isfinite(var) or var <= 0:
            break
        aic = n * math.log(var) + 2 * k
        if aic < best_aic:
            best_order, best_phi, best_var, best_aic = k, phi[1 : k + 1, k].copy(), var, aic

    return best_order, best_phi, best_var


def ar_spectrum(
    x: Sequence[float],
    n_freq: int = N_FREQ,
    order_max: int | None = None,
) -> tuple[np.ndarray, np.ndarray, int]:
    """Estimate the spectral density of `x` from a fitted AR model.

    Args:
        x: Evenly spaced series (one value per year).
        n_freq: Number of grid points between 0 and 0.5 cycles per step.
        order_max: Highest AR order considered. Defaults to
            `min(n - 1, floor(10 * log10(n)))`. Any value is capped at
            `n - 2`, so a 10-point series is fitted up to AR(8) at most.

    Returns:
        Tuple of (frequencies, densities, selected AR order).

    Raises:
        ValueError: if the series has fewer than two points or no variance.
    """
    arr = np.asarray(x, dtype=float)
    n = len(arr)
    if n < 2:
        raise ValueError("at least two observations are required")
    if np.var(arr) == 0:
        raise ValueError("series has zero variance")

    if order_max is None:
        order_max = min(n - 1, int(math.floor(10 * math.log10(n))))
    # keep n - (order + 1) positive for the variance correction
    order_max = max(0, min(order_max, n - 2))

    order, phi, var = _select_ar_order(arr, order_max)
    # bias correction of the innovation variance for the fitted parameters
    var_pred = var * n / (n - (order + 1))

    freq = np.linspace(0.0, 0.5, n_freq)
    if order == 0:
        return freq, np.full(n_freq, var_pred), 0

    lags = np.arange(1, order + 1)
    angle = 2 * np.pi * np.outer(freq, lags)
    cs = np.cos(angle) @ phi
    sn = np.sin(angle) @ phi
    spec = var_pred / ((1 - cs) ** 2 + sn ** 2)
    return freq, spec, order


def _missing(freq_vec: Sequence[float]) -> pd.DataFrame:
    return pd.DataFrame({"spec_freq": list(freq_vec), "spec_dens": np.nan})


def spectral_features(
    catch: Sequence[float],
    freq_vec: Sequence[float] = DEFAULT_FREQUENCIES,
    min_obs: int = MIN_OBSERVATIONS,
) -> pd.DataFrame:
    """Return AR spectral densities of a catch series at `freq_vec`.

    Missing catches before the first or after the last observed year are
    trimmed; a gap between observed years leaves the series unevenly spaced
    and is not estimated. The series is scaled by its maximum before fitting.
    Series that cannot be estimated (gaps, fewer than `min_obs` values,
    negative or all-zero catch, no variance) give a missing density for every
    target frequency instead of raising, so the affected rows drop out later.

    Args:
        catch: Chronologically ordered catches of one stock realization.
        freq_vec: Target frequencies in cycles per year.
        min_obs: Minimum number of catches after trimming missing values
            at either end.

    Returns:
        DataFrame with columns `spec_freq` and `spec_dens`, one row per
        target frequency.
    """
    s = pd.Series(catch, dtype=float).reset_index(drop=True)
    observed = s.notna().to_numpy()
    if not observed.any():
        return _missing(freq_vec)
    first, last = observed.argmax(), len(observed) - observed[::-1].argmax()
    x = s.iloc[first:last].to_numpy()
    if np.isnan(x).any():
        log.debug("Skipping spectral estimate: missing catch inside the series")
        return _missing(freq_vec)
    if len(x) < min_obs:
        return _missing(freq_vec)

    peak = x.max()
    if not np.isfinite(peak) or peak <= 0 or (x < 0).any():
        log.debug("Skipping spectral estimate: catch not strictly usable (max=%s)", peak)
        return _missing(freq_vec)

    try:
        freq, spec, order = ar_spectrum(x / peak)
    except ValueError as e:
        log.debug("Skipping spectral estimate: %s", e)
        return _missing(freq_vec)

    dens = np.interp(freq_vec, freq, spec, left=np.nan, right=np.nan)
    return pd.DataFrame({"spec_freq": list(freq_vec), "spec_dens": dens})
