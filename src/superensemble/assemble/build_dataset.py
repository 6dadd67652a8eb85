"""Assembly of the superensemble training table.

Functions in this module turn the long table of simulated observations (one
row per stock realization, method and year) into one wide row per stock
realization:

- `stock_id` re-keyed to embed iteration and noise levels, then deduplicated
- spectral features of the reference method's catch, computed once per
  realization and carried as a side table keyed by (`stock_id`, `iter`)
- trailing-window means per (`stock_id`, `method_id`, `iter`)
- method estimates pivoted to columns, joined with the operating-model truth

Row counts are checked against the number of stock realizations after the
truth extraction and after the pivot; a mismatch is a data-integrity failure.
"""
from __future__ import annotations

import logging
from typing import Mapping, Sequence

import pandas as pd

from superensemble.assemble.validate import (
    REQUIRED_COLUMNS,
    check_row_count,
    require_columns,
)
from superensemble.config import Settings, get_settings
from superensemble.features.spectral import (
    DEFAULT_FREQUENCIES,
    spectral_column,
    spectral_columns,
    spectral_features,
)
from superensemble.features.window import aggregate_windowed_means

log = logging.getLogger(__name__)

SPECTRAL_KEYS = ["stock_id", "sigmaC", "sigmaR", "LH", "iter", "ED"]
REALIZATION_KEYS = ["stock_id", "iter"]
METHOD_ALIASES = {"COM.SIR": "COMSIR"}


# =========================================================
# KEYS + DEDUPLICATION
# =========================================================

def rekey_stocks(frame: pd.DataFrame) -> pd.DataFrame:
    """Return a copy whose `stock_id` is "<stock_id> <iter> <sigmaC> <sigmaR>"."""
    out = frame.copy()
    parts = out[["stock_id", "iter", "sigmaC", "sigmaR"]].astype(str)
    out["stock_id"] = (
        parts["stock_id"] + " " + parts["iter"] + " " + parts["sigmaC"] + " " + parts["sigmaR"]
    )
    return out


def deduplicate(frame: pd.DataFrame) -> pd.DataFrame:
    """Drop repeated (`stock_id`, `year`, `method_id`) rows, keeping the first."""
    out = frame.drop_duplicates(subset=["stock_id", "year", "method_id"], keep="first")
    dropped = len(frame) - len(out)
    if dropped:
        log.info("Dropped %d duplicate stock/year/method rows", dropped)
    return out


def normalize_method_ids(
    frame: pd.DataFrame,
    aliases: Mapping[str, str] = METHOD_ALIASES,
) -> pd.DataFrame:
    """Rewrite legacy method labels (regex patterns) to their canonical names."""
    out = frame.copy()
    ids = out["method_id"].astype(str)
    for pattern, name in aliases.items():
        ids = ids.str.replace(pattern, name, regex=True)
    out["method_id"] = ids
    return out


# =========================================================
# SPECTRAL SIDE TABLE
# =========================================================

def _empty_like(frame: pd.DataFrame, float_cols: Sequence[str]) -> pd.DataFrame:
    """Zero-row table with the key dtypes of `frame` and float feature columns."""
    empty = frame.loc[frame.index[:0], SPECTRAL_KEYS].reset_index(drop=True)
    return empty.assign(**{c: pd.Series(dtype=float) for c in float_cols})


def spectral_long(
    frame: pd.DataFrame,
    reference_method: str = "SSCOM",
    freq_vec: Sequence[float] = DEFAULT_FREQUENCIES,
    min_obs: int = 10,
) -> pd.DataFrame:
    """Spectral features of the reference method's catch, long format.

    Returns:
        DataFrame with `SPECTRAL_KEYS`, `spec_freq` and `spec_dens`; one row
        per realization and target frequency.
    """
    ref = frame[frame["method_id"] == reference_method]
    ref = ref.sort_values(["stock_id", "year"], kind="mergesort")

    parts: list[pd.DataFrame] = []
    for key, group in ref.groupby(SPECTRAL_KEYS, sort=True, dropna=False):
        spec = spectral_features(group["catch"], freq_vec=freq_vec, min_obs=min_obs)
        parts.append(spec.assign(**dict(zip(SPECTRAL_KEYS, key))))

    if not parts:
        return _empty_like(frame, ["spec_freq", "spec_dens"])
    return pd.concat(parts, ignore_index=True)[SPECTRAL_KEYS + ["spec_freq", "spec_dens"]]


def build_spectral_table(
    frame: pd.DataFrame,
    reference_method: str = "SSCOM",
    freq_vec: Sequence[float] = DEFAULT_FREQUENCIES,
    min_obs: int = 10,
) -> pd.DataFrame:
    """Spectral features pivoted to one column per target frequency.

    Returns:
        DataFrame with `SPECTRAL_KEYS` and one `spec_freq_<f>` column per
        entry of `freq_vec`.
    """
    cols = spectral_columns(freq_vec)
    long = spectral_long(frame, reference_method, freq_vec, min_obs)
    if long.empty:
        return _empty_like(frame, cols)

    long = long.assign(spec_col=long["spec_freq"].map(spectral_column))
    wide = long.pivot(index=SPECTRAL_KEYS, columns="spec_col", values="spec_dens")
    wide = wide.reindex(columns=cols).reset_index()
    wide.columns.name = None
    log.info("Spectral features computed for %d realizations", len(wide))
    return wide


def spectral_side_table(spectral: pd.DataFrame, freq_vec: Sequence[float]) -> pd.DataFrame:
    """Reduce the spectral table to one row per (`stock_id`, `iter`)."""
    cols = spectral_columns(freq_vec)
    side = spectral[REALIZATION_KEYS + cols]
    return side.drop_duplicates(subset=REALIZATION_KEYS, keep="first").reset_index(drop=True)


def attach_spectral(means: pd.DataFrame, side: pd.DataFrame) -> pd.DataFrame:
    """Left-join spectral features onto the windowed means.

    Realizations without a spectral computation keep missing features.
    """
    return means.merge(side, on=REALIZATION_KEYS, how="left")


# =========================================================
# TRUTHS + WIDE TABLE
# =========================================================

def extract_truths(means: pd.DataFrame, reference_method: str = "SSCOM") -> pd.DataFrame:
    """One operating-model truth per realization, from the reference method."""
    trues = means.loc[
        means["method_id"] == reference_method,
        REALIZATION_KEYS + ["bbmsy_true_mean"],
    ]
    return trues.drop_duplicates().reset_index(drop=True)


def pivot_methods(means: pd.DataFrame, spec_cols: Sequence[str]) -> pd.DataFrame:
    """Long -> wide: one `bbmsy_est_mean` column per method.

    Returns:
        DataFrame keyed by (`stock_id`, `iter`) with the spectral columns
        followed by one column per method.
    """
    spec_cols = list(spec_cols)
    estimates = (
        means.set_index(REALIZATION_KEYS + ["method_id"])["bbmsy_est_mean"]
        .unstack("method_id")
    )
    estimates.columns.name = None

    features = means.groupby(REALIZATION_KEYS, sort=True)[spec_cols].first()
    wide = features.join(estimates, how="inner").reset_index()
    return wide


# =========================================================
# DRIVER
# =========================================================

def assemble_dataset(
    frame: pd.DataFrame,
    settings: Settings | None = None,
    cores: int | None = None,
    freq_vec: Sequence[float] = DEFAULT_FREQUENCIES,
    aliases: Mapping[str, str] = METHOD_ALIASES,
) -> pd.DataFrame:
    """Build the wide superensemble training table from simulated observations.

    Args:
        frame: Simulated observations with `REQUIRED_COLUMNS`.
        settings: Pipeline settings; read from the environment when omitted.
        cores: Overrides `settings.cores` for the windowed aggregation.
        freq_vec: Target frequencies of the spectral features.
        aliases: Legacy method label patterns and their canonical names.

    Returns:
        DataFrame with `stock_id`, `iter`, the spectral columns, one column
        per method and `bbmsy_true_mean`; rows with any missing value removed.

    Raises:
        ValueError: if required columns are missing.
        AssemblyIntegrityError: if a row-count check fails.
    """
    require_columns(frame, REQUIRED_COLUMNS)
    s = settings or get_settings()
    n_cores = cores if cores is not None else s.cores
    ref = s.reference_method
    spec_cols = spectral_columns(freq_vec)

    dsim = deduplicate(rekey_stocks(frame))
    n_realizations = int(dsim["stock_id"].nunique())
    log.info("Assembling %d rows covering %d stock realizations", len(dsim), n_realizations)

    spectral = build_spectral_table(dsim, ref, freq_vec, s.min_spectral_obs)
    side = spectral_side_table(spectral, freq_vec)

    dsim = normalize_method_ids(dsim, aliases)
    # windowing below takes the last rows of each group
    dsim = dsim.sort_values(["stock_id", "iter", "year"], kind="mergesort")

    means = aggregate_windowed_means(
        dsim,
        years_window=s.window_years,
        cores=n_cores,
        scheduler=s.scheduler,
    )
    means = attach_spectral(means, side)

    trues = extract_truths(means, ref)
    check_row_count(trues, n_realizations, "operating-model truths")

    wide = pivot_methods(means, spec_cols).merge(trues, on=REALIZATION_KEYS, how="inner")
    check_row_count(wide, n_realizations, "wide training table")

    complete = wide.dropna().reset_index(drop=True)
    log.info(
        "Training table: %d complete rows of %d (%d dropped for missing values)",
        len(complete),
        len(wide),
        len(wide) - len(complete),
    )
    return complete
