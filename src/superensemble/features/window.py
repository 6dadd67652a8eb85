"""Trailing-window means of true and estimated B/Bmsy.

Module notes:
- `windowed_means` reduces one (stock, method, iteration) chunk; it relies on
  the caller having sorted the chunk by year.
- `aggregate_windowed_means` splits a frame into batches of whole groups and
  reduces each batch in its own Dask task.
"""
from __future__ import annotations

import logging
from typing import Any, Sequence
from typing import cast, Any as TypingAny

import numpy as np
import pandas as pd
from dask import delayed, compute  # type: ignore[attr-defined]

log = logging.getLogger(__name__)

GROUP_KEYS = ("stock_id", "method_id", "iter")
MEAN_COLUMNS = ["bbmsy_true_mean", "bbmsy_est_mean", "n_years"]


def windowed_means(
    chunk: pd.DataFrame,
    years_window: int = 5,
    min_years: int = 1,
) -> dict[str, Any] | None:
    """Mean true and estimated B/Bmsy over the last `years_window` rows.

    Chunks with `years_window` rows or fewer are averaged over every row;
    the window is never padded. A missing value inside the window makes the
    corresponding mean missing.

    Args:
        chunk: Rows of one group with `b_bmsy_true` and `b_bmsy_est`,
            sorted by year ascending.
        years_window: Maximum number of trailing rows to average.
        min_years: Chunks shorter than this produce no row.

    Returns:
        Dict with `bbmsy_true_mean`, `bbmsy_est_mean`, `n_years`, or None for
        an empty chunk.
    """
    if chunk.shape[1] == 0 or len(chunk) == 0 or len(chunk) < min_years:
        return None

    tail = chunk.iloc[-years_window:] if len(chunk) > years_window else chunk
    return {
        "bbmsy_true_mean": float(tail["b_bmsy_true"].mean(skipna=False)),
        "bbmsy_est_mean": float(tail["b_bmsy_est"].mean(skipna=False)),
        "n_years": int(len(tail)),
    }


def _aggregate_batch(
    pdf: pd.DataFrame,
    keys: Sequence[str],
    years_window: int,
    min_years: int,
) -> list[dict[str, Any]]:
    """Runs inside a worker (delayed task).

    Returns one record per group of the batch that produced a mean.
    """
    rows: list[dict[str, Any]] = []
    if pdf is None or len(pdf) == 0:
        return rows

    for key, chunk in pdf.groupby(list(keys), sort=False, dropna=False):
        out = windowed_means(chunk, years_window=years_window, min_years=min_years)
        if out is None:
            continue
        rows.append({**dict(zip(keys, key)), **out})
    return rows


def _batches(frame: pd.DataFrame, keys: Sequence[str], n: int) -> list[pd.DataFrame]:
    """Split `frame` into at most `n` pieces without splitting any group."""
    codes = frame.groupby(list(keys), sort=False, dropna=False).ngroup()
    n_groups = int(codes.max()) + 1 if len(codes) else 0
    n = max(1, min(n, n_groups))
    bucket = np.asarray(codes) % n
    return [frame[bucket == i] for i in range(n)]


def aggregate_windowed_means(
    frame: pd.DataFrame,
    keys: Sequence[str] = GROUP_KEYS,
    years_window: int = 5,
    min_years: int = 1,
    cores: int = 2,
    scheduler: str = "processes",
) -> pd.DataFrame:
    """Compute `windowed_means` for every group of `frame` in parallel.

    Args:
        frame: Observations sorted chronologically within each group.
        keys: Grouping columns.
        years_window: Trailing window size passed to `windowed_means`.
        min_years: Minimum rows per group passed to `windowed_means`.
        cores: Number of batches and Dask workers. 1 runs synchronously.
        scheduler: Dask scheduler used when `cores > 1`.

    Returns:
        DataFrame with the key columns and `MEAN_COLUMNS`, sorted by key.
    """
    keys = list(keys)
    columns = keys + MEAN_COLUMNS
    if frame.shape[1] == 0 or len(frame) == 0:
        return pd.DataFrame(columns=columns)

    parts = _batches(frame, keys, cores)
    tasks = [delayed(_aggregate_batch)(part, keys, years_window, min_years) for part in parts]

    log.info("Aggregating %d rows in %d batches (cores=%d)", len(frame), len(tasks), cores)

    # `compute` is untyped in our environment; cast to Any before calling
    if cores <= 1 or scheduler == "synchronous":
        results = cast(TypingAny, compute)(*tasks, scheduler="synchronous")
    else:
        results = cast(TypingAny, compute)(*tasks, scheduler=scheduler, num_workers=cores)

    records = [row for batch in results for row in batch]
    out = pd.DataFrame.from_records(records, columns=columns)
    out = out.sort_values(keys, kind="mergesort").reset_index(drop=True)
    log.info("Windowed means computed for %d groups", len(out))
    return out
