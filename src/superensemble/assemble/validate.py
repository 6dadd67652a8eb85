"""Validation utilities for pipeline tables.

Record-level validation against the Pydantic row models, plus the hard
row-count checks made while assembling the training table.
"""
from __future__ import annotations

import math
from typing import Any, Iterable

import pandas as pd
from pydantic import BaseModel, ValidationError

REQUIRED_COLUMNS = (
    "stock_id",
    "iter",
    "sigmaC",
    "sigmaR",
    "LH",
    "ED",
    "method_id",
    "year",
    "catch",
    "b_bmsy_true",
    "b_bmsy_est",
)


class AssemblyIntegrityError(RuntimeError):
    """A join or pivot produced a row count that breaks a table invariant."""


def require_columns(frame: pd.DataFrame, columns: Iterable[str] = REQUIRED_COLUMNS) -> None:
    """Raise ValueError naming any of `columns` missing from `frame`."""
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise ValueError(f"missing required columns: {', '.join(missing)}")


def _none_for_nan(rec: dict[str, Any]) -> dict[str, Any]:
    return {
        k: (None if isinstance(v, float) and math.isnan(v) else v)
        for k, v in rec.items()
    }


def validate_records(
    pdf: pd.DataFrame,
    model: type[BaseModel],
) -> tuple[list[dict[str, Any]], int]:
    """Validate each row of `pdf` with `model`.

    NaN cells are passed to the model as None so optional fields accept them.

    Args:
        pdf: Pandas DataFrame to validate.
        model: Pydantic model class describing one row.

    Returns:
        A tuple of (list_of_validated_records, bad_count).
    """
    good: list[dict[str, Any]] = []
    bad = 0

    for rec in pdf.to_dict(orient="records"):
        try:
            m = model.model_validate(_none_for_nan(rec))
            good.append(m.model_dump(mode="python"))
        except ValidationError:
            bad += 1

    return good, bad


def check_row_count(table: pd.DataFrame, expected: int, what: str) -> None:
    """Fail loudly when `table` does not have exactly `expected` rows.

    Raises:
        AssemblyIntegrityError: on any mismatch.
    """
    if len(table) != expected:
        raise AssemblyIntegrityError(
            f"{what}: expected {expected} rows (one per stock realization), got {len(table)}"
        )
