"""Read simulated observations from CSV files.

Column names are normalized to the names used throughout the pipeline
(`iter`, `LH`, `ED`, `b_bmsy_true`, `b_bmsy_est`).
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from superensemble.assemble.validate import REQUIRED_COLUMNS, require_columns

log = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "iteration": "iter",
    "lh": "LH",
    "ed": "ED",
    "sigmac": "sigmaC",
    "sigmar": "sigmaR",
    "bbmsy_true": "b_bmsy_true",
    "bbmsy_est": "b_bmsy_est",
}


def normalize_columns(pdf: pd.DataFrame) -> pd.DataFrame:
    """Rename legacy column variants to the pipeline's names."""
    renames = {
        c: COLUMN_ALIASES[c.lower()]
        for c in pdf.columns
        if c.lower() in COLUMN_ALIASES and COLUMN_ALIASES[c.lower()] not in pdf.columns
    }
    return pdf.rename(columns=renames)


def load_simulations(path: Path) -> pd.DataFrame:
    """Load a simulated-observation table.

    Args:
        path: `.csv` file.

    Returns:
        DataFrame with `REQUIRED_COLUMNS` and `stock_id`/`method_id` as str.

    Raises:
        ValueError: on an unknown extension or missing columns.
    """
    if path.suffix.lower() != ".csv":
        raise ValueError(f"unsupported file type: {path.suffix}")
    pdf = pd.read_csv(path)

    pdf = normalize_columns(pdf)
    require_columns(pdf, REQUIRED_COLUMNS)
    pdf["stock_id"] = pdf["stock_id"].astype(str)
    pdf["method_id"] = pdf["method_id"].astype(str)

    log.info("Loaded %d simulated observations from %s", len(pdf), path)
    return pdf
