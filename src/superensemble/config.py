"""Configuration helpers and Settings container.

This module provides a small `Settings` dataclass and `get_settings` which
reads pipeline options from the environment (a project `.env` file is loaded
first). Run-level options for the fitted model live on
`superensemble.models.EnsembleConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv

# Explicitly load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")

SCHEDULERS = ("processes", "threads", "synchronous")


@dataclass(frozen=True)
class Settings:
    """Container for pipeline configuration read from the environment.

    Attributes:
        cores: Number of workers used for the windowed aggregation.
        ntree: Default tree count for the random forest trainer.
        window_years: Trailing window (in years) averaged per method.
        min_spectral_obs: Shortest catch series given a spectral estimate.
        reference_method: Method whose rows carry catch for the spectral
            features and the operating-model truth.
        scheduler: Dask scheduler used when `cores > 1`.
    """
    cores: int = 2
    ntree: int = 1000
    window_years: int = 5
    min_spectral_obs: int = 10
    reference_method: str = "SSCOM"
    scheduler: str = "processes"


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_settings() -> Settings:
    """Read environment variables and return a frozen `Settings` object.

    Raises:
        RuntimeError: if a numeric variable is malformed or out of range, or
            `SUPERENSEMBLE_SCHEDULER` names an unknown Dask scheduler.
    """
    scheduler = os.getenv("SUPERENSEMBLE_SCHEDULER", "processes").strip() or "processes"
    if scheduler not in SCHEDULERS:
        raise RuntimeError(
            f"SUPERENSEMBLE_SCHEDULER must be one of {', '.join(SCHEDULERS)}; got {scheduler!r}"
        )

    return Settings(
        cores=_int_env("SUPERENSEMBLE_CORES", 2),
        ntree=_int_env("SUPERENSEMBLE_NTREE", 1000),
        window_years=_int_env("SUPERENSEMBLE_WINDOW_YEARS", 5),
        min_spectral_obs=_int_env("SUPERENSEMBLE_MIN_SPECTRAL_OBS", 10, minimum=2),
        reference_method=os.getenv("SUPERENSEMBLE_REFERENCE_METHOD", "SSCOM").strip() or "SSCOM",
        scheduler=scheduler,
    )
