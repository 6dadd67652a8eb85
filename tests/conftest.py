from __future__ import annotations

from typing import Callable, Sequence

import numpy as np
import pandas as pd
import pytest

from superensemble.config import Settings


def build_sims(
    stocks: Sequence[str] = ("s1", "s2", "s3"),
    iters: Sequence[int] = (1, 2),
    methods: Sequence[str] = ("SSCOM",),
    n_years: int = 12,
    seed: int = 42,
) -> pd.DataFrame:
    """Synthetic simulated observations, one row per stock/iter/method/year."""
    rng = np.random.default_rng(seed)
    rows = []
    for si, stock in enumerate(stocks):
        for it in iters:
            t = np.arange(n_years)
            catch = 100 + 30 * np.sin(2 * np.pi * t / 5 + si) + rng.normal(0, 5, n_years)
            true = 0.4 + 0.05 * t + 0.1 * si + 0.01 * it
            for mi, method in enumerate(methods):
                est = true * (1.0 + 0.1 * (mi + 1)) + rng.normal(0, 0.02, n_years)
                for k in range(n_years):
                    rows.append(
                        {
                            "stock_id": stock,
                            "iter": it,
                            "sigmaC": 0.2,
                            "sigmaR": 0.6,
                            "LH": "DE",
                            "ED": "OW",
                            "method_id": method,
                            "year": 1981 + k,
                            "catch": float(catch[k]),
                            "b_bmsy_true": float(true[k]),
                            "b_bmsy_est": float(est[k]),
                        }
                    )
    return pd.DataFrame(rows)


@pytest.fixture
def make_sims() -> Callable[..., pd.DataFrame]:
    return build_sims


@pytest.fixture
def settings() -> Settings:
    return Settings(cores=1, ntree=20, scheduler="synchronous")
