"""Second-stage model trainers.

Each `ModelType` maps to one strategy class exposing `fit(X, y)` and
`predict(model, X)`. The regressors themselves come from scikit-learn and
statsmodels; this module only fixes their settings.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import numpy as np
import pandas as pd
import statsmodels.api as sm
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor

from superensemble.models import EnsembleConfig, ModelType

log = logging.getLogger(__name__)


class EnsembleTrainer(ABC):
    """Fit and apply one family of second-stage model."""

    kind: ModelType

    @abstractmethod
    def fit(self, X: pd.DataFrame, y: pd.Series) -> Any:
        """Return a fitted model handle."""

    def predict(self, model: Any, X: pd.DataFrame) -> np.ndarray:
        return np.asarray(model.predict(X))


class RandomForestTrainer(EnsembleTrainer):
    kind = ModelType.RF

    def __init__(self, ntree: int = 1000, cores: int = 1, random_state: int | None = None):
        self.ntree = ntree
        self.cores = cores
        self.random_state = random_state

    def fit(self, X: pd.DataFrame, y: pd.Series) -> RandomForestRegressor:
        model = RandomForestRegressor(
            n_estimators=self.ntree,
            n_jobs=self.cores,
            random_state=self.random_state,
        )
        return model.fit(X, y)


class GradientBoostingTrainer(EnsembleTrainer):
    """Gaussian-loss boosting: 2000 trees of depth 6, shrinkage 0.01."""

    kind = ModelType.GBM

    def __init__(
        self,
        n_trees: int = 2000,
        interaction_depth: int = 6,
        shrinkage: float = 0.01,
        random_state: int | None = None,
    ):
        self.n_trees = n_trees
        self.interaction_depth = interaction_depth
        self.shrinkage = shrinkage
        self.random_state = random_state

    def fit(self, X: pd.DataFrame, y: pd.Series) -> GradientBoostingRegressor:
        model = GradientBoostingRegressor(
            loss="squared_error",
            n_estimators=self.n_trees,
            max_depth=self.interaction_depth,
            learning_rate=self.shrinkage,
            random_state=self.random_state,
        )
        return model.fit(X, y)


class LinearTrainer(EnsembleTrainer):
    """Ordinary least squares with an intercept."""

    kind = ModelType.LM

    def fit(self, X: pd.DataFrame, y: pd.Series) -> Any:
        return sm.OLS(y, sm.add_constant(X, has_constant="add")).fit()

    def predict(self, model: Any, X: pd.DataFrame) -> np.ndarray:
        return np.asarray(model.predict(sm.add_constant(X, has_constant="add")))


def get_trainer(config: EnsembleConfig, random_state: int | None = None) -> EnsembleTrainer:
    """Return the trainer strategy selected by `config.type`."""
    if config.type is ModelType.RF:
        return RandomForestTrainer(ntree=config.ntree, cores=config.cores, random_state=random_state)
    if config.type is ModelType.GBM:
        return GradientBoostingTrainer(random_state=random_state)
    if config.type is ModelType.LM:
        return LinearTrainer()
    raise ValueError(f"unsupported model type: {config.type!r}")
