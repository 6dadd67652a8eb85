"""Pydantic models used for row validation and run configuration.

Row models describe the tables flowing through the pipeline (simulated
observations in, assembled feature rows out). `EnsembleConfig` validates the
run options before any computation starts.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sklearn.preprocessing import PolynomialFeatures

DEFAULT_PREDICTORS = (
    "CMSY",
    "COMSIR",
    "Costello",
    "SSCOM",
    "spec_freq_0.05",
    "spec_freq_0.2",
)


class SimulatedObservation(BaseModel):
    """Schema for one simulated stock-year estimate from one method."""
    model_config = ConfigDict(extra="forbid")
    stock_id: str
    iter: int = Field(..., ge=0)
    sigmaC: float = Field(..., ge=0)
    sigmaR: float = Field(..., ge=0)
    LH: str
    ED: str | float
    method_id: str
    year: int
    catch: float | None = None
    b_bmsy_true: float
    b_bmsy_est: float | None = None


class SpectralFeatureRow(BaseModel):
    """Schema for one (frequency, density) pair of a stock realization.

    `spec_dens` is None when the catch series was too short or unusable.
    """
    model_config = ConfigDict(extra="forbid")
    stock_id: str
    iter: int = Field(..., ge=0)
    sigmaC: float = Field(..., ge=0)
    sigmaR: float = Field(..., ge=0)
    LH: str
    ED: str | float
    spec_freq: float = Field(..., gt=0, le=0.5)
    spec_dens: float | None = Field(default=None, ge=0)


class WindowedMeanRow(BaseModel):
    """Schema for trailing-window mean ratios of one stock/method/iteration."""
    model_config = ConfigDict(extra="forbid")
    stock_id: str
    method_id: str
    iter: int = Field(..., ge=0)
    bbmsy_true_mean: float | None
    bbmsy_est_mean: float | None
    n_years: int = Field(..., ge=1)


class AssembledRow(BaseModel):
    """Schema for one wide training row (one per stock realization).

    Method estimate columns vary with the input, so extra fields are allowed
    and only the fixed columns are typed.
    """
    model_config = ConfigDict(extra="allow")
    stock_id: str
    iter: int = Field(..., ge=0)
    bbmsy_true_mean: float = Field(..., gt=0)


class ModelType(str, Enum):
    """Second-stage model families."""
    RF = "rf"
    GBM = "gbm"
    LM = "lm"


class ModelFormula(BaseModel):
    """Response and predictor layout handed to the trainer.

    `interaction_degree=2` adds every two-way product of the predictors, the
    equivalent of `(a + b + ...)^2` in an R model formula.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    response: str = "bbmsy_true_mean"
    log_response: bool = True
    predictors: tuple[str, ...] = DEFAULT_PREDICTORS
    interaction_degree: int = Field(default=1, ge=1)

    @field_validator("predictors")
    @classmethod
    def _non_empty_unique(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("at least one predictor is required")
        if len(set(v)) != len(v):
            raise ValueError("predictors must be unique")
        return v

    def design(self, frame: pd.DataFrame) -> tuple[pd.DataFrame, pd.Series]:
        """Return the predictor matrix and (optionally log) response."""
        X = self.predictor_frame(frame)
        if self.response not in frame.columns:
            raise KeyError(f"response column {self.response!r} not found")
        y = frame[self.response].astype(float)
        if self.log_response:
            y = np.log(y)
        return X, y.rename(self.label)

    def predictor_frame(self, frame: pd.DataFrame) -> pd.DataFrame:
        missing = [c for c in self.predictors if c not in frame.columns]
        if missing:
            raise KeyError(f"predictor columns not found: {missing}")
        X = frame.loc[:, list(self.predictors)].astype(float)
        if self.interaction_degree == 1:
            return X
        poly = PolynomialFeatures(
            degree=self.interaction_degree,
            interaction_only=True,
            include_bias=False,
        )
        values = poly.fit_transform(X.to_numpy())
        names = [n.replace(" ", ":") for n in poly.get_feature_names_out(list(self.predictors))]
        return pd.DataFrame(values, columns=names, index=X.index)

    @property
    def label(self) -> str:
        return f"log({self.response})" if self.log_response else self.response

    def __str__(self) -> str:
        rhs = " + ".join(self.predictors)
        if self.interaction_degree > 1:
            rhs = f"({rhs})^{self.interaction_degree}"
        return f"{self.label} ~ {rhs}"


class EnsembleConfig(BaseModel):
    """Run options for fitting the superensemble.

    Attributes:
        ntree: Number of trees for the random forest variant.
        cores: Parallelism of the windowed aggregation (and forest fitting).
        formula: Response/predictor layout.
        type: Which second-stage model to fit.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)
    ntree: int = Field(default=1000, ge=1)
    cores: int = Field(default=2, ge=1)
    formula: ModelFormula = ModelFormula()
    type: ModelType = ModelType.RF

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "EnsembleConfig":
        """Build a config using `Settings` values as defaults."""
        values: dict[str, Any] = {"ntree": settings.ntree, "cores": settings.cores}
        values.update(overrides)
        return cls.model_validate(values)
