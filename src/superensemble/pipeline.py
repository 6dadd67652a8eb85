"""Fit a superensemble from simulated observations.

`make` runs the whole pipeline: configuration validation, dataset assembly
and the fit of the selected second-stage model. The result carries both the
fitted model and the table it was fitted on.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from superensemble.assemble.build_dataset import assemble_dataset
from superensemble.assemble.validate import (
    REQUIRED_COLUMNS,
    AssemblyIntegrityError,
    require_columns,
    validate_records,
)
from superensemble.config import Settings, get_settings
from superensemble.models import (
    AssembledRow,
    EnsembleConfig,
    ModelFormula,
    ModelType,
    SimulatedObservation,
)
from superensemble.train.trainers import EnsembleTrainer, get_trainer

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnsembleResult:
    """Fitted superensemble.

    Attributes:
        model: Fitted model handle from the trainer.
        data: Assembled training table.
        formula: Response/predictor layout used for the fit.
        model_type: Model family.
        trainer: Strategy that fitted `model` and applies it.
    """
    model: Any
    data: pd.DataFrame
    formula: ModelFormula
    model_type: ModelType
    trainer: EnsembleTrainer

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        """Predict B/Bmsy for wide rows with the formula's predictor columns.

        Predictions of a log-response fit are returned on the ratio scale.
        """
        X = self.formula.predictor_frame(frame)
        pred = self.trainer.predict(self.model, X)
        return np.exp(pred) if self.formula.log_response else pred


def _check_input(data: pd.DataFrame) -> None:
    good, bad = validate_records(data[list(REQUIRED_COLUMNS)], SimulatedObservation)
    if bad:
        raise ValueError(f"{bad} of {len(data)} simulated observations failed validation")
    log.info("Validated %d simulated observations", len(good))


def make(
    data: pd.DataFrame,
    config: EnsembleConfig | dict[str, Any] | None = None,
    settings: Settings | None = None,
    validate_input: bool = False,
    random_state: int | None = None,
) -> EnsembleResult:
    """Assemble the training table from `data` and fit the superensemble.

    Args:
        data: Simulated observations (see `REQUIRED_COLUMNS`).
        config: Run options, or a mapping validated into `EnsembleConfig`.
            Defaults come from `settings`.
        settings: Pipeline settings; read from the environment when omitted.
        validate_input: Validate every input row against
            `SimulatedObservation` before assembling.
        random_state: Seed passed to the tree-based trainers.

    Returns:
        `EnsembleResult` with the fitted model and its training table.

    Raises:
        pydantic.ValidationError: if `config` is invalid (unknown `type`).
        ValueError: on missing columns, invalid rows or an empty training table.
        AssemblyIntegrityError: if the assembled table breaks a row-count check.
    """
    s = settings or get_settings()
    if config is None:
        cfg = EnsembleConfig.from_settings(s)
    elif isinstance(config, EnsembleConfig):
        cfg = config
    else:
        cfg = EnsembleConfig.from_settings(s, **config)

    require_columns(data, REQUIRED_COLUMNS)
    if validate_input:
        _check_input(data)

    log.info("Fitting %s superensemble: %s", cfg.type.value, cfg.formula)

    table = assemble_dataset(data, settings=s, cores=cfg.cores)
    if table.empty:
        raise ValueError("no complete rows left to fit the superensemble")
    _, bad = validate_records(table, AssembledRow)
    if bad:
        raise AssemblyIntegrityError(f"{bad} assembled rows failed validation")

    X, y = cfg.formula.design(table)
    trainer = get_trainer(cfg, random_state=random_state)
    model = trainer.fit(X, y)
    log.info("Fitted %s on %d rows x %d predictors", cfg.type.value, len(X), X.shape[1])

    return EnsembleResult(
        model=model,
        data=table,
        formula=cfg.formula,
        model_type=cfg.type,
        trainer=trainer,
    )
