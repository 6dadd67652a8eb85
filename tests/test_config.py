from __future__ import annotations

import pytest

from superensemble.config import get_settings

ENV_VARS = (
    "SUPERENSEMBLE_CORES",
    "SUPERENSEMBLE_NTREE",
    "SUPERENSEMBLE_WINDOW_YEARS",
    "SUPERENSEMBLE_MIN_SPECTRAL_OBS",
    "SUPERENSEMBLE_REFERENCE_METHOD",
    "SUPERENSEMBLE_SCHEDULER",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    s = get_settings()
    assert s.cores == 2
    assert s.ntree == 1000
    assert s.window_years == 5
    assert s.min_spectral_obs == 10
    assert s.reference_method == "SSCOM"
    assert s.scheduler == "processes"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPERENSEMBLE_CORES", "8")
    monkeypatch.setenv("SUPERENSEMBLE_WINDOW_YEARS", "3")
    monkeypatch.setenv("SUPERENSEMBLE_SCHEDULER", "threads")

    s = get_settings()
    assert s.cores == 8
    assert s.window_years == 3
    assert s.scheduler == "threads"


@pytest.mark.parametrize(
    "name, value",
    [
        ("SUPERENSEMBLE_CORES", "two"),
        ("SUPERENSEMBLE_CORES", "0"),
        ("SUPERENSEMBLE_WINDOW_YEARS", "-5"),
        ("SUPERENSEMBLE_MIN_SPECTRAL_OBS", "1"),
        ("SUPERENSEMBLE_SCHEDULER", "slurm"),
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError, match=name):
        get_settings()
