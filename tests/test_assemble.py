from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from superensemble.assemble.build_dataset import (
    assemble_dataset,
    build_spectral_table,
    deduplicate,
    extract_truths,
    normalize_method_ids,
    pivot_methods,
    rekey_stocks,
    spectral_long,
)
from superensemble.assemble.validate import (
    AssemblyIntegrityError,
    check_row_count,
    validate_records,
)
from superensemble.models import SpectralFeatureRow

METHODS = ("SSCOM", "CMSY", "COM.SIR", "Costello")


def test_rekey_embeds_iteration_and_noise(make_sims) -> None:
    out = rekey_stocks(make_sims(stocks=("s1",), iters=(3,)))
    assert set(out["stock_id"]) == {"s1 3 0.2 0.6"}


def test_deduplicate_keeps_first_occurrence(make_sims) -> None:
    sims = make_sims(stocks=("s1",), iters=(1,), n_years=3)
    dup = sims.iloc[[1]].assign(catch=-999.0, b_bmsy_est=-1.0)
    frame = pd.concat([sims, dup], ignore_index=True)

    out = deduplicate(frame)

    assert len(out) == 3
    assert (out["catch"] != -999.0).all()
    assert out.iloc[1]["catch"] == sims.iloc[1]["catch"]


def test_normalize_method_ids_rewrites_legacy_label() -> None:
    frame = pd.DataFrame({"method_id": ["COM.SIR", "COM-SIR", "COMSIR", "SSCOM"]})
    out = normalize_method_ids(frame)
    assert list(out["method_id"]) == ["COMSIR", "COMSIR", "COMSIR", "SSCOM"]


def test_build_spectral_table_one_row_per_realization(make_sims) -> None:
    sims = rekey_stocks(make_sims(methods=("SSCOM", "CMSY")))
    spec = build_spectral_table(sims)

    assert len(spec) == 6
    assert {"spec_freq_0.05", "spec_freq_0.2"} <= set(spec.columns)
    assert spec[["spec_freq_0.05", "spec_freq_0.2"]].notna().all().all()


def test_build_spectral_table_keeps_columns_for_short_series(make_sims) -> None:
    sims = rekey_stocks(make_sims(n_years=6))
    spec = build_spectral_table(sims)
    assert len(spec) == 6
    assert spec[["spec_freq_0.05", "spec_freq_0.2"]].isna().all().all()


def test_end_to_end_single_method(make_sims, settings) -> None:
    table = assemble_dataset(make_sims(), settings=settings)

    assert len(table) == 6
    assert table["stock_id"].is_unique
    assert list(table.columns) == [
        "stock_id", "iter", "spec_freq_0.2", "spec_freq_0.05", "SSCOM", "bbmsy_true_mean",
    ]
    assert table.notna().all().all()


def test_truth_is_mean_of_last_window(make_sims, settings) -> None:
    sims = make_sims(stocks=("s1",), iters=(1,))
    table = assemble_dataset(sims, settings=settings)

    expected = sims["b_bmsy_true"].iloc[-5:].mean()
    assert table.loc[0, "bbmsy_true_mean"] == pytest.approx(expected)
    assert table.loc[0, "SSCOM"] == pytest.approx(sims["b_bmsy_est"].iloc[-5:].mean())


def test_end_to_end_multiple_methods(make_sims, settings) -> None:
    table = assemble_dataset(make_sims(methods=METHODS), settings=settings)

    assert len(table) == 6
    for method in ("CMSY", "COMSIR", "Costello", "SSCOM"):
        assert method in table.columns
    assert "COM.SIR" not in table.columns


def test_short_series_rows_dropped_without_hard_stop(make_sims, settings) -> None:
    table = assemble_dataset(make_sims(n_years=6), settings=settings)
    assert table.empty


def test_missing_estimate_in_window_drops_realization(make_sims, settings) -> None:
    sims = make_sims(stocks=("s1", "s2"), iters=(1,), methods=("SSCOM", "CMSY"))
    last = (
        (sims["stock_id"] == "s1")
        & (sims["method_id"] == "CMSY")
        & (sims["year"] == sims["year"].max())
    )
    sims.loc[last, "b_bmsy_est"] = np.nan

    table = assemble_dataset(sims, settings=settings)

    assert len(table) == 1
    assert table.loc[0, "stock_id"].startswith("s2 ")


def test_unsorted_input_gives_same_table(make_sims, settings) -> None:
    sims = make_sims(methods=METHODS)
    shuffled = sims.sample(frac=1.0, random_state=3)
    pd.testing.assert_frame_equal(
        assemble_dataset(sims, settings=settings),
        assemble_dataset(shuffled, settings=settings),
    )


def test_assembly_is_idempotent(make_sims, settings) -> None:
    sims = make_sims(methods=METHODS)
    first = assemble_dataset(sims, settings=settings)
    second = assemble_dataset(sims, settings=settings)
    pd.testing.assert_frame_equal(first, second)


def test_missing_reference_method_is_a_hard_stop(make_sims, settings) -> None:
    sims = make_sims(methods=("SSCOM", "CMSY"))
    broken = sims[~((sims["stock_id"] == "s2") & (sims["method_id"] == "SSCOM"))]

    with pytest.raises(AssemblyIntegrityError):
        assemble_dataset(broken, settings=settings)


def test_missing_columns_fail_before_work(make_sims, settings) -> None:
    with pytest.raises(ValueError, match="catch"):
        assemble_dataset(make_sims().drop(columns=["catch"]), settings=settings)


def test_pivot_tolerates_sparse_method_rows() -> None:
    means = pd.DataFrame(
        {
            "stock_id": ["a", "a", "b"],
            "method_id": ["SSCOM", "CMSY", "SSCOM"],
            "iter": [1, 1, 1],
            "bbmsy_true_mean": [1.0, 1.0, 0.5],
            "bbmsy_est_mean": [1.1, 0.9, 0.6],
            "spec_freq_0.05": [0.3, 0.3, 0.2],
        }
    )

    wide = pivot_methods(means, ["spec_freq_0.05"])
    trues = extract_truths(means)

    assert len(wide) == 2
    assert np.isnan(wide.loc[wide["stock_id"] == "b", "CMSY"]).all()
    assert list(trues["bbmsy_true_mean"]) == [1.0, 0.5]


def test_check_row_count() -> None:
    check_row_count(pd.DataFrame({"a": [1, 2]}), 2, "table")
    with pytest.raises(AssemblyIntegrityError, match="expected 3"):
        check_row_count(pd.DataFrame({"a": [1, 2]}), 3, "table")


def test_spectral_long_rows_validate(make_sims) -> None:
    sims = rekey_stocks(make_sims(stocks=("s1", "s2"), iters=(1,), n_years=15))
    long = spectral_long(sims)

    good, bad = validate_records(long, SpectralFeatureRow)

    assert bad == 0
    assert len(good) == 4
    assert all(r["spec_dens"] is not None for r in good)
