#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""End-to-end runs of the registered NtpGeneration pipeline and the CLI."""

from pathlib import Path

import pandas as pd
import pytest

import run
from formulary import PipelineContext, PipelineOptions, PipelineRunParams, get_pipeline, list_pipelines
from formulary.errors import DataQualityReport, ReferenceDataUnavailable
from formulary.ntp.pipeline import NtpGenerationPipeline


def _run(inputs: Path, outputs: Path, ranked_usage=None, **extra):
    timings = []
    extra.setdefault("quiet", True)
    result = get_pipeline("NtpGeneration").run(
        PipelineContext(project_root=inputs.parent, inputs_dir=inputs, outputs_dir=outputs),
        PipelineRunParams(inputs_dir=inputs, ranked_usage=ranked_usage),
        PipelineOptions(extra=extra),
        timing_hook=lambda label, seconds: timings.append(label),
    )
    return result, timings


def _read(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def test_registry_exposes_pipeline() -> None:
    assert isinstance(get_pipeline("NtpGeneration"), NtpGenerationPipeline)
    assert any(p.pipeline_code == "NtpGeneration" for p in list_pipelines())
    with pytest.raises(KeyError):
        get_pipeline("DrugsAndMedicine")


def test_full_run_writes_tables_and_priority_exports(
    dpd_snapshot: Path, ranked_usage_csv: Path, tmp_path: Path
) -> None:
    outputs = tmp_path / "outputs"
    result, timings = _run(dpd_snapshot, outputs, ranked_usage_csv, top_n=250, run_date="2017-01-18")

    assert result.priority_error is None
    for name in (
        "mp_table.csv",
        "ntp_table.csv",
        "tm_table.csv",
        "mapping_table.csv",
        "mp_table_top250_20170118.csv",
        "ntp_table_top250_20170118.csv",
        "tm_table_top250_20170118.csv",
        "mapping_table_top250_20170118.csv",
        "top250_NAs.csv",
        "form_route_coverage.csv",
        "data_quality.csv",
        "ntp_id_registry.csv",
        "tm_id_registry.csv",
    ):
        assert (outputs / name).is_file(), name

    mp = _read(outputs / "mp_table.csv")
    assert list(mp.columns) == [
        "product_id",
        "formal_description",
        "locale_display_en",
        "locale_display_fr",
        "status",
        "status_effective_date",
    ]
    assert "00000007" not in set(mp["product_id"])

    nas = _read(outputs / "top250_NAs.csv")
    assert list(nas["moiety_set"]) == ["METFORMIN"]
    for name in ("tm_table_top250_20170118.csv", "mapping_table_top250_20170118.csv"):
        assert "metformin" not in (outputs / name).read_text().lower()
    tm_top = _read(outputs / "tm_table_top250_20170118.csv")
    assert set(tm_top["formal_description"]) == {"ibuprofen", "acetaminophen and codeine"}

    quality = _read(outputs / "data_quality.csv")
    assert set(quality["kind"]) == {"MissingMapping", "SentinelMoiety"}
    assert isinstance(result.reports["data_quality"], DataQualityReport)
    assert "Canonicalize ingredients" in timings
    assert "Priority filter" in timings


def test_missing_ranked_usage_keeps_full_tables(dpd_snapshot: Path, tmp_path: Path) -> None:
    outputs = tmp_path / "outputs"
    result, _ = _run(dpd_snapshot, outputs, tmp_path / "nowhere.csv")

    assert result.priority_error is not None
    assert "ranked_usage" in result.priority_error
    assert (outputs / "tm_table.csv").is_file()
    assert not list(outputs.glob("*_top*"))


def test_without_ranked_usage_priority_stage_is_skipped(dpd_snapshot: Path, tmp_path: Path) -> None:
    outputs = tmp_path / "outputs"
    result, timings = _run(dpd_snapshot, outputs)

    assert result.priority_error is None
    assert "Priority filter" not in timings
    assert "priority" not in result.reports


def test_parquet_copies(dpd_snapshot: Path, tmp_path: Path) -> None:
    outputs = tmp_path / "outputs"
    get_pipeline("NtpGeneration").run(
        PipelineContext(project_root=tmp_path, inputs_dir=dpd_snapshot, outputs_dir=outputs),
        PipelineRunParams(inputs_dir=dpd_snapshot),
        PipelineOptions(write_parquet=True, extra={"quiet": True}),
    )
    tm = pd.read_parquet(outputs / "tm_table.parquet")
    assert len(tm) == 3


def test_registry_seed_from_previous_run(dpd_snapshot: Path, tmp_path: Path) -> None:
    first_out = tmp_path / "first"
    _run(dpd_snapshot, first_out)
    registry = _read(first_out / "tm_id_registry.csv")
    registry["id"] = registry["id"].astype(int) + 100
    seed = tmp_path / "tm_seed.csv"
    registry.to_csv(seed, index=False)

    second_out = tmp_path / "second"
    _run(dpd_snapshot, second_out, tm_registry=str(seed))

    tm = _read(second_out / "tm_table.csv").set_index("formal_description")
    assert tm.loc["ibuprofen", "tm_id"] == "9000103"


def test_pre_run_records_located_inputs(dpd_snapshot: Path, ranked_usage_csv: Path, tmp_path: Path) -> None:
    result, timings = _run(dpd_snapshot, tmp_path / "outputs", ranked_usage_csv)

    artifacts = result.prepared.artifacts
    assert artifacts["drugs"] == dpd_snapshot / "drug.csv"
    assert artifacts["dose_form_map"] == dpd_snapshot / "ntp_doseform_map.csv"
    assert artifacts["ranked_usage"] == ranked_usage_csv
    assert "corrections" not in artifacts
    assert timings[0] == "Locate inputs"


def test_missing_extract_fails_before_loading(dpd_snapshot: Path, tmp_path: Path) -> None:
    (dpd_snapshot / "ingred.csv").unlink()
    with pytest.raises(ReferenceDataUnavailable) as excinfo:
        _run(dpd_snapshot, tmp_path / "outputs")
    assert excinfo.value.table == "ingredients"
    assert not (tmp_path / "outputs").exists()

    with pytest.raises(ReferenceDataUnavailable) as excinfo:
        _run(tmp_path / "nowhere", tmp_path / "outputs")
    assert excinfo.value.table == "inputs"


def test_cli_exit_status(dpd_snapshot: Path, ranked_usage_csv: Path, tmp_path: Path) -> None:
    ok = run.main_entry(
        [
            "--inputs",
            str(dpd_snapshot),
            "--outputs",
            str(tmp_path / "ok"),
            "--ranked-usage",
            str(ranked_usage_csv),
            "--top-n",
            "1",
            "--run-date",
            "20170118",
        ]
    )
    assert ok == 0
    assert (tmp_path / "ok" / "tm_table_top1_20170118.csv").is_file()
    assert len(_read(tmp_path / "ok" / "tm_table_top1_20170118.csv")) == 1

    failed = run.main_entry(
        [
            "--inputs",
            str(dpd_snapshot),
            "--outputs",
            str(tmp_path / "failed"),
            "--ranked-usage",
            str(tmp_path / "nowhere.csv"),
        ]
    )
    assert failed == 2
    assert (tmp_path / "failed" / "mp_table.csv").is_file()
