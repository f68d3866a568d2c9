#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Pipeline implementation for pipeline code == 'NtpGeneration'."""

from __future__ import annotations

import logging
import time
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

from ..base import (
    BasePipeline,
    PipelineContext,
    PipelineOptions,
    PipelinePreparedInputs,
    PipelineResult,
    PipelineRunParams,
    TimingHook,
)
from ..errors import ReferenceDataUnavailable
from ..registry import register_pipeline
from .constants import DEFAULT_TOP_N, PIPELINE_CODE
from .scripts.interning import IdInterner
from .scripts.reference_data import load_reference_tables, locate_inputs
from .scripts.runners import (
    TerminologyTables,
    build_terminology,
    print_summary,
    run_priority_stage,
    write_terminology,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@register_pipeline
class NtpGenerationPipeline(BasePipeline):
    """Builds MP / NTP / TM tables and their mapping from a DPD snapshot."""

    pipeline_code = PIPELINE_CODE
    display_name = "NTP generation"
    description = "Canonicalizes DPD ingredients and derives MP, NTP and TM terminology tables."

    def pre_run(
        self,
        context: PipelineContext,
        params: PipelineRunParams,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> Dict[str, Path]:
        """Check that every required extract is present before anything is loaded."""
        artifacts = self._run_stage("Locate inputs", lambda: locate_inputs(Path(params.inputs_dir)), timing_hook)
        LOGGER.info("Found %s input tables under %s", len(artifacts), params.inputs_dir)
        if params.ranked_usage is not None and Path(params.ranked_usage).is_file():
            artifacts["ranked_usage"] = Path(params.ranked_usage)
        return artifacts

    def prepare_inputs(
        self,
        context: PipelineContext,
        params: PipelineRunParams,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> PipelinePreparedInputs:
        tables = self._run_stage(
            "Load reference data",
            lambda: load_reference_tables(
                Path(params.inputs_dir), include_inactive=options.flag("include_inactive")
            ),
            timing_hook,
        )
        return PipelinePreparedInputs(tables=tables, ranked_usage=params.ranked_usage)

    def build(
        self,
        context: PipelineContext,
        prepared: PipelinePreparedInputs,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> PipelineResult:
        ntp_ids = self._load_registry(options.extra.get("ntp_registry"))
        tm_ids = self._load_registry(options.extra.get("tm_registry"))
        terminology = build_terminology(
            prepared.tables,
            ntp_ids=ntp_ids,
            tm_ids=tm_ids,
            run_stage=lambda label, func: self._run_stage(label, func, timing_hook),
        )
        return PipelineResult(
            tables={
                "products": terminology.products,
                "mp_table": terminology.mp,
                "ntp_table": terminology.ntp,
                "tm_table": terminology.tm,
                "mapping_table": terminology.mapping,
            },
            prepared=prepared,
            reports={
                "terminology": terminology,
                "data_quality": terminology.report,
                "form_route_coverage": terminology.form_route_coverage,
            },
        )

    def post_run(
        self,
        context: PipelineContext,
        result: PipelineResult,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> None:
        terminology: TerminologyTables = result.reports["terminology"]
        outputs_dir = Path(context.outputs_dir)
        self._run_stage(
            "Write tables",
            lambda: write_terminology(terminology, outputs_dir, parquet=options.write_parquet),
            timing_hook,
        )

        ranked_usage = result.prepared.ranked_usage
        if ranked_usage is None:
            LOGGER.info("No ranked-usage snapshot configured; skipping priority filter")
        else:
            top_n = int(options.extra.get("top_n") or DEFAULT_TOP_N)
            run_date = str(options.extra.get("run_date") or date.today().strftime("%Y%m%d"))
            try:
                self._run_stage(
                    "Priority filter",
                    lambda: run_priority_stage(
                        terminology,
                        ranked_usage,
                        outputs_dir,
                        top_n=top_n,
                        run_date=run_date,
                        parquet=options.write_parquet,
                    ),
                    timing_hook,
                )
            except ReferenceDataUnavailable as exc:
                LOGGER.error("Priority filter skipped, full tables were written: %s", exc)
                result.priority_error = str(exc)
            else:
                result.reports["priority"] = terminology.priority

        result.written.update(terminology.written)
        terminology.report.log_summary()
        if not options.flag("quiet"):
            print_summary(terminology)

    # ----------------------------
    # Helpers
    # ----------------------------
    @staticmethod
    def _run_stage(label: str, func: Callable[[], T], timing_hook: Optional[TimingHook] = None) -> T:
        t0 = time.perf_counter()
        value = func()
        elapsed = time.perf_counter() - t0
        LOGGER.debug("%s finished in %.2fs", label, elapsed)
        if timing_hook:
            timing_hook(label, elapsed)
        return value

    @staticmethod
    def _load_registry(path: object) -> IdInterner:
        if not path:
            return IdInterner()
        interner = IdInterner.load(Path(str(path)))
        LOGGER.info("Seeded %s ids from %s", f"{len(interner):,}", path)
        return interner
