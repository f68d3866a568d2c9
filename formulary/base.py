#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Common dataclasses and base class used by terminology generation pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

TimingHook = Callable[[str, float], None]


@dataclass(frozen=True)
class PipelineRunParams:
    """File-level inputs supplied to a pipeline invocation."""

    inputs_dir: Path
    ranked_usage: Optional[Path] = None


@dataclass(frozen=True)
class PipelineContext:
    """Resolved project paths that pipelines can rely on."""

    project_root: Path
    inputs_dir: Path
    outputs_dir: Path


@dataclass
class PipelineOptions:
    """Optional switches controlling pipeline behaviour."""

    write_parquet: bool = False
    extra: Dict[str, object] = field(default_factory=dict)

    def flag(self, key: str, default: bool = False) -> bool:
        """Helper to fetch boolean extras with a default."""
        value = self.extra.get(key, default)
        return bool(value)


@dataclass
class PipelinePreparedInputs:
    """Reference tables loaded by a pipeline's preparation stage."""

    tables: Dict[str, Any]
    ranked_usage: Optional[Path] = None
    artifacts: Dict[str, Path] = field(default_factory=dict)


@dataclass
class PipelineResult:
    """Unified return object for terminology pipelines."""

    tables: Dict[str, Any]
    prepared: PipelinePreparedInputs
    written: Dict[str, Path] = field(default_factory=dict)
    reports: Dict[str, Any] = field(default_factory=dict)
    priority_error: Optional[str] = None


class BasePipeline:
    """Abstract pipeline contract that concrete implementations must follow."""

    pipeline_code: str = ""
    display_name: str = ""
    description: str = ""

    def pre_run(
        self,
        context: PipelineContext,
        params: PipelineRunParams,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> Mapping[str, Path]:
        """Optional hook executed before preparation. Return any artifacts that should be tracked."""
        return {}

    def prepare_inputs(
        self,
        context: PipelineContext,
        params: PipelineRunParams,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> PipelinePreparedInputs:
        """Load raw reference tables into memory."""
        raise NotImplementedError

    def build(
        self,
        context: PipelineContext,
        prepared: PipelinePreparedInputs,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> PipelineResult:
        """Execute the core transformation stage given prepared tables."""
        raise NotImplementedError

    def post_run(
        self,
        context: PipelineContext,
        result: PipelineResult,
        options: PipelineOptions,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> None:
        """Optional hook executed after building to filter and persist outputs."""

    def run(
        self,
        context: PipelineContext,
        params: PipelineRunParams,
        options: Optional[PipelineOptions] = None,
        *,
        timing_hook: Optional[TimingHook] = None,
    ) -> PipelineResult:
        """End-to-end orchestration that chains prepare + build, including optional hooks."""
        opts = options or PipelineOptions()
        artifacts: Dict[str, Path] = {}
        artifacts.update(self.pre_run(context, params, opts, timing_hook=timing_hook))
        prepared = self.prepare_inputs(context, params, opts, timing_hook=timing_hook)
        prepared.artifacts.update(artifacts)
        result = self.build(context, prepared, opts, timing_hook=timing_hook)
        self.post_run(context, result, opts, timing_hook=timing_hook)
        return result


__all__ = [
    "BasePipeline",
    "PipelineContext",
    "PipelineOptions",
    "PipelinePreparedInputs",
    "PipelineResult",
    "PipelineRunParams",
    "TimingHook",
]
