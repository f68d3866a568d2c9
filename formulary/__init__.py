#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Terminology generation pipelines (MP / NTP / TM) built from DPD extracts."""

from .base import (
    BasePipeline,
    PipelineContext,
    PipelineOptions,
    PipelinePreparedInputs,
    PipelineResult,
    PipelineRunParams,
)
from .errors import DataQualityReport, FormularyError, ReferenceDataUnavailable
from .registry import PIPELINE_REGISTRY, get_pipeline, list_pipelines
from .utils import dated_name

__all__ = [
    "BasePipeline",
    "DataQualityReport",
    "FormularyError",
    "PipelineContext",
    "PipelineOptions",
    "PipelinePreparedInputs",
    "PipelineResult",
    "PipelineRunParams",
    "PIPELINE_REGISTRY",
    "ReferenceDataUnavailable",
    "get_pipeline",
    "list_pipelines",
    "dated_name",
]
