#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Pipeline registry that maps pipeline codes to pipeline implementations."""

from __future__ import annotations

from typing import Dict, Iterable, Type

from .base import BasePipeline


PIPELINE_REGISTRY: Dict[str, Type[BasePipeline]] = {}


def register_pipeline(cls: Type[BasePipeline]) -> Type[BasePipeline]:
    """Decorator used by pipeline implementations to register themselves."""
    code = getattr(cls, "pipeline_code", None)
    if not code:
        raise ValueError(f"Pipeline {cls.__name__} must define pipeline_code.")
    PIPELINE_REGISTRY[code] = cls
    return cls


def get_pipeline(pipeline_code: str) -> BasePipeline:
    """Instantiate a pipeline given its code."""
    try:
        cls = PIPELINE_REGISTRY[pipeline_code]
    except KeyError as exc:
        raise KeyError(f"No pipeline registered for code={pipeline_code!r}.") from exc
    return cls()


def list_pipelines() -> Iterable[BasePipeline]:
    """Yield instantiated pipelines for each registered code."""
    for cls in PIPELINE_REGISTRY.values():
        yield cls()


# Import pipeline implementations so they register with the module-level mapping.
from .ntp.pipeline import NtpGenerationPipeline  # noqa: E402,F401


__all__ = ["PIPELINE_REGISTRY", "register_pipeline", "get_pipeline", "list_pipelines"]
