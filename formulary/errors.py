#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Error types and the record-level data quality ledger.

Only missing reference data is raised. Problems with individual records are
recorded on a :class:`DataQualityReport` and the record is excluded or
canonicalized best-effort, so a single bad row never aborts a run.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd

LOGGER = logging.getLogger(__name__)

MISSING_MAPPING = "MissingMapping"
SENTINEL_MOIETY = "SentinelMoiety"
MALFORMED_NAME = "MalformedName"

ISSUE_KINDS = (MISSING_MAPPING, SENTINEL_MOIETY, MALFORMED_NAME)


class FormularyError(Exception):
    """Base class for errors raised by the terminology pipeline."""


class ReferenceDataUnavailable(FormularyError):
    """A required reference table (or the ranked-usage feed) could not be read."""

    def __init__(self, table: str, detail: str = "") -> None:
        self.table = table
        self.detail = detail
        message = f"Reference data unavailable: {table}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


@dataclass(frozen=True)
class Issue:
    kind: str
    stage: str
    key: str
    detail: str = ""


@dataclass
class DataQualityReport:
    """Collects excluded or best-effort records across pipeline stages."""

    issues: List[Issue] = field(default_factory=list)

    def record(self, kind: str, stage: str, key: object, detail: str = "") -> None:
        if kind not in ISSUE_KINDS:
            raise ValueError(f"Unknown issue kind: {kind!r}")
        self.issues.append(Issue(kind=kind, stage=stage, key=str(key), detail=detail))
        if kind == MALFORMED_NAME:
            LOGGER.warning("%s [%s] %s: %s", kind, stage, key, detail)
        else:
            LOGGER.debug("%s [%s] %s: %s", kind, stage, key, detail)

    def count(self, kind: str, stage: str | None = None) -> int:
        return sum(1 for issue in self.issues if issue.kind == kind and (stage is None or issue.stage == stage))

    def counts(self) -> Dict[tuple[str, str], int]:
        """Return issue totals keyed by (kind, stage)."""
        return dict(Counter((issue.kind, issue.stage) for issue in self.issues))

    def log_summary(self) -> None:
        for (kind, stage), total in sorted(self.counts().items()):
            LOGGER.info("%s [%s]: %s record(s)", kind, stage, f"{total:,}")

    def to_frame(self) -> pd.DataFrame:
        columns = ["kind", "stage", "key", "detail"]
        if not self.issues:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame(
            [(issue.kind, issue.stage, issue.key, issue.detail) for issue in self.issues],
            columns=columns,
        )


__all__ = [
    "DataQualityReport",
    "FormularyError",
    "ISSUE_KINDS",
    "Issue",
    "MALFORMED_NAME",
    "MISSING_MAPPING",
    "ReferenceDataUnavailable",
    "SENTINEL_MOIETY",
]
