#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Manual corrections for precise names and therapeutic moieties.

Substitutions run in a fixed order and later rules win:
name override -> moiety cross-reference -> moiety override -> special cases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

import pandas as pd

from ...errors import MALFORMED_NAME, MISSING_MAPPING, DataQualityReport
from ..constants import DO_NOT_SHARE, MOIETY_SPECIAL_CASES, SENTINEL_MOIETY, SET_DELIMITER
from .ingredients import clean_field

LOGGER = logging.getLogger(__name__)


def _key(value: object) -> str:
    return clean_field(value).upper()


def _value(value: object) -> str:
    return clean_field(value)


@dataclass(frozen=True)
class MoietyReference:
    moiety_name: str
    ai_unii: str = ""
    am_unii: str = ""


def _frozen(mapping: Dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class CorrectionTables:
    """Read-only override and cross-reference lookups."""

    name_overrides: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    moiety_overrides: Mapping[str, str] = field(default_factory=lambda: _frozen({}))
    moieties: Mapping[str, MoietyReference] = field(default_factory=lambda: _frozen({}))

    @classmethod
    def from_frames(
        cls,
        corrections: Optional[pd.DataFrame],
        active_moieties: pd.DataFrame,
        report: Optional[DataQualityReport] = None,
    ) -> "CorrectionTables":
        """Build lookups; the first non-empty row wins for duplicated keys.

        Values end up as set members, so the set delimiter is replaced with a
        space and each such value is recorded as a MalformedName issue.
        """
        report = report if report is not None else DataQualityReport()

        def _member(table: str, column: str, raw: object) -> str:
            if isinstance(raw, str) and SET_DELIMITER in raw:
                report.record(MALFORMED_NAME, table, raw, f"{column} contains set delimiter {SET_DELIMITER!r}")
            return _value(raw)

        names: Dict[str, str] = {}
        moiety_overrides: Dict[str, str] = {}
        if corrections is not None and not corrections.empty:
            for row in corrections.itertuples(index=False):
                source = _key(getattr(row, "source_key", ""))
                override = _member("corrections", "override_value", getattr(row, "override_value", ""))
                if source and override:
                    names.setdefault(source, override)
                moiety_key = _key(getattr(row, "moiety_override_key", ""))
                moiety_value = _member("corrections", "moiety_override_value", getattr(row, "moiety_override_value", ""))
                if moiety_key and moiety_value:
                    moiety_overrides.setdefault(moiety_key, moiety_value)

        moieties: Dict[str, MoietyReference] = {}
        for row in active_moieties.itertuples(index=False):
            precise = _key(row.precise_name)
            if not precise or precise in moieties:
                continue
            moiety = _member("active_moieties", "moiety_name", row.moiety_name)
            if not moiety:
                continue
            moieties[precise] = MoietyReference(
                moiety_name=moiety,
                ai_unii=_member("active_moieties", "ai_unii", getattr(row, "ai_unii", "")),
                am_unii=_member("active_moieties", "am_unii", getattr(row, "am_unii", "")),
            )
        return cls(_frozen(names), _frozen(moiety_overrides), _frozen(moieties))

    def corrected_name(self, precise_name: str) -> str:
        """Apply the name override table (precise_name_US in the FDA lookups)."""
        override = self.name_overrides.get(_key(precise_name), "")
        return override or precise_name

    def moiety_for(self, precise_name: str) -> Optional[MoietyReference]:
        return self.moieties.get(_key(precise_name))

    def corrected_moiety(self, moiety_name: str) -> str:
        override = self.moiety_overrides.get(_key(moiety_name), "")
        if override and override != DO_NOT_SHARE:
            return override
        return moiety_name


def special_case_moiety(*names: str) -> Optional[str]:
    """Return the unified moiety when any of the names is a known variant."""
    keys = {_key(name) for name in names if name}
    for moiety, variants in MOIETY_SPECIAL_CASES.items():
        if keys & variants:
            return moiety
    return None


def resolve(precise_name: str, tables: CorrectionTables) -> Tuple[str, Optional[str], str, str]:
    """Return (precise_name_us, moiety, ai_unii, am_unii); moiety is None when unresolved."""
    precise_us = tables.corrected_name(precise_name)
    reference = tables.moiety_for(precise_us)
    moiety = reference.moiety_name if reference else None
    ai_unii = reference.ai_unii if reference else ""
    am_unii = reference.am_unii if reference else ""
    if moiety is not None:
        moiety = tables.corrected_moiety(moiety)
    special = special_case_moiety(precise_name, precise_us, moiety or "")
    if special:
        moiety = special
    return precise_us, moiety, ai_unii, am_unii


def apply_corrections(
    canonical: pd.DataFrame,
    tables: CorrectionTables,
    report: Optional[DataQualityReport] = None,
) -> pd.DataFrame:
    """Correct precise names and attach moieties; unresolved moieties become the sentinel."""
    report = report if report is not None else DataQualityReport()
    out = canonical.copy()
    resolved = {name: resolve(name, tables) for name in out["precise_name"].unique()}
    for name, (_, moiety, _, _) in resolved.items():
        if moiety is None:
            report.record(MISSING_MAPPING, "moiety", name, "no active moiety cross-reference")

    out["source_precise_name"] = out["precise_name"]
    out["precise_name"] = out["source_precise_name"].map(lambda name: resolved[name][0])
    out["moiety"] = out["source_precise_name"].map(lambda name: resolved[name][1] or SENTINEL_MOIETY)
    out["ai_unii"] = out["source_precise_name"].map(lambda name: resolved[name][2] or SENTINEL_MOIETY)
    out["am_unii"] = out["source_precise_name"].map(lambda name: resolved[name][3] or SENTINEL_MOIETY)
    corrected = int((out["precise_name"] != out["source_precise_name"]).sum())
    if corrected:
        LOGGER.info("Applied precise-name overrides to %s ingredient rows", f"{corrected:,}")
    return out


__all__ = [
    "CorrectionTables",
    "MoietyReference",
    "apply_corrections",
    "resolve",
    "special_case_moiety",
]
