#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Shared constants for the NtpGeneration pipeline."""

from __future__ import annotations

import os
from pathlib import Path


PIPELINE_CODE: str = "NtpGeneration"
PROJECT_ROOT: Path = Path(__file__).resolve().parents[2]
PIPELINE_INPUTS_DIR: Path = PROJECT_ROOT / "inputs" / "ntp"
PIPELINE_OUTPUTS_DIR: Path = PROJECT_ROOT / "outputs" / "ntp"

# Input stems; a .parquet file wins over a .csv with the same stem.
DRUGS_STEM: str = "drug"
INGREDIENTS_STEM: str = "ingred"
COMPANIES_STEM: str = "comp"
ROUTES_STEM: str = "route"
FORMS_STEM: str = "form"
CORRECTIONS_STEM: str = "mapping_for_top_250"
ACTIVE_MOIETIES_STEM: str = "ai_am_bos"
DOSE_FORM_MAP_STEM: str = "ntp_doseform_map"
RANKED_USAGE_TABLE: str = "rx_retail_usage"

SET_DELIMITER: str = "!"
DISPLAY_JOINER: str = " and "
PRECISE_JOINER: str = "|"
SENTINEL_MOIETY: str = "NA"
DO_NOT_SHARE: str = "DO NOT SHARE DRUG CODE"

# First interned id is ID_OFFSET + 1.
ID_OFFSET: int = 9_000_000
MAX_SIMPLE_AIS: int = 5

HUMAN_CLASS: str = "Human"
ACTIVE_STATUS: str = "active"
INACTIVE_STATUS: str = "inactive"

# Variants that always resolve to a single therapeutic moiety.
MOIETY_SPECIAL_CASES: dict[str, frozenset[str]] = {
    "ACYCLOVIR": frozenset({"ACYCLOVIR", "ACYCLOVIR SODIUM"}),
}


def _env_top_n() -> int | None:
    raw = os.getenv("FORMULARY_TOP_N")
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


DEFAULT_TOP_N: int = _env_top_n() or 250

__all__ = [
    "ACTIVE_MOIETIES_STEM",
    "ACTIVE_STATUS",
    "COMPANIES_STEM",
    "CORRECTIONS_STEM",
    "DEFAULT_TOP_N",
    "DISPLAY_JOINER",
    "DO_NOT_SHARE",
    "DOSE_FORM_MAP_STEM",
    "DRUGS_STEM",
    "FORMS_STEM",
    "HUMAN_CLASS",
    "ID_OFFSET",
    "INACTIVE_STATUS",
    "INGREDIENTS_STEM",
    "MAX_SIMPLE_AIS",
    "MOIETY_SPECIAL_CASES",
    "PIPELINE_CODE",
    "PIPELINE_INPUTS_DIR",
    "PIPELINE_OUTPUTS_DIR",
    "PRECISE_JOINER",
    "PROJECT_ROOT",
    "RANKED_USAGE_TABLE",
    "ROUTES_STEM",
    "SENTINEL_MOIETY",
    "SET_DELIMITER",
]
