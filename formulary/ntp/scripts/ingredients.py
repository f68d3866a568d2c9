#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Ingredient name canonicalization: basis-of-strength and precise names.

DPD ingredient names carry the precise chemical form as a trailing
parenthetical, e.g. ``IBUPROFEN (AS SODIUM)``. The basis of strength is the
name with that qualifier removed, the precise name is the qualifier itself.

Known limitation: names whose precise form is not parenthesized
(``IBUPROFEN SODIUM``) cannot be split and yield ``precise == basis``. Those
are fixed through the correction table, not here.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from ...errors import MALFORMED_NAME, MISSING_MAPPING, DataQualityReport
from ..constants import PRECISE_JOINER, SET_DELIMITER

LOGGER = logging.getLogger(__name__)

TRAILING_QUALIFIER_RX = re.compile(r"\(.*\)$")
QUALIFIER_RX = re.compile(r"(?<=\()(.*)(?=\))")
WHITESPACE_RX = re.compile(r"\s+")

STRENGTH_COLUMNS = ("strength", "strength_unit", "dosage_value", "dosage_unit")

CANONICAL_COLUMNS = [
    "drug_code",
    "ingredient_code",
    "ingredient",
    "basis_of_strength_name",
    "precise_name",
    "strength",
    "strength_unit",
    "dosage_value",
    "dosage_unit",
    "strength_with_unit",
]


def normalize_ingredient_name(raw: object) -> str:
    """Upper-case, collapse whitespace and keep the set delimiter out of names."""
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return ""
    text = str(raw).upper().replace(SET_DELIMITER, " ")
    return WHITESPACE_RX.sub(" ", text).strip()


def clean_field(raw: object) -> str:
    """Strip a free-text field and replace the set delimiter with a space; case is kept."""
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return ""
    text = str(raw).replace(SET_DELIMITER, " ")
    return WHITESPACE_RX.sub(" ", text).strip()


def split_ingredient_name(name: str) -> Tuple[str, Optional[str]]:
    """Split 'BASIS (QUALIFIER)' into ('BASIS', 'QUALIFIER'); qualifier is None when absent."""
    basis = TRAILING_QUALIFIER_RX.sub("", name, count=1).strip()
    match = QUALIFIER_RX.search(name)
    qualifier = match.group(0).strip() if match else None
    return basis, (qualifier or None)


def malformation(name: str, raw: object = None) -> Optional[str]:
    """Describe why a name does not fit the 'BASIS (QUALIFIER)' pattern, or None."""
    if not name:
        return "empty ingredient name"
    if raw is not None and SET_DELIMITER in str(raw):
        return f"contains set delimiter {SET_DELIMITER!r}"
    if name.count("(") != name.count(")"):
        return "unbalanced parentheses"
    if "(" in name and not name.endswith(")"):
        return "qualifier is not at the end of the name"
    if name.startswith("("):
        return "no basis name before qualifier"
    return None


def canonical_names(names: Iterable[str]) -> Tuple[str, str]:
    """Return (basis_of_strength_name, precise_name) for all names of one ingredient code."""
    ordered = sorted({name for name in names if name})
    if not ordered:
        return "", ""
    basis, first_qualifier = split_ingredient_name(ordered[0])
    qualifiers: List[str] = []
    for name in ordered:
        _, qualifier = split_ingredient_name(name)
        if qualifier and qualifier not in qualifiers:
            qualifiers.append(qualifier)
    if not basis:
        basis = first_qualifier or ordered[0]
    precise = PRECISE_JOINER.join(qualifiers) or basis
    return basis, precise


def strength_label(strength: object, unit: object, dosage_value: object = "", dosage_unit: object = "") -> str:
    """Render '500 MG' or '5 MG per 5 ML' from the DPD strength columns; units are upper-cased."""
    label = f"{clean_field(strength)} {clean_field(unit).upper()}".strip()
    if clean_field(dosage_value):
        label = f"{label} per {clean_field(dosage_value)} {clean_field(dosage_unit).upper()}".strip()
    return label


def canonicalize_ingredients(
    ingredients: pd.DataFrame,
    report: Optional[DataQualityReport] = None,
) -> pd.DataFrame:
    """Attach basis/precise names to every ingredient row and return distinct rows.

    Names are pooled per ``ingredient_code`` so spelling variants of the same
    ingredient share one canonical pair; the pair is reported per
    (ingredient_code, normalized name). Rows without a code are pooled by
    their own normalized name.
    """
    report = report if report is not None else DataQualityReport()
    frame = ingredients.copy()
    frame["ingredient_code"] = frame["ingredient_code"].map(clean_field)
    for col in STRENGTH_COLUMNS:
        if col not in frame.columns:
            frame[col] = ""
        raw_values = frame[col]
        frame[col] = raw_values.map(clean_field)
        delimited = {
            (code, str(raw)) for code, raw in zip(frame["ingredient_code"], raw_values) if SET_DELIMITER in str(raw)
        }
        for code, raw in sorted(delimited):
            report.record(MALFORMED_NAME, "ingredients", f"{code}:{raw}", f"{col} contains set delimiter {SET_DELIMITER!r}")
    raw_names = frame["ingredient"]
    frame["ingredient"] = raw_names.map(normalize_ingredient_name)

    seen: set[tuple[str, str]] = set()
    for code, raw, name in zip(frame["ingredient_code"], raw_names, frame["ingredient"]):
        if (code, name) in seen:
            continue
        seen.add((code, name))
        problem = malformation(name, raw)
        if problem:
            report.record(MALFORMED_NAME, "ingredients", f"{code}:{raw}", problem)
        elif not code:
            report.record(MISSING_MAPPING, "ingredients", name, "blank ingredient code")

    frame = frame[frame["ingredient"] != ""].copy()
    if frame.empty:
        return pd.DataFrame(columns=CANONICAL_COLUMNS)

    pool = [code or f"name:{name}" for code, name in zip(frame["ingredient_code"], frame["ingredient"])]
    frame["_pool"] = pool
    pairs = {key: canonical_names(names) for key, names in frame.groupby("_pool", sort=False)["ingredient"]}
    frame["basis_of_strength_name"] = [pairs[key][0] for key in pool]
    frame["precise_name"] = [pairs[key][1] for key in pool]
    frame["strength_with_unit"] = [
        strength_label(*values)
        for values in zip(frame["strength"], frame["strength_unit"], frame["dosage_value"], frame["dosage_unit"])
    ]
    canonical = frame[CANONICAL_COLUMNS].drop_duplicates().reset_index(drop=True)
    LOGGER.debug(
        "Canonicalized %s ingredient rows across %s ingredient codes",
        f"{len(canonical):,}",
        f"{len(pairs):,}",
    )
    return canonical


__all__ = [
    "CANONICAL_COLUMNS",
    "canonical_names",
    "canonicalize_ingredients",
    "clean_field",
    "malformation",
    "normalize_ingredient_name",
    "split_ingredient_name",
    "strength_label",
]
