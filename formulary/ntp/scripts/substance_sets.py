#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Per-product substance sets built from corrected canonical ingredients.

Sets are kept as ordered tuples and only joined into ``!``-delimited keys at
the frame boundary. Ingredients are deduplicated and sorted before the tuples
are taken, so any ordering of the same ingredient rows gives identical keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import pandas as pd

from ...errors import MALFORMED_NAME, DataQualityReport
from ..constants import DISPLAY_JOINER, SENTINEL_MOIETY, SET_DELIMITER


class IngredientKey(NamedTuple):
    precise_name: str
    basis_of_strength_name: str
    strength_with_unit: str
    moiety: str
    ai_unii: str
    am_unii: str


FRAME_COLUMNS: Tuple[str, ...] = (
    "precise_name",
    "basis_of_strength_name",
    "strength_with_unit",
    "moiety",
    "ai_unii",
    "am_unii",
)

SET_COLUMNS: Tuple[str, ...] = (
    "substance_set",
    "basis_set",
    "moiety_set",
    "strength_dosage_set",
    "ai_unii_set",
    "am_unii_set",
    "mp_table_set",
)


def serialize_set(values: Sequence[str]) -> str:
    """Join set members with the delimiter; a member containing it is a bug upstream."""
    for value in values:
        if SET_DELIMITER in value:
            raise ValueError(f"Set member {value!r} contains the set delimiter {SET_DELIMITER!r}")
    return SET_DELIMITER.join(values)


def is_sentinel_moiety_set(moiety_set: object) -> bool:
    """True for 'NA', 'NA!…', '…!NA' and '…!NA!…' keys (unresolved moieties)."""
    if not isinstance(moiety_set, str):
        return False
    sentinel = SENTINEL_MOIETY
    return (
        moiety_set == sentinel
        or moiety_set.startswith(f"{sentinel}{SET_DELIMITER}")
        or moiety_set.endswith(f"{SET_DELIMITER}{sentinel}")
        or f"{SET_DELIMITER}{sentinel}{SET_DELIMITER}" in moiety_set
    )


def _distinct(values: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


def display_part(key: IngredientKey) -> str:
    """'BASIS (PRECISE) STRENGTH', showing the precise name only when it differs."""
    name = key.basis_of_strength_name
    if key.precise_name != key.basis_of_strength_name:
        name = f"{name} ({key.precise_name})"
    return f"{name} {key.strength_with_unit}".strip()


@dataclass(frozen=True)
class SubstanceSet:
    drug_code: str
    substances: Tuple[str, ...]
    bases: Tuple[str, ...]
    moieties: Tuple[str, ...]
    strengths: Tuple[str, ...]
    display: Tuple[str, ...]
    ai_uniis: Tuple[str, ...] = ()
    am_uniis: Tuple[str, ...] = ()

    @classmethod
    def from_ingredients(cls, drug_code: str, ingredients: Iterable[IngredientKey]) -> "SubstanceSet":
        ordered: List[IngredientKey] = sorted(set(ingredients))
        return cls(
            drug_code=drug_code,
            substances=_distinct(key.precise_name for key in ordered),
            bases=_distinct(key.basis_of_strength_name for key in ordered),
            moieties=_distinct(key.moiety for key in ordered),
            strengths=_distinct(key.strength_with_unit for key in ordered),
            display=_distinct(display_part(key) for key in ordered),
            ai_uniis=_distinct(key.ai_unii for key in ordered),
            am_uniis=_distinct(key.am_unii for key in ordered),
        )

    @property
    def substance_set(self) -> str:
        return serialize_set(self.substances)

    @property
    def basis_set(self) -> str:
        return serialize_set(self.bases)

    @property
    def moiety_set(self) -> str:
        return serialize_set(self.moieties)

    @property
    def strength_dosage_set(self) -> str:
        return serialize_set(self.strengths)

    @property
    def ai_unii_set(self) -> str:
        return serialize_set(self.ai_uniis)

    @property
    def am_unii_set(self) -> str:
        return serialize_set(self.am_uniis)

    @property
    def mp_table_set(self) -> str:
        return DISPLAY_JOINER.join(self.display)

    @property
    def has_sentinel_moiety(self) -> bool:
        return SENTINEL_MOIETY in self.moieties

    def as_record(self) -> Dict[str, object]:
        record: Dict[str, object] = {"drug_code": self.drug_code}
        record.update({col: getattr(self, col) for col in SET_COLUMNS})
        record["ingredient_count"] = len(self.bases)
        return record


def aggregate_substance_sets(canonical: pd.DataFrame) -> Dict[str, SubstanceSet]:
    """Group corrected canonical ingredients by drug_code into SubstanceSets."""
    sets: Dict[str, SubstanceSet] = {}
    if canonical.empty:
        return sets
    for drug_code, group in canonical.groupby("drug_code", sort=True):
        keys = [
            IngredientKey(*("" if pd.isna(v) else str(v) for v in values))
            for values in group[list(FRAME_COLUMNS)].itertuples(index=False, name=None)
        ]
        sets[drug_code] = SubstanceSet.from_ingredients(drug_code, keys)
    return sets


def substance_sets_frame(
    sets: Dict[str, SubstanceSet],
    report: Optional[DataQualityReport] = None,
) -> pd.DataFrame:
    """Serialize SubstanceSets into one row per drug_code; unserializable sets are excluded."""
    report = report if report is not None else DataQualityReport()
    columns = ["drug_code", *SET_COLUMNS, "ingredient_count"]
    records: List[Dict[str, object]] = []
    for code in sorted(sets):
        try:
            records.append(sets[code].as_record())
        except ValueError as exc:
            report.record(MALFORMED_NAME, "substance_sets", code, str(exc))
    if not records:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(records, columns=columns)


__all__ = [
    "FRAME_COLUMNS",
    "IngredientKey",
    "SET_COLUMNS",
    "SubstanceSet",
    "aggregate_substance_sets",
    "display_part",
    "is_sentinel_moiety_set",
    "serialize_set",
    "substance_sets_frame",
]
