#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Loaders for DPD extracts, correction tables and the ranked-usage snapshot.

Extracts are read with Polars as all-string frames (CSV or Parquet, Parquet
preferred), header aliases from the raw DPD/FDA exports are folded into
snake_case names, and the result is handed to the pandas core. The ranked
usage feed is an offline snapshot queried through DuckDB.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import duckdb
import pandas as pd
import polars as pl

from ...errors import ReferenceDataUnavailable
from ..constants import (
    ACTIVE_MOIETIES_STEM,
    ACTIVE_STATUS,
    COMPANIES_STEM,
    CORRECTIONS_STEM,
    DEFAULT_TOP_N,
    DOSE_FORM_MAP_STEM,
    DRUGS_STEM,
    FORMS_STEM,
    HUMAN_CLASS,
    INGREDIENTS_STEM,
    RANKED_USAGE_TABLE,
    ROUTES_STEM,
)

LOGGER = logging.getLogger(__name__)

ROUTE_IN_LABEL_RX = re.compile(r"\((.+)\)")


def column_key(name: str) -> str:
    """Fold a header like 'AI UNII' or 'DRUG_CODE' into 'ai_unii' / 'drug_code'."""
    return re.sub(r"[^a-z0-9]+", "_", str(name).strip().lower()).strip("_")


@dataclass(frozen=True)
class TableSpec:
    name: str
    stem: str
    required: Tuple[str, ...]
    optional: Tuple[str, ...] = ()
    aliases: Dict[str, str] = field(default_factory=dict)
    must_exist: bool = True

    def lookup(self) -> Dict[str, str]:
        mapping = {column_key(col): col for col in self.required + self.optional}
        mapping.update({column_key(raw): canonical for raw, canonical in self.aliases.items()})
        return mapping


DRUGS = TableSpec(
    name="drugs",
    stem=DRUGS_STEM,
    required=("drug_code", "din", "brand_name"),
    optional=("drug_class", "number_of_ais", "last_update_date", "status"),
    aliases={
        "DRUG_IDENTIFICATION_NUMBER": "din",
        "CLASS": "drug_class",
        "extract": "status",
    },
)
INGREDIENTS = TableSpec(
    name="ingredients",
    stem=INGREDIENTS_STEM,
    required=("drug_code", "ingredient_code", "ingredient"),
    optional=("strength", "strength_unit", "dosage_value", "dosage_unit"),
    aliases={"ACTIVE_INGREDIENT_CODE": "ingredient_code"},
)
COMPANIES = TableSpec(
    name="companies",
    stem=COMPANIES_STEM,
    required=("drug_code", "company_name"),
    optional=("company_code",),
)
ROUTES = TableSpec(
    name="routes",
    stem=ROUTES_STEM,
    required=("drug_code", "route_admin"),
    aliases={"ROUTE_OF_ADMINISTRATION": "route_admin"},
)
FORMS = TableSpec(
    name="forms",
    stem=FORMS_STEM,
    required=("drug_code", "pharm_form"),
    aliases={"PHARMACEUTICAL_FORM": "pharm_form"},
)
CORRECTIONS = TableSpec(
    name="corrections",
    stem=CORRECTIONS_STEM,
    required=(),
    optional=("source_key", "override_value", "moiety_override_key", "moiety_override_value"),
    aliases={
        "dpd_values": "source_key",
        "precise_ing_NAME_CHANGE": "override_value",
        "fda_map": "moiety_override_key",
        "tm_set_map": "moiety_override_value",
    },
    must_exist=False,
)
ACTIVE_MOIETIES = TableSpec(
    name="active_moieties",
    stem=ACTIVE_MOIETIES_STEM,
    required=("precise_name", "moiety_name"),
    optional=("ai_unii", "am_unii"),
    aliases={
        "Active Ingredient": "precise_name",
        "precise_ing": "precise_name",
        "Active Moiety": "moiety_name",
    },
)
DOSE_FORM_MAP = TableSpec(
    name="dose_form_map",
    stem=DOSE_FORM_MAP_STEM,
    required=("pharm_form", "ntp_dose_form"),
    optional=("route_admin", "route_label"),
    aliases={
        "DPD PHARMACEUTICAL_FORM": "pharm_form",
        "dpd_pharm_form": "pharm_form",
        "dpd_route_admin": "route_admin",
        "NTP Formal Name Dose form": "ntp_dose_form",
        "V4": "route_label",
    },
)

TABLE_SPECS: Tuple[TableSpec, ...] = (
    DRUGS,
    INGREDIENTS,
    COMPANIES,
    ROUTES,
    FORMS,
    CORRECTIONS,
    ACTIVE_MOIETIES,
    DOSE_FORM_MAP,
)


def _locate(inputs_dir: Path, stem: str) -> Optional[Path]:
    for suffix in (".parquet", ".csv"):
        candidate = inputs_dir / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def locate_inputs(inputs_dir: Path) -> Dict[str, Path]:
    """Map each table name to the file it will be read from; fails fast on missing inputs."""
    inputs_dir = Path(inputs_dir)
    if not inputs_dir.is_dir():
        raise ReferenceDataUnavailable("inputs", f"directory not found: {inputs_dir}")
    located: Dict[str, Path] = {}
    for spec in TABLE_SPECS:
        path = _locate(inputs_dir, spec.stem)
        if path is not None:
            located[spec.name] = path
        elif spec.must_exist:
            raise ReferenceDataUnavailable(spec.name, f"no {spec.stem}.parquet/.csv under {inputs_dir}")
    return located


def _read_frame(path: Path) -> pl.DataFrame:
    """Read CSV/Parquet into an all-string Polars frame."""
    if path.suffix.lower() == ".parquet":
        return pl.read_parquet(path).with_columns(pl.all().cast(pl.Utf8))
    return pl.read_csv(path, infer_schema_length=0, encoding="utf8-lossy")


def conform(frame: pl.DataFrame, spec: TableSpec) -> pd.DataFrame:
    """Rename aliased headers, check required columns and blank-fill everything else."""
    lookup = spec.lookup()
    selected: Dict[str, str] = {}
    for col in frame.columns:
        target = lookup.get(column_key(col))
        if target is None or target in selected.values():
            continue
        selected[col] = target

    missing = [col for col in spec.required if col not in selected.values()]
    if missing:
        raise ReferenceDataUnavailable(spec.name, f"missing columns: {', '.join(missing)}")

    exprs = [pl.col(src).cast(pl.Utf8).alias(dst) for src, dst in selected.items()]
    exprs.extend(pl.lit("").alias(col) for col in spec.optional if col not in selected.values())
    conformed = frame.select(exprs).with_columns(
        pl.all().fill_null("").str.strip_chars()
    )
    ordered = [col for col in spec.required + spec.optional if col in conformed.columns]
    return conformed.select(ordered).to_pandas()


def load_table(inputs_dir: Path, spec: TableSpec) -> pd.DataFrame:
    """Load one reference table; a missing required table aborts the run."""
    path = _locate(inputs_dir, spec.stem)
    if path is None:
        if spec.must_exist:
            raise ReferenceDataUnavailable(spec.name, f"no {spec.stem}.parquet/.csv under {inputs_dir}")
        LOGGER.info("Optional table %s not found; continuing without it", spec.name)
        return pd.DataFrame({col: pd.Series(dtype=object) for col in spec.required + spec.optional})
    try:
        frame = _read_frame(path)
    except (OSError, pl.exceptions.PolarsError) as exc:
        raise ReferenceDataUnavailable(spec.name, str(exc)) from exc
    table = conform(frame, spec)
    LOGGER.debug("Loaded %s from %s: %s rows", spec.name, path, f"{len(table):,}")
    return table


def prepare_dose_form_map(frame: pd.DataFrame) -> pd.DataFrame:
    """Pull routes out of '(ROUTE)' labels, upper-case them and drop rows without a form."""
    out = frame.copy()
    label_routes = out["route_label"].str.extract(ROUTE_IN_LABEL_RX, expand=False).fillna("")
    out["route_admin"] = out["route_admin"].where(out["route_admin"] != "", label_routes)
    out["route_admin"] = out["route_admin"].str.strip().str.upper()
    out = out[out["pharm_form"] != ""]
    return out[["pharm_form", "route_admin", "ntp_dose_form"]].reset_index(drop=True)


def select_products(drugs: pd.DataFrame, *, include_inactive: bool = False) -> pd.DataFrame:
    """Keep human products, and only the active extract unless asked otherwise."""
    drug_class = drugs["drug_class"].str.casefold()
    keep = (drug_class == "") | (drug_class == HUMAN_CLASS.casefold())
    status = drugs["status"].where(drugs["status"] != "", ACTIVE_STATUS).str.lower()
    if not include_inactive:
        keep &= status == ACTIVE_STATUS
    selected = drugs.loc[keep].copy()
    selected["status"] = status.loc[keep]
    return selected.reset_index(drop=True)


def load_reference_tables(inputs_dir: Path, *, include_inactive: bool = False) -> Dict[str, pd.DataFrame]:
    """Load every table the pipeline needs, keyed by TableSpec.name."""
    inputs_dir = Path(inputs_dir)
    if not inputs_dir.is_dir():
        raise ReferenceDataUnavailable("inputs", f"directory not found: {inputs_dir}")
    tables = {spec.name: load_table(inputs_dir, spec) for spec in TABLE_SPECS}
    tables["drugs"] = select_products(tables["drugs"], include_inactive=include_inactive)
    tables["ingredients"] = tables["ingredients"][
        tables["ingredients"]["drug_code"].isin(tables["drugs"]["drug_code"])
    ].reset_index(drop=True)
    tables["dose_form_map"] = prepare_dose_form_map(tables["dose_form_map"])
    return tables


def _first_present(columns: Iterable[str], candidates: Iterable[str]) -> Optional[str]:
    keyed = {column_key(col): col for col in columns}
    for candidate in candidates:
        if candidate in keyed:
            return keyed[candidate]
    return None


def _sql_literal(path: Path) -> str:
    return "'" + str(path).replace("'", "''") + "'"


def load_ranked_usage(path: Optional[Path], top_n: int = DEFAULT_TOP_N) -> pd.DataFrame:
    """Read the usage snapshot and return the top-N moiety sets by usage.

    Returns columns ``rank``, ``moiety_set``, ``usage_total``. Rows are ranked by
    total descending; ties and snapshots without totals keep file order.
    """
    if path is None:
        raise ReferenceDataUnavailable("ranked_usage", "no snapshot configured")
    path = Path(path)
    if not path.is_file():
        raise ReferenceDataUnavailable("ranked_usage", f"not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix in (".duckdb", ".db"):
            con = duckdb.connect(str(path), read_only=True)
            query = f"SELECT * FROM {RANKED_USAGE_TABLE}"
        else:
            con = duckdb.connect(":memory:")
            if suffix == ".parquet":
                query = f"SELECT * FROM read_parquet({_sql_literal(path)})"
            else:
                query = f"SELECT * FROM read_csv_auto({_sql_literal(path)}, header=true, all_varchar=true)"
        try:
            raw = con.execute(query).df()
        finally:
            con.close()
    except duckdb.Error as exc:
        raise ReferenceDataUnavailable("ranked_usage", str(exc)) from exc

    key_col = _first_present(raw.columns, ("tm_set", "ai_set", "moiety_set"))
    if key_col is None:
        raise ReferenceDataUnavailable("ranked_usage", "missing moiety set column (tm_set/ai_set/moiety_set)")
    total_col = _first_present(raw.columns, ("total", "usage_total"))

    ranked = pd.DataFrame(
        {
            "moiety_set": raw[key_col].fillna("").astype(str).str.strip(),
            "usage_total": pd.to_numeric(raw[total_col], errors="coerce") if total_col else float("nan"),
            "_order": range(len(raw)),
        }
    )
    ranked = ranked[ranked["moiety_set"] != ""]
    if total_col:
        ranked = ranked.sort_values(["usage_total", "_order"], ascending=[False, True], na_position="last")
    ranked = ranked.head(top_n).drop(columns="_order").reset_index(drop=True)
    ranked.insert(0, "rank", range(1, len(ranked) + 1))
    return ranked


__all__ = [
    "ACTIVE_MOIETIES",
    "COMPANIES",
    "CORRECTIONS",
    "DOSE_FORM_MAP",
    "DRUGS",
    "FORMS",
    "INGREDIENTS",
    "ROUTES",
    "TABLE_SPECS",
    "TableSpec",
    "column_key",
    "conform",
    "load_ranked_usage",
    "load_reference_tables",
    "load_table",
    "locate_inputs",
    "prepare_dose_form_map",
    "select_products",
]
