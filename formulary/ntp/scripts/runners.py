#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Stage runners for the NTP generation pipeline.

``build_terminology`` chains canonicalization, corrections, dose forms,
substance sets, entity tables and the mapping table over an in-memory
snapshot. ``write_terminology`` and ``run_priority_stage`` persist results;
the priority stage runs last so the full tables are already on disk when the
ranked-usage feed turns out to be unavailable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

import pandas as pd

from ...errors import MALFORMED_NAME, MISSING_MAPPING, SENTINEL_MOIETY, DataQualityReport
from ...utils import dated_name
from ..constants import DEFAULT_TOP_N
from .corrections import CorrectionTables, apply_corrections
from .dose_forms import DoseFormMap, form_route_coverage, product_form_routes, resolve_dose_forms
from .entities import assemble_products, build_mp_table, build_ntp_table, build_tm_table
from .ingredients import canonicalize_ingredients
from .interning import IdInterner
from .io_utils import write_table
from .mapping import build_mapping_table
from .priority import PriorityTables, apply_priority_filter
from .reference_data import load_ranked_usage
from .substance_sets import SubstanceSet, aggregate_substance_sets

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
StageRunner = Callable[[str, Callable[[], T]], T]


def _run_inline(label: str, func: Callable[[], T]) -> T:
    return func()


@dataclass
class TerminologyTables:
    canonical_ingredients: pd.DataFrame
    substance_sets: Dict[str, SubstanceSet]
    products: pd.DataFrame
    mp: pd.DataFrame
    ntp: pd.DataFrame
    tm: pd.DataFrame
    mapping: pd.DataFrame
    form_route_coverage: pd.DataFrame
    report: DataQualityReport
    ntp_ids: IdInterner
    tm_ids: IdInterner
    priority: Optional[PriorityTables] = None
    written: Dict[str, Path] = field(default_factory=dict)


def build_terminology(
    tables: Dict[str, pd.DataFrame],
    *,
    ntp_ids: Optional[IdInterner] = None,
    tm_ids: Optional[IdInterner] = None,
    report: Optional[DataQualityReport] = None,
    run_stage: StageRunner = _run_inline,
) -> TerminologyTables:
    """Run stages 1-6 over loaded reference tables."""
    report = report if report is not None else DataQualityReport()
    ntp_ids = ntp_ids if ntp_ids is not None else IdInterner()
    tm_ids = tm_ids if tm_ids is not None else IdInterner()
    corrections = CorrectionTables.from_frames(tables.get("corrections"), tables["active_moieties"], report)
    dose_form_map = DoseFormMap.from_frame(tables["dose_form_map"])
    drugs = tables["drugs"]

    canonical = run_stage(
        "Canonicalize ingredients",
        lambda: canonicalize_ingredients(tables["ingredients"], report),
    )
    corrected = run_stage(
        "Apply corrections",
        lambda: apply_corrections(canonical, corrections, report),
    )
    dose_forms = run_stage(
        "Resolve dose forms",
        lambda: resolve_dose_forms(drugs, tables["forms"], tables["routes"], dose_form_map, report),
    )
    coverage = form_route_coverage(product_form_routes(drugs, tables["forms"], tables["routes"]), dose_form_map)
    sets = run_stage("Aggregate substance sets", lambda: aggregate_substance_sets(corrected))
    products = run_stage(
        "Assemble products",
        lambda: assemble_products(drugs, tables["companies"], dose_forms, sets, report),
    )
    mp = run_stage("Build MP table", lambda: build_mp_table(products))
    ntp = run_stage("Build NTP table", lambda: build_ntp_table(products, ntp_ids))
    tm = run_stage("Build TM table", lambda: build_tm_table(products, ntp, tm_ids, report))
    mapping = run_stage("Build mapping table", lambda: build_mapping_table(products, ntp, tm))

    return TerminologyTables(
        canonical_ingredients=corrected,
        substance_sets=sets,
        products=products,
        mp=mp,
        ntp=ntp,
        tm=tm,
        mapping=mapping,
        form_route_coverage=coverage,
        report=report,
        ntp_ids=ntp_ids,
        tm_ids=tm_ids,
    )


def write_terminology(
    result: TerminologyTables,
    outputs_dir: Path,
    *,
    parquet: bool = False,
) -> Dict[str, Path]:
    """Write the unfiltered tables, id registries and data quality reports."""
    outputs_dir = Path(outputs_dir)
    written = {
        "mp_table": write_table(result.mp, outputs_dir, "mp_table.csv", table="mp_table", parquet=parquet),
        "ntp_table": write_table(result.ntp, outputs_dir, "ntp_table.csv", table="ntp_table", parquet=parquet),
        "tm_table": write_table(result.tm, outputs_dir, "tm_table.csv", table="tm_table", parquet=parquet),
        "mapping_table": write_table(
            result.mapping, outputs_dir, "mapping_table.csv", table="mapping_table", parquet=parquet
        ),
        "form_route_coverage": write_table(result.form_route_coverage, outputs_dir, "form_route_coverage.csv"),
        "data_quality": write_table(result.report.to_frame(), outputs_dir, "data_quality.csv"),
        "ntp_id_registry": result.ntp_ids.save(outputs_dir / "ntp_id_registry.csv"),
        "tm_id_registry": result.tm_ids.save(outputs_dir / "tm_id_registry.csv"),
    }
    result.written.update(written)
    return written


def run_priority_stage(
    result: TerminologyTables,
    ranked_usage: Optional[Path],
    outputs_dir: Path,
    *,
    top_n: int = DEFAULT_TOP_N,
    run_date: str = "",
    parquet: bool = False,
) -> PriorityTables:
    """Filter to the top-N moiety sets and write the filtered tables.

    Raises ReferenceDataUnavailable when the ranked-usage snapshot cannot be read.
    """
    ranked = load_ranked_usage(ranked_usage, top_n=top_n)
    priority = apply_priority_filter(ranked, result.mp, result.ntp, result.tm, result.mapping)
    result.priority = priority

    suffix = f"top{top_n}"
    outputs_dir = Path(outputs_dir)
    for name, frame in (
        ("mp_table", priority.mp),
        ("tm_table", priority.tm),
        ("ntp_table", priority.ntp),
        ("mapping_table", priority.mapping),
    ):
        result.written[f"{name}_{suffix}"] = write_table(
            frame, outputs_dir, dated_name(f"{name}_{suffix}", run_date), table=name, parquet=parquet
        )
    result.written[f"{suffix}_NAs"] = write_table(priority.unmatched, outputs_dir, f"{suffix}_NAs.csv")
    return priority


def print_summary(result: TerminologyTables) -> None:
    """Console summary of table sizes and excluded records."""
    report = result.report
    print(f"\nNTP generation complete: {len(result.products):,} products")
    print(f"  MP rows: {len(result.mp):,}")
    print(f"  NTP rows: {len(result.ntp):,}")
    print(f"  TM rows: {len(result.tm):,}")
    print(f"  Mapping rows: {len(result.mapping):,}")
    print(f"  Missing dose form: {report.count(MISSING_MAPPING, 'dose_form'):,}")
    print(f"  Missing moiety: {report.count(MISSING_MAPPING, 'moiety'):,}")
    print(f"  Sentinel moiety sets excluded: {report.count(SENTINEL_MOIETY):,}")
    print(f"  Malformed ingredient names: {report.count(MALFORMED_NAME):,}")
    if result.priority is not None:
        print(f"  Ranked moiety sets matched: {len(result.priority.matched):,}")
        print(f"  Ranked moiety sets without TM: {len(result.priority.unmatched):,}")


__all__ = [
    "TerminologyTables",
    "build_terminology",
    "print_summary",
    "run_priority_stage",
    "write_terminology",
]
