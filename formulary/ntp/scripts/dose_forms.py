#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Resolve DPD (pharmaceutical form, route) pairs to NTP dose forms."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

import pandas as pd

from ...errors import MISSING_MAPPING, DataQualityReport

LOGGER = logging.getLogger(__name__)


def normalize_form(form: object) -> str:
    """Upper-case and trim a pharmaceutical form or route token."""
    if form is None or (isinstance(form, float) and pd.isna(form)):
        return ""
    return str(form).upper().strip()


normalize_route = normalize_form


@dataclass(frozen=True)
class DoseFormMap:
    """Route-specific entries first, then entries keyed by form alone."""

    by_route: Mapping[Tuple[str, str], str]
    by_form: Mapping[str, str]

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "DoseFormMap":
        by_route: Dict[Tuple[str, str], str] = {}
        by_form: Dict[str, str] = {}
        for form, route, dose_form in zip(frame["pharm_form"], frame["route_admin"], frame["ntp_dose_form"]):
            form, route = normalize_form(form), normalize_route(route)
            dose_form = "" if dose_form is None else str(dose_form).strip()
            if not form or not dose_form:
                continue
            if route:
                by_route.setdefault((form, route), dose_form)
            else:
                by_form.setdefault(form, dose_form)
        return cls(MappingProxyType(by_route), MappingProxyType(by_form))

    def resolve(self, pharm_form: object, route_admin: object = None) -> Optional[str]:
        form, route = normalize_form(pharm_form), normalize_route(route_admin)
        if not form:
            return None
        if route and (form, route) in self.by_route:
            return self.by_route[(form, route)]
        return self.by_form.get(form)


def product_form_routes(products: pd.DataFrame, forms: pd.DataFrame, routes: pd.DataFrame) -> pd.DataFrame:
    """Every (form, route) combination per product; products without either keep blanks."""
    base = products[["drug_code"]].drop_duplicates()
    combos = base.merge(forms[["drug_code", "pharm_form"]], on="drug_code", how="left")
    combos = combos.merge(routes[["drug_code", "route_admin"]], on="drug_code", how="left")
    combos["pharm_form"] = combos["pharm_form"].map(normalize_form)
    combos["route_admin"] = combos["route_admin"].map(normalize_route)
    return combos.drop_duplicates().reset_index(drop=True)


def resolve_dose_forms(
    products: pd.DataFrame,
    forms: pd.DataFrame,
    routes: pd.DataFrame,
    dose_form_map: DoseFormMap,
    report: Optional[DataQualityReport] = None,
) -> pd.DataFrame:
    """One row per drug_code with pharm_form, route_admin and dose_form (None when unmatched).

    Combinations are tried in sorted (form, route) order and the first one that
    resolves wins.
    """
    report = report if report is not None else DataQualityReport()
    combos = product_form_routes(products, forms, routes)
    combos["dose_form"] = [
        dose_form_map.resolve(form, route) for form, route in zip(combos["pharm_form"], combos["route_admin"])
    ]
    combos["_unresolved"] = combos["dose_form"].isna()
    combos = combos.sort_values(["drug_code", "_unresolved", "pharm_form", "route_admin"], kind="stable")

    ambiguous = combos.dropna(subset=["dose_form"]).groupby("drug_code")["dose_form"].nunique()
    ambiguous = ambiguous[ambiguous > 1]
    if not ambiguous.empty:
        LOGGER.info("%s products resolve to more than one dose form; kept the first", f"{len(ambiguous):,}")

    chosen = combos.drop_duplicates("drug_code", keep="first").drop(columns="_unresolved")
    chosen["dose_form"] = pd.Series(
        [value if isinstance(value, str) else None for value in chosen["dose_form"]], index=chosen.index, dtype=object
    )
    for drug_code, form, route in chosen.loc[chosen["dose_form"].isna(), ["drug_code", "pharm_form", "route_admin"]].itertuples(
        index=False, name=None
    ):
        report.record(MISSING_MAPPING, "dose_form", drug_code, f"{form or '-'} / {route or '-'}")
    return chosen.reset_index(drop=True)


def form_route_coverage(combos: pd.DataFrame, dose_form_map: DoseFormMap) -> pd.DataFrame:
    """Per (form, route) pair: number of products and the dose form it resolves to."""
    if combos.empty:
        return pd.DataFrame(columns=["pharm_form", "route_admin", "ntp_dose_form", "n_dins"])
    coverage = (
        combos.groupby(["pharm_form", "route_admin"], dropna=False)["drug_code"]
        .nunique()
        .rename("n_dins")
        .reset_index()
    )
    coverage.insert(
        2,
        "ntp_dose_form",
        [dose_form_map.resolve(form, route) or "" for form, route in zip(coverage["pharm_form"], coverage["route_admin"])],
    )
    return coverage.sort_values(["n_dins", "pharm_form", "route_admin"], ascending=[False, True, True]).reset_index(
        drop=True
    )


__all__ = [
    "DoseFormMap",
    "form_route_coverage",
    "normalize_form",
    "normalize_route",
    "product_form_routes",
    "resolve_dose_forms",
]
