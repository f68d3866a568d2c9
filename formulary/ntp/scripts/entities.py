#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Manufactured product, NTP and TM tables derived from substance sets."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import pandas as pd

from ...errors import MISSING_MAPPING, SENTINEL_MOIETY, DataQualityReport
from ..constants import ACTIVE_STATUS, DISPLAY_JOINER, INACTIVE_STATUS, MAX_SIMPLE_AIS, SET_DELIMITER
from .interning import IdInterner
from .substance_sets import SET_COLUMNS, SubstanceSet, is_sentinel_moiety_set, substance_sets_frame

LOGGER = logging.getLogger(__name__)

DATE_FORMATS = ("%d-%b-%Y", "%Y-%m-%d", "%d/%m/%Y", "%Y%m%d")

PRODUCT_COLUMNS = [
    "drug_code",
    "din",
    "brand_name",
    "company_name",
    "pharm_form",
    "route_admin",
    "dose_form",
    "status",
    "status_effective_date",
    "ingredient_count",
    *SET_COLUMNS,
    "ntp_description",
]


def to_effective_date(values: pd.Series) -> pd.Series:
    """Parse DPD dates ('16-JAN-2017', ISO, d/m/Y) into 'YYYYMMDD'; unparseable -> ''."""
    text = values.fillna("").astype(str).str.strip()
    parsed = pd.Series(pd.NaT, index=text.index, dtype="datetime64[ns]")
    for fmt in DATE_FORMATS:
        missing = parsed.isna() & (text != "")
        if not missing.any():
            break
        parsed.loc[missing] = pd.to_datetime(text[missing], format=fmt, errors="coerce")
    return parsed.dt.strftime("%Y%m%d").fillna("")


def _earliest(values: pd.Series) -> str:
    present = [value for value in values if isinstance(value, str) and value]
    return min(present) if present else ""


def _status(values: pd.Series) -> str:
    return ACTIVE_STATUS if (values == ACTIVE_STATUS).any() else INACTIVE_STATUS


def ntp_description(mp_table_set: object, dose_form: object) -> Optional[str]:
    """'<lower display set> <dose form>'; None when either part is missing."""
    if not isinstance(mp_table_set, str) or not mp_table_set or not isinstance(dose_form, str) or not dose_form:
        return None
    return f"{mp_table_set.lower()} {dose_form}"


def mp_description(brand: object, mp_table_set: object, dose_form: object, company: object) -> str:
    """'<BRAND> [<lower display set> <dose form>] <COMPANY>', skipping missing parts."""
    def _text(value: object) -> str:
        return value.strip() if isinstance(value, str) else ""

    inner = " ".join(part for part in (_text(mp_table_set).lower(), _text(dose_form)) if part)
    return " ".join(part for part in (_text(brand), f"[{inner}]", _text(company)) if part)


def tm_description(moiety_set: str) -> str:
    return moiety_set.replace(SET_DELIMITER, DISPLAY_JOINER).lower()


def assemble_products(
    drugs: pd.DataFrame,
    companies: pd.DataFrame,
    dose_forms: pd.DataFrame,
    sets: Dict[str, SubstanceSet],
    report: Optional[DataQualityReport] = None,
) -> pd.DataFrame:
    """One row per product with dose form, status, effective date and serialized sets."""
    report = report if report is not None else DataQualityReport()
    products = drugs.copy()
    for col in ("status", "last_update_date", "number_of_ais"):
        if col not in products.columns:
            products[col] = ""
    products = products[["drug_code", "din", "brand_name", "status", "last_update_date", "number_of_ais"]]
    products = products.drop_duplicates("drug_code")
    company = companies[["drug_code", "company_name"]].drop_duplicates("drug_code")
    products = products.merge(company, on="drug_code", how="left")
    products = products.merge(
        dose_forms[["drug_code", "pharm_form", "route_admin", "dose_form"]], on="drug_code", how="left"
    )
    products = products.merge(substance_sets_frame(sets, report), on="drug_code", how="left")

    for drug_code in products.loc[products["substance_set"].isna(), "drug_code"]:
        report.record(MISSING_MAPPING, "ingredients", drug_code, "product has no active ingredients")

    declared = pd.to_numeric(products["number_of_ais"], errors="coerce")
    products["ingredient_count"] = declared.fillna(products["ingredient_count"]).fillna(0).astype(int)
    products["status"] = products["status"].fillna("").replace("", ACTIVE_STATUS).str.lower()
    products["status_effective_date"] = to_effective_date(products["last_update_date"])
    products["company_name"] = products["company_name"].fillna("")
    products["dose_form"] = pd.Series(
        [value if isinstance(value, str) else None for value in products["dose_form"]], index=products.index, dtype=object
    )
    products["ntp_description"] = [
        ntp_description(display, dose_form) for display, dose_form in zip(products["mp_table_set"], products["dose_form"])
    ]
    return products[PRODUCT_COLUMNS].sort_values("din", kind="stable").reset_index(drop=True)


def build_mp_table(products: pd.DataFrame) -> pd.DataFrame:
    """Manufactured products: '<BRAND> [<display set> <dose form>] <COMPANY>'."""
    mp = products.copy()
    mp["product_id"] = mp["din"]
    mp["formal_description"] = [
        mp_description(*values)
        for values in zip(mp["brand_name"], mp["mp_table_set"], mp["dose_form"], mp["company_name"])
    ]
    mp["locale_display_en"] = ""
    mp["locale_display_fr"] = ""
    return mp[
        [
            "product_id",
            "formal_description",
            "locale_display_en",
            "locale_display_fr",
            "status",
            "status_effective_date",
            "drug_code",
            "dose_form",
            "moiety_set",
        ]
    ].reset_index(drop=True)


NTP_COLUMNS = [
    "ntp_id",
    "formal_description",
    "locale_display_en",
    "locale_display_fr",
    "status",
    "status_effective_date",
    "strength_dosage_set",
    "dose_form",
    "n_dins",
    "greater_than_5_ais",
]


def build_ntp_table(products: pd.DataFrame, interner: Optional[IdInterner] = None) -> pd.DataFrame:
    """Group products by formal description, the key ids are interned on."""
    interner = interner if interner is not None else IdInterner()
    eligible = products[products["ntp_description"].notna() & products["strength_dosage_set"].notna()]
    if eligible.empty:
        return pd.DataFrame(columns=NTP_COLUMNS)
    ntp = (
        eligible.sort_values(["ntp_description", "strength_dosage_set", "dose_form"], kind="stable")
        .groupby("ntp_description", sort=True)
        .agg(
            strength_dosage_set=("strength_dosage_set", "first"),
            dose_form=("dose_form", "first"),
            n_dins=("din", "nunique"),
            status=("status", _status),
            greater_than_5_ais=("ingredient_count", lambda counts: bool((counts > MAX_SIMPLE_AIS).any())),
            status_effective_date=("status_effective_date", _earliest),
        )
        .reset_index()
        .rename(columns={"ntp_description": "formal_description"})
    )
    ids = interner.intern_all(ntp["formal_description"])
    ntp["ntp_id"] = ntp["formal_description"].map(ids)
    ntp["locale_display_en"] = ""
    ntp["locale_display_fr"] = ""
    return ntp[NTP_COLUMNS].sort_values("ntp_id", kind="stable").reset_index(drop=True)


TM_COLUMNS = [
    "tm_id",
    "formal_description",
    "locale_display_en",
    "locale_display_fr",
    "status",
    "status_effective_date",
    "moiety_set",
    "n_dins",
    "n_ntps",
]


def eligible_for_tm(products: pd.DataFrame, report: Optional[DataQualityReport] = None) -> pd.DataFrame:
    """Products with a moiety set that does not carry the unresolved-moiety sentinel."""
    with_set = products[products["moiety_set"].notna() & (products["moiety_set"] != "")]
    sentinel = with_set["moiety_set"].map(is_sentinel_moiety_set).astype(bool)
    if report is not None:
        for din, moiety_set in with_set.loc[sentinel, ["din", "moiety_set"]].itertuples(index=False, name=None):
            report.record(SENTINEL_MOIETY, "tm", din, moiety_set)
    return with_set[~sentinel]


def build_tm_table(
    products: pd.DataFrame,
    ntp: Optional[pd.DataFrame] = None,
    interner: Optional[IdInterner] = None,
    report: Optional[DataQualityReport] = None,
) -> pd.DataFrame:
    """Group products by moiety set, skipping sentinel sets, then intern ids."""
    interner = interner if interner is not None else IdInterner()
    eligible = eligible_for_tm(products, report)
    if eligible.empty:
        return pd.DataFrame(columns=TM_COLUMNS)
    if ntp is not None and not ntp.empty:
        eligible = eligible.merge(
            ntp[["formal_description", "ntp_id"]].rename(columns={"formal_description": "ntp_description"}),
            on="ntp_description",
            how="left",
        )
    else:
        eligible = eligible.assign(ntp_id=pd.NA)
    tm = (
        eligible.groupby("moiety_set", sort=True)
        .agg(
            n_dins=("din", "nunique"),
            n_ntps=("ntp_id", "nunique"),
            status=("status", _status),
            status_effective_date=("status_effective_date", _earliest),
        )
        .reset_index()
    )
    ids = interner.intern_all(tm["moiety_set"])
    tm["tm_id"] = tm["moiety_set"].map(ids)
    tm["formal_description"] = tm["moiety_set"].map(tm_description)
    tm["locale_display_en"] = ""
    tm["locale_display_fr"] = ""
    return tm[TM_COLUMNS].sort_values("tm_id", kind="stable").reset_index(drop=True)


__all__ = [
    "NTP_COLUMNS",
    "PRODUCT_COLUMNS",
    "TM_COLUMNS",
    "assemble_products",
    "build_mp_table",
    "build_ntp_table",
    "build_tm_table",
    "eligible_for_tm",
    "mp_description",
    "ntp_description",
    "tm_description",
    "to_effective_date",
]
