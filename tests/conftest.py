#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Shared DPD-shaped fixtures: six products covering single and combination
ingredients, an unresolved moiety and the acyclovir sodium special case."""

from __future__ import annotations

from pathlib import Path
from typing import Dict

import pandas as pd
import pytest

DRUG_ROWS = [
    # drug_code, din, brand_name, class, number_of_ais, last_update_date, status
    ("1", "00000001", "ADVIL", "Human", "1", "2017-01-16", "active"),
    ("2", "00000002", "MOTRIN", "Human", "1", "2016-03-01", "active"),
    ("3", "00000003", "TYLENOL 3", "Human", "2", "2015-05-05", "active"),
    ("4", "00000004", "EMTEC", "Human", "2", "2014-04-04", "active"),
    ("5", "00000005", "MYSTERY", "Human", "1", "2013-03-03", "active"),
    ("6", "00000006", "ZOVIRAX", "Human", "1", "2012-02-02", "active"),
    ("7", "00000007", "DOGGO", "Veterinary", "1", "2012-02-02", "active"),
]

INGREDIENT_ROWS = [
    # drug_code, ingredient_code, ingredient, strength, strength_unit, dosage_value, dosage_unit
    ("1", "100", "IBUPROFEN", "200", "MG", "", ""),
    ("2", "100", "IBUPROFEN", "200", "MG", "", ""),
    ("3", "200", "ACETAMINOPHEN", "300", "MG", "", ""),
    ("3", "300", "CODEINE (CODEINE PHOSPHATE)", "30", "MG", "", ""),
    ("4", "300", "CODEINE (CODEINE PHOSPHATE)", "30", "MG", "", ""),
    ("4", "200", "ACETAMINOPHEN", "300", "MG", "", ""),
    ("5", "400", "UNOBTAINIUM", "10", "MG", "", ""),
    ("6", "500", "ACYCLOVIR (ACYCLOVIR SODIUM)", "500", "MG", "", ""),
    ("7", "100", "IBUPROFEN", "50", "MG", "", ""),
]

COMPANY_ROWS = [
    ("1", "PFIZER"),
    ("2", "JOHNSON"),
    ("3", "JANSSEN"),
    ("4", "TEVA"),
    ("5", "ACME"),
    ("6", "GSK"),
    ("7", "VETCO"),
]

FORM_ROWS = [(code, "TABLET") for code in ("1", "2", "3", "4", "5", "7")] + [("6", "POWDER FOR SOLUTION")]
ROUTE_ROWS = [(code, "ORAL") for code in ("1", "2", "3", "4", "5", "7")] + [("6", "INTRAVENOUS")]

MOIETY_ROWS = [
    # precise name, moiety, ai unii, am unii
    ("IBUPROFEN", "IBUPROFEN", "WK2XYI10QM", "WK2XYI10QM"),
    ("ACETAMINOPHEN", "ACETAMINOPHEN", "362O9ITL9D", "362O9ITL9D"),
    ("CODEINE PHOSPHATE", "CODEINE", "GSL05Y1MN6", "UX6OWY2V7J"),
]

DOSE_FORM_ROWS = [
    # pharm_form, route_admin, ntp_dose_form
    ("TABLET", "", "oral tablet"),
    ("POWDER FOR SOLUTION", "INTRAVENOUS", "powder for solution for injection"),
]


def _frame(rows, columns) -> pd.DataFrame:
    return pd.DataFrame(list(rows), columns=columns, dtype=object)


@pytest.fixture
def reference_tables() -> Dict[str, pd.DataFrame]:
    """Tables shaped like load_reference_tables output (human, active products only)."""
    drugs = _frame(
        [row for row in DRUG_ROWS if row[3] == "Human"],
        ["drug_code", "din", "brand_name", "drug_class", "number_of_ais", "last_update_date", "status"],
    )
    ingredients = _frame(
        [row for row in INGREDIENT_ROWS if row[0] in set(drugs["drug_code"])],
        ["drug_code", "ingredient_code", "ingredient", "strength", "strength_unit", "dosage_value", "dosage_unit"],
    )
    return {
        "drugs": drugs,
        "ingredients": ingredients,
        "companies": _frame(COMPANY_ROWS, ["drug_code", "company_name"]),
        "routes": _frame(ROUTE_ROWS, ["drug_code", "route_admin"]),
        "forms": _frame(FORM_ROWS, ["drug_code", "pharm_form"]),
        "corrections": _frame([], ["source_key", "override_value", "moiety_override_key", "moiety_override_value"]),
        "active_moieties": _frame(MOIETY_ROWS, ["precise_name", "moiety_name", "ai_unii", "am_unii"]),
        "dose_form_map": _frame(DOSE_FORM_ROWS, ["pharm_form", "route_admin", "ntp_dose_form"]),
    }


def write_dpd_snapshot(inputs_dir: Path) -> Path:
    """Write the fixture rows as CSV extracts using the raw DPD / FDA headers."""
    inputs_dir.mkdir(parents=True, exist_ok=True)
    _frame(
        DRUG_ROWS,
        ["DRUG_CODE", "DRUG_IDENTIFICATION_NUMBER", "BRAND_NAME", "CLASS", "NUMBER_OF_AIS", "LAST_UPDATE_DATE", "extract"],
    ).to_csv(inputs_dir / "drug.csv", index=False)
    _frame(
        INGREDIENT_ROWS,
        [
            "DRUG_CODE",
            "ACTIVE_INGREDIENT_CODE",
            "INGREDIENT",
            "STRENGTH",
            "STRENGTH_UNIT",
            "DOSAGE_VALUE",
            "DOSAGE_UNIT",
        ],
    ).to_csv(inputs_dir / "ingred.csv", index=False)
    _frame(COMPANY_ROWS, ["DRUG_CODE", "COMPANY_NAME"]).to_csv(inputs_dir / "comp.csv", index=False)
    _frame(ROUTE_ROWS, ["DRUG_CODE", "ROUTE_OF_ADMINISTRATION"]).to_csv(inputs_dir / "route.csv", index=False)
    _frame(FORM_ROWS, ["DRUG_CODE", "PHARMACEUTICAL_FORM"]).to_csv(inputs_dir / "form.csv", index=False)
    _frame(MOIETY_ROWS, ["Active Ingredient", "Active Moiety", "AI UNII", "AM UNII"]).to_csv(
        inputs_dir / "ai_am_bos.csv", index=False
    )
    _frame(
        [
            ("TABLET", "", "oral tablet"),
            ("POWDER FOR SOLUTION", "POWDER FOR SOLUTION (INTRAVENOUS)", "powder for solution for injection"),
        ],
        ["DPD PHARMACEUTICAL_FORM", "V4", "NTP Formal Name Dose form"],
    ).to_csv(inputs_dir / "ntp_doseform_map.csv", index=False)
    return inputs_dir


def write_ranked_usage(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    _frame(
        [("ACETAMINOPHEN!CODEINE", "80"), ("IBUPROFEN", "100"), ("METFORMIN", "50")],
        ["tm_set", "total"],
    ).to_csv(path, index=False)
    return path


@pytest.fixture
def dpd_snapshot(tmp_path: Path) -> Path:
    return write_dpd_snapshot(tmp_path / "inputs")


@pytest.fixture
def ranked_usage_csv(tmp_path: Path) -> Path:
    return write_ranked_usage(tmp_path / "usage" / "rx_retail_usage.csv")
