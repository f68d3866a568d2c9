#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Dose form resolution from (pharmaceutical form, route) pairs."""

import pandas as pd
import pytest

from formulary.errors import MISSING_MAPPING, DataQualityReport
from formulary.ntp.scripts.dose_forms import (
    DoseFormMap,
    form_route_coverage,
    product_form_routes,
    resolve_dose_forms,
)

DOSE_FORM_MAP = DoseFormMap.from_frame(
    pd.DataFrame(
        [
            ("TABLET", "", "oral tablet"),
            ("SOLUTION", "INTRAVENOUS", "solution for injection"),
            ("SOLUTION", "", "oral solution"),
        ],
        columns=["pharm_form", "route_admin", "ntp_dose_form"],
    )
)


@pytest.mark.parametrize(
    "form, route, expected",
    [
        ("tablet", "ORAL", "oral tablet"),
        ("SOLUTION", "INTRAVENOUS", "solution for injection"),
        ("SOLUTION", "ORAL", "oral solution"),
        ("POWDER", "ORAL", None),
        ("", "ORAL", None),
    ],
)
def test_dose_form_map_prefers_route_specific_entries(form: str, route: str, expected) -> None:
    assert DOSE_FORM_MAP.resolve(form, route) == expected


def _frames():
    products = pd.DataFrame({"drug_code": ["1", "2", "3", "4"]})
    forms = pd.DataFrame(
        {"drug_code": ["1", "2", "3", "4"], "pharm_form": ["TABLET", "SOLUTION", "POWDER", "SOLUTION"]}
    )
    routes = pd.DataFrame(
        {
            "drug_code": ["1", "2", "3", "4", "4"],
            "route_admin": ["ORAL", "INTRAVENOUS", "ORAL", "ORAL", "INTRAVENOUS"],
        }
    )
    return products, forms, routes


def test_resolve_dose_forms_one_row_per_product() -> None:
    report = DataQualityReport()
    resolved = resolve_dose_forms(*_frames(), DOSE_FORM_MAP, report)

    by_code = dict(zip(resolved["drug_code"], resolved["dose_form"]))
    assert by_code == {
        "1": "oral tablet",
        "2": "solution for injection",
        "3": None,
        # Both routes resolve; the first in sorted order wins.
        "4": "solution for injection",
    }
    assert report.count(MISSING_MAPPING, "dose_form") == 1
    assert resolved["dose_form"].dtype == object
    assert by_code["3"] is None


def test_form_route_coverage_counts_products() -> None:
    products, forms, routes = _frames()
    coverage = form_route_coverage(product_form_routes(products, forms, routes), DOSE_FORM_MAP)

    row = coverage[(coverage["pharm_form"] == "SOLUTION") & (coverage["route_admin"] == "INTRAVENOUS")].iloc[0]
    assert row["n_dins"] == 2
    assert row["ntp_dose_form"] == "solution for injection"
    powder = coverage[coverage["pharm_form"] == "POWDER"].iloc[0]
    assert powder["ntp_dose_form"] == ""
