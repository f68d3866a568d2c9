#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Regression tests for ingredient name canonicalization."""

import pandas as pd
import pytest

from formulary.errors import MALFORMED_NAME, MISSING_MAPPING, DataQualityReport
from formulary.ntp.scripts.ingredients import (
    canonical_names,
    canonicalize_ingredients,
    malformation,
    normalize_ingredient_name,
    split_ingredient_name,
    strength_label,
)


def _ingredients(rows) -> pd.DataFrame:
    return pd.DataFrame(
        rows,
        columns=["drug_code", "ingredient_code", "ingredient", "strength", "strength_unit"],
        dtype=object,
    )


def test_salt_variants_of_one_code_share_basis_and_precise_name() -> None:
    canonical = canonicalize_ingredients(
        _ingredients(
            [
                ("1", "100", "IBUPROFEN", "200", "MG"),
                ("2", "100", "Ibuprofen (as sodium)", "200", "MG"),
            ]
        )
    )

    assert set(canonical["basis_of_strength_name"]) == {"IBUPROFEN"}
    assert set(canonical["precise_name"]) == {"AS SODIUM"}
    assert set(canonical["strength_with_unit"]) == {"200 MG"}


def test_name_without_qualifier_falls_back_to_basis() -> None:
    assert canonical_names(["ACETAMINOPHEN"]) == ("ACETAMINOPHEN", "ACETAMINOPHEN")


def test_distinct_qualifiers_are_joined() -> None:
    basis, precise = canonical_names(["ZINC (ZINC OXIDE)", "ZINC (ZINC SULFATE)", "ZINC (ZINC OXIDE)"])
    assert basis == "ZINC"
    assert precise == "ZINC OXIDE|ZINC SULFATE"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("AMOXICILLIN (AMOXICILLIN TRIHYDRATE)", ("AMOXICILLIN", "AMOXICILLIN TRIHYDRATE")),
        ("CODEINE (CODEINE PHOSPHATE)", ("CODEINE", "CODEINE PHOSPHATE")),
        ("ACETAMINOPHEN", ("ACETAMINOPHEN", None)),
        # Unparenthesized salt forms cannot be split; the correction table handles them.
        ("IBUPROFEN SODIUM", ("IBUPROFEN SODIUM", None)),
    ],
)
def test_split_ingredient_name(name: str, expected) -> None:
    assert split_ingredient_name(name) == expected


@pytest.mark.parametrize(
    "name, problem",
    [
        ("", "empty ingredient name"),
        ("ZINC (OXIDE", "unbalanced parentheses"),
        ("ZINC (OXIDE) CREAM", "qualifier is not at the end of the name"),
        ("(OXIDE)", "no basis name before qualifier"),
        ("ZINC OXIDE", None),
    ],
)
def test_malformation(name: str, problem) -> None:
    assert malformation(name) == problem


def test_delimiter_in_raw_name_is_replaced_and_reported() -> None:
    report = DataQualityReport()
    canonical = canonicalize_ingredients(
        _ingredients(
            [
                ("1", "100", "SODIUM!CHLORIDE", "9", "MG"),
                ("1", "101", "", "1", "MG"),
            ]
        ),
        report,
    )

    assert list(canonical["ingredient"]) == ["SODIUM CHLORIDE"]
    assert report.count(MALFORMED_NAME) == 2
    assert "!" not in "".join(canonical["precise_name"])


def test_normalize_ingredient_name_collapses_whitespace() -> None:
    assert normalize_ingredient_name("  codeine   (codeine\tphosphate) ") == "CODEINE (CODEINE PHOSPHATE)"
    assert normalize_ingredient_name(None) == ""


@pytest.mark.parametrize(
    "values, expected",
    [
        (("500", "MG", "", ""), "500 MG"),
        (("5", "MG", "5", "ML"), "5 MG per 5 ML"),
        (("5", "mg", "5", "ml"), "5 MG per 5 ML"),
        (("200", "MG!", "", ""), "200 MG"),
        ((float("nan"), None, "", ""), ""),
    ],
)
def test_strength_label(values, expected: str) -> None:
    assert strength_label(*values) == expected


def test_rows_without_ingredient_code_are_pooled_by_name() -> None:
    report = DataQualityReport()
    canonical = canonicalize_ingredients(
        _ingredients(
            [
                ("1", "", "IBUPROFEN", "200", "MG"),
                ("2", "", "ACETAMINOPHEN (ACETAMINOPHEN HCL)", "500", "MG"),
            ]
        ),
        report,
    )

    pairs = dict(zip(canonical["drug_code"], zip(canonical["basis_of_strength_name"], canonical["precise_name"])))
    assert pairs == {
        "1": ("IBUPROFEN", "IBUPROFEN"),
        "2": ("ACETAMINOPHEN", "ACETAMINOPHEN HCL"),
    }
    assert report.count(MISSING_MAPPING, "ingredients") == 2


def test_delimiter_in_strength_unit_is_replaced_and_reported() -> None:
    report = DataQualityReport()
    canonical = canonicalize_ingredients(_ingredients([("1", "100", "IBUPROFEN", "200", "MG!")]), report)

    assert list(canonical["strength_with_unit"]) == ["200 MG"]
    assert report.count(MALFORMED_NAME, "ingredients") == 1
