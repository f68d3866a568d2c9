#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Product -> NTP -> TM cross-reference table."""

from __future__ import annotations

from typing import Optional

import pandas as pd

from ...errors import DataQualityReport
from .entities import eligible_for_tm

MAPPING_COLUMNS = [
    "product_id",
    "dose_form",
    "ntp_description",
    "ntp_id",
    "moiety_set",
    "tm_description",
    "tm_id",
]


def build_mapping_table(
    products: pd.DataFrame,
    ntp: pd.DataFrame,
    tm: pd.DataFrame,
    report: Optional[DataQualityReport] = None,
) -> pd.DataFrame:
    """Join each product with a resolved moiety set to its TM and (when it has one) NTP."""
    eligible = eligible_for_tm(products, report)
    if eligible.empty:
        return pd.DataFrame(columns=MAPPING_COLUMNS)

    tm_keys = tm[["moiety_set", "formal_description", "tm_id"]].rename(
        columns={"formal_description": "tm_description"}
    )
    ntp_keys = ntp[["formal_description", "ntp_id"]].rename(
        columns={"formal_description": "ntp_description"}
    )
    mapped = eligible.merge(tm_keys, on="moiety_set", how="left")
    mapped = mapped.merge(ntp_keys, on="ntp_description", how="left")
    mapped["product_id"] = mapped["din"]
    mapped["ntp_id"] = pd.to_numeric(mapped["ntp_id"], errors="coerce").astype("Int64")
    mapped["tm_id"] = pd.to_numeric(mapped["tm_id"], errors="coerce").astype("Int64")
    return mapped[MAPPING_COLUMNS].drop_duplicates().sort_values("product_id", kind="stable").reset_index(drop=True)


__all__ = ["MAPPING_COLUMNS", "build_mapping_table"]
