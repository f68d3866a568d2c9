#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""Restrict the terminology tables to the top-N moiety sets by usage."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

LOGGER = logging.getLogger(__name__)


@dataclass
class PriorityTables:
    matched: pd.DataFrame
    unmatched: pd.DataFrame
    mp: pd.DataFrame
    ntp: pd.DataFrame
    tm: pd.DataFrame
    mapping: pd.DataFrame


def partition_ranked(ranked: pd.DataFrame, tm: pd.DataFrame) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Split ranked moiety sets into (matched, unmatched) against the TM table."""
    known = ranked["moiety_set"].isin(tm["moiety_set"])
    return ranked[known].reset_index(drop=True), ranked[~known].reset_index(drop=True)


def apply_priority_filter(
    ranked: pd.DataFrame,
    mp: pd.DataFrame,
    ntp: pd.DataFrame,
    tm: pd.DataFrame,
    mapping: pd.DataFrame,
) -> PriorityTables:
    """Semi-join every table on the matched moiety sets; unmatched ranks are reported."""
    matched, unmatched = partition_ranked(ranked, tm)
    keep = set(matched["moiety_set"])
    mapping_top = mapping[mapping["moiety_set"].isin(keep)].reset_index(drop=True)
    ntp_ids = set(mapping_top["ntp_id"].dropna())
    ntp_top = ntp[ntp["ntp_id"].isin(ntp_ids)].drop_duplicates().reset_index(drop=True)
    tm_top = tm[tm["moiety_set"].isin(keep)].reset_index(drop=True)
    mp_top = mp[mp["moiety_set"].isin(keep)].reset_index(drop=True)
    if not unmatched.empty:
        LOGGER.warning(
            "%s of %s ranked moiety sets have no TM entity (see top-N NA report)",
            f"{len(unmatched):,}",
            f"{len(ranked):,}",
        )
    return PriorityTables(
        matched=matched,
        unmatched=unmatched,
        mp=mp_top,
        ntp=ntp_top,
        tm=tm_top,
        mapping=mapping_top,
    )


__all__ = ["PriorityTables", "apply_priority_filter", "partition_ranked"]
