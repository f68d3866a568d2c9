#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Utility helpers shared across pipeline runner entry points."""

from __future__ import annotations

import re


def dated_name(stem: str, run_date: str, suffix: str = ".csv") -> str:
    """Build an export filename like 'tm_table_top250_20170118.csv'."""
    token = re.sub(r"[^0-9]", "", run_date or "")
    if not token:
        return f"{stem}{suffix}"
    return f"{stem}_{token}{suffix}"


__all__ = ["dated_name"]
