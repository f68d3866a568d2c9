#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Exports convenience aliases for NtpGeneration pipeline modules."""

from .reference_data import load_ranked_usage, load_reference_tables
from .runners import build_terminology, run_priority_stage, write_terminology

__all__ = [
    "build_terminology",
    "load_ranked_usage",
    "load_reference_tables",
    "run_priority_stage",
    "write_terminology",
]
