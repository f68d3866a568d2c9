#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""NTP generation pipeline implementation."""

from .pipeline import NtpGenerationPipeline

__all__ = ["NtpGenerationPipeline"]
