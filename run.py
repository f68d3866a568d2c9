#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
run.py: NTP generation pipeline with per-stage timing.

Console behavior:
  • Log lines go to stderr; the table summary and grouped timing summary go to stdout.
  • A ranked-usage snapshot that cannot be read still leaves the full tables on
    disk; the process then exits with status 2.

File outputs (under ./outputs/ntp unless --outputs is given):
  • mp_table.csv, ntp_table.csv, tm_table.csv, mapping_table.csv
  • *_top{N}_{YYYYMMDD}.csv and top{N}_NAs.csv when --ranked-usage is supplied
  • form_route_coverage.csv, data_quality.csv, ntp_id_registry.csv, tm_id_registry.csv
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from formulary import PIPELINE_REGISTRY, PipelineContext, PipelineOptions, PipelineRunParams, get_pipeline
from formulary.ntp.constants import (
    DEFAULT_TOP_N,
    PIPELINE_CODE,
    PIPELINE_INPUTS_DIR,
    PIPELINE_OUTPUTS_DIR,
)

THIS_DIR: Path = Path(__file__).resolve().parent

LOGGER = logging.getLogger("formulary.run")

# ----------------------------
# Utilities
# ----------------------------
def _resolve_input_path(p: str | os.PathLike[str], default_dir: Path = PIPELINE_INPUTS_DIR) -> Path:
    """Resolve user-provided paths, falling back to ./inputs/ntp/{filename} when relative."""
    if not p:
        raise FileNotFoundError("No input path provided.")
    pth = Path(p)
    if pth.exists():
        return pth
    candidate = default_dir / pth.name
    if candidate.exists():
        return candidate
    raise FileNotFoundError(
        f"Input not found: {pth!s}. "
        f"Tried: {pth.resolve()!s} and {candidate!s}."
    )

def _ensure_dir(path: Path) -> Path:
    """Create the directory tree when missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path

# ----------------------------
# Timing aggregation
# ----------------------------
GROUP_DEFINITIONS: list[tuple[str, tuple[str, ...]]] = [
    (
        "Data Loading",
        (
            "Locate inputs",
            "Load reference data",
        ),
    ),
    (
        "Canonicalization",
        (
            "Canonicalize ingredients",
            "Apply corrections",
            "Resolve dose forms",
        ),
    ),
    (
        "Entity Tables",
        (
            "Aggregate substance sets",
            "Assemble products",
            "Build MP table",
            "Build NTP table",
            "Build TM table",
            "Build mapping table",
        ),
    ),
    (
        "Outputs",
        (
            "Write tables",
            "Priority filter",
        ),
    ),
]

STEP_TO_GROUP: dict[str, str] = {}
GROUP_ORDER: list[str] = []
for group_name, step_names in GROUP_DEFINITIONS:
    GROUP_ORDER.append(group_name)
    for step in step_names:
        STEP_TO_GROUP[step] = group_name

DEFAULT_GROUP = "Other"

class TimingCollector:
    """Accumulate per-step timings and expose grouped rollups for summary output."""
    def __init__(self) -> None:
        self._entries: list[tuple[str, float]] = []

    def add(self, label: str, seconds: float) -> None:
        self._entries.append((label, seconds))

    @property
    def entries(self) -> list[tuple[str, float]]:
        return list(self._entries)

    def grouped_totals(self) -> dict[str, float]:
        """Roll up timings by high-level group, preserving the predefined order."""
        totals: dict[str, float] = {group: 0.0 for group in GROUP_ORDER}
        other_total = 0.0
        for label, seconds in self._entries:
            group = STEP_TO_GROUP.get(label)
            if group:
                totals[group] += seconds
            else:
                other_total += seconds
        if other_total > 0.0:
            totals[DEFAULT_GROUP] = totals.get(DEFAULT_GROUP, 0.0) + other_total
        return totals

    def total(self) -> float:
        return sum(seconds for _, seconds in self._entries)

def _print_grouped_summary(timings: TimingCollector) -> None:
    """Render grouped timing totals to stdout in a compact report."""
    totals = timings.grouped_totals()
    non_zero = [(group, secs) for group, secs in totals.items() if secs > 0.0]
    if not non_zero:
        return
    label_width = max(len(group) for group, _ in non_zero)
    print("\n=== Timing Summary ===")
    for group, secs in non_zero:
        print(f"• {group:<{label_width}} {secs:9.2f}s")
    print("-" * (label_width + 16))
    padding = max(label_width - len("Total"), 0)
    print(f"• Total{'':<{padding}} {timings.total():9.2f}s")

# ----------------------------
# Main entry
# ----------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate MP / NTP / TM terminology tables from a DPD extract.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--inputs", default=str(PIPELINE_INPUTS_DIR), help="Directory holding the DPD extract tables")
    parser.add_argument("--outputs", default=str(PIPELINE_OUTPUTS_DIR), help="Directory receiving the output tables")
    parser.add_argument(
        "--ranked-usage",
        default=None,
        help="Ranked-usage snapshot (CSV, Parquet or DuckDB database); omit to skip the priority filter",
    )
    parser.add_argument("--top-n", type=int, default=DEFAULT_TOP_N, help="Number of ranked moiety sets to keep")
    parser.add_argument("--include-inactive", action="store_true", help="Keep products whose status is not active")
    parser.add_argument("--parquet", action="store_true", help="Also write Parquet copies of every output table")
    parser.add_argument("--ntp-registry", default=None, help="Existing NTP id registry CSV to keep ids stable across runs")
    parser.add_argument("--tm-registry", default=None, help="Existing TM id registry CSV to keep ids stable across runs")
    parser.add_argument("--run-date", default=None, help="Date token (YYYYMMDD) for the filtered exports; defaults to today")
    parser.add_argument(
        "--pipeline",
        default=PIPELINE_CODE,
        choices=sorted(PIPELINE_REGISTRY),
        help="Pipeline code to run (must be registered)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    return parser

def main_entry(argv: list[str] | None = None) -> int:
    """CLI front-end; returns the process exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.top_n <= 0:
        LOGGER.error("--top-n must be positive, got %s", args.top_n)
        return 1

    pipeline = get_pipeline(args.pipeline)
    inputs_dir = _resolve_input_path(args.inputs)
    outputs_dir = _ensure_dir(Path(args.outputs))

    ranked_usage: Path | None = None
    if args.ranked_usage:
        try:
            ranked_usage = _resolve_input_path(args.ranked_usage)
        except FileNotFoundError as exc:
            # Loader reports the missing snapshot after the full tables are written.
            LOGGER.warning("%s", exc)
            ranked_usage = Path(args.ranked_usage)

    timings = TimingCollector()
    context = PipelineContext(
        project_root=THIS_DIR,
        inputs_dir=inputs_dir,
        outputs_dir=outputs_dir,
    )
    params = PipelineRunParams(inputs_dir=inputs_dir, ranked_usage=ranked_usage)
    options = PipelineOptions(
        write_parquet=args.parquet,
        extra={
            "top_n": args.top_n,
            "include_inactive": args.include_inactive,
            "ntp_registry": args.ntp_registry,
            "tm_registry": args.tm_registry,
            "run_date": args.run_date,
        },
    )

    result = pipeline.run(context, params, options, timing_hook=timings.add)

    _print_grouped_summary(timings)

    if result.priority_error:
        print(f"! Priority filter failed: {result.priority_error}", file=sys.stderr)
        return 2
    return 0

def main() -> None:
    try:
        status = main_entry()
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        raise
    sys.exit(status)

if __name__ == "__main__":
    main()
