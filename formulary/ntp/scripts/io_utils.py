"""
I/O utility functions for the NTP pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .mapping import MAPPING_COLUMNS

ENTITY_COLUMNS: List[str] = [
    "formal_description",
    "locale_display_en",
    "locale_display_fr",
    "status",
    "status_effective_date",
]

OUTPUT_COLUMNS: Dict[str, List[str]] = {
    "mp_table": ["product_id", *ENTITY_COLUMNS],
    "ntp_table": ["ntp_id", *ENTITY_COLUMNS],
    "tm_table": ["tm_id", *ENTITY_COLUMNS],
    "mapping_table": MAPPING_COLUMNS,
}


def write_csv(df: pd.DataFrame, csv_path: Path) -> Path:
    """Write DataFrame to CSV (canonical format)."""
    csv_path = Path(csv_path)
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(csv_path, index=False)
    return csv_path


def write_csv_and_parquet(df: pd.DataFrame, csv_path: Path) -> Path:
    """Write the CSV plus a Parquet copy with the same stem."""
    path = write_csv(df, csv_path)
    df.to_parquet(path.with_suffix(".parquet"), index=False)
    return path


def output_frame(df: pd.DataFrame, table: str) -> pd.DataFrame:
    """Select the published columns for one of the four output tables."""
    columns = OUTPUT_COLUMNS.get(table)
    if columns is None:
        return df
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise KeyError(f"{table} is missing output columns: {missing}")
    return df[columns]


def write_table(
    df: pd.DataFrame,
    outputs_dir: Path,
    filename: str,
    *,
    table: Optional[str] = None,
    parquet: bool = False,
) -> Path:
    """Write a table under outputs_dir, trimmed to its published columns when known."""
    frame = output_frame(df, table) if table else df
    target = Path(outputs_dir) / filename
    if parquet:
        return write_csv_and_parquet(frame, target)
    return write_csv(frame, target)
