"""Holdings file loading helpers."""

from __future__ import annotations

import os
from typing import Any

import pandas as pd

REQUIRED_COLUMNS = ["symbol", "asset_class", "quantity", "current_price", "purchase_price"]
OPTIONAL_COLUMNS = ["id"]
SUPPORTED_EXTENSIONS = {".csv", ".xlsx"}


def _normalize_column(name: object) -> str:
    return str(name).strip().lower().replace(" ", "_").replace("-", "_")


def load_holdings_file(file_path: str) -> pd.DataFrame:
    """Read a CSV or Excel holdings sheet with snake_case column names."""
    absolute_path = file_path if os.path.isabs(file_path) else os.path.abspath(file_path)
    ext = os.path.splitext(absolute_path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError("Holdings input must be a CSV or Excel file (.csv or .xlsx).")
    if not os.path.exists(absolute_path):
        raise ValueError(f"Holdings file not found: {file_path}")
    if ext == ".csv":
        frame = pd.read_csv(absolute_path)
    else:
        frame = pd.read_excel(absolute_path, sheet_name=0)
    frame.columns = [_normalize_column(column) for column in frame.columns]
    return frame


def frame_to_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    """Plain dict rows for the record validator; NaN cells become None."""
    columns = [column for column in [*OPTIONAL_COLUMNS, *REQUIRED_COLUMNS] if column in frame.columns]
    subset = frame[columns].astype(object).where(frame[columns].notna(), None)
    return subset.to_dict(orient="records")
