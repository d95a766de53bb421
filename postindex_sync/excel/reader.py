from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

"""Workbook reader.

Reads the first sheet of an ``.xlsx`` workbook without a header (the header row
is located later by the schema mapper) and returns rows as positional cell
lists. Empty cells become ``None`` and strings are stripped. Only truly empty
cells are treated as missing: texts such as ``NA`` or ``None`` are kept.
"""

__all__ = [
    "SourceError",
    "SheetData",
    "read_first_sheet",
    "clean_cell",
]


class SourceError(Exception):
    """Raised when the source workbook is missing or unreadable."""


@dataclass
class SheetData:
    sheet_name: str
    rows: list[list[Any]]  # positional cells, row 1 first

    def __len__(self) -> int:
        return len(self.rows)


def clean_cell(value: Any) -> Any:
    """Map NaN/NaT to None and strip strings; other values pass through."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, str):
        return value.strip()
    return value


def read_first_sheet(path: Path) -> SheetData:
    """Read the first sheet of ``path`` as raw positional rows.

    Parameters
    ----------
    path: workbook path

    Raises
    ------
    SourceError: the file does not exist or cannot be parsed as a workbook
    """
    if not path.exists():
        raise SourceError(f"source file not found: {path}")
    if not path.is_file():
        raise SourceError(f"source path is not a file: {path}")
    try:
        xls = pd.ExcelFile(path)
        if not xls.sheet_names:
            raise SourceError(f"workbook has no sheets: {path}")
        name = xls.sheet_names[0]
        # header=None: the header row is detected by the schema mapper
        df = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[""])
    except SourceError:
        raise
    except Exception as e:
        raise SourceError(f"failed reading {path.name}: {e}") from e

    rows = [[clean_cell(v) for v in raw] for raw in df.itertuples(index=False, name=None)]
    return SheetData(sheet_name=str(name), rows=rows)
