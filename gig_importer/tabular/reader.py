from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

"""Input file reader (CSV / XLSX) built on pandas.

Produces the ordered sequence of string-keyed records the import core works
on. CSV cells are read as text (no dtype inference, no NaN conversion) so that
parsing decisions stay with the normalizer. XLSX cells keep their Excel type
long enough to turn date cells into ISO ``YYYY-MM-DD``; everything else becomes
text too. Fully blank lines are dropped.
"""

__all__ = [
    "ReaderError",
    "TabularData",
    "read_rows",
]

SUPPORTED_SUFFIXES = {".csv", ".xlsx"}


class ReaderError(Exception):
    """Raised when the input file cannot be read."""


@dataclass
class TabularData:
    headers: list[str]
    rows: list[dict[str, str]]  # header -> raw text, file order


def _load_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    # xlsx: 先頭シートのみ
    return pd.read_excel(path, sheet_name=0, dtype=object, keep_default_na=False)


def _cell_text(value: Any) -> str:
    if value is None or value is pd.NaT:
        return ""
    # datetime (pd.Timestamp 含む) は date より先に判定
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()


def read_rows(path: Path) -> TabularData:
    if not path.exists():
        raise ReaderError(f"input file not found: {path}")
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise ReaderError(f"unsupported input file type: {path.suffix or '<none>'}")
    try:
        df = _load_frame(path)
    except pd.errors.EmptyDataError:
        return TabularData(headers=[], rows=[])
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise ReaderError(f"failed to read {path.name}: {e}") from e

    headers = [str(c).strip() for c in df.columns]
    rows: list[dict[str, str]] = []
    for values in df.itertuples(index=False, name=None):
        cells = [_cell_text(v) for v in values]
        if not any(cells):
            continue
        rows.append(dict(zip(headers, cells, strict=False)))
    return TabularData(headers=headers, rows=rows)
