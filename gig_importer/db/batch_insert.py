from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""INSERT helper on top of psycopg2.extras.execute_values.

The import commits rows one at a time (strict input order, row-local failure),
so callers usually pass a single row and ask for the generated id back with
``returning="id"``. Multi-row use stays supported for seeding/fixtures.
"""

__all__ = [
    "BatchInsertError",
    "InsertResult",
    "batch_insert",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: str | None = None,
    page_size: int = 1000,
) -> InsertResult:
    """Perform an INSERT ... VALUES %s through execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted identifier, not user input)
    columns: insert columns
    rows: value sequences, one per row, in ``columns`` order
    returning: column to return (e.g. ``"id"``); None -> no RETURNING clause
    page_size: execute_values page size
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if returning:
        sql += f' RETURNING "{returning}"'

    try:
        # fetch=True は RETURNING の全ページ分を集めて返す
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=bool(returning))
    except psycopg2.Error as e:
        raise BatchInsertError(str(e)) from e

    return InsertResult(
        inserted_rows=len(rows_list),
        returned_values=list(returned or []) if returning else None,
    )
