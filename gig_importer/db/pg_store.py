from __future__ import annotations

import logging
from dataclasses import fields
from datetime import date
from decimal import Decimal
from typing import Any

import psycopg2

from ..models.import_result import GigRecord, ImportBatch
from ..models.matching import ExistingGig, ExistingPayer
from .batch_insert import BatchInsertError, batch_insert
from .store import DEFAULT_PAYER_TYPE, StoreError

"""PostgreSQL RecordStore (psycopg2).

Tables: ``import_batches``, ``payers``, ``gigs`` (see schema.sql). The
connection is expected in autocommit mode: the import relies on the batch tag
rather than on a surrounding transaction, and a failed gig insert must not
poison the statements that follow it.

Every statement filters on ``user_id``; driver errors are wrapped in
StoreError.
"""

__all__ = [
    "PostgresStore",
]

logger = logging.getLogger(__name__)

_BATCH_COLUMNS = [f.name for f in fields(ImportBatch)]
_BATCH_AGGREGATES = {
    "imported_count",
    "skipped_duplicates",
    "error_count",
    "total_gross",
    "total_tips",
    "total_fees",
    "new_payers_created",
}
_GIG_COLUMNS = [f.name for f in fields(GigRecord)]


class PostgresStore:
    def __init__(self, cursor: Any) -> None:
        self.cursor = cursor

    def _execute(self, sql: str, params: tuple[Any, ...]) -> None:
        try:
            self.cursor.execute(sql, params)
        except psycopg2.Error as e:
            logger.debug("statement failed sql=%s err=%s", sql, e)
            raise StoreError(str(e)) from e

    def _fetchall(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        self._execute(sql, params)
        return list(self.cursor.fetchall())

    def _insert_one(self, table: str, columns: list[str], values: list[Any]) -> str:
        try:
            result = batch_insert(self.cursor, table, columns, [values], returning="id")
        except BatchInsertError as e:
            raise StoreError(f"insert into {table} failed: {e}") from e
        if not result.returned_values:
            raise StoreError(f"insert into {table} returned no id")
        return str(result.returned_values[0][0])

    # -- import batches -------------------------------------------------
    def create_batch(self, user_id: str, file_name: str, total_rows: int, combined_rows: bool) -> str:
        return self._insert_one(
            "import_batches",
            ["user_id", "file_name", "total_rows", "combined_rows"],
            [user_id, file_name, total_rows, combined_rows],
        )

    def update_batch(self, user_id: str, batch_id: str, **aggregates: Any) -> None:
        unknown = set(aggregates) - _BATCH_AGGREGATES
        if unknown:
            raise StoreError(f"invalid batch update columns: {sorted(unknown)}")
        if not aggregates:
            return
        assignments = ", ".join(f'"{col}" = %s' for col in aggregates)
        self._execute(
            f"UPDATE import_batches SET {assignments} WHERE id = %s AND user_id = %s",
            (*aggregates.values(), batch_id, user_id),
        )

    def delete_batch(self, user_id: str, batch_id: str) -> bool:
        self._execute("DELETE FROM import_batches WHERE id = %s AND user_id = %s", (batch_id, user_id))
        return bool(self.cursor.rowcount)

    def _batch_from_row(self, row: tuple[Any, ...]) -> ImportBatch:
        data = dict(zip(_BATCH_COLUMNS, row, strict=True))
        data["id"] = str(data["id"])
        data["user_id"] = str(data["user_id"])
        return ImportBatch(**data)

    def get_batch(self, user_id: str, batch_id: str) -> ImportBatch | None:
        cols = ", ".join(_BATCH_COLUMNS)
        rows = self._fetchall(
            f"SELECT {cols} FROM import_batches WHERE id = %s AND user_id = %s",
            (batch_id, user_id),
        )
        return self._batch_from_row(rows[0]) if rows else None

    def get_last_batch(self, user_id: str) -> ImportBatch | None:
        cols = ", ".join(_BATCH_COLUMNS)
        rows = self._fetchall(
            f"SELECT {cols} FROM import_batches WHERE user_id = %s ORDER BY created_at DESC LIMIT 1",
            (user_id,),
        )
        return self._batch_from_row(rows[0]) if rows else None

    # -- payers ---------------------------------------------------------
    def list_payers(self, user_id: str) -> list[ExistingPayer]:
        rows = self._fetchall(
            "SELECT id, name FROM payers WHERE user_id = %s ORDER BY created_at, id",
            (user_id,),
        )
        return [ExistingPayer(id=str(r[0]), name=r[1]) for r in rows]

    def create_payer(
        self, user_id: str, name: str, batch_id: str | None, payer_type: str = DEFAULT_PAYER_TYPE
    ) -> str:
        return self._insert_one(
            "payers",
            ["user_id", "name", "payer_type", "created_by_import_batch_id"],
            [user_id, name, payer_type, batch_id],
        )

    def delete_payer(self, user_id: str, payer_id: str) -> None:
        self._execute("DELETE FROM payers WHERE id = %s AND user_id = %s", (payer_id, user_id))
        if not self.cursor.rowcount:
            raise StoreError(f"payer not found: {payer_id}")

    def find_payers_created_by(self, user_id: str, batch_id: str) -> list[str]:
        rows = self._fetchall(
            "SELECT id FROM payers WHERE user_id = %s AND created_by_import_batch_id = %s",
            (user_id, batch_id),
        )
        return [str(r[0]) for r in rows]

    def count_gigs_for_payer(self, user_id: str, payer_id: str) -> int:
        rows = self._fetchall(
            "SELECT count(*) FROM gigs WHERE user_id = %s AND payer_id = %s",
            (user_id, payer_id),
        )
        return int(rows[0][0]) if rows else 0

    # -- gigs -----------------------------------------------------------
    def list_gigs(self, user_id: str) -> list[ExistingGig]:
        rows = self._fetchall(
            "SELECT g.id, g.date, g.payer_id, p.name, g.gross_amount, g.title "
            "FROM gigs g JOIN payers p ON p.id = g.payer_id "
            "WHERE g.user_id = %s ORDER BY g.date, g.created_at",
            (user_id,),
        )
        return [
            ExistingGig(
                id=str(r[0]),
                date=r[1],
                payer_id=str(r[2]),
                payer_name=r[3],
                amount=Decimal(r[4]),
                title=r[5],
            )
            for r in rows
        ]

    def find_matching_gigs(
        self, user_id: str, payer_id: str, gig_date: date, gross_amount: Decimal
    ) -> list[tuple[str, str | None]]:
        rows = self._fetchall(
            "SELECT id, title FROM gigs "
            "WHERE user_id = %s AND payer_id = %s AND date = %s AND gross_amount = %s",
            (user_id, payer_id, gig_date, gross_amount),
        )
        return [(str(r[0]), r[1]) for r in rows]

    def create_gig(self, user_id: str, gig: GigRecord) -> str:
        values = [getattr(gig, col) for col in _GIG_COLUMNS]
        return self._insert_one("gigs", ["user_id", *_GIG_COLUMNS], [user_id, *values])

    def find_gig_ids_by_batch(self, user_id: str, batch_id: str) -> list[str]:
        rows = self._fetchall(
            "SELECT id FROM gigs WHERE user_id = %s AND import_batch_id = %s",
            (user_id, batch_id),
        )
        return [str(r[0]) for r in rows]

    def delete_gigs_by_batch(self, user_id: str, batch_id: str) -> int:
        self._execute(
            "DELETE FROM gigs WHERE user_id = %s AND import_batch_id = %s",
            (user_id, batch_id),
        )
        return int(self.cursor.rowcount or 0)
