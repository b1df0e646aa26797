from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from ..models.import_result import GigRecord, ImportBatch
from ..models.matching import ExistingGig, ExistingPayer
from .store import DEFAULT_PAYER_TYPE, StoreError

"""In-memory RecordStore.

Backs the CLI "mock" mode (no database connection) and the test suite. Ids are
uuid4 strings, mirroring the PostgreSQL defaults.
"""

__all__ = [
    "InMemoryStore",
]


@dataclass
class _PayerRow:
    id: str
    user_id: str
    name: str
    payer_type: str
    created_by_import_batch_id: str | None


@dataclass
class _GigRow:
    id: str
    user_id: str
    record: GigRecord


class InMemoryStore:
    def __init__(self) -> None:
        self.batches: dict[str, ImportBatch] = {}
        self.payers: dict[str, _PayerRow] = {}
        self.gigs: dict[str, _GigRow] = {}

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # -- import batches -------------------------------------------------
    def create_batch(self, user_id: str, file_name: str, total_rows: int, combined_rows: bool) -> str:
        batch_id = self._new_id()
        self.batches[batch_id] = ImportBatch(
            id=batch_id,
            user_id=user_id,
            file_name=file_name,
            total_rows=total_rows,
            combined_rows=combined_rows,
            created_at=datetime.now(UTC),
        )
        return batch_id

    def update_batch(self, user_id: str, batch_id: str, **aggregates: Any) -> None:
        batch = self.get_batch(user_id, batch_id)
        if batch is None:
            raise StoreError(f"import batch not found: {batch_id}")
        try:
            self.batches[batch_id] = replace(batch, **aggregates)
        except TypeError as e:
            raise StoreError(f"invalid batch update: {e}") from e

    def delete_batch(self, user_id: str, batch_id: str) -> bool:
        if self.get_batch(user_id, batch_id) is None:
            return False
        del self.batches[batch_id]
        # ON DELETE SET NULL 相当
        for payer in self.payers.values():
            if payer.created_by_import_batch_id == batch_id:
                payer.created_by_import_batch_id = None
        return True

    def get_batch(self, user_id: str, batch_id: str) -> ImportBatch | None:
        batch = self.batches.get(batch_id)
        if batch is None or batch.user_id != user_id:
            return None
        return batch

    def get_last_batch(self, user_id: str) -> ImportBatch | None:
        owned = [b for b in self.batches.values() if b.user_id == user_id]
        if not owned:
            return None
        # dict は挿入順: 同時刻なら後勝ち
        return max(reversed(owned), key=lambda b: b.created_at or datetime.min.replace(tzinfo=UTC))

    # -- payers ---------------------------------------------------------
    def list_payers(self, user_id: str) -> list[ExistingPayer]:
        return [ExistingPayer(id=p.id, name=p.name) for p in self.payers.values() if p.user_id == user_id]

    def create_payer(
        self, user_id: str, name: str, batch_id: str | None, payer_type: str = DEFAULT_PAYER_TYPE
    ) -> str:
        payer_id = self._new_id()
        self.payers[payer_id] = _PayerRow(
            id=payer_id,
            user_id=user_id,
            name=name,
            payer_type=payer_type,
            created_by_import_batch_id=batch_id,
        )
        return payer_id

    def delete_payer(self, user_id: str, payer_id: str) -> None:
        payer = self.payers.get(payer_id)
        if payer is None or payer.user_id != user_id:
            raise StoreError(f"payer not found: {payer_id}")
        del self.payers[payer_id]

    def find_payers_created_by(self, user_id: str, batch_id: str) -> list[str]:
        return [
            p.id for p in self.payers.values()
            if p.user_id == user_id and p.created_by_import_batch_id == batch_id
        ]

    def count_gigs_for_payer(self, user_id: str, payer_id: str) -> int:
        return sum(1 for g in self.gigs.values() if g.user_id == user_id and g.record.payer_id == payer_id)

    # -- gigs -----------------------------------------------------------
    def list_gigs(self, user_id: str) -> list[ExistingGig]:
        result: list[ExistingGig] = []
        for gig in self.gigs.values():
            if gig.user_id != user_id:
                continue
            payer = self.payers.get(gig.record.payer_id)
            result.append(
                ExistingGig(
                    id=gig.id,
                    date=gig.record.date,
                    payer_id=gig.record.payer_id,
                    payer_name=payer.name if payer else "",
                    amount=gig.record.gross_amount,
                    title=gig.record.title,
                )
            )
        return result

    def find_matching_gigs(
        self, user_id: str, payer_id: str, gig_date: date, gross_amount: Decimal
    ) -> list[tuple[str, str | None]]:
        return [
            (g.id, g.record.title)
            for g in self.gigs.values()
            if g.user_id == user_id
            and g.record.payer_id == payer_id
            and g.record.date == gig_date
            and g.record.gross_amount == gross_amount
        ]

    def create_gig(self, user_id: str, gig: GigRecord) -> str:
        payer = self.payers.get(gig.payer_id)
        if payer is None or payer.user_id != user_id:
            raise StoreError(f"payer not found: {gig.payer_id}")
        gig_id = self._new_id()
        self.gigs[gig_id] = _GigRow(id=gig_id, user_id=user_id, record=gig)
        return gig_id

    def find_gig_ids_by_batch(self, user_id: str, batch_id: str) -> list[str]:
        return [
            g.id for g in self.gigs.values()
            if g.user_id == user_id and g.record.import_batch_id == batch_id
        ]

    def delete_gigs_by_batch(self, user_id: str, batch_id: str) -> int:
        ids = self.find_gig_ids_by_batch(user_id, batch_id)
        for gig_id in ids:
            del self.gigs[gig_id]
        return len(ids)
