from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Protocol

from ..models.import_result import GigRecord, ImportBatch
from ..models.matching import ExistingGig, ExistingPayer

"""Record store contract.

The import core talks to persistence only through this protocol. Every call
carries the caller's ``user_id``; implementations scope reads and writes to
that user and never return another user's rows.

Implementations raise StoreError (wrapping the driver exception) on failure.
No cascading deletes are assumed: payer removal on undo is decided by the
caller through ``count_gigs_for_payer``.
"""

__all__ = [
    "StoreError",
    "RecordStore",
    "DEFAULT_PAYER_TYPE",
]

DEFAULT_PAYER_TYPE = "Venue"


class StoreError(Exception):
    """Raised when a record store operation fails."""


class RecordStore(Protocol):
    # import batches
    def create_batch(
        self, user_id: str, file_name: str, total_rows: int, combined_rows: bool
    ) -> str: ...

    def update_batch(self, user_id: str, batch_id: str, **aggregates: Any) -> None: ...

    def delete_batch(self, user_id: str, batch_id: str) -> bool: ...

    def get_batch(self, user_id: str, batch_id: str) -> ImportBatch | None: ...

    def get_last_batch(self, user_id: str) -> ImportBatch | None: ...

    # payers
    def list_payers(self, user_id: str) -> list[ExistingPayer]: ...

    def create_payer(
        self, user_id: str, name: str, batch_id: str | None, payer_type: str = DEFAULT_PAYER_TYPE
    ) -> str: ...

    def delete_payer(self, user_id: str, payer_id: str) -> None: ...

    def find_payers_created_by(self, user_id: str, batch_id: str) -> list[str]: ...

    def count_gigs_for_payer(self, user_id: str, payer_id: str) -> int: ...

    # gigs
    def list_gigs(self, user_id: str) -> list[ExistingGig]: ...

    def find_matching_gigs(
        self, user_id: str, payer_id: str, gig_date: date, gross_amount: Decimal
    ) -> list[tuple[str, str | None]]: ...

    def create_gig(self, user_id: str, gig: GigRecord) -> str: ...

    def find_gig_ids_by_batch(self, user_id: str, batch_id: str) -> list[str]: ...

    def delete_gigs_by_batch(self, user_id: str, batch_id: str) -> int: ...
