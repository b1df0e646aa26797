from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

"""Batch import domain models.

ImportBatch is the unit of atomicity and undo: every gig persisted and every
payer created by one commit is tagged with the batch id.

State transitions per commit attempt:

    created -> payers_resolved -> rows_processed -> summarized
            -> (committed | rolled_back)
"""

__all__ = [
    "BatchState",
    "RowStatus",
    "ImportOptions",
    "GigRecord",
    "ImportBatch",
    "ImportRowResult",
    "ImportSummary",
    "BatchImportResult",
    "UndoResult",
]

ZERO = Decimal("0.00")


class BatchState(Enum):
    CREATED = "created"
    PAYERS_RESOLVED = "payers_resolved"
    ROWS_PROCESSED = "rows_processed"
    SUMMARIZED = "summarized"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class RowStatus(Enum):
    IMPORTED = "imported"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    ERROR = "error"


@dataclass(frozen=True)
class ImportOptions:
    skip_duplicates: bool = True
    combine_rows: bool = False
    file_name: str = "import.csv"


@dataclass(frozen=True)
class GigRecord:
    """Insert payload for one gig."""
    payer_id: str
    date: date
    gross_amount: Decimal
    import_batch_id: str
    title: str | None = None
    location: str | None = None
    city: str | None = None
    state: str | None = None
    tips: Decimal = ZERO
    fees: Decimal = ZERO
    per_diem: Decimal = ZERO
    other_income: Decimal = ZERO
    taxes_withheld: Decimal = ZERO
    payment_method: str | None = None
    paid: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class ImportBatch:
    id: str
    user_id: str
    file_name: str
    total_rows: int
    combined_rows: bool = False
    created_at: datetime | None = None
    imported_count: int = 0
    skipped_duplicates: int = 0
    error_count: int = 0
    total_gross: Decimal = ZERO
    total_tips: Decimal = ZERO
    total_fees: Decimal = ZERO
    new_payers_created: int = 0


@dataclass(frozen=True)
class ImportRowResult:
    row_index: int
    status: RowStatus
    gig_id: str | None = None
    error: str | None = None
    combined_from_rows: tuple[int, ...] = ()


@dataclass(frozen=True)
class ImportSummary:
    total_rows: int
    imported_count: int
    skipped_count: int
    error_count: int
    total_gross: Decimal = ZERO
    total_tips: Decimal = ZERO
    total_fees: Decimal = ZERO


@dataclass(frozen=True)
class BatchImportResult:
    batch_id: str
    results: list[ImportRowResult]
    new_payers_created: list[str]
    summary: ImportSummary
    state: BatchState = BatchState.COMMITTED
    elapsed_seconds: float = 0.0

    @property
    def imported(self) -> list[ImportRowResult]:
        return [r for r in self.results if r.status is RowStatus.IMPORTED]

    @property
    def skipped_duplicates(self) -> list[ImportRowResult]:
        return [r for r in self.results if r.status is RowStatus.SKIPPED_DUPLICATE]

    @property
    def errors(self) -> list[ImportRowResult]:
        return [r for r in self.results if r.status is RowStatus.ERROR]


@dataclass(frozen=True)
class UndoResult:
    batch_id: str
    deleted_gigs: int = 0
    deleted_payers: int = 0
    retained_payers: list[str] = field(default_factory=list)  # batch 作成だが参照が残る payer
