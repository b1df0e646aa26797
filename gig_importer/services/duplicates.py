from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from decimal import Decimal

from ..models.matching import DuplicateConfidence, DuplicateGroup, ExistingGig
from ..models.rows import NormalizedRow

"""Duplicate detection against already-persisted gigs.

Runs before the combine step, on the original per-line amounts. For each valid
row the first existing gig with the same date and payer name decides:

- amount within AMOUNT_TOLERANCE -> high (medium when both titles are present
  and differ), key ``date|payer|amount|title``
- amount differs                  -> medium, key ``date|payer``

A row is reported against at most one existing gig. Callers that combine rows
afterwards must map flagged row indices onto CombinedRows themselves (see
``combiner.drop_flagged_rows``).
"""

__all__ = [
    "AMOUNT_TOLERANCE",
    "detect_duplicates",
    "flagged_row_indices",
]

AMOUNT_TOLERANCE = Decimal("0.01")


def _same_text(a: str | None, b: str | None) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def detect_duplicates(
    rows: Iterable[NormalizedRow],
    existing_gigs: Sequence[ExistingGig],
) -> list[DuplicateGroup]:
    duplicates: list[DuplicateGroup] = []
    for row in rows:
        if not row.is_valid:
            continue
        amount = row.amount if row.amount is not None else Decimal("0")
        for existing in existing_gigs:
            if existing.date != row.date or not _same_text(existing.payer_name, row.payer):
                continue
            if abs(existing.amount - amount) < AMOUNT_TOLERANCE:
                titles_agree = not row.title or not existing.title or _same_text(row.title, existing.title)
                duplicates.append(
                    DuplicateGroup(
                        import_rows=(row.row_index,),
                        key=f"{row.date.isoformat()}|{row.payer}|{amount}|{row.title or ''}",
                        confidence=DuplicateConfidence.HIGH if titles_agree else DuplicateConfidence.MEDIUM,
                        existing_gig_id=existing.id,
                    )
                )
            else:
                duplicates.append(
                    DuplicateGroup(
                        import_rows=(row.row_index,),
                        key=f"{row.date.isoformat()}|{row.payer}",
                        confidence=DuplicateConfidence.MEDIUM,
                        existing_gig_id=existing.id,
                    )
                )
            break  # 先勝ち: 1行につき既存1件まで
    return duplicates


def flagged_row_indices(
    groups: Iterable[DuplicateGroup],
    confidences: Collection[DuplicateConfidence] = (DuplicateConfidence.HIGH,),
) -> set[int]:
    """Row indices flagged by findings of the given confidence levels."""
    flagged: set[int] = set()
    for group in groups:
        if group.confidence in confidences:
            flagged.update(group.import_rows)
    return flagged
