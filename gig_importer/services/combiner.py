from __future__ import annotations

from collections.abc import Collection, Sequence
from decimal import Decimal

from ..models.rows import CombinedRow, NormalizedRow

"""Row combination service.

Optionally merges rows that describe one real-world gig split across several
lines (e.g. the fee and the tips paid on separate lines).

Grouping is a single greedy pass: each not-yet-grouped row becomes an anchor
and absorbs every later not-yet-grouped row that matches *the anchor* on

- date (exact)
- payer (case-insensitive)
- title (case-insensitive, or absent on either side)

There is no transitive closure between non-anchor members, and a row consumed
by an earlier group can never start or join another group.
"""

__all__ = [
    "SUMMED_FIELDS",
    "NOTES_SEPARATOR",
    "combine_rows",
    "drop_flagged_rows",
]

SUMMED_FIELDS = (
    "gross",
    "net_total",
    "tips",
    "fees",
    "per_diem",
    "other_income",
    "taxes_withheld",
)
NOTES_SEPARATOR = " | "


def _joins_anchor(anchor: NormalizedRow, other: NormalizedRow) -> bool:
    if anchor.date != other.date:
        return False
    if (anchor.payer or "").lower() != (other.payer or "").lower():
        return False
    if not anchor.title or not other.title:
        return True
    return anchor.title.lower() == other.title.lower()


def _sum_field(group: Sequence[NormalizedRow], name: str) -> Decimal | None:
    present = [getattr(r, name) for r in group if getattr(r, name) is not None]
    if not present:
        return None
    return sum(present, Decimal("0.00"))


def _merge(group: Sequence[NormalizedRow]) -> CombinedRow:
    anchor = group[0]
    indices = tuple(r.row_index for r in group)
    notes = NOTES_SEPARATOR.join(r.notes for r in group if r.notes)
    overrides: dict[str, object] = {name: _sum_field(group, name) for name in SUMMED_FIELDS}
    return CombinedRow.from_row(
        anchor,
        notes=notes or None,
        warnings=anchor.warnings + (
            f"Combined from {len(group)} rows: {', '.join(str(i) for i in indices)}",
        ),
        combined_from_rows=indices,
        is_combined=True,
        **overrides,
    )


def combine_rows(rows: Sequence[NormalizedRow], enabled: bool) -> list[CombinedRow]:
    """Cover every input row exactly once, in anchor order.

    Rows with errors are never grouped; they pass through unchanged so the
    orchestrator can report them.
    """
    if not enabled:
        return [CombinedRow.from_row(row) for row in rows]

    combined: list[CombinedRow] = []
    processed: set[int] = set()
    for i, anchor in enumerate(rows):
        if i in processed:
            continue
        processed.add(i)
        if not anchor.is_valid:
            combined.append(CombinedRow.from_row(anchor))
            continue

        group = [anchor]
        for j in range(i + 1, len(rows)):
            if j in processed:
                continue
            other = rows[j]
            if other.is_valid and _joins_anchor(anchor, other):
                group.append(other)
                processed.add(j)

        if len(group) > 1:
            combined.append(_merge(group))
        else:
            combined.append(CombinedRow.from_row(anchor))
    return combined


def drop_flagged_rows(rows: Sequence[CombinedRow], flagged: Collection[int]) -> list[CombinedRow]:
    """Remove CombinedRows that contain any flagged source row index."""
    flagged_set = set(flagged)
    return [row for row in rows if flagged_set.isdisjoint(row.combined_from_rows)]
