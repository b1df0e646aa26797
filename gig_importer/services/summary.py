from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from ..models.import_result import BatchImportResult, UndoResult
from ..models.rows import NormalizedRow

"""Summary rendering and preview aggregates.

SUMMARY line formats (one line, space separated key=value):

    SUMMARY batch=<id> rows=<n> imported=<n> skipped=<n> errors=<n>
            new_payers=<n> gross=<x.xx> tips=<x.xx> fees=<x.xx> elapsed_sec=<s>
    SUMMARY undo batch=<id> deleted_gigs=<n> deleted_payers=<n>
"""

__all__ = [
    "PreviewSummary",
    "calculate_import_summary",
    "format_seconds",
    "render_summary_line",
    "render_undo_line",
]

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PreviewSummary:
    """Pre-commit totals over valid rows (shown before the user commits)."""
    total_rows: int
    valid_rows: int
    error_rows: int
    warning_rows: int
    total_gross: Decimal = ZERO
    total_tips: Decimal = ZERO
    total_fees: Decimal = ZERO
    total_per_diem: Decimal = ZERO
    total_other_income: Decimal = ZERO
    total_taxes_withheld: Decimal = ZERO


def _total(values: Sequence[Decimal | None]) -> Decimal:
    return sum((v for v in values if v is not None), ZERO)


def calculate_import_summary(rows: Sequence[NormalizedRow]) -> PreviewSummary:
    valid = [r for r in rows if r.is_valid]
    return PreviewSummary(
        total_rows=len(rows),
        valid_rows=len(valid),
        error_rows=len(rows) - len(valid),
        warning_rows=sum(1 for r in rows if r.warnings),
        total_gross=_total([r.amount for r in valid]),
        total_tips=_total([r.tips for r in valid]),
        total_fees=_total([r.fees for r in valid]),
        total_per_diem=_total([r.per_diem for r in valid]),
        total_other_income=_total([r.other_income for r in valid]),
        total_taxes_withheld=_total([r.taxes_withheld for r in valid]),
    )


def format_seconds(seconds: float) -> str:
    """Integers without decimals, tiny values without scientific notation."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: BatchImportResult) -> str:
    s = result.summary
    return (
        f"SUMMARY batch={result.batch_id} "
        f"rows={s.total_rows} "
        f"imported={s.imported_count} "
        f"skipped={s.skipped_count} "
        f"errors={s.error_count} "
        f"new_payers={len(result.new_payers_created)} "
        f"gross={s.total_gross:.2f} "
        f"tips={s.total_tips:.2f} "
        f"fees={s.total_fees:.2f} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )


def render_undo_line(result: UndoResult) -> str:
    return (
        f"SUMMARY undo batch={result.batch_id} "
        f"deleted_gigs={result.deleted_gigs} "
        f"deleted_payers={result.deleted_payers}"
    )
