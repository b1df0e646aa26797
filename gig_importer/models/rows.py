from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any

"""Row-level domain models for the gig importer.

A raw input line flows through these shapes:

    RawRow (header -> text)
      -> NormalizedRow (typed values + errors/warnings, one per input line)
      -> CombinedRow (one or more NormalizedRows merged, or a 1:1 passthrough)

``row_index`` is the 1-based position of the line in the original file. It is
the only stable cross-reference between stages because combination changes
row cardinality.
"""

__all__ = [
    "RawRow",
    "ColumnMapping",
    "CANONICAL_FIELDS",
    "NormalizedRow",
    "CombinedRow",
]

RawRow = Mapping[str, str]

# 正規フィールド名 (設定ファイル / UI 側の camelCase 表記 -> 属性名)
CANONICAL_FIELDS: dict[str, str] = {
    "date": "date",
    "payer": "payer",
    "gross": "gross",
    "netTotal": "net_total",
    "title": "title",
    "tips": "tips",
    "fees": "fees",
    "perDiem": "per_diem",
    "otherIncome": "other_income",
    "paymentMethod": "payment_method",
    "paid": "paid",
    "venue": "venue",
    "city": "city",
    "state": "state",
    "notes": "notes",
    "taxesWithheld": "taxes_withheld",
}


@dataclass(frozen=True)
class ColumnMapping:
    """Canonical field -> source header. Each field maps to at most one header."""
    date: str | None = None
    payer: str | None = None
    gross: str | None = None
    net_total: str | None = None
    title: str | None = None
    tips: str | None = None
    fees: str | None = None
    per_diem: str | None = None
    other_income: str | None = None
    payment_method: str | None = None
    paid: str | None = None
    venue: str | None = None
    city: str | None = None
    state: str | None = None
    notes: str | None = None
    taxes_withheld: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ColumnMapping:
        """Build from a dict keyed by either camelCase or snake_case field names.

        Raises:
            ValueError: unknown field name
        """
        known = set(CANONICAL_FIELDS.values())
        kwargs: dict[str, str | None] = {}
        for key, header in data.items():
            attr = CANONICAL_FIELDS.get(key, key)
            if attr not in known:
                raise ValueError(f"unknown column mapping field: {key}")
            kwargs[attr] = str(header) if header is not None else None
        return cls(**kwargs)

    def as_dict(self) -> dict[str, str]:
        """Mapped fields only, snake_case keys."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)}

    def missing_required(self) -> list[str]:
        missing: list[str] = []
        if not self.date:
            missing.append("date")
        if not self.payer:
            missing.append("payer")
        if not self.gross and not self.net_total:
            missing.append("gross|net_total")
        return missing


@dataclass(frozen=True)
class NormalizedRow:
    """One typed input line (valid or not).

    Rows carrying any ``errors`` are excluded from persistence but are kept in
    every reporting view so the user can see why.
    """
    row_index: int  # 1-based position in the source file
    date: date | None = None
    payer: str | None = None
    gross: Decimal | None = None
    net_total: Decimal | None = None
    title: str | None = None
    venue: str | None = None
    city: str | None = None
    state: str | None = None
    tips: Decimal | None = None
    fees: Decimal | None = None
    per_diem: Decimal | None = None
    other_income: Decimal | None = None
    taxes_withheld: Decimal | None = None
    payment_method: str | None = None
    paid: bool | None = None
    notes: str | None = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def amount(self) -> Decimal | None:
        """Amount used downstream: gross, falling back to net total."""
        if self.uses_net_total:
            return self.net_total
        return self.gross if self.gross is not None else self.net_total

    @property
    def uses_net_total(self) -> bool:
        """True when gross is blank or zero and a non-zero net total stands in."""
        return not self.gross and bool(self.net_total)


@dataclass(frozen=True)
class CombinedRow(NormalizedRow):
    """A NormalizedRow after the (optional) combine step."""
    combined_from_rows: tuple[int, ...] = ()
    is_combined: bool = False

    @classmethod
    def from_row(cls, row: NormalizedRow, **overrides: Any) -> CombinedRow:
        values = {f.name: getattr(row, f.name) for f in fields(NormalizedRow)}
        values.update(overrides)
        values.setdefault("combined_from_rows", (row.row_index,))
        return cls(**values)
