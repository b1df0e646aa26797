from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

"""Matching models: payer resolution results and duplicate findings.

Also holds the read models for existing records (payers and gigs) that the
matcher and the duplicate detector consume.
"""

__all__ = [
    "MatchConfidence",
    "PayerAction",
    "PayerMatch",
    "DuplicateConfidence",
    "DuplicateGroup",
    "ExistingPayer",
    "ExistingGig",
]


class MatchConfidence(Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    NONE = "none"


class PayerAction(Enum):
    USE_EXISTING = "use_existing"
    CREATE_NEW = "create_new"


@dataclass(frozen=True)
class PayerMatch:
    """Resolution of one distinct source payer name.

    Created once by the matcher, read-only afterwards. The orchestrator turns
    the full list into a name -> payer id lookup.
    """
    source_name: str
    confidence: MatchConfidence
    action: PayerAction
    existing_payer_id: str | None = None
    existing_payer_name: str | None = None
    score: float | None = None  # similarity behind the decision (1.0 for exact)


class DuplicateConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"


@dataclass(frozen=True)
class DuplicateGroup:
    """A finding (not an entity): import rows that likely already exist."""
    import_rows: tuple[int, ...]
    key: str
    confidence: DuplicateConfidence
    existing_gig_id: str | None = None


@dataclass(frozen=True)
class ExistingPayer:
    id: str
    name: str


@dataclass(frozen=True)
class ExistingGig:
    id: str
    date: date
    payer_id: str
    payer_name: str
    amount: Decimal
    title: str | None = None
