from __future__ import annotations

from collections.abc import Iterable, Sequence

from rapidfuzz.distance import Levenshtein

from ..models.matching import ExistingPayer, MatchConfidence, PayerAction, PayerMatch
from ..models.rows import NormalizedRow

"""Payer matching service.

Resolves free-text payer names from the import against the user's known
payers. Per name:

1. exact match (trimmed, case-insensitive)              -> exact / use_existing
2. best fuzzy candidate with similarity > threshold     -> fuzzy / use_existing
3. otherwise                                            -> none  / create_new

Similarity is ``1 - levenshtein(a, b) / max(len(a), len(b))`` on the whole
lower-cased string. It catches typos and punctuation drift, not reordered
words. The matcher performs no I/O.
"""

__all__ = [
    "FUZZY_MATCH_THRESHOLD",
    "similarity_score",
    "get_unique_payers",
    "match_payers",
]

FUZZY_MATCH_THRESHOLD = 0.8


def similarity_score(a: str, b: str) -> float:
    """Normalized edit-distance similarity in [0, 1] (case-insensitive)."""
    left = a.strip().lower()
    right = b.strip().lower()
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(left, right) / longest


def get_unique_payers(rows: Iterable[NormalizedRow]) -> list[str]:
    """Distinct payer names of valid rows, sorted."""
    return sorted({row.payer for row in rows if row.is_valid and row.payer})


def _match_one(name: str, existing: Sequence[ExistingPayer]) -> PayerMatch:
    wanted = name.strip().lower()
    for payer in existing:
        if payer.name.strip().lower() == wanted:
            return PayerMatch(
                source_name=name,
                confidence=MatchConfidence.EXACT,
                action=PayerAction.USE_EXISTING,
                existing_payer_id=payer.id,
                existing_payer_name=payer.name,
                score=1.0,
            )

    best: ExistingPayer | None = None
    best_score = 0.0
    for payer in existing:
        score = similarity_score(name, payer.name)
        # strict '>' keeps the first-encountered payer on ties
        if score > FUZZY_MATCH_THRESHOLD and (best is None or score > best_score):
            best, best_score = payer, score

    if best is not None:
        return PayerMatch(
            source_name=name,
            confidence=MatchConfidence.FUZZY,
            action=PayerAction.USE_EXISTING,
            existing_payer_id=best.id,
            existing_payer_name=best.name,
            score=best_score,
        )
    return PayerMatch(
        source_name=name,
        confidence=MatchConfidence.NONE,
        action=PayerAction.CREATE_NEW,
    )


def match_payers(names: Iterable[str], existing: Sequence[ExistingPayer]) -> list[PayerMatch]:
    """Exactly one PayerMatch per distinct source name, first-seen order."""
    seen: set[str] = set()
    matches: list[PayerMatch] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        matches.append(_match_one(name, existing))
    return matches
