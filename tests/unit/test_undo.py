from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from gig_importer.db.memory_store import InMemoryStore
from gig_importer.db.store import StoreError
from gig_importer.models.import_result import GigRecord
from gig_importer.models.matching import MatchConfidence, PayerAction, PayerMatch
from gig_importer.models.rows import CombinedRow, NormalizedRow
from gig_importer.services.orchestrator import UndoError, commit_import, undo_import

USER = "user-1"
D = date(2026, 1, 15)


def _row(idx: int, payer: str, gross: str = "100") -> CombinedRow:
    return CombinedRow.from_row(NormalizedRow(row_index=idx, date=D, payer=payer, gross=Decimal(gross)))


def _new(name: str) -> PayerMatch:
    return PayerMatch(source_name=name, confidence=MatchConfidence.NONE, action=PayerAction.CREATE_NEW)


@pytest.fixture()
def committed(store: InMemoryStore):
    """Pre-existing payer + gig, then one batch importing 3 rows and creating 2 payers."""
    old_payer = store.create_payer(USER, "Birdland", None)
    store.create_gig(USER, GigRecord(payer_id=old_payer, date=D, gross_amount=Decimal("500"), import_batch_id="manual"))
    matches = [
        _new("Blue Note"),
        _new("Smalls"),
        PayerMatch(
            source_name="Birdland",
            confidence=MatchConfidence.EXACT,
            action=PayerAction.USE_EXISTING,
            existing_payer_id=old_payer,
            existing_payer_name="Birdland",
        ),
    ]
    rows = [_row(1, "Blue Note"), _row(2, "Smalls", "50"), _row(3, "Birdland", "75")]
    result = commit_import(store, rows, matches, USER, progress=False)
    return result, old_payer


def test_undo_removes_batch_rows_and_new_payers(store: InMemoryStore, committed) -> None:
    result, old_payer = committed
    undo = undo_import(store, result.batch_id, USER)

    assert undo.deleted_gigs == 3
    assert undo.deleted_payers == 2
    assert undo.retained_payers == []
    assert result.batch_id not in store.batches
    assert set(store.payers) == {old_payer}
    [remaining] = store.gigs.values()
    assert remaining.record.import_batch_id == "manual"


def test_undo_keeps_payer_reused_after_import(store: InMemoryStore, committed) -> None:
    result, _ = committed
    smalls = next(p.id for p in store.payers.values() if p.name == "Smalls")
    # ユーザーが import 後に手動で同じ payer に gig を追加
    store.create_gig(USER, GigRecord(payer_id=smalls, date=D, gross_amount=Decimal("60"), import_batch_id="manual"))

    undo = undo_import(store, result.batch_id, USER)

    assert undo.deleted_gigs == 3
    assert undo.deleted_payers == 1
    assert undo.retained_payers == [smalls]
    assert smalls in store.payers


def test_undo_twice_returns_zero_counts(store: InMemoryStore, committed) -> None:
    result, _ = committed
    undo_import(store, result.batch_id, USER)
    again = undo_import(store, result.batch_id, USER)
    assert (again.deleted_gigs, again.deleted_payers) == (0, 0)


def test_undo_unknown_batch_is_zero(store: InMemoryStore) -> None:
    undo = undo_import(store, "no-such-batch", USER)
    assert (undo.deleted_gigs, undo.deleted_payers) == (0, 0)


def test_undo_is_scoped_to_user(store: InMemoryStore, committed) -> None:
    result, _ = committed
    undo = undo_import(store, result.batch_id, "intruder")
    assert (undo.deleted_gigs, undo.deleted_payers) == (0, 0)
    assert len(store.gigs) == 4
    assert result.batch_id in store.batches


def test_undo_gig_delete_failure_keeps_batch(store: InMemoryStore, committed) -> None:
    result, _ = committed
    with patch.object(store, "delete_gigs_by_batch", side_effect=StoreError("lock timeout")):
        with pytest.raises(UndoError, match="lock timeout"):
            undo_import(store, result.batch_id, USER)
    assert result.batch_id in store.batches
    assert len(store.gigs) == 4


def test_undo_payer_delete_failure_is_retryable(store: InMemoryStore, committed) -> None:
    result, _ = committed
    with patch.object(store, "delete_payer", side_effect=StoreError("fk violation")):
        with pytest.raises(UndoError, match="fk violation"):
            undo_import(store, result.batch_id, USER)
    # gigs are gone, batch record kept so the payer cleanup can run again
    assert result.batch_id in store.batches
    assert len(store.gigs) == 1

    retry = undo_import(store, result.batch_id, USER)
    assert retry.deleted_gigs == 0
    assert retry.deleted_payers == 2
    assert result.batch_id not in store.batches
