from __future__ import annotations

from datetime import date
from decimal import Decimal

from gig_importer.models.rows import NormalizedRow
from gig_importer.services.combiner import combine_rows, drop_flagged_rows

D = date(2026, 1, 15)


def _row(idx: int, gross: str | None = "100", payer: str = "Blue Note", title: str | None = None, **kw) -> NormalizedRow:
    return NormalizedRow(
        row_index=idx,
        date=kw.pop("date", D),
        payer=payer,
        gross=Decimal(gross) if gross is not None else None,
        title=title,
        **kw,
    )


def test_disabled_is_passthrough():
    rows = [_row(1), _row(2)]
    out = combine_rows(rows, enabled=False)
    assert len(out) == 2
    assert all(not r.is_combined for r in out)
    assert [r.combined_from_rows for r in out] == [(1,), (2,)]


def test_blue_note_example():
    rows = [_row(1, "850"), _row(2, "300")]
    [combined] = combine_rows(rows, enabled=True)
    assert combined.is_combined
    assert combined.gross == Decimal("1150")
    assert combined.combined_from_rows == (1, 2)
    assert combined.row_index == 1
    assert "Combined from 2 rows: 1, 2" in combined.warnings


def test_three_rows_same_title_summed():
    rows = [_row(1, "100", title="Set"), _row(2, "200", title="set"), _row(3, "50.25", title="Set")]
    [combined] = combine_rows(rows, enabled=True)
    assert combined.gross == Decimal("350.25")
    assert combined.combined_from_rows == (1, 2, 3)


def test_different_titles_not_combined():
    rows = [_row(1, title="Early"), _row(2, title="Late")]
    out = combine_rows(rows, enabled=True)
    assert len(out) == 2
    assert not any(r.is_combined for r in out)


def test_blank_title_joins_anchor():
    rows = [_row(1, title="Early"), _row(2, title=None), _row(3, title="Late")]
    out = combine_rows(rows, enabled=True)
    assert [r.combined_from_rows for r in out] == [(1, 2), (3,)]


def test_no_row_in_two_groups_and_order_preserved():
    rows = [
        _row(1, payer="A"),
        _row(2, payer="B"),
        _row(3, payer="a"),
        _row(4, payer="B", date=date(2026, 1, 16)),
        _row(5, payer="B"),
    ]
    out = combine_rows(rows, enabled=True)
    covered = [i for r in out for i in r.combined_from_rows]
    assert sorted(covered) == [1, 2, 3, 4, 5]
    assert len(covered) == len(set(covered))
    assert [r.combined_from_rows for r in out] == [(1, 3), (2, 5), (4,)]


def test_invalid_rows_pass_through_uncombined():
    bad = NormalizedRow(row_index=2, date=D, payer="Blue Note", errors=("Invalid amount: x",))
    out = combine_rows([_row(1), bad, _row(3)], enabled=True)
    assert [r.combined_from_rows for r in out] == [(1, 3), (2,)]
    assert out[1].errors == ("Invalid amount: x",)


def test_optional_money_summed_and_notes_joined():
    rows = [
        _row(1, "100", tips=Decimal("10"), notes="deposit"),
        _row(2, "200", fees=Decimal("5"), notes="balance"),
    ]
    [combined] = combine_rows(rows, enabled=True)
    assert combined.tips == Decimal("10")
    assert combined.fees == Decimal("5")
    assert combined.per_diem is None
    assert combined.notes == "deposit | balance"


def test_drop_flagged_rows_removes_whole_group():
    out = combine_rows([_row(1), _row(2), _row(3, payer="Smalls")], enabled=True)
    kept = drop_flagged_rows(out, {2})
    assert [r.combined_from_rows for r in kept] == [(3,)]
