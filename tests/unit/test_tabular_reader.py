from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pandas as pd
import pytest

from gig_importer.services.normalizer import auto_detect_columns, normalize_rows
from gig_importer.tabular.reader import ReaderError, read_rows


def test_read_csv_keeps_text(tmp_path: Path):
    f = tmp_path / "gigs.csv"
    f.write_text(
        " Date ,Payer,Gross,Paid\n"
        "01/15/2026,Blue Note,\"1,200.00\",NA\n"
        "2026-01-16,007 Club,0850,\n",
        encoding="utf-8",
    )
    data = read_rows(f)
    assert data.headers == ["Date", "Payer", "Gross", "Paid"]
    assert data.rows == [
        {"Date": "01/15/2026", "Payer": "Blue Note", "Gross": "1,200.00", "Paid": "NA"},
        {"Date": "2026-01-16", "Payer": "007 Club", "Gross": "0850", "Paid": ""},
    ]


def test_read_csv_skips_blank_lines(tmp_path: Path):
    f = tmp_path / "gigs.csv"
    f.write_text("Date,Payer,Gross\n2026-01-15,A,1\n,,\n2026-01-16,B,2\n", encoding="utf-8")
    assert [r["Payer"] for r in read_rows(f).rows] == ["A", "B"]


def test_read_header_only_csv(tmp_path: Path):
    f = tmp_path / "gigs.csv"
    f.write_text("Date,Payer,Gross\n", encoding="utf-8")
    data = read_rows(f)
    assert data.headers == ["Date", "Payer", "Gross"]
    assert data.rows == []


def test_read_empty_file(tmp_path: Path):
    f = tmp_path / "gigs.csv"
    f.write_text("", encoding="utf-8")
    data = read_rows(f)
    assert data.headers == []
    assert data.rows == []


def test_read_xlsx_first_sheet(tmp_path: Path):
    f = tmp_path / "gigs.xlsx"
    df = pd.DataFrame({"Date": ["2026-01-15"], "Payer": ["Blue Note"], "Gross": ["850"]})
    with pd.ExcelWriter(f, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Gigs", index=False)
    data = read_rows(f)
    assert data.headers == ["Date", "Payer", "Gross"]
    assert data.rows == [{"Date": "2026-01-15", "Payer": "Blue Note", "Gross": "850"}]


def test_read_missing_file(tmp_path: Path):
    with pytest.raises(ReaderError, match="input file not found"):
        read_rows(tmp_path / "nope.csv")


def test_read_unsupported_suffix(tmp_path: Path):
    f = tmp_path / "gigs.txt"
    f.write_text("x", encoding="utf-8")
    with pytest.raises(ReaderError, match="unsupported input file type"):
        read_rows(f)


def test_read_xlsx_date_cells_become_iso_text(tmp_path: Path):
    f = tmp_path / "gigs.xlsx"
    df = pd.DataFrame(
        {
            "Date": [datetime(2026, 1, 15), datetime(2026, 2, 3, 20, 30)],
            "Payer": ["Blue Note", "Smalls"],
            "Gross": [850, 300],
        }
    )
    with pd.ExcelWriter(f, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Gigs", index=False)
    data = read_rows(f)
    assert data.rows == [
        {"Date": "2026-01-15", "Payer": "Blue Note", "Gross": "850"},
        {"Date": "2026-02-03", "Payer": "Smalls", "Gross": "300"},
    ]


def test_read_xlsx_date_cells_normalize_without_errors(tmp_path: Path):
    f = tmp_path / "gigs.xlsx"
    df = pd.DataFrame({"Date": [datetime(2026, 1, 15)], "Payer": ["Blue Note"], "Gross": [850]})
    with pd.ExcelWriter(f, engine="openpyxl") as writer:
        df.to_excel(writer, index=False)
    data = read_rows(f)
    [row] = normalize_rows(data.rows, auto_detect_columns(data.headers))
    assert row.errors == ()
    assert row.date == date(2026, 1, 15)
