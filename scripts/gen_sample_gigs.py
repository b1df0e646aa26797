#!/usr/bin/env python3
"""Sample gig dataset generator.

Writes a synthetic gig ledger (CSV or XLSX) in the layout musicians typically
export from spreadsheets: one line per payment, US dates, currency-formatted
amounts, free-form payment methods. A share of lines is deliberately messy
(typo'd payer names, split payments for the same show, blank amounts) so the
file exercises payer matching, row combination and validation.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

PAYERS = [
    "Blue Note",
    "The Jazz Standard",
    "Smalls Jazz Club",
    "Birdland",
    "Village Vanguard",
    "Dizzy's Club",
    "Private Event",
]
TITLES = ["Late Set", "Early Set", "Quartet", "Big Band", "Brunch", "Wedding", ""]
METHODS = ["Zelle", "cash", "check", "Venmo", "paypal", "direct deposit", "wire"]
CITIES = [("New York", "NY"), ("Brooklyn", "New York"), ("Newark", "NJ"), ("Boston", "MA")]


def _typo(name: str, rng: np.random.Generator) -> str:
    """Drop one character (single-edit variant of a payer name)."""
    pos = int(rng.integers(1, len(name) - 1))
    return name[:pos] + name[pos + 1:]


def generate_gigs(rows: int, seed: int = 42, messy_ratio: float = 0.1) -> pd.DataFrame:
    """Generate a gig ledger DataFrame with string cells only.

    Args:
        rows: number of data rows
        seed: random seed for reproducible data
        messy_ratio: share of rows carrying a typo, split payment or missing amount

    Returns:
        DataFrame with the headers of a typical gig spreadsheet
    """
    rng = np.random.default_rng(seed)
    dates = pd.date_range("2025-01-01", "2026-12-31", periods=365)

    records: list[dict[str, str]] = []
    while len(records) < rows:
        gig_date = pd.Timestamp(rng.choice(dates))
        payer = str(rng.choice(PAYERS))
        title = str(rng.choice(TITLES))
        city, state = CITIES[int(rng.integers(0, len(CITIES)))]
        gross = float(np.round(rng.uniform(75, 2500), 2))
        record = {
            "Date": gig_date.strftime("%m/%d/%Y"),
            "Venue/Payer": payer,
            "Event": title,
            "Gross": f"${gross:,.2f}",
            "Net Total": "",
            "Tips": f"{rng.uniform(0, 120):.2f}" if rng.random() < 0.3 else "",
            "Fees": f"{rng.uniform(0, 60):.2f}" if rng.random() < 0.2 else "",
            "Payment Method": str(rng.choice(METHODS)),
            "Paid": str(rng.choice(["yes", "no", "Y", ""])),
            "City": city,
            "State": state,
            "Notes": "",
        }

        if rng.random() < messy_ratio:
            kind = int(rng.integers(0, 3))
            if kind == 0 and len(payer) >= 6:
                record["Venue/Payer"] = _typo(payer, rng)
            elif kind == 1:
                # 同じ公演の分割支払い (combine 対象)
                split = float(np.round(gross / 3, 2))
                records.append({**record, "Gross": f"{split:.2f}", "Notes": "deposit"})
                record["Gross"] = f"{gross - split:.2f}"
            else:
                record["Net Total"] = record["Gross"]
                record["Gross"] = ""
        records.append(record)

    return pd.DataFrame(records[:rows])


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic gig ledger for importer runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/gigs.csv
  %(prog)s data/gigs.xlsx --rows 5000 --messy 0.2 --seed 7
        """,
    )
    parser.add_argument("output", type=Path, help="Output file (.csv or .xlsx)")
    parser.add_argument("--rows", type=int, default=500, help="Number of data rows (default: 500)")
    parser.add_argument("--messy", type=float, default=0.1, help="Share of messy rows (default: 0.1)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0 <= args.messy <= 1:
        print("Error: --messy must be between 0 and 1", file=sys.stderr)
        return 1
    if args.output.suffix.lower() not in {".csv", ".xlsx"}:
        print("Error: output must end in .csv or .xlsx", file=sys.stderr)
        return 1

    df = generate_gigs(args.rows, args.seed, args.messy)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    if args.output.suffix.lower() == ".csv":
        df.to_csv(args.output, index=False)
    else:
        df.to_excel(args.output, index=False, engine="openpyxl")

    print(f"Created gig ledger: {args.output}")
    print(f"  Rows: {len(df):,}")
    print(f"  Payers: {df['Venue/Payer'].nunique()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
