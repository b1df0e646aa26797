from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from ..models.rows import ColumnMapping, NormalizedRow, RawRow

"""Column normalization service.

Maps arbitrary input columns onto the canonical gig row shape and parses
dates, money and booleans. Every raw row yields exactly one NormalizedRow (same
order, ``row_index`` = position + 1); problems are reported on the row itself:

- errors: blocking (bad/missing date, payer or amount, bad money value)
- warnings: informational (defaulted boolean, net total used as gross, ...)

Everything here is a pure function of its inputs.
"""

__all__ = [
    "COLUMN_SYNONYMS",
    "TWO_DIGIT_YEAR_PIVOT",
    "auto_detect_columns",
    "normalize_date",
    "normalize_amount",
    "normalize_boolean",
    "normalize_payment_method",
    "normalize_state",
    "normalize_row",
    "normalize_rows",
]

# 2桁年: 00-49 -> 2000年代, 50-99 -> 1900年代
TWO_DIGIT_YEAR_PIVOT = 50

CENT = Decimal("0.01")

# Resolution order matters: a header claimed by an earlier field is not reused
# (e.g. "Venue" goes to payer when no payer-like header precedes it).
COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "date": ("date", "gig date", "gigdate", "event date"),
    "payer": ("payer", "venue", "client", "customer", "company"),
    "title": ("title", "description", "event", "gig title", "event name"),
    "venue": ("venue", "location", "venue name"),
    "city": ("city",),
    "state": ("state",),
    "gross": ("gross", "amount", "total", "payment", "gross amount"),
    "net_total": ("net", "net total", "net amount", "nettotal"),
    "tips": ("tips", "tip"),
    "fees": ("fees", "fee"),
    "per_diem": ("per diem", "perdiem", "per-diem"),
    "other_income": ("other", "other income", "otherincome", "misc", "miscellaneous"),
    "payment_method": ("payment method", "method", "paymentmethod"),
    "paid": ("paid", "paid?", "status"),
    "taxes_withheld": ("taxes withheld", "taxeswithheld", "withholding", "taxes", "tax withheld"),
    "notes": ("notes", "memo", "comments"),
}

_TRUE_WORDS = frozenset({"yes", "y", "true", "1"})
_FALSE_WORDS = frozenset({"no", "n", "false", "0"})

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")

_CURRENCY_SYMBOLS = "$£€"
# 指数表記・桁区切り "_" は不可
_PLAIN_AMOUNT = re.compile(r"^(\d+(\.\d*)?|\.\d+)$")

PAYMENT_METHODS: dict[str, str] = {
    "direct deposit": "Direct Deposit",
    "directdeposit": "Direct Deposit",
    "dd": "Direct Deposit",
    "ach": "Direct Deposit",
    "cash": "Cash",
    "venmo": "Venmo",
    "cashapp": "Cash App",
    "cash app": "Cash App",
    "check": "Check",
    "cheque": "Check",
    "paypal": "PayPal",
    "zelle": "Zelle",
    "other": "Other",
}

US_STATES: dict[str, str] = {
    "ALABAMA": "AL", "ALASKA": "AK", "ARIZONA": "AZ", "ARKANSAS": "AR",
    "CALIFORNIA": "CA", "COLORADO": "CO", "CONNECTICUT": "CT", "DELAWARE": "DE",
    "FLORIDA": "FL", "GEORGIA": "GA", "HAWAII": "HI", "IDAHO": "ID",
    "ILLINOIS": "IL", "INDIANA": "IN", "IOWA": "IA", "KANSAS": "KS",
    "KENTUCKY": "KY", "LOUISIANA": "LA", "MAINE": "ME", "MARYLAND": "MD",
    "MASSACHUSETTS": "MA", "MICHIGAN": "MI", "MINNESOTA": "MN", "MISSISSIPPI": "MS",
    "MISSOURI": "MO", "MONTANA": "MT", "NEBRASKA": "NE", "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH", "NEW JERSEY": "NJ", "NEW MEXICO": "NM", "NEW YORK": "NY",
    "NORTH CAROLINA": "NC", "NORTH DAKOTA": "ND", "OHIO": "OH", "OKLAHOMA": "OK",
    "OREGON": "OR", "PENNSYLVANIA": "PA", "RHODE ISLAND": "RI", "SOUTH CAROLINA": "SC",
    "SOUTH DAKOTA": "SD", "TENNESSEE": "TN", "TEXAS": "TX", "UTAH": "UT",
    "VERMONT": "VT", "VIRGINIA": "VA", "WASHINGTON": "WA", "WEST VIRGINIA": "WV",
    "WISCONSIN": "WI", "WYOMING": "WY", "DISTRICT OF COLUMBIA": "DC",
}
_STATE_CODES = frozenset(US_STATES.values())


def auto_detect_columns(headers: Sequence[str]) -> ColumnMapping:
    """Guess the column mapping from header strings.

    Per canonical field (in COLUMN_SYNONYMS order) the first header, in header
    order, whose trimmed lower-cased text is one of the field's synonyms wins.
    Unmatched headers are ignored.
    """
    lowered = [str(h).strip().lower() for h in headers]
    claimed: set[int] = set()
    detected: dict[str, str] = {}
    for field_name, synonyms in COLUMN_SYNONYMS.items():
        for idx, header in enumerate(lowered):
            if idx in claimed or header not in synonyms:
                continue
            detected[field_name] = headers[idx]
            claimed.add(idx)
            break
    return ColumnMapping(**detected)


def normalize_date(text: str | None) -> tuple[date | None, str | None]:
    """Parse ISO or US slash dates. Returns (value, error)."""
    if text is None or not text.strip():
        return None, "Date is required"
    cleaned = text.strip()

    m = _ISO_DATE.match(cleaned)
    if m:
        year, month, day = (int(g) for g in m.groups())
    else:
        m = _US_DATE.match(cleaned)
        if not m:
            return None, f"Invalid date format: {cleaned}"
        month, day = int(m.group(1)), int(m.group(2))
        year_text = m.group(3)
        year = int(year_text)
        if len(year_text) == 2:
            year += 2000 if year < TWO_DIGIT_YEAR_PIVOT else 1900
    try:
        return date(year, month, day), None
    except ValueError:
        return None, f"Invalid date: {cleaned}"


def normalize_amount(text: str | None) -> tuple[Decimal | None, str | None]:
    """Parse a non-negative money value. Returns (value, error); blank -> (None, None)."""
    if text is None or not text.strip():
        return None, None
    cleaned = text.strip().replace(",", "").replace(" ", "")
    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1]
    if cleaned.startswith("-"):
        negative = True
        cleaned = cleaned[1:]
    if cleaned[:1] and cleaned[0] in _CURRENCY_SYMBOLS:
        cleaned = cleaned[1:]
    if cleaned.startswith("-"):  # "$-5"
        negative = True
        cleaned = cleaned[1:]
    if not _PLAIN_AMOUNT.match(cleaned):
        return None, f"Invalid amount: {text.strip()}"
    value = Decimal(cleaned)
    if negative and value != 0:
        return None, f"Negative amount not allowed: {text.strip()}"
    return value.quantize(CENT, rounding=ROUND_HALF_UP), None


def normalize_boolean(text: str | None) -> bool | None:
    """yes/no, y/n, true/false, 1/0 (case-insensitive). Unknown or blank -> None."""
    if text is None or not text.strip():
        return None
    cleaned = text.strip().lower()
    if cleaned in _TRUE_WORDS:
        return True
    if cleaned in _FALSE_WORDS:
        return False
    return None


def normalize_payment_method(text: str | None) -> str | None:
    if text is None or not text.strip():
        return None
    return PAYMENT_METHODS.get(text.strip().lower(), "Other")


def normalize_state(text: str | None) -> str | None:
    """Two-letter state code from a code or a full name; None when unknown."""
    if text is None or not text.strip():
        return None
    cleaned = " ".join(text.strip().upper().split())
    if cleaned in _STATE_CODES:
        return cleaned
    return US_STATES.get(cleaned)


def _cell(row: RawRow, header: str | None, null_sentinels: set[str] | None) -> str | None:
    if not header:
        return None
    value = row.get(header)
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if null_sentinels and text.upper() in null_sentinels:
        return None
    return text


def normalize_row(
    row: RawRow,
    mapping: ColumnMapping,
    row_index: int,
    null_sentinels: set[str] | None = None,
) -> NormalizedRow:
    """Normalize one raw row. Never raises for bad data; see ``errors``."""
    errors: list[str] = []
    warnings: list[str] = []
    values: dict[str, object] = {}

    def cell(header: str | None) -> str | None:
        return _cell(row, header, null_sentinels)

    # Date (required)
    parsed_date, date_error = normalize_date(cell(mapping.date))
    if date_error:
        errors.append(date_error)
    values["date"] = parsed_date

    # Payer (required)
    payer = cell(mapping.payer)
    if payer:
        values["payer"] = payer
    else:
        errors.append("Payer is required")

    # Money fields; gross / net total are alternative sources for the amount
    money_headers = {
        "gross": mapping.gross,
        "net_total": mapping.net_total,
        "tips": mapping.tips,
        "fees": mapping.fees,
        "per_diem": mapping.per_diem,
        "other_income": mapping.other_income,
    }
    for field_name, header in money_headers.items():
        amount, amount_error = normalize_amount(cell(header))
        if amount_error:
            errors.append(amount_error)
        values[field_name] = amount

    gross_text = cell(mapping.gross)
    net_text = cell(mapping.net_total)
    if not gross_text and not net_text:
        errors.append("At least one amount (Gross or Net Total) is required")
    elif values["gross"] is None and values["net_total"] is not None and not gross_text:
        warnings.append("Net Total provided without Gross - will be imported as Gross")
    elif values["gross"] == 0 and values["net_total"]:
        warnings.append("Gross is 0 - Net Total will be imported as Gross")

    # Taxes withheld: Yes/No flag (stored as 1/0) or an amount; never blocking
    tax_text = cell(mapping.taxes_withheld)
    values["taxes_withheld"] = None
    if tax_text:
        flag = normalize_boolean(tax_text)
        if flag is not None:
            values["taxes_withheld"] = Decimal("1.00") if flag else Decimal("0.00")
        else:
            taxes, taxes_error = normalize_amount(tax_text)
            if taxes_error:
                warnings.append(f"Unrecognized taxes withheld value '{tax_text}' - left blank")
            values["taxes_withheld"] = taxes

    # Optional text fields
    for field_name in ("title", "venue", "city", "notes"):
        values[field_name] = cell(getattr(mapping, field_name))

    state_text = cell(mapping.state)
    if state_text:
        state = normalize_state(state_text)
        if state is None:
            warnings.append(f"Unrecognized state '{state_text}' - left blank")
        values["state"] = state

    values["payment_method"] = normalize_payment_method(cell(mapping.payment_method))

    paid_text = cell(mapping.paid)
    if paid_text:
        paid = normalize_boolean(paid_text)
        if paid is None:
            warnings.append(f"Unrecognized paid value '{paid_text}' - defaulted to No")
            paid = False
        values["paid"] = paid

    return NormalizedRow(
        row_index=row_index,
        errors=tuple(errors),
        warnings=tuple(warnings),
        **values,  # type: ignore[arg-type]
    )


def normalize_rows(
    rows: Iterable[RawRow],
    mapping: ColumnMapping,
    null_sentinels: set[str] | None = None,
) -> list[NormalizedRow]:
    return [
        normalize_row(row, mapping, index, null_sentinels)
        for index, row in enumerate(rows, start=1)
    ]
