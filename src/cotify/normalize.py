#!/usr/bin/env python3
"""
Normalization helpers for values read from third-party spreadsheets.

Cells arrive as whatever the reader produced: numbers, dates, or strings
written with Brazilian conventions ("R$ 1.234,56", "05/01/24"). The
functions here never raise on malformed input; numbers degrade to 0 and
dates to today, so a messy sheet still imports.
"""

import datetime
import math
import re
import unicodedata
from typing import Any, Optional

# Serial day number of 1970-01-01 in spreadsheet date systems
EXCEL_UNIX_EPOCH_SERIAL = 25569
UNIX_EPOCH = datetime.datetime(1970, 1, 1)
# Numbers above this are read as spreadsheet serial dates
EXCEL_SERIAL_THRESHOLD = 30000

CPF_LENGTH = 11
CNPJ_LENGTH = 14
DOCUMENT_LENGTHS = {"CPF": CPF_LENGTH, "CNPJ": CNPJ_LENGTH}

_CURRENCY_AND_SPACES_RE = re.compile(r"[R$€£\s ]")
_LEADING_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_NON_DIGITS_RE = re.compile(r"\D")

# Formats tried after ISO parsing fails, in order
_FALLBACK_DATE_FORMATS = ("%Y/%m/%d", "%d-%m-%Y", "%d.%m.%Y", "%Y%m%d")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_locale_number(raw: Any) -> float:
    """
    Parse a Brazilian-formatted number or currency string.

    Currency symbols and whitespace are stripped, "." is treated as the
    thousands separator and "," as the decimal separator. Anything that
    cannot be read returns 0.

    Examples:
        "1.234,56"  -> 1234.56
        "R$ 50,00"  -> 50.0
        "abc"       -> 0
    """
    if _is_number(raw):
        if isinstance(raw, float) and math.isnan(raw):
            return 0
        return raw

    text = str(raw if raw is not None else "").strip()
    text = _CURRENCY_AND_SPACES_RE.sub("", text)
    text = text.replace(".", "").replace(",", ".", 1)

    match = _LEADING_FLOAT_RE.match(text)
    if not match:
        return 0
    value = float(match.group(0))
    if math.isnan(value) or math.isinf(value):
        return 0
    return value


def _from_excel_serial(serial: float) -> datetime.date:
    return (UNIX_EPOCH + datetime.timedelta(days=serial - EXCEL_UNIX_EPOCH_SERIAL)).date()


def _from_slashed(text: str) -> Optional[datetime.date]:
    """DD/MM/YYYY or DD/MM/YY; None if not a real calendar date"""
    parts = text.split("/")
    if len(parts) != 3:
        return None
    day = parts[0].strip().zfill(2)
    month = parts[1].strip().zfill(2)
    year = parts[2].strip()
    if len(year) == 2:
        year = f"20{year}"
    try:
        return datetime.date.fromisoformat(f"{year}-{month}-{day}")
    except ValueError:
        return None


def _from_generic(text: str) -> Optional[datetime.date]:
    try:
        return datetime.datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_flexible_date(raw: Any, today: Optional[datetime.date] = None) -> datetime.date:
    """
    Parse a cell into a calendar date.

    Rules are applied in order:
        1. empty value -> today
        2. number above 30000 -> spreadsheet serial day count
        3. text with "/" -> DD/MM/YYYY (two-digit years become 20YY)
        4. ISO and a few other unambiguous layouts
        5. anything else -> today

    Date and datetime objects (as produced by spreadsheet readers) are
    returned as plain dates.
    """
    if today is None:
        today = datetime.date.today()

    if raw is None or raw == "" or raw == 0:
        return today

    if isinstance(raw, datetime.datetime):
        return raw.date()
    if isinstance(raw, datetime.date):
        return raw

    if _is_number(raw) and raw > EXCEL_SERIAL_THRESHOLD:
        try:
            return _from_excel_serial(raw)
        except (OverflowError, ValueError):
            return today

    text = str(raw).strip()
    if not text:
        return today

    if "/" in text:
        parsed = _from_slashed(text)
        if parsed is not None:
            return parsed

    parsed = _from_generic(text)
    if parsed is not None:
        return parsed

    return today


def normalize_text(raw: Any) -> str:
    """Lowercase, trim and strip diacritics for fuzzy comparison"""
    if raw is None:
        return ""
    text = str(raw).lower().strip()
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def clean_document(raw: Any) -> str:
    """Digits-only form of a CPF/CNPJ"""
    if raw is None:
        return ""
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    return _NON_DIGITS_RE.sub("", str(raw))


def document_type(raw: Any) -> Optional[str]:
    """'CPF', 'CNPJ' or None, by digit count"""
    length = len(clean_document(raw))
    if length == CPF_LENGTH:
        return "CPF"
    if length == CNPJ_LENGTH:
        return "CNPJ"
    return None


def validate_document(raw: Any, doc_type: str = "CNPJ") -> str:
    """
    Check a document typed in by hand and return its canonical form.

    Only the digit count is checked against the declared type. The import
    pipeline does not call this; it accepts any digit string as a key.

    Raises:
        ValueError: if the type is unknown or the length does not match
    """
    doc_type = (doc_type or "").strip().upper()
    if doc_type not in DOCUMENT_LENGTHS:
        raise ValueError(f"Unknown document type '{doc_type}' (use CPF or CNPJ)")
    document = clean_document(raw)
    if len(document) != DOCUMENT_LENGTHS[doc_type]:
        raise ValueError(f"Invalid {doc_type}: {DOCUMENT_LENGTHS[doc_type]} digits expected")
    return document


def format_document(raw: Any) -> str:
    """Render a document as 000.000.000-00 (CPF) or 00.000.000/0000-00 (CNPJ)"""
    d = clean_document(raw)
    if len(d) == CPF_LENGTH:
        return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"
    if len(d) == CNPJ_LENGTH:
        return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"
    return d


def format_currency(value: float) -> str:
    """Brazilian real formatting: R$ 1.234,56"""
    text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {text}"
