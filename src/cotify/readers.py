#!/usr/bin/env python3
"""
Materialize an import batch from a file.

Delimited text is read with a header line; spreadsheet workbooks, both
OOXML (.xlsx) and legacy BIFF (.xls), use the first sheet with its first
row as the header. Either way the result is a list of dicts mapping column
name to raw cell value, with empty cells as "" rather than missing keys.
"""

import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError
from xlrd.xldate import XLDateError

from .config import Config

logger = logging.getLogger("cotify")

Row = Dict[str, Any]

DELIMITED_SUFFIXES = (".csv", ".txt", ".tsv")
WORKBOOK_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
LEGACY_WORKBOOK_SUFFIXES = (".xls",)
CANDIDATE_DELIMITERS = ",;\t|"
SNIFF_LINES = 5
FALLBACK_ENCODING = "latin-1"


class ReaderError(Exception):
    """Raised when a file cannot be turned into rows"""

    pass


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_names(cells) -> List[str]:
    """Header texts; unnamed columns get __EMPTY_n keys"""
    names = []
    seen: Dict[str, int] = {}
    for index, cell in enumerate(cells):
        name = str(cell).strip() if not _is_blank(cell) else f"__EMPTY_{index}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def _decode(data: bytes, encoding: str, filepath) -> str:
    """Decode with the given encoding, falling back to Latin-1 which accepts any byte"""
    try:
        return data.decode(encoding)
    except UnicodeDecodeError:
        logger.warning(f"{filepath} is not valid {encoding}, reading it as {FALLBACK_ENCODING}")
        return data.decode(FALLBACK_ENCODING)


def read_delimited(
    filepath: Union[str, Path],
    encoding: Optional[str] = None,
    delimiter: Optional[str] = None,
) -> List[Row]:
    """Rows of a delimited text file; blank lines are skipped"""
    encoding = encoding or Config.CSV_ENCODING
    try:
        with open(filepath, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ReaderError(f"Could not read {filepath}: {e}") from e

    text = _decode(data, encoding, filepath)
    if text.startswith("\ufeff"):
        text = text[1:]
    # UTF-8 BOM read as a single-byte encoding
    if text.startswith("\xef\xbb\xbf"):
        text = text[3:]

    if not text.strip():
        return []

    if delimiter is None:
        try:
            lines = text.split("\n", SNIFF_LINES)[:SNIFF_LINES]
            sample = "\n".join(line.rstrip("\r") for line in lines)
            dialect = csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS)
            delimiter = dialect.delimiter
        except csv.Error:
            delimiter = ","

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    try:
        header = _header_names(next(reader))
    except StopIteration:
        return []

    rows: List[Row] = []
    for values in reader:
        if all(_is_blank(v) for v in values):
            continue
        row = {name: "" for name in header}
        for name, value in zip(header, values):
            row[name] = value
        rows.append(row)

    logger.debug(f"Read {len(rows)} rows from {filepath} (delimiter {delimiter!r})")
    return rows


def read_workbook(filepath: Union[str, Path]) -> List[Row]:
    """Rows of the first sheet of a workbook; blank rows are skipped"""
    try:
        wb = load_workbook(filepath, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as e:
        raise ReaderError(f"Could not open workbook {filepath}: {e}") from e

    try:
        if not wb.sheetnames:
            raise ReaderError("Workbook has no sheets")
        ws = wb[wb.sheetnames[0]]

        values = ws.iter_rows(values_only=True)
        try:
            header = _header_names(next(values))
        except StopIteration:
            return []

        rows: List[Row] = []
        for cells in values:
            if cells is None or all(_is_blank(c) for c in cells):
                continue
            row = {name: "" for name in header}
            for name, cell in zip(header, cells):
                row[name] = "" if cell is None else cell
            rows.append(row)
    finally:
        wb.close()

    logger.debug(f"Read {len(rows)} rows from {filepath}")
    return rows


def _legacy_cell_value(cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return ""
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate_as_datetime(cell.value, datemode)
        except XLDateError:
            return cell.value
    return cell.value


def read_legacy_workbook(filepath: Union[str, Path]) -> List[Row]:
    """Rows of the first sheet of a legacy .xls workbook; blank rows are skipped"""
    try:
        book = xlrd.open_workbook(str(filepath))
    except (xlrd.XLRDError, CompDocError, OSError, ValueError) as e:
        raise ReaderError(f"Could not open workbook {filepath}: {e}") from e

    try:
        if book.nsheets == 0:
            raise ReaderError("Workbook has no sheets")
        sheet = book.sheet_by_index(0)
        if sheet.nrows == 0:
            return []

        header = _header_names(_legacy_cell_value(c, book.datemode) for c in sheet.row(0))
        rows: List[Row] = []
        for index in range(1, sheet.nrows):
            cells = [_legacy_cell_value(c, book.datemode) for c in sheet.row(index)]
            if all(_is_blank(c) for c in cells):
                continue
            row = {name: "" for name in header}
            for name, cell in zip(header, cells):
                row[name] = cell
            rows.append(row)
    finally:
        book.release_resources()

    logger.debug(f"Read {len(rows)} rows from {filepath}")
    return rows


def read_rows(filepath: Union[str, Path]) -> List[Row]:
    """
    Read a whole batch from a file, dispatching on its extension.

    Raises:
        ReaderError: missing file, unsupported format or unreadable content
    """
    path = Path(filepath)
    if not path.exists():
        raise ReaderError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in DELIMITED_SUFFIXES:
        return read_delimited(path, delimiter="\t" if suffix == ".tsv" else None)
    if suffix in WORKBOOK_SUFFIXES:
        return read_workbook(path)
    if suffix in LEGACY_WORKBOOK_SUFFIXES:
        return read_legacy_workbook(path)
    raise ReaderError(
        f"Unsupported file type '{suffix}'. Use a delimited text file (.csv) or an Excel workbook (.xlsx, .xls)"
    )
