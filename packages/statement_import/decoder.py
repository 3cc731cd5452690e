"""Raw statement content → rectangular grid of string cells.

Two front-ends emit the same :data:`~statement_import.models.Row` shape:

- delimited text, parsed with the stdlib :mod:`csv` module (RFC 4180 quoting:
  doubled quotes, delimiters and newlines inside quoted fields);
- spreadsheet workbooks, first worksheet only, read with ``openpyxl``
  (``.xlsx``) or ``xlrd`` (legacy ``.xls``).

Neither raises on malformed input. Garbage simply produces rows without
usable columns, which the detector and pipeline filter out later.
"""

from __future__ import annotations

import csv
import datetime as dt
import io
from collections.abc import Iterable, Sequence
from os import PathLike
from pathlib import Path
from typing import Any

import xlrd
from openpyxl import load_workbook

from .logging_setup import get_logger
from .models import Row

_logger = get_logger("statement_import.decoder")

_DELIMITER_CANDIDATES = ",;\t|"
_SNIFF_SAMPLE_CHARS = 20_000
_ZIP_MAGIC = b"PK\x03\x04"
_SPREADSHEET_SUFFIXES = frozenset({".xlsx", ".xlsm", ".xltx", ".xltm"})
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_LEGACY_SPREADSHEET_SUFFIXES = frozenset({".xls", ".xlt"})


def _is_blank(row: Sequence[str]) -> bool:
    return all(not cell.strip() for cell in row)


# ---------------------------------------------------------------------------
# Delimited text
# ---------------------------------------------------------------------------


def sniff_delimiter(text: str) -> str:
    """Guess the delimiter with :class:`csv.Sniffer` over the first 20k chars.

    The sniffer prefers a delimiter that occurs equally often on every line,
    so a comma inside a ``;``-separated description does not win. Undecidable
    input (one column, empty text) falls back to a comma.
    """

    sample = text[:_SNIFF_SAMPLE_CHARS]
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITER_CANDIDATES).delimiter
    except csv.Error:
        return ","


def decode_delimited(text: str, *, delimiter: str | None = None) -> list[Row]:
    """Parse delimited text into rows of verbatim cells.

    Rows made only of empty or whitespace cells are dropped. A ``csv.Error``
    ends decoding at the offending row; rows read up to that point are kept.
    """

    if text.startswith("\ufeff"):
        text = text[1:]
    delim = delimiter or sniff_delimiter(text)

    rows: list[Row] = []
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delim, quotechar='"')
    try:
        for raw in reader:
            if not raw or _is_blank(raw):
                continue
            rows.append(tuple(raw))
    except csv.Error as exc:
        _logger.warning(
            "decode:delimited stopped line=%d rows=%d error=%s",
            reader.line_num,
            len(rows),
            exc,
        )
    return rows


def encode_delimited(rows: Iterable[Sequence[str]], *, delimiter: str = ",") -> str:
    """Inverse of :func:`decode_delimited` (minimal quoting, ``\\n`` line ends)."""

    buf = io.StringIO(newline="")
    writer = csv.writer(buf, delimiter=delimiter, quotechar='"', lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Spreadsheets
# ---------------------------------------------------------------------------


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


def decode_spreadsheet(data: bytes) -> list[Row]:
    """Read the first worksheet of a workbook into rows of strings.

    Numbers are rendered without locale grouping; dates become
    ``YYYY-MM-DD``; empty cells become ``""``. A workbook that cannot be
    opened yields no rows.
    """

    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:  # noqa: BLE001 - openpyxl raises many unrelated types
        _logger.warning("decode:spreadsheet unreadable error=%s", exc)
        return []

    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        rows: list[Row] = []
        for values in ws.iter_rows(values_only=True):
            row = tuple(_cell_to_text(v) for v in values)
            if not row or _is_blank(row):
                continue
            rows.append(row)
        return rows
    finally:
        wb.close()


def _xls_cell_to_text(cell: xlrd.sheet.Cell, datemode: int) -> str:
    match cell.ctype:
        case xlrd.XL_CELL_EMPTY | xlrd.XL_CELL_BLANK | xlrd.XL_CELL_ERROR:
            return ""
        case xlrd.XL_CELL_DATE:
            return _cell_to_text(xlrd.xldate_as_datetime(cell.value, datemode))
        case xlrd.XL_CELL_BOOLEAN:
            return _cell_to_text(bool(cell.value))
        case _:
            return _cell_to_text(cell.value)


def decode_legacy_spreadsheet(data: bytes) -> list[Row]:
    """Read the first sheet of a BIFF (``.xls``) workbook with ``xlrd``.

    Cells are coerced exactly like :func:`decode_spreadsheet`; date cells are
    converted with the workbook's own date mode.
    """

    try:
        book = xlrd.open_workbook(file_contents=data, on_demand=True)
    except Exception as exc:  # noqa: BLE001 - xlrd raises several unrelated types
        _logger.warning("decode:xls unreadable error=%s", exc)
        return []

    try:
        if book.nsheets == 0:
            return []
        sheet = book.sheet_by_index(0)
        rows: list[Row] = []
        for r in range(sheet.nrows):
            row = tuple(_xls_cell_to_text(c, book.datemode) for c in sheet.row(r))
            if not row or _is_blank(row):
                continue
            rows.append(row)
        return rows
    finally:
        book.release_resources()


# ---------------------------------------------------------------------------
# Front-end
# ---------------------------------------------------------------------------


def _bytes_to_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Older Spanish/Mexican bank exports are commonly Windows-1252/Latin-1
        return data.decode("latin-1")


def decode(content: bytes | str, *, filename: str | None = None) -> list[Row]:
    """Decode statement content, sniffing spreadsheet vs delimited text.

    ``str`` content is always delimited text. ``bytes`` are treated as an
    OOXML workbook when they carry the ZIP signature or ``filename`` has an
    ``.xlsx``-family suffix, and as a legacy ``.xls`` workbook when they carry
    the OLE2 signature or an ``.xls`` suffix. Anything else is decoded as
    UTF-8 (Latin-1 fallback).
    """

    suffix = Path(filename).suffix.lower() if filename is not None else ""
    if isinstance(content, str):
        rows = decode_delimited(content)
        kind = "delimited"
    elif content.startswith(_ZIP_MAGIC) or suffix in _SPREADSHEET_SUFFIXES:
        rows = decode_spreadsheet(content)
        kind = "spreadsheet"
    elif content.startswith(_OLE2_MAGIC) or suffix in _LEGACY_SPREADSHEET_SUFFIXES:
        rows = decode_legacy_spreadsheet(content)
        kind = "xls"
    else:
        rows = decode_delimited(_bytes_to_text(content))
        kind = "delimited"

    _logger.debug("decode:done kind=%s rows=%d", kind, len(rows))
    return rows


def decode_path(path: str | PathLike[str]) -> list[Row]:
    """Convenience wrapper reading ``path`` as bytes and calling :func:`decode`."""

    p = Path(path)
    return decode(p.read_bytes(), filename=p.name)


__all__ = [
    "decode",
    "decode_delimited",
    "decode_legacy_spreadsheet",
    "decode_path",
    "decode_spreadsheet",
    "encode_delimited",
    "sniff_delimiter",
]
