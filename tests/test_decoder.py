from __future__ import annotations

import datetime as dt
import textwrap

import xlrd

from statement_import.decoder import (
    decode,
    decode_delimited,
    decode_path,
    encode_delimited,
    sniff_delimiter,
)


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


def test_sniff_prefers_delimiter_consistent_across_lines():
    assert sniff_delimiter("Fecha;Concepto;Importe\n15/01/2025;X;1,00\n") == ";"
    assert sniff_delimiter("Date\tDescription\tAmount\n") == "\t"
    assert sniff_delimiter("Date|Description|Amount\n2025-01-15|X|1.00\n") == "|"
    # the semicolon sits inside quotes and does not count
    assert sniff_delimiter('"a;b;c",d\n') == ","


def test_sniff_ignores_commas_inside_semicolon_rows():
    text = "15/01/2025;COMPRA, TIENDA;-1.234,50\n16/01/2025;OXXO;-25,00\n"
    assert sniff_delimiter(text) == ";"
    assert decode_delimited(text)[0] == ("15/01/2025", "COMPRA, TIENDA", "-1.234,50")


def test_sniff_ties_and_no_delimiter_fall_back_to_comma():
    assert sniff_delimiter("a,b\tc\n") == ","
    assert sniff_delimiter("single column\n") == ","
    assert sniff_delimiter("") == ","


def test_decode_delimited_handles_rfc4180_quoting():
    text = _dedent(
        '''
        Fecha,Concepto,Importe
        15/01/2025,"ACME, S.A. ""MX""","-10,50"
        16/01/2025,"two
        lines",3.00
        '''
    )
    rows = decode_delimited(text)
    assert rows == [
        ("Fecha", "Concepto", "Importe"),
        ("15/01/2025", 'ACME, S.A. "MX"', "-10,50"),
        ("16/01/2025", "two\nlines", "3.00"),
    ]


def test_decode_delimited_drops_blank_rows_and_bom():
    text = "\ufeffFecha;Importe\n\n ; \n15/01/2025;-1,00\n"
    assert decode_delimited(text) == [("Fecha", "Importe"), ("15/01/2025", "-1,00")]


def test_encode_then_decode_preserves_awkward_cells():
    rows = [("a,b", 'say "hi"', "x\ny"), ("1", "", "3")]
    assert decode_delimited(encode_delimited(rows)) == rows


def test_decode_bytes_falls_back_to_latin1():
    data = "Fecha,Descripción,Importe\n".encode("latin-1")
    assert decode(data) == [("Fecha", "Descripción", "Importe")]


def test_decode_bytes_utf8_with_bom():
    data = "\ufeffFecha,Importe\n".encode()
    assert decode(data) == [("Fecha", "Importe")]


def test_decode_spreadsheet_first_sheet(make_xlsx):
    data = make_xlsx(
        [
            ["Fecha", "Concepto", "Importe"],
            [dt.datetime(2025, 1, 15), "MERCADONA", -45.5],
            [None, None, None],
            [dt.date(2025, 1, 16), "NOMINA", 2000],
        ]
    )
    rows = decode(data)
    assert rows[0] == ("Fecha", "Concepto", "Importe")
    assert rows[1] == ("2025-01-15", "MERCADONA", "-45.5")
    # the empty row is dropped
    assert len(rows) == 3
    assert rows[2][0] == "2025-01-16"
    assert rows[2][2] == "2000"


def test_decode_unreadable_workbook_yields_no_rows():
    assert decode(b"PK\x03\x04 definitely not a workbook") == []


def test_decode_spreadsheet_by_filename_suffix(make_xlsx):
    data = make_xlsx([["Date", "Amount"], ["2025-01-15", "10.00"]])
    assert decode(data, filename="statement.XLSX")[1] == ("2025-01-15", "10.00")


def test_decode_path_reads_file(tmp_path):
    p = tmp_path / "movimientos.csv"
    p.write_text("Fecha;Importe\n15/01/2025;-1,00\n", encoding="utf-8")
    assert decode_path(p) == [("Fecha", "Importe"), ("15/01/2025", "-1,00")]


def test_decode_unreadable_xls_yields_no_rows():
    # OLE2 bytes used to fall through to the text decoder
    assert decode(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1 not a real workbook") == []
    assert decode(b"garbage", filename="movimientos.XLS") == []


class _FakeSheet:
    def __init__(self, rows):
        self.nrows = len(rows)
        self._rows = rows

    def row(self, index):
        return [xlrd.sheet.Cell(ctype, value) for ctype, value in self._rows[index]]


class _FakeBook:
    datemode = 0
    nsheets = 1

    def __init__(self, rows):
        self._sheet = _FakeSheet(rows)
        self.released = False

    def sheet_by_index(self, index):
        assert index == 0
        return self._sheet

    def release_resources(self):
        self.released = True


def test_decode_xls_first_sheet(monkeypatch):
    text, number, date = xlrd.XL_CELL_TEXT, xlrd.XL_CELL_NUMBER, xlrd.XL_CELL_DATE
    book = _FakeBook(
        [
            [(text, "Fecha"), (text, "Concepto"), (text, "Importe")],
            [(date, 45672.0), (text, "OXXO"), (number, -25.5)],
            [(xlrd.XL_CELL_EMPTY, ""), (xlrd.XL_CELL_BLANK, ""), (xlrd.XL_CELL_ERROR, 42)],
            [(date, 45673.0), (xlrd.XL_CELL_BOOLEAN, 1), (number, 2000.0)],
        ]
    )
    seen = {}

    def fake_open_workbook(*, file_contents, on_demand):
        seen["data"] = file_contents
        return book

    monkeypatch.setattr(xlrd, "open_workbook", fake_open_workbook)
    data = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1payload"

    assert decode(data, filename="movimientos.xls") == [
        ("Fecha", "Concepto", "Importe"),
        ("2025-01-15", "OXXO", "-25.5"),
        ("2025-01-16", "TRUE", "2000"),
    ]
    assert seen["data"] == data
    assert book.released
