from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from pgxsheets.excel.reader import WorkbookReader
from pgxsheets.excel.writer import RowWriter, SheetWriter, WorkbookWriter


def test_row_writer_strips_and_blanks():
    row = RowWriter(0)
    row.write_text(0, "  a ")
    row.write_text(1, "   ")
    row.write_text(2, None)
    row.write_text(3, 7)
    assert row.cells == {0: "a", 3: "7"}
    assert row.width == 4
    assert row.as_list(5) == ["a", None, None, "7", None]


def test_row_writer_overwrite_with_blank_clears():
    row = RowWriter(0)
    row.write_text(0, "x")
    row.write_text(0, "")
    assert row.cells == {}


def test_row_writer_date():
    row = RowWriter(0)
    row.write_date(0, datetime(2022, 3, 4, 12, 0))
    row.write_date(1, None)
    assert row.cells == {0: date(2022, 3, 4)}


def test_sheet_writer_cursor_and_revisit():
    sheet = SheetWriter("S")
    first = sheet.next_row()
    second = sheet.next_row()
    assert (first.index, second.index) == (0, 1)
    sheet.row(0).write_text(5, "late header")
    assert sheet.width == 6
    with pytest.raises(IndexError):
        sheet.row(2)


def test_workbook_save_and_read_back(temp_workdir: Path):
    wb = WorkbookWriter()
    s = wb.sheet("Data")
    s.next_row().write_text(0, "header")
    row = s.next_row()
    row.write_text(0, "value")
    row.write_date(2, date(2021, 1, 31))
    wb.sheet("Second").next_row().write_text(1, "b")
    assert wb.sheet_names == ["Data", "Second"]

    path = wb.save(temp_workdir / "out.xlsx")
    reader = WorkbookReader.open(path)
    assert reader.sheet_names == ["Data", "Second"]
    data = reader.open_sheet("Data")
    assert data.row(0).text_or_none(0) == "header"
    assert data.row(1).text_or_none(0) == "value"
    assert data.row(1).text_or_none(1) is None
    assert data.row(1).date_or_none(2) == date(2021, 1, 31)
    assert reader.open_sheet("Second").row(0).text_or_none(1) == "b"


def test_save_without_sheets_raises(temp_workdir: Path):
    with pytest.raises(ValueError):
        WorkbookWriter().save(temp_workdir / "empty.xlsx")
