from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from .reader import MalformedRow, WorkbookReader
from .writer import WorkbookWriter

"""Conventional sidecar sheets shared by every artifact.

- "Notes": header row, then one free-text note per row. Written only when
  there is at least one note.
- "Change History": header row, then one (date, text) pair per row in
  insertion order. A row with only one of the two cells populated is a
  format error.
- "Methods and caveats" / "Methods": free text, one paragraph line per row.
"""

__all__ = [
    "NOTES_SHEET",
    "HISTORY_SHEET",
    "METHODS_SHEET_ALIASES",
    "HistoryEntry",
    "write_notes",
    "write_history",
    "read_notes",
    "read_history",
    "read_methods",
]

NOTES_SHEET = "Notes"
NOTES_HEADER = "Notes"
HISTORY_SHEET = "Change History"
HISTORY_HEADER = ("Date", "Entry")
METHODS_SHEET_ALIASES = ("Methods and caveats", "Methods")


@dataclass(frozen=True)
class HistoryEntry:
    date: date
    text: str


def write_notes(workbook: WorkbookWriter, notes: Iterable[str | None]) -> int:
    """Write the Notes sheet; returns the number of notes written (0 -> no sheet)."""
    written = 0
    sheet = None
    for note in notes:
        if note is None or not str(note).strip():
            continue
        if sheet is None:
            sheet = workbook.sheet(NOTES_SHEET)
            sheet.next_row().write_text(0, NOTES_HEADER)
        sheet.next_row().write_text(0, note)
        written += 1
    return written


def write_history(workbook: WorkbookWriter, entries: Iterable[HistoryEntry]) -> int:
    sheet = workbook.sheet(HISTORY_SHEET)
    header = sheet.next_row()
    header.write_text(0, HISTORY_HEADER[0])
    header.write_text(1, HISTORY_HEADER[1])
    written = 0
    for entry in entries:
        row = sheet.next_row()
        row.write_date(0, entry.date)
        row.write_text(1, entry.text)
        written += 1
    return written


def read_notes(workbook: WorkbookReader) -> list[str]:
    if not workbook.has_sheet(NOTES_SHEET):
        return []
    sheet = workbook.open_sheet(NOTES_SHEET)
    notes: list[str] = []
    for row in sheet.rows(start=0):
        text = row.text_or_none(0)
        if text is None:
            continue
        if row.index == 0 and text == NOTES_HEADER:
            continue
        notes.append(text)
    return notes


def read_history(workbook: WorkbookReader, required: bool = True) -> list[HistoryEntry]:
    """Read Change History rows after the header row.

    Raises:
        SheetNotFound: sheet missing and ``required``
        MalformedRow: a row with a date but no text, or text but no date
    """
    if not required and not workbook.has_sheet(HISTORY_SHEET):
        return []
    sheet = workbook.open_sheet(HISTORY_SHEET)
    entries: list[HistoryEntry] = []
    for row in sheet.rows(start=1):
        has_date, has_text = row.has_text(0), row.has_text(1)
        if has_date != has_text:
            raise MalformedRow("change log row must have both date and text", sheet.name, row.index)
        if not has_date:
            continue
        entries.append(HistoryEntry(date=row.date_or_none(0), text=row.text_or_none(1)))
    return entries


def read_methods(workbook: WorkbookReader) -> str:
    sheet = workbook.open_sheet(METHODS_SHEET_ALIASES[0], aliases=METHODS_SHEET_ALIASES[1:])
    lines = [row.text_or_none(0) or "" for row in sheet.rows()]
    return "\n".join(lines).strip()
