from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.utils import get_column_letter

"""Workbook writing.

Producers build sheets top to bottom: ``next_row()`` appends a row and
advances the sheet's cursor. Rows already appended can be revisited with
``row(index)`` (used for header rows that grow a cell per discovered column),
but new rows are only ever created at the end.

The document is materialized with pandas ``ExcelWriter`` (openpyxl engine),
one header-less DataFrame per sheet.
"""

__all__ = [
    "RowWriter",
    "SheetWriter",
    "WorkbookWriter",
]

MAX_COLUMN_WIDTH = 60


class RowWriter:
    def __init__(self, index: int) -> None:
        self.index = index
        self.cells: dict[int, Any] = {}

    def write_text(self, col: int, value: Any) -> None:
        """Write a stripped text cell; None or whitespace-only leaves the cell blank."""
        if value is None:
            self.cells.pop(col, None)
            return
        text = str(value).strip()
        if text:
            self.cells[col] = text
        else:
            self.cells.pop(col, None)

    def write_date(self, col: int, value: date | datetime | None) -> None:
        if value is None:
            self.cells.pop(col, None)
            return
        if isinstance(value, datetime):
            value = value.date()
        self.cells[col] = value

    @property
    def width(self) -> int:
        return max(self.cells) + 1 if self.cells else 0

    def as_list(self, width: int) -> list[Any]:
        return [self.cells.get(i) for i in range(width)]


class SheetWriter:
    def __init__(self, name: str) -> None:
        self.name = name
        self._rows: list[RowWriter] = []

    def __len__(self) -> int:
        return len(self._rows)

    def next_row(self) -> RowWriter:
        row = RowWriter(len(self._rows))
        self._rows.append(row)
        return row

    def row(self, index: int) -> RowWriter:
        """Return an already-appended row."""
        if index < 0 or index >= len(self._rows):
            raise IndexError(f"sheet '{self.name}' has no row {index} (rows={len(self._rows)})")
        return self._rows[index]

    @property
    def width(self) -> int:
        return max((r.width for r in self._rows), default=0)

    def to_frame(self) -> pd.DataFrame:
        width = self.width
        return pd.DataFrame([r.as_list(width) for r in self._rows], dtype=object)


class WorkbookWriter:
    """In-memory workbook; sheets keep their creation order."""

    def __init__(self) -> None:
        self._sheets: dict[str, SheetWriter] = {}

    def sheet(self, name: str) -> SheetWriter:
        if name not in self._sheets:
            self._sheets[name] = SheetWriter(name)
        return self._sheets[name]

    def has_sheet(self, name: str) -> bool:
        return name in self._sheets

    @property
    def sheet_names(self) -> list[str]:
        return list(self._sheets)

    def save(self, path: Path) -> Path:
        if not self._sheets:
            raise ValueError("workbook has no sheets")
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for name, sheet in self._sheets.items():
                df = sheet.to_frame()
                df.to_excel(writer, sheet_name=name, header=False, index=False)
                _autosize_columns(writer.sheets[name], df)
        return path


def _autosize_columns(worksheet: Any, df: pd.DataFrame) -> None:
    for idx, column in enumerate(df.columns):
        lengths = [len(str(v)) for v in df[column] if v is not None and not pd.isna(v)]
        if not lengths:
            continue
        width = min(max(lengths) + 2, MAX_COLUMN_WIDTH)
        worksheet.column_dimensions[get_column_letter(idx + 1)].width = width
