from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

"""Workbook reading.

Sheets are read header-less with pandas (openpyxl engine) and exposed as
positional rows and cells: artifacts are addressed by row/column index, never
by a header row, because their layouts carry several header rows or none.

Cells are one of text, date or blank. Numbers come back as text; callers parse
them when they need a number.
"""

__all__ = [
    "SheetNotFound",
    "MalformedRow",
    "Row",
    "Sheet",
    "WorkbookReader",
    "read_excel_file",
]

# Excel serial day 0 (1900 date system incl. the leap-year bug)
_EXCEL_EPOCH = "1899-12-30"
_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%d-%b-%Y")


class SheetNotFound(Exception):
    """Raised when a required sheet is absent from a workbook."""

    def __init__(self, names: Sequence[str], file_name: str | None = None) -> None:
        self.names = tuple(names)
        self.file_name = file_name
        where = f" in {file_name}" if file_name else ""
        super().__init__(f"sheet not found{where}: {' / '.join(self.names)}")


class MalformedRow(Exception):
    """Raised when a row is partially populated where full population is required."""

    def __init__(self, message: str, sheet: str | None = None, row_index: int | None = None) -> None:
        self.sheet = sheet
        self.row_index = row_index
        location = ""
        if sheet is not None:
            location += f"sheet '{sheet}' "
        if row_index is not None:
            location += f"row {row_index + 1}"
        super().__init__(f"{location.strip()}: {message}" if location else message)


def read_excel_file(
    path: Path, target_sheets: Iterable[str] | None = None, keep_na_strings: list[str] | None = None
) -> dict[str, pd.DataFrame]:
    """Read a workbook returning raw header-less DataFrames keyed by sheet name.

    Parameters
    ----------
    path: workbook path
    target_sheets: restrict to these sheet names (None reads every sheet)
    keep_na_strings: strings to keep as text instead of pandas' default NaN conversion (e.g. ['NA'])
    """
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        na_values = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    wanted = set(target_sheets) if target_sheets is not None else None
    dfs: dict[str, pd.DataFrame] = {}
    with pd.ExcelFile(path, engine="openpyxl") as xls:
        for name in xls.sheet_names:
            if wanted is not None and str(name) not in wanted:
                continue
            df = xls.parse(
                name,
                header=None,
                dtype=object,
                keep_default_na=keep_default_na,
                na_values=na_values,
            )
            dfs[str(name)] = df
    return dfs


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


class Row:
    """One spreadsheet row. Cells past the populated width read as blank."""

    def __init__(self, values: Sequence[Any], index: int, sheet_name: str) -> None:
        self._values = list(values)
        self.index = index
        self.sheet_name = sheet_name

    def __len__(self) -> int:
        return len(self._values)

    def raw(self, col: int) -> Any:
        if col < 0 or col >= len(self._values):
            return None
        value = self._values[col]
        return None if _is_blank(value) else value

    def has_text(self, col: int) -> bool:
        return self.raw(col) is not None

    def is_blank(self, cols: Iterable[int] | None = None) -> bool:
        """True when none of ``cols`` (default: every cell) has text."""
        if cols is None:
            cols = range(len(self._values))
        return not any(self.has_text(c) for c in cols)

    def text_or_none(self, col: int) -> str | None:
        value = self.raw(col)
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, bool):
            return str(value).upper()
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, datetime):
            if value.time() == datetime.min.time():
                return value.date().isoformat()
            return value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return str(value).strip()

    def date_or_none(self, col: int) -> date | None:
        value = self.raw(col)
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return pd.to_datetime(value, unit="D", origin=_EXCEL_EPOCH).date()
        text = str(value).strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        raise MalformedRow(f"column {col + 1} is not a date: {text!r}", self.sheet_name, self.index)

    def values(self) -> list[Any]:
        return [self.raw(i) for i in range(len(self._values))]


class Sheet:
    """A named, ordered sequence of rows."""

    def __init__(self, name: str, df: pd.DataFrame) -> None:
        self.name = name
        self._rows: list[list[Any]] = df.values.tolist() if not df.empty else []

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def last_row_index(self) -> int:
        """Index of the last row, -1 for an empty sheet."""
        return len(self._rows) - 1

    def row(self, index: int) -> Row:
        if 0 <= index < len(self._rows):
            return Row(self._rows[index], index, self.name)
        return Row([], index, self.name)

    def rows(self, start: int = 0) -> Iterator[Row]:
        for i in range(start, len(self._rows)):
            yield self.row(i)


class WorkbookReader:
    """Read-only view over every sheet of one artifact file."""

    def __init__(self, file_name: str, frames: dict[str, pd.DataFrame]) -> None:
        self.file_name = file_name
        self._frames = frames
        self._sheets: dict[str, Sheet] = {}

    @classmethod
    def open(cls, path: Path, keep_na_strings: list[str] | None = None) -> WorkbookReader:
        return cls(path.name, read_excel_file(path, keep_na_strings=keep_na_strings))

    @property
    def sheet_names(self) -> list[str]:
        return list(self._frames.keys())

    def _resolve(self, name: str, aliases: Sequence[str]) -> str | None:
        for candidate in (name, *aliases):
            if candidate in self._frames:
                return candidate
        return None

    def has_sheet(self, name: str, aliases: Sequence[str] = ()) -> bool:
        return self._resolve(name, aliases) is not None

    def open_sheet(self, name: str, aliases: Sequence[str] = ()) -> Sheet:
        """Look a sheet up by exact name, then by each alias in order.

        Raises:
            SheetNotFound: when neither the name nor any alias is present
        """
        found = self._resolve(name, aliases)
        if found is None:
            raise SheetNotFound((name, *aliases), self.file_name)
        if found not in self._sheets:
            self._sheets[found] = Sheet(found, self._frames[found])
        return self._sheets[found]

    def first_sheet(self) -> Sheet:
        if not self._frames:
            raise SheetNotFound(("<any>",), self.file_name)
        return self.open_sheet(next(iter(self._frames)))
