from __future__ import annotations

import re

from .reader import Sheet

"""The ``GENE: <symbol>`` cell that lets an artifact identify its gene."""

GENE_LABEL_PATTERN = re.compile(r"^\s*GENE:\s*([A-Za-z0-9][A-Za-z0-9-]*)", re.IGNORECASE)


def format_gene_label(gene: str) -> str:
    return f"GENE: {gene}"


def find_gene_label(sheet: Sheet, col: int = 0, max_rows: int | None = None) -> tuple[str, int] | None:
    """Return (symbol, row index) of the first gene label in ``col``, if any."""
    last = sheet.last_row_index if max_rows is None else min(sheet.last_row_index, max_rows - 1)
    for i in range(last + 1):
        text = sheet.row(i).text_or_none(col)
        if text is None:
            continue
        m = GENE_LABEL_PATTERN.match(text)
        if m:
            return m.group(1), i
    return None
