from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .labels import find_gene_label, format_gene_label
from .reader import MalformedRow, WorkbookReader
from .sidecars import HistoryEntry, write_history, write_notes
from .writer import WorkbookWriter

"""Allele functionality reference artifact: one flat row per allele.

Sheet "Allele Function":

    GENE: <symbol>
    column headers
    allele rows until the first row without an allele name
"""

FUNCTION_SHEET = "Allele Function"
FILE_NAME_PATTERN = "{gene}-Allele_Functionality_Reference.xlsx"

COLUMN_HEADERS = (
    "Allele/cDNA/rsID",
    "Activity Value (Optional)",
    "Allele Functional Status (Optional)",
    "Allele Clinical Functional Status (Required)",
    "Allele Clinical Function Substrate Specificity (Optional)",
    "PMID (Optional)",
    "Strength of Evidence (Optional)",
    "Findings (Optional)",
    "Comments",
)

COL_ALLELE = 0
COL_ACTIVITY = 1
COL_FUNCTION = 2
COL_CLINICAL_FUNCTION = 3
COL_CLINICAL_SUBSTRATE = 4
COL_PMID = 5
COL_STRENGTH = 6
COL_FINDINGS = 7
COL_COMMENTS = 8

_CITATION_SPLIT = re.compile(r"[;,]")


@dataclass(frozen=True)
class FunctionReferenceRow:
    allele: str
    activity_value: str | None = None
    functional_status: str | None = None
    clinical_functional_status: str | None = None
    clinical_substrate: str | None = None
    citations: tuple[str, ...] = ()
    strength: str | None = None
    findings: str | None = None
    comments: str | None = None
    row_index: int = -1


def split_citations(text: str | None) -> tuple[str, ...]:
    if not text:
        return ()
    return tuple(p.strip() for p in _CITATION_SPLIT.split(text) if p.strip())


class FunctionReferenceWorkbook:
    def __init__(self, gene: str) -> None:
        self.gene = gene
        self.workbook = WorkbookWriter()
        self.sheet = self.workbook.sheet(FUNCTION_SHEET)
        self.sheet.next_row().write_text(0, format_gene_label(gene))
        header = self.sheet.next_row()
        for i, title in enumerate(COLUMN_HEADERS):
            header.write_text(i, title)

    @property
    def filename(self) -> str:
        return FILE_NAME_PATTERN.format(gene=self.gene)

    def write_allele_row(self, ref: FunctionReferenceRow) -> None:
        row = self.sheet.next_row()
        row.write_text(COL_ALLELE, ref.allele)
        row.write_text(COL_ACTIVITY, ref.activity_value)
        row.write_text(COL_FUNCTION, ref.functional_status)
        row.write_text(COL_CLINICAL_FUNCTION, ref.clinical_functional_status)
        row.write_text(COL_CLINICAL_SUBSTRATE, ref.clinical_substrate)
        row.write_text(COL_PMID, "; ".join(ref.citations))
        row.write_text(COL_STRENGTH, ref.strength)
        row.write_text(COL_FINDINGS, ref.findings)
        row.write_text(COL_COMMENTS, ref.comments)

    def write_notes(self, notes: Iterable[str]) -> int:
        return write_notes(self.workbook, notes)

    def write_history(self, entries: Iterable[HistoryEntry]) -> int:
        return write_history(self.workbook, entries)

    def save(self, directory: Path) -> Path:
        return self.workbook.save(directory / self.filename)


def parse_function_reference(
    workbook: WorkbookReader, fallback_gene: str | None = None
) -> tuple[str, list[FunctionReferenceRow]]:
    sheet = workbook.open_sheet(FUNCTION_SHEET)
    label = find_gene_label(sheet)
    if label is not None:
        gene, label_row = label
    elif fallback_gene:
        gene, label_row = fallback_gene, 0
    else:
        raise MalformedRow("could not find gene symbol", sheet.name)

    rows: list[FunctionReferenceRow] = []
    # skip the column header row
    for row in sheet.rows(start=label_row + 2):
        if not row.has_text(COL_ALLELE):
            break
        rows.append(FunctionReferenceRow(
            allele=row.text_or_none(COL_ALLELE),
            activity_value=row.text_or_none(COL_ACTIVITY),
            functional_status=row.text_or_none(COL_FUNCTION),
            clinical_functional_status=row.text_or_none(COL_CLINICAL_FUNCTION),
            clinical_substrate=row.text_or_none(COL_CLINICAL_SUBSTRATE),
            citations=split_citations(row.text_or_none(COL_PMID)),
            strength=row.text_or_none(COL_STRENGTH),
            findings=row.text_or_none(COL_FINDINGS),
            comments=row.text_or_none(COL_COMMENTS),
            row_index=row.index,
        ))
    return gene, rows
