from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from .labels import find_gene_label, format_gene_label
from .matrix import DecodedEntity, MatrixEncoder, MatrixLayout, decode_matrix
from .reader import MalformedRow, Sheet, WorkbookReader
from .sidecars import HistoryEntry, write_history, write_notes
from .writer import WorkbookWriter

"""Allele definition artifact: one workbook per gene.

Sheet "Definitions":

    row 0   GENE: <symbol> | <last modified date>
    row 1   (titles in col 1) | location names
    row 2   protein change labels
    row 3   chromosomal position labels
    row 4   gene position labels
    row 5   dbSNP ids
    row 6   <symbol> Allele | Allele Functional Status
    row 7+  allele name | functional status | variant allele per location
"""

DEFINITION_SHEET = "Definitions"
FILE_NAME_PATTERN = "{gene}-Allele_Definition_Table.xlsx"
HEADER_ALLELE_PATTERN = "{gene} Allele"
HEADER_FUNCTION = "Allele Functional Status"

ROW_GENE = 0
ROW_HEADER = 6
TITLE_COLUMN = 1
SEQUENCE_IN_TITLE = re.compile(r"\(([^()]+)\)\s*$")

DEFINITION_LAYOUT = MatrixLayout(
    label_rows=(1, 2, 3, 4, 5),
    first_data_row=7,
    first_value_column=2,
    entity_column=0,
    scalar_columns=(1,),
)


@dataclass(frozen=True)
class ReferenceSequences:
    chromosome: str | None = None
    protein: str | None = None
    gene: str | None = None
    mrna: str | None = None


@dataclass(frozen=True)
class SequenceLocation:
    location_id: int
    name: str | None
    protein_location: str | None
    chromosome_location: str | None
    gene_location: str | None
    dbsnp_id: str | None

    @property
    def labels(self) -> tuple[str | None, ...]:
        return (self.name, self.protein_location, self.chromosome_location, self.gene_location, self.dbsnp_id)


def _row_titles(gene: str, seqs: ReferenceSequences) -> tuple[str, ...]:
    def at(seq: str | None, what: str) -> str:
        return f"{what} ({seq})" if seq else what
    return (
        at(seqs.mrna, "mRNA description"),
        at(seqs.protein, "Effect on protein"),
        at(seqs.chromosome, "Position at chromosome"),
        at(seqs.gene, f"Position at {gene} gene"),
        "rsID",
    )


class AlleleDefinitionWorkbook:
    """Builds the allele definition workbook for one gene."""

    def __init__(self, gene: str, modified: date | None = None, sequences: ReferenceSequences | None = None) -> None:
        if not gene or not gene.strip():
            raise ValueError("gene must be specified")
        self.gene = gene.strip()
        self.workbook = WorkbookWriter()
        sheet = self.workbook.sheet(DEFINITION_SHEET)

        first = sheet.next_row()
        first.write_text(0, format_gene_label(self.gene))
        first.write_date(1, modified)

        for title in _row_titles(self.gene, sequences or ReferenceSequences()):
            sheet.next_row().write_text(TITLE_COLUMN, title)

        header = sheet.next_row()
        header.write_text(0, HEADER_ALLELE_PATTERN.format(gene=self.gene))
        header.write_text(1, HEADER_FUNCTION)

        self.encoder = MatrixEncoder(sheet, DEFINITION_LAYOUT)

    @property
    def filename(self) -> str:
        return FILE_NAME_PATTERN.format(gene=self.gene)

    def write_location(self, location: SequenceLocation) -> int:
        return self.encoder.register_location(location.location_id, location.labels)

    def write_allele(self, name: str, functional_status: str | None = None) -> None:
        self.encoder.write_entity(name, (functional_status,))

    def write_allele_value(self, location_id: int, value: str | None) -> None:
        self.encoder.write_value(location_id, value)

    def write_notes(self, notes: Iterable[str]) -> int:
        return write_notes(self.workbook, notes)

    def write_history(self, entries: Iterable[HistoryEntry]) -> int:
        return write_history(self.workbook, entries)

    def save(self, directory: Path) -> Path:
        return self.workbook.save(directory / self.filename)


@dataclass(frozen=True)
class AlleleDefinitionData:
    gene: str
    modified: date | None
    sequences: ReferenceSequences
    locations: dict[int, tuple[str | None, ...]]  # column -> labels
    alleles: list[DecodedEntity]


def _read_sequences(sheet: Sheet) -> ReferenceSequences:
    """Reference sequence accessions from the ``title (accession)`` row titles."""
    found: list[str | None] = []
    for row_idx in DEFINITION_LAYOUT.label_rows[:4]:
        title = sheet.row(row_idx).text_or_none(TITLE_COLUMN)
        m = SEQUENCE_IN_TITLE.search(title) if title else None
        found.append(m.group(1).strip() if m else None)
    mrna, protein, chromosome, gene = found
    return ReferenceSequences(chromosome=chromosome, protein=protein, gene=gene, mrna=mrna)


def parse_allele_definition(workbook: WorkbookReader, fallback_gene: str | None = None) -> AlleleDefinitionData:
    """Decode a Definitions sheet.

    The gene comes from the ``GENE:`` cell, or ``fallback_gene`` (file name)
    when the sheet does not carry one.
    """
    sheet = workbook.open_sheet(DEFINITION_SHEET)
    label = find_gene_label(sheet, max_rows=ROW_GENE + 1)
    gene = label[0] if label else fallback_gene
    if not gene:
        raise MalformedRow("no gene label and none derivable from file name", sheet.name, ROW_GENE)
    modified = sheet.row(ROW_GENE).date_or_none(1)

    decoded = decode_matrix(sheet, DEFINITION_LAYOUT)
    for col, labels in decoded.headers.items():
        if labels[0] is None:
            raise MalformedRow(f"location in column {col + 1} has no name", sheet.name, DEFINITION_LAYOUT.label_rows[0])
    return AlleleDefinitionData(
        gene=gene,
        modified=modified,
        sequences=_read_sequences(sheet),
        locations=decoded.headers,
        alleles=decoded.entities,
    )
