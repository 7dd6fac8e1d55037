from __future__ import annotations

import math
from dataclasses import dataclass, field

from .matrix import MatrixLayout, decode_matrix
from .reader import MalformedRow, WorkbookReader
from .sidecars import read_methods

"""Allele frequency artifact (input only).

Sheet "References": row 0 is the header, columns 0-7 describe the population
and every column from 8 on is an allele whose name is the header text. Each
following row is one population study; its cells hold the allele frequency.
The methods text lives on a "Methods and caveats" (or "Methods") sheet.
"""

REFERENCES_SHEET = "References"

COL_AUTHORS = 0
COL_YEAR = 1
COL_PMID = 2
COL_ETHNICITY = 3
COL_POPULATION = 4
COL_POPULATION_INFO = 5
COL_SUBJECT_TYPE = 6
COL_SUBJECT_COUNT = 7

FREQUENCY_LAYOUT = MatrixLayout(
    label_rows=(0,),
    first_data_row=1,
    first_value_column=8,
    entity_column=COL_AUTHORS,
    scalar_columns=(COL_YEAR, COL_PMID, COL_ETHNICITY, COL_POPULATION, COL_POPULATION_INFO,
                    COL_SUBJECT_TYPE, COL_SUBJECT_COUNT),
    unique_entities=False,
)


@dataclass(frozen=True)
class PopulationRow:
    row_index: int
    authors: str
    year: int | None
    pmid: str | None
    ethnicity: str | None
    population: str | None
    population_info: str | None
    subject_type: str | None
    subject_count: int | None
    frequencies: dict[str, str] = field(default_factory=dict)  # allele name -> cell text


@dataclass(frozen=True)
class FrequencyData:
    alleles: list[str]
    populations: list[PopulationRow]
    methods: str


def _parse_int(text: str | None, what: str, sheet: str, row_index: int) -> int | None:
    if text is None:
        return None
    try:
        return int(float(text.replace(",", "")))
    except ValueError:
        raise MalformedRow(f"{what} is not a number: {text!r}", sheet, row_index) from None


def parse_frequency(text: str) -> float | None:
    """Frequency cell text -> float, None when the cell is a label (e.g. "n/a", "NaN")."""
    text = text.strip()
    try:
        value = float(text.rstrip("%")) / (100.0 if text.endswith("%") else 1.0)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_allele_frequency(workbook: WorkbookReader) -> FrequencyData:
    sheet = workbook.open_sheet(REFERENCES_SHEET)
    decoded = decode_matrix(sheet, FREQUENCY_LAYOUT)
    allele_by_col: dict[int, str] = {}
    for col, labels in decoded.headers.items():
        if labels[0] in allele_by_col.values():
            raise MalformedRow(
                f"duplicate allele column {labels[0]!r}", sheet.name, FREQUENCY_LAYOUT.label_rows[0]
            )
        allele_by_col[col] = labels[0]
    populations: list[PopulationRow] = []
    for entity in decoded.entities:
        year, pmid, ethnicity, population, info, subject_type, count = entity.scalars
        populations.append(PopulationRow(
            row_index=entity.row_index,
            authors=entity.name,
            year=_parse_int(year, "year", sheet.name, entity.row_index),
            pmid=pmid,
            ethnicity=ethnicity,
            population=population,
            population_info=info,
            subject_type=subject_type,
            subject_count=_parse_int(count, "subject count", sheet.name, entity.row_index),
            frequencies={allele_by_col[col]: value for col, value in entity.values.items()},
        ))
    return FrequencyData(
        alleles=[allele_by_col[c] for c in sorted(allele_by_col)],
        populations=populations,
        methods=read_methods(workbook),
    )
