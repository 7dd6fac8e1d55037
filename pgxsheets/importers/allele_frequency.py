from __future__ import annotations

import logging

from pgxsheets.db.store import TableWipe
from pgxsheets.excel.allele_frequency import (
    FREQUENCY_LAYOUT,
    REFERENCES_SHEET,
    parse_allele_frequency,
    parse_frequency,
)
from pgxsheets.excel.reader import WorkbookReader
from pgxsheets.models.artifact import ArtifactType

from .base import (
    DirectoryImporter,
    FileOutcome,
    ImportContext,
    UnknownEntityReference,
    require_gene,
    resolve,
    sidecar_wipes,
)

"""Allele frequency importer.

File names are ``<GENE>_<anything>.xlsx``; the gene comes from the name since
the References sheet does not carry it. Every References row is a population
study, stored in ``population``; each populated allele cell becomes an
``allele_frequency`` row (numeric cells in ``frequency``, anything else kept
as ``label``). The methods text goes to ``gene.frequency_methods``. Change
History is required for this artifact.
"""

logger = logging.getLogger(__name__)

POPULATION_COLUMNS = (
    "gene_symbol",
    "authors",
    "year",
    "pmid",
    "ethnicity",
    "population",
    "population_info",
    "subject_type",
    "subject_count",
)
FREQUENCY_COLUMNS = ("population_id", "allele_name", "frequency", "label")


class AlleleFrequencyImporter(DirectoryImporter):
    name = "allele_frequency"
    file_type = ArtifactType.FREQUENCY
    requires_history = True
    wipes = (
        *sidecar_wipes(ArtifactType.FREQUENCY),
        TableWipe("allele_frequency"),
        TableWipe("population"),
    )

    def process_workbook(self, workbook: WorkbookReader, context: ImportContext) -> FileOutcome:
        gene = context.file.entity_key_from_name
        data = parse_allele_frequency(workbook)
        require_gene(context.store, gene)
        definitions = context.store.lookup("allele_definition", "name", "id", {"gene_symbol": gene})

        # unknown alleles are reported once per header cell
        known: set[str] = set()
        header_row = FREQUENCY_LAYOUT.label_rows[0]
        for allele in data.alleles:
            try:
                resolve(definitions, allele, "allele", REFERENCES_SHEET, header_row)
            except UnknownEntityReference as e:
                context.skip(e)
                continue
            known.add(allele)

        context.stage()
        populations = context.store.insert(
            "population",
            POPULATION_COLUMNS,
            [
                (gene, p.authors, p.year, p.pmid, p.ethnicity, p.population, p.population_info,
                 p.subject_type, p.subject_count)
                for p in data.populations
            ],
            returning="id",
        )
        frequency_rows = []
        for population_id, p in zip(populations.returned_ids, data.populations):
            for allele, text in p.frequencies.items():
                if allele not in known:
                    continue
                value = parse_frequency(text)
                frequency_rows.append((population_id, allele, value, text if value is None else None))
        frequencies = context.store.insert("allele_frequency", FREQUENCY_COLUMNS, frequency_rows)

        context.store.update("gene", {"symbol": gene}, {"frequency_methods": data.methods})
        logger.debug("%s: gene=%s populations=%d frequencies=%d",
                     workbook.file_name, gene, populations.inserted_rows, frequencies.inserted_rows)
        return FileOutcome(entity_key=gene, inserted_rows=populations.inserted_rows + frequencies.inserted_rows)
