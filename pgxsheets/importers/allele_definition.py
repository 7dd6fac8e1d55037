from __future__ import annotations

import logging

from pgxsheets.db.store import TableWipe
from pgxsheets.excel.allele_definition import parse_allele_definition
from pgxsheets.excel.reader import WorkbookReader
from pgxsheets.models.artifact import ArtifactType

from .base import DirectoryImporter, FileOutcome, ImportContext, require_gene, sidecar_wipes

"""Allele definition importer.

Decodes the Definitions matrix of each gene workbook and rebuilds
``sequence_location`` (one row per matrix column), ``allele_definition`` (one
row per matrix row) and ``allele_location_value`` (one row per populated
cell). The functional status column is not imported here; allele function
comes from the functionality reference artifacts.
"""

logger = logging.getLogger(__name__)

LOCATION_COLUMNS = ("gene_symbol", "name", "protein_location", "chromosome_location", "gene_location", "dbsnp_id")


class AlleleDefinitionImporter(DirectoryImporter):
    name = "allele_definition"
    file_type = ArtifactType.ALLELE_DEFINITION
    wipes = (
        *sidecar_wipes(ArtifactType.ALLELE_DEFINITION),
        TableWipe("allele_location_value"),
        TableWipe("allele_definition"),
        TableWipe("sequence_location"),
    )

    def process_workbook(self, workbook: WorkbookReader, context: ImportContext) -> FileOutcome:
        data = parse_allele_definition(workbook, fallback_gene=context.file.entity_key_from_name)
        require_gene(context.store, data.gene)
        logger.debug("%s: gene=%s locations=%d alleles=%d",
                     workbook.file_name, data.gene, len(data.locations), len(data.alleles))

        context.stage()
        store = context.store
        columns = sorted(data.locations)
        locations = store.insert(
            "sequence_location",
            LOCATION_COLUMNS,
            [(data.gene, *data.locations[c]) for c in columns],
            returning="id",
        )
        location_by_column = dict(zip(columns, locations.returned_ids))

        definitions = store.insert(
            "allele_definition",
            ("gene_symbol", "name"),
            [(data.gene, a.name) for a in data.alleles],
            returning="id",
        )
        definition_by_name = dict(zip((a.name for a in data.alleles), definitions.returned_ids))

        values = store.insert(
            "allele_location_value",
            ("allele_definition_id", "location_id", "variant_allele"),
            [
                (definition_by_name[a.name], location_by_column[col], value)
                for a in data.alleles
                for col, value in sorted(a.values.items())
            ],
        )

        gene_values = {"alleles_last_modified": data.modified}
        seqs = data.sequences
        for column, accession in (
            ("chromo_sequence_id", seqs.chromosome),
            ("protein_sequence_id", seqs.protein),
            ("gene_sequence_id", seqs.gene),
            ("mrna_sequence_id", seqs.mrna),
        ):
            if accession:
                gene_values[column] = accession
        store.update("gene", {"symbol": data.gene}, gene_values)

        return FileOutcome(
            entity_key=data.gene,
            inserted_rows=locations.inserted_rows + definitions.inserted_rows + values.inserted_rows,
        )
