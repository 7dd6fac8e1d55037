from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator

from pgxsheets.db.history import load_change_log, load_notes
from pgxsheets.excel.allele_definition import AlleleDefinitionWorkbook, ReferenceSequences, SequenceLocation
from pgxsheets.models.artifact import ArtifactType
from pgxsheets.models.haplotype import sort_haplotype_names

from .base import BaseExporter

"""Allele definition exporter: ``<GENE>-Allele_Definition_Table.xlsx`` per gene.

Genes are written in symbol order, locations in upstream (id) order and
alleles in haplotype name order. The functional status column is taken from
the ``allele`` row of the same gene and name.
"""

GENE_COLUMNS = [
    "symbol",
    "alleles_last_modified",
    "chromo_sequence_id",
    "protein_sequence_id",
    "gene_sequence_id",
    "mrna_sequence_id",
]
LOCATION_COLUMNS = ["id", "name", "protein_location", "chromosome_location", "gene_location", "dbsnp_id"]


class AlleleDefinitionExporter(BaseExporter):
    name = "allele_definition"
    file_type = ArtifactType.ALLELE_DEFINITION

    def build_workbooks(self) -> Iterator[tuple[str, AlleleDefinitionWorkbook]]:
        values_by_definition: dict[int, list[tuple[int, str]]] = defaultdict(list)
        for v in self.store.select(
            "allele_location_value", ["allele_definition_id", "location_id", "variant_allele"]
        ):
            values_by_definition[v["allele_definition_id"]].append((v["location_id"], v["variant_allele"]))

        for gene in self.store.select("gene", GENE_COLUMNS, order_by=["symbol"]):
            symbol = gene["symbol"]
            definitions = self.store.lookup("allele_definition", "name", "id", {"gene_symbol": symbol})
            if not definitions:
                continue
            status_by_name = self.store.lookup("allele", "name", "functional_status", {"gene_symbol": symbol})

            workbook = AlleleDefinitionWorkbook(
                symbol,
                gene["alleles_last_modified"],
                ReferenceSequences(
                    chromosome=gene["chromo_sequence_id"],
                    protein=gene["protein_sequence_id"],
                    gene=gene["gene_sequence_id"],
                    mrna=gene["mrna_sequence_id"],
                ),
            )
            for loc in self.store.select(
                "sequence_location", LOCATION_COLUMNS, {"gene_symbol": symbol}, order_by=["id"]
            ):
                workbook.write_location(SequenceLocation(
                    location_id=loc["id"],
                    name=loc["name"],
                    protein_location=loc["protein_location"],
                    chromosome_location=loc["chromosome_location"],
                    gene_location=loc["gene_location"],
                    dbsnp_id=loc["dbsnp_id"],
                ))

            for allele_name in sort_haplotype_names(definitions):
                definition_id = definitions[allele_name]
                workbook.write_allele(allele_name, status_by_name.get(allele_name))
                for location_id, value in values_by_definition.get(definition_id, ()):
                    workbook.write_allele_value(location_id, value)

            workbook.write_notes(load_notes(self.store, self.file_type.value, symbol))
            workbook.write_history(load_change_log(self.store, self.file_type.value, symbol))
            yield symbol, workbook
