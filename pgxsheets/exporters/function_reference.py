from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from typing import Any

from pgxsheets.db.history import load_change_log, load_notes
from pgxsheets.excel.function_reference import FunctionReferenceRow, FunctionReferenceWorkbook
from pgxsheets.models.artifact import ArtifactType
from pgxsheets.models.haplotype import haplotype_sort_key

from .base import BaseExporter

"""Allele functionality reference exporter.

One ``<GENE>-Allele_Functionality_Reference.xlsx`` per gene that has at least
one allele with a clinical functional status.
"""

ALLELE_COLUMNS = [
    "id",
    "gene_symbol",
    "name",
    "activity_value",
    "functional_status",
    "clinical_functional_status",
    "clinical_functional_substrate",
]
REFERENCE_COLUMNS = ["allele_id", "citations", "strength", "findings", "comments"]


class FunctionReferenceExporter(BaseExporter):
    name = "function_reference"
    file_type = ArtifactType.FUNCTION_REFERENCE

    def build_workbooks(self) -> Iterator[tuple[str, FunctionReferenceWorkbook]]:
        references: dict[int, dict[str, Any]] = {}
        for ref in self.store.select("function_reference", REFERENCE_COLUMNS):
            references.setdefault(ref["allele_id"], ref)

        alleles_by_gene: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for allele in self.store.select("allele", ALLELE_COLUMNS, order_by=["gene_symbol"]):
            alleles_by_gene[allele["gene_symbol"]].append(allele)

        for gene in sorted(alleles_by_gene):
            alleles = alleles_by_gene[gene]
            if not any(a["clinical_functional_status"] for a in alleles):
                continue
            workbook = FunctionReferenceWorkbook(gene)
            for allele in sorted(alleles, key=lambda a: haplotype_sort_key(a["name"])):
                ref = references.get(allele["id"], {})
                workbook.write_allele_row(FunctionReferenceRow(
                    allele=allele["name"],
                    activity_value=allele["activity_value"],
                    functional_status=allele["functional_status"],
                    clinical_functional_status=allele["clinical_functional_status"],
                    clinical_substrate=allele["clinical_functional_substrate"],
                    citations=tuple(ref.get("citations") or ()),
                    strength=ref.get("strength"),
                    findings=ref.get("findings"),
                    comments=ref.get("comments"),
                ))
            workbook.write_notes(load_notes(self.store, self.file_type.value, gene))
            workbook.write_history(load_change_log(self.store, self.file_type.value, gene))
            yield gene, workbook
