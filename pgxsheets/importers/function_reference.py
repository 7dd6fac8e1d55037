from __future__ import annotations

import logging
from dataclasses import dataclass

from pgxsheets.db.store import TableWipe
from pgxsheets.excel.function_reference import FUNCTION_SHEET, FunctionReferenceRow, parse_function_reference
from pgxsheets.excel.reader import MalformedRow, WorkbookReader
from pgxsheets.models.artifact import ArtifactType
from pgxsheets.models.functional_status import UnknownFunctionalStatus, normalize_functional_status

from .base import (
    DirectoryImporter,
    FileOutcome,
    ImportContext,
    UnknownEntityReference,
    require_gene,
    resolve,
    sidecar_wipes,
)

"""Allele functionality reference importer.

Each row of the "Allele Function" sheet becomes one ``allele`` row (named like
its definition, carrying the normalized function labels) and one
``function_reference`` row with the citations. Rows naming an allele with no
definition for the gene are skipped with a warning.
"""

logger = logging.getLogger(__name__)

ALLELE_COLUMNS = (
    "gene_symbol",
    "name",
    "functional_status",
    "activity_value",
    "clinical_functional_status",
    "clinical_functional_substrate",
)
REFERENCE_COLUMNS = ("allele_id", "citations", "strength", "findings", "comments")


@dataclass(frozen=True)
class _ResolvedRow:
    ref: FunctionReferenceRow
    functional_status: str | None
    clinical_functional_status: str | None


def _status(text: str | None, row_index: int) -> str | None:
    try:
        return normalize_functional_status(text)
    except UnknownFunctionalStatus as e:
        raise MalformedRow(str(e), FUNCTION_SHEET, row_index) from e


class FunctionReferenceImporter(DirectoryImporter):
    name = "function_reference"
    file_type = ArtifactType.FUNCTION_REFERENCE
    wipes = (
        *sidecar_wipes(ArtifactType.FUNCTION_REFERENCE),
        TableWipe("function_reference"),
        TableWipe("allele"),
    )

    def process_workbook(self, workbook: WorkbookReader, context: ImportContext) -> FileOutcome:
        gene, rows = parse_function_reference(workbook, fallback_gene=context.file.entity_key_from_name)
        require_gene(context.store, gene)
        definitions = context.store.lookup("allele_definition", "name", "id", {"gene_symbol": gene})

        resolved: list[_ResolvedRow] = []
        seen: set[str] = set()
        for ref in rows:
            if ref.allele in seen:
                raise MalformedRow(f"duplicate allele {ref.allele!r}", FUNCTION_SHEET, ref.row_index)
            seen.add(ref.allele)
            try:
                resolve(definitions, ref.allele, "allele", FUNCTION_SHEET, ref.row_index)
            except UnknownEntityReference as e:
                context.skip(e)
                continue
            resolved.append(_ResolvedRow(
                ref=ref,
                functional_status=_status(ref.functional_status, ref.row_index),
                clinical_functional_status=_status(ref.clinical_functional_status, ref.row_index),
            ))
        logger.debug("%s: gene=%s rows=%d resolved=%d", workbook.file_name, gene, len(rows), len(resolved))

        context.stage()
        alleles = context.store.insert(
            "allele",
            ALLELE_COLUMNS,
            [
                (
                    gene,
                    r.ref.allele,
                    r.functional_status,
                    r.ref.activity_value,
                    r.clinical_functional_status,
                    r.ref.clinical_substrate,
                )
                for r in resolved
            ],
            returning="id",
        )
        references = context.store.insert(
            "function_reference",
            REFERENCE_COLUMNS,
            [
                (allele_id, list(r.ref.citations), r.ref.strength, r.ref.findings, r.ref.comments)
                for allele_id, r in zip(alleles.returned_ids, resolved)
            ],
        )
        return FileOutcome(entity_key=gene, inserted_rows=alleles.inserted_rows + references.inserted_rows)
