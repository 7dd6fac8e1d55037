from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from pgxsheets.db.store import Store
from pgxsheets.excel.allele_definition import AlleleDefinitionWorkbook, ReferenceSequences, SequenceLocation
from pgxsheets.excel.function_reference import FunctionReferenceWorkbook
from pgxsheets.excel.sidecars import HistoryEntry

from .base import ArtifactWorkbook, require_directory

"""Starter workbooks for genes about to get their first artifacts.

Each gene gets a Definitions table and an Allele Function sheet with the
standard file, sheet and column headers, placeholder text where a curator
has to fill something in, and a "File created" change history entry. Stored
data is never copied in; a gene the store already knows only gets a warning.
"""

__all__ = [
    "StarterPack",
]

logger = logging.getLogger(__name__)

PLACEHOLDER_ALLELE = "ALLELE NAME HERE"
PLACEHOLDER_SEQUENCES = ReferenceSequences(
    chromosome="NC_#######", protein="NP_#######", gene="NG_#######", mrna="NM_#######"
)
PLACEHOLDER_LOCATION = SequenceLocation(
    location_id=1,
    name="VARIANT HERE",
    protein_location="X###X",
    chromosome_location="g.#####",
    gene_location="g.#####",
    dbsnp_id="rs#####",
)
CREATED_ENTRY = "File created"


class StarterPack:
    def __init__(self, store: Store | None = None) -> None:
        self.store = store

    def workbooks(self, gene: str) -> list[ArtifactWorkbook]:
        definitions = AlleleDefinitionWorkbook(gene, None, PLACEHOLDER_SEQUENCES)
        definitions.write_location(PLACEHOLDER_LOCATION)
        definitions.write_allele(PLACEHOLDER_ALLELE)
        return [definitions, FunctionReferenceWorkbook(definitions.gene)]

    def write(self, genes: Iterable[str], directory: Path, created: date | None = None) -> list[Path]:
        """Write the starter workbooks of every gene (sorted, once each) into ``directory``.

        Raises:
            DirectoryNotFound: ``directory`` missing or not a directory
            ValueError: a blank gene symbol
        """
        require_directory(directory)
        history = [HistoryEntry(created or date.today(), CREATED_ENTRY)]
        symbols = sorted({g.strip() for g in genes})
        if not symbols:
            logger.warning("Nothing to do")

        written: list[Path] = []
        for gene in symbols:
            if self.store is not None and self.store.lookup("gene", "symbol", "symbol", {"symbol": gene}):
                logger.warning("%s already exists, starter files will not include possibly extant data", gene)
            for workbook in self.workbooks(gene):
                workbook.write_history(history)
                path = workbook.save(directory)
                logger.info("Created starter file %s", path)
                written.append(path)
        return written
