from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

from pgxsheets.db.history import CHANGE_LOG_TABLE, NOTE_TABLE
from pgxsheets.db.store import Store, TableWipe
from pgxsheets.excel.reader import WorkbookReader
from pgxsheets.logging.error_log import ErrorLogBuffer
from pgxsheets.models.artifact import ArtifactFile, ArtifactType, FileStatus
from pgxsheets.models.error_record import FILE_LEVEL, ErrorRecord

"""Directory importer base.

An importer owns a fixed set of tables (its ``wipes``), knows the extension
of the artifacts it reads and turns one opened workbook into inserts through
the Store. Run control (scan, delete phase, transactions, provenance) lives
in ``pgxsheets.services.orchestrator``.
"""

__all__ = [
    "UnknownEntityReference",
    "ImportContext",
    "FileOutcome",
    "DirectoryImporter",
    "require_gene",
    "resolve",
    "sidecar_wipes",
]

logger = logging.getLogger(__name__)

UNKNOWN_ENTITY_REFERENCE = "UNKNOWN_ENTITY_REFERENCE"


class UnknownEntityReference(Exception):
    """A row names an entity that does not exist in the store.

    Row handlers catch it, log it and skip the row. Raised outside a row
    handler (e.g. for the gene of a whole file) it fails the file.
    """

    def __init__(self, entity: str, name: str, sheet: str | None = None, row_index: int | None = None) -> None:
        self.entity = entity
        self.name = name
        self.sheet = sheet
        self.row_index = row_index
        where = f" (sheet '{sheet}' row {row_index + 1})" if sheet is not None and row_index is not None else ""
        super().__init__(f"no {entity} defined with name {name!r}{where}")


@dataclass
class ImportContext:
    """Per-file state handed to an importer."""
    store: Store
    file: ArtifactFile
    error_log: ErrorLogBuffer

    def stage(self) -> None:
        """Mark the end of validation; inserts follow."""
        self.file.status = FileStatus.STAGING

    def skip(self, exc: UnknownEntityReference) -> None:
        logger.warning("%s: %s, skipped", self.file.name, exc)
        self.file.skipped_rows += 1
        self.error_log.append(ErrorRecord.create(
            file=self.file.name,
            sheet=exc.sheet or FILE_LEVEL,
            row=exc.row_index + 1 if exc.row_index is not None else -1,
            error_type=UNKNOWN_ENTITY_REFERENCE,
            message=str(exc),
        ))


@dataclass(frozen=True)
class FileOutcome:
    entity_key: str
    inserted_rows: int


def require_gene(store: Store, gene: str) -> None:
    if not store.select("gene", ["symbol"], {"symbol": gene}):
        raise UnknownEntityReference("gene", gene)


def resolve(
    known: Mapping[str, Any], name: str, entity: str, sheet: str | None = None, row_index: int | None = None
) -> Any:
    try:
        return known[name]
    except KeyError:
        raise UnknownEntityReference(entity, name, sheet, row_index) from None


class DirectoryImporter(ABC):
    """Base class for importers that crawl a directory of artifacts."""

    name: ClassVar[str]
    file_type: ClassVar[ArtifactType]
    wipes: ClassVar[tuple[TableWipe, ...]]
    extension: ClassVar[str] = ".xlsx"
    requires_history: ClassVar[bool] = False

    def __init__(self, keep_na_strings: list[str] | None = None) -> None:
        self.keep_na_strings = keep_na_strings

    def open_workbook(self, path: Path) -> WorkbookReader:
        return WorkbookReader.open(path, keep_na_strings=self.keep_na_strings)

    @abstractmethod
    def process_workbook(self, workbook: WorkbookReader, context: ImportContext) -> FileOutcome:
        """Validate ``workbook`` and stage its rows; notes/history are handled by the caller."""


def sidecar_wipes(file_type: ArtifactType) -> tuple[TableWipe, ...]:
    """Deletes of this artifact type's rows in the shared notes/change log tables."""
    return (
        TableWipe(CHANGE_LOG_TABLE, file_type.value),
        TableWipe(NOTE_TABLE, file_type.value),
    )
