from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import ClassVar, Protocol

from pgxsheets.db.history import ProvenanceWriter
from pgxsheets.db.store import Store
from pgxsheets.excel.sidecars import HistoryEntry
from pgxsheets.models.artifact import ArtifactType
from pgxsheets.services.orchestrator import DirectoryNotFound
from pgxsheets.services.upload import FileStoreClient

"""Exporter base: one workbook per entity key, written into a directory."""

__all__ = [
    "ArtifactWorkbook",
    "BaseExporter",
    "require_directory",
]

logger = logging.getLogger(__name__)


class ArtifactWorkbook(Protocol):
    @property
    def filename(self) -> str: ...

    def write_history(self, entries: Iterable[HistoryEntry]) -> int: ...

    def save(self, directory: Path) -> Path: ...


def require_directory(directory: Path) -> None:
    if not directory.exists():
        raise DirectoryNotFound(f"Directory doesn't exist {directory}")
    if not directory.is_dir():
        raise DirectoryNotFound(f"Path is not a directory {directory}")


class BaseExporter(ABC):
    name: ClassVar[str]
    file_type: ClassVar[ArtifactType]

    def __init__(self, store: Store, publisher: FileStoreClient | None = None) -> None:
        self.store = store
        self.publisher = publisher
        self.provenance = ProvenanceWriter(store)

    @abstractmethod
    def build_workbooks(self) -> Iterator[tuple[str, ArtifactWorkbook]]:
        """Yield ``(entity_key, workbook)`` in a stable order."""

    def export(self, directory: Path) -> list[Path]:
        """Write every workbook into ``directory`` (must exist).

        Raises:
            DirectoryNotFound: ``directory`` missing or not a directory
        """
        require_directory(directory)

        written: list[Path] = []
        for entity_key, workbook in self.build_workbooks():
            path = workbook.save(directory)
            self.provenance.record_export(path.name, self.file_type.value, [entity_key])
            logger.debug("wrote %s", path)
            written.append(path)
            if self.publisher is not None:
                self.publisher.put_artifact(path)
        logger.info("%s: %d file(s) written to %s", self.name, len(written), directory)
        return written
