from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from pgxsheets.exporters.base import BaseExporter

from .orchestrator import DirectoryNotFound, ProcessingError

"""Dated data artifact archive.

Writes every gene exporter's workbooks into
``<base>/cpic_information_<YYYY-MM-DD>/genes``, creating the directory when
needed and reusing it when the archive of the day already exists.
"""

__all__ = [
    "ARCHIVE_DIR_PATTERN",
    "GENE_SUBDIR",
    "DataArtifactArchive",
]

logger = logging.getLogger(__name__)

ARCHIVE_DIR_PATTERN = "cpic_information_{date}"
GENE_SUBDIR = "genes"


class DataArtifactArchive:
    def __init__(self, base_directory: Path, exporters: Sequence[BaseExporter], today: date | None = None) -> None:
        self.base_directory = base_directory
        self.exporters = list(exporters)
        self.today = today or date.today()

    @property
    def gene_directory(self) -> Path:
        return self.base_directory / ARCHIVE_DIR_PATTERN.format(date=self.today.isoformat()) / GENE_SUBDIR

    def write(self) -> list[Path]:
        """Run all exporters; returns every file written.

        Raises:
            DirectoryNotFound: base directory missing
            ProcessingError: an exporter failed (later exporters are not run)
        """
        if not self.base_directory.is_dir():
            raise DirectoryNotFound(f"Not a directory: {self.base_directory}")

        target = self.gene_directory
        if target.exists():
            logger.info("Using existing directory %s", target)
        else:
            target.mkdir(parents=True)
            logger.info("Created new directory %s", target)

        written: list[Path] = []
        for exporter in self.exporters:
            try:
                written.extend(exporter.export(target))
            except Exception as e:
                raise ProcessingError(f"Error exporting {exporter.name}: {e}") from e
        return written
