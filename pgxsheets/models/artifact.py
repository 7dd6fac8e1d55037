from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

"""Artifact file and run lifecycle models.

A run moves IDLE -> SCANNING -> PROCESSING -> (COMMITTED | ABORTED).
Inside PROCESSING each file moves PENDING -> PARSING -> VALIDATING ->
STAGING -> (SUCCESS | FAILED).
"""


class ArtifactType(str, Enum):
    """Artifact family; stored in the ``type`` column of the audit tables."""
    ALLELE_DEFINITION = "ALLELE_DEFINITION"
    FUNCTION_REFERENCE = "FUNCTION_REFERENCE"
    FREQUENCY = "FREQUENCY"


class RunStatus(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING = "processing"
    COMMITTED = "committed"
    ABORTED = "aborted"


class FileStatus(Enum):
    """Status of a single artifact file during an import run.

    - PENDING: discovered, not yet opened
    - PARSING: workbook is being read
    - VALIDATING: sheets located and rows being checked/decoded
    - STAGING: insert statements are being issued
    - SUCCESS: committed, provenance recorded
    - FAILED: rolled back, run stops
    """
    PENDING = "pending"
    PARSING = "parsing"
    VALIDATING = "validating"
    STAGING = "staging"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ArtifactFile:
    """Processing context for a single artifact file."""
    path: Path
    name: str
    status: FileStatus = FileStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None
    inserted_rows: int = 0
    skipped_rows: int = 0
    entity_keys: list[str] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_path(cls, path: Path) -> ArtifactFile:
        return cls(path=path, name=path.name)

    @property
    def entity_key_from_name(self) -> str:
        """Leading token of the file name (``CYP2D6_frequency.xlsx`` -> ``CYP2D6``)."""
        stem = self.path.stem
        return stem.split("_", 1)[0].split("-", 1)[0]
