from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .artifact import RunStatus

"""Result models for import runs.

ImportResult aggregates the per-file FileStat entries and carries the values
printed on the SUMMARY line.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics."""
    file_name: str
    status: str  # success/failed
    inserted_rows: int
    skipped_rows: int
    elapsed_seconds: float
    entity_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImportResult:
    """Aggregated result of one importer run."""
    importer: str
    status: RunStatus
    total_files: int  # files found by the scan
    success_files: int
    failed_files: int
    total_inserted_rows: int
    total_skipped_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None
    failed_file: str | None = None
    failed_row: int | None = None  # 0-based row index, None if not row specific

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.total_inserted_rows / self.elapsed_seconds
