from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from pathlib import Path

from pgxsheets.db.history import ProvenanceWriter, save_change_log, save_notes
from pgxsheets.db.store import Store
from pgxsheets.excel.sidecars import read_history, read_notes
from pgxsheets.importers.base import DirectoryImporter, ImportContext
from pgxsheets.logging.error_log import ErrorLogBuffer
from pgxsheets.models.artifact import ArtifactFile, FileStatus, RunStatus
from pgxsheets.models.error_record import FILE_LEVEL, ErrorRecord
from pgxsheets.models.processing_result import FileStat, ImportResult

from .progress import ProgressTracker

"""Batch import orchestration.

A run replaces the contents of the tables an importer owns with what a
directory of artifacts describes:

    IDLE -> SCANNING -> PROCESSING -> COMMITTED | ABORTED

1. scan: list ``*.xlsx`` (importer extension) in name order, skipping ``~$``
   lock files; a missing or empty directory fails before anything is deleted
2. delete phase: every wipe of the importer, committed
3. per file: open, validate, stage rows, store notes + change history,
   record provenance, commit
4. the first failing file is rolled back, logged to the error log and
   raised as ImportRunError; files committed before it stay

With ``single_transaction`` nothing is committed until every file has been
staged, and a failure rolls back the delete phase as well.
"""

__all__ = [
    "ProcessingError",
    "DirectoryNotFound",
    "EmptyDirectory",
    "ImportRunError",
    "TEMP_FILE_PREFIX",
    "scan_artifact_files",
    "ImportRun",
    "run_import",
]

logger = logging.getLogger(__name__)

TEMP_FILE_PREFIX = "~$"


class ProcessingError(Exception):
    """Base exception for processing errors."""


class DirectoryNotFound(ProcessingError):
    pass


class EmptyDirectory(ProcessingError):
    pass


class ImportRunError(ProcessingError):
    """The run stopped at ``file_name``; ``row_index`` is 0-based or None."""

    def __init__(
        self, file_name: str, row_index: int | None, cause: BaseException, result: ImportResult | None = None
    ) -> None:
        self.file_name = file_name
        self.row_index = row_index
        self.cause = cause
        self.result = result
        where = f"file {file_name}"
        if row_index is not None:
            where += f" row {row_index + 1}"
        super().__init__(f"error processing {where}: {cause}")


def scan_artifact_files(directory: Path, extension: str = ".xlsx") -> list[Path]:
    """List candidate artifacts in ``directory`` (non-recursive), sorted by name.

    Raises:
        DirectoryNotFound: missing path or not a directory
        EmptyDirectory: no matching files
    """
    if not directory.exists():
        raise DirectoryNotFound(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise DirectoryNotFound(f"Path is not a directory: {directory}")
    try:
        paths = [
            p for p in directory.iterdir()
            if p.is_file()
            and p.name.lower().endswith(extension.lower())
            and not p.name.startswith(TEMP_FILE_PREFIX)
        ]
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e
    if not paths:
        raise EmptyDirectory(f"No {extension} files in {directory}")
    return sorted(paths, key=lambda p: p.name)


def _error_type(exc: BaseException) -> str:
    """``MalformedRow`` -> ``MALFORMED_ROW``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(exc).__name__).upper()


def _file_stat(artifact: ArtifactFile) -> FileStat:
    elapsed = 0.0
    if artifact.start_time and artifact.end_time:
        elapsed = (artifact.end_time - artifact.start_time).total_seconds()
    return FileStat(
        file_name=artifact.name,
        status=artifact.status.value,
        inserted_rows=artifact.inserted_rows,
        skipped_rows=artifact.skipped_rows,
        elapsed_seconds=elapsed,
        entity_keys=tuple(artifact.entity_keys),
    )


class ImportRun:
    """One execution of an importer against a directory.

    Single use; ``status`` follows the run state machine.
    """

    def __init__(
        self,
        importer: DirectoryImporter,
        directory: Path,
        store: Store,
        *,
        single_transaction: bool = False,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.importer = importer
        self.directory = directory
        self.store = store
        self.single_transaction = single_transaction
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.provenance = ProvenanceWriter(store)
        self.status = RunStatus.IDLE
        self.file_stats: list[FileStat] = []
        self.total_files = 0
        self.start_time = datetime.now(UTC)

    def _enter(self, status: RunStatus) -> None:
        logger.debug("run %s: %s -> %s", self.importer.name, self.status.value, status.value)
        self.status = status

    def _commit_step(self) -> None:
        if not self.single_transaction:
            self.store.commit()

    def execute(self) -> ImportResult:
        if self.status is not RunStatus.IDLE:
            raise ProcessingError("an ImportRun can only be executed once")
        try:
            return self._execute()
        finally:
            log_path = self.error_log.flush()
            if log_path is not None:
                logger.info("error log written to %s", log_path)

    def _execute(self) -> ImportResult:
        self._enter(RunStatus.SCANNING)
        try:
            paths = scan_artifact_files(self.directory, self.importer.extension)
        except ProcessingError:
            self._enter(RunStatus.ABORTED)
            raise
        self.total_files = len(paths)
        logger.info("%s: %d file(s) in %s", self.importer.name, len(paths), self.directory)

        self._enter(RunStatus.PROCESSING)
        try:
            deleted = self.store.wipe(self.importer.wipes)
            self._commit_step()
        except Exception as e:
            self.store.rollback()
            self._enter(RunStatus.ABORTED)
            raise ProcessingError(f"delete phase failed: {e}") from e
        logger.info("%s: delete phase removed %d row(s)", self.importer.name, deleted)

        with ProgressTracker(len(paths), description=f"Importing {self.importer.name}") as progress:
            for path in paths:
                progress.start_file(path)
                artifact = ArtifactFile.from_path(path)
                try:
                    self._process_file(artifact)
                    self._commit_step()
                except Exception as e:
                    self.store.rollback()
                    progress.finish_file(success=False)
                    raise self._abort(artifact, e) from e
                progress.finish_file(success=True)
                progress.set_postfix(rows=sum(s.inserted_rows for s in self.file_stats))

        if self.single_transaction:
            self.store.commit()
        self._enter(RunStatus.COMMITTED)
        return self._result()

    def _process_file(self, artifact: ArtifactFile) -> None:
        logger.info("Reading %s", artifact.name)
        artifact.start_time = datetime.now(UTC)
        artifact.status = FileStatus.PARSING
        workbook = self.importer.open_workbook(artifact.path)

        artifact.status = FileStatus.VALIDATING
        context = ImportContext(store=self.store, file=artifact, error_log=self.error_log)
        outcome = self.importer.process_workbook(workbook, context)

        notes = read_notes(workbook)
        history = read_history(workbook, required=self.importer.requires_history)
        file_type = self.importer.file_type.value
        artifact.status = FileStatus.STAGING
        sidecar_rows = save_notes(self.store, file_type, outcome.entity_key, notes)
        sidecar_rows += save_change_log(self.store, file_type, outcome.entity_key, history)
        self.provenance.record_import(artifact.name, file_type, [outcome.entity_key])

        artifact.entity_keys = [outcome.entity_key]
        artifact.inserted_rows = outcome.inserted_rows + sidecar_rows
        artifact.status = FileStatus.SUCCESS
        artifact.end_time = datetime.now(UTC)
        self.file_stats.append(_file_stat(artifact))
        logger.info(
            "%s: %s rows=%d skipped=%d notes=%d history=%d",
            artifact.name, outcome.entity_key, artifact.inserted_rows, artifact.skipped_rows,
            len(notes), len(history),
        )

    def _abort(self, artifact: ArtifactFile, exc: Exception) -> ImportRunError:
        artifact.status = FileStatus.FAILED
        artifact.error = str(exc)
        artifact.end_time = datetime.now(UTC)
        self.file_stats.append(_file_stat(artifact))

        row_index = getattr(exc, "row_index", None)
        self.error_log.append(ErrorRecord.create(
            file=artifact.name,
            sheet=getattr(exc, "sheet", None) or FILE_LEVEL,
            row=row_index + 1 if row_index is not None else -1,
            error_type=_error_type(exc),
            message=str(exc),
        ))
        self._enter(RunStatus.ABORTED)
        if self.single_transaction:
            logger.error("%s: failed, whole run rolled back: %s", artifact.name, exc)
        else:
            logger.error("%s: failed, run stopped: %s", artifact.name, exc)
        return ImportRunError(artifact.name, row_index, exc, self._result(failed=artifact, row_index=row_index))

    def _result(self, failed: ArtifactFile | None = None, row_index: int | None = None) -> ImportResult:
        end_time = datetime.now(UTC)
        success = [s for s in self.file_stats if s.status == FileStatus.SUCCESS.value]
        return ImportResult(
            importer=self.importer.name,
            status=self.status,
            total_files=self.total_files,
            success_files=len(success),
            failed_files=len(self.file_stats) - len(success),
            total_inserted_rows=sum(s.inserted_rows for s in success),
            total_skipped_rows=sum(s.skipped_rows for s in self.file_stats),
            start_time=self.start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - self.start_time).total_seconds(),
            file_stats=list(self.file_stats),
            failed_file=failed.name if failed else None,
            failed_row=row_index,
        )


def run_import(
    importer: DirectoryImporter,
    directory: Path,
    store: Store,
    *,
    single_transaction: bool = False,
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Replace the importer's tables from ``directory``.

    Returns:
        ImportResult with status COMMITTED

    Raises:
        DirectoryNotFound / EmptyDirectory: before any delete
        ImportRunError: a file failed; ``.result`` holds the aborted run's ImportResult
        ProcessingError: the delete phase failed
    """
    run = ImportRun(importer, directory, store, single_transaction=single_transaction, error_log=error_log)
    return run.execute()
