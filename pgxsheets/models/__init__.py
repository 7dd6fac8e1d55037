"""Domain models for the spreadsheet <-> knowledge base tool."""

from .artifact import ArtifactFile, ArtifactType, FileStatus, RunStatus
from .config_models import AppConfig, DatabaseConfig, ExportConfig, ImporterConfig, UploadConfig
from .error_record import ErrorRecord
from .processing_result import FileStat, ImportResult

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "ExportConfig",
    "ImporterConfig",
    "UploadConfig",
    # Processing models
    "ArtifactFile",
    "ArtifactType",
    "FileStatus",
    "RunStatus",
    "ErrorRecord",
    "FileStat",
    "ImportResult",
]
