from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for pgxsheets.

These are produced by ``pgxsheets.config.loader.load_config`` after schema
validation.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImporterConfig:
    """Settings for one directory importer (keyed by importer name)."""
    name: str
    directory: str


@dataclass(frozen=True)
class UploadConfig:
    """Object storage destination for published artifacts."""
    bucket: str
    key_prefix: str = "data/gene/"
    url_format: str = "https://{bucket}/{key}"
    region: str | None = None
    endpoint_url: str | None = None


@dataclass(frozen=True)
class ExportConfig:
    directory: str
    archive: bool = False
    upload: UploadConfig | None = None


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    database: DatabaseConfig
    importers: dict[str, ImporterConfig] = field(default_factory=dict)
    export: ExportConfig | None = None
    keep_na_strings: list[str] | None = None
    single_transaction: bool = False
