from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from pgxsheets.models.config_models import (
    AppConfig,
    DatabaseConfig,
    ExportConfig,
    ImporterConfig,
    UploadConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default ``config/pgxsheets.yml``)
- Validate against the packaged JSON schema (``config_schema.json``)
- Apply defaults and build the frozen ``AppConfig`` dataclasses
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/pgxsheets.yml")

# strings pandas would otherwise turn into NaN but that are real curated text
DEFAULT_KEEP_NA_STRINGS = ["NA", "N/A", "n/a", "None", "null", "NULL"]


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data fails validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_export(raw: dict[str, Any] | None) -> ExportConfig | None:
    if not raw:
        return None
    upload = None
    up_raw = raw.get("upload")
    if up_raw:
        upload = UploadConfig(
            bucket=up_raw["bucket"],
            key_prefix=up_raw.get("key_prefix", "data/gene/"),
            url_format=up_raw.get("url_format", "https://{bucket}/{key}"),
            region=up_raw.get("region"),
            endpoint_url=up_raw.get("endpoint_url"),
        )
    return ExportConfig(
        directory=raw["directory"],
        archive=bool(raw.get("archive", False)),
        upload=upload,
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    importers = {
        name: ImporterConfig(name=name, directory=raw["directory"])
        for name, raw in (data.get("importers") or {}).items()
    }
    return AppConfig(
        database=db,
        importers=importers,
        export=_build_export(data.get("export")),
        keep_na_strings=data.get("keep_na_strings", DEFAULT_KEEP_NA_STRINGS),
        single_transaction=bool(data.get("single_transaction", False)),
    )
