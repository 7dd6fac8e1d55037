from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from pgxsheets.excel.sidecars import HistoryEntry

from .store import Store

"""Audit trail tables.

- ``file_artifact_history``: one row per artifact imported, exported or
  uploaded (append only).
- ``file_note``: notes sidecar rows, keyed by (entity key, artifact type) and
  kept in sheet order through ``ordinal``.
- ``change_log``: change history sidecar rows, keyed the same way.
"""

__all__ = [
    "ARTIFACT_HISTORY_TABLE",
    "NOTE_TABLE",
    "CHANGE_LOG_TABLE",
    "ProvenanceWriter",
    "save_notes",
    "save_change_log",
    "load_notes",
    "load_change_log",
]

logger = logging.getLogger(__name__)

ARTIFACT_HISTORY_TABLE = "file_artifact_history"
NOTE_TABLE = "file_note"
CHANGE_LOG_TABLE = "change_log"

ACTION_IMPORT = "import"
ACTION_EXPORT = "export"
ACTION_UPLOAD = "upload"


class ProvenanceWriter:
    """Appends ``file_artifact_history`` rows through a Store."""

    COLUMNS = ("file_name", "type", "action", "entity_keys", "url", "created_at")

    def __init__(self, store: Store) -> None:
        self.store = store

    def _append(
        self,
        file_name: str,
        file_type: str | None,
        action: str,
        entity_keys: Sequence[str] = (),
        url: str | None = None,
    ) -> None:
        self.store.insert(
            ARTIFACT_HISTORY_TABLE,
            self.COLUMNS,
            [(file_name, file_type, action, list(entity_keys), url, datetime.now(UTC))],
        )
        logger.debug("provenance action=%s file=%s keys=%s", action, file_name, list(entity_keys))

    def record_import(self, file_name: str, file_type: str, entity_keys: Sequence[str] = ()) -> None:
        self._append(file_name, file_type, ACTION_IMPORT, entity_keys)

    def record_export(self, file_name: str, file_type: str, entity_keys: Sequence[str] = ()) -> None:
        self._append(file_name, file_type, ACTION_EXPORT, entity_keys)

    def record_upload(self, file_name: str, url: str) -> None:
        # a failed upload record must not abort the surrounding transaction
        with self.store.savepoint("record_upload"):
            self._append(file_name, None, ACTION_UPLOAD, url=url)


def save_notes(store: Store, file_type: str, entity_key: str, notes: Iterable[str]) -> int:
    rows = [(entity_key, file_type, i, note) for i, note in enumerate(notes)]
    return store.insert(NOTE_TABLE, ("entity_key", "type", "ordinal", "note"), rows).inserted_rows


def save_change_log(store: Store, file_type: str, entity_key: str, entries: Iterable[HistoryEntry]) -> int:
    rows = [(entity_key, file_type, i, e.date, e.text) for i, e in enumerate(entries)]
    return store.insert(CHANGE_LOG_TABLE, ("entity_key", "type", "ordinal", "date", "note"), rows).inserted_rows


def load_notes(store: Store, file_type: str, entity_key: str) -> list[str]:
    rows = store.select(
        NOTE_TABLE, ["note"], {"entity_key": entity_key, "type": file_type}, order_by=["ordinal"]
    )
    return [r["note"] for r in rows]


def load_change_log(store: Store, file_type: str, entity_key: str) -> list[HistoryEntry]:
    rows = store.select(
        CHANGE_LOG_TABLE, ["date", "note"], {"entity_key": entity_key, "type": file_type}, order_by=["ordinal"]
    )
    return [HistoryEntry(date=r["date"], text=r["note"]) for r in rows]
