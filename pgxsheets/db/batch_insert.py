from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch insert.

Batched INSERT through ``psycopg2.extras.execute_values``. With ``returning``
the statement gets a ``RETURNING`` clause and the rows of every page are
collected (``fetch=True``), so callers can map generated ids back to their
input rows in order.

Table and column names come from importer constants, never from workbook
content.
"""

__all__ = [
    "BatchInsertError",
    "InsertResult",
    "batch_insert",
]

logger = logging.getLogger(__name__)


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None

    @property
    def returned_ids(self) -> list[Any]:
        """First column of each RETURNING row."""
        return [r[0] for r in self.returned_values or []]


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: str | None = None,
    page_size: int = 1000,
) -> InsertResult:
    """Perform a batched INSERT.

    Args:
        cursor: psycopg2 cursor
        table: target table
        columns: insert columns, in the order of each row's values
        rows: row value sequences
        returning: column to return for every inserted row (e.g. ``"id"``)
        page_size: rows per generated statement

    Raises:
        BatchInsertError: the driver rejected the statement
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(_quote(c) for c in columns)
    base_sql = f"INSERT INTO {_quote(table)} ({cols_sql}) VALUES %s"
    if returning:
        base_sql += f" RETURNING {_quote(returning)}"

    start = time.perf_counter()
    try:
        returned = execute_values(
            cursor, base_sql, rows_list, page_size=page_size, fetch=bool(returning)
        )
    except Exception as e:
        raise BatchInsertError(f"insert into {table} failed: {e}") from e
    elapsed = time.perf_counter() - start
    logger.debug("table=%s rows=%d elapsed=%.4fs", table, len(rows_list), elapsed)
    if returning:
        returned = list(returned or [])
        if len(returned) != len(rows_list):
            raise BatchInsertError(
                f"insert into {table} returned {len(returned)} rows for {len(rows_list)} inserted"
            )
        return InsertResult(inserted_rows=len(rows_list), returned_values=returned)
    return InsertResult(inserted_rows=len(rows_list))
