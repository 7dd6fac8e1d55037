from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from psycopg2 import sql

from .batch_insert import InsertResult, batch_insert

"""Relational store boundary.

Importers and exporters talk to the database only through ``Store``:
whole-table (or per artifact type) wipes, batched inserts, keyed updates and
equality-filtered selects. ``PgStore`` is the psycopg2 implementation; the
test suite provides an in-memory one with the same surface.

Transaction boundaries belong to the caller (the import orchestrator); no
method here commits on its own. ``savepoint`` lets a caller try a statement
whose failure must not abort the surrounding transaction.
"""

__all__ = [
    "TableWipe",
    "Store",
    "PgStore",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableWipe:
    """A delete owned by one importer.

    ``file_type`` restricts the delete to rows whose ``type`` column carries
    that artifact type (shared notes/change log tables).
    """
    table: str
    file_type: str | None = None

    def __str__(self) -> str:
        if self.file_type is None:
            return f"delete from {self.table}"
        return f"delete from {self.table} where type='{self.file_type}'"


class Store(Protocol):
    def wipe(self, wipes: Iterable[TableWipe]) -> int: ...

    def insert(
        self, table: str, columns: Sequence[str], rows: Iterable[Sequence[Any]], returning: str | None = None
    ) -> InsertResult: ...

    def update(self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]) -> int: ...

    def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]: ...

    def lookup(
        self, table: str, key_column: str, value_column: str, where: Mapping[str, Any] | None = None
    ) -> dict[Any, Any]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def savepoint(self, name: str) -> AbstractContextManager[None]: ...


def _where_clause(where: Mapping[str, Any] | None) -> tuple[sql.Composable, list[Any]]:
    if not where:
        return sql.SQL(""), []
    parts: list[sql.Composable] = []
    params: list[Any] = []
    for col, value in where.items():
        if value is None:
            parts.append(sql.SQL("{} IS NULL").format(sql.Identifier(col)))
        else:
            parts.append(sql.SQL("{} = %s").format(sql.Identifier(col)))
            params.append(value)
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(parts), params


class PgStore:
    """Store backed by a psycopg2 cursor (connection in non-autocommit mode)."""

    def __init__(self, cursor: Any, page_size: int = 1000) -> None:
        self.cursor = cursor
        self.page_size = page_size

    def wipe(self, wipes: Iterable[TableWipe]) -> int:
        deleted = 0
        for w in wipes:
            where = {"type": w.file_type} if w.file_type is not None else None
            clause, params = _where_clause(where)
            query = sql.SQL("DELETE FROM {}").format(sql.Identifier(w.table)) + clause
            self.cursor.execute(query, params)
            count = max(self.cursor.rowcount, 0)
            logger.debug("%s -> %d rows", w, count)
            deleted += count
        return deleted

    def insert(
        self, table: str, columns: Sequence[str], rows: Iterable[Sequence[Any]], returning: str | None = None
    ) -> InsertResult:
        return batch_insert(self.cursor, table, columns, rows, returning=returning, page_size=self.page_size)

    def update(self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]) -> int:
        if not values:
            return 0
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(col)) for col in values
        )
        clause, params = _where_clause(where)
        query = sql.SQL("UPDATE {} SET ").format(sql.Identifier(table)) + assignments + clause
        self.cursor.execute(query, [*values.values(), *params])
        return max(self.cursor.rowcount, 0)

    def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        clause, params = _where_clause(where)
        query = (
            sql.SQL("SELECT {} FROM {}").format(
                sql.SQL(", ").join(sql.Identifier(c) for c in columns),
                sql.Identifier(table),
            )
            + clause
        )
        if order_by:
            query += sql.SQL(" ORDER BY ") + sql.SQL(", ").join(sql.Identifier(c) for c in order_by)
        self.cursor.execute(query, params)
        return [dict(zip(columns, r)) for r in self.cursor.fetchall()]

    def lookup(
        self, table: str, key_column: str, value_column: str, where: Mapping[str, Any] | None = None
    ) -> dict[Any, Any]:
        return {
            r[key_column]: r[value_column]
            for r in self.select(table, [key_column, value_column], where)
        }

    def commit(self) -> None:
        self.cursor.connection.commit()

    def rollback(self) -> None:
        self.cursor.connection.rollback()

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        """Roll back to ``name`` (and re-raise) when the block fails, release it otherwise."""
        ident = sql.Identifier(name)
        self.cursor.execute(sql.SQL("SAVEPOINT {}").format(ident))
        try:
            yield
        except Exception:
            self.cursor.execute(sql.SQL("ROLLBACK TO SAVEPOINT {}").format(ident))
            raise
        self.cursor.execute(sql.SQL("RELEASE SAVEPOINT {}").format(ident))
