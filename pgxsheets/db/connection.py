from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from pgxsheets.models.config_models import DatabaseConfig

"""psycopg2 connection factory.

Resolution order for connection settings:
    1. DATABASE_URL / PGDSN (whole DSN)
    2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the ``database`` section of the YAML config (dsn, then fields)

The CLI loads ``.env`` with override before calling this, so values from
``.env`` win over the inherited environment.
"""

__all__ = [
    "resolve_dsn",
    "db_connection",
]

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (needs a live server)
    """Yield a cursor on a non-autocommit connection.

    Commits whatever is still open on a clean exit and rolls back on error;
    the connection is always closed.
    """
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False
    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
        logger.debug("database connection closed")
