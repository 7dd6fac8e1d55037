from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from pgxsheets.logging.init import reset_logging

CLI = "pgxsheets.cli.__main__"


@pytest.fixture(autouse=True)
def fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def cli_store(store):
    """Run the CLI against the in-memory store instead of PostgreSQL."""
    @contextmanager
    def fake_connection(db_cfg):
        yield MagicMock()

    with patch(f"{CLI}.db_connection", fake_connection), patch(f"{CLI}.PgStore", lambda cursor: store):
        yield store


@pytest.fixture()
def definitions_dir(temp_workdir: Path, definition_artifact) -> Path:
    d = temp_workdir / "data" / "definitions"
    d.mkdir()
    definition_artifact(d, "CYP2C9", ["c.430C>T"], {"*1": {"c.430C>T": "C"}, "*2": {"c.430C>T": "T"}})
    definition_artifact(d, "TPMT", ["c.238G>C"], {"*1": {"c.238G>C": "G"}, "*2": {"c.238G>C": "C"}})
    return d


@pytest.fixture()
def broken_definitions_dir(definitions_dir: Path, excel_factory) -> Path:
    excel_factory(definitions_dir, "DPYD-Allele_Definition_Table.xlsx", {"Sheet1": [["not a definition table"]]})
    return definitions_dir
