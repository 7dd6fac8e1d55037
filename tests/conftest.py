# Shared pytest fixtures
from __future__ import annotations

import copy
import re
import tempfile
from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from pgxsheets.db.batch_insert import BatchInsertError, InsertResult
from pgxsheets.db.store import TableWipe
from pgxsheets.excel.allele_definition import AlleleDefinitionWorkbook, ReferenceSequences, SequenceLocation
from pgxsheets.excel.sidecars import HistoryEntry


SCHEMA_SQL = Path(__file__).resolve().parent.parent / "sql" / "schema.sql"
_CREATE_TABLE = re.compile(r"create table (\w+) \((.*?)\n\);", re.DOTALL)
_CASCADING_FK = re.compile(r"^\s*(\w+)\s+integer\b[^,]*references (\w+)\(id\) on delete cascade", re.MULTILINE)


def schema_cascades(path: Path = SCHEMA_SQL) -> dict[str, list[tuple[str, str]]]:
    """``{parent table: [(child table, fk column), ...]}`` for every ``on delete cascade``."""
    cascades: dict[str, list[tuple[str, str]]] = defaultdict(list)
    for table, body in _CREATE_TABLE.findall(path.read_text(encoding="utf-8")):
        for column, parent in _CASCADING_FK.findall(body):
            cascades[parent].append((table, column))
    return dict(cascades)


def make_excel(directory: Path, name: str, sheets: dict[str, list[list[object]]]) -> Path:
    """Write a real .xlsx with header-less sheets (rows may be ragged)."""
    path = directory / name
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


class FakeStore:
    """In-memory Store.

    Rows are dicts; ``id`` is assigned from a per-table counter that, like a
    database sequence, is not rolled back. ``rollback`` restores the tables to
    the last commit. Deletes follow the ``on delete cascade`` foreign keys of
    ``sql/schema.sql`` unless other ``cascades`` are given.

    ``fail_insert_into`` makes the next insert into that table fail. As in
    PostgreSQL the failure aborts the transaction: every later statement
    fails until ``rollback`` or the enclosing ``savepoint`` restores it.
    """

    def __init__(
        self,
        tables: Mapping[str, list[dict[str, Any]]] | None = None,
        cascades: Mapping[str, Sequence[tuple[str, str]]] | None = None,
    ) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for name, rows in (tables or {}).items():
            self.tables[name] = [dict(r) for r in rows]
        self._ids: dict[str, int] = defaultdict(int)
        for name, rows in self.tables.items():
            self._ids[name] = max((r.get("id", 0) or 0 for r in rows), default=0)
        self._snapshot = copy.deepcopy(dict(self.tables))
        self.commits = 0
        self.rollbacks = 0
        self.wiped: list[TableWipe] = []
        self.fail_insert_into: str | None = None
        self.cascades = schema_cascades() if cascades is None else dict(cascades)
        self.cascaded: dict[str, int] = defaultdict(int)
        self.aborted = False

    @staticmethod
    def _match(row: Mapping[str, Any], where: Mapping[str, Any] | None) -> bool:
        return all(row.get(k) == v for k, v in (where or {}).items())

    def _check_open(self) -> None:
        if self.aborted:
            raise BatchInsertError("current transaction is aborted")

    def wipe(self, wipes: Iterable[TableWipe]) -> int:
        self._check_open()
        deleted = 0
        for w in wipes:
            self.wiped.append(w)
            before = self.tables[w.table]
            if w.file_type is None:
                kept = []
            else:
                kept = [r for r in before if r.get("type") != w.file_type]
            deleted += len(before) - len(kept)
            self.tables[w.table] = kept
            self._cascade(w.table, [r for r in before if r not in kept])
        return deleted

    def _cascade(self, table: str, removed: list[dict[str, Any]]) -> None:
        ids = {r.get("id") for r in removed} - {None}
        if not ids:
            return
        for child, column in self.cascades.get(table, ()):
            before = self.tables[child]
            kept = [r for r in before if r.get(column) not in ids]
            if len(kept) < len(before):
                self.cascaded[child] += len(before) - len(kept)
                self.tables[child] = kept
                self._cascade(child, [r for r in before if r.get(column) in ids])

    def insert(
        self, table: str, columns: Sequence[str], rows: Iterable[Sequence[Any]], returning: str | None = None
    ) -> InsertResult:
        self._check_open()
        rows = list(rows)
        if rows and table == self.fail_insert_into:
            self.fail_insert_into = None
            self.aborted = True
            raise BatchInsertError(f"insert into {table} failed: simulated")
        returned = []
        for values in rows:
            record = dict(zip(columns, values))
            if "id" not in record:
                self._ids[table] += 1
                record["id"] = self._ids[table]
            self.tables[table].append(record)
            if returning:
                returned.append((record[returning],))
        return InsertResult(inserted_rows=len(rows), returned_values=returned if returning else None)

    def update(self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]) -> int:
        self._check_open()
        count = 0
        for row in self.tables[table]:
            if self._match(row, where):
                row.update(values)
                count += 1
        return count

    def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        self._check_open()
        rows = [r for r in self.tables[table] if self._match(r, where)]
        if order_by:
            rows.sort(key=lambda r: tuple((r.get(c) is None, r.get(c)) for c in order_by))
        return [{c: r.get(c) for c in columns} for r in rows]

    def lookup(
        self, table: str, key_column: str, value_column: str, where: Mapping[str, Any] | None = None
    ) -> dict[Any, Any]:
        return {r[key_column]: r[value_column] for r in self.select(table, [key_column, value_column], where)}

    def commit(self) -> None:
        if self.aborted:
            self.rollback()
            return
        self._snapshot = copy.deepcopy(dict(self.tables))
        self.commits += 1

    def rollback(self) -> None:
        self.tables = defaultdict(list, copy.deepcopy(self._snapshot))
        self.aborted = False
        self.rollbacks += 1

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        saved = copy.deepcopy(dict(self.tables))
        try:
            yield
        except Exception:
            self.tables = defaultdict(list, saved)
            self.aborted = False
            raise

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table])


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def genes() -> list[dict[str, Any]]:
    return [
        {"symbol": "CYP2C9"},
        {"symbol": "CYP2D6"},
        {"symbol": "DPYD"},
        {"symbol": "TPMT"},
    ]


@pytest.fixture()
def store(genes) -> FakeStore:
    return FakeStore({"gene": genes})


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: cpic
  password: secret
  database: cpic
importers:
  allele_definition:
    directory: ./data/definitions
  function_reference:
    directory: ./data/function
export:
  directory: ./out
  upload:
    bucket: files.example.org
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "pgxsheets.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def excel_factory():
    return make_excel


def _write_definition(
    directory: Path,
    gene: str,
    locations: Sequence[str],
    alleles: Mapping[str, Mapping[str, str]],
    *,
    modified: date | None = date(2021, 3, 15),
    notes: Sequence[str] = (),
    history: Sequence[HistoryEntry] = (),
) -> Path:
    wb = AlleleDefinitionWorkbook(gene, modified, ReferenceSequences(chromosome="NC_000010.11"))
    ids = {name: i + 1 for i, name in enumerate(locations)}
    for name, location_id in ids.items():
        wb.write_location(SequenceLocation(location_id, name, None, None, None, None))
    for allele, values in alleles.items():
        wb.write_allele(allele)
        for location, value in values.items():
            wb.write_allele_value(ids[location], value)
    wb.write_notes(notes)
    wb.write_history(history)
    return wb.save(directory)


def _write_function_reference(
    directory: Path,
    gene: str,
    rows: Sequence[Sequence[object]],
    *,
    history: Sequence[Sequence[object]] = (),
    name: str | None = None,
) -> Path:
    sheets = {
        "Allele Function": [[f"GENE: {gene}"], ["Allele", "Activity", "Function", "Clinical function",
                                               "Substrate", "PMID", "Strength", "Findings", "Comments"],
                            *[list(r) for r in rows]],
        "Change History": [["Date", "Entry"], *[list(h) for h in history]],
    }
    return make_excel(directory, name or f"{gene}-Allele_Functionality_Reference.xlsx", sheets)


def _write_frequency(
    directory: Path,
    gene: str,
    alleles: Sequence[str],
    populations: Sequence[Sequence[object]],
    *,
    methods: str = "Weighted averages.",
    history: Sequence[Sequence[object]] | None = (("2020-05-01", "initial"),),
) -> Path:
    header = ["Authors", "Year", "PMID", "Major ethnicity", "Population", "Add'l population info",
              "Subject type", "N subjects genotyped", *alleles]
    sheets: dict[str, list[list[object]]] = {
        "References": [header, *[list(p) for p in populations]],
        "Methods and caveats": [[line] for line in methods.splitlines()],
    }
    if history is not None:
        sheets["Change History"] = [["Date", "Entry"], *[list(h) for h in history]]
    return make_excel(directory, f"{gene}_frequency_table.xlsx", sheets)


@pytest.fixture()
def definition_artifact():
    return _write_definition


@pytest.fixture()
def function_artifact():
    return _write_function_reference


@pytest.fixture()
def frequency_artifact():
    return _write_frequency


@pytest.fixture()
def make_store():
    return FakeStore
