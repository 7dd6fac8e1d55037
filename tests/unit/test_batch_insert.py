from __future__ import annotations

import pytest

from pgxsheets.db.batch_insert import BatchInsertError, InsertResult, batch_insert


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.pages: list[int] = []


# execute_values is patched inside the module so the logic runs without a server
@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import pgxsheets.db.batch_insert as bi

    def fake_execute_values(cursor, sql, rows, page_size=100, fetch=False):
        cursor.queries.append(sql)
        cursor.pages.append(page_size)
        if fetch:
            return [(100 + i,) for i, _ in enumerate(rows)]
        return None

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return fake_execute_values


def test_batch_insert_basic():
    cur = DummyCursor()
    res = batch_insert(cur, table="allele", columns=["gene_symbol", "name"], rows=[["CYP2C9", "*1"], ["CYP2C9", "*2"]])
    assert isinstance(res, InsertResult)
    assert res.inserted_rows == 2
    assert res.returned_values is None
    assert res.returned_ids == []
    assert cur.queries == ['INSERT INTO "allele" ("gene_symbol","name") VALUES %s']


def test_batch_insert_returning_ids_in_order():
    cur = DummyCursor()
    res = batch_insert(cur, table="population", columns=["authors"], rows=[["a"], ["b"], ["c"]], returning="id")
    assert res.returned_ids == [100, 101, 102]
    assert cur.queries[0].endswith(' RETURNING "id"')


def test_batch_insert_page_size_passed_through():
    cur = DummyCursor()
    batch_insert(cur, table="t", columns=["c"], rows=[[1]], page_size=50)
    assert cur.pages == [50]


def test_batch_insert_quotes_identifiers():
    cur = DummyCursor()
    batch_insert(cur, table='we"ird', columns=["a b"], rows=[[1]])
    assert cur.queries[0] == 'INSERT INTO "we""ird" ("a b") VALUES %s'


def test_batch_insert_empty_rows():
    cur = DummyCursor()
    assert batch_insert(cur, table="t", columns=["id"], rows=[]).inserted_rows == 0
    res = batch_insert(cur, table="t", columns=["id"], rows=iter(()), returning="id")
    assert res.returned_values == []
    assert cur.queries == []


def test_batch_insert_driver_error(monkeypatch):
    import pgxsheets.db.batch_insert as bi

    def boom(*args, **kwargs):
        raise RuntimeError("duplicate key value violates unique constraint")

    monkeypatch.setattr(bi, "execute_values", boom)
    with pytest.raises(BatchInsertError) as e:
        batch_insert(DummyCursor(), table="allele_definition", columns=["name"], rows=[["*1"]])
    assert "allele_definition" in str(e.value)
    assert isinstance(e.value.__cause__, RuntimeError)


def test_batch_insert_returning_count_mismatch(monkeypatch):
    import pgxsheets.db.batch_insert as bi

    monkeypatch.setattr(bi, "execute_values", lambda *a, **k: [(1,)])
    with pytest.raises(BatchInsertError):
        batch_insert(DummyCursor(), table="t", columns=["c"], rows=[[1], [2]], returning="id")
