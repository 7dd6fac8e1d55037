from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest
from jsonschema.exceptions import ValidationError

from pgxsheets.cli.__main__ import main
from pgxsheets.models.error_record import ErrorRecord

"""Error log JSON Lines schema contract."""

SCHEMA_PATH = Path(__file__).with_name("schemas") / "error_log_schema.json"
SCHEMA = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def _records(temp_workdir: Path) -> list[dict]:
    records = []
    for log_file in sorted((temp_workdir / "logs").glob("errors-*.log")):
        records += [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    return records


def test_error_log_schema_valid_example():
    record = {
        "timestamp": "2025-09-26T10:12:33.120000Z",
        "file": "TPMT-Allele_Functionality_Reference.xlsx",
        "sheet": "Allele Function",
        "row": 5,
        "error_type": "UNKNOWN_ENTITY_REFERENCE",
        "message": "no allele defined with name '*42'",
    }
    jsonschema.validate(record, SCHEMA)


def test_error_log_schema_rejects_extra_key():
    record = json.loads(ErrorRecord.create("a.xlsx", "Definitions", 3, "MALFORMED_ROW", "bad").to_json_line())
    record["db_message"] = "not allowed"
    with pytest.raises(ValidationError):
        jsonschema.validate(record, SCHEMA)


def test_records_written_by_aborted_run_match_schema(
    write_config: Path, cli_store, broken_definitions_dir: Path, temp_workdir: Path
):
    assert main(["import", "allele_definition"]) == 2
    (record,) = _records(temp_workdir)
    jsonschema.validate(record, SCHEMA)
    assert record["file"] == "DPYD-Allele_Definition_Table.xlsx"


def test_skipped_reference_records_match_schema(
    write_config: Path, cli_store, temp_workdir: Path, function_artifact
):
    cli_store.tables["allele_definition"] = [{"id": 1, "gene_symbol": "TPMT", "name": "*1"}]
    d = temp_workdir / "data" / "function"
    d.mkdir()
    function_artifact(d, "TPMT", [
        ["*1", None, None, "Normal function"],
        ["*3A", None, None, "No function"],
        ["*3C", None, None, "No function"],
    ])
    assert main(["import", "function_reference"]) == 0
    records = _records(temp_workdir)
    assert [r["row"] for r in records] == [4, 5]
    for record in records:
        jsonschema.validate(record, SCHEMA)
        assert record["sheet"] == "Allele Function"
