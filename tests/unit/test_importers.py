from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from pgxsheets.excel.reader import MalformedRow
from pgxsheets.importers.allele_definition import AlleleDefinitionImporter
from pgxsheets.importers.allele_frequency import AlleleFrequencyImporter
from pgxsheets.importers.base import ImportContext, UnknownEntityReference, sidecar_wipes
from pgxsheets.importers.function_reference import FunctionReferenceImporter
from pgxsheets.importers.registry import IMPORTERS, get_importer
from pgxsheets.logging.error_log import ErrorLogBuffer
from pgxsheets.models.artifact import ArtifactFile, ArtifactType, FileStatus
from pgxsheets.models.error_record import FILE_LEVEL


def _process(importer, path: Path, store, logs_dir: Path):
    context = ImportContext(store=store, file=ArtifactFile.from_path(path), error_log=ErrorLogBuffer(logs_dir))
    outcome = importer.process_workbook(importer.open_workbook(path), context)
    return outcome, context


@pytest.fixture()
def defined_store(store):
    """Store with CYP2C9 definitions *1, *2 and *3."""
    store.insert(
        "allele_definition",
        ("gene_symbol", "name"),
        [("CYP2C9", "*1"), ("CYP2C9", "*2"), ("CYP2C9", "*3"), ("TPMT", "*1")],
    )
    return store


def test_registry_names():
    assert set(IMPORTERS) == {"allele_definition", "function_reference", "allele_frequency"}
    importer = get_importer("allele_frequency", keep_na_strings=["NA"])
    assert isinstance(importer, AlleleFrequencyImporter)
    assert importer.keep_na_strings == ["NA"]
    with pytest.raises(KeyError):
        get_importer("drug")


def test_sidecar_wipes_scoped_by_type():
    wipes = sidecar_wipes(ArtifactType.FREQUENCY)
    assert {w.file_type for w in wipes} == {"FREQUENCY"}
    assert {w.table for w in wipes} == {"change_log", "file_note"}


def test_definition_importer_stages_matrix(temp_workdir: Path, store, definition_artifact):
    path = definition_artifact(
        temp_workdir / "data",
        "CYP2C9",
        ["c.430C>T", "c.1075A>C"],
        {"*1": {"c.430C>T": "C", "c.1075A>C": "A"}, "*2": {"c.430C>T": "T"}, "*3": {"c.1075A>C": "C"}},
    )
    outcome, context = _process(AlleleDefinitionImporter(), path, store, temp_workdir / "logs")

    assert outcome.entity_key == "CYP2C9"
    assert outcome.inserted_rows == 2 + 3 + 4
    assert context.file.status is FileStatus.STAGING
    locations = store.rows("sequence_location")
    assert [loc["name"] for loc in locations] == ["c.430C>T", "c.1075A>C"]
    definitions = {d["name"]: d["id"] for d in store.rows("allele_definition")}
    assert set(definitions) == {"*1", "*2", "*3"}
    loc_id = {loc["name"]: loc["id"] for loc in locations}
    values = {(v["allele_definition_id"], v["location_id"], v["variant_allele"]) for v in store.rows("allele_location_value")}
    assert (definitions["*2"], loc_id["c.430C>T"], "T") in values
    assert len(values) == 4

    gene = store.select("gene", ["alleles_last_modified", "chromo_sequence_id"], {"symbol": "CYP2C9"})[0]
    assert gene == {"alleles_last_modified": date(2021, 3, 15), "chromo_sequence_id": "NC_000010.11"}


def test_definition_importer_unknown_gene(temp_workdir: Path, store, definition_artifact):
    path = definition_artifact(temp_workdir / "data", "NUDT15", ["c.415C>T"], {"*3": {"c.415C>T": "T"}})
    with pytest.raises(UnknownEntityReference) as e:
        _process(AlleleDefinitionImporter(), path, store, temp_workdir / "logs")
    assert e.value.entity == "gene"
    assert store.rows("allele_definition") == []


def test_function_importer_links_definitions(temp_workdir: Path, defined_store, function_artifact):
    path = function_artifact(temp_workdir / "data", "CYP2C9", [
        ["*1", "1", "Normal function", "Normal function", None, "123; 456", "High", None, None],
        ["*2", "0.5", "decreased  FUNCTION", "Decreased function", "warfarin", None, "Moderate", "x", "y"],
        ["*3", "0", "No functione", "No function", None, "789", None, None, None],
    ])
    outcome, context = _process(FunctionReferenceImporter(), path, defined_store, temp_workdir / "logs")

    assert outcome.inserted_rows == 6
    assert context.file.skipped_rows == 0
    alleles = {a["name"]: a for a in defined_store.rows("allele")}
    definitions = defined_store.lookup("allele_definition", "name", "id", {"gene_symbol": "CYP2C9"})
    assert set(alleles) == set(definitions)
    assert {a["gene_symbol"] for a in alleles.values()} == {"CYP2C9"}
    assert alleles["*2"]["functional_status"] == "Decreased function"
    assert alleles["*2"]["clinical_functional_substrate"] == "warfarin"
    assert alleles["*3"]["functional_status"] == "No function"
    refs = {r["allele_id"]: r for r in defined_store.rows("function_reference")}
    assert refs[alleles["*1"]["id"]]["citations"] == ["123", "456"]
    assert refs[alleles["*2"]["id"]]["citations"] == []


def test_skip_without_sheet_is_file_level(temp_workdir: Path, store):
    path = temp_workdir / "CYP2C9-Allele_Functionality_Reference.xlsx"
    context = ImportContext(
        store=store, file=ArtifactFile.from_path(path), error_log=ErrorLogBuffer(temp_workdir / "logs")
    )
    context.skip(UnknownEntityReference("allele", "*99"))

    (record,) = context.error_log.records
    assert (record.sheet, record.row) == (FILE_LEVEL, -1)
    assert FILE_LEVEL == "<FILE_LEVEL>"
    assert context.file.skipped_rows == 1


def test_function_importer_skips_unknown_allele(temp_workdir: Path, defined_store, function_artifact):
    path = function_artifact(temp_workdir / "data", "CYP2C9", [
        ["*1", "1", None, "Normal function"],
        ["*99", None, None, "Unknown function"],
    ])
    outcome, context = _process(FunctionReferenceImporter(), path, defined_store, temp_workdir / "logs")

    assert [a["name"] for a in defined_store.rows("allele")] == ["*1"]
    assert context.file.skipped_rows == 1
    (record,) = context.error_log.records
    assert record.error_type == "UNKNOWN_ENTITY_REFERENCE"
    assert record.sheet == "Allele Function"
    assert record.row == 4
    assert "*99" in record.message
    assert outcome.inserted_rows == 2


def test_function_importer_duplicate_allele(temp_workdir: Path, defined_store, function_artifact):
    path = function_artifact(temp_workdir / "data", "CYP2C9", [
        ["*1", None, None, "Normal function"],
        ["*1", None, None, "Normal function"],
    ])
    with pytest.raises(MalformedRow) as e:
        _process(FunctionReferenceImporter(), path, defined_store, temp_workdir / "logs")
    assert e.value.row_index == 3


def test_function_importer_unknown_status(temp_workdir: Path, defined_store, function_artifact):
    path = function_artifact(temp_workdir / "data", "CYP2C9", [["*1", None, None, "Sort of working"]])
    with pytest.raises(MalformedRow) as e:
        _process(FunctionReferenceImporter(), path, defined_store, temp_workdir / "logs")
    assert "Sort of working" in str(e.value)
    assert defined_store.rows("allele") == []


def test_frequency_importer(temp_workdir: Path, defined_store, frequency_artifact):
    path = frequency_artifact(temp_workdir / "data", "CYP2C9", ["*1", "*2", "*8"], [
        ["Smith J", 2010, "20000001", "European", "German", None, "healthy", 200, 0.8, 0.15, 0.05],
        ["Lee K", 2012, "22000002", "East Asian", "Korean", None, "patients", 500, 0.97, "0.5%"],
    ])
    outcome, context = _process(AlleleFrequencyImporter(), path, defined_store, temp_workdir / "logs")

    populations = defined_store.rows("population")
    assert [p["authors"] for p in populations] == ["Smith J", "Lee K"]
    assert populations[1]["subject_count"] == 500
    frequencies = defined_store.rows("allele_frequency")
    # *8 has no definition: its column is skipped once
    assert len(frequencies) == 4
    assert context.file.skipped_rows == 1
    assert context.error_log.records[0].row == 1
    lee = [f for f in frequencies if f["population_id"] == populations[1]["id"]]
    assert sorted(f["frequency"] for f in lee) == [0.005, 0.97]
    assert all(f["label"] is None for f in frequencies)
    assert outcome.inserted_rows == 2 + 4
    methods = defined_store.select("gene", ["frequency_methods"], {"symbol": "CYP2C9"})[0]["frequency_methods"]
    assert methods == "Weighted averages."


def test_frequency_importer_keeps_text_label(temp_workdir: Path, defined_store, frequency_artifact):
    path = frequency_artifact(temp_workdir / "data", "CYP2C9", ["*1"], [
        ["Smith J", 2010, None, None, None, None, None, 10, "n/a"],
    ])
    _process(AlleleFrequencyImporter(keep_na_strings=["n/a"]), path, defined_store, temp_workdir / "logs")
    (row,) = defined_store.rows("allele_frequency")
    assert row["frequency"] is None
    assert row["label"] == "n/a"
