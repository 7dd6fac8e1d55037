from __future__ import annotations

from .allele_definition import AlleleDefinitionImporter
from .allele_frequency import AlleleFrequencyImporter
from .base import DirectoryImporter
from .function_reference import FunctionReferenceImporter

"""Importer lookup by config / CLI name."""

IMPORTERS: dict[str, type[DirectoryImporter]] = {
    cls.name: cls
    for cls in (AlleleDefinitionImporter, FunctionReferenceImporter, AlleleFrequencyImporter)
}


def get_importer(name: str, keep_na_strings: list[str] | None = None) -> DirectoryImporter:
    try:
        cls = IMPORTERS[name]
    except KeyError:
        raise KeyError(f"unknown importer {name!r} (known: {', '.join(sorted(IMPORTERS))})") from None
    return cls(keep_na_strings=keep_na_strings)
