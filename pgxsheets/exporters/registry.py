from __future__ import annotations

from pgxsheets.db.store import Store
from pgxsheets.services.upload import FileStoreClient

from .allele_definition import AlleleDefinitionExporter
from .base import BaseExporter
from .function_reference import FunctionReferenceExporter

"""Gene artifact exporters, in archive order."""

EXPORTERS: tuple[type[BaseExporter], ...] = (AlleleDefinitionExporter, FunctionReferenceExporter)


def gene_exporters(store: Store, publisher: FileStoreClient | None = None) -> list[BaseExporter]:
    return [cls(store, publisher=publisher) for cls in EXPORTERS]
