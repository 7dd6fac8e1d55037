from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from pgxsheets.models.haplotype import sort_haplotype_names

from .reader import MalformedRow, Sheet
from .writer import RowWriter, SheetWriter

"""Sparse matrix codec.

Encodes (entity, location, value) triples into a rectangular grid:

            col 0      col 1    col 2..n
    label rows                  one label per row for each location column
    data rows  entity  scalars  value at the entity/location intersection

Location columns are allocated left to right in the order locations are
registered and never move afterwards, so a location has exactly one column and
rows already written stay aligned. Undefined intersections stay blank.

Decoding reads the label rows back as the column directory and yields
(entity, column, value) for every populated cell of the data block.
"""

__all__ = [
    "DuplicateLocation",
    "UnknownLocation",
    "MatrixLayout",
    "Location",
    "MatrixEncoder",
    "DecodedEntity",
    "DecodedMatrix",
    "encode_matrix",
    "decode_matrix",
]


class DuplicateLocation(Exception):
    """Raised when a location id is registered twice on one encoder."""


class UnknownLocation(Exception):
    """Raised when a value references a location id that was never registered."""


@dataclass(frozen=True)
class MatrixLayout:
    """Fixed geometry of a matrix sheet.

    label_rows: sheet rows that hold one label per location column, in label order
    first_data_row: first entity row
    first_value_column: column of the first location
    entity_column: column holding the entity name
    scalar_columns: per-entity scalar columns (e.g. functional status)
    unique_entities: reject a repeated entity name while decoding
    """
    label_rows: tuple[int, ...]
    first_data_row: int
    first_value_column: int
    entity_column: int = 0
    scalar_columns: tuple[int, ...] = ()
    unique_entities: bool = True

    def __post_init__(self) -> None:
        if any(r >= self.first_data_row for r in self.label_rows):
            raise ValueError("label rows must precede the data block")
        reserved = {self.entity_column, *self.scalar_columns}
        if any(c >= self.first_value_column for c in reserved):
            raise ValueError("entity/scalar columns must precede the value columns")


@dataclass(frozen=True)
class Location:
    location_id: int
    labels: tuple[str | None, ...]


class MatrixEncoder:
    """Write-once column allocator for one matrix sheet.

    One encoder per artifact; it carries the location -> column map and the
    current entity row.
    """

    def __init__(self, sheet: SheetWriter, layout: MatrixLayout) -> None:
        self.sheet = sheet
        self.layout = layout
        self._columns: dict[int, int] = {}
        self._next_column = layout.first_value_column
        self._entity_row: RowWriter | None = None
        while len(sheet) <= max(layout.label_rows, default=-1):
            sheet.next_row()

    @property
    def columns(self) -> Mapping[int, int]:
        return MappingProxyType(self._columns)

    def column_for(self, location_id: int) -> int:
        try:
            return self._columns[location_id]
        except KeyError:
            raise UnknownLocation(f"no column registered for location {location_id}") from None

    def register_location(self, location_id: int, labels: Sequence[str | None]) -> int:
        if location_id in self._columns:
            raise DuplicateLocation(
                f"location {location_id} already has column {self._columns[location_id]}"
            )
        if len(labels) > len(self.layout.label_rows):
            raise ValueError(
                f"location {location_id} has {len(labels)} labels, layout holds {len(self.layout.label_rows)}"
            )
        if not any(label and label.strip() for label in labels):
            raise ValueError(f"location {location_id} has no label")
        col = self._next_column
        for row_idx, label in zip(self.layout.label_rows, labels):
            self.sheet.row(row_idx).write_text(col, label)
        self._columns[location_id] = col
        self._next_column += 1
        return col

    def write_entity(self, name: str, scalars: Sequence[str | None] = ()) -> RowWriter:
        if not name or not name.strip():
            raise ValueError("entity name must not be blank")
        while len(self.sheet) < self.layout.first_data_row:
            self.sheet.next_row()
        row = self.sheet.next_row()
        row.write_text(self.layout.entity_column, name)
        for col, value in zip(self.layout.scalar_columns, scalars):
            row.write_text(col, value)
        self._entity_row = row
        return row

    def write_value(self, location_id: int, value: str | None) -> None:
        col = self.column_for(location_id)
        if self._entity_row is None:
            raise MalformedRow("value written before any entity row", self.sheet.name)
        self._entity_row.write_text(col, value)


def encode_matrix(
    sheet: SheetWriter,
    layout: MatrixLayout,
    locations: Iterable[Location],
    entities: Iterable[str],
    values: Iterable[tuple[str, int, str | None]],
    scalars: Mapping[str, Sequence[str | None]] | None = None,
) -> MatrixEncoder:
    """Encode a full triple set.

    Locations keep the order given; entities are listed in haplotype name
    order. Entities that only appear in ``values`` get a row as well.
    """
    encoder = MatrixEncoder(sheet, layout)
    for loc in locations:
        encoder.register_location(loc.location_id, loc.labels)

    by_entity: dict[str, list[tuple[int, str | None]]] = {}
    for entity, location_id, value in values:
        by_entity.setdefault(entity, []).append((location_id, value))

    names = set(entities) | set(by_entity)
    scalars = scalars or {}
    for name in sort_haplotype_names(names):
        encoder.write_entity(name, scalars.get(name, ()))
        for location_id, value in by_entity.get(name, ()):
            encoder.write_value(location_id, value)
    return encoder


@dataclass(frozen=True)
class DecodedEntity:
    name: str
    row_index: int
    scalars: tuple[str | None, ...] = ()
    values: dict[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DecodedMatrix:
    headers: dict[int, tuple[str | None, ...]]
    entities: list[DecodedEntity]

    def triples(self) -> list[tuple[str, int, str]]:
        return [
            (e.name, col, value)
            for e in self.entities
            for col, value in sorted(e.values.items())
        ]


def decode_matrix(sheet: Sheet, layout: MatrixLayout) -> DecodedMatrix:
    """Decode a matrix sheet written with ``layout``.

    Reading stops at the first data row without an entity name or at the end
    of the sheet.

    Raises:
        MalformedRow: a value sits in a column without any label, or an entity
            name is repeated
    """
    label_rows = [sheet.row(i) for i in layout.label_rows]
    width = max((len(r) for r in label_rows), default=0)
    headers: dict[int, tuple[str | None, ...]] = {}
    for col in range(layout.first_value_column, width):
        labels = tuple(r.text_or_none(col) for r in label_rows)
        if any(label is not None for label in labels):
            headers[col] = labels

    entities: list[DecodedEntity] = []
    seen: set[str] = set()
    for row in sheet.rows(start=layout.first_data_row):
        name = row.text_or_none(layout.entity_column)
        if name is None:
            break
        if layout.unique_entities and name in seen:
            raise MalformedRow(f"duplicate entry {name!r}", sheet.name, row.index)
        seen.add(name)
        values: dict[int, str] = {}
        for col in range(layout.first_value_column, len(row)):
            text = row.text_or_none(col)
            if text is None:
                continue
            if col not in headers:
                raise MalformedRow(f"value {text!r} in column {col + 1} has no location header", sheet.name, row.index)
            values[col] = text
        entities.append(DecodedEntity(
            name=name,
            row_index=row.index,
            scalars=tuple(row.text_or_none(c) for c in layout.scalar_columns),
            values=values,
        ))
    return DecodedMatrix(headers=headers, entities=entities)
