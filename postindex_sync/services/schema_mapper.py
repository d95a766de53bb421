from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from ..models.fields import TableSchema

"""Header row to destination field mapping.

The header is the first non-empty row of the sheet. Every header cell is
matched by exact (stripped) text against the ``source_label`` of the field
descriptors; unlabeled descriptors never receive a column. Data starts at the
row immediately after the header.
"""

__all__ = [
    "SchemaMappingError",
    "MissingKeyColumnError",
    "ColumnMapping",
    "is_empty_row",
    "locate_header",
    "map_header",
]


class SchemaMappingError(Exception):
    """Raised when the sheet has no usable header row."""


class MissingKeyColumnError(SchemaMappingError):
    """Raised when no header cell matches the natural key field."""


@dataclass(frozen=True)
class ColumnMapping:
    """Source column position -> destination field name."""
    columns: dict[int, str]
    key_position: int
    header_index: int  # 0-based index of the header row
    unmatched_labels: tuple[str, ...] = ()

    @property
    def data_start_row(self) -> int:
        """1-based number of the first data row (the row after the header)."""
        return self.header_index + 2

    @property
    def fields(self) -> list[str]:
        return list(self.columns.values())

    def missing_fields(self, schema: TableSchema) -> list[str]:
        """Labeled descriptors that did not receive a column."""
        mapped = set(self.columns.values())
        return [f.name for f in schema.mapped_fields if f.name not in mapped]


def is_empty_row(cells: Sequence[Any]) -> bool:
    return all(c is None or (isinstance(c, str) and not c.strip()) for c in cells)


def locate_header(rows: Iterable[Sequence[Any]]) -> tuple[int, Sequence[Any]]:
    """Return ``(index, cells)`` of the first non-empty row."""
    for index, cells in enumerate(rows):
        if not is_empty_row(cells):
            return index, cells
    raise SchemaMappingError("source sheet has no header row")


def map_header(header_cells: Sequence[Any], schema: TableSchema, header_index: int = 0) -> ColumnMapping:
    """Map header cell positions to field names.

    If a label matches several descriptors the last descriptor wins.

    Raises
    ------
    MissingKeyColumnError: the key field received no column
    """
    columns: dict[int, str] = {}
    unmatched: list[str] = []
    labeled = schema.mapped_fields
    for position, cell in enumerate(header_cells):
        if cell is None:
            continue
        label = str(cell).strip()
        if not label:
            continue
        matched = None
        for descriptor in labeled:
            if descriptor.source_label == label:
                matched = descriptor.name
        if matched is None:
            unmatched.append(label)
        else:
            columns[position] = matched

    key_positions = [p for p, name in columns.items() if name == schema.key_field]
    if not key_positions:
        raise MissingKeyColumnError(
            f"natural key column '{schema.key_descriptor.source_label}' not found in header"
        )
    return ColumnMapping(
        columns=columns,
        key_position=key_positions[-1],
        header_index=header_index,
        unmatched_labels=tuple(unmatched),
    )
