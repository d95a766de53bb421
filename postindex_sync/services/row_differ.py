from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any

from ..models.fields import TableSchema
from ..models.run_context import RunContext
from .dictionary_store import DictionaryStore
from .schema_mapper import ColumnMapping, is_empty_row
from .values import normalize_field_value

"""Source row resolution and batching.

Every mapped cell is resolved before rows are compared with storage:
dictionary-backed fields become surrogate ids, scalar fields become their
canonical text. The comparison in the batch applier is therefore id-to-id and
text-to-text.

A natural key is taken from its first row in the sheet. Later rows repeating
it are skipped wherever they fall, so the outcome of a run does not depend on
the chunk size.
"""

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "EMPTY_NATURAL_KEY",
    "DUPLICATE_NATURAL_KEY",
    "natural_key",
    "resolve_row",
    "iter_batches",
]

DEFAULT_CHUNK_SIZE = 3000

EMPTY_NATURAL_KEY = "EMPTY_NATURAL_KEY"
DUPLICATE_NATURAL_KEY = "DUPLICATE_NATURAL_KEY"

logger = logging.getLogger(__name__)

# (1-based sheet row, error type, message)
SkipCallback = Callable[[int, str, str], None]


def _cell(cells: Sequence[Any], position: int) -> Any:
    return cells[position] if position < len(cells) else None


def natural_key(cells: Sequence[Any], mapping: ColumnMapping, schema: TableSchema) -> str | None:
    """Normalized natural key of a source row, ``None`` when the cell is empty."""
    return normalize_field_value(schema.key_descriptor, _cell(cells, mapping.key_position))


def _resolve_values(
    cells: Sequence[Any],
    key: str,
    mapping: ColumnMapping,
    schema: TableSchema,
    dictionaries: DictionaryStore,
) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for position, field_name in mapping.columns.items():
        descriptor = schema.field(field_name)
        raw = _cell(cells, position)
        if descriptor.is_dictionary:
            values[field_name] = dictionaries.resolve(descriptor.dictionary, raw)  # type: ignore[arg-type]
        else:
            values[field_name] = normalize_field_value(descriptor, raw)
    values[schema.key_field] = key
    return values


def resolve_row(
    cells: Sequence[Any],
    mapping: ColumnMapping,
    schema: TableSchema,
    dictionaries: DictionaryStore,
) -> tuple[str, dict[str, Any]] | None:
    """Resolve one source row.

    Returns ``(key, values)`` or ``None`` when the natural key cell is empty.
    The key is checked first so skipped rows never grow a dictionary.
    """
    key = natural_key(cells, mapping, schema)
    if key is None:
        return None
    return key, _resolve_values(cells, key, mapping, schema, dictionaries)


def iter_batches(
    rows: Iterable[Sequence[Any]],
    mapping: ColumnMapping,
    schema: TableSchema,
    dictionaries: DictionaryStore,
    context: RunContext,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_skip: SkipCallback | None = None,
    first_row_number: int | None = None,
) -> Iterator[dict[str, dict[str, Any]]]:
    """Yield ``key -> values`` batches of at most ``chunk_size`` keys.

    Parameters
    ----------
    rows: data rows only (the header already consumed)
    context: receives rows_read/skipped counters and observed keys
    on_skip: called with (1-based row number, error type, message) for rows
        with an empty natural key or a key already seen in this run
    first_row_number: sheet row number of the first element of ``rows``
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    row_number = first_row_number if first_row_number is not None else mapping.data_start_row
    batch: dict[str, dict[str, Any]] = {}
    for cells in rows:
        current = row_number
        row_number += 1
        if is_empty_row(cells):
            continue
        context.rows_read += 1
        key = natural_key(cells, mapping, schema)
        if key is None:
            skip = (EMPTY_NATURAL_KEY, "empty natural key")
        elif key in context.observed_keys:
            skip = (DUPLICATE_NATURAL_KEY, f"duplicate natural key {key}, first occurrence kept")
        else:
            skip = None
        if skip is not None:
            context.skipped += 1
            if on_skip is not None:
                on_skip(current, *skip)
            continue
        context.observe(key)
        batch[key] = _resolve_values(cells, key, mapping, schema, dictionaries)
        if len(batch) >= chunk_size:
            yield batch
            batch = {}
    if batch:
        yield batch
