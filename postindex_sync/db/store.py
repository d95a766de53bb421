from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from itertools import groupby
from typing import Any

from ..models.changes import RecordUpdate
from ..models.fields import TableSchema
from .schema import ensure_schema, missing_columns
from .statements import (
    BatchMetrics,
    StorageError,
    batch_insert,
    batch_update,
    delete_by_keys,
    quote_ident,
    select_by_keys,
)

"""PostgreSQL storage used by the reconciler and the record service.

Wraps one psycopg2 connection. Every driver error surfaces as
``StorageError``. Writes are not committed implicitly: the reconciler calls
``commit()`` after every applied chunk and ``rollback()`` when a chunk fails.
"""

__all__ = [
    "PostgresStore",
]

logger = logging.getLogger(__name__)


class PostgresStore:
    def __init__(
        self,
        connection: Any,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self._conn = connection
        self._cursor = connection.cursor()
        self.metrics_callback = metrics_callback

    @property
    def cursor(self) -> Any:
        return self._cursor

    # -- transactions -------------------------------------------------

    def commit(self) -> None:
        try:
            self._conn.commit()
        except Exception as e:
            raise StorageError(f"commit failed: {e}") from e

    def rollback(self) -> None:
        try:
            self._conn.rollback()
        except Exception as e:
            raise StorageError(f"rollback failed: {e}") from e

    def close(self) -> None:
        self._cursor.close()

    # -- schema -------------------------------------------------------

    def ensure_schema(self, schema: TableSchema) -> None:
        ensure_schema(self._cursor, schema)

    def missing_columns(self, schema: TableSchema) -> list[str]:
        return missing_columns(self._cursor, schema)

    # -- dictionaries -------------------------------------------------

    def load_dictionary(self, category: str) -> list[tuple[int, str]]:
        sql = (
            f"SELECT {quote_ident('id')}, {quote_ident('value')} "
            f"FROM {quote_ident(category)} ORDER BY {quote_ident('id')}"
        )
        try:
            self._cursor.execute(sql)
            return [(int(r[0]), r[1]) for r in self._cursor.fetchall()]
        except Exception as e:
            raise StorageError(f"failed loading dictionary {category}: {e}") from e

    def insert_dictionary_entry(self, category: str, label: str) -> int:
        result = batch_insert(self._cursor, category, ["value"], [[label]], returning="id")
        if not result.returned_values:
            raise StorageError(f"no id returned for new {category} entry {label!r}")
        return int(result.returned_values[0][0])

    # -- main table ---------------------------------------------------

    def fetch_by_keys(self, schema: TableSchema, keys: Sequence[str]) -> dict[str, dict[str, Any]]:
        columns = schema.field_names
        rows = select_by_keys(self._cursor, schema.table_name, schema.key_field, columns, list(keys))
        key_index = columns.index(schema.key_field)
        return {r[key_index]: dict(zip(columns, r)) for r in rows}

    def fetch_all_keys(self, schema: TableSchema) -> set[str]:
        sql = f"SELECT {quote_ident(schema.key_field)} FROM {quote_ident(schema.table_name)}"
        try:
            self._cursor.execute(sql)
            return {r[0] for r in self._cursor.fetchall()}
        except Exception as e:
            raise StorageError(f"failed reading keys of {schema.table_name}: {e}") from e

    def insert_records(self, schema: TableSchema, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> int:
        result = batch_insert(
            self._cursor,
            schema.table_name,
            columns,
            rows,
            metrics_callback=self.metrics_callback,
        )
        return result.inserted_rows

    def update_records(self, schema: TableSchema, updates: Sequence[RecordUpdate]) -> int:
        """One UPDATE per distinct set of changed columns."""
        casts = schema.sql_types()
        updated = 0
        ordered = sorted(updates, key=lambda u: u.columns)
        for columns, group in groupby(ordered, key=lambda u: u.columns):
            rows = [[u.key, *(u.changes[c] for c in columns)] for u in group]
            updated += batch_update(
                self._cursor,
                schema.table_name,
                schema.key_field,
                columns,
                rows,
                casts=casts,
                metrics_callback=self.metrics_callback,
            )
        return updated

    def delete_orphans(self, schema: TableSchema, keys: Sequence[str]) -> int:
        """Delete ``keys`` except manually created rows; returns the deleted count."""
        return delete_by_keys(
            self._cursor,
            schema.table_name,
            schema.key_field,
            list(keys),
            where_equals={schema.manual_field: 0},
        )

    # -- generic reads/writes for the query side -----------------------

    def fetch_all(self, sql: str, params: Sequence[Any] | dict[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            self._cursor.execute(sql, params)
            names = [d[0] for d in self._cursor.description]
            return [dict(zip(names, r)) for r in self._cursor.fetchall()]
        except Exception as e:
            raise StorageError(f"query failed: {e}") from e

    def fetch_value(self, sql: str, params: Sequence[Any] | dict[str, Any] | None = None) -> Any:
        try:
            self._cursor.execute(sql, params)
            row = self._cursor.fetchone()
        except Exception as e:
            raise StorageError(f"query failed: {e}") from e
        return row[0] if row else None

    def execute(self, sql: str, params: Sequence[Any] | dict[str, Any] | None = None) -> int:
        try:
            self._cursor.execute(sql, params)
        except Exception as e:
            raise StorageError(f"statement failed: {e}") from e
        return self._cursor.rowcount
