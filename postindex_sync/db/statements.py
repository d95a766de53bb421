from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched statement builders on top of ``psycopg2.extras.execute_values``.

Each helper sends one statement for the whole row list (``page_size`` defaults
to the number of rows), so a chunk costs one round trip per operation kind.
Identifiers are double-quoted by ``quote_ident``; values always travel as
parameters.
"""

__all__ = [
    "StorageError",
    "BatchMetrics",
    "InsertResult",
    "quote_ident",
    "batch_insert",
    "batch_update",
    "select_by_keys",
    "delete_by_keys",
]


class StorageError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single batched statement."""
    operation: str  # insert / update
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


MetricsCallback = Callable[[BatchMetrics], None]


def quote_ident(name: str) -> str:
    """Double-quote an SQL identifier."""
    if not name or "\x00" in name:
        raise StorageError(f"invalid identifier: {name!r}")
    return '"' + name.replace('"', '""') + '"'


def _timed(
    operation: str,
    size: int,
    call: Callable[[], None],
    metrics_callback: MetricsCallback | None,
) -> None:
    start_time = time.time()
    try:
        call()
    except Exception as e:
        raise StorageError(f"{operation} failed: {e}") from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    operation=operation,
                    batch_size=size,
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: str | None = None,
    page_size: int | None = None,
    metrics_callback: MetricsCallback | None = None,
) -> InsertResult:
    """INSERT all ``rows`` with one ``execute_values`` call.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (unquoted)
    columns: column order of every row
    rows: row value sequences
    returning: column to return (``RETURNING "col"``), None for no RETURNING
    page_size: rows per statement; defaults to all rows in one statement
    metrics_callback: receives ``BatchMetrics``; not called for empty ``rows``
    """
    rows_list = [list(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(quote_ident(c) for c in columns)
    sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s"
    if returning:
        sql += f" RETURNING {quote_ident(returning)}"

    returned: list[tuple[Any, ...]] | None = None

    def _run() -> None:
        nonlocal returned
        result = execute_values(
            cursor,
            sql,
            rows_list,
            page_size=page_size or len(rows_list),
            fetch=bool(returning),
        )
        if returning:
            returned = [tuple(r) for r in result]

    _timed("insert", len(rows_list), _run, metrics_callback)
    return InsertResult(inserted_rows=len(rows_list), returned_values=returned)


def batch_update(
    cursor: Any,
    table: str,
    key_column: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    casts: Mapping[str, str] | None = None,
    page_size: int | None = None,
    metrics_callback: MetricsCallback | None = None,
) -> int:
    """UPDATE many rows from one ``VALUES`` list.

    Every row is ``[key, value_for_columns[0], ...]``. ``casts`` maps a column
    to its SQL type; VALUES literals are untyped, so columns compared or
    assigned to non-text types need one.
    Returns the number of rows sent.
    """
    rows_list = [list(r) for r in rows]
    if not rows_list:
        return 0
    if not columns:
        raise StorageError("batch_update requires at least one column")
    casts = casts or {}

    def _value(col: str) -> str:
        ref = f"v.{quote_ident(col)}"
        cast = casts.get(col)
        return f"{ref}::{cast}" if cast else ref

    set_sql = ", ".join(f"{quote_ident(c)} = {_value(c)}" for c in columns)
    alias_cols = ", ".join(quote_ident(c) for c in [key_column, *columns])
    key_ref = _value(key_column)
    sql = (
        f"UPDATE {quote_ident(table)} AS t SET {set_sql} "
        f"FROM (VALUES %s) AS v ({alias_cols}) "
        f"WHERE t.{quote_ident(key_column)} = {key_ref}"
    )

    def _run() -> None:
        execute_values(cursor, sql, rows_list, page_size=page_size or len(rows_list))

    _timed("update", len(rows_list), _run, metrics_callback)
    return len(rows_list)


def select_by_keys(
    cursor: Any,
    table: str,
    key_column: str,
    columns: Sequence[str],
    keys: Sequence[Any],
) -> list[tuple[Any, ...]]:
    """``SELECT columns FROM table WHERE key IN (...)`` as a single query."""
    if not keys:
        return []
    cols_sql = ",".join(quote_ident(c) for c in columns)
    sql = f"SELECT {cols_sql} FROM {quote_ident(table)} WHERE {quote_ident(key_column)} IN %s"
    try:
        cursor.execute(sql, (tuple(keys),))
        return list(cursor.fetchall())
    except Exception as e:
        raise StorageError(f"select by keys failed: {e}") from e


def delete_by_keys(
    cursor: Any,
    table: str,
    key_column: str,
    keys: Sequence[Any],
    where_equals: Mapping[str, Any] | None = None,
) -> int:
    """Delete rows whose key is in ``keys`` (and matching ``where_equals``); returns rowcount."""
    if not keys:
        return 0
    sql = f"DELETE FROM {quote_ident(table)} WHERE {quote_ident(key_column)} = ANY(%s)"
    params: list[Any] = [list(keys)]
    for col, value in (where_equals or {}).items():
        sql += f" AND {quote_ident(col)} = %s"
        params.append(value)
    try:
        cursor.execute(sql, tuple(params))
    except Exception as e:
        raise StorageError(f"delete failed: {e}") from e
    return cursor.rowcount
