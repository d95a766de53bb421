from __future__ import annotations

import logging
from typing import Any

from ..models.fields import TableSchema
from .statements import StorageError, quote_ident

"""DDL for the synchronized table and its dictionaries.

Dictionary tables are created before the main table so the foreign keys of
the dictionary-backed columns can reference them.
"""

__all__ = [
    "dictionary_table_ddl",
    "main_table_ddl",
    "schema_ddl",
    "ensure_schema",
    "existing_columns",
    "missing_columns",
]

logger = logging.getLogger(__name__)


def dictionary_table_ddl(category: str) -> str:
    return (
        f"CREATE TABLE IF NOT EXISTS {quote_ident(category)} ("
        f"{quote_ident('id')} SERIAL PRIMARY KEY, "
        f"{quote_ident('value')} VARCHAR(255) NOT NULL DEFAULT '')"
    )


def main_table_ddl(schema: TableSchema) -> str:
    parts: list[str] = []
    for f in schema.fields:
        col = f"{quote_ident(f.name)} {f.sql_type}"
        if f.name == schema.key_field:
            col += " PRIMARY KEY NOT NULL"
        elif f.is_dictionary:
            col += f" REFERENCES {quote_ident(f.dictionary)} ({quote_ident('id')})"  # type: ignore[arg-type]
        parts.append(col)
    parts.append(f"{quote_ident(schema.manual_field)} SMALLINT NOT NULL DEFAULT 0")
    parts.append(f"{quote_ident(schema.created_field)} TIMESTAMP WITH TIME ZONE")
    parts.append(f"{quote_ident(schema.updated_field)} TIMESTAMP WITH TIME ZONE")
    return f"CREATE TABLE IF NOT EXISTS {quote_ident(schema.table_name)} ({', '.join(parts)})"


def schema_ddl(schema: TableSchema) -> list[str]:
    """All statements needed to bootstrap ``schema``, dictionaries first."""
    return [dictionary_table_ddl(c) for c in schema.categories] + [main_table_ddl(schema)]


def ensure_schema(cursor: Any, schema: TableSchema) -> None:
    try:
        for statement in schema_ddl(schema):
            cursor.execute(statement)
    except Exception as e:
        raise StorageError(f"schema bootstrap failed for {schema.table_name}: {e}") from e
    logger.debug("table=%s schema ensured (%d dictionaries)", schema.table_name, len(schema.categories))


def existing_columns(cursor: Any, table: str) -> set[str]:
    try:
        cursor.execute(
            "SELECT column_name FROM information_schema.columns WHERE table_name = %s",
            (table,),
        )
        return {r[0] for r in cursor.fetchall()}
    except Exception as e:
        raise StorageError(f"failed to inspect table columns table={table}: {e}") from e


def missing_columns(cursor: Any, schema: TableSchema) -> list[str]:
    """Columns of ``schema`` absent from the live table (all of them if the table is missing)."""
    existing = existing_columns(cursor, schema.table_name)
    return [f.name for f in schema.all_descriptors if f.name not in existing]
