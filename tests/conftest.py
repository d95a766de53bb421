# Shared pytest fixtures
from __future__ import annotations

import copy
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from postindex_sync.db.statements import StorageError
from postindex_sync.models.changes import RecordUpdate
from postindex_sync.models.fields import FieldDescriptor, StorageType, TableSchema


class InMemoryStore:
    """Storage double with the ``PostgresStore`` contract.

    Commit/rollback are real: ``rollback`` restores the state of the last
    ``commit``. Dictionary ids come from a counter that is not rolled back,
    like a SERIAL sequence. ``fail_on_insert_call`` makes the n-th (1-based)
    ``insert_records`` call raise ``StorageError``.
    """

    def __init__(self, fail_on_insert_call: int | None = None) -> None:
        self.dictionaries: dict[str, list[tuple[int, str]]] = {}
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._next_id: dict[str, int] = {}
        self._committed: tuple[Any, Any] = ({}, {})
        self.statements: list[tuple[str, int]] = []
        self.dictionary_inserts = 0
        self.insert_calls = 0
        self.commits = 0
        self.rollbacks = 0
        self.fail_on_insert_call = fail_on_insert_call
        self.closed = False

    # transactions
    def commit(self) -> None:
        self.commits += 1
        self._committed = (copy.deepcopy(self.dictionaries), copy.deepcopy(self.tables))

    def rollback(self) -> None:
        self.rollbacks += 1
        dictionaries, tables = self._committed
        self.dictionaries = copy.deepcopy(dictionaries)
        self.tables = copy.deepcopy(tables)

    def close(self) -> None:
        self.closed = True

    # schema
    def ensure_schema(self, schema: TableSchema) -> None:
        for category in schema.categories:
            self.dictionaries.setdefault(category, [])
        self.tables.setdefault(schema.table_name, {})

    def missing_columns(self, schema: TableSchema) -> list[str]:
        if schema.table_name in self.tables:
            return []
        return [d.name for d in schema.all_descriptors]

    # dictionaries
    def load_dictionary(self, category: str) -> list[tuple[int, str]]:
        return list(self.dictionaries.get(category, []))

    def insert_dictionary_entry(self, category: str, label: str) -> int:
        entry_id = self._next_id.get(category, 0) + 1
        self._next_id[category] = entry_id
        self.dictionaries.setdefault(category, []).append((entry_id, label))
        self.dictionary_inserts += 1
        return entry_id

    # main table
    def fetch_by_keys(self, schema: TableSchema, keys: Sequence[str]) -> dict[str, dict[str, Any]]:
        table = self.tables.setdefault(schema.table_name, {})
        self.statements.append(("select", len(keys)))
        return {
            k: {name: table[k].get(name) for name in schema.field_names}
            for k in keys
            if k in table
        }

    def fetch_all_keys(self, schema: TableSchema) -> set[str]:
        return set(self.tables.get(schema.table_name, {}))

    def insert_records(self, schema: TableSchema, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> int:
        self.insert_calls += 1
        if self.fail_on_insert_call == self.insert_calls:
            raise StorageError("insert failed: connection lost")
        table = self.tables.setdefault(schema.table_name, {})
        for row in rows:
            record = dict(zip(columns, row))
            key = record[schema.key_field]
            if key in table:
                raise StorageError(f"insert failed: duplicate key {key}")
            table[key] = record
        self.statements.append(("insert", len(rows)))
        return len(rows)

    def update_records(self, schema: TableSchema, updates: Sequence[RecordUpdate]) -> int:
        table = self.tables[schema.table_name]
        for u in updates:
            table[u.key].update(u.changes)
        self.statements.append(("update", len(updates)))
        return len(updates)

    def delete_orphans(self, schema: TableSchema, keys: Sequence[str]) -> int:
        table = self.tables.get(schema.table_name, {})
        deleted = 0
        for k in keys:
            if k in table and not table[k].get(schema.manual_field):
                del table[k]
                deleted += 1
        self.statements.append(("delete", len(keys)))
        return deleted

    # helpers for assertions
    def put(self, schema: TableSchema, record: dict[str, Any]) -> None:
        """Seed a committed row."""
        row = {schema.manual_field: 0, **record}
        self.tables.setdefault(schema.table_name, {})[row[schema.key_field]] = row
        self.commit()

    def labeled_rows(self, schema: TableSchema) -> dict[str, dict[str, Any]]:
        """Stored rows with dictionary ids replaced by their labels, bookkeeping timestamps dropped."""
        labels = {c: dict(entries) for c, entries in self.dictionaries.items()}
        result: dict[str, dict[str, Any]] = {}
        for key, row in self.tables.get(schema.table_name, {}).items():
            out: dict[str, Any] = {}
            for f in schema.fields:
                value = row.get(f.name)
                if f.is_dictionary and value is not None:
                    value = labels[f.dictionary][value]
                out[f.name] = value
            out[schema.manual_field] = row.get(schema.manual_field)
            result[key] = out
        return result

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.statements if op == operation)


OFFICE_SCHEMA = TableSchema(
    table_name="offices",
    key_field="code",
    fields=(
        FieldDescriptor("code", StorageType.CODE, length=5, source_label="Code"),
        FieldDescriptor(
            "region_id",
            StorageType.DICTIONARY_REF,
            source_label="Region",
            dictionary="region",
            language="ukr",
            address_rank=1,
        ),
        FieldDescriptor(
            "city_id",
            StorageType.DICTIONARY_REF,
            source_label="City",
            dictionary="city",
            language="ukr",
            address_rank=2,
        ),
        FieldDescriptor("name", StorageType.TEXT, length=255, source_label="Name"),
    ),
)


def make_workbook(path: Path, rows: list[list[object]], sheets: dict[str, list[list[object]]] | None = None) -> Path:
    """Write ``rows`` to the first sheet of ``path`` (no pandas header row)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="postindex", header=False, index=False)
        for name, extra in (sheets or {}).items():
            pd.DataFrame(extra).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


@pytest.fixture()
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def office_schema() -> TableSchema:
    return OFFICE_SCHEMA


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/postindex.xlsx
chunk_size: 2
timezone: Europe/Kyiv
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
