from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Field descriptors and table schema for the synchronized table.

A ``TableSchema`` is plain, immutable data: one ``FieldDescriptor`` per column.
It drives DDL generation, source header mapping, address projection and the
per-language field subsets used by the query side. The reconciliation engine
receives it at construction time; nothing here is process-global.
"""

__all__ = [
    "StorageType",
    "FieldDescriptor",
    "TableSchema",
    "SchemaDefinitionError",
]


class SchemaDefinitionError(Exception):
    """Raised when a schema definition is internally inconsistent."""


class StorageType(Enum):
    """Storage class of a column.

    - CODE: fixed-width textual code (natural key, postal code)
    - TEXT: free text
    - DICTIONARY_REF: integer foreign key into a dictionary table
    - FLAG: small integer 0/1
    - TIMESTAMP: timestamp with time zone
    """
    CODE = "code"
    TEXT = "text"
    DICTIONARY_REF = "dictionary_ref"
    FLAG = "flag"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class FieldDescriptor:
    """Static metadata for one destination column."""
    name: str
    storage: StorageType
    length: int | None = None  # CODE/TEXT width
    source_label: str | None = None  # exact header text in the workbook
    dictionary: str | None = None  # dictionary category (DICTIONARY_REF only)
    language: str | None = None  # None = language neutral
    address_rank: int | None = None  # position inside the address string

    @property
    def is_dictionary(self) -> bool:
        return self.storage is StorageType.DICTIONARY_REF

    @property
    def sql_type(self) -> str:
        """Column type used in DDL and in casts of batched statements."""
        if self.storage is StorageType.CODE:
            return f"VARCHAR({self.length or 255})"
        if self.storage is StorageType.TEXT:
            return f"VARCHAR({self.length or 255})"
        if self.storage is StorageType.DICTIONARY_REF:
            return "INTEGER"
        if self.storage is StorageType.FLAG:
            return "SMALLINT"
        return "TIMESTAMP WITH TIME ZONE"

    @property
    def pad_width(self) -> int | None:
        """Zero-pad width for numeric codes, None for other columns."""
        if self.storage is StorageType.CODE:
            return self.length
        return None


@dataclass(frozen=True)
class TableSchema:
    """Immutable description of the synchronized table and its bookkeeping."""
    table_name: str
    key_field: str
    fields: tuple[FieldDescriptor, ...]
    manual_field: str = "created_manual"
    created_field: str = "created_at"
    updated_field: str = "updated_at"

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise SchemaDefinitionError(f"duplicate field names in {self.table_name}: {names}")
        if self.key_field not in names:
            raise SchemaDefinitionError(
                f"key field '{self.key_field}' not declared in {self.table_name}"
            )
        for f in self.fields:
            if f.is_dictionary and not f.dictionary:
                raise SchemaDefinitionError(f"dictionary field '{f.name}' lacks a category")
            if f.address_rank is not None and not f.is_dictionary:
                raise SchemaDefinitionError(
                    f"address rank on non-dictionary field '{f.name}'"
                )
        bookkeeping = {self.manual_field, self.created_field, self.updated_field}
        clash = bookkeeping & set(names)
        if clash:
            raise SchemaDefinitionError(f"bookkeeping columns redeclared as data: {sorted(clash)}")

    def field(self, name: str) -> FieldDescriptor:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    @property
    def key_descriptor(self) -> FieldDescriptor:
        return self.field(self.key_field)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def mapped_fields(self) -> list[FieldDescriptor]:
        """Descriptors that can receive a workbook column."""
        return [f for f in self.fields if f.source_label]

    @property
    def dictionary_fields(self) -> list[FieldDescriptor]:
        return [f for f in self.fields if f.is_dictionary]

    @property
    def categories(self) -> list[str]:
        """Dictionary categories in declaration order, without duplicates."""
        seen: list[str] = []
        for f in self.dictionary_fields:
            if f.dictionary not in seen:
                seen.append(f.dictionary)  # type: ignore[arg-type]
        return seen

    @property
    def bookkeeping_descriptors(self) -> list[FieldDescriptor]:
        return [
            FieldDescriptor(self.manual_field, StorageType.FLAG),
            FieldDescriptor(self.created_field, StorageType.TIMESTAMP),
            FieldDescriptor(self.updated_field, StorageType.TIMESTAMP),
        ]

    @property
    def all_descriptors(self) -> list[FieldDescriptor]:
        return list(self.fields) + self.bookkeeping_descriptors

    def fields_for_language(self, language: str) -> list[FieldDescriptor]:
        """Language neutral fields plus the fields tagged with ``language``."""
        return [f for f in self.fields if f.language in (None, language)]

    def sql_types(self) -> dict[str, str]:
        return {f.name: f.sql_type for f in self.all_descriptors}
