from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from ..db.statements import StorageError, quote_ident
from ..models.changes import Action, bookkeeping_values
from ..models.config_models import SyncConfig
from ..models.fields import TableSchema
from .address_projection import (
    ADDRESS_COLUMN,
    DEFAULT_SEPARATOR,
    MAIN_ALIAS,
    address_search_columns,
    build_select,
)
from .dictionary_store import DictionaryStore
from .transliteration import english_category, transliterate
from .values import normalize_field_value

"""Query-side record operations.

Paginated listing with address search, lookup and deletion by natural key,
and manual insertion. Manually inserted rows carry ``created_manual = 1`` and
are never removed by reconciliation.
"""

__all__ = [
    "RecordError",
    "RecordPage",
    "RecordService",
]

logger = logging.getLogger(__name__)


class RecordError(Exception):
    """Invalid input for a record operation."""


@dataclass(frozen=True)
class RecordPage:
    data: list[dict[str, Any]]
    total_pages: int
    current_page: int
    total_records: int


class RecordService:
    def __init__(
        self,
        schema: TableSchema,
        store: Any,
        *,
        separator: str = DEFAULT_SEPARATOR,
        timezone: str = "UTC",
    ) -> None:
        self.schema = schema
        self.store = store
        self.separator = separator
        self.timezone = timezone

    @classmethod
    def from_config(cls, schema: TableSchema, store: Any, cfg: SyncConfig) -> RecordService:
        return cls(schema, store, separator=cfg.address_separator, timezone=cfg.timezone)

    def list_records(
        self,
        page: int = 1,
        limit: int = 50,
        address: str | None = None,
        language: str = "ukr",
    ) -> RecordPage:
        """One page of records.

        Without ``address`` the page is ordered by natural key; with it, rows
        whose address parts contain the text are returned ordered by address.
        A page past the end is clamped to the last page.
        """
        if limit < 1:
            raise RecordError(f"limit must be >= 1, got {limit}")
        page = max(page, 1)

        base_sql = build_select(self.schema, language, self.separator)
        params: dict[str, Any] = {}
        if address:
            columns = address_search_columns(self.schema, language)
            if not columns:
                raise RecordError(f"no address fields for language '{language}'")
            conditions = " OR ".join(f"{c} LIKE %(address)s" for c in columns)
            base_sql += f" WHERE ({conditions})"
            params["address"] = f"%{address}%"
            order_by = quote_ident(ADDRESS_COLUMN)
        else:
            order_by = quote_ident(self.schema.key_field)

        total = int(self.store.fetch_value(f"SELECT COUNT(*) FROM ({base_sql}) AS tmp", params) or 0)
        total_pages = math.ceil(total / limit)
        offset = (page - 1) * limit
        if total_pages < page:
            offset = 0 if total_pages == 0 else (total_pages - 1) * limit

        data = self.store.fetch_all(
            f"SELECT * FROM ({base_sql}) AS tmp ORDER BY {order_by} LIMIT %(limit)s OFFSET %(offset)s",
            {**params, "limit": limit, "offset": offset},
        )
        return RecordPage(
            data=data,
            total_pages=total_pages,
            current_page=offset // limit + 1,
            total_records=total,
        )

    def get_record(self, key: Any, language: str = "ukr") -> dict[str, Any] | None:
        norm = normalize_field_value(self.schema.key_descriptor, key)
        if norm is None:
            return None
        sql = (
            f"{build_select(self.schema, language, self.separator)} "
            f"WHERE {quote_ident(MAIN_ALIAS)}.{quote_ident(self.schema.key_field)} = %(key)s"
        )
        rows = self.store.fetch_all(sql, {"key": norm})
        return rows[0] if rows else None

    def delete_record(self, key: Any) -> bool:
        norm = normalize_field_value(self.schema.key_descriptor, key)
        if norm is None:
            return False
        try:
            deleted = self.store.execute(
                f"DELETE FROM {quote_ident(self.schema.table_name)} "
                f"WHERE {quote_ident(self.schema.key_field)} = %(key)s",
                {"key": norm},
            )
            self.store.commit()
        except StorageError:
            self._rollback_quietly()
            raise
        return deleted > 0

    def insert_manual(self, values: Mapping[str, Any]) -> str:
        """Insert one manually entered record; returns its natural key.

        ``values`` keys are field names, or dictionary category names for
        dictionary-backed fields (``region_ukr`` for ``region_ukr_id``). An
        ``_en`` category left out takes the transliteration of its ``_ukr``
        label; any other dictionary field left out resolves to the empty label
        so the row never carries an unresolved reference.

        A storage failure rolls back every write of the call, dictionary
        entries included.
        """
        by_category = {f.dictionary: f for f in self.schema.dictionary_fields}
        names = set(self.schema.field_names)
        key = normalize_field_value(self.schema.key_descriptor, values.get(self.schema.key_field))
        if key is None:
            raise RecordError(f"'{self.schema.key_field}' is required")

        labels: dict[str, Any] = {}
        scalars: dict[str, Any] = {}
        for name, value in values.items():
            if name in by_category:
                labels[name] = value
            elif name in names:
                descriptor = self.schema.field(name)
                if descriptor.is_dictionary:
                    raise RecordError(
                        f"'{name}' is a dictionary reference; pass '{descriptor.dictionary}' instead"
                    )
                scalars[name] = normalize_field_value(descriptor, value)
            else:
                raise RecordError(f"unknown field '{name}'")
        for category, value in list(labels.items()):
            counterpart = english_category(category)
            if counterpart in by_category and counterpart not in labels:
                labels[counterpart] = transliterate(value)

        try:
            dictionaries = DictionaryStore(self.store)
            row: dict[str, Any] = dict(scalars)
            for descriptor in self.schema.dictionary_fields:
                row[descriptor.name] = dictionaries.resolve(
                    descriptor.dictionary,  # type: ignore[arg-type]
                    labels.get(descriptor.dictionary, ""),  # type: ignore[arg-type]
                )
            row[self.schema.key_field] = key

            run_time = datetime.now(ZoneInfo(self.timezone))
            row.update(bookkeeping_values(self.schema, Action.INSERT, run_time, manual=True))
            columns = [c for c in [*self.schema.field_names, *self._bookkeeping_names()] if c in row]
            self.store.insert_records(self.schema, columns, [[row[c] for c in columns]])
            self.store.commit()
        except StorageError:
            self._rollback_quietly()
            raise
        logger.info(f"manual record {key} inserted")
        return key

    def _rollback_quietly(self) -> None:
        try:
            self.store.rollback()
        except StorageError as e:
            logger.error(f"rollback failed: {e}")

    def _bookkeeping_names(self) -> list[str]:
        return [d.name for d in self.schema.bookkeeping_descriptors]
