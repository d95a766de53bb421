from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from ..models.fields import TableSchema

"""Deletion of records the current source no longer contains.

Runs once after every chunk has been applied: all stored keys minus the keys
observed in this run are deleted in one statement, except rows flagged as
manually created.
"""

__all__ = [
    "find_orphans",
    "reclaim_orphans",
]

logger = logging.getLogger(__name__)


def find_orphans(stored_keys: Iterable[str], observed_keys: Iterable[str]) -> set[str]:
    return set(stored_keys) - set(observed_keys)


def reclaim_orphans(store: Any, schema: TableSchema, observed_keys: Iterable[str]) -> int:
    """Delete non-manual rows whose key was not observed; returns the deleted count."""
    orphans = find_orphans(store.fetch_all_keys(schema), observed_keys)
    if not orphans:
        logger.debug("table=%s no orphan candidates", schema.table_name)
        return 0
    deleted = store.delete_orphans(schema, sorted(orphans))
    kept = len(orphans) - deleted
    logger.debug(
        "table=%s orphan candidates=%d deleted=%d kept_manual=%d",
        schema.table_name,
        len(orphans),
        deleted,
        kept,
    )
    return deleted
