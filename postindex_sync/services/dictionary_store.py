from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from .values import normalize_value

"""Per-run dictionary cache.

Each dictionary category (``region_ukr``, ``settlement_en``, ...) is loaded in
full once, then grown lazily: a label missing from memory is inserted into
storage and memory and its new id returned. Labels match exactly and
case-sensitively after normalization; ``None`` resolves as the empty label.

The read-then-insert sequence is not safe for concurrent runs against the same
database; runs must be serialized externally.
"""

__all__ = [
    "DictionaryStore",
]

logger = logging.getLogger(__name__)


class DictionaryStore:
    def __init__(self, store: Any) -> None:
        self._store = store
        self._cache: dict[str, dict[str, int]] = {}
        self.added = 0

    def load(self, category: str) -> list[tuple[int, str]]:
        """Bulk read one category into memory; returns ``(id, label)`` ordered by id."""
        entries = sorted(self._store.load_dictionary(category))
        labels: dict[str, int] = {}
        for entry_id, label in entries:
            # keep the lowest id if storage already holds duplicates
            labels.setdefault(label if label is not None else "", entry_id)
        self._cache[category] = labels
        logger.debug("dictionary=%s loaded entries=%d", category, len(entries))
        return entries

    def preload(self, categories: Iterable[str]) -> None:
        for category in categories:
            self.load(category)

    def resolve(self, category: str, label: Any) -> int:
        """Id of ``label`` in ``category``, inserting a new entry on miss."""
        if category not in self._cache:
            self.load(category)
        text = normalize_value(label) or ""
        labels = self._cache[category]
        entry_id = labels.get(text)
        if entry_id is None:
            entry_id = self._store.insert_dictionary_entry(category, text)
            labels[text] = entry_id
            self.added += 1
            logger.debug("dictionary=%s added id=%s label=%r", category, entry_id, text)
        return entry_id
