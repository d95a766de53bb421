from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .fields import TableSchema

"""Change classification for one batch of resolved source rows."""

__all__ = [
    "Action",
    "RecordUpdate",
    "BatchPlan",
    "bookkeeping_values",
]


class Action(Enum):
    """Write kind that stamps bookkeeping columns."""
    INSERT = "insert"
    UPDATE = "update"


@dataclass(frozen=True)
class RecordUpdate:
    """Changed fields of one stored record, keyed by natural key."""
    key: str
    changes: dict[str, Any]

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.changes)


@dataclass
class BatchPlan:
    """Inserts, updates and unchanged keys computed for one batch."""
    inserts: list[dict[str, Any]] = field(default_factory=list)
    updates: list[RecordUpdate] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.inserts and not self.updates


def bookkeeping_values(
    schema: TableSchema, action: Action, run_time: datetime, *, manual: bool = False
) -> dict[str, Any]:
    """Bookkeeping columns written for ``action``.

    INSERT sets the manual flag and both timestamps, UPDATE only touches
    ``updated_at``.
    """
    if action is Action.INSERT:
        return {
            schema.manual_field: 1 if manual else 0,
            schema.created_field: run_time,
            schema.updated_field: run_time,
        }
    return {schema.updated_field: run_time}
