from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

"""Per-run state of one reconciliation.

The context lives for exactly one invocation and is never shared: counters,
the run timestamp used for bookkeeping columns, and the natural keys observed
in the source (consumed by the orphan reclaimer).
"""

__all__ = [
    "RunContext",
]


@dataclass
class RunContext:
    started_at: datetime
    source_name: str = ""
    rows_read: int = 0  # non-empty data rows
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    deleted: int = 0
    chunks: int = 0
    observed_keys: set[str] = field(default_factory=set)

    @classmethod
    def start(cls, timezone: str = "UTC", source_name: str = "") -> RunContext:
        return cls(started_at=datetime.now(ZoneInfo(timezone)), source_name=source_name)

    def observe(self, key: str) -> None:
        self.observed_keys.add(key)
