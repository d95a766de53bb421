from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Result models for one reconciliation run.

``SyncResult`` aggregates the counters of a finished run and feeds the
SUMMARY line. ``BatchStatsAccumulator`` collects per-chunk timings so slow
chunks show up in the result (average and p95).
"""

__all__ = [
    "BatchStats",
    "SyncResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class BatchStats:
    """Timing statistics over the applied chunks."""
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0


@dataclass(frozen=True)
class SyncResult:
    """Aggregated outcome of one run."""
    source_name: str
    rows_read: int  # non-empty data rows seen in the sheet
    inserted: int
    updated: int
    unchanged: int
    skipped: int  # empty or repeated natural key
    deleted: int  # orphans reclaimed
    dictionary_added: int  # dictionary entries created during the run
    chunks: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float  # rows_read / elapsed
    batch_stats: BatchStats | None = None


class BatchStatsAccumulator:
    """Collects chunk timings and summarizes them as ``BatchStats``."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> BatchStats:
        if not self.batch_times:
            return BatchStats()

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 inclusive quantiles
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method="inclusive"
            )[18]

        return BatchStats(
            total_batches=total_batches,
            avg_batch_seconds=avg_batch_seconds,
            p95_batch_seconds=p95_batch_seconds,
        )
