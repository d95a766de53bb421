from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence, Sized
from datetime import datetime
from pathlib import Path
from typing import Any

from ..db.statements import StorageError
from ..excel.reader import SheetData, read_first_sheet
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..logging.init import log_memory
from ..models.fields import TableSchema
from ..models.processing_result import BatchStats, BatchStatsAccumulator, SyncResult
from ..models.run_context import RunContext
from .batch_applier import reconcile_batch
from .dictionary_store import DictionaryStore
from .orphan_reclaimer import reclaim_orphans
from .progress import ProgressTracker
from .row_differ import DEFAULT_CHUNK_SIZE, iter_batches
from .schema_mapper import SchemaMappingError, locate_header, map_header

"""Reconciliation run driver.

One run, strictly sequential:
1. preload every dictionary of the schema
2. locate the header row and map columns to fields
3. stream batches: resolve -> fetch stored rows -> classify -> apply -> commit
4. delete orphans (non-manual rows not observed in this run) -> commit

A storage error rolls back the chunk in flight and aborts the run. Chunks
committed before it stay applied; re-running converges to the same state
because every batch is diffed against the current table contents.
"""

__all__ = [
    "Reconciler",
    "prepare_storage",
    "read_source",
    "sync_file",
]

logger = logging.getLogger(__name__)


def prepare_storage(store: Any, schema: TableSchema, create: bool = True) -> None:
    """Bootstrap the tables (optional) and verify every schema column exists.

    Raises
    ------
    SchemaMappingError: the live table lacks columns of ``schema``
    StorageError: DDL or inspection failed
    """
    if create:
        store.ensure_schema(schema)
        store.commit()
    missing = store.missing_columns(schema)
    if missing:
        raise SchemaMappingError(f"table {schema.table_name} lacks columns: {missing}")


class Reconciler:
    """Synchronizes ``schema.table_name`` against source rows."""

    def __init__(
        self,
        schema: TableSchema,
        store: Any,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timezone: str = "UTC",
        error_log: ErrorLogBuffer | None = None,
        log_memory: bool = False,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.schema = schema
        self.store = store
        self.chunk_size = chunk_size
        self.timezone = timezone
        self.error_log = error_log
        self.log_memory = log_memory

    def report(self, message: str) -> None:
        if self.log_memory:
            log_memory(logger, message)
        else:
            logger.info(message)

    def run(
        self,
        rows: Iterable[Sequence[Any]],
        source_name: str = "",
        sheet_name: str = "",
    ) -> SyncResult:
        """Reconcile the table against ``rows`` (header row included)."""
        context = RunContext.start(self.timezone, source_name)
        dictionaries = DictionaryStore(self.store)
        dictionaries.preload(self.schema.categories)

        total = len(rows) if isinstance(rows, Sized) else 0
        row_iter = iter(rows)
        header_index, header = locate_header(row_iter)
        mapping = map_header(header, self.schema, header_index)
        missing = mapping.missing_fields(self.schema)
        if missing:
            logger.warning("source lacks columns for fields: %s", missing)
        if mapping.unmatched_labels:
            logger.debug("unmapped source columns: %s", list(mapping.unmatched_labels))
        self.report("Synchronization of source columns with table fields was successful")

        def _on_skip(row_number: int, error_type: str, message: str) -> None:
            logger.debug("row=%d skipped: %s", row_number, message)
            if self.error_log is not None:
                self.error_log.append(
                    ErrorRecord.create(
                        file=source_name,
                        sheet=sheet_name,
                        row=row_number,
                        error_type=error_type,
                        message=message,
                    )
                )

        accumulator = BatchStatsAccumulator()
        try:
            with ProgressTracker(max(total - header_index - 1, 0)) as progress:
                batches = iter_batches(
                    row_iter,
                    mapping,
                    self.schema,
                    dictionaries,
                    context,
                    chunk_size=self.chunk_size,
                    on_skip=_on_skip,
                )
                seen_rows = 0
                for batch in batches:
                    chunk_start = time.perf_counter()
                    plan = reconcile_batch(self.store, self.schema, batch, context.started_at)
                    self.store.commit()
                    accumulator.add_batch_time(time.perf_counter() - chunk_start)

                    context.chunks += 1
                    context.inserted += len(plan.inserts)
                    context.updated += len(plan.updates)
                    context.unchanged += len(plan.unchanged)
                    progress.advance(
                        context.rows_read - seen_rows, ins=context.inserted, upd=context.updated
                    )
                    seen_rows = context.rows_read
                    logger.debug(
                        "chunk=%d keys=%d inserted=%d updated=%d unchanged=%d",
                        context.chunks,
                        len(batch),
                        len(plan.inserts),
                        len(plan.updates),
                        len(plan.unchanged),
                    )

            context.deleted = reclaim_orphans(self.store, self.schema, context.observed_keys)
            self.store.commit()
        except StorageError:
            self._rollback_quietly()
            raise

        self.report("Update of table data was successful")
        logger.info(
            f"Inserts: {context.inserted} Updates: {context.updated} "
            f"Unchanged: {context.unchanged} Skips: {context.skipped} Deletes: {context.deleted}"
        )
        stats = accumulator.get_stats()
        logger.debug(
            "chunks=%d avg_chunk_sec=%.4f p95_chunk_sec=%.4f",
            stats.total_batches,
            stats.avg_batch_seconds,
            stats.p95_batch_seconds,
        )
        return self._result(context, dictionaries, stats)

    def _rollback_quietly(self) -> None:
        try:
            self.store.rollback()
        except StorageError as e:
            logger.error(f"rollback failed: {e}")

    def _result(
        self,
        context: RunContext,
        dictionaries: DictionaryStore,
        stats: BatchStats,
    ) -> SyncResult:
        end_time = datetime.now(context.started_at.tzinfo)
        elapsed = (end_time - context.started_at).total_seconds()
        throughput = context.rows_read / elapsed if elapsed > 0 else 0.0
        return SyncResult(
            source_name=context.source_name,
            rows_read=context.rows_read,
            inserted=context.inserted,
            updated=context.updated,
            unchanged=context.unchanged,
            skipped=context.skipped,
            deleted=context.deleted,
            dictionary_added=dictionaries.added,
            chunks=context.chunks,
            start_time=context.started_at,
            end_time=end_time,
            elapsed_seconds=elapsed,
            throughput_rows_per_sec=throughput,
            batch_stats=stats,
        )


def read_source(path: Path, schema: TableSchema) -> SheetData:
    """Read the first sheet of ``path`` and check its header maps the natural key.

    Nothing is written to storage here.

    Raises
    ------
    SourceError: the workbook is missing or unreadable
    SchemaMappingError: no header row, or no column for the natural key
    """
    sheet = read_first_sheet(path)
    header_index, header = locate_header(iter(sheet.rows))
    map_header(header, schema, header_index)
    return sheet


def sync_file(
    path: Path,
    schema: TableSchema,
    store: Any,
    **options: Any,
) -> SyncResult:
    """Read the first sheet of ``path`` and reconcile ``schema`` against it."""
    sheet = read_source(path, schema)
    reconciler = Reconciler(schema, store, **options)
    reconciler.report(f"File {path.name} loaded successfully ({len(sheet)} rows)")
    return reconciler.run(sheet.rows, source_name=path.name, sheet_name=sheet.sheet_name)
