from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..models.changes import Action, BatchPlan, RecordUpdate, bookkeeping_values
from ..models.fields import TableSchema
from .values import values_equal

"""Batch classification and persistence.

For one batch the stored rows are fetched with a single key-list query, every
batch row is classified as insert, update (changed fields only) or unchanged,
and the result is written with one batched statement per operation kind:
updates first, then inserts.
"""

__all__ = [
    "diff_fields",
    "plan_batch",
    "apply_batch",
    "reconcile_batch",
]

logger = logging.getLogger(__name__)


def diff_fields(values: Mapping[str, Any], stored: Mapping[str, Any]) -> dict[str, Any]:
    """Fields of ``values`` whose normalized value differs from ``stored``."""
    return {
        name: value
        for name, value in values.items()
        if not values_equal(value, stored.get(name))
    }


def plan_batch(
    schema: TableSchema,
    batch: Mapping[str, Mapping[str, Any]],
    stored: Mapping[str, Mapping[str, Any]],
) -> BatchPlan:
    """Classify every key of ``batch`` against the ``stored`` rows.

    ``stored`` maps natural key -> stored column values for the keys of the
    batch that already exist.
    """
    plan = BatchPlan()
    for key, values in batch.items():
        existing = stored.get(key)
        if existing is None:
            plan.inserts.append(dict(values))
            continue
        changes = diff_fields(values, existing)
        changes.pop(schema.key_field, None)
        if changes:
            plan.updates.append(RecordUpdate(key=key, changes=changes))
        else:
            plan.unchanged.append(key)
    return plan


def apply_batch(
    store: Any, schema: TableSchema, plan: BatchPlan, run_time: datetime
) -> tuple[int, int]:
    """Write ``plan`` through ``store``; returns ``(inserted, updated)``."""
    if plan.is_noop:
        return 0, 0
    updated = 0
    if plan.updates:
        stamp = bookkeeping_values(schema, Action.UPDATE, run_time)
        updates = [
            RecordUpdate(key=u.key, changes={**u.changes, **stamp}) for u in plan.updates
        ]
        updated = store.update_records(schema, updates)

    inserted = 0
    if plan.inserts:
        stamp = bookkeeping_values(schema, Action.INSERT, run_time)
        columns = [n for n in schema.field_names if any(n in row for row in plan.inserts)]
        columns += list(stamp)
        rows = [[{**row, **stamp}.get(c) for c in columns] for row in plan.inserts]
        inserted = store.insert_records(schema, columns, rows)

    logger.debug(
        "table=%s batch inserted=%d updated=%d unchanged=%d",
        schema.table_name,
        inserted,
        updated,
        len(plan.unchanged),
    )
    return inserted, updated


def reconcile_batch(
    store: Any,
    schema: TableSchema,
    batch: Mapping[str, Mapping[str, Any]],
    run_time: datetime,
) -> BatchPlan:
    """Fetch, classify and apply one batch; returns the applied plan."""
    stored = store.fetch_by_keys(schema, list(batch))
    plan = plan_batch(schema, batch, stored)
    apply_batch(store, schema, plan, run_time)
    return plan
