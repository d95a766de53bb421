"""Domain models for the post index synchronizer.

Field descriptors and the table schema, per-run context, change plans and
result/summary models.
"""

from .changes import Action, BatchPlan, RecordUpdate, bookkeeping_values
from .config_models import DatabaseConfig, SyncConfig
from .fields import FieldDescriptor, SchemaDefinitionError, StorageType, TableSchema
from .post_index import POST_INFO_SCHEMA
from .processing_result import BatchStats, SyncResult
from .run_context import RunContext

__all__ = [
    # Schema
    "FieldDescriptor",
    "StorageType",
    "TableSchema",
    "SchemaDefinitionError",
    "POST_INFO_SCHEMA",
    # Configuration models
    "DatabaseConfig",
    "SyncConfig",
    # Processing models
    "Action",
    "BatchPlan",
    "RecordUpdate",
    "bookkeeping_values",
    "RunContext",
    "BatchStats",
    "SyncResult",
]
