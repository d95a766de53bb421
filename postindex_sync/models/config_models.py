from __future__ import annotations

from dataclasses import dataclass

"""Config dataclasses for the post index synchronizer.

Built by ``postindex_sync.config.loader.load_config`` from the validated YAML
file. Environment variables take precedence over the ``database`` section when
the connection is opened (see ``postindex_sync.db.connection``).
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback values."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class SyncConfig:
    """Root configuration of one synchronizer deployment."""
    source_file: str  # workbook to reconcile (first sheet is used)
    database: DatabaseConfig
    chunk_size: int = 3000  # source rows per batch
    timezone: str = "UTC"  # zone of created_at / updated_at
    address_separator: str = ", "
    log_memory: bool = False  # log RSS snapshots between phases
    create_schema: bool = True  # run CREATE TABLE IF NOT EXISTS before syncing
    error_log_dir: str = "./logs"
