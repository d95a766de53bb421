from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

import psycopg2

from ..config.loader import ConfigError
from ..models.config_models import DatabaseConfig
from .statements import StorageError

"""PostgreSQL connection bootstrap.

Connection settings, highest priority first:
    1. ``DATABASE_URL`` / ``PGDSN`` environment variables (whole DSN)
    2. ``database.dsn`` from the config file
    3. ``PGHOST`` / ``PGPORT`` / ``PGUSER`` / ``PGPASSWORD`` / ``PGDATABASE``
       over the matching ``database`` fields of the config file

``.env`` is loaded by the CLI before this module resolves anything.
"""

__all__ = [
    "resolve_dsn",
    "db_connection",
]

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the libpq DSN.

    Raises:
        ConfigError: no DSN and no user/database name are available.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn

    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "")
    missing = [name for name, value in (("user", user), ("database", database)) if not value]
    if missing:
        raise ConfigError(f"database credentials not set: {', '.join(missing)}")

    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(db_cfg: DatabaseConfig) -> Iterator[psycopg2.extensions.connection]:  # pragma: no cover (thin wrapper)
    """Open one connection for the lifetime of a run.

    Transactions are explicit: the store commits after every chunk. Anything
    left uncommitted when the block fails is rolled back.
    """
    dsn = resolve_dsn(db_cfg)
    try:
        conn = psycopg2.connect(dsn)
    except psycopg2.Error as e:
        raise StorageError(f"connection failed: {e}") from e
    conn.autocommit = False
    try:
        yield conn
    except BaseException:
        if not conn.closed:
            conn.rollback()
        raise
    finally:
        if not conn.closed:
            conn.close()
