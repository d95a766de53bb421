from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.connection import db_connection
from ..db.statements import BatchMetrics, StorageError
from ..db.store import PostgresStore
from ..excel.reader import SourceError, read_first_sheet
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.config_models import SyncConfig
from ..models.post_index import POST_INFO_SCHEMA
from ..services.reconciler import Reconciler, prepare_storage, read_source
from ..services.schema_mapper import SchemaMappingError, locate_header, map_header
from ..services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- load ``.env`` (overrides the process environment) and the YAML config
- check the source workbook exists, read it and map its header
- open the database, bootstrap/verify the tables
- reconcile, flush the error log, print the SUMMARY line

Every fatal error is reported as one ERROR line and exits with code 1.
"""

__all__ = [
    "EXIT_SUCCESS",
    "EXIT_FATAL",
    "main",
]

EXIT_SUCCESS = 0
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load ``.env`` so connection settings in it win over the environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Synchronize post_info with the post index workbook")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--file", type=Path, default=None, help="Workbook path (overrides source_file)")
    p.add_argument("--chunk-size", type=int, default=None, help="Source rows per batch")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--inspect-data",
        action="store_true",
        help="Print the detected column mapping and first rows, then exit",
    )
    return p.parse_args(argv)


def _inspect_data(path: Path) -> int:
    sheet = read_first_sheet(path)
    print(f"FILE: {path.name} SHEET: {sheet.sheet_name} rows={len(sheet)}")
    rows = iter(sheet.rows)
    header_index, header = locate_header(rows)
    mapping = map_header(header, POST_INFO_SCHEMA, header_index)
    print(f"  header_row={header_index + 1} data_start_row={mapping.data_start_row}")
    for position, field in sorted(mapping.columns.items()):
        print(f"  column {position} -> {field}")
    if mapping.unmatched_labels:
        print(f"  unmatched={list(mapping.unmatched_labels)}")
    missing = mapping.missing_fields(POST_INFO_SCHEMA)
    if missing:
        print(f"  missing_fields={missing}")
    for cells in list(rows)[:3]:
        # datetimes print as ISO-8601
        print("    sample_row=", [c.isoformat() if hasattr(c, "isoformat") else c for c in cells])
    return EXIT_SUCCESS


def _log_batch_metrics(metrics: BatchMetrics) -> None:
    logging.getLogger(__name__).debug(
        f"{metrics.operation} rows={metrics.batch_size} elapsed_sec={metrics.elapsed_seconds:.4f}"
    )


def _run(cfg: SyncConfig, source: Path, error_log: ErrorLogBuffer, logger: logging.Logger) -> int:
    sheet = read_source(source, POST_INFO_SCHEMA)

    with db_connection(cfg.database) as conn:
        store = PostgresStore(conn, metrics_callback=_log_batch_metrics)
        logger.info("Connected successfully")
        prepare_storage(store, POST_INFO_SCHEMA, create=cfg.create_schema)
        logger.info("Table checked successfully")

        reconciler = Reconciler(
            POST_INFO_SCHEMA,
            store,
            chunk_size=cfg.chunk_size,
            timezone=cfg.timezone,
            error_log=error_log,
            log_memory=cfg.log_memory,
        )
        reconciler.report(f"File {source.name} loaded successfully ({len(sheet)} rows)")
        result = reconciler.run(sheet.rows, source_name=source.name, sheet_name=sheet.sheet_name)
        store.close()

    summary_line = render_summary_line(result)
    log_summary(summary_line[len("SUMMARY "):])
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only an explicit None reads sys.argv, so main([]) in tests ignores pytest's own args
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.chunk_size is not None:
        if args.chunk_size < 1:
            logger.error(f"config: chunk size must be >= 1, got {args.chunk_size}")
            return EXIT_FATAL
        cfg = replace(cfg, chunk_size=args.chunk_size)

    source = args.file or Path(cfg.source_file)
    if not source.exists():
        logger.error(f"source: file {source} not found")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(Path(cfg.error_log_dir))
    try:
        if args.inspect_data:
            return _inspect_data(source)
        logger.info(f"Processing file: {source}")
        return _run(cfg, source, error_log, logger)
    except (ConfigError, SchemaMappingError, SourceError, StorageError) as e:
        kind = {
            ConfigError: "CONFIG_ERROR",
            SourceError: "SOURCE_ERROR",
            StorageError: "STORAGE_ERROR",
        }.get(type(e), "SCHEMA_MAPPING_ERROR")
        logger.error(f"{kind.lower()}: {e}")
        error_log.append(ErrorRecord.create(source.name, "", -1, kind, str(e)))
        return EXIT_FATAL
    finally:
        try:
            path = error_log.flush()
        except OSError as e:
            logger.warning(f"failed writing error log: {e}")
        else:
            if path is not None:
                logger.info(f"error log written: {path}")
