from __future__ import annotations

from ..models.processing_result import SyncResult

"""SUMMARY line rendering for a finished reconciliation run."""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for tiny values
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: SyncResult) -> str:
    """Render the SUMMARY line of ``result``.

    Format:
    SUMMARY rows={rows} inserted={n} updated={n} unchanged={n} skipped={n}
    deleted={n} dictionary_added={n} chunks={n} elapsed_sec={x} throughput_rps={x}

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = SyncResult(
        ...     source_name="postindex.xlsx", rows_read=1000, inserted=10, updated=5,
        ...     unchanged=985, skipped=0, deleted=1, dictionary_added=3, chunks=1,
        ...     start_time=start, end_time=end, elapsed_seconds=2.0,
        ...     throughput_rows_per_sec=500.0,
        ... )
        >>> render_summary_line(result)  # doctest: +ELLIPSIS
        'SUMMARY rows=1000 inserted=10 updated=5 unchanged=985 skipped=0 deleted=1 ...'
    """
    return (
        f"SUMMARY rows={result.rows_read} "
        f"inserted={result.inserted} "
        f"updated={result.updated} "
        f"unchanged={result.unchanged} "
        f"skipped={result.skipped} "
        f"deleted={result.deleted} "
        f"dictionary_added={result.dictionary_added} "
        f"chunks={result.chunks} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )
