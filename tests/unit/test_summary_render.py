from __future__ import annotations

from datetime import datetime, timezone

from postindex_sync.models.processing_result import SyncResult
from postindex_sync.services.summary import render_summary_line


def _result(**overrides) -> SyncResult:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    values = dict(
        source_name="postindex.xlsx",
        rows_read=4,
        inserted=2,
        updated=1,
        unchanged=1,
        skipped=1,
        deleted=3,
        dictionary_added=5,
        chunks=2,
        start_time=now,
        end_time=now,
        elapsed_seconds=0.84,
        throughput_rows_per_sec=4.7619,
    )
    values.update(overrides)
    return SyncResult(**values)


def test_render_summary_line():
    assert render_summary_line(_result()) == (
        "SUMMARY rows=4 inserted=2 updated=1 unchanged=1 skipped=1 deleted=3 "
        "dictionary_added=5 chunks=2 elapsed_sec=0.84 throughput_rps=4.762"
    )


def test_render_zero_and_integral_numbers():
    line = render_summary_line(_result(elapsed_seconds=0.0, throughput_rows_per_sec=100.0))
    assert line.endswith("elapsed_sec=0 throughput_rps=100")


def test_tiny_values_avoid_scientific_notation():
    line = render_summary_line(_result(elapsed_seconds=0.000012))
    assert "elapsed_sec=0.000012" in line
