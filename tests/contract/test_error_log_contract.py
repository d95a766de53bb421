from __future__ import annotations

import json
import re

from postindex_sync.models.error_record import ErrorRecord

"""Error log line contract: fixed key set, UTC timestamp with Z suffix."""

REQUIRED_KEYS = {"timestamp", "file", "sheet", "row", "error_type", "message"}
TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$")


def test_json_line_keys():
    line = ErrorRecord.create("postindex.xlsx", "postindex", 7, "EMPTY_NATURAL_KEY", "empty natural key").to_json_line()
    data = json.loads(line)
    assert set(data) == REQUIRED_KEYS
    assert TIMESTAMP.match(data["timestamp"])
    assert isinstance(data["row"], int)


def test_run_level_errors_use_row_minus_one():
    data = json.loads(ErrorRecord.create("postindex.xlsx", "", -1, "STORAGE_ERROR", "x").to_json_line())
    assert data["row"] == -1
    assert data["error_type"] == "STORAGE_ERROR"
