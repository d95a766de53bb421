from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Run error log.

Skipped rows and fatal run errors are held in memory while the run goes on
and written once, as JSON Lines, when the CLI finishes. The target is
``<log dir>/errors-YYYYMMDD-HHMMSS.log`` stamped in UTC; a clean run leaves no
file behind.
"""

__all__ = [
    "DEFAULT_LOG_DIR",
    "ErrorRecord",
    "ErrorLogBuffer",
]

DEFAULT_LOG_DIR = Path("./logs")
FILE_STAMP = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Pending ``ErrorRecord`` entries of one run; serial use only."""

    def __init__(self, log_dir: Path | None = None) -> None:
        self.log_dir = log_dir or DEFAULT_LOG_DIR
        self._pending: list[ErrorRecord] = []
        self._target: Path | None = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._pending)

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def _target_path(self) -> Path:
        # one file per run, even when flushed more than once
        if self._target is None:
            stamp = datetime.now(UTC).strftime(FILE_STAMP)
            self._target = self.log_dir / f"errors-{stamp}.log"
        return self._target

    def flush(self) -> Path | None:
        """Append pending records to the run's file and forget them.

        Returns the file written, or ``None`` when nothing was pending. The log
        directory is created only when there is something to write.
        """
        if not self._pending:
            return None
        target = self._target_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = "".join(f"{record.to_json_line()}\n" for record in self._pending)
        with target.open("a", encoding="utf-8") as fh:
            fh.write(payload)
        self._pending.clear()
        return target
