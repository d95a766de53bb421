from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Terminal progress bar for a reconciliation run.

The bar counts source rows and moves once per committed chunk, with the
running insert/update counters as its postfix. It is drawn only when stdout is
a terminal; under cron the tracker just counts.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]

BAR_OPTIONS: dict[str, Any] = {
    "unit": "row",
    "leave": True,
    "position": 0,
    "ncols": 80,
    "ascii": True,
}


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    def __init__(self, total_rows: int, *, description: str = "Reconciling") -> None:
        self.total_rows = total_rows
        self.processed_rows = 0
        self.pbar: TqdmType[Any] | None = None
        if is_tty_enabled():
            self.pbar = tqdm(total=total_rows, desc=description, **BAR_OPTIONS)

    def advance(self, rows: int, **postfix: Any) -> None:
        """Count ``rows`` more source rows; ``postfix`` replaces the bar's counters."""
        self.processed_rows += rows
        if self.pbar is None:
            return
        self.pbar.update(rows)
        if postfix:
            self.pbar.set_postfix(**postfix)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
