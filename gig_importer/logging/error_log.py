from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import BATCH_LEVEL_ROW, ErrorRecord

"""Error log buffering.

Records are kept in memory during an import and written once, as JSON Lines
with a fixed key set, to ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC). Nothing is
written for a run without errors.
"""

__all__ = [
    "BATCH_LEVEL_ROW",
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    - file path is fixed on first access
    - single-threaded use only (the import is sequential)
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add(self, file: str, row: int, error_type: str, message: str) -> None:
        self.append(ErrorRecord.create(file=file, row=row, error_type=error_type, message=message))

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file; returns its path (None when empty)."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
