from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Every blocking problem met during an import (row validation errors, failed
inserts, payer/batch failures, undo failures) becomes one ErrorRecord. The key
set is fixed; ``row`` is the 1-based source row index, or -1 when the error is
not attributable to a single row (batch-level).
"""

__all__ = [
    "ErrorRecord",
    "BATCH_LEVEL_ROW",
]

BATCH_LEVEL_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source file name being imported
        row: source row index (1-based), -1 for batch-level errors
        error_type: classification in UPPER_SNAKE_CASE
        message: human readable description (validation text or store error)
    """
    timestamp: str
    file: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # dataclass -> dict なので追加キーは混入しない
        return json.dumps(asdict(self), ensure_ascii=False)
