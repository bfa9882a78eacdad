from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the structured error log.

Every row error, structural failure and database failure of an import is
mirrored into one ErrorRecord and written as a JSON line by
church_import.logging.error_log.ErrorLogBuffer. row=-1 marks file-level and
batch-level errors where no single row is to blame.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded file name
        kind: import kind ("giving" or "members")
        row: 1-based line number, -1 for file/batch level errors
        error_type: error classification in UPPER_SNAKE_CASE
        message: the user-visible message
    """
    timestamp: str
    file: str
    kind: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, kind: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            kind=kind,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line with exactly the dataclass keys."""
        return json.dumps(asdict(self), ensure_ascii=False)
