from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar, Union

"""Import outcome models.

Row validators return a RowOutcome (Accepted or Rejected) instead of raising,
so the row loop collects results and only the committer touches storage.
ImportResult is the accumulator returned to callers once per import; it maps
onto the JSON payload {success, failed, errors}.
"""

__all__ = [
    "Accepted",
    "ImportFailure",
    "ImportResult",
    "ImportStatus",
    "Rejected",
    "RowError",
    "RowOutcome",
]

T = TypeVar("T")


class ImportStatus(Enum):
    """Lifecycle of one import run.

    IDLE -> PARSING_HEADER -> VALIDATING -> COMMITTING -> (DONE | FATAL)

    FATAL is reached only from structural failures before any row is
    validated; database failures during COMMITTING still end in DONE with the
    batch counted as failed.
    """
    IDLE = "idle"
    PARSING_HEADER = "parsing_header"
    VALIDATING = "validating"
    COMMITTING = "committing"
    DONE = "done"
    FATAL = "fatal"


@dataclass(frozen=True)
class RowError:
    line_number: int
    error_type: str  # UPPER_SNAKE
    reason: str

    @property
    def message(self) -> str:
        return f"Row {self.line_number}: {self.reason}"


@dataclass(frozen=True)
class Accepted(Generic[T]):
    value: T


@dataclass(frozen=True)
class Rejected:
    error: RowError


RowOutcome = Union[Accepted[T], Rejected]


class ImportFailure(Exception):
    """Structural failure: aborts the import before any row is validated."""

    def __init__(self, message: str, *, status_code: int = 400, error_type: str = "STRUCTURAL") -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


@dataclass
class ImportResult:
    """Counters and ordered messages for one import, built incrementally."""
    kind: str
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    status: ImportStatus = ImportStatus.IDLE
    start_time: datetime | None = None
    end_time: datetime | None = None

    def add_row_error(self, error: RowError) -> None:
        self.failed += 1
        self.errors.append(error.message)

    def add_batch_failure(self, batch_size: int, message: str) -> None:
        self.failed += batch_size
        self.errors.append(message)

    def add_successes(self, count: int) -> None:
        self.success += count

    @property
    def processed_rows(self) -> int:
        return self.success + self.failed

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def to_payload(self) -> dict[str, Any]:
        return {"success": self.success, "failed": self.failed, "errors": list(self.errors)}
