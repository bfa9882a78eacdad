from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from ..db.store import TenantStore, load_snapshot
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.error_record import ErrorRecord
from ..models.import_result import (
    Accepted,
    ImportFailure,
    ImportResult,
    ImportStatus,
    Rejected,
    RowError,
    RowOutcome,
)
from ..models.records import GivingRecord, MemberDraft
from ..models.row_data import ImportRow
from ..reader.headers import HeaderMap
from ..reader.tokenizer import parse_csv_line, split_lines
from .committer import CommitOutcome, commit_giving, commit_members
from .giving_rows import build_giving_context, validate_giving_row
from .households import HeadOfHouseholdPolicy
from .member_rows import MemberRowState, build_member_context, validate_member_row
from .progress import ProgressTracker

logger = logging.getLogger(__name__)

"""Import orchestration.

One call processes one uploaded CSV text for one church:

    IDLE -> PARSING_HEADER -> VALIDATING -> COMMITTING -> (DONE | FATAL)

Structural problems raise ImportFailure before any row is looked at. Every
data row then produces exactly one success or one failure; accepted rows are
written by the committer in a single transaction at the end.
"""

__all__ = [
    "KINDS",
    "run_giving_import",
    "run_import_request",
    "run_member_import",
    "summarize_errors",
]

KINDS = ("giving", "members")


def _split_upload(text: str | None) -> tuple[list[str], list[ImportRow]]:
    if text is None:
        raise ImportFailure("No file provided", error_type="NO_FILE")
    lines = split_lines(text)
    if len(lines) < 2:
        raise ImportFailure(
            "CSV file must have at least a header row and one data row",
            error_type="EMPTY_FILE",
        )
    header = parse_csv_line(lines[0][1])
    rows = [ImportRow.from_fields(line_no, parse_csv_line(line)) for line_no, line in lines[1:]]
    return header, rows


class _ImportRun:
    """Bookkeeping shared by both import kinds: result, status and error log."""

    def __init__(self, kind: str, file_name: str, error_log: ErrorLogBuffer | None) -> None:
        self.kind = kind
        self.file_name = file_name
        self.error_log = error_log
        self.result = ImportResult(kind=kind, start_time=datetime.now(UTC))

    def enter(self, status: ImportStatus) -> None:
        logger.debug("%s import %s: %s -> %s", self.kind, self.file_name, self.result.status.value, status.value)
        self.result.status = status

    def record_error(self, row: int, error_type: str, message: str) -> None:
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.create(
                    file=self.file_name, kind=self.kind, row=row, error_type=error_type, message=message
                )
            )

    def reject(self, error: RowError) -> None:
        self.result.add_row_error(error)
        self.record_error(error.line_number, error.error_type, error.message)

    def fatal(self, failure: ImportFailure) -> None:
        self.enter(ImportStatus.FATAL)
        self.result.end_time = datetime.now(UTC)
        logger.error("%s import %s aborted: %s", self.kind, self.file_name, failure.message)
        self.record_error(-1, failure.error_type, failure.message)

    def finish(self, outcome: CommitOutcome) -> ImportResult:
        if outcome.ok:
            self.result.add_successes(outcome.inserted)
        else:
            self.result.add_batch_failure(outcome.attempted, outcome.error or "Database error")
            self.record_error(-1, "DB_ERROR", outcome.error or "Database error")
        self.enter(ImportStatus.DONE)
        self.result.end_time = datetime.now(UTC)
        logger.info(
            "%s import %s done: success=%d failed=%d",
            self.kind,
            self.file_name,
            self.result.success,
            self.result.failed,
        )
        return self.result


def _guarded(row: ImportRow, validate: Callable[[], Any]) -> Any:
    try:
        return validate()
    except Exception as e:
        logger.exception("unexpected error on row %d", row.line_number)
        return Rejected(RowError(line_number=row.line_number, error_type="UNEXPECTED_ERROR", reason=str(e)))


def run_giving_import(
    text: str | None,
    store: TenantStore,
    config: ImportConfig,
    *,
    file_name: str = "upload.csv",
    policy: HeadOfHouseholdPolicy | str | None = None,
    dry_run: bool = False,
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Validate and insert giving records from one CSV upload.

    Raises:
        ImportFailure: no file, fewer than two lines, or missing required
            header columns. Nothing is written in that case.
    """
    run = _ImportRun("giving", file_name, error_log)
    try:
        run.enter(ImportStatus.PARSING_HEADER)
        header_fields, rows = _split_upload(text)
        snapshot = load_snapshot(store)
        ctx = build_giving_context(HeaderMap.from_header(header_fields), snapshot, config, policy)
    except ImportFailure as e:
        run.fatal(e)
        raise
    logger.info(
        "giving import %s: %d rows, %d category columns, policy=%s",
        file_name,
        len(rows),
        len(ctx.category_columns),
        ctx.policy.value,
    )

    run.enter(ImportStatus.VALIDATING)
    accepted: list[GivingRecord] = []
    with ProgressTracker(len(rows), description="Validating giving") as progress:
        for row in rows:
            outcome: RowOutcome[GivingRecord] = _guarded(row, lambda: validate_giving_row(row, ctx))
            if isinstance(outcome, Accepted):
                accepted.append(outcome.value)
            else:
                run.reject(outcome.error)
            progress.advance(isinstance(outcome, Accepted))

    run.enter(ImportStatus.COMMITTING)
    return run.finish(commit_giving(store, accepted, dry_run=dry_run))


def run_member_import(
    text: str | None,
    store: TenantStore,
    config: ImportConfig,
    *,
    file_name: str = "upload.csv",
    dry_run: bool = False,
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Validate and insert members (and new households) from one CSV upload."""
    run = _ImportRun("members", file_name, error_log)
    try:
        run.enter(ImportStatus.PARSING_HEADER)
        header_fields, rows = _split_upload(text)
        snapshot = load_snapshot(store, for_members=True)
        ctx = build_member_context(HeaderMap.from_header(header_fields), snapshot, config)
    except ImportFailure as e:
        run.fatal(e)
        raise
    logger.info("member import %s: %d rows", file_name, len(rows))

    run.enter(ImportStatus.VALIDATING)
    accepted: list[MemberDraft] = []
    state = MemberRowState()
    with ProgressTracker(len(rows), description="Validating members") as progress:
        for row in rows:
            result = _guarded(row, lambda: validate_member_row(row, ctx, state))
            if isinstance(result, Rejected):
                outcome: RowOutcome[MemberDraft] = result
            else:
                outcome, state = result
            if isinstance(outcome, Accepted):
                accepted.append(outcome.value)
            else:
                run.reject(outcome.error)
            progress.advance(isinstance(outcome, Accepted))

    if len(state.groups):
        logger.debug("household groups seen: %s", ", ".join(state.groups))
    run.enter(ImportStatus.COMMITTING)
    return run.finish(commit_members(store, accepted, dry_run=dry_run))


def run_import_request(
    kind: str,
    text: str | None,
    store: TenantStore,
    config: ImportConfig,
    **options: Any,
) -> tuple[int, dict[str, Any]]:
    """Run one import and map it onto an HTTP-style (status, payload) pair.

    Row and database failures still return 200 with the counters; only
    structural failures return 400 with {"error": ...}.
    """
    if kind not in KINDS:
        raise ValueError(f"unknown import kind: {kind!r} (expected one of {', '.join(KINDS)})")
    try:
        if kind == "giving":
            result = run_giving_import(text, store, config, **options)
        else:
            options.pop("policy", None)
            result = run_member_import(text, store, config, **options)
    except ImportFailure as e:
        return e.status_code, e.to_payload()
    return 200, result.to_payload()


def summarize_errors(errors: Sequence[str], limit: int = 10) -> list[str]:
    """First `limit` messages plus a count of the rest, for console output."""
    if len(errors) <= limit:
        return list(errors)
    return [*errors[:limit], f"... and {len(errors) - limit} more"]
