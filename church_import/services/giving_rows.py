from __future__ import annotations

from dataclasses import dataclass

from church_import.models.config_models import FieldAliases, ImportConfig
from church_import.models.import_result import Accepted, ImportFailure, Rejected, RowError, RowOutcome
from church_import.models.records import GivingRecord
from church_import.models.row_data import ImportRow
from church_import.models.snapshot import TenantSnapshot
from church_import.reader.headers import HeaderMap
from church_import.reader.values import parse_date, parse_int
from church_import.services.categories import CategoryColumn, build_category_columns, resolve_amounts
from church_import.services.households import (
    HeadOfHouseholdNotFound,
    HeadOfHouseholdPolicy,
    resolve_envelope_member,
)
from church_import.services.sanitize import sanitize_optional

"""Giving import: header checks and per-row validation.

build_giving_context() runs once on the header line and raises ImportFailure
for structural problems. validate_giving_row() is pure: given the context it
turns one ImportRow into Accepted(GivingRecord) or Rejected(RowError), stopping
at the first failing check:

1. an identifier is present (envelope number wins over member id)
2. the date given parses
3. amounts resolve to at least one (category, amount) item
4. the envelope number / member id exists in the church's snapshot
"""

__all__ = [
    "GivingContext",
    "build_giving_context",
    "validate_giving_row",
]

IDENTIFIER_FIELDS = ("envelope_number", "member_id")
RESERVED_FIELDS = ("envelope_number", "member_id", "date_given", "notes")
# Accepted as amount columns even when the church has no active Current category;
# rows then fail individually with "At least one amount is required".
LEGACY_AMOUNT_HEADERS = ("amount", "general fund")


@dataclass(frozen=True)
class GivingContext:
    header: HeaderMap
    fields: FieldAliases
    category_columns: tuple[CategoryColumn, ...]
    snapshot: TenantSnapshot
    policy: HeadOfHouseholdPolicy
    date_formats: tuple[str, ...]
    notes_max_length: int | None = None

    def value(self, row: ImportRow, name: str) -> str | None:
        return self.header.value(row.values, name, self.fields.aliases(name))


def build_giving_context(
    header: HeaderMap,
    snapshot: TenantSnapshot,
    config: ImportConfig,
    policy: HeadOfHouseholdPolicy | str | None = None,
) -> GivingContext:
    """Resolve category columns and check required header columns.

    Raises:
        ImportFailure: no category column (and no legacy Amount / General
            Fund column), no date column, or neither an envelope number nor a
            member id column.
    """
    fields = config.giving.fields
    reserved = {
        idx
        for name in RESERVED_FIELDS
        if (idx := header.find(name, fields.aliases(name))) is not None
    }
    columns = build_category_columns(
        header, snapshot.categories, config.giving.category_aliases, reserved_columns=reserved
    )
    if not columns and not any(header.has(name) for name in LEGACY_AMOUNT_HEADERS):
        available = ", ".join(c.name for c in snapshot.categories)
        raise ImportFailure(
            "Missing required column: at least one category amount column is required. "
            f"Available categories: {available}",
            error_type="MISSING_COLUMN",
        )
    if not header.has("date_given", fields.aliases("date_given")):
        raise ImportFailure(
            "Missing required column: dateGiven (or 'date given' or 'date')",
            error_type="MISSING_COLUMN",
        )
    if not any(header.has(name, fields.aliases(name)) for name in IDENTIFIER_FIELDS):
        raise ImportFailure(
            "Missing required column: envelopeNumber (or 'envelope number') "
            "or memberId (or 'member id')",
            error_type="MISSING_COLUMN",
        )
    return GivingContext(
        header=header,
        fields=fields,
        category_columns=columns,
        snapshot=snapshot,
        policy=HeadOfHouseholdPolicy.parse(policy or config.head_of_household_policy),
        date_formats=config.date_formats,
        notes_max_length=config.giving.notes_max_length,
    )


def _reject(row: ImportRow, error_type: str, reason: str) -> Rejected:
    return Rejected(RowError(line_number=row.line_number, error_type=error_type, reason=reason))


def _resolve_member(row: ImportRow, ctx: GivingContext, envelope: str | None, member_id: str | None) -> str | Rejected:
    snapshot = ctx.snapshot
    if envelope is not None:
        number = parse_int(envelope)
        if number is None:
            return _reject(row, "INVALID_ENVELOPE", "Invalid envelope number")
        group = snapshot.members_for_envelope(number)
        try:
            return resolve_envelope_member(group, snapshot.members, ctx.policy)
        except HeadOfHouseholdNotFound:
            return _reject(row, "MEMBER_NOT_FOUND", f"No members found for envelope number {number}")
    member = snapshot.member(member_id or "")
    if member is None:
        return _reject(row, "MEMBER_NOT_FOUND", f"Member not found with ID {member_id}")
    return member.id


def validate_giving_row(row: ImportRow, ctx: GivingContext) -> RowOutcome[GivingRecord]:
    """Validate one giving row against the prefetched snapshot.

    Args:
        row: tokenized data line
        ctx: per-import context from build_giving_context()

    Returns:
        Accepted(GivingRecord) attributed to the resolved member, or
        Rejected(RowError) for the first failing check
    """
    envelope = ctx.value(row, "envelope_number")
    member_id = ctx.value(row, "member_id")
    if envelope is None and member_id is None:
        return _reject(row, "MISSING_IDENTIFIER", "Must provide either envelopeNumber or memberId")

    date_text = ctx.value(row, "date_given")
    if date_text is None:
        return _reject(row, "MISSING_DATE", "Missing required field (dateGiven)")
    date_given = parse_date(date_text, ctx.date_formats)
    if date_given is None:
        return _reject(row, "INVALID_DATE", "Invalid date format (use YYYY-MM-DD)")

    amounts = resolve_amounts(row.values, ctx.category_columns)
    if amounts.error is not None:
        return _reject(row, "INVALID_AMOUNT", amounts.error)
    if not amounts.items:
        return _reject(row, "MISSING_AMOUNT", "At least one amount is required")

    target = _resolve_member(row, ctx, envelope, member_id)
    if isinstance(target, Rejected):
        return target

    notes = sanitize_optional(ctx.value(row, "notes"))
    if notes and ctx.notes_max_length:
        notes = notes[: ctx.notes_max_length]

    return Accepted(
        GivingRecord(
            line_number=row.line_number,
            member_id=target,
            date_given=date_given,
            notes=notes,
            items=amounts.items,
        )
    )
