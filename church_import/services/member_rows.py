from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date

from church_import.models.config_models import EnumConfig, FieldAliases, ImportConfig
from church_import.models.import_result import Accepted, ImportFailure, Rejected, RowError, RowOutcome
from church_import.models.records import HouseholdDraft, HouseholdRef, MemberDraft
from church_import.models.row_data import ImportRow
from church_import.models.snapshot import TenantSnapshot
from church_import.reader.headers import HeaderMap
from church_import.reader.values import normalize_enum, parse_bool, parse_date, parse_int
from church_import.services.household_groups import HouseholdGroupTracker
from church_import.services.sanitize import sanitize_email, sanitize_optional, sanitize_text

"""Member import: header checks and per-row validation.

validate_member_row() takes the row, the read-only MemberContext and the
MemberRowState accumulated so far (household group tokens, emails accepted
earlier in the file) and returns the outcome together with the next state.
It performs no I/O; households it decides to create are returned as
HouseholdDraft references and inserted by the committer.
"""

__all__ = [
    "MemberContext",
    "MemberRowState",
    "build_member_context",
    "validate_member_row",
]

MEMBER_DATE_FIELDS = (
    "date_of_birth",
    "baptism_date",
    "confirmation_date",
    "date_received",
    "date_removed",
    "deceased_date",
)
HOUSEHOLD_DATE_FIELDS = ("alternate_address_begin", "alternate_address_end")
DEFAULT_HOUSEHOLD_NAME = "New Household"


@dataclass(frozen=True)
class MemberContext:
    header: HeaderMap
    fields: FieldAliases
    enums: EnumConfig
    snapshot: TenantSnapshot
    date_formats: tuple[str, ...]

    def value(self, row: ImportRow, name: str) -> str | None:
        return self.header.value(row.values, name, self.fields.aliases(name))

    def text(self, row: ImportRow, name: str) -> str | None:
        return sanitize_optional(self.value(row, name))

    def enum(self, row: ImportRow, name: str) -> str | None:
        return normalize_enum(self.value(row, name), self.enums.allowed(name), self.enums.default(name))


@dataclass(frozen=True)
class MemberRowState:
    groups: HouseholdGroupTracker = field(default_factory=HouseholdGroupTracker)
    emails: frozenset[str] = frozenset()


def build_member_context(header: HeaderMap, snapshot: TenantSnapshot, config: ImportConfig) -> MemberContext:
    """Raises ImportFailure when a required name column is missing."""
    fields = config.members.fields
    missing = header.missing((name, fields.aliases(name)) for name in config.members.required)
    if missing:
        labels = ", ".join(name.replace("_", " ") for name in missing)
        raise ImportFailure(f"Missing required columns: {labels}", error_type="MISSING_COLUMN")
    return MemberContext(
        header=header,
        fields=fields,
        enums=config.enums,
        snapshot=snapshot,
        date_formats=config.date_formats,
    )


def _reject(row: ImportRow, error_type: str, reason: str) -> Rejected:
    return Rejected(RowError(line_number=row.line_number, error_type=error_type, reason=reason))


def _parse_dates(row: ImportRow, ctx: MemberContext, names: tuple[str, ...]) -> dict[str, date | None] | Rejected:
    parsed: dict[str, date | None] = {}
    for name in names:
        text = ctx.value(row, name)
        if text is None:
            parsed[name] = None
            continue
        value = parse_date(text, ctx.date_formats)
        if value is None:
            label = name.replace("_", " ")
            return _reject(row, "INVALID_DATE", f"Invalid {label} (use YYYY-MM-DD)")
        parsed[name] = value
    return parsed


def _household_draft(
    row: ImportRow,
    ctx: MemberContext,
    name: str | None,
    dates: dict[str, date | None],
) -> HouseholdDraft:
    return HouseholdDraft(
        key=row.line_number,
        name=name,
        type=ctx.enum(row, "household_type") or "single",
        is_non_household=parse_bool(ctx.value(row, "is_non_household")),
        person_assigned=ctx.text(row, "person_assigned"),
        ministry_group=ctx.text(row, "ministry_group"),
        address1=ctx.text(row, "address1"),
        address2=ctx.text(row, "address2"),
        city=ctx.text(row, "city"),
        state=ctx.text(row, "state"),
        zip=ctx.text(row, "zip"),
        country=ctx.text(row, "country"),
        alternate_address_begin=dates["alternate_address_begin"],
        alternate_address_end=dates["alternate_address_end"],
    )


def _resolve_household(
    row: ImportRow,
    ctx: MemberContext,
    state: MemberRowState,
    member_name: str,
    dates: dict[str, date | None],
) -> tuple[HouseholdRef, HouseholdGroupTracker] | Rejected:
    token = ctx.value(row, "household_group")
    known = state.groups.lookup(token)
    if known is not None:
        return known, state.groups

    household_name = ctx.text(row, "household_name")
    household_id = ctx.value(row, "household_id")
    if parse_bool(ctx.value(row, "create_new_household")):
        ref = HouseholdRef.pending(_household_draft(row, ctx, household_name, dates))
    elif household_id is not None:
        if not ctx.snapshot.has_household(household_id):
            return _reject(row, "HOUSEHOLD_NOT_FOUND", f"Household ID {household_id} not found")
        ref = HouseholdRef.existing(household_id)
    else:
        name = household_name or member_name or DEFAULT_HOUSEHOLD_NAME
        ref = HouseholdRef.pending(_household_draft(row, ctx, name, dates))
    return ref, state.groups.record(token, ref)


def validate_member_row(
    row: ImportRow, ctx: MemberContext, state: MemberRowState
) -> tuple[RowOutcome[MemberDraft], MemberRowState]:
    """Validate one member row and advance the loop state.

    Args:
        row: tokenized data line
        ctx: per-import context from build_member_context()
        state: household group bindings and emails accepted so far

    Returns:
        (outcome, new_state). The outcome is Accepted(MemberDraft) or
        Rejected(RowError); new_state keeps any group token bound by this
        row even when the row is rejected after household resolution.
    """
    first_name = sanitize_text(ctx.value(row, "first_name"))
    last_name = sanitize_text(ctx.value(row, "last_name"))
    if not first_name or not last_name:
        return _reject(row, "MISSING_NAME", "Missing required fields (First Name or Last Name)"), state

    dates = _parse_dates(row, ctx, MEMBER_DATE_FIELDS + HOUSEHOLD_DATE_FIELDS)
    if isinstance(dates, Rejected):
        return dates, state

    household = _resolve_household(row, ctx, state, f"{first_name} {last_name}", dates)
    if isinstance(household, Rejected):
        return household, state
    ref, groups = household
    # the token binding survives even if a later check rejects this row
    state = replace(state, groups=groups)

    email1 = sanitize_email(ctx.value(row, "email1")) or None
    if email1 and (ctx.snapshot.has_email(email1) or email1 in state.emails):
        return _reject(row, "DUPLICATE_EMAIL", f"Email {email1} already exists"), state

    envelope = ctx.value(row, "envelope_number")
    member = MemberDraft(
        line_number=row.line_number,
        household=ref,
        first_name=first_name,
        last_name=last_name,
        middle_name=ctx.text(row, "middle_name"),
        suffix=ctx.text(row, "suffix"),
        preferred_name=ctx.text(row, "preferred_name"),
        maiden_name=ctx.text(row, "maiden_name"),
        title=ctx.text(row, "title"),
        sex=ctx.enum(row, "sex"),
        date_of_birth=dates["date_of_birth"],
        email1=email1,
        email2=sanitize_email(ctx.value(row, "email2")) or None,
        phone_home=ctx.text(row, "phone_home"),
        phone_cell1=ctx.text(row, "phone_cell1"),
        phone_cell2=ctx.text(row, "phone_cell2"),
        baptism_date=dates["baptism_date"],
        confirmation_date=dates["confirmation_date"],
        received_by=ctx.enum(row, "received_by"),
        date_received=dates["date_received"],
        removed_by=ctx.enum(row, "removed_by"),
        date_removed=dates["date_removed"],
        deceased_date=dates["deceased_date"],
        membership_code=ctx.text(row, "membership_code"),
        envelope_number=parse_int(envelope) if envelope else None,
        participation=ctx.enum(row, "participation"),
        sequence=ctx.enum(row, "sequence"),
    )
    if email1:
        state = replace(state, emails=state.emails | {email1})
    return Accepted(member), state
