from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any

"""Insertable record models produced by the row validators.

Nothing here is persisted until the batch committer runs; a rejected row
never produces one of these.
"""

__all__ = [
    "GivingItem",
    "GivingRecord",
    "HouseholdDraft",
    "HouseholdRef",
    "MemberDraft",
]


@dataclass(frozen=True)
class GivingItem:
    category_id: str
    amount: Decimal


@dataclass(frozen=True)
class GivingRecord:
    """One donation attributed to the resolved head of household."""
    line_number: int
    member_id: str
    date_given: date
    notes: str | None
    items: tuple[GivingItem, ...]

    @property
    def total(self) -> Decimal:
        return sum((item.amount for item in self.items), Decimal("0"))


@dataclass(frozen=True)
class HouseholdDraft:
    """A household to be created in the commit transaction.

    key identifies the draft within one import run (it is the line number of
    the row that created it), so rows sharing a household group token
    reference the same draft and it is inserted once.
    """
    key: int
    name: str | None
    type: str = "single"
    is_non_household: bool = False
    person_assigned: str | None = None
    ministry_group: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None
    alternate_address_begin: date | None = None
    alternate_address_end: date | None = None

    def column_values(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "key"}


@dataclass(frozen=True)
class HouseholdRef:
    """Either an existing household id or a pending draft."""
    household_id: str | None = None
    draft: HouseholdDraft | None = None

    def __post_init__(self) -> None:
        if (self.household_id is None) == (self.draft is None):
            raise ValueError("HouseholdRef needs exactly one of household_id or draft")

    @classmethod
    def existing(cls, household_id: str) -> HouseholdRef:
        return cls(household_id=household_id)

    @classmethod
    def pending(cls, draft: HouseholdDraft) -> HouseholdRef:
        return cls(draft=draft)

    @property
    def is_pending(self) -> bool:
        return self.draft is not None


@dataclass(frozen=True)
class MemberDraft:
    line_number: int
    household: HouseholdRef
    first_name: str
    last_name: str
    middle_name: str | None = None
    suffix: str | None = None
    preferred_name: str | None = None
    maiden_name: str | None = None
    title: str | None = None
    sex: str | None = None
    date_of_birth: date | None = None
    email1: str | None = None
    email2: str | None = None
    phone_home: str | None = None
    phone_cell1: str | None = None
    phone_cell2: str | None = None
    baptism_date: date | None = None
    confirmation_date: date | None = None
    received_by: str | None = None
    date_received: date | None = None
    removed_by: str | None = None
    date_removed: date | None = None
    deceased_date: date | None = None
    membership_code: str | None = None
    envelope_number: int | None = None
    participation: str | None = "active"
    sequence: str | None = None

    def column_values(self) -> dict[str, Any]:
        skip = {"line_number", "household"}
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in skip}
