from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

"""Tenant snapshot models.

Everything the row loop needs for lookups is prefetched once per import into
a TenantSnapshot, so head-of-household resolution and existence checks are
pure functions over in-memory data.
"""

__all__ = [
    "GivingCategory",
    "MemberSnapshot",
    "TenantSnapshot",
    "HEAD_OF_HOUSE",
]

HEAD_OF_HOUSE = "head_of_house"


@dataclass(frozen=True)
class MemberSnapshot:
    id: str
    household_id: str | None
    envelope_number: int | None = None
    sex: str | None = None  # male | female | other
    date_of_birth: date | None = None
    sequence: str | None = None  # head_of_house | spouse | child


@dataclass(frozen=True)
class GivingCategory:
    id: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class TenantSnapshot:
    """Bulk-read state for one church, taken before the first row."""
    church_id: str
    members: tuple[MemberSnapshot, ...] = ()
    categories: tuple[GivingCategory, ...] = ()
    household_ids: frozenset[str] = frozenset()
    member_emails: frozenset[str] = frozenset()  # lowercased
    _by_envelope: dict[int, tuple[MemberSnapshot, ...]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _by_id: dict[str, MemberSnapshot] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        grouped: dict[int, list[MemberSnapshot]] = {}
        for member in self.members:
            self._by_id[member.id] = member
            if member.envelope_number is not None:
                grouped.setdefault(member.envelope_number, []).append(member)
        self._by_envelope.update({k: tuple(v) for k, v in grouped.items()})

    @classmethod
    def build(
        cls,
        church_id: str,
        members: Iterable[MemberSnapshot] = (),
        categories: Iterable[GivingCategory] = (),
        household_ids: Iterable[str] = (),
        member_emails: Iterable[str] = (),
    ) -> TenantSnapshot:
        return cls(
            church_id=church_id,
            members=tuple(members),
            categories=tuple(c for c in categories if c.is_active),
            household_ids=frozenset(household_ids),
            member_emails=frozenset(e.strip().lower() for e in member_emails if e),
        )

    def members_for_envelope(self, envelope_number: int) -> tuple[MemberSnapshot, ...]:
        """Members sharing an envelope number, in snapshot order."""
        return self._by_envelope.get(envelope_number, ())

    def member(self, member_id: str) -> MemberSnapshot | None:
        return self._by_id.get(member_id)

    def has_household(self, household_id: str) -> bool:
        return household_id in self.household_ids

    def has_email(self, email: str) -> bool:
        return email.strip().lower() in self.member_emails
