from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from enum import Enum

from church_import.models.snapshot import HEAD_OF_HOUSE, MemberSnapshot

"""Head-of-household resolution.

Giving rows keyed by envelope number have to be attributed to one member. Two
policies exist and are deliberately not unified:

- SEQUENCE: the member flagged ``sequence = head_of_house`` in the envelope's
  household, falling back to the first member carrying the envelope number.
- HEURISTIC: the oldest male sharing the envelope number, else the oldest
  member; members without a birth date sort last.

Both are pure functions over snapshot data. Callers choose the policy
explicitly (configuration key ``head_of_household_policy`` / CLI ``--policy``).
"""

__all__ = [
    "HeadOfHouseholdNotFound",
    "HeadOfHouseholdPolicy",
    "find_head_by_heuristic",
    "find_head_by_sequence",
    "resolve_envelope_member",
]


class HeadOfHouseholdNotFound(LookupError):
    """No member could be chosen from the given candidates."""


class HeadOfHouseholdPolicy(Enum):
    SEQUENCE = "sequence"
    HEURISTIC = "heuristic"

    @classmethod
    def parse(cls, value: str | HeadOfHouseholdPolicy) -> HeadOfHouseholdPolicy:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            allowed = ", ".join(p.value for p in cls)
            raise ValueError(f"unknown head of household policy {value!r} (expected {allowed})") from e


def find_head_by_sequence(
    members: Sequence[MemberSnapshot],
    household_id: str | None,
    fallback: Sequence[MemberSnapshot],
) -> str:
    """Policy A: the household member whose sequence is head_of_house.

    Args:
        members: snapshot members to search (normally the whole church)
        household_id: household to look in; None skips straight to fallback
        fallback: envelope group whose first member is used when no head is flagged

    Returns:
        member id

    Raises:
        HeadOfHouseholdNotFound: no flagged head and an empty fallback
    """
    if household_id is not None:
        for member in members:
            if member.household_id == household_id and member.sequence == HEAD_OF_HOUSE:
                return member.id
    if fallback:
        return fallback[0].id
    raise HeadOfHouseholdNotFound(f"no members for household {household_id}")


def _oldest_first(candidates: Sequence[MemberSnapshot]) -> MemberSnapshot:
    # sorted() is stable, so equal birth dates keep input order
    def key(member: MemberSnapshot) -> tuple[bool, date]:
        return (member.date_of_birth is None, member.date_of_birth or date.min)

    return sorted(candidates, key=key)[0]


def find_head_by_heuristic(members: Sequence[MemberSnapshot]) -> str:
    """Policy B: oldest male, else oldest member overall.

    The input sequence is not reordered.
    """
    if not members:
        raise HeadOfHouseholdNotFound("no members to choose from")
    males = [m for m in members if m.sex == "male"]
    return _oldest_first(males or members).id


def resolve_envelope_member(
    envelope_members: Sequence[MemberSnapshot],
    all_members: Sequence[MemberSnapshot],
    policy: HeadOfHouseholdPolicy,
) -> str:
    """Pick the member a giving row for an envelope number is attributed to."""
    if not envelope_members:
        raise HeadOfHouseholdNotFound("no members for envelope")
    if policy is HeadOfHouseholdPolicy.HEURISTIC:
        return find_head_by_heuristic(envelope_members)
    return find_head_by_sequence(all_members, envelope_members[0].household_id, envelope_members)
