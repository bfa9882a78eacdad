from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from church_import.models.records import HouseholdRef

"""Household group tracking for member imports.

A "household group" column lets several rows of one upload share a household
that does not exist yet. The first row carrying a token creates (or looks up)
the household; later rows with the same token reuse it without creating or
looking anything up again.

The tracker is immutable and threaded through the row loop: record() returns
a new tracker. One tracker lives for exactly one import invocation and is
never shared across requests or churches.
"""

__all__ = [
    "HouseholdGroupTracker",
]


@dataclass(frozen=True)
class HouseholdGroupTracker:
    groups: Mapping[str, HouseholdRef] = field(default_factory=lambda: MappingProxyType({}))

    def lookup(self, token: str | None) -> HouseholdRef | None:
        if not token:
            return None
        return self.groups.get(token)

    def record(self, token: str | None, ref: HouseholdRef) -> HouseholdGroupTracker:
        """Return a tracker with ``token`` bound to ``ref``.

        The first binding of a token wins; blank tokens are not recorded.
        """
        if not token or token in self.groups:
            return self
        updated = dict(self.groups)
        updated[token] = ref
        return HouseholdGroupTracker(groups=MappingProxyType(updated))

    def __contains__(self, token: object) -> bool:
        return token in self.groups

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[str]:
        return iter(self.groups)
