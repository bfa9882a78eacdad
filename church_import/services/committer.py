from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from church_import.db.store import TenantStore
from church_import.models.records import GivingRecord, HouseholdDraft, MemberDraft

logger = logging.getLogger(__name__)

"""Batch committer.

Accepted records are written in one transaction per import. Any failure
inside the transaction rolls everything back and is reported as a single
aggregate error; callers then count the whole batch as failed. Nothing from
a failed batch is ever visible.
"""

__all__ = [
    "CommitOutcome",
    "commit_giving",
    "commit_members",
    "pending_households",
]


@dataclass(frozen=True)
class CommitOutcome:
    inserted: int
    attempted: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _in_transaction(store: TenantStore, attempted: int, work: Callable[[], int]) -> CommitOutcome:
    try:
        store.begin()
        inserted = work()
        store.commit()
    except Exception as e:
        try:
            store.rollback()
        except Exception as rollback_e:
            logger.error("rollback failed: %s", rollback_e)
        logger.error("batch of %d rows failed: %s", attempted, e)
        return CommitOutcome(inserted=0, attempted=attempted, error=f"Database error: {e}")
    return CommitOutcome(inserted=inserted, attempted=attempted)


def commit_giving(
    store: TenantStore, records: Sequence[GivingRecord], *, dry_run: bool = False
) -> CommitOutcome:
    """Insert giving records and their items atomically.

    Returns:
        CommitOutcome where ``inserted`` counts giving records (not items)
    """
    if not records:
        return CommitOutcome(inserted=0, attempted=0)
    if dry_run:
        logger.info("dry run: %d giving records not written", len(records))
        return CommitOutcome(inserted=len(records), attempted=len(records))
    return _in_transaction(store, len(records), lambda: store.insert_giving_records(records))


def pending_households(members: Sequence[MemberDraft]) -> list[HouseholdDraft]:
    """Distinct household drafts referenced by accepted members, first use first."""
    seen: dict[int, HouseholdDraft] = {}
    for member in members:
        draft = member.household.draft
        if draft is not None and draft.key not in seen:
            seen[draft.key] = draft
    return list(seen.values())


def commit_members(
    store: TenantStore, members: Sequence[MemberDraft], *, dry_run: bool = False
) -> CommitOutcome:
    """Insert pending households, then members, in one transaction."""
    if not members:
        return CommitOutcome(inserted=0, attempted=0)
    drafts = pending_households(members)
    if dry_run:
        logger.info(
            "dry run: %d members and %d households not written", len(members), len(drafts)
        )
        return CommitOutcome(inserted=len(members), attempted=len(members))

    def work() -> int:
        ids = store.insert_households(drafts) if drafts else []
        if len(ids) != len(drafts):
            raise RuntimeError(f"expected {len(drafts)} household ids, got {len(ids)}")
        draft_ids = {draft.key: household_id for draft, household_id in zip(drafts, ids)}
        logger.debug("created %d households", len(draft_ids))
        return store.insert_members(members, draft_ids)

    return _in_transaction(store, len(members), work)
