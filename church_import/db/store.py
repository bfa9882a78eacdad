from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from church_import.db.batch_insert import BatchInsertError, BatchMetrics, batch_insert
from church_import.models.records import GivingRecord, HouseholdDraft, MemberDraft
from church_import.models.snapshot import GivingCategory, MemberSnapshot, TenantSnapshot

logger = logging.getLogger(__name__)

"""Tenant-scoped persistence collaborators.

TenantStore is the interface the import engine consumes: bulk reads for the
pre-loop snapshot, explicit transaction control and multi-row inserts for the
batch committer. PostgresTenantStore implements it over a psycopg2 cursor;
every query is filtered by church_id.
"""

__all__ = [
    "PostgresTenantStore",
    "TenantStore",
    "load_snapshot",
]


class TenantStore(Protocol):
    church_id: str

    def fetch_members(self) -> list[MemberSnapshot]: ...

    def fetch_active_categories(self) -> list[GivingCategory]: ...

    def fetch_household_ids(self) -> set[str]: ...

    def fetch_member_emails(self) -> set[str]: ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def insert_giving_records(self, records: Sequence[GivingRecord]) -> int: ...

    def insert_households(self, drafts: Sequence[HouseholdDraft]) -> list[str]: ...

    def insert_members(
        self, members: Sequence[MemberDraft], draft_household_ids: Mapping[int, str]
    ) -> int: ...


def load_snapshot(store: TenantStore, *, for_members: bool = False) -> TenantSnapshot:
    """Prefetch everything the row loop looks up, once per import.

    Giving imports need members and categories; member imports need
    household ids and existing emails.
    """
    if for_members:
        return TenantSnapshot.build(
            church_id=store.church_id,
            household_ids=store.fetch_household_ids(),
            member_emails=store.fetch_member_emails(),
        )
    return TenantSnapshot.build(
        church_id=store.church_id,
        members=store.fetch_members(),
        categories=store.fetch_active_categories(),
    )


MEMBER_COLUMNS = (
    "first_name",
    "middle_name",
    "last_name",
    "suffix",
    "preferred_name",
    "maiden_name",
    "title",
    "sex",
    "date_of_birth",
    "email1",
    "email2",
    "phone_home",
    "phone_cell1",
    "phone_cell2",
    "baptism_date",
    "confirmation_date",
    "received_by",
    "date_received",
    "removed_by",
    "date_removed",
    "deceased_date",
    "membership_code",
    "envelope_number",
    "participation",
    "sequence",
)

HOUSEHOLD_COLUMNS = (
    "name",
    "type",
    "is_non_household",
    "person_assigned",
    "ministry_group",
    "address1",
    "address2",
    "city",
    "state",
    "zip",
    "country",
    "alternate_address_begin",
    "alternate_address_end",
)


class PostgresTenantStore:
    """TenantStore over a psycopg2 cursor whose connection has autocommit off."""

    def __init__(self, cursor: Any, church_id: str, page_size: int = 1000) -> None:
        self.cursor = cursor
        self.church_id = church_id
        self.page_size = page_size

    def _log_batch(self, metrics: BatchMetrics) -> None:
        logger.debug(
            "batch_insert table=%s rows=%d elapsed=%.4fs",
            metrics.table,
            metrics.batch_size,
            metrics.elapsed_seconds,
        )

    def _select(self, sql: str) -> list[tuple[Any, ...]]:
        self.cursor.execute(sql, (self.church_id,))
        return list(self.cursor.fetchall())

    # -- snapshot reads -------------------------------------------------

    def fetch_members(self) -> list[MemberSnapshot]:
        """Load every member of the church for head-of-household resolution.

        Returns:
            MemberSnapshot per member, ordered by id so envelope groups keep a
            stable order
        """
        rows = self._select(
            "SELECT id::text, household_id::text, envelope_number, sex, date_of_birth, sequence "
            "FROM members WHERE church_id = %s ORDER BY id"
        )
        return [
            MemberSnapshot(
                id=r[0],
                household_id=r[1],
                envelope_number=r[2],
                sex=r[3],
                date_of_birth=r[4],
                sequence=r[5],
            )
            for r in rows
        ]

    def fetch_active_categories(self) -> list[GivingCategory]:
        """Load the church's active giving categories.

        Returns:
            GivingCategory per active category, ordered by name
        """
        rows = self._select(
            "SELECT id::text, name FROM giving_categories "
            "WHERE church_id = %s AND is_active = true ORDER BY name"
        )
        return [GivingCategory(id=r[0], name=r[1]) for r in rows]

    def fetch_household_ids(self) -> set[str]:
        """Ids of every household of the church, as text."""
        return {r[0] for r in self._select("SELECT id::text FROM household WHERE church_id = %s")}

    def fetch_member_emails(self) -> set[str]:
        """Lowercased primary emails already used by the church's members."""
        rows = self._select(
            "SELECT lower(email1) FROM members WHERE church_id = %s AND email1 IS NOT NULL"
        )
        return {r[0] for r in rows if r[0]}

    # -- transaction control -------------------------------------------

    def begin(self) -> None:
        """Open the import transaction."""
        self.cursor.execute("BEGIN")

    def commit(self) -> None:
        """Commit the import transaction."""
        self.cursor.execute("COMMIT")

    def rollback(self) -> None:
        """Discard everything written since begin()."""
        self.cursor.execute("ROLLBACK")

    # -- inserts ---------------------------------------------------------

    def insert_giving_records(self, records: Sequence[GivingRecord]) -> int:
        """Insert giving rows, then one giving_items row per item.

        Args:
            records: accepted giving records in file order

        Returns:
            Number of giving rows inserted (items are not counted)

        Raises:
            BatchInsertError: when either insert fails
        """
        result = batch_insert(
            self.cursor,
            "giving",
            ["member_id", "date_given", "notes"],
            [(r.member_id, r.date_given, r.notes) for r in records],
            returning=["id"],
            page_size=self.page_size,
            metrics_callback=self._log_batch,
        )
        giving_ids = [row[0] for row in result.returned_values or []]
        item_rows = [
            (giving_id, item.category_id, item.amount)
            for giving_id, record in zip(giving_ids, records, strict=True)
            for item in record.items
        ]
        batch_insert(
            self.cursor,
            "giving_items",
            ["giving_id", "category_id", "amount"],
            item_rows,
            page_size=self.page_size,
            metrics_callback=self._log_batch,
        )
        return result.inserted_rows

    def insert_households(self, drafts: Sequence[HouseholdDraft]) -> list[str]:
        """Insert new households for the church.

        Args:
            drafts: pending households, each inserted once

        Returns:
            New household ids, in the same order as ``drafts``

        Raises:
            BatchInsertError: when the insert fails
        """
        rows = []
        for draft in drafts:
            values = draft.column_values()
            rows.append((self.church_id, *(values[c] for c in HOUSEHOLD_COLUMNS)))
        result = batch_insert(
            self.cursor,
            "household",
            ["church_id", *HOUSEHOLD_COLUMNS],
            rows,
            returning=["id"],
            page_size=self.page_size,
            metrics_callback=self._log_batch,
        )
        return [str(row[0]) for row in result.returned_values or []]

    def insert_members(
        self, members: Sequence[MemberDraft], draft_household_ids: Mapping[int, str]
    ) -> int:
        """Insert members, resolving pending households to their new ids.

        Args:
            members: accepted member drafts in file order
            draft_household_ids: draft key -> id returned by insert_households()

        Returns:
            Number of member rows inserted

        Raises:
            BatchInsertError: a member references a draft that was not inserted,
                or the insert fails
        """
        rows = []
        for member in members:
            ref = member.household
            if ref.draft is not None:
                try:
                    household_id = draft_household_ids[ref.draft.key]
                except KeyError as e:
                    raise BatchInsertError(
                        f"household draft from line {ref.draft.key} was not inserted"
                    ) from e
            else:
                household_id = ref.household_id
            values = member.column_values()
            rows.append((self.church_id, household_id, *(values[c] for c in MEMBER_COLUMNS)))
        result = batch_insert(
            self.cursor,
            "members",
            ["church_id", "household_id", *MEMBER_COLUMNS],
            rows,
            page_size=self.page_size,
            metrics_callback=self._log_batch,
        )
        return result.inserted_rows
