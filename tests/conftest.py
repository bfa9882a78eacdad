# Shared pytest fixtures
from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from pathlib import Path

import pytest

from church_import.config.loader import load_config
from church_import.logging.init import reset_logging
from church_import.models.config_models import ImportConfig
from church_import.models.records import GivingRecord, HouseholdDraft, MemberDraft
from church_import.models.snapshot import GivingCategory, MemberSnapshot


class FakeStore:
    """In-memory TenantStore. Inserts only become visible on commit()."""

    def __init__(
        self,
        church_id: str = "church-1",
        members: Sequence[MemberSnapshot] = (),
        categories: Sequence[GivingCategory] = (),
        household_ids: Sequence[str] = (),
        member_emails: Sequence[str] = (),
        fail_on: str | None = None,
    ) -> None:
        self.church_id = church_id
        self.members = list(members)
        self.categories = list(categories)
        self.household_ids = set(household_ids)
        self.member_emails = set(member_emails)
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.giving: list[GivingRecord] = []
        self.households: list[tuple[str, HouseholdDraft]] = []
        self.inserted_members: list[tuple[str, MemberDraft]] = []
        self._pending: dict[str, list] = {}

    # snapshot reads
    def fetch_members(self) -> list[MemberSnapshot]:
        self.calls.append("fetch_members")
        return list(self.members)

    def fetch_active_categories(self) -> list[GivingCategory]:
        self.calls.append("fetch_active_categories")
        return [c for c in self.categories if c.is_active]

    def fetch_household_ids(self) -> set[str]:
        self.calls.append("fetch_household_ids")
        return set(self.household_ids)

    def fetch_member_emails(self) -> set[str]:
        self.calls.append("fetch_member_emails")
        return set(self.member_emails)

    # transactions
    def begin(self) -> None:
        self.calls.append("begin")
        self._pending = {"giving": [], "households": [], "members": []}

    def commit(self) -> None:
        self.calls.append("commit")
        self.giving.extend(self._pending["giving"])
        self.households.extend(self._pending["households"])
        self.inserted_members.extend(self._pending["members"])
        self._pending = {}

    def rollback(self) -> None:
        self.calls.append("rollback")
        self._pending = {}

    def _maybe_fail(self, what: str) -> None:
        if self.fail_on == what:
            raise RuntimeError(f"{what} insert failed")

    # inserts
    def insert_giving_records(self, records: Sequence[GivingRecord]) -> int:
        self.calls.append("insert_giving_records")
        self._maybe_fail("giving")
        self._pending["giving"].extend(records)
        return len(records)

    def insert_households(self, drafts: Sequence[HouseholdDraft]) -> list[str]:
        self.calls.append("insert_households")
        self._maybe_fail("households")
        start = len(self.households) + len(self._pending["households"])
        ids = [f"hh-new-{start + i + 1}" for i in range(len(drafts))]
        self._pending["households"].extend(zip(ids, drafts))
        return ids

    def insert_members(
        self, members: Sequence[MemberDraft], draft_household_ids: Mapping[int, str]
    ) -> int:
        self.calls.append("insert_members")
        self._maybe_fail("members")
        for member in members:
            ref = member.household
            household_id = draft_household_ids[ref.draft.key] if ref.draft else ref.household_id
            self._pending["members"].append((household_id, member))
        return len(members)


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    monkeypatch.chdir(tmp_path)
    yield tmp_path


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def config() -> ImportConfig:
    return load_config()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """version: 1
head_of_household_policy: heuristic
date_formats: ["%Y-%m-%d"]
giving:
  fields:
    envelope_number: ["envelope number"]
    member_id: ["member id"]
    date_given: ["date given", "date"]
    notes: ["notes"]
  category_aliases:
    amount: Current
members:
  required: [first_name, last_name]
  fields:
    first_name: ["first name"]
    last_name: ["last name"]
enums:
  values:
    sex: [male, female]
  defaults: {}
database:
  host: dbhost
  port: 5433
  user: importer
  password: secret
  database: church
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def categories() -> list[GivingCategory]:
    return [
        GivingCategory(id="cat-current", name="Current"),
        GivingCategory(id="cat-mission", name="Mission"),
        GivingCategory(id="cat-building", name="Building Fund"),
        GivingCategory(id="cat-old", name="Memorials", is_active=False),
    ]


@pytest.fixture()
def household_members() -> list[MemberSnapshot]:
    """Envelope 12: a flagged head (female, younger) and an older male spouse."""
    return [
        MemberSnapshot(
            id="m-wife",
            household_id="hh-1",
            envelope_number=12,
            sex="female",
            date_of_birth=date(1955, 6, 1),
            sequence="head_of_house",
        ),
        MemberSnapshot(
            id="m-husband",
            household_id="hh-1",
            envelope_number=12,
            sex="male",
            date_of_birth=date(1950, 1, 1),
            sequence="spouse",
        ),
        MemberSnapshot(
            id="m-single",
            household_id="hh-2",
            envelope_number=30,
            sex="female",
            date_of_birth=None,
            sequence=None,
        ),
    ]


@pytest.fixture()
def giving_store(household_members, categories) -> FakeStore:
    return FakeStore(members=household_members, categories=categories)


@pytest.fixture()
def member_store() -> FakeStore:
    return FakeStore(household_ids=["hh-1", "hh-2"], member_emails=["taken@example.com"])


@pytest.fixture()
def make_store():
    return FakeStore
