from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

"""Config dataclasses for the CSV giving / membership importer.

These are the typed, immutable views of config/defaults.yml (or a caller
supplied YAML file). The loader in church_import/config/loader.py builds them
after schema validation; resolvers receive them as injected data and never
read YAML themselves.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class FieldAliases:
    """Canonical logical field name -> ordered alias spellings."""
    fields: Mapping[str, tuple[str, ...]]

    def aliases(self, name: str) -> tuple[str, ...]:
        return self.fields.get(name, ())

    def __contains__(self, name: object) -> bool:
        return name in self.fields


@dataclass(frozen=True)
class GivingImportConfig:
    fields: FieldAliases
    # normalized header text -> canonical category name
    category_aliases: Mapping[str, str]
    notes_max_length: int | None = None


@dataclass(frozen=True)
class MemberImportConfig:
    fields: FieldAliases
    required: tuple[str, ...] = ("first_name", "last_name")


@dataclass(frozen=True)
class EnumConfig:
    """Allowed values per enum column (participation, sequence, ...)."""
    values: Mapping[str, tuple[str, ...]]
    defaults: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def allowed(self, name: str) -> tuple[str, ...]:
        return self.values.get(name, ())

    def default(self, name: str) -> str | None:
        return self.defaults.get(name)


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run.

    ``version`` identifies the alias / enum table revision so that historical
    header spellings can be added without touching resolver code.
    """
    version: int
    head_of_household_policy: str  # "sequence" | "heuristic"
    date_formats: tuple[str, ...]
    giving: GivingImportConfig
    members: MemberImportConfig
    enums: EnumConfig
    database: DatabaseConfig
