from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from church_import.models.config_models import (
    DatabaseConfig,
    EnumConfig,
    FieldAliases,
    GivingImportConfig,
    ImportConfig,
    MemberImportConfig,
)
from church_import.reader.headers import normalize_header

"""Config loader.

Responsibilities:
- Load YAML (bundled config/defaults.yml unless a path is given)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults (head_of_household_policy=sequence if missing)
- Freeze alias / enum tables into immutable config dataclasses
"""

_CONFIG_DIR = Path(__file__).parent
SCHEMA_PATH = _CONFIG_DIR / "config_schema.json"
DEFAULT_CONFIG_PATH = _CONFIG_DIR / "defaults.yml"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Args:
        data: Configuration data to validate

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (missing required keys,
            wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _freeze_aliases(raw: dict[str, list[str]]) -> FieldAliases:
    return FieldAliases(
        fields=MappingProxyType({name: tuple(spellings) for name, spellings in raw.items()})
    )


def _freeze_enums(raw: dict[str, Any]) -> EnumConfig:
    values = {
        name: tuple(str(v).strip().lower() for v in allowed)
        for name, allowed in raw["values"].items()
    }
    defaults = {name: str(v).strip().lower() for name, v in (raw.get("defaults") or {}).items()}
    for name, default in defaults.items():
        if name in values and default not in values[name]:
            raise ConfigError(f"enum default {default!r} not allowed for {name}")
    return EnumConfig(values=MappingProxyType(values), defaults=MappingProxyType(defaults))


def config_from_dict(data: dict[str, Any]) -> ImportConfig:
    """Validate a raw mapping and build the frozen ImportConfig."""
    _validate_config_schema(data)

    giving_raw = data["giving"]
    # aliases are matched against normalized header text
    category_aliases = {
        normalize_header(header): category.strip()
        for header, category in giving_raw["category_aliases"].items()
    }
    members_raw = data["members"]
    unknown = [f for f in members_raw.get("required", []) if f not in members_raw["fields"]]
    if unknown:
        raise ConfigError(f"required member fields have no aliases: {unknown}")
    db_raw = data.get("database") or {}

    return ImportConfig(
        version=data["version"],
        head_of_household_policy=data.get("head_of_household_policy", "sequence"),
        date_formats=tuple(data["date_formats"]),
        giving=GivingImportConfig(
            fields=_freeze_aliases(giving_raw["fields"]),
            category_aliases=MappingProxyType(category_aliases),
            notes_max_length=giving_raw.get("notes_max_length"),
        ),
        members=MemberImportConfig(
            fields=_freeze_aliases(members_raw["fields"]),
            required=tuple(members_raw.get("required", ("first_name", "last_name"))),
        ),
        enums=_freeze_enums(data["enums"]),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def load_config(path: Path | None = None) -> ImportConfig:
    path = DEFAULT_CONFIG_PATH if path is None else path
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return config_from_dict(data)
