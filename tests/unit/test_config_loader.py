from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from church_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, config_from_dict, load_config


def test_defaults_load():
    cfg = load_config()
    assert cfg.version >= 1
    assert cfg.head_of_household_policy == "sequence"
    assert "%Y-%m-%d" in cfg.date_formats
    assert cfg.giving.category_aliases["general fund"] == "Current"
    assert cfg.giving.category_aliases["district synod"] == "Mission"
    assert "date" in cfg.giving.fields.aliases("date_given")
    assert cfg.members.required == ("first_name", "last_name")
    assert "moved_no_transfer" in cfg.enums.allowed("removed_by")
    assert cfg.enums.default("participation") == "active"
    assert cfg.enums.default("sex") is None


def test_load_custom_file(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.version == 1
    assert cfg.head_of_household_policy == "heuristic"
    assert cfg.date_formats == ("%Y-%m-%d",)
    assert cfg.giving.notes_max_length is None
    assert cfg.database.host == "dbhost"
    assert cfg.database.port == 5433


def test_config_is_immutable():
    cfg = load_config()
    with pytest.raises(TypeError):
        cfg.giving.category_aliases["amount"] = "Other"  # type: ignore[index]


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    bad = temp_workdir / "bad.yml"
    bad.write_text("version: [1,\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(bad)


def test_non_mapping_root(temp_workdir: Path):
    bad = temp_workdir / "list.yml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(bad)


def _defaults() -> dict:
    return yaml.safe_load(DEFAULT_CONFIG_PATH.read_text(encoding="utf-8"))


def test_schema_rejects_unknown_key():
    data = _defaults()
    data["source_directory"] = "./data"
    with pytest.raises(ConfigError, match="config validation failed"):
        config_from_dict(data)


def test_schema_rejects_unknown_policy():
    data = _defaults()
    data["head_of_household_policy"] = "eldest"
    with pytest.raises(ConfigError, match="config validation failed"):
        config_from_dict(data)


def test_schema_requires_giving_identifier_fields():
    data = _defaults()
    del data["giving"]["fields"]["member_id"]
    with pytest.raises(ConfigError):
        config_from_dict(data)


def test_enum_default_must_be_allowed():
    data = _defaults()
    data["enums"]["defaults"]["participation"] = "visitor"
    with pytest.raises(ConfigError, match="not allowed for participation"):
        config_from_dict(data)


def test_required_member_field_needs_aliases():
    data = _defaults()
    data["members"]["required"] = ["first_name", "last_name", "favorite_hymn"]
    with pytest.raises(ConfigError, match="favorite_hymn"):
        config_from_dict(data)


def test_category_alias_keys_are_normalized():
    data = _defaults()
    data["giving"]["category_aliases"] = {"  Building_Fund ": "Building"}
    cfg = config_from_dict(data)
    assert dict(cfg.giving.category_aliases) == {"building fund": "Building"}
