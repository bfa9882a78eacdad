from __future__ import annotations

from datetime import date

import pytest

from church_import.reader.values import normalize_enum, parse_bool, parse_date, parse_int
from church_import.services.sanitize import sanitize_email, sanitize_optional, sanitize_text

FORMATS = ("%Y-%m-%d", "%m/%d/%Y")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("2024-01-15", date(2024, 1, 15)),
        (" 01/15/2024 ", date(2024, 1, 15)),
        ("2024-01-15T10:30:00", date(2024, 1, 15)),
        ("2023-02-30", None),
        ("15.01.2024", None),
        ("soon", None),
    ],
)
def test_parse_date(text, expected):
    assert parse_date(text, FORMATS) == expected


@pytest.mark.parametrize(
    "text,expected",
    [("12", 12), (" 7 ", 7), ("12.0", 12), ("12.5", None), ("abc", None), ("", None), ("NaN", None)],
)
def test_parse_int(text, expected):
    assert parse_int(text) == expected


def test_parse_bool():
    assert parse_bool("TRUE")
    assert parse_bool(" yes ")
    assert parse_bool("1")
    assert not parse_bool("false")
    assert not parse_bool(None)
    assert not parse_bool("")


def test_normalize_enum_maps_display_text():
    allowed = ("head_of_house", "spouse", "child")
    assert normalize_enum("Head of House", allowed) == "head_of_house"
    assert normalize_enum("SPOUSE", allowed) == "spouse"
    assert normalize_enum("cousin", allowed) is None
    assert normalize_enum(None, allowed, "child") == "child"


def test_normalize_enum_handles_punctuation():
    allowed = ("moved_no_transfer", "death")
    assert normalize_enum("Moved (no transfer)", allowed) == "moved_no_transfer"
    assert normalize_enum("Moved - No Transfer", allowed) == "moved_no_transfer"


def test_normalize_enum_unknown_uses_default():
    assert normalize_enum("Visitor", ("active", "inactive"), "active") == "active"


def test_sanitize_text_strips_markup():
    assert sanitize_text("  <b>Jane</b> ") == "Jane"
    assert sanitize_text("Tom &amp; Ann") == "Tom  Ann"
    assert sanitize_text(None) == ""
    assert sanitize_optional("<br>") is None
    assert sanitize_optional(" note ") == "note"


def test_sanitize_email_lowercases():
    assert sanitize_email(" Jane.Doe@Example.COM ") == "jane.doe@example.com"
    assert sanitize_email(None) == ""
