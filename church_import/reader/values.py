from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

"""Cell value coercion shared by the giving and member row validators."""

__all__ = [
    "normalize_enum",
    "parse_bool",
    "parse_date",
    "parse_int",
]

_TRUTHY = {"true", "yes", "y", "1"}
_ENUM_NOISE = re.compile(r"[^a-z0-9]+")


def parse_date(text: str, formats: Sequence[str]) -> date | None:
    """Parse a calendar date using the configured formats, then ISO 8601.

    Returns None when nothing matches or the date does not exist (2023-02-30).
    """
    value = text.strip()
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def parse_int(text: str) -> int | None:
    """Integer cell, tolerating spreadsheet floats like "12.0"."""
    try:
        number = Decimal(text.strip())
    except InvalidOperation:
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    return int(number)


def parse_bool(text: str | None) -> bool:
    return text is not None and text.strip().lower() in _TRUTHY


def normalize_enum(text: str | None, allowed: Sequence[str], default: str | None = None) -> str | None:
    """Map free text onto an enum value ("Head of House" -> "head_of_house").

    Unknown or blank input yields ``default``.
    """
    if not text:
        return default
    candidate = _ENUM_NOISE.sub("_", text.strip().lower()).strip("_")
    return candidate if candidate in allowed else default
