from __future__ import annotations

import re

"""Free-text sanitization applied before any value is persisted.

Plain-text fields (names, notes, addresses) never legitimately contain
markup, so tags and HTML entities are stripped rather than escaped.
"""

__all__ = [
    "sanitize_email",
    "sanitize_optional",
    "sanitize_text",
]

_TAG = re.compile(r"<[^>]*>")
_ENTITY = re.compile(r"&[#\w]+;")


def sanitize_text(text: str | None) -> str:
    if not text:
        return ""
    return _ENTITY.sub("", _TAG.sub("", text)).strip()


def sanitize_optional(text: str | None) -> str | None:
    """sanitize_text, mapping empty results to None."""
    cleaned = sanitize_text(text)
    return cleaned or None


def sanitize_email(email: str | None) -> str:
    return sanitize_text(email).lower()
