from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

"""Header resolution: messy header text -> canonical logical fields.

Every header is registered twice, once normalized ("first name") and once
without spaces ("firstname"), so "First_Name", "FirstName" and " first  name"
all land on the same column. Aliases supplied by configuration go through the
same normalization before lookup.
"""

__all__ = [
    "HeaderMap",
    "cell",
    "normalize_header",
]

BOM = "\ufeff"
_SEPARATOR_RUN = re.compile(r"[_\s]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_header(header: str) -> str:
    """Trim, strip BOM, collapse whitespace/underscores to one space, lowercase."""
    text = header.replace(BOM, "").strip()
    return _SEPARATOR_RUN.sub(" ", text).strip().lower()


def _compact(normalized: str) -> str:
    return _WHITESPACE.sub("", normalized)


@dataclass(frozen=True)
class HeaderMap:
    """Case-insensitive header text -> column index lookup."""

    headers: tuple[str, ...]  # raw header cells in file order
    normalized: tuple[str, ...]  # normalize_header() per column
    index: dict[str, int]

    @classmethod
    def from_header(cls, fields: Sequence[str]) -> HeaderMap:
        index: dict[str, int] = {}
        normalized: list[str] = []
        for position, header in enumerate(fields):
            norm = normalize_header(header)
            normalized.append(norm)
            if not norm:
                continue
            # first occurrence wins for duplicated headers
            index.setdefault(norm, position)
            index.setdefault(_compact(norm), position)
        return cls(headers=tuple(fields), normalized=tuple(normalized), index=index)

    def lookup(self, text: str) -> int | None:
        norm = normalize_header(text)
        if not norm:
            return None
        found = self.index.get(norm)
        if found is None:
            found = self.index.get(_compact(norm))
        return found

    def find(self, field: str, aliases: Iterable[str] = ()) -> int | None:
        """Return the column index for ``field`` or the first alias present."""
        for candidate in (field, *aliases):
            found = self.lookup(candidate)
            if found is not None:
                return found
        return None

    def has(self, field: str, aliases: Iterable[str] = ()) -> bool:
        return self.find(field, aliases) is not None

    def missing(self, required: Iterable[tuple[str, Iterable[str]]]) -> list[str]:
        """Names of required fields that resolve to no column."""
        return [name for name, aliases in required if not self.has(name, aliases)]

    def value(self, values: Sequence[str], field: str, aliases: Iterable[str] = ()) -> str | None:
        """First non-blank trimmed cell among ``field`` and its aliases, else None."""
        for candidate in (field, *aliases):
            found = self.lookup(candidate)
            if found is None:
                continue
            text = cell(values, found)
            if text is not None:
                return text
        return None

    def __len__(self) -> int:
        return len(self.headers)


def cell(values: Sequence[str], index: int) -> str | None:
    if index >= len(values):
        return None
    text = values[index].strip()
    return text or None
