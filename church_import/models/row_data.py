from __future__ import annotations

from dataclasses import dataclass

"""ImportRow model.

ImportRow represents one tokenized data line of an upload. It lives for a
single loop iteration and is discarded once the row is accepted or rejected.
"""

__all__ = [
    "ImportRow",
]


@dataclass(frozen=True)
class ImportRow:
    """One data line after tokenizing.

    line_number is the 1-based position among the non-blank lines of the
    upload. The header is line 1, so the first data row is line 2.
    """
    line_number: int
    values: tuple[str, ...]

    @classmethod
    def from_fields(cls, line_number: int, fields: list[str]) -> ImportRow:
        return cls(line_number=line_number, values=tuple(fields))
