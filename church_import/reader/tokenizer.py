from __future__ import annotations

"""Quote-aware CSV line tokenizer.

Uploads are split on newlines before tokenizing, so a quoted field can never
span lines. That is a known limitation of the upload format, not something
this module tries to repair.
"""

__all__ = [
    "parse_csv_line",
    "split_lines",
]

QUOTE = '"'
SEPARATOR = ","


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line into fields.

    A double quote toggles quoted mode, ``""`` inside quotes emits a literal
    quote, commas only separate fields outside quotes, and the last field is
    emitted even without a trailing separator.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    length = len(line)
    while i < length:
        char = line[i]
        if char == QUOTE:
            if in_quotes and i + 1 < length and line[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == SEPARATOR and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current))
    return fields


def split_lines(text: str) -> list[tuple[int, str]]:
    """Return ``(line_number, line)`` for every non-blank line of ``text``.

    Row numbers count non-blank lines only, starting at 1 for the header, so
    blank lines never shift the row a message reports. A trailing ``\\r``
    from CRLF files is dropped.
    """
    kept: list[str] = []
    for raw in text.split("\n"):
        line = raw[:-1] if raw.endswith("\r") else raw
        if line.strip():
            kept.append(line)
    return list(enumerate(kept, start=1))
