"""Minimal CSV reading for export files.

Pocket and Raindrop write CSV with quoted fields that may contain the delimiter,
doubled quotes and embedded newlines. Columns are located by header name rather
than position because both services have reordered their exports over time.

Example:
    >>> split_csv_line('"https://example.com","Title with, comma","a,b"')
    ['https://example.com', 'Title with, comma', 'a,b']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Sequence

BOM = "\ufeff"


def _at_field_start(current: Sequence[str]) -> bool:
    return not "".join(current).strip()


def split_csv_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one CSV record into trimmed fields.

    A quote opens a quoted field only at the start of a field, where the field
    may then contain the delimiter and ``""`` is a literal quote. A quote in
    the middle of an unquoted field (``12" Vinyl``) is kept as text.

    Args:
        line: A single logical CSV record.
        delimiter: Field separator.

    Returns:
        List of field values.
    """
    values: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0

    while i < len(line):
        char = line[i]
        if in_quotes:
            if char == '"':
                if i + 1 < len(line) and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(char)
        elif char == '"' and _at_field_start(current):
            current = []
            in_quotes = True
        elif char == delimiter:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    values.append("".join(current).strip())
    return values


def iter_csv_records(text: str, delimiter: str = ",") -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, record)`` pairs, keeping quoted newlines intact.

    Line numbers are 1-based and point at the line where the record starts.
    A leading byte-order mark is dropped and ``\\r\\n`` endings are accepted.
    Quotes follow the same field-start rule as ``split_csv_line``. A quoted
    field still open at the end of the text is unterminated; from that record
    on the text is split on plain line breaks instead.
    """
    if text.startswith(BOM):
        text = text[1:]

    current: list[str] = []
    field_chars: list[str] = []
    in_quotes = False
    start_line = 1
    line_number = 1
    i = 0

    while i < len(text):
        char = text[i]
        if in_quotes:
            if char == '"':
                if i + 1 < len(text) and text[i + 1] == '"':
                    current.append(char)
                    i += 1
                else:
                    in_quotes = False
            elif char == "\n":
                line_number += 1
        elif char == '"' and _at_field_start(field_chars):
            in_quotes = True
            field_chars.append(char)
        elif char == delimiter:
            field_chars = []
        elif char == "\n":
            yield start_line, "".join(current).rstrip("\r")
            current = []
            field_chars = []
            line_number += 1
            start_line = line_number
            i += 1
            continue
        else:
            field_chars.append(char)
        current.append(char)
        i += 1

    if in_quotes:
        for offset, line in enumerate("".join(current).split("\n")):
            yield start_line + offset, line.rstrip("\r")
    elif current:
        yield start_line, "".join(current).rstrip("\r")


@dataclass
class CsvHeader:
    """Header row with case-insensitive, synonym-aware column lookup.

    Attributes:
        columns: Lower-cased header names in file order.
    """

    columns: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, line: str) -> "CsvHeader":
        return cls(columns=[c.lower() for c in split_csv_line(line)])

    def index_of(self, *names: str) -> int | None:
        """Position of the first column matching any of ``names``."""
        for position, column in enumerate(self.columns):
            if column in names:
                return position
        return None

    def resolve(self, synonyms: Mapping[str, Sequence[str]]) -> dict[str, int | None]:
        """Resolve logical field names to column positions.

        Example:
            >>> CsvHeader.parse("Link,Name").resolve({"url": ("url", "link")})
            {'url': 0}
        """
        return {key: self.index_of(*names) for key, names in synonyms.items()}


def cell(values: Sequence[str], index: int | None) -> str | None:
    """Value at ``index``, or None when the column or cell is missing."""
    if index is None or index >= len(values):
        return None
    return values[index]
