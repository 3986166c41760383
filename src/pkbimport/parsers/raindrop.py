"""Raindrop.io CSV parser for pkbimport.

Raindrop exports one row per bookmark:

    id,title,note,excerpt,url,folder,tags,created,cover,highlights,favorite

The user's note, the page excerpt and any highlights are folded into the item
body; explicit tags and the collection folder both become tags.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import ClassVar

from pkbimport.core.models import ContentType, ExportFormat
from pkbimport.detection import is_raindrop_file
from pkbimport.parsers.base import (
    BaseParser,
    ContentDecodeError,
    ParseResult,
    RawContent,
    ResultBuilder,
    register_parser,
)
from pkbimport.utils.csvline import CsvHeader, cell, iter_csv_records, split_csv_line
from pkbimport.utils.normalize import (
    folder_path_to_tags,
    normalize_tags,
    normalize_url,
    parse_date,
    sanitize_title,
)

logger = logging.getLogger(__name__)

CSV_COLUMNS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {
        "id": ("id",),
        "title": ("title",),
        "note": ("note",),
        "excerpt": ("excerpt",),
        "url": ("url",),
        "folder": ("folder",),
        "tags": ("tags",),
        "created": ("created",),
        "cover": ("cover",),
        "highlights": ("highlights",),
        "favorite": ("favorite", "important"),
    }
)

HIGHLIGHTS_PREFIX = "Highlights: "


def build_body(note: str | None, excerpt: str | None, highlights: str | None) -> str | None:
    """Join note, excerpt and highlights with blank lines, skipping blanks."""
    parts = []
    if note and note.strip():
        parts.append(note.strip())
    if excerpt and excerpt.strip():
        parts.append(excerpt.strip())
    if highlights and highlights.strip():
        parts.append(HIGHLIGHTS_PREFIX + highlights.strip())
    return "\n\n".join(parts) or None


@register_parser
class RaindropParser(BaseParser):
    """Parser for Raindrop.io CSV exports."""

    format: ClassVar[ExportFormat] = ExportFormat.RAINDROP_CSV
    content_type: ClassVar[ContentType] = ContentType.LINK
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = {".csv"}
    description: ClassVar[str] = "Raindrop.io bookmarks (CSV export)"

    def can_parse(self, content: RawContent) -> bool:
        return is_raindrop_file(content)

    def parse(self, content: RawContent) -> ParseResult:
        try:
            text = self._decode(content)
        except ContentDecodeError as e:
            return self._failure(e.message)

        records = iter_csv_records(text)
        first = next(records, None)
        if first is None or not is_raindrop_file(first[1]):
            return self._failure("Invalid CSV format. This does not appear to be a Raindrop.io export.")

        columns = CsvHeader.parse(first[1]).resolve(CSV_COLUMNS)
        if columns["url"] is None:
            return self._failure("CSV must have a URL column")

        result = self._new_result()

        for line_number, record in records:
            if not record.strip():
                continue
            result.total += 1

            try:
                self._parse_row(line_number, split_csv_line(record), columns, result)
            except Exception as e:
                self._logger.debug(f"Row {line_number} failed: {e}")
                result.fail(f"Row {line_number}", str(e))

        if result.total == 0:
            result.warn("No items found in Raindrop.io export.")

        return result.build()

    def _parse_row(
        self,
        line_number: int,
        values: list[str],
        columns: dict[str, int | None],
        result: ResultBuilder,
    ) -> None:
        def get(name: str) -> str | None:
            return cell(values, columns[name]) or None

        raw_url = get("url")
        title = get("title")

        url = normalize_url(raw_url)
        if url is None:
            result.fail(title or raw_url or f"Row {line_number}", f"Invalid URL: {raw_url or 'empty'}")
            return

        folder = get("folder")
        explicit_tags = (get("tags") or "").split(",")
        favorite = get("favorite")

        result.add(
            self._create_item(
                title=sanitize_title(title or url),
                url=url,
                body=build_body(get("note"), get("excerpt"), get("highlights")),
                tags=normalize_tags(explicit_tags + folder_path_to_tags(folder)),
                created_at=parse_date(get("created")),
                metadata={
                    "folder_path": folder,
                    "original_id": get("id"),
                    "cover": get("cover"),
                    "favorite": favorite.lower() == "true" if favorite else None,
                },
            )
        )
