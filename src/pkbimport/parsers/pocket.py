"""Pocket export parsers for pkbimport.

Pocket has shipped two export formats over the years:

- HTML: ``<h1>Unread</h1><ul><li><a href=... time_added=... tags=...>``
  followed by the same list under a "Read Archive" heading
- CSV: ``title,url,time_added,tags,status`` with columns that have been
  renamed and reordered between releases, so they are located by header name

Typical usage:
    >>> from pkbimport.parsers.pocket import PocketCsvParser
    >>>
    >>> result = PocketCsvParser().parse(Path("part_000000.csv").read_text())
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import ClassVar

from bs4 import Tag

from pkbimport.core.models import ContentType, ExportFormat
from pkbimport.detection import is_pocket_csv, is_pocket_file
from pkbimport.parsers.base import (
    BaseParser,
    ContentDecodeError,
    ParseResult,
    RawContent,
    ResultBuilder,
    register_parser,
)
from pkbimport.parsers.bookmarks import anchor_label, make_soup
from pkbimport.utils.csvline import CsvHeader, cell, iter_csv_records, split_csv_line
from pkbimport.utils.normalize import (
    decode_html_entities,
    normalize_tags,
    normalize_url,
    parse_date,
    sanitize_title,
)

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "unknown"

CSV_COLUMNS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {
        "url": ("url", "link"),
        "title": ("title", "name"),
        "tags": ("tags", "tag"),
        "date": ("date", "time_added", "added"),
        "status": ("status",),
    }
)

_TAG_SEPARATORS_RE = re.compile(r"[,|;]")


def _section_name(heading_text: str) -> str | None:
    text = heading_text.strip().lower()
    if text.startswith("unread"):
        return "unread"
    if text.startswith("read"):
        return "read"
    return None


def get_section(anchor: Tag) -> str:
    """Find the Unread/Read section an item is listed under.

    The nearest preceding section heading of the anchor, or of any of its
    ancestors, decides. Items before any heading are "unknown".
    """
    node: Tag | None = anchor
    while node is not None:
        for heading in node.find_previous_siblings("h1"):
            section = _section_name(heading.get_text(" ", strip=True))
            if section:
                return section
        node = node.parent
    return DEFAULT_SECTION


@register_parser
class PocketHtmlParser(BaseParser):
    """Parser for Pocket's HTML export (``ril_export.html``)."""

    format: ClassVar[ExportFormat] = ExportFormat.POCKET_HTML
    content_type: ClassVar[ContentType] = ContentType.LINK
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = {".html", ".htm"}
    description: ClassVar[str] = "Pocket saved articles (HTML export)"

    def can_parse(self, content: RawContent) -> bool:
        return is_pocket_file(content)

    def parse(self, content: RawContent) -> ParseResult:
        try:
            html = self._decode(content)
        except ContentDecodeError as e:
            return self._failure(e.message)

        result = self._new_result()

        try:
            anchors = make_soup(html).find_all("a")
        except Exception as e:
            return self._failure(f"Failed to parse Pocket export: {e}")

        result.total = len(anchors)
        if not anchors:
            if is_pocket_file(html):
                result.warn("No items found in Pocket export.")
            else:
                result.warn(
                    "This does not appear to be a Pocket export file. Please export from Pocket settings."
                )

        for anchor in anchors:
            try:
                self._parse_anchor(anchor, result)
            except Exception as e:
                self._logger.debug(f"Pocket item failed: {e}")
                result.fail(anchor_label(anchor), str(e))

        return result.build()

    def _parse_anchor(self, anchor: Tag, result: ResultBuilder) -> None:
        href = (anchor.get("href") or "").strip()
        if not href:
            result.skip()
            return

        url = normalize_url(href)
        if url is None:
            result.fail(anchor_label(anchor), f"Invalid URL: {href}")
            return

        tags_attr = anchor.get("tags") or ""

        result.add(
            self._create_item(
                title=sanitize_title(decode_html_entities(anchor.get_text())),
                url=url,
                tags=normalize_tags(tags_attr.split(",")),
                created_at=parse_date(anchor.get("time_added")),
                metadata={"section": get_section(anchor)},
            )
        )


@register_parser
class PocketCsvParser(BaseParser):
    """Parser for Pocket's CSV export.

    Columns are resolved by header name, so ``link`` works for ``url`` and
    ``time_added`` for ``date``. A missing URL column fails the whole file.
    """

    format: ClassVar[ExportFormat] = ExportFormat.POCKET_CSV
    content_type: ClassVar[ContentType] = ContentType.LINK
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = {".csv"}
    description: ClassVar[str] = "Pocket saved articles (CSV export)"

    def can_parse(self, content: RawContent) -> bool:
        return is_pocket_csv(content)

    def parse(self, content: RawContent) -> ParseResult:
        try:
            text = self._decode(content)
        except ContentDecodeError as e:
            return self._failure(e.message)

        records = iter_csv_records(text)
        first = next(records, None)
        header_line = first[1].lower() if first else ""

        if "url" not in header_line and "title" not in header_line:
            return self._failure("Invalid CSV format. Expected columns: url, title, tags")

        columns = CsvHeader.parse(header_line).resolve(CSV_COLUMNS)
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
            result.warn("No items found in Pocket CSV export.")

        return result.build()

    def _parse_row(
        self,
        line_number: int,
        values: list[str],
        columns: dict[str, int | None],
        result: ResultBuilder,
    ) -> None:
        raw_url = cell(values, columns["url"])
        title = cell(values, columns["title"])

        url = normalize_url(raw_url)
        if url is None:
            result.fail(title or raw_url or f"Row {line_number}", f"Invalid URL: {raw_url or 'empty'}")
            return

        tags_cell = cell(values, columns["tags"]) or ""

        result.add(
            self._create_item(
                title=sanitize_title(title or url),
                url=url,
                tags=normalize_tags(_TAG_SEPARATORS_RE.split(tags_cell)),
                created_at=parse_date(cell(values, columns["date"])),
                metadata={"section": cell(values, columns["status"]) or None},
            )
        )
