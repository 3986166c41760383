"""Browser bookmarks parser for pkbimport.

Parses the Netscape Bookmark File Format that Chrome, Firefox, Safari and Edge
all export. The format nests folders as ``<DT><H3>Folder</H3><DL>...</DL>``,
but never closes its ``<DT>`` and ``<p>`` tags, so the markup is parsed with
html5lib, which applies the HTML5 implied-end-tag rules the way a browser does.

Typical usage:
    >>> from pkbimport.parsers.bookmarks import BookmarksParser
    >>>
    >>> parser = BookmarksParser()
    >>> result = parser.parse(Path("bookmarks.html").read_bytes())
    >>> print(f"Parsed {len(result.items)} bookmarks")
"""

from __future__ import annotations

import logging
from typing import ClassVar

from bs4 import BeautifulSoup, Tag

from pkbimport.core.models import ContentType, ExportFormat
from pkbimport.detection import is_bookmarks_file
from pkbimport.parsers.base import (
    BaseParser,
    ContentDecodeError,
    ParseResult,
    RawContent,
    ResultBuilder,
    register_parser,
)
from pkbimport.utils.normalize import (
    decode_html_entities,
    folder_path_to_tags,
    normalize_url,
    parse_date,
    sanitize_title,
)

logger = logging.getLogger(__name__)

HTML_TREE_BUILDER = "html5lib"

# Hrefs that run code, embed data, or only exist inside the browser
NON_NAVIGABLE_SCHEMES = ("javascript:", "data:", "vbscript:", "place:", "about:")

FOLDER_HEADING = "h3"


def make_soup(html: str) -> BeautifulSoup:
    """Parse export markup into a browser-equivalent tree."""
    return BeautifulSoup(html, HTML_TREE_BUILDER)


def anchor_label(anchor: Tag) -> str:
    """Best-effort label for error messages."""
    return anchor.get_text(strip=True) or "Unknown"


def get_folder_path(anchor: Tag) -> str:
    """Rebuild the folder hierarchy above a bookmark.

    Folder headings are not ancestors of their entries: each ``<H3>`` is the
    previous sibling of the ``<DL>`` holding the folder's entries. Ascending
    from the anchor, every level contributes the headings that precede it.

    Returns:
        Folder names joined with "/", outermost first ("" at the root).
    """
    parts: list[str] = []
    node: Tag | None = anchor

    while node is not None and node.parent is not None:
        for heading in node.find_previous_siblings(FOLDER_HEADING):
            name = heading.get_text(strip=True)
            if name:
                parts.insert(0, decode_html_entities(name))
        node = node.parent

    return "/".join(parts)


@register_parser
class BookmarksParser(BaseParser):
    """Parser for Netscape-format browser bookmark exports.

    Every ``<A>`` element becomes a link item; the folder it sits in is kept as
    ``metadata.folder_path`` and turned into tags.
    """

    format: ClassVar[ExportFormat] = ExportFormat.BOOKMARKS_HTML
    content_type: ClassVar[ContentType] = ContentType.LINK
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = {".html", ".htm"}
    description: ClassVar[str] = "Browser bookmarks (Netscape bookmark file)"

    def can_parse(self, content: RawContent) -> bool:
        return is_bookmarks_file(content)

    def parse(self, content: RawContent) -> ParseResult:
        try:
            html = self._decode(content)
        except ContentDecodeError as e:
            return self._failure(e.message)

        result = self._new_result()

        try:
            anchors = make_soup(html).find_all("a")
        except Exception as e:
            return self._failure(f"Failed to parse bookmarks file: {e}")

        result.total = len(anchors)
        if not anchors:
            result.warn("No bookmarks found in file. Make sure this is a valid bookmarks HTML export.")

        for anchor in anchors:
            try:
                self._parse_anchor(anchor, result)
            except Exception as e:
                self._logger.debug(f"Bookmark failed: {e}")
                result.fail(anchor_label(anchor), str(e))

        return result.build()

    def _parse_anchor(self, anchor: Tag, result: ResultBuilder) -> None:
        href = (anchor.get("href") or "").strip()
        if not href or href.lower().startswith(NON_NAVIGABLE_SCHEMES):
            result.skip()
            return

        url = normalize_url(href)
        if url is None:
            result.fail(anchor_label(anchor), f"Invalid URL: {href}")
            return

        folder_path = get_folder_path(anchor)

        result.add(
            self._create_item(
                title=sanitize_title(decode_html_entities(anchor.get_text())),
                url=url,
                tags=folder_path_to_tags(folder_path),
                created_at=parse_date(anchor.get("add_date")),
                metadata={
                    "folder_path": folder_path or None,
                    "icon": anchor.get("icon") or None,
                },
            )
        )
