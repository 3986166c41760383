"""Notion export parser for pkbimport.

Notion's "Export workspace" produces a ZIP of pages, either as HTML or as
Markdown, one file per page, nested in folders that mirror the page tree.
Filenames carry a 32-character page id (``Meeting Notes 3f2a...c9.md``), which
is stripped when the title has to come from the filename.

The archive is read entry by entry. ``parse_async`` moves opening the archive
and decompressing each entry onto worker threads so a large export does not
block the event loop.

Typical usage:
    >>> from pkbimport.parsers.notion import NotionParser
    >>>
    >>> result = asyncio.run(NotionParser().parse_async(Path("export.zip").read_bytes()))
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
import zipfile
from typing import ClassVar
from urllib.parse import unquote

from pkbimport.core.models import ContentType, ExportFormat, ImportItem
from pkbimport.detection import NOTION_PAGE_EXTENSIONS, is_archive_noise, is_notion_zip
from pkbimport.parsers.base import (
    BaseParser,
    ParseResult,
    ParserError,
    RawContent,
    ResultBuilder,
    register_parser,
)
from pkbimport.parsers.bookmarks import make_soup
from pkbimport.utils.normalize import (
    DEFAULT_TITLE,
    decode_html_entities,
    folder_path_to_tags,
    normalize_tags,
    sanitize_title,
    strip_html,
)

logger = logging.getLogger(__name__)

HTML_EXTENSIONS = (".html", ".htm")

_EXTENSION_RE = re.compile(r"\.(?:html?|md|markdown)$", re.IGNORECASE)
_PAGE_ID_SUFFIX_RE = re.compile(r"\s+[0-9a-f]{32}$", re.IGNORECASE)
_PAREN_ID_SUFFIX_RE = re.compile(r"\s+\([0-9a-f-]+\)$", re.IGNORECASE)
_INLINE_TAG_RE = re.compile(r"#([a-zA-Z][a-zA-Z0-9_-]*)")

INLINE_TAG_MIN_LENGTH = 2
INLINE_TAG_MAX_LENGTH = 30


class InvalidArchiveError(ParserError):
    """Content is not a readable ZIP archive."""

    pass


def open_archive(content: RawContent) -> zipfile.ZipFile:
    """Open in-memory ZIP content.

    Raises:
        InvalidArchiveError: If the content is text or not a valid archive.
    """
    if isinstance(content, str):
        raise InvalidArchiveError("Notion exports must be read as binary ZIP data", parser="notion")
    try:
        return zipfile.ZipFile(io.BytesIO(bytes(content)))
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise InvalidArchiveError(f"Failed to parse Notion export: {e}", parser="notion") from e


def page_entries(archive: zipfile.ZipFile) -> list[zipfile.ZipInfo]:
    """HTML and Markdown pages, without directories or OS metadata files."""
    return [
        info
        for info in archive.infolist()
        if not info.is_dir()
        and not is_archive_noise(info.filename)
        and info.filename.lower().endswith(NOTION_PAGE_EXTENSIONS)
    ]


def title_from_filename(file_name: str) -> str:
    """Recover a page title from Notion's ``Name <page id>.ext`` filenames.

    Examples:
        >>> title_from_filename("Reading List 0123456789abcdef0123456789abcdef.md")
        'Reading List'
        >>> title_from_filename("My%20Page.html")
        'My Page'
    """
    name = _EXTENSION_RE.sub("", file_name)
    name = _PAGE_ID_SUFFIX_RE.sub("", name)
    name = _PAREN_ID_SUFFIX_RE.sub("", name)
    return unquote(name).strip() or DEFAULT_TITLE


def extract_inline_tags(text: str) -> list[str]:
    """Collect ``#hashtag`` tokens of a plausible tag length."""
    return [
        tag
        for tag in _INLINE_TAG_RE.findall(text)
        if INLINE_TAG_MIN_LENGTH <= len(tag) <= INLINE_TAG_MAX_LENGTH
    ]


def _html_title_and_body(html: str, file_name: str) -> tuple[str, str]:
    soup = make_soup(html)

    title = ""
    for candidate in (soup.select_one("h1.page-title"), soup.title, soup.find("h1")):
        if candidate is not None:
            title = candidate.get_text(strip=True)
            if title:
                break
    title = title or title_from_filename(file_name)

    container = soup.find("article") or soup.select_one(".page-body") or soup.body or soup
    title_element = container.select_one("h1.page-title") or container.find("header") or container.find("h1")
    if title_element is not None:
        title_element.decompose()

    return sanitize_title(decode_html_entities(title)), strip_html(container.decode_contents())


def _markdown_title_and_body(markdown: str, file_name: str) -> tuple[str, str]:
    lines = markdown.split("\n")
    title = ""
    body_start = 0

    # Only a heading inside the leading blank lines counts as the page title
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip()
            body_start = index + 1
            break
        if stripped:
            break

    body = "\n".join(lines[body_start:]).strip()
    return sanitize_title(title or title_from_filename(file_name)), body


@register_parser
class NotionParser(BaseParser):
    """Parser for Notion workspace exports (ZIP of HTML or Markdown)."""

    format: ClassVar[ExportFormat] = ExportFormat.NOTION_ZIP
    content_type: ClassVar[ContentType] = ContentType.NOTE
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = {".zip"}
    description: ClassVar[str] = "Notion pages (ZIP export with HTML/Markdown)"

    def can_parse(self, content: RawContent) -> bool:
        return is_notion_zip(content)

    def parse(self, content: RawContent) -> ParseResult:
        try:
            archive = open_archive(content)
        except InvalidArchiveError as e:
            return self._failure(e.message)

        with archive:
            entries = page_entries(archive)
            result = self._start(entries)
            for info in entries:
                try:
                    self._add_page(info.filename, archive.read(info), result)
                except Exception as e:
                    self._entry_failed(info.filename, e, result)

        return result.build()

    async def parse_async(self, content: RawContent) -> ParseResult:
        try:
            archive = await asyncio.to_thread(open_archive, content)
        except InvalidArchiveError as e:
            return self._failure(e.message)

        with archive:
            entries = page_entries(archive)
            result = self._start(entries)
            for info in entries:
                try:
                    data = await asyncio.to_thread(archive.read, info)
                    self._add_page(info.filename, data, result)
                except Exception as e:
                    self._entry_failed(info.filename, e, result)

        return result.build()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _start(self, entries: list[zipfile.ZipInfo]) -> ResultBuilder:
        result = self._new_result()
        result.total = len(entries)
        if not entries:
            result.warn(
                "No content files found in ZIP. Make sure this is a Notion export "
                "with HTML or Markdown format."
            )
        return result

    def _entry_failed(self, path: str, error: Exception, result: ResultBuilder) -> None:
        self._logger.debug(f"Page {path} failed: {error}")
        result.fail(path, str(error))

    def _add_page(self, path: str, data: bytes, result: ResultBuilder) -> None:
        item = self._parse_page(path, self._decode(data))
        if item is None:
            result.skip()
        else:
            result.add(item)

    def _parse_page(self, path: str, text: str) -> ImportItem | None:
        """Build one note, or None for an empty untitled page."""
        folder_path, _, file_name = path.rpartition("/")

        if file_name.lower().endswith(HTML_EXTENSIONS):
            title, body = _html_title_and_body(text, file_name)
        else:
            title, body = _markdown_title_and_body(text, file_name)

        if not body and title == DEFAULT_TITLE:
            return None

        return self._create_item(
            title=title,
            body=body,
            tags=normalize_tags(folder_path_to_tags(folder_path) + extract_inline_tags(body)),
            metadata={
                "folder_path": folder_path or None,
                "original_file_name": file_name,
            },
        )
