"""Evernote ENEX parser for pkbimport.

An ENEX file is an XML document with one ``<note>`` per note. Each note body
is ENML (Evernote's restricted XHTML dialect) wrapped in a CDATA section
inside ``<content>``. Exports in the wild are frequently not well-formed XML
(stray ampersands, truncated files, ENML that was entity-escaped instead of
wrapped in CDATA), and a validating XML parser rejects the whole file over
one bad note. Notes and their fields are therefore located with bounded,
non-greedy pattern matches, so a damaged note costs only itself.

ENEX structure:
    <en-export>
      <note>
        <title>...</title>
        <content><![CDATA[<en-note>...</en-note>]]></content>
        <created>20240115T143022Z</created>
        <tag>...</tag>
        <note-attributes><source-url>...</source-url></note-attributes>
      </note>
    </en-export>
"""

from __future__ import annotations

import functools
import logging
import re
from datetime import datetime, timezone
from typing import ClassVar

from pkbimport.core.models import ContentType, ExportFormat, ImportItem
from pkbimport.detection import is_evernote_file
from pkbimport.parsers.base import (
    BaseParser,
    ContentDecodeError,
    ParseResult,
    RawContent,
    register_parser,
)
from pkbimport.utils.normalize import (
    DEFAULT_TITLE,
    decode_html_entities,
    is_plausible_date,
    normalize_tags,
    parse_date,
    sanitize_title,
    strip_html,
)

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE | re.DOTALL

_EXPORT_MARKER_RE = re.compile(r"<en-export|<note[\s>]", re.IGNORECASE)
_NOTE_RE = re.compile(r"<note(\s[^>]*)?>(.*?)</note>", _FLAGS)
_NOTE_OPEN_RE = re.compile(r"<note[\s>]", re.IGNORECASE)
_CONTENT_OPEN_RE = re.compile(r"<content[^>]*>", re.IGNORECASE)
_CONTENT_BLOCK_RE = re.compile(r"<content[^>]*>.*?</content>", _FLAGS)
_CDATA_OPEN = "<![CDATA["
_CDATA_CLOSE = "]]>"
_NOTEBOOK_ATTR_RE = re.compile(r"""\bnotebook\s*=\s*["']([^"']*)["']""", re.IGNORECASE)
_COMPACT_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z?$")

# ENML elements with no HTML equivalent
_EN_NOTE_RE = re.compile(r"</?en-note[^>]*>", re.IGNORECASE)
_EN_TODO_CHECKED_RE = re.compile(r"""<en-todo\b[^>]*\bchecked\s*=\s*["']true["'][^>]*>""", re.IGNORECASE)
_EN_TODO_RE = re.compile(r"<en-todo\b[^>]*>", re.IGNORECASE)
_EN_MEDIA_RE = re.compile(r"<en-media\b[^>]*>", re.IGNORECASE)
_EN_CRYPT_RE = re.compile(r"<en-crypt\b[^>]*>.*?</en-crypt>", _FLAGS)


class MalformedNoteError(ValueError):
    """A single note's markup cannot be recovered."""

    pass


@functools.lru_cache(maxsize=None)
def _element_re(tag: str) -> re.Pattern[str]:
    return re.compile(rf"<{re.escape(tag)}(?:\s[^>]*)?>(.*?)</{re.escape(tag)}>", _FLAGS)


def extract_value(xml: str, tag: str) -> str:
    """Text of the first ``<tag>`` element, or "" if absent."""
    match = _element_re(tag).search(xml)
    return match.group(1).strip() if match else ""


def extract_values(xml: str, tag: str) -> list[str]:
    """Text of every ``<tag>`` element."""
    return [m.group(1).strip() for m in _element_re(tag).finditer(xml)]


def extract_content(note_xml: str) -> str:
    """Return the raw ENML of a note, unwrapped from CDATA.

    Raises:
        MalformedNoteError: If the content block or CDATA section never closes.
    """
    opening = _CONTENT_OPEN_RE.search(note_xml)
    if opening is None:
        return ""

    start = opening.end()
    end = note_xml.lower().find("</content>", start)
    if end == -1:
        raise MalformedNoteError("Unterminated <content> block")
    content = note_xml[start:end].strip()

    cdata_start = content.find(_CDATA_OPEN)
    if cdata_start != -1:
        cdata_end = content.find(_CDATA_CLOSE, cdata_start)
        if cdata_end == -1:
            raise MalformedNoteError("Unterminated CDATA section")
        return content[cdata_start + len(_CDATA_OPEN) : cdata_end]

    # Some exporters escape the ENML instead of wrapping it
    if "&lt;" in content:
        return decode_html_entities(content)
    return content


def enml_to_text(enml: str) -> str:
    """Convert ENML to plain text.

    Checkboxes become ``[x] ``/``[ ] `` prefixes, attachments and encrypted
    blocks become placeholders, and the rest is treated as HTML.

    Example:
        >>> enml_to_text('<en-note><en-todo checked="true"/>Done<br/><en-todo/>Open</en-note>')
        '[x] Done\\n[ ] Open'
    """
    if not enml:
        return ""

    text = _EN_NOTE_RE.sub("", enml)
    text = _EN_TODO_CHECKED_RE.sub("[x] ", text)
    text = _EN_TODO_RE.sub("[ ] ", text)
    text = _EN_MEDIA_RE.sub("[attachment]", text)
    text = _EN_CRYPT_RE.sub("[encrypted content]", text)
    return strip_html(text)


def parse_evernote_date(value: str | None) -> datetime | None:
    """Parse Evernote's compact ``YYYYMMDDThhmmssZ`` timestamps.

    Anything else goes through the generic date parser. Both paths reject
    implausible dates.
    """
    if not value:
        return None

    match = _COMPACT_DATE_RE.match(value.strip())
    if not match:
        return parse_date(value)

    try:
        dt = datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError:
        return None
    return dt if is_plausible_date(dt) else None


@register_parser
class EvernoteParser(BaseParser):
    """Parser for Evernote ENEX exports."""

    format: ClassVar[ExportFormat] = ExportFormat.EVERNOTE_ENEX
    content_type: ClassVar[ContentType] = ContentType.NOTE
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = {".enex"}
    description: ClassVar[str] = "Evernote notes (ENEX export)"

    def can_parse(self, content: RawContent) -> bool:
        return is_evernote_file(content)

    def parse(self, content: RawContent) -> ParseResult:
        try:
            xml = self._decode(content)
        except ContentDecodeError as e:
            return self._failure(e.message)

        if not _EXPORT_MARKER_RE.search(xml):
            return self._failure("Invalid ENEX format. File does not contain Evernote export data.")

        result = self._new_result()

        for match in _NOTE_RE.finditer(xml):
            result.total += 1
            attributes, note_xml = match.group(1) or "", match.group(2)

            try:
                item = self._parse_note(note_xml, attributes)
            except Exception as e:
                label = extract_value(note_xml, "title") or f"Note {result.total}"
                self._logger.debug(f"Note {result.total} failed: {e}")
                result.fail(decode_html_entities(label), str(e))
                continue

            if item is None:
                result.skip()
            else:
                result.add(item)

        opened = len(_NOTE_OPEN_RE.findall(xml))
        if opened > result.total:
            result.warn(
                f"{opened - result.total} note(s) have no closing </note> tag; "
                f"the export may be truncated."
            )

        if result.total == 0:
            result.warn("No notes found in ENEX file. Make sure this is a valid Evernote export.")

        return result.build()

    def _parse_note(self, note_xml: str, attributes: str) -> ImportItem | None:
        """Build one item, or None for an empty untitled note."""
        # Fields are read outside the body so ENML can never shadow them
        fields_xml = _CONTENT_BLOCK_RE.sub("", note_xml)

        title = sanitize_title(decode_html_entities(extract_value(fields_xml, "title")))
        body = enml_to_text(extract_content(note_xml))

        if not body and title == DEFAULT_TITLE:
            return None

        created_at = parse_evernote_date(extract_value(fields_xml, "created")) or parse_evernote_date(
            extract_value(fields_xml, "updated")
        )

        notebook_match = _NOTEBOOK_ATTR_RE.search(attributes)
        source_url = extract_value(fields_xml, "source-url")

        return self._create_item(
            title=title,
            body=body,
            tags=normalize_tags(decode_html_entities(t) for t in extract_values(fields_xml, "tag")),
            created_at=created_at,
            metadata={
                "source_url": decode_html_entities(source_url) or None,
                "notebook": decode_html_entities(notebook_match.group(1)) if notebook_match else None,
            },
        )
