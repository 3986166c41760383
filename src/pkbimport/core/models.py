"""Canonical item model for knowledge-base imports.

This module defines the ``ImportItem``: the single, source-agnostic record every
parser converges on. A bookmark from Chrome, a Pocket article, an Evernote note
and a Notion page all end up as an ``ImportItem``; after parsing you should not
be able to tell where an item came from except by checking ``metadata.source``.

The design prioritizes:
- Validity by construction (non-blank titles, links always carry a URL)
- Deduplication support (``dedup_key``)
- Immutability (items are frozen once a parser has built them)

Example:
    >>> item = ImportItem(
    ...     title="Example Site",
    ...     url="https://example.com",
    ...     type=ContentType.LINK,
    ...     metadata=ItemMetadata(source=ImportSource.BOOKMARKS),
    ... )
    >>> item.dedup_key
    'url:https://example.com'
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Enums
# =============================================================================


class ImportSource(str, Enum):
    """Third-party services whose exports can be imported.

    Attributes:
        BOOKMARKS: Browser bookmark export (Netscape bookmark file)
        POCKET: Pocket export (HTML or CSV)
        NOTION: Notion workspace export (ZIP of HTML/Markdown)
        EVERNOTE: Evernote ENEX archive
        TWITTER: X/Twitter archive ``bookmarks.js``
        RAINDROP: Raindrop.io CSV export
    """

    BOOKMARKS = "bookmarks"
    POCKET = "pocket"
    NOTION = "notion"
    EVERNOTE = "evernote"
    TWITTER = "twitter"
    RAINDROP = "raindrop"


class ContentType(str, Enum):
    """Kind of content an item becomes after import."""

    NOTE = "note"
    LINK = "link"


class ExportFormat(str, Enum):
    """Concrete file formats, one per parser variant.

    Pocket ships two formats, so there is one more format than source.
    """

    BOOKMARKS_HTML = "bookmarks_html"
    POCKET_HTML = "pocket_html"
    POCKET_CSV = "pocket_csv"
    EVERNOTE_ENEX = "evernote_enex"
    NOTION_ZIP = "notion_zip"
    TWITTER_JS = "twitter_js"
    RAINDROP_CSV = "raindrop_csv"

    @property
    def source(self) -> ImportSource:
        """Source service this format belongs to."""
        return _FORMAT_SOURCES[self]


_FORMAT_SOURCES: dict[ExportFormat, ImportSource] = {
    ExportFormat.BOOKMARKS_HTML: ImportSource.BOOKMARKS,
    ExportFormat.POCKET_HTML: ImportSource.POCKET,
    ExportFormat.POCKET_CSV: ImportSource.POCKET,
    ExportFormat.EVERNOTE_ENEX: ImportSource.EVERNOTE,
    ExportFormat.NOTION_ZIP: ImportSource.NOTION,
    ExportFormat.TWITTER_JS: ImportSource.TWITTER,
    ExportFormat.RAINDROP_CSV: ImportSource.RAINDROP,
}


# =============================================================================
# Models
# =============================================================================


class ItemMetadata(BaseModel):
    """Provenance of an imported item.

    Source-specific fields (``icon``, ``section``, ``notebook``, ``source_url``,
    ``original_file_name``, ``cover``...) are accepted as extra attributes.

    Attributes:
        source: Service the item was exported from
        folder_path: Slash-joined folder hierarchy in the source, if any
        original_id: Identifier the source assigned to the item, if any
    """

    source: ImportSource
    folder_path: str | None = None
    original_id: str | None = None

    model_config = ConfigDict(extra="allow", frozen=True)

    def extras(self) -> dict[str, Any]:
        """Return only the source-specific fields."""
        return dict(self.model_extra or {})


class ImportItem(BaseModel):
    """Canonical, source-agnostic unit produced by every parser.

    Attributes:
        title: Display title, never blank ("Untitled" when unrecoverable)
        body: Plain-text body with markup already stripped
        url: Normalized absolute URL (required for links)
        tags: Normalized, de-duplicated tags
        type: Note or link
        created_at: Original creation time when the source records one
        metadata: Provenance (source, folder path, original id, extras)
    """

    title: str
    body: str | None = None
    url: str | None = None
    tags: list[str] = Field(default_factory=list)
    type: ContentType
    created_at: datetime | None = None
    metadata: ItemMetadata

    model_config = ConfigDict(frozen=True)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title must not be blank")
        return v

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: list[str]) -> list[str]:
        """Drop repeated tags, keeping the first occurrence."""
        return list(dict.fromkeys(t for t in v if t))

    @field_validator("created_at")
    @classmethod
    def ensure_timezone_aware(cls, v: datetime | None) -> datetime | None:
        """Assume UTC for naive datetimes."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def link_requires_url(self) -> "ImportItem":
        if self.type == ContentType.LINK and not self.url:
            raise ValueError("link items require a url")
        return self

    @property
    def source(self) -> ImportSource:
        return self.metadata.source

    @property
    def dedup_key(self) -> str:
        """Key used to recognize the same logical item across imports."""
        from pkbimport.utils.normalize import generate_dedup_key

        return generate_dedup_key(self)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (datetimes as ISO strings)."""
        return self.model_dump(mode="json", exclude_none=True)
