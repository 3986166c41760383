"""Shared normalization utilities for import parsers.

Pure, stateless helpers every parser leans on: title and tag cleanup, URL
validation, HTML flattening, entity decoding, lenient date parsing,
deduplication keys and batching. None of these raise on bad input; they return
a sentinel (``"Untitled"``, ``None``, an empty list) instead.

Example:
    >>> folder_path_to_tags("Bookmarks Bar/Development/JavaScript")
    ['development', 'javascript']
    >>> normalize_url("example.com")
    'https://example.com'
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Iterable, Sequence, TypeVar
from urllib.parse import urlsplit

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

T = TypeVar("T")

# =============================================================================
# Constants
# =============================================================================

DEFAULT_TITLE = "Untitled"
MAX_TITLE_LENGTH = 500
MAX_TAG_LENGTH = 50
ELLIPSIS = "..."

# Generic root folders browsers and exporters put above the user's own folders
EXCLUDED_FOLDERS: frozenset[str] = frozenset(
    {
        "bookmarks",
        "bookmarks bar",
        "bookmarks menu",
        "bookmarks toolbar",
        "other bookmarks",
        "mobile bookmarks",
        "favorites",
        "favorites bar",
        "unfiled bookmarks",
        "root",
        "export",
        "exported",
    }
)

HTML_ENTITIES: MappingProxyType[str, str] = MappingProxyType(
    {
        "amp": "&",
        "lt": "<",
        "gt": ">",
        "quot": '"',
        "apos": "'",
        "nbsp": " ",
        "copy": "©",
        "reg": "®",
        "trade": "™",
        "ndash": "–",
        "mdash": "—",
        "lsquo": "‘",
        "rsquo": "’",
        "ldquo": "“",
        "rdquo": "”",
        "hellip": "…",
    }
)

# Plausibility window for parsed dates
MIN_DATE = datetime(1990, 1, 1, tzinfo=timezone.utc)
MAX_FUTURE_SKEW = timedelta(days=1)

# Numeric timestamps above this are milliseconds, at or below are seconds
MILLISECONDS_THRESHOLD = 10**12

_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_TAG_INVALID_CHARS_RE = re.compile(r"[^a-z0-9\-_]")
_HYPHEN_RUN_RE = re.compile(r"-+")
_FOLDER_SEPARATORS_RE = re.compile(r"[/\\>]+")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_ENTITY_RE = re.compile(r"&(#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_LIST_ITEM_RE = re.compile(r"<li\b[^>]*>", re.IGNORECASE)
_BLOCK_TAG_RE = re.compile(r"<(?:br|p|div|h[1-6]|tr)\b[^>]*>", re.IGNORECASE)
_ANY_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n")
_HAS_DATE_TEXT_RE = re.compile(r"[a-zA-Z-]")

# WHATWG forbidden host code points
_FORBIDDEN_HOST_CHARS = frozenset("\x00\t\n\r #/:<>?@[\\]^|%")
_IPV6_HOST_RE = re.compile(r"^[0-9a-fA-F:.]+$")


# =============================================================================
# Titles and Tags
# =============================================================================


def sanitize_title(title: str | None) -> str:
    """Clean a title for display.

    Collapses whitespace runs, strips control characters and truncates to
    500 characters with an ellipsis.

    Args:
        title: Raw title, possibly None.

    Returns:
        Cleaned title, or "Untitled" when nothing usable remains.

    Examples:
        >>> sanitize_title("  Hello \\n  World  ")
        'Hello World'
        >>> sanitize_title(None)
        'Untitled'
    """
    if not title:
        return DEFAULT_TITLE

    sanitized = _WHITESPACE_RE.sub(" ", title).strip()
    sanitized = _CONTROL_CHARS_RE.sub("", sanitized).strip()

    if len(sanitized) > MAX_TITLE_LENGTH:
        sanitized = sanitized[: MAX_TITLE_LENGTH - len(ELLIPSIS)] + ELLIPSIS

    return sanitized or DEFAULT_TITLE


def normalize_tag(tag: str) -> str:
    """Normalize one tag to lowercase hyphenated form.

    Args:
        tag: Raw tag text.

    Returns:
        Normalized tag, possibly empty.

    Examples:
        >>> normalize_tag("  Machine Learning!! ")
        'machine-learning'
    """
    normalized = tag.lower().strip()
    normalized = _TAG_INVALID_CHARS_RE.sub("-", normalized)
    normalized = _HYPHEN_RUN_RE.sub("-", normalized).strip("-")

    if len(normalized) > MAX_TAG_LENGTH:
        # Truncation can expose a trailing hyphen
        normalized = normalized[:MAX_TAG_LENGTH].strip("-")

    return normalized


def normalize_tags(tags: Iterable[str | None]) -> list[str]:
    """Normalize a collection of tags, dropping empties and duplicates.

    Args:
        tags: Raw tags; None entries are ignored.

    Returns:
        Unique normalized tags.
    """
    seen: dict[str, None] = {}
    for tag in tags:
        if not tag:
            continue
        normalized = normalize_tag(tag)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def folder_path_to_tags(folder_path: str | None) -> list[str]:
    """Turn a folder hierarchy into tags.

    Splits on ``/``, ``\\`` or ``>`` and drops generic root folders such as
    "Bookmarks Bar" or "Favorites".

    Examples:
        >>> folder_path_to_tags("Bookmarks Bar/Development/JavaScript")
        ['development', 'javascript']
    """
    if not folder_path:
        return []

    parts = []
    for part in _FOLDER_SEPARATORS_RE.split(folder_path):
        segment = part.strip().lower()
        if segment and segment not in EXCLUDED_FOLDERS:
            parts.append(segment)

    return normalize_tags(parts)


# =============================================================================
# URLs
# =============================================================================


def _is_valid_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False

    host = parts.hostname
    if not host:
        return False
    if ":" in host:
        return bool(_IPV6_HOST_RE.match(host))
    return not any(ch in _FORBIDDEN_HOST_CHARS for ch in host)


def normalize_url(url: str | None) -> str | None:
    """Validate a URL, adding ``https://`` when the scheme is missing.

    Args:
        url: Raw URL text.

    Returns:
        Absolute URL, or None if the result is not a valid URL.

    Examples:
        >>> normalize_url("  example.com/page ")
        'https://example.com/page'
        >>> normalize_url("not a url") is None
        True
    """
    if not url:
        return None

    normalized = url.strip()
    if not normalized:
        return None

    if not _SCHEME_RE.match(normalized):
        normalized = "https://" + normalized

    if _is_valid_url(normalized):
        return normalized
    return None


def extract_domain(url: str | None) -> str | None:
    """Return the host of a URL without a leading ``www.``.

    Examples:
        >>> extract_domain("https://www.example.com/path")
        'example.com'
    """
    if not url:
        return None

    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None

    if not host:
        return None
    return re.sub(r"^www\.", "", host)


# =============================================================================
# HTML
# =============================================================================


def _replace_entity(match: re.Match[str]) -> str:
    name = match.group(1)

    if name.startswith("#"):
        try:
            code = int(name[2:], 16) if name[1] in "xX" else int(name[1:])
        except ValueError:
            return match.group(0)
        if code == 160:
            return " "
        if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
            return match.group(0)
        return chr(code)

    return HTML_ENTITIES.get(name.lower(), match.group(0))


def decode_html_entities(text: str | None) -> str:
    """Decode named, decimal and hexadecimal HTML entities.

    Only the names in ``HTML_ENTITIES`` are decoded; unknown names are left
    untouched. Decoding is single-pass, so ``&amp;lt;`` becomes ``&lt;``.

    Examples:
        >>> decode_html_entities("Tom &amp; Jerry &#8212; &#x2F;")
        'Tom & Jerry \\u2014 /'
    """
    if not text:
        return ""
    return _ENTITY_RE.sub(_replace_entity, text)


def strip_html(html: str | None) -> str:
    """Flatten HTML to plain text, keeping rough block structure.

    Block elements become newlines, list items become bullets, every other tag
    is dropped, entities are decoded and blank-line runs collapse to one.

    Examples:
        >>> strip_html("<p>Hello</p><ul><li>One</li><li>Two</li></ul>")
        'Hello\\n• One\\n• Two'
    """
    if not html:
        return ""

    text = _SCRIPT_STYLE_RE.sub("", html)
    text = _COMMENT_RE.sub("", text)
    text = _LIST_ITEM_RE.sub("\n• ", text)
    text = _BLOCK_TAG_RE.sub("\n", text)
    text = _ANY_TAG_RE.sub("", text)
    text = decode_html_entities(text)
    text = _BLANK_LINES_RE.sub("\n\n", text)

    return text.strip()


# =============================================================================
# Keys, Text, Dates, Batches
# =============================================================================


def generate_dedup_key(item: Any) -> str:
    """Derive the deduplication key for an item.

    Items with a valid URL are keyed by the normalized URL, everything else by
    the lower-cased title.

    Examples:
        >>> from types import SimpleNamespace
        >>> generate_dedup_key(SimpleNamespace(url="example.com", title="X"))
        'url:https://example.com'
    """
    url = normalize_url(getattr(item, "url", None))
    if url:
        return f"url:{url}"
    title = getattr(item, "title", None) or ""
    return f"title:{title.lower().strip()}"


def truncate_text(text: str, max_length: int) -> str:
    """Truncate text, preferring a word boundary near the limit.

    Backs off to the last space when that space lies within the final 20% of
    the limit; appends an ellipsis either way.
    """
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    last_space = truncated.rfind(" ")

    if last_space > max_length * 0.8:
        return truncated[:last_space] + ELLIPSIS
    return truncated + ELLIPSIS


def is_plausible_date(dt: datetime) -> bool:
    """True when ``dt`` lies between 1990 and one day from now."""
    now = datetime.now(timezone.utc)
    return MIN_DATE <= dt <= now + MAX_FUTURE_SKEW


def _from_timestamp(value: float) -> datetime | None:
    millis = value if value > MILLISECONDS_THRESHOLD else value * 1000
    try:
        dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return dt if is_plausible_date(dt) else None


def _from_text(text: str) -> datetime | None:
    try:
        dt = date_parser.parse(text)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt if is_plausible_date(dt) else None


def parse_date(value: str | int | float | None) -> datetime | None:
    """Parse a date from the loose formats exports use.

    Accepts epoch seconds or milliseconds (as numbers or digit-only strings)
    and free-form date strings. Anything before 1990 or more than a day in the
    future is treated as a parse error.

    Args:
        value: Raw date value.

    Returns:
        Timezone-aware datetime, or None.

    Examples:
        >>> parse_date(1700000000) == parse_date(1700000000000)
        True
        >>> parse_date("1800-01-01") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return _from_timestamp(value)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if _HAS_DATE_TEXT_RE.search(text):
        return _from_text(text)

    if text.isdigit():
        number = int(text)
        return _from_timestamp(number) if number > 0 else None

    return _from_text(text)


def batch_array(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """Split items into chunks of ``batch_size``; the last may be smaller.

    Examples:
        >>> batch_array([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]
