"""Export format detection for pkbimport.

This module decides which export format a file is before any parser runs.
Each detector sniffs structural markers in the first bytes of the content and
never attempts a full parse.

Detection is:
- Fast: Text detectors look at most at the first 64 KiB
- Non-fatal: Unrecognized content yields an empty result, not an exception
- Transparent: Every detection carries human-readable evidence
- False-positive averse: Marker combinations, not single keywords, earn HIGH confidence

Typical usage:
    >>> from pkbimport.detection import detect_formats, summarize_detections
    >>>
    >>> results = detect_formats(Path("bookmarks.html").read_bytes())
    >>> for line in summarize_detections(results):
    ...     print(line)
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from pkbimport.core.models import ExportFormat, ImportSource
from pkbimport.utils.csvline import BOM, split_csv_line

logger = logging.getLogger(__name__)

SNIFF_LIMIT = 64 * 1024

TWITTER_BOOKMARKS_PREFIX = "window.YTD.bookmarks.part0"

ZIP_MAGIC = (b"PK\x03\x04", b"PK\x05\x06")

NOTION_PAGE_EXTENSIONS = (".html", ".htm", ".md", ".markdown")

# Archive entries written by the OS, never by the exporting service
ARCHIVE_SKIP_PREFIXES = ("__MACOSX/",)
ARCHIVE_SKIP_NAMES = {".DS_Store", "Thumbs.db"}

_DL_RE = re.compile(r"<dl[\s>]")
_DT_RE = re.compile(r"<dt[\s>]")
_NOTE_RE = re.compile(r"<note[\s>]")
_CONTENT_RE = re.compile(r"<content[\s>]")
_POCKET_SECTION_RE = re.compile(r"<h1[^>]*>\s*(?:unread|read archive|read)\s*</h1>")


class ConfidenceLevel(str, Enum):
    """How strongly the evidence points at a format."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_CONFIDENCE_ORDER = {
    ConfidenceLevel.HIGH: 0,
    ConfidenceLevel.MEDIUM: 1,
    ConfidenceLevel.LOW: 2,
}


@dataclass
class DetectionResult:
    """Result of format detection for one piece of content.

    Attributes:
        format: The detected export format.
        confidence: Confidence level of the detection (HIGH, MEDIUM, LOW).
        evidence: List of human-readable reasons for the detection.
        keyword_only: The only evidence is a mention of the service name.
            Ranked after structural matches of the same confidence.
    """

    format: ExportFormat
    confidence: ConfidenceLevel
    evidence: list[str] = field(default_factory=list)
    keyword_only: bool = False

    @property
    def source(self) -> ImportSource:
        return self.format.source

    def to_summary(self) -> str:
        """Generate one-line human-readable summary.

        Examples:
            "✓ BOOKMARKS_HTML export detected (HIGH confidence)"
            "? POCKET_HTML export detected (LOW confidence)"
        """
        if self.confidence == ConfidenceLevel.HIGH:
            mark = "✓"
        elif self.confidence == ConfidenceLevel.LOW:
            mark = "?"
        else:
            mark = "~"
        return f"{mark} {self.format.value.upper()} export detected ({self.confidence.value.upper()} confidence)"

    def __str__(self) -> str:
        return self.to_summary()


# =============================================================================
# Helpers
# =============================================================================


def _is_zip(content: str | bytes) -> bool:
    return isinstance(content, (bytes, bytearray)) and bytes(content[:4]) in ZIP_MAGIC


def _sniff(content: str | bytes) -> str:
    """Leading window of the content as text ("" for archives)."""
    if _is_zip(content):
        return ""
    if isinstance(content, (bytes, bytearray)):
        text = bytes(content[:SNIFF_LIMIT]).decode("utf-8", errors="ignore")
    else:
        text = content[:SNIFF_LIMIT]
    return text.lstrip(BOM)


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0].strip().lower()


def is_archive_noise(name: str) -> bool:
    return name.startswith(ARCHIVE_SKIP_PREFIXES) or name.rsplit("/", 1)[-1] in ARCHIVE_SKIP_NAMES


# =============================================================================
# Detectors
# =============================================================================


def detect_twitter(content: str | bytes) -> DetectionResult | None:
    """Detect an X/Twitter archive ``bookmarks.js`` file.

    The archive wraps its JSON in a fixed variable assignment, which is the
    only signal needed.
    """
    text = _sniff(content)
    if text.lstrip().startswith(TWITTER_BOOKMARKS_PREFIX):
        return DetectionResult(
            format=ExportFormat.TWITTER_JS,
            confidence=ConfidenceLevel.HIGH,
            evidence=[f"Content starts with {TWITTER_BOOKMARKS_PREFIX}"],
        )
    return None


def detect_evernote(content: str | bytes) -> DetectionResult | None:
    """Detect an Evernote ENEX export.

    Detection signals:
        HIGH: ``<en-export`` root element
        MEDIUM: ``<note>`` and ``<content>`` elements together
        LOW: mentions Evernote
    """
    lower = _sniff(content).lower()
    if "<en-export" in lower:
        return DetectionResult(
            format=ExportFormat.EVERNOTE_ENEX,
            confidence=ConfidenceLevel.HIGH,
            evidence=["Found <en-export> root element"],
        )
    if _NOTE_RE.search(lower) and _CONTENT_RE.search(lower):
        return DetectionResult(
            format=ExportFormat.EVERNOTE_ENEX,
            confidence=ConfidenceLevel.MEDIUM,
            evidence=["Found <note> elements with <content> blocks"],
        )
    if "evernote" in lower:
        return DetectionResult(
            format=ExportFormat.EVERNOTE_ENEX,
            confidence=ConfidenceLevel.LOW,
            evidence=["Content mentions Evernote"],
            keyword_only=True,
        )
    return None


def detect_raindrop(content: str | bytes) -> DetectionResult | None:
    """Detect a Raindrop.io CSV export from its header line."""
    header = _first_line(_sniff(content))
    if "folder" in header and "url" in header and ("excerpt" in header or "highlights" in header):
        return DetectionResult(
            format=ExportFormat.RAINDROP_CSV,
            confidence=ConfidenceLevel.HIGH,
            evidence=["Header has folder and url columns with excerpt/highlights"],
        )
    return None


def detect_bookmarks(content: str | bytes) -> DetectionResult | None:
    """Detect a Netscape bookmark file (Chrome, Firefox, Safari, Edge).

    Detection signals:
        HIGH: NETSCAPE-Bookmark-file doctype or signature
        MEDIUM: <DL>, <DT> and href= together
    """
    lower = _sniff(content).lower()
    if "<!doctype netscape-bookmark-file" in lower or "netscape-bookmark-file-1" in lower:
        return DetectionResult(
            format=ExportFormat.BOOKMARKS_HTML,
            confidence=ConfidenceLevel.HIGH,
            evidence=["Found NETSCAPE-Bookmark-file signature"],
        )
    if _DL_RE.search(lower) and _DT_RE.search(lower) and "href=" in lower:
        return DetectionResult(
            format=ExportFormat.BOOKMARKS_HTML,
            confidence=ConfidenceLevel.MEDIUM,
            evidence=["Found <DL>/<DT> list structure with links"],
        )
    return None


def detect_pocket_csv(content: str | bytes) -> DetectionResult | None:
    """Detect a Pocket CSV export: a markup-free header with a URL column."""
    header = _first_line(_sniff(content))
    if not header or "<" in header:
        return None

    columns = split_csv_line(header)
    if "url" not in columns and "link" not in columns:
        return None

    evidence = ["Header has a url column"]
    confidence = ConfidenceLevel.LOW
    if "time_added" in columns or ("title" in columns and "tags" in columns):
        evidence.append("Header matches Pocket's title/tags/time_added columns")
        confidence = ConfidenceLevel.MEDIUM
    return DetectionResult(format=ExportFormat.POCKET_CSV, confidence=confidence, evidence=evidence)


def detect_pocket_html(content: str | bytes) -> DetectionResult | None:
    """Detect a Pocket HTML export.

    Detection signals:
        HIGH: Unread/Read section headings
        MEDIUM: getpocket.com links
        LOW: mentions Pocket
    """
    lower = _sniff(content).lower()
    if _POCKET_SECTION_RE.search(lower):
        return DetectionResult(
            format=ExportFormat.POCKET_HTML,
            confidence=ConfidenceLevel.HIGH,
            evidence=["Found Unread/Read section headings"],
        )
    if "getpocket.com" in lower:
        return DetectionResult(
            format=ExportFormat.POCKET_HTML,
            confidence=ConfidenceLevel.MEDIUM,
            evidence=["Found getpocket.com reference"],
        )
    if "pocket" in lower:
        return DetectionResult(
            format=ExportFormat.POCKET_HTML,
            confidence=ConfidenceLevel.LOW,
            evidence=["Content mentions Pocket"],
            keyword_only=True,
        )
    return None


def detect_notion(content: str | bytes) -> DetectionResult | None:
    """Detect a Notion ZIP export.

    The archive must hold HTML or Markdown pages inside at least one folder;
    a flat archive of pages is not enough.
    """
    if not _is_zip(content):
        return None

    try:
        with zipfile.ZipFile(io.BytesIO(bytes(content))) as archive:
            names = [
                info.filename
                for info in archive.infolist()
                if not info.is_dir() and not is_archive_noise(info.filename)
            ]
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        logger.debug(f"Archive could not be opened: {e}")
        return None

    pages = [name for name in names if name.lower().endswith(NOTION_PAGE_EXTENSIONS)]
    nested = [name for name in pages if "/" in name]
    if not nested:
        return None

    return DetectionResult(
        format=ExportFormat.NOTION_ZIP,
        confidence=ConfidenceLevel.HIGH,
        evidence=[
            f"Archive holds {len(pages)} HTML/Markdown pages",
            f"{len(nested)} pages are nested in folders",
        ],
    )


# Most specific first; also the tie-break order among equal confidences
DETECTORS: tuple[tuple[ExportFormat, Callable[[str | bytes], DetectionResult | None]], ...] = (
    (ExportFormat.TWITTER_JS, detect_twitter),
    (ExportFormat.EVERNOTE_ENEX, detect_evernote),
    (ExportFormat.RAINDROP_CSV, detect_raindrop),
    (ExportFormat.BOOKMARKS_HTML, detect_bookmarks),
    (ExportFormat.POCKET_CSV, detect_pocket_csv),
    (ExportFormat.POCKET_HTML, detect_pocket_html),
    (ExportFormat.NOTION_ZIP, detect_notion),
)

DETECTION_ORDER: tuple[ExportFormat, ...] = tuple(fmt for fmt, _ in DETECTORS)


# =============================================================================
# Boolean Predicates
# =============================================================================


def is_twitter_bookmarks_file(content: str | bytes) -> bool:
    return detect_twitter(content) is not None


def is_evernote_file(content: str | bytes) -> bool:
    return detect_evernote(content) is not None


def is_raindrop_file(content: str | bytes) -> bool:
    return detect_raindrop(content) is not None


def is_bookmarks_file(content: str | bytes) -> bool:
    return detect_bookmarks(content) is not None


def is_pocket_csv(content: str | bytes) -> bool:
    return detect_pocket_csv(content) is not None


def is_pocket_file(content: str | bytes) -> bool:
    return detect_pocket_html(content) is not None


def is_notion_zip(content: str | bytes) -> bool:
    return detect_notion(content) is not None


# =============================================================================
# Main Entry Points
# =============================================================================


def detect_formats(content: str | bytes) -> list[DetectionResult]:
    """Run every detector and return the matches.

    Args:
        content: Raw file content (text, or bytes for archives).

    Returns:
        DetectionResult objects sorted by confidence (HIGH first). Within a
        confidence, structural matches come before keyword-only ones, then
        the most-specific-first detector order applies. Empty when nothing
        matched.

    Examples:
        >>> [r.format.value for r in detect_formats("window.YTD.bookmarks.part0 = []")]
        ['twitter_js']
    """
    results: list[DetectionResult] = []
    for fmt, detector in DETECTORS:
        result = detector(content)
        if result is not None:
            logger.debug(f"Detected {fmt.value} ({result.confidence.value}): {result.evidence}")
            results.append(result)

    results.sort(key=lambda r: (_CONFIDENCE_ORDER[r.confidence], r.keyword_only))
    return results


def summarize_detections(results: list[DetectionResult]) -> list[str]:
    """Generate human-readable summary lines for detection results.

    Each result gets its summary line followed by up to three evidence lines.
    """
    if not results:
        return ["No supported export format detected."]

    summaries = []
    for result in results:
        summaries.append(result.to_summary())
        for evidence_item in result.evidence[:3]:
            summaries.append(f"  - {evidence_item}")
    return summaries
