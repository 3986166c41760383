"""Parser base infrastructure for pkbimport.

This module provides the abstract base class, the shared result model and the
registry that maps every export format to its parser.

Classes:
    BaseParser: Abstract base class all parsers inherit from
    ParserRegistry: Dispatch table from ExportFormat to parser class
    ParseResult: Complete, immutable result of one parse call
    ParseError: One item-level (or structural) failure
    ParseStats: Total / parsed / skipped counters

Functions:
    parse_content: Parse raw content with an explicit or detected parser
    parse_content_async: Awaitable twin of parse_content
    register_parser: Decorator for registering parser classes

Two severities of failure are kept apart. A structural failure (the content is
not the expected container at all) yields ``success=False``, one error and no
items. An item-level failure is recorded as a ``ParseError``, counted as
skipped, and parsing carries on with the next record.

Example:
    >>> @register_parser
    ... class MyParser(BaseParser):
    ...     format = ExportFormat.TWITTER_JS
    ...     content_type = ContentType.LINK
    ...
    ...     def can_parse(self, content) -> bool:
    ...         return True
    ...
    ...     def parse(self, content) -> ParseResult:
    ...         return self._new_result().build()
    >>>
    >>> result = parse_content(raw, source="twitter")
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Type

from pkbimport.core.models import ContentType, ExportFormat, ImportItem, ImportSource, ItemMetadata
from pkbimport.detection import DETECTION_ORDER, detect_formats

logger = logging.getLogger(__name__)

RawContent = str | bytes

# Tried in order when decoding byte input
TEXT_ENCODINGS = ("utf-8-sig", "cp1252")


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class ParseError:
    """A failure attached to one record, or to the whole input.

    Attributes:
        message: Human-readable description
        item: Best-effort label of the failing record (None when structural)
    """

    message: str
    item: str | None = None


@dataclass(frozen=True)
class ParseStats:
    """Counters for one parse call.

    Attributes:
        total: Records found in the input
        parsed: Records emitted as items
        skipped: Records dropped (invalid, empty, or failed)
    """

    total: int = 0
    parsed: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class ParseResult:
    """The complete result of running a parser.

    Attributes:
        format: Export format that was parsed
        success: False only for structural failures
        items: Canonical items ready for import
        errors: Item-level (or the single structural) failures
        warnings: Non-fatal notes for the user
        stats: Total / parsed / skipped counters
        parser_version: Version of the parser that produced this
        parse_duration_seconds: Wall-clock time spent parsing
    """

    format: ExportFormat
    success: bool
    items: tuple[ImportItem, ...] = ()
    errors: tuple[ParseError, ...] = ()
    warnings: tuple[str, ...] = ()
    stats: ParseStats = field(default_factory=ParseStats)
    parser_version: str = "unknown"
    parse_duration_seconds: float = 0.0

    @property
    def source(self) -> ImportSource:
        return self.format.source

    @classmethod
    def failure(
        cls,
        format: ExportFormat,
        message: str,
        parser_version: str = "unknown",
    ) -> "ParseResult":
        """Build a structural-failure result: one error, no items."""
        return cls(
            format=format,
            success=False,
            errors=(ParseError(message=message),),
            parser_version=parser_version,
        )

    def success_rate(self) -> float:
        """Ratio of parsed records to records found (1.0 when empty)."""
        if self.stats.total == 0:
            return 1.0
        return self.stats.parsed / self.stats.total

    def to_summary(self) -> str:
        """Generate a human-readable multi-line summary."""
        lines = [
            f"Parse Result for {self.format.value}:",
            f"  Success: {self.success}",
            f"  Items: {len(self.items)}",
            f"  Total: {self.stats.total}",
            f"  Skipped: {self.stats.skipped}",
            f"  Warnings: {len(self.warnings)}",
            f"  Errors: {len(self.errors)}",
            f"  Success Rate: {self.success_rate():.1%}",
            f"  Duration: {self.parse_duration_seconds:.2f}s",
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "format": self.format.value,
            "source": self.source.value,
            "success": self.success,
            "items": [item.to_dict() for item in self.items],
            "errors": [asdict(error) for error in self.errors],
            "warnings": list(self.warnings),
            "stats": asdict(self.stats),
        }


# =============================================================================
# Exceptions
# =============================================================================


class ParserError(Exception):
    """Base exception for parser issues.

    Attributes:
        message: Error message
        parser: Parser name that raised the error
    """

    def __init__(self, message: str, parser: str | None = None):
        super().__init__(message)
        self.message = message
        self.parser = parser


class ParserNotFoundError(ParserError):
    """No parser registered for the requested source or format."""

    pass


class UnknownFormatError(ParserError):
    """Content matched none of the format detectors."""

    pass


class ContentDecodeError(ParserError):
    """Byte content could not be decoded as text."""

    pass


# =============================================================================
# Result Builder
# =============================================================================


class ResultBuilder:
    """Mutable accumulator a parser fills in, frozen by ``build()``."""

    def __init__(self, parser: "BaseParser") -> None:
        self._parser = parser
        self._start = time.perf_counter()
        self.items: list[ImportItem] = []
        self.errors: list[ParseError] = []
        self.warnings: list[str] = []
        self.total = 0
        self.skipped = 0

    def add(self, item: ImportItem) -> None:
        self.items.append(item)

    def skip(self) -> None:
        """Count a record dropped without an error (empty, non-navigable)."""
        self.skipped += 1

    def fail(self, item: str | None, message: str) -> None:
        """Record an item-level failure and count it as skipped."""
        self.errors.append(ParseError(message=message, item=item))
        self.skipped += 1

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def build(self) -> ParseResult:
        result = ParseResult(
            format=self._parser.format,
            success=True,
            items=tuple(self.items),
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            stats=ParseStats(total=self.total, parsed=len(self.items), skipped=self.skipped),
            parser_version=self._parser.version,
            parse_duration_seconds=time.perf_counter() - self._start,
        )
        self._parser._logger.info(
            f"Parse complete: {result.stats.parsed}/{result.stats.total} items, "
            f"{result.stats.skipped} skipped, {len(result.errors)} errors"
        )
        return result


# =============================================================================
# Abstract Base Class
# =============================================================================


class BaseParser(ABC):
    """Abstract base class for all export parsers.

    Subclasses must:
    - Set class attributes: format, content_type, supported_extensions, description
    - Implement: can_parse(), parse()

    Parsers are stateless; one instance may parse any number of inputs,
    concurrently if need be.
    """

    format: ClassVar[ExportFormat]
    content_type: ClassVar[ContentType]
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = set()
    description: ClassVar[str] = ""

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def source(self) -> ImportSource:
        return self.format.source

    # =========================================================================
    # Abstract Methods
    # =========================================================================

    @abstractmethod
    def can_parse(self, content: RawContent) -> bool:
        """Check whether content looks like this parser's format.

        Must be FAST: sniff markers, never attempt a full parse.
        """
        pass

    @abstractmethod
    def parse(self, content: RawContent) -> ParseResult:
        """Parse raw content into canonical items.

        Must be fault-tolerant: one bad record never aborts the rest, and
        malformed input yields a failure result rather than an exception.
        """
        pass

    async def parse_async(self, content: RawContent) -> ParseResult:
        """Awaitable variant of ``parse``.

        Text formats parse in one synchronous pass; archive formats override
        this to move decompression off the event loop.
        """
        return self.parse(content)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _new_result(self) -> ResultBuilder:
        return ResultBuilder(self)

    def _failure(self, message: str) -> ParseResult:
        self._logger.warning(f"Structural failure: {message}")
        return ParseResult.failure(self.format, message, parser_version=self.version)

    def _decode(self, content: RawContent) -> str:
        """Return content as text, decoding bytes if needed.

        Raises:
            ContentDecodeError: If no supported encoding fits.
        """
        if isinstance(content, str):
            return content

        for encoding in TEXT_ENCODINGS:
            try:
                return bytes(content).decode(encoding)
            except UnicodeDecodeError:
                continue

        raise ContentDecodeError(
            "File is not valid text (tried UTF-8 and Windows-1252)",
            parser=self.__class__.__name__,
        )

    def _create_item(self, metadata: dict[str, Any] | None = None, **kwargs: Any) -> ImportItem:
        """Factory for ImportItem with this parser's type and source.

        None-valued metadata entries are dropped so optional fields stay unset.
        """
        meta = {k: v for k, v in (metadata or {}).items() if v is not None}
        kwargs.setdefault("type", self.content_type)
        return ImportItem(metadata=ItemMetadata(source=self.source, **meta), **kwargs)


# =============================================================================
# Parser Registry
# =============================================================================


class ParserRegistry:
    """Dispatch table from ExportFormat to parser class.

    Parsers register themselves with the ``@register_parser`` decorator when
    ``pkbimport.parsers`` is imported.

    Example:
        >>> parser = ParserRegistry.get_parser(ExportFormat.BOOKMARKS_HTML)
        >>> result = parser.parse(html)
    """

    _parsers: ClassVar[dict[ExportFormat, Type[BaseParser]]] = {}

    @classmethod
    def register(cls, parser_class: Type[BaseParser]) -> Type[BaseParser]:
        """Register a parser class (usable as a decorator).

        Raises:
            ValueError: If the class does not declare a format.
        """
        if not hasattr(parser_class, "format"):
            raise ValueError(f"{parser_class.__name__} must define 'format' class attribute")

        cls._parsers[parser_class.format] = parser_class
        logger.debug(f"Registered parser: {parser_class.__name__} for {parser_class.format.value}")
        return parser_class

    @classmethod
    def get_parser(cls, format: ExportFormat) -> BaseParser | None:
        parser_class = cls._parsers.get(format)
        return parser_class() if parser_class else None

    @classmethod
    def list_formats(cls) -> list[ExportFormat]:
        """Registered formats in detection order."""
        return [f for f in DETECTION_ORDER if f in cls._parsers]

    @classmethod
    def parsers_for_source(cls, source: ImportSource) -> list[BaseParser]:
        """Parsers for every format of a source, in detection order."""
        return [cls._parsers[f]() for f in cls.list_formats() if f.source == source]

    @classmethod
    def detect_parsers(cls, content: RawContent) -> list[BaseParser]:
        """Parsers whose format detector matches, most specific first."""
        return [
            cls._parsers[result.format]()
            for result in detect_formats(content)
            if result.format in cls._parsers
        ]

    @classmethod
    def clear(cls) -> None:
        """Clear registry (for testing)."""
        cls._parsers.clear()


def register_parser(parser_class: Type[BaseParser]) -> Type[BaseParser]:
    """Module-level decorator alias for ParserRegistry.register."""
    return ParserRegistry.register(parser_class)


# =============================================================================
# Module-Level Functions
# =============================================================================


def select_parser(
    content: RawContent,
    source: ImportSource | str | None = None,
    filename: str | None = None,
) -> BaseParser:
    """Choose the parser for some content.

    With an explicit source, that source's parser is used; for sources with
    several formats (Pocket) the filename extension decides, then content
    sniffing. Without a source, the first matching detector wins.

    Raises:
        ParserNotFoundError: If the source is unknown or has no parser.
        UnknownFormatError: If auto-detection matches nothing.
    """
    if source is None:
        detected = ParserRegistry.detect_parsers(content)
        if not detected:
            raise UnknownFormatError("Could not detect the export format of this file")
        return detected[0]

    try:
        source = ImportSource(source)
    except ValueError as e:
        raise ParserNotFoundError(f"Unknown import source: {source}", parser=str(source)) from e

    candidates = ParserRegistry.parsers_for_source(source)
    if not candidates:
        raise ParserNotFoundError(f"No parser registered for {source.value}", parser=source.value)
    if len(candidates) == 1:
        return candidates[0]

    if filename:
        suffix = Path(filename).suffix.lower()
        for parser in candidates:
            if suffix in parser.supported_extensions:
                return parser

    for parser in candidates:
        if parser.can_parse(content):
            return parser
    return candidates[0]


def run_parser(parser: BaseParser, content: RawContent) -> ParseResult:
    """Run a parser, turning an escaped exception into a failure result."""
    logger.info(f"Parsing {parser.format.value} content with {parser.__class__.__name__}")

    try:
        return parser.parse(content)
    except Exception as e:
        logger.error(f"Parser {parser.__class__.__name__} failed: {e}", exc_info=True)
        return ParseResult.failure(parser.format, f"Parser failed: {e}", parser.version)


async def run_parser_async(parser: BaseParser, content: RawContent) -> ParseResult:
    """Awaitable twin of ``run_parser``."""
    logger.info(f"Parsing {parser.format.value} content with {parser.__class__.__name__}")

    try:
        return await parser.parse_async(content)
    except Exception as e:
        logger.error(f"Parser {parser.__class__.__name__} failed: {e}", exc_info=True)
        return ParseResult.failure(parser.format, f"Parser failed: {e}", parser.version)


def parse_content(
    content: RawContent,
    source: ImportSource | str | None = None,
    filename: str | None = None,
) -> ParseResult:
    """Parse raw export content with the appropriate parser.

    Args:
        content: Raw file content (bytes for archive formats).
        source: Explicit source; auto-detected when None.
        filename: Original filename, used to pick between formats of a source.

    Returns:
        ParseResult from the selected parser.

    Raises:
        ParserNotFoundError: If the source is unknown.
        UnknownFormatError: If auto-detection fails.
    """
    return run_parser(select_parser(content, source, filename), content)


async def parse_content_async(
    content: RawContent,
    source: ImportSource | str | None = None,
    filename: str | None = None,
) -> ParseResult:
    """Awaitable twin of ``parse_content``."""
    return await run_parser_async(select_parser(content, source, filename), content)
