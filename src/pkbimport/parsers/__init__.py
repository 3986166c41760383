"""Parsers package for pkbimport.

This package contains one parser per export format (browser bookmarks, Pocket,
Evernote, Notion, X/Twitter, Raindrop.io). All parsers inherit from BaseParser
and register with ParserRegistry when this package is imported.

Exports:
    - BaseParser: Abstract base class for all parsers
    - ParserRegistry: Registry for parser dispatch
    - ParseResult / ParseError / ParseStats: Result of a parse call
    - parse_content / parse_content_async: Parse with an explicit or detected parser
    - register_parser: Decorator for registering parsers
"""

from pkbimport.parsers.base import (
    # Base class
    BaseParser,
    # Registry
    ParserRegistry,
    register_parser,
    select_parser,
    parse_content,
    parse_content_async,
    run_parser,
    run_parser_async,
    # Data models
    ParseResult,
    ParseError,
    ParseStats,
    # Exceptions
    ContentDecodeError,
    ParserError,
    ParserNotFoundError,
    UnknownFormatError,
)

# Importing the modules registers their parsers
from pkbimport.parsers.bookmarks import BookmarksParser
from pkbimport.parsers.evernote import EvernoteParser
from pkbimport.parsers.notion import NotionParser
from pkbimport.parsers.pocket import PocketCsvParser, PocketHtmlParser
from pkbimport.parsers.raindrop import RaindropParser
from pkbimport.parsers.twitter import TwitterBookmarksParser

__all__ = [
    "BaseParser",
    "ParserRegistry",
    "register_parser",
    "select_parser",
    "parse_content",
    "parse_content_async",
    "run_parser",
    "run_parser_async",
    "ParseResult",
    "ParseError",
    "ParseStats",
    "ContentDecodeError",
    "ParserError",
    "ParserNotFoundError",
    "UnknownFormatError",
    "BookmarksParser",
    "EvernoteParser",
    "NotionParser",
    "PocketCsvParser",
    "PocketHtmlParser",
    "RaindropParser",
    "TwitterBookmarksParser",
]
