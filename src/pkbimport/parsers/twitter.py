"""X/Twitter bookmarks parser for pkbimport.

The X data archive stores bookmarks in ``data/bookmarks.js`` as a script that
assigns a JSON array to a global:

    window.YTD.bookmarks.part0 = [
      {"bookmark": {"tweetId": "1234567890", "fullText": "..."}}
    ]

Everything after the first ``=`` is plain JSON.
"""

from __future__ import annotations

import json
import logging
from typing import Any, ClassVar

from pkbimport.core.models import ContentType, ExportFormat
from pkbimport.detection import TWITTER_BOOKMARKS_PREFIX, is_twitter_bookmarks_file
from pkbimport.parsers.base import (
    BaseParser,
    ContentDecodeError,
    ParseResult,
    RawContent,
    register_parser,
)
from pkbimport.utils.csvline import BOM
from pkbimport.utils.normalize import sanitize_title

logger = logging.getLogger(__name__)

STATUS_URL = "https://x.com/i/status/{tweet_id}"
BOOKMARK_TAG = "twitter-bookmark"
TITLE_LENGTH = 100
TITLE_ELLIPSIS = "…"


def tweet_title(text: str | None, tweet_id: str) -> str:
    """Title from the tweet text, cut at 100 characters."""
    if not text:
        return f"Tweet {tweet_id}"
    if len(text) > TITLE_LENGTH:
        text = text[:TITLE_LENGTH] + TITLE_ELLIPSIS
    return sanitize_title(text)


def _tweet_id(entry: Any) -> str | None:
    bookmark = entry.get("bookmark") if isinstance(entry, dict) else None
    if not isinstance(bookmark, dict):
        return None
    tweet_id = bookmark.get("tweetId")
    if tweet_id is None or isinstance(tweet_id, bool):
        return None
    return str(tweet_id).strip() or None


@register_parser
class TwitterBookmarksParser(BaseParser):
    """Parser for the ``bookmarks.js`` file of an X/Twitter archive."""

    format: ClassVar[ExportFormat] = ExportFormat.TWITTER_JS
    content_type: ClassVar[ContentType] = ContentType.LINK
    version: ClassVar[str] = "1.0.0"
    supported_extensions: ClassVar[set[str]] = {".js"}
    description: ClassVar[str] = "X/Twitter bookmarks (archive bookmarks.js)"

    def can_parse(self, content: RawContent) -> bool:
        return is_twitter_bookmarks_file(content)

    def parse(self, content: RawContent) -> ParseResult:
        try:
            text = self._decode(content).lstrip(BOM).lstrip()
        except ContentDecodeError as e:
            return self._failure(e.message)

        if not text.startswith(TWITTER_BOOKMARKS_PREFIX):
            return self._failure("Invalid Twitter bookmarks file format.")

        equals = text.find("=", len(TWITTER_BOOKMARKS_PREFIX))
        if equals == -1:
            return self._failure("Invalid Twitter bookmarks file format.")

        try:
            entries = json.loads(text[equals + 1 :])
        except json.JSONDecodeError as e:
            return self._failure(f"Failed to parse JSON from bookmarks file: {e.msg}")

        if not isinstance(entries, list):
            return self._failure("Expected an array of bookmark entries.")

        result = self._new_result()
        result.total = len(entries)

        for index, entry in enumerate(entries):
            tweet_id = _tweet_id(entry)
            if tweet_id is None:
                result.fail(f"Entry {index}", "Missing tweetId")
                continue

            try:
                full_text = entry["bookmark"].get("fullText") or None
                result.add(
                    self._create_item(
                        title=tweet_title(full_text, tweet_id),
                        body=full_text,
                        url=STATUS_URL.format(tweet_id=tweet_id),
                        tags=[BOOKMARK_TAG],
                        metadata={"original_id": tweet_id},
                    )
                )
            except Exception as e:
                self._logger.debug(f"Entry {index} failed: {e}")
                result.fail(f"Entry {index}", str(e))

        if result.total == 0:
            result.warn("No bookmarks found in bookmarks.js.")

        return result.build()
