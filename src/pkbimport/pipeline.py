"""Import pipeline helpers for pkbimport.

This module sits on the caller side of the parsers: it reads an export file
from disk, enforces the per-source upload limits, dispatches to the right
parser and turns the parsed items into an import plan (de-duplicated and
batched for bulk insertion). Nothing here touches a database.

The pipeline:
1. Check the file exists and is within the size limit
2. Detect (or take) the source and select a parser
3. Parse the bytes into a ParseResult
4. Plan the import: merge extra tags, drop duplicates, batch

Typical usage:
    >>> from pathlib import Path
    >>> from pkbimport.pipeline import load_export, plan_import
    >>>
    >>> result = load_export(Path("bookmarks.html"))
    >>> plan = plan_import(result.items, additional_tags=["imported"])
    >>> print(plan.to_summary())
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence

from pkbimport.config import SOURCES, get_source_config
from pkbimport.core.models import ExportFormat, ImportItem, ImportSource
from pkbimport.parsers import (
    ParseResult,
    ParserNotFoundError,
    run_parser,
    run_parser_async,
    select_parser,
)
from pkbimport.utils.logging import LogContext
from pkbimport.utils.normalize import batch_array, normalize_tags

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Archive formats are parsed through the async path
ASYNC_FORMATS = {ExportFormat.NOTION_ZIP}


class ImportFileError(Exception):
    """Raised when an export file cannot be accepted for parsing.

    Attributes:
        message: Error message
        path: Offending file
    """

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.message = message
        self.path = path


@dataclass
class ImportPlan:
    """Items ready for insertion, grouped into batches.

    Attributes:
        items: Items to import, in input order.
        batches: ``items`` split into insert-sized chunks.
        duplicates: Items dropped because their dedup key was already seen.
    """

    items: list[ImportItem] = field(default_factory=list)
    batches: list[list[ImportItem]] = field(default_factory=list)
    duplicates: list[ImportItem] = field(default_factory=list)

    @property
    def to_import(self) -> int:
        return len(self.items)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    def to_summary(self) -> str:
        return (
            f"{self.to_import} items to import in {len(self.batches)} batches, "
            f"{self.duplicate_count} duplicates skipped"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "to_import": self.to_import,
            "batches": len(self.batches),
            "duplicates": self.duplicate_count,
            "duplicate_keys": [item.dedup_key for item in self.duplicates],
        }


# =============================================================================
# Loading
# =============================================================================


def _check_size(path: Path, size: int, limit: int) -> None:
    if size > limit:
        raise ImportFileError(
            f"{path.name} is {size / MB:.1f} MB; the limit is {limit // MB} MB",
            path=path,
        )


def load_export(path: Path, source: ImportSource | str | None = None) -> ParseResult:
    """Read an export file and parse it.

    Must not be called from inside a running event loop; async callers should
    read the file themselves and await ``parse_content_async``.

    Args:
        path: Export file on disk.
        source: Explicit source; detected from the content when None.

    Returns:
        ParseResult from the selected parser.

    Raises:
        ImportFileError: If the file is missing or over the size limit.
        ParserNotFoundError: If ``source`` is unknown.
        UnknownFormatError: If no format could be detected.
    """
    path = Path(path)
    if not path.is_file():
        raise ImportFileError(f"Export file not found: {path}", path=path)

    size = path.stat().st_size
    if source is not None:
        try:
            source = ImportSource(source)
        except ValueError as e:
            raise ParserNotFoundError(f"Unknown import source: {source}", parser=str(source)) from e
        _check_size(path, size, get_source_config(source).max_file_size)
    else:
        _check_size(path, size, max(s.max_file_size for s in SOURCES.values()))

    with LogContext(f"Loading {path.name}", logger=logger):
        content = path.read_bytes()
        parser = select_parser(content, source, filename=path.name)
        _check_size(path, size, get_source_config(parser.source).max_file_size)

        if parser.format in ASYNC_FORMATS:
            return asyncio.run(run_parser_async(parser, content))
        return run_parser(parser, content)


# =============================================================================
# Planning
# =============================================================================


def plan_import(
    items: Sequence[ImportItem],
    existing_keys: Iterable[str] = (),
    additional_tags: Iterable[str] = (),
    skip_duplicates: bool = True,
    batch_size: int = 10,
) -> ImportPlan:
    """Prepare parsed items for bulk insertion.

    Items whose dedup key is in ``existing_keys``, or repeats a key seen
    earlier in ``items``, are set aside as duplicates; the first occurrence
    wins. Additional tags are normalized and merged into every kept item.

    Args:
        items: Parsed items.
        existing_keys: Dedup keys already present in the knowledge base.
        additional_tags: Tags to add to every imported item.
        skip_duplicates: When False, nothing is treated as a duplicate.
        batch_size: Items per insert batch.

    Returns:
        ImportPlan with kept items, their batches and the duplicates.

    Raises:
        ValueError: If ``batch_size`` is less than 1.
    """
    extra_tags = normalize_tags(additional_tags)
    seen: set[str] = set(existing_keys)
    plan = ImportPlan()

    for item in items:
        key = item.dedup_key
        if skip_duplicates and key in seen:
            plan.duplicates.append(item)
            continue
        seen.add(key)

        if extra_tags:
            item = item.model_copy(update={"tags": normalize_tags([*item.tags, *extra_tags])})
        plan.items.append(item)

    plan.batches = batch_array(plan.items, batch_size)
    logger.info(plan.to_summary())
    return plan
