"""pkbimport - knowledge-base export importer.

Turns exports from browser bookmarks, Pocket, Evernote, Notion, X/Twitter and
Raindrop.io into one canonical ``ImportItem`` shape, with per-item diagnostics
instead of all-or-nothing failures.

Example:
    >>> from pathlib import Path
    >>> from pkbimport import load_export, plan_import
    >>> result = load_export(Path("bookmarks.html"))
    >>> plan = plan_import(result.items, additional_tags=["imported"])
"""

__version__ = "1.0.0"

from pkbimport.core.models import ContentType, ExportFormat, ImportItem, ImportSource, ItemMetadata
from pkbimport.detection import ConfidenceLevel, DetectionResult, detect_formats
from pkbimport.parsers import ParseResult, parse_content, parse_content_async
from pkbimport.pipeline import ImportPlan, load_export, plan_import

__all__ = [
    "__version__",
    "ContentType",
    "ExportFormat",
    "ImportItem",
    "ImportSource",
    "ItemMetadata",
    "ConfidenceLevel",
    "DetectionResult",
    "detect_formats",
    "ParseResult",
    "parse_content",
    "parse_content_async",
    "ImportPlan",
    "load_export",
    "plan_import",
]
