"""Core data models for knowledge-base imports.

- **ImportItem**: canonical schema every parser normalizes into
- **ItemMetadata**: provenance attached to each item
- **ImportSource / ExportFormat / ContentType**: closed vocabularies

Example:
    >>> from pkbimport.core import ImportItem, ItemMetadata, ImportSource, ContentType
"""

from pkbimport.core.models import (
    ContentType,
    ExportFormat,
    ImportItem,
    ImportSource,
    ItemMetadata,
)

__all__ = [
    "ContentType",
    "ExportFormat",
    "ImportItem",
    "ImportSource",
    "ItemMetadata",
]
