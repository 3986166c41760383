"""Central configuration for pkbimport.

Settings come from, in priority order:
1. A YAML config file
2. Environment variables (``PKBI_*``, nested with ``__``)
3. In-code defaults

The module also holds the catalog of supported import sources: display names,
accepted file extensions and the upload size each source tolerates.

Example:
    >>> from pkbimport.config import get_config, get_source_config
    >>> cfg = get_config()
    >>> cfg.importing.batch_size
    10
    >>> get_source_config("notion").max_file_size
    104857600

Config File Format (YAML):
    ```yaml
    logging:
      level: INFO
      file: ~/.pkbimport/import.log

    importing:
      batch_size: 10
      skip_duplicates: true
      additional_tags: [imported]

    debug: false
    ```
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from pkbimport.core.models import ImportSource

logger = logging.getLogger(__name__)

MB = 1024 * 1024


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Raised when an explicitly requested config file cannot be read."""

    pass


# =============================================================================
# Source Catalog
# =============================================================================


class SourceConfig(BaseModel):
    """Static description of one import source.

    Attributes:
        id: Source identifier
        name: Display name
        description: One-line help text
        accepted_extensions: File extensions the source exports
        accepted_mime_types: MIME types uploads may arrive with
        max_file_size: Largest accepted upload in bytes
    """

    id: ImportSource
    name: str
    description: str
    accepted_extensions: tuple[str, ...]
    accepted_mime_types: tuple[str, ...]
    max_file_size: int

    model_config = ConfigDict(frozen=True)

    def accepts_extension(self, filename: str) -> bool:
        return Path(filename).suffix.lower() in self.accepted_extensions


SOURCES: MappingProxyType[ImportSource, SourceConfig] = MappingProxyType(
    {
        ImportSource.BOOKMARKS: SourceConfig(
            id=ImportSource.BOOKMARKS,
            name="Browser Bookmarks",
            description="Import bookmarks from Chrome, Firefox, Safari, or Edge",
            accepted_extensions=(".html", ".htm"),
            accepted_mime_types=("text/html",),
            max_file_size=50 * MB,
        ),
        ImportSource.POCKET: SourceConfig(
            id=ImportSource.POCKET,
            name="Pocket",
            description="Import saved articles from Pocket (HTML or CSV export)",
            accepted_extensions=(".html", ".htm", ".csv"),
            accepted_mime_types=("text/html", "text/csv"),
            max_file_size=50 * MB,
        ),
        ImportSource.NOTION: SourceConfig(
            id=ImportSource.NOTION,
            name="Notion",
            description="Import pages from Notion (ZIP export with HTML/Markdown)",
            accepted_extensions=(".zip",),
            accepted_mime_types=("application/zip", "application/x-zip-compressed"),
            max_file_size=100 * MB,
        ),
        ImportSource.EVERNOTE: SourceConfig(
            id=ImportSource.EVERNOTE,
            name="Evernote",
            description="Import notes from Evernote (ENEX export)",
            accepted_extensions=(".enex",),
            accepted_mime_types=("application/xml", "text/xml"),
            max_file_size=100 * MB,
        ),
        ImportSource.TWITTER: SourceConfig(
            id=ImportSource.TWITTER,
            name="X / Twitter Bookmarks",
            description="Import bookmarked posts from an X archive (bookmarks.js)",
            accepted_extensions=(".js",),
            accepted_mime_types=("application/javascript", "text/javascript"),
            max_file_size=50 * MB,
        ),
        ImportSource.RAINDROP: SourceConfig(
            id=ImportSource.RAINDROP,
            name="Raindrop.io",
            description="Import bookmarks from a Raindrop.io CSV export",
            accepted_extensions=(".csv",),
            accepted_mime_types=("text/csv",),
            max_file_size=50 * MB,
        ),
    }
)


def get_source_config(source: ImportSource | str) -> SourceConfig:
    """Look up a source in the catalog.

    Raises:
        ConfigError: If the source is unknown.
    """
    try:
        return SOURCES[ImportSource(source)]
    except ValueError as e:
        raise ConfigError(f"Unknown import source: {source}") from e


# =============================================================================
# Settings Sections
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings.

    Attributes:
        level: Console/file log level.
        file: Optional log file path.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: Path | None = None

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("file", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class ImportConfig(BaseModel):
    """Defaults applied when planning an import.

    Attributes:
        batch_size: Items per downstream insert batch.
        skip_duplicates: Drop items whose dedup key was already seen.
        additional_tags: Tags merged into every imported item.
    """

    batch_size: int = Field(default=10, ge=1, le=1000)
    skip_duplicates: bool = True
    additional_tags: list[str] = Field(default_factory=list)


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Attributes:
        logging: Logging settings.
        importing: Import planning defaults.
        debug: Enable debug mode.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    importing: ImportConfig = Field(default_factory=ImportConfig)
    debug: bool = False

    model_config = {
        "env_prefix": "PKBI_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }


# =============================================================================
# Loading
# =============================================================================


def _default_search_paths() -> list[Path]:
    return [
        Path("./pkbimport.yaml"),
        Path("./pkbimport.yml"),
        Path.home() / ".pkbimport" / "config.yaml",
    ]


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file, environment and defaults.

    A missing default config file is not an error. A malformed file logs a
    warning and the defaults are used instead.

    Args:
        path: Explicit config file. Searched default locations when None.

    Returns:
        Fully populated AppConfig.

    Raises:
        ConfigFileError: If ``path`` is given but does not exist.
    """
    if path is not None and not path.exists():
        raise ConfigFileError(f"Config file not found: {path}")

    search_paths = [path] if path is not None else _default_search_paths()
    config_file = next((p for p in search_paths if p.exists()), None)

    config_data: dict[str, Any] = {}
    if config_file is not None:
        try:
            loaded = yaml.safe_load(config_file.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                config_data = loaded
            elif loaded is not None:
                logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        except OSError as e:
            logger.warning(f"Failed to read config file {config_file}: {e}. Using defaults.")

    try:
        return AppConfig(**config_data)
    except ValidationError as e:
        logger.warning(f"Invalid config values: {e}. Using defaults.")
        return AppConfig()


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Cached configuration singleton."""
    return load_config()


def reset_config() -> None:
    """Clear the configuration cache (for tests)."""
    get_config.cache_clear()
