"""Stateless helpers shared by the parsers."""

from pkbimport.utils.normalize import (
    batch_array,
    decode_html_entities,
    extract_domain,
    folder_path_to_tags,
    generate_dedup_key,
    is_plausible_date,
    normalize_tag,
    normalize_tags,
    normalize_url,
    parse_date,
    sanitize_title,
    strip_html,
    truncate_text,
)

__all__ = [
    "batch_array",
    "decode_html_entities",
    "extract_domain",
    "folder_path_to_tags",
    "generate_dedup_key",
    "is_plausible_date",
    "normalize_tag",
    "normalize_tags",
    "normalize_url",
    "parse_date",
    "sanitize_title",
    "strip_html",
    "truncate_text",
]
