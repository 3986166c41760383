"""Tests for the shared normalization utilities."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from pkbimport.utils.normalize import (
    DEFAULT_TITLE,
    MAX_TAG_LENGTH,
    MAX_TITLE_LENGTH,
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

# =============================================================================
# Titles
# =============================================================================


class TestSanitizeTitle:
    """Tests for sanitize_title."""

    def test_collapses_whitespace(self) -> None:
        assert sanitize_title("  Hello \n\t World  ") == "Hello World"

    def test_strips_control_characters(self) -> None:
        assert sanitize_title("Bell\x07 Title\x00") == "Bell Title"

    @pytest.mark.parametrize("value", [None, "", "   ", "\x00\x01"])
    def test_defaults_to_untitled(self, value) -> None:
        assert sanitize_title(value) == DEFAULT_TITLE

    def test_truncates_long_titles(self) -> None:
        title = sanitize_title("a" * 800)

        assert len(title) == MAX_TITLE_LENGTH
        assert title.endswith("...")


# =============================================================================
# Tags
# =============================================================================


class TestTags:
    """Tests for normalize_tag, normalize_tags and folder_path_to_tags."""

    def test_normalize_tag(self) -> None:
        assert normalize_tag("  Machine Learning!! ") == "machine-learning"
        assert normalize_tag("C++ / Rust") == "c-rust"
        assert normalize_tag("snake_case-ok") == "snake_case-ok"

    @pytest.mark.parametrize(
        "tag",
        ["Hello World", "--edge--", "Ünïcödé tag", "a" * 80, "x" * 49 + " y", "???"],
    )
    def test_normalize_tag_is_idempotent(self, tag: str) -> None:
        once = normalize_tag(tag)

        assert normalize_tag(once) == once

    def test_normalize_tag_truncates(self) -> None:
        assert len(normalize_tag("a" * 80)) == MAX_TAG_LENGTH

    def test_normalize_tag_truncation_drops_trailing_hyphen(self) -> None:
        tag = normalize_tag("x" * 49 + " y")

        assert tag == "x" * 49

    def test_normalize_tags_drops_empties_and_duplicates(self) -> None:
        assert normalize_tags(["Python", "python", " PYTHON ", "", None, "!!!", "Web"]) == ["python", "web"]

    def test_folder_path_to_tags(self) -> None:
        assert folder_path_to_tags("Bookmarks Bar/Development/JavaScript") == ["development", "javascript"]

    def test_folder_path_separators(self) -> None:
        assert folder_path_to_tags("Favorites\\Work > Reports") == ["work", "reports"]

    def test_folder_path_only_generic_roots(self) -> None:
        assert folder_path_to_tags("Other Bookmarks/Root") == []

    @pytest.mark.parametrize("value", [None, ""])
    def test_folder_path_empty(self, value) -> None:
        assert folder_path_to_tags(value) == []


# =============================================================================
# URLs
# =============================================================================


class TestUrls:
    """Tests for normalize_url and extract_domain."""

    def test_adds_https_scheme(self) -> None:
        assert normalize_url("  example.com/page ") == "https://example.com/page"

    def test_keeps_existing_scheme(self) -> None:
        assert normalize_url("http://example.com") == "http://example.com"

    @pytest.mark.parametrize("value", [None, "", "   ", "not a url", "http://", "https://exa mple.com"])
    def test_invalid_urls(self, value) -> None:
        assert normalize_url(value) is None

    @pytest.mark.parametrize(
        "value",
        ["example.com", "https://example.com/path?q=1#frag", "http://localhost:8080/x", "sub.domain.org"],
    )
    def test_normalization_is_idempotent(self, value: str) -> None:
        normalized = normalize_url(value)

        assert normalized is not None
        assert normalize_url(normalized) == normalized

    def test_extract_domain(self) -> None:
        assert extract_domain("https://www.example.com/path") == "example.com"
        assert extract_domain("https://docs.python.org") == "docs.python.org"

    @pytest.mark.parametrize("value", [None, "", "not a url"])
    def test_extract_domain_failure(self, value) -> None:
        assert extract_domain(value) is None


# =============================================================================
# HTML
# =============================================================================


class TestHtml:
    """Tests for decode_html_entities and strip_html."""

    def test_named_entities(self) -> None:
        assert decode_html_entities("Tom &amp; Jerry &quot;live&quot;") == 'Tom & Jerry "live"'

    def test_numeric_entities(self) -> None:
        assert decode_html_entities("&#8212;&#x2F;&#X41;") == "—/A"

    def test_unknown_entity_untouched(self) -> None:
        assert decode_html_entities("&bogus; &#xZZ;") == "&bogus; &#xZZ;"

    def test_single_pass_decoding(self) -> None:
        assert decode_html_entities("&amp;lt;") == "&lt;"

    def test_strip_html_blocks_and_lists(self) -> None:
        assert strip_html("<p>Hello</p><ul><li>One</li><li>Two</li></ul>") == "Hello\n• One\n• Two"

    def test_strip_html_drops_scripts_and_comments(self) -> None:
        html = "<div>Keep</div><script>alert(1)</script><style>p{}</style><!-- hidden -->"

        assert strip_html(html) == "Keep"

    def test_strip_html_collapses_blank_lines(self) -> None:
        assert strip_html("<p>A</p><p></p><p></p><br><p>B</p>") == "A\n\nB"

    def test_strip_html_decodes_entities(self) -> None:
        assert strip_html("<b>Fish &amp; Chips</b>") == "Fish & Chips"


# =============================================================================
# Dedup Keys, Truncation, Batches
# =============================================================================


class TestDedupKey:
    """Tests for generate_dedup_key."""

    def test_missing_scheme_gives_same_key(self) -> None:
        bare = SimpleNamespace(url="example.com", title="A")
        full = SimpleNamespace(url="https://example.com", title="B")

        assert generate_dedup_key(bare) == generate_dedup_key(full) == "url:https://example.com"

    def test_title_key_without_url(self) -> None:
        item = SimpleNamespace(url=None, title="  My Note ")

        assert generate_dedup_key(item) == "title:my note"

    def test_invalid_url_falls_back_to_title(self) -> None:
        item = SimpleNamespace(url="not a url", title="Title")

        assert generate_dedup_key(item) == "title:title"


class TestTruncateText:
    """Tests for truncate_text."""

    def test_short_text_unchanged(self) -> None:
        assert truncate_text("short", 10) == "short"

    def test_backs_off_to_word_boundary(self) -> None:
        assert truncate_text("hello world again", 13) == "hello world..."

    def test_hard_cut_when_space_too_early(self) -> None:
        assert truncate_text("hi abcdefghijklmnop", 10) == "hi abcdefg..."


class TestBatchArray:
    """Tests for batch_array."""

    def test_batches(self) -> None:
        assert batch_array([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty_input(self) -> None:
        assert batch_array([], 3) == []

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            batch_array([1], 0)


# =============================================================================
# Dates
# =============================================================================


class TestParseDate:
    """Tests for parse_date."""

    def test_plausibility_window(self) -> None:
        now = datetime.now(timezone.utc)

        assert is_plausible_date(datetime(1990, 1, 1, tzinfo=timezone.utc))
        assert is_plausible_date(now)
        assert not is_plausible_date(datetime(1989, 12, 31, tzinfo=timezone.utc))
        assert not is_plausible_date(now + timedelta(days=2))

    def test_seconds_and_milliseconds_agree(self) -> None:
        assert parse_date(1700000000) == parse_date(1700000000000)
        assert parse_date(1700000000) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_numeric_string(self) -> None:
        assert parse_date("1700000000") == parse_date(1700000000)

    def test_iso_string(self) -> None:
        assert parse_date("2024-01-15T14:30:22Z") == datetime(2024, 1, 15, 14, 30, 22, tzinfo=timezone.utc)

    def test_naive_string_assumed_utc(self) -> None:
        result = parse_date("2024-01-15")

        assert result is not None
        assert result.tzinfo is not None

    def test_rejects_before_1990(self) -> None:
        assert parse_date("1800-01-01") is None
        assert parse_date(0) is None

    def test_rejects_far_future(self) -> None:
        future = datetime.now(timezone.utc) + timedelta(days=30)

        assert parse_date(future.isoformat()) is None

    @pytest.mark.parametrize("value", [None, "", "   ", "yesterday-ish", True, [2024]])
    def test_unparseable(self, value) -> None:
        assert parse_date(value) is None
