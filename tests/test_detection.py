"""Tests for export format detection.

Covers each detector's confidence tiers, ordering of results, archive
handling and the human-readable summaries.
"""

import pytest

from pkbimport.core.models import ExportFormat, ImportSource
from pkbimport.detection import (
    DETECTION_ORDER,
    SNIFF_LIMIT,
    ConfidenceLevel,
    DetectionResult,
    detect_bookmarks,
    detect_evernote,
    detect_formats,
    detect_pocket_csv,
    detect_pocket_html,
    is_archive_noise,
    is_bookmarks_file,
    is_evernote_file,
    is_notion_zip,
    is_pocket_csv,
    is_pocket_file,
    is_raindrop_file,
    is_twitter_bookmarks_file,
    summarize_detections,
)
from pkbimport.parsers import parse_content

# =============================================================================
# Top Result Per Sample
# =============================================================================


class TestDetectFormats:
    """Each sample export is detected as its own format first."""

    @pytest.mark.parametrize(
        ("fixture_name", "expected"),
        [
            ("bookmarks_html", ExportFormat.BOOKMARKS_HTML),
            ("pocket_html", ExportFormat.POCKET_HTML),
            ("pocket_csv", ExportFormat.POCKET_CSV),
            ("evernote_enex", ExportFormat.EVERNOTE_ENEX),
            ("twitter_js", ExportFormat.TWITTER_JS),
            ("raindrop_csv", ExportFormat.RAINDROP_CSV),
            ("notion_zip", ExportFormat.NOTION_ZIP),
        ],
    )
    def test_top_result(self, request, fixture_name: str, expected: ExportFormat) -> None:
        content = request.getfixturevalue(fixture_name)

        results = detect_formats(content)

        assert results
        assert results[0].format == expected
        assert results[0].evidence

    def test_bytes_input(self, bookmarks_html: str) -> None:
        results = detect_formats(bookmarks_html.encode("utf-8"))

        assert results[0].format == ExportFormat.BOOKMARKS_HTML

    def test_bom_prefixed_content(self, twitter_js: str) -> None:
        results = detect_formats(("\ufeff" + twitter_js).encode("utf-8"))

        assert results[0].format == ExportFormat.TWITTER_JS

    def test_nothing_detected(self) -> None:
        assert detect_formats("just some plain text") == []

    def test_sorted_by_confidence(self, raindrop_csv: str) -> None:
        """Raindrop headers also look like a Pocket CSV, at lower confidence."""
        results = detect_formats(raindrop_csv)

        assert [r.format for r in results] == [ExportFormat.RAINDROP_CSV, ExportFormat.POCKET_CSV]
        assert results[0].confidence == ConfidenceLevel.HIGH
        assert results[1].confidence == ConfidenceLevel.MEDIUM

    def test_keyword_mention_does_not_win(self, bookmarks_html: str) -> None:
        content = bookmarks_html.replace("Hacker News", "Saved from Pocket and Evernote")

        results = detect_formats(content)

        assert results[0].format == ExportFormat.BOOKMARKS_HTML
        assert {r.format for r in results[1:]} == {ExportFormat.POCKET_HTML, ExportFormat.EVERNOTE_ENEX}
        assert all(r.confidence == ConfidenceLevel.LOW for r in results[1:])

    def test_structural_match_beats_keyword_mention(self) -> None:
        content = "url,title\nhttps://evernote.com/blog,Evernote blog\n"

        results = detect_formats(content)

        assert [r.format for r in results] == [ExportFormat.POCKET_CSV, ExportFormat.EVERNOTE_ENEX]
        assert all(r.confidence == ConfidenceLevel.LOW for r in results)
        assert [r.keyword_only for r in results] == [False, True]

    def test_parse_content_routes_csv_mentioning_evernote(self) -> None:
        result = parse_content("url,title\nhttps://evernote.com/blog,Evernote blog\n")

        assert result.format == ExportFormat.POCKET_CSV
        assert result.success
        assert result.items[0].title == "Evernote blog"

    def test_detection_order(self) -> None:
        assert DETECTION_ORDER == (
            ExportFormat.TWITTER_JS,
            ExportFormat.EVERNOTE_ENEX,
            ExportFormat.RAINDROP_CSV,
            ExportFormat.BOOKMARKS_HTML,
            ExportFormat.POCKET_CSV,
            ExportFormat.POCKET_HTML,
            ExportFormat.NOTION_ZIP,
        )

    def test_markers_beyond_sniff_window_ignored(self) -> None:
        content = " " * SNIFF_LIMIT + "<!DOCTYPE NETSCAPE-Bookmark-file-1>"

        assert not is_bookmarks_file(content)


# =============================================================================
# Confidence Tiers
# =============================================================================


class TestConfidenceTiers:
    """Detectors grade their evidence."""

    def test_bookmarks_signature_is_high(self, bookmarks_html: str) -> None:
        assert detect_bookmarks(bookmarks_html).confidence == ConfidenceLevel.HIGH

    def test_bookmarks_list_structure_is_medium(self) -> None:
        html = '<dl><dt><a href="https://example.com">x</a></dl>'

        assert detect_bookmarks(html).confidence == ConfidenceLevel.MEDIUM

    def test_plain_html_is_not_bookmarks(self) -> None:
        assert detect_bookmarks("<html><body>Hello</body></html>") is None

    def test_evernote_tiers(self) -> None:
        assert detect_evernote("<en-export>").confidence == ConfidenceLevel.HIGH
        assert detect_evernote("<note><content>x</content></note>").confidence == ConfidenceLevel.MEDIUM
        assert detect_evernote("exported from Evernote").confidence == ConfidenceLevel.LOW
        assert detect_evernote("<html><body>Hello</body></html>") is None

    def test_pocket_html_tiers(self) -> None:
        assert detect_pocket_html("<h1>Unread</h1>").confidence == ConfidenceLevel.HIGH
        assert detect_pocket_html("<h1>Read Archive</h1>").confidence == ConfidenceLevel.HIGH
        assert detect_pocket_html('<a href="https://getpocket.com/x">').confidence == ConfidenceLevel.MEDIUM
        assert detect_pocket_html("my pocket list").confidence == ConfidenceLevel.LOW
        assert detect_pocket_html("<html><body>Hello</body></html>") is None

    def test_pocket_csv_tiers(self, pocket_csv: str) -> None:
        assert detect_pocket_csv(pocket_csv).confidence == ConfidenceLevel.MEDIUM
        assert detect_pocket_csv("url,comment\nhttps://a.com,x").confidence == ConfidenceLevel.LOW
        assert detect_pocket_csv("<h1>url</h1>") is None
        assert detect_pocket_csv("name,notes\nA,B") is None


# =============================================================================
# Boolean Predicates
# =============================================================================


class TestPredicates:
    """The is_* predicates accept their own samples only."""

    def test_accept_own_samples(
        self,
        bookmarks_html,
        pocket_html,
        pocket_csv,
        evernote_enex,
        twitter_js,
        raindrop_csv,
        notion_zip,
    ) -> None:
        assert is_bookmarks_file(bookmarks_html)
        assert is_pocket_file(pocket_html)
        assert is_pocket_csv(pocket_csv)
        assert is_evernote_file(evernote_enex)
        assert is_twitter_bookmarks_file(twitter_js)
        assert is_raindrop_file(raindrop_csv)
        assert is_notion_zip(notion_zip)

    def test_reject_other_samples(self, pocket_html, evernote_enex, twitter_js) -> None:
        assert not is_bookmarks_file(pocket_html)
        assert not is_evernote_file(pocket_html)
        assert not is_pocket_file(evernote_enex)
        assert not is_raindrop_file(twitter_js)
        assert not is_twitter_bookmarks_file(evernote_enex)

    def test_text_is_never_a_notion_zip(self, bookmarks_html: str) -> None:
        assert not is_notion_zip(bookmarks_html)

    def test_flat_archive_is_not_notion(self, make_zip) -> None:
        assert not is_notion_zip(make_zip({"page.md": "# Page"}))

    def test_archive_with_only_noise_is_not_notion(self, make_zip) -> None:
        assert not is_notion_zip(make_zip({"__MACOSX/folder/._page.md": b"\x00"}))

    def test_corrupt_archive(self) -> None:
        assert not is_notion_zip(b"PK\x03\x04 definitely not a zip")
        assert detect_formats(b"PK\x03\x04 definitely not a zip") == []

    @pytest.mark.parametrize(
        ("name", "noise"),
        [
            ("__MACOSX/Workspace/._page.md", True),
            ("Workspace/.DS_Store", True),
            ("Thumbs.db", True),
            ("Workspace/page.md", False),
        ],
    )
    def test_archive_noise(self, name: str, noise: bool) -> None:
        assert is_archive_noise(name) is noise


# =============================================================================
# Summaries
# =============================================================================


class TestSummaries:
    """Tests for DetectionResult summaries."""

    def test_result_summary(self) -> None:
        result = DetectionResult(
            format=ExportFormat.BOOKMARKS_HTML,
            confidence=ConfidenceLevel.HIGH,
            evidence=["Found signature"],
        )

        assert result.source == ImportSource.BOOKMARKS
        assert str(result) == "✓ BOOKMARKS_HTML export detected (HIGH confidence)"

    def test_summarize_detections(self, bookmarks_html: str) -> None:
        lines = summarize_detections(detect_formats(bookmarks_html))

        assert lines[0].startswith("✓ BOOKMARKS_HTML")
        assert lines[1].startswith("  - ")

    def test_summarize_nothing(self) -> None:
        assert summarize_detections([]) == ["No supported export format detected."]
