"""Central Pytest Fixtures for pkbimport.

Sample exports for every supported source, built in memory so the suite needs
no fixture files on disk.

Fixtures included:
- Text exports: bookmarks_html, pocket_html, pocket_csv, evernote_enex,
  twitter_js, raindrop_csv
- Archives: make_zip (builder), notion_zip
- Files: write_export (writes any sample to tmp_path)
- Isolation: clean_registry, clean_config
"""

import io
import os
import zipfile
from pathlib import Path
from typing import Callable

import pytest

from pkbimport.config import reset_config
from pkbimport.parsers import ParserRegistry

PAGE_ID = "0123456789abcdef0123456789abcdef"


# =============================================================================
# Text Exports
# =============================================================================


@pytest.fixture
def bookmarks_html() -> str:
    """Chrome-style export: nested folders, a bookmarklet and a broken URL."""
    return """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<!-- This is an automatically generated file. -->
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Bookmarks</TITLE>
<H1>Bookmarks</H1>
<DL><p>
    <DT><H3 ADD_DATE="1700000000" PERSONAL_TOOLBAR_FOLDER="true">Bookmarks Bar</H3>
    <DL><p>
        <DT><H3 ADD_DATE="1700000000">Development</H3>
        <DL><p>
            <DT><H3>JavaScript</H3>
            <DL><p>
                <DT><A HREF="https://developer.mozilla.org" ADD_DATE="1700000000" ICON="data:image/png;base64,iVBORw0KGgo=">MDN Web Docs</A>
            </DL><p>
            <DT><A HREF="https://github.com" ADD_DATE="1700000000">GitHub</A>
            <DT><A HREF="javascript:alert('hi')">Bookmarklet</A>
        </DL><p>
        <DT><A HREF="https://example.com" ADD_DATE="1700000000">Example Site &amp; Co</A>
    </DL><p>
    <DT><A HREF="https://news.ycombinator.com/">Hacker News</A>
    <DT><A HREF="http://exa mple.com">Broken Link</A>
</DL><p>
"""


@pytest.fixture
def pocket_html() -> str:
    """Pocket ril_export.html with an Unread and a Read Archive section."""
    return """<!DOCTYPE html>
<html>
<head>
<meta http-equiv="Content-Type" content="text/html; charset=UTF-8">
<title>Pocket Export</title>
</head>
<body>
<h1>Unread</h1>
<ul>
<li><a href="https://example.com/article1" time_added="1700000000" tags="tech,programming">How to Learn Programming</a></li>
<li><a href="https://example.com/article2" time_added="1700000100" tags="">No Tags Article</a></li>
</ul>

<h1>Read Archive</h1>
<ul>
<li><a href="https://example.com/article3" time_added="1600000000" tags="news">Finished Reading</a></li>
</ul>
</body>
</html>
"""


@pytest.fixture
def pocket_csv() -> str:
    """Pocket CSV export with a quoted title, pipe-separated tags and a bad URL."""
    return (
        "title,url,time_added,tags,status\n"
        '"Article, with comma",https://example.com/a,1700000000,python|web,unread\n'
        "Second Article,https://example.com/b,1600000000,,archive\n"
        "Bad Row,not a url,,,unread\n"
    )


@pytest.fixture
def evernote_enex() -> str:
    """ENEX export with checkboxes, an attachment and note attributes."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE en-export SYSTEM "http://xml.evernote.com/pub/evernote-export3.dtd">
<en-export export-date="20240115T143022Z" application="Evernote" version="10.0">
  <note notebook="Work">
    <title>Meeting Notes</title>
    <content><![CDATA[<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE en-note SYSTEM "http://xml.evernote.com/pub/enml2.dtd">
<en-note><div>Discussion points</div><ul><li>Project timeline review</li></ul><div><en-todo checked="true"/>Completed task</div><div><en-todo/>Pending task</div></en-note>]]></content>
    <created>20240115T143022Z</created>
    <updated>20240116T090000Z</updated>
    <tag>Work</tag>
    <tag>Meetings</tag>
    <note-attributes>
      <source-url>https://example.com/agenda</source-url>
    </note-attributes>
  </note>
  <note>
    <title>Recipe: Pasta</title>
    <content><![CDATA[<en-note><p>Boil water &amp; add salt</p><en-media hash="abc123" type="image/png"/></en-note>]]></content>
    <updated>20231201T100000Z</updated>
    <tag>cooking</tag>
  </note>
  <note>
    <title>Quick Note</title>
    <content><![CDATA[<en-note>Remember the milk</en-note>]]></content>
  </note>
</en-export>
"""


@pytest.fixture
def twitter_js() -> str:
    """bookmarks.js from an X archive, one entry missing its tweetId."""
    return """window.YTD.bookmarks.part0 = [
  {
    "bookmark": {
      "tweetId": "1734567890123456789",
      "fullText": "Great thread on Python packaging"
    }
  },
  {
    "bookmark": {
      "tweetId": "1111"
    }
  },
  {
    "bookmark": {
      "fullText": "orphaned entry"
    }
  }
]"""


@pytest.fixture
def raindrop_csv() -> str:
    """Raindrop.io CSV export with a full row, a minimal row and a bad URL."""
    return (
        "id,title,note,excerpt,url,folder,tags,created,cover,highlights,favorite\n"
        '101,My Article,Some notes,An excerpt,https://example.com,Development/JavaScript,"react,web",'
        "2024-01-15T14:30:22.000Z,https://example.com/cover.png,Key point,true\n"
        "102,,,,https://example.org,,,,,,false\n"
        "103,Broken,,,not a url,,,,,,\n"
    )


# =============================================================================
# Archives
# =============================================================================


@pytest.fixture
def make_zip() -> Callable[[dict[str, str | bytes]], bytes]:
    """Factory building an in-memory ZIP from a {name: content} mapping."""

    def _make_zip(files: dict[str, str | bytes]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, content in files.items():
                archive.writestr(name, content)
        return buffer.getvalue()

    return _make_zip


@pytest.fixture
def notion_files() -> dict[str, str | bytes]:
    """Notion workspace export: one Markdown page, one HTML page, OS noise."""
    return {
        f"Workspace/Project Plan {PAGE_ID}.md": "# Project Plan\n\nShip the importer #roadmap #q1\n",
        f"Workspace/Projects/Meeting Notes {PAGE_ID}.html": (
            "<html><head><title>Meeting Notes</title></head><body>"
            '<article><header><h1 class="page-title">Meeting Notes</h1></header>'
            '<div class="page-body"><p>Agenda</p><ul><li>Budget</li></ul></div>'
            "</article></body></html>"
        ),
        "Workspace/Projects/diagram.png": b"\x89PNG\r\n\x1a\n",
        "__MACOSX/Workspace/._Project Plan.md": b"\x00\x05\x16\x07",
        "Workspace/.DS_Store": b"\x00\x00\x00\x01Bud1",
    }


@pytest.fixture
def notion_zip(make_zip, notion_files) -> bytes:
    return make_zip(notion_files)


# =============================================================================
# Files
# =============================================================================


@pytest.fixture
def write_export(tmp_path: Path) -> Callable[[str, str | bytes], Path]:
    """Factory writing sample content to a named file under tmp_path."""

    def _write(name: str, content: str | bytes) -> Path:
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture
def clean_registry():
    """Snapshot the parser registry and restore it after the test."""
    saved = dict(ParserRegistry._parsers)
    yield ParserRegistry
    ParserRegistry._parsers.clear()
    ParserRegistry._parsers.update(saved)


@pytest.fixture
def clean_config(monkeypatch):
    """Drop cached config and PKBI_* environment overrides."""
    for key in list(os.environ):
        if key.startswith("PKBI_"):
            monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()
