"""
Input sanitization helpers.
"""
from __future__ import annotations

from backend.web.sanitize import (
    escape_html,
    sanitize_html,
    sanitize_like_pattern,
    sanitize_object,
    sanitize_text,
    strip_html,
)


def test_escape_html_escapes_markup_characters():
    assert escape_html('<a href="x">') == "&lt;a href&#x3D;&quot;x&quot;&gt;"


def test_sanitize_html_drops_scripts_and_handlers():
    dirty = '<p onclick="steal()">Hi<script>alert(1)</script> <a href="javascript:alert(1)">x</a></p>'
    clean = sanitize_html(dirty)
    assert "script" not in clean
    assert "alert" not in clean
    assert "onclick" not in clean
    assert "javascript:" not in clean
    assert clean.startswith("<p>Hi")


def test_sanitize_html_keeps_whitelisted_tags():
    assert sanitize_html("<strong>bold</strong><em>it</em>") == "<strong>bold</strong><em>it</em>"


def test_strip_html_returns_plain_text():
    assert strip_html("<b>Tom &amp; Jerry</b><style>p{}</style>") == "Tom & Jerry"


def test_like_pattern_escapes_wildcards():
    assert sanitize_like_pattern("50%_off") == "50\\%\\_off"


def test_sanitize_text_trims_and_removes_control_chars():
    assert sanitize_text("  café\x00\n ") == "café"
    assert sanitize_text("line1\nline2\tend") == "line1\nline2\tend"


def test_sanitize_object_recurses():
    data = {"a": " x ", "b": [" y ", {"c": "\x01z"}], "n": 3}
    assert sanitize_object(data) == {"a": "x", "b": ["y", {"c": "z"}], "n": 3}
