"""
Input sanitization helpers for request bodies.

Security model:
- Plain text fields go through `sanitize_text` (trim, NFC, no control chars).
- Rich text is cleaned by bleach against a small whitelist; script/style
  blocks are dropped with their content before cleaning.
- LIKE patterns escape their wildcard characters before reaching postgrest.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping
import html
import re
import unicodedata

import bleach

_ALLOWED_TAGS = ["p", "br", "strong", "em", "ul", "ol", "li", "code", "pre", "blockquote", "a"]

_ALLOWED_ATTRIBUTES = {
    "a": ["href", "title"],
}

_ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "`": "&#x60;",
    "=": "&#x3D;",
}

_ESCAPE_RE = re.compile(r"[&<>\"'`=/]")
_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def escape_html(value: str) -> str:
    if not isinstance(value, str):
        return value
    return _ESCAPE_RE.sub(lambda m: _HTML_ESCAPES[m.group(0)], value)


def sanitize_html(value: str) -> str:
    """Keep a minimal tag whitelist; drop scripts, event handlers and unsafe URLs."""
    if not isinstance(value, str):
        return value
    without_blocks = _BLOCK_RE.sub("", value)
    return bleach.clean(
        without_blocks,
        tags=_ALLOWED_TAGS,
        attributes=_ALLOWED_ATTRIBUTES,
        protocols=_ALLOWED_PROTOCOLS,
        strip=True,
    )


def strip_html(value: str) -> str:
    """Remove every tag and return plain text."""
    if not isinstance(value, str):
        return value
    cleaned = bleach.clean(_BLOCK_RE.sub("", value), tags=[], attributes={}, strip=True)
    return html.unescape(cleaned)


def sanitize_like_pattern(value: str) -> str:
    if not isinstance(value, str):
        return value
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_").replace("[", "\\[")


def sanitize_text(value: str) -> str:
    """Trim, normalise to NFC and remove control characters except \\n and \\t."""
    if not isinstance(value, str):
        return value
    return _CONTROL_RE.sub("", unicodedata.normalize("NFC", value.strip()))


def sanitize_object(obj: Any, sanitizer: Callable[[str], str] = sanitize_text) -> Any:
    """Apply `sanitizer` to every string inside nested dicts and lists."""
    if isinstance(obj, str):
        return sanitizer(obj)
    if isinstance(obj, Mapping):
        return {k: sanitize_object(v, sanitizer) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_object(v, sanitizer) for v in obj]
    return obj


__all__ = [
    "escape_html",
    "sanitize_html",
    "sanitize_like_pattern",
    "sanitize_object",
    "sanitize_text",
    "strip_html",
]
