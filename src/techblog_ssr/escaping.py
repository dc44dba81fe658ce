"""Context-specific escaping and light content cleanup for templates."""

from __future__ import annotations

import json
import re
from typing import Any

_HTML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#39;",
    }
)

_XML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&apos;",
    }
)

_JSON_SCRIPT_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)

_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_IFRAME_RE = re.compile(r"<iframe\b[^>]*>.*?</iframe\s*>", re.IGNORECASE | re.DOTALL)
_HANDLER_RE = re.compile(r"""\s+on\w+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)
_JS_URL_RE = re.compile(r"javascript:", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def escape_html(text: Any) -> str:
    """Escape ``& < > " '`` for use in element content and attribute values."""
    if text is None:
        return ""
    return str(text).translate(_HTML_ESCAPES)


def escape_xml(text: Any) -> str:
    if text is None:
        return ""
    return str(text).translate(_XML_ESCAPES)


def escape_json(obj: Any) -> str:
    """Serialize ``obj`` for inlining inside a ``<script>`` element."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":")).translate(
        _JSON_SCRIPT_ESCAPES
    )


def clean_html_for_ai(html: str | None) -> str:
    """Strip scripts, styles, iframes and inline handlers from trusted article HTML.

    Not a sanitizer: article bodies are authored internally.
    """
    if not html:
        return ""
    clean = _SCRIPT_RE.sub("", html)
    clean = _STYLE_RE.sub("", clean)
    clean = _IFRAME_RE.sub("", clean)
    clean = _HANDLER_RE.sub("", clean)
    return _JS_URL_RE.sub("", clean)


def strip_tags(html: str | None) -> str:
    if not html:
        return ""
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", html)).strip()


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + suffix
