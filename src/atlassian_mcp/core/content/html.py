"""Confluence storage-format helpers."""

import html
import re
from typing import Tuple

_MACRO_TAG_RE = re.compile(r"</?(?:ac|ri):[^>]*>")
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_PARAGRAPH_END_RE = re.compile(r"</p>", re.IGNORECASE)
_DIV_END_RE = re.compile(r"</div>", re.IGNORECASE)
_HEADING_END_RE = re.compile(r"</h[1-6]>", re.IGNORECASE)
_LI_START_RE = re.compile(r"<li(?:\s[^>]*)?>", re.IGNORECASE)
_LI_END_RE = re.compile(r"</li>", re.IGNORECASE)
_ANY_TAG_RE = re.compile(r"<[^>]*>")
_HAS_TAG_RE = re.compile(r"<[^>]+>")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")
_MANY_SPACES_RE = re.compile(r"[ \t]{2,}")

_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#39;",
    }
)


def strip_html_tags(markup: str) -> str:
    """Convert Confluence storage HTML to readable text.

    Confluence ``ac:``/``ri:`` macro tags are dropped (their text is kept),
    block ends become line breaks and list items become bullets.
    """
    if not markup:
        return ""

    text = _MACRO_TAG_RE.sub("", markup)
    text = _BR_RE.sub("\n", text)
    text = _PARAGRAPH_END_RE.sub("\n\n", text)
    text = _DIV_END_RE.sub("\n", text)
    text = _HEADING_END_RE.sub("\n\n", text)
    text = _LI_START_RE.sub("\n• ", text)
    text = _LI_END_RE.sub("", text)
    text = _ANY_TAG_RE.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")

    text = _MANY_NEWLINES_RE.sub("\n\n", text)
    text = _MANY_SPACES_RE.sub(" ", text)
    return text.strip()


def escape_html(text: str) -> str:
    if not text:
        return ""
    return text.translate(_ESCAPES)


def ensure_storage_format(content: str) -> str:
    """Wrap plain text in ``<p>``; markup passes through untouched."""
    if not content:
        return "<p></p>"
    if _HAS_TAG_RE.search(content):
        return content
    return f"<p>{escape_html(content)}</p>"


def truncate_text(text: str, max_length: int) -> Tuple[str, bool]:
    """Cut *text* to *max_length* characters; returns ``(text, truncated)``."""
    if text is None or len(text) <= max_length:
        return text, False
    return text[:max_length], True
