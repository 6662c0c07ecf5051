"""Atlassian Document Format (ADF) to plain text."""

from typing import Any, Optional

_BLOCK_TYPES = frozenset({"paragraph", "heading", "blockquote", "listItem"})


def extract_text_from_adf(node: Any) -> str:
    """Flatten an ADF node tree to text.

    Block nodes end with a newline; ``hardBreak`` becomes a newline.
    """
    if not isinstance(node, dict):
        return ""

    parts = []
    children = node.get("content")
    if isinstance(children, list):
        parts.extend(extract_text_from_adf(child) for child in children)

    node_type = node.get("type")
    if node_type == "text" and node.get("text"):
        parts.append(node["text"])

    text = "".join(parts)
    if node_type in _BLOCK_TYPES and text and not text.endswith("\n"):
        text += "\n"
    if node_type == "hardBreak":
        text += "\n"
    return text


def text_from_field(value: Any) -> Optional[str]:
    """Return plain text for a Jira rich-text field (ADF doc or string)."""
    if not value:
        return None
    if isinstance(value, dict) and value.get("type") == "doc":
        return extract_text_from_adf(value)
    if isinstance(value, str):
        return value
    return str(value)
