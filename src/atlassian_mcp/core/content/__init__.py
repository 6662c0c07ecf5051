"""Text and markup helpers for Jira and Confluence content.

Sub-modules:
    adf     - Atlassian Document Format flattening
    html    - storage-format stripping, escaping and wrapping
    tasks   - task extraction, priority scoring and task-page rendering
"""

from atlassian_mcp.core.content.adf import extract_text_from_adf, text_from_field
from atlassian_mcp.core.content.html import (
    escape_html,
    ensure_storage_format,
    strip_html_tags,
    truncate_text,
)
from atlassian_mcp.core.content.tasks import (
    TaskItem,
    calculate_issue_task_priority,
    calculate_page_task_priority,
    default_task_page_title,
    extract_tasks_from_content,
    render_task_page,
)

__all__ = [
    "TaskItem",
    "calculate_issue_task_priority",
    "calculate_page_task_priority",
    "default_task_page_title",
    "ensure_storage_format",
    "escape_html",
    "extract_tasks_from_content",
    "extract_text_from_adf",
    "render_task_page",
    "strip_html_tags",
    "text_from_field",
    "truncate_text",
]
