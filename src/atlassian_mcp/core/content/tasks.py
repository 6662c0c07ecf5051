"""Task extraction, prioritisation and task-page rendering.

Extraction works on plain text (run ``strip_html_tags`` first). Scores
are unbounded integers; higher means more pressing.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from atlassian_mcp.core.content.html import escape_html

DEFAULT_TASK_MIN_LENGTH = 3
DEFAULT_TASK_MAX_LENGTH = 500

_TASK_PATTERNS = [
    re.compile(r"(?:^|\n)\s*[-*•]\s*\[\s*\]\s*(.+)", re.MULTILINE),
    re.compile(r"(?:^|\n)\s*[-*•]\s*TODO:?\s*(.+)", re.MULTILINE | re.IGNORECASE),
    re.compile(r"(?:^|\n)\s*[-*•]\s*ACTION:?\s*(.+)", re.MULTILINE | re.IGNORECASE),
    re.compile(r"(?:^|\n)\s*[-*•]\s*TASK:?\s*(.+)", re.MULTILINE | re.IGNORECASE),
    re.compile(r"(?:^|\n)\s*\d+\.\s*TODO:?\s*(.+)", re.MULTILINE | re.IGNORECASE),
    re.compile(r"(?:^|\n)\s*\d+\.\s*ACTION:?\s*(.+)", re.MULTILINE | re.IGNORECASE),
    re.compile(r"ACTION ITEM:?\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"@\w+\s+to\s+(.+?)(?:\n|$)", re.IGNORECASE),
]

_SECTION_PATTERNS = [
    re.compile(
        r"(?:action items?|tasks?|todo list|next steps)[:\s]*\n([^\n]+(?:\n[^\n]+)*?)(?:\n\n|$)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:decisions?|follow[- ]?ups?)[:\s]*\n([^\n]+(?:\n[^\n]+)*?)(?:\n\n|$)",
        re.IGNORECASE,
    ),
]

_NOT_A_TASK_RE = re.compile(r"^(the|and|or|but|if|when|where|why|how|what|who)\s", re.IGNORECASE)
_LIST_MARKER_RE = re.compile(r"^\s*[-*•\d.]+\s*")
_NORMALIZE_RE = re.compile(r"[^a-z0-9]")


def _within_bounds(text: str, min_length: int, max_length: int) -> bool:
    return min_length < len(text) < max_length


def extract_tasks_from_content(
    content: str,
    *,
    min_length: int = DEFAULT_TASK_MIN_LENGTH,
    max_length: int = DEFAULT_TASK_MAX_LENGTH,
) -> List[Dict[str, str]]:
    """Find action items in page text.

    Marker lines (checkboxes, TODO/ACTION/TASK, "@user to ...") yield
    ``action_item`` tasks; lines under "Action items", "Next steps",
    "Decisions" or "Follow-ups" headings yield ``section_item`` tasks.
    Duplicates (compared case- and punctuation-insensitively) keep the
    first occurrence.
    """
    if not content:
        return []

    found: List[Dict[str, str]] = []
    for pattern in _TASK_PATTERNS:
        for match in pattern.finditer(content):
            text = match.group(1).strip()
            if text and _within_bounds(text, min_length, max_length) and not _NOT_A_TASK_RE.match(text):
                found.append({"text": text, "type": "action_item"})

    for pattern in _SECTION_PATTERNS:
        for match in pattern.finditer(content):
            for line in match.group(1).split("\n"):
                text = _LIST_MARKER_RE.sub("", line).strip()
                if text and _within_bounds(text, min_length, max_length):
                    found.append({"text": text, "type": "section_item"})

    unique: List[Dict[str, str]] = []
    seen = set()
    for task in found:
        key = _NORMALIZE_RE.sub("", task["text"].lower())
        if key not in seen:
            seen.add(key)
            unique.append(task)
    return unique


def calculate_page_task_priority(title: str, content: str) -> int:
    """Score how urgent a page's tasks look from its title and text."""
    score = 0
    title = title or ""
    content = content or ""

    if re.search(r"urgent|critical|important|priority|asap", title, re.IGNORECASE):
        score += 10
    if re.search(r"meeting|minutes|action", title, re.IGNORECASE):
        score += 5
    if re.search(r"\d{4}-\d{2}-\d{2}|today|tomorrow|this week", title, re.IGNORECASE):
        score += 3

    score += 2 * len(re.findall(r"urgent|critical|asap|immediately", content, re.IGNORECASE))
    score += 3 * len(re.findall(r"deadline|due date|by [a-z]+ \d+|before [a-z]+", content, re.IGNORECASE))
    # Action-word hits count at most 10.
    score += min(len(re.findall(r"action item|todo|task|follow[- ]?up|next step", content, re.IGNORECASE)), 10)
    score += 2 * len(re.findall(r"@[a-zA-Z]+", content))
    return score


_ISSUE_PRIORITY_WEIGHTS = {
    "Highest": 5,
    "High": 4,
    "Medium": 3,
    "Low": 2,
    "Lowest": 1,
}
_ISSUE_TYPE_WEIGHTS = {"Bug": 2, "Story": 1}


def parse_due_date(value: Optional[str]) -> Optional[date]:
    """Parse a Jira ``duedate`` (``YYYY-MM-DD``, optionally with a time part)."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def days_until(due: date, today: Optional[date] = None) -> int:
    return (due - (today or date.today())).days


def calculate_issue_task_priority(
    priority_name: Optional[str],
    due_date: Optional[str],
    issue_type: Optional[str],
    *,
    today: Optional[date] = None,
) -> int:
    """Score a Jira issue for the "my tasks" ordering.

    Priority weight (Highest 5 to Lowest 1, default 2), plus a due-date
    weight (overdue +10, within a day +8, within a week +5, within a
    month +2), plus +2 for bugs and +1 for stories.
    """
    score = _ISSUE_PRIORITY_WEIGHTS.get(priority_name or "", 2)

    due = parse_due_date(due_date)
    if due is not None:
        remaining = days_until(due, today)
        if remaining < 0:
            score += 10
        elif remaining <= 1:
            score += 8
        elif remaining <= 7:
            score += 5
        elif remaining <= 30:
            score += 2

    score += _ISSUE_TYPE_WEIGHTS.get(issue_type or "", 0)
    return score


class TaskItem(BaseModel):
    """One entry of a generated task page."""

    title: str = Field(..., min_length=1, description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    priority: Optional[Literal["High", "Medium", "Low"]] = Field(None, description="Task priority")
    due_date: Optional[str] = Field(None, alias="dueDate", description="Due date")
    assignee: Optional[str] = Field(None, description="Person responsible")
    source: Optional[str] = Field(None, description="Where the task came from")

    model_config = {"populate_by_name": True}


_PRIORITY_GROUPS = (("High", "High"), ("Medium", "Medium"), ("Low", "Low"), (None, "Unprioritized"))


def default_task_page_title(today: Optional[date] = None) -> str:
    day = today or date.today()
    return f"Tasks - {day:%B} {day.day}, {day.year}"


def _render_task(task: TaskItem) -> str:
    parts = [
        "<ac:task>",
        "<ac:task-status>incomplete</ac:task-status>",
        "<ac:task-body>",
        f"<strong>{escape_html(task.title)}</strong>",
    ]
    if task.description:
        parts.append(f"<p>{escape_html(task.description)}</p>")

    metadata = []
    if task.due_date:
        metadata.append(f"Due: {task.due_date}")
    if task.assignee:
        metadata.append(f"Assignee: {task.assignee}")
    if task.source:
        metadata.append(f"Source: {task.source}")
    if metadata:
        parts.append("<p><em>" + " | ".join(escape_html(item) for item in metadata) + "</em></p>")

    parts.extend(["</ac:task-body>", "</ac:task>"])
    return "".join(parts)


def render_task_page(tasks: Sequence[TaskItem], *, generated_at: Optional[datetime] = None) -> str:
    """Render tasks as Confluence storage HTML.

    Tasks are grouped High, Medium, Low, then Unprioritized; each
    non-empty group gets a heading and an ``ac:task-list``, followed by a
    summary table of counts.
    """
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    groups: Dict[Optional[str], List[TaskItem]] = {key: [] for key, _ in _PRIORITY_GROUPS}
    for task in tasks:
        groups[task.priority].append(task)

    parts = ["<h1>Task List</h1>", f"<p>Generated on: {escape_html(stamp)}</p>"]
    for key, label in _PRIORITY_GROUPS:
        if groups[key]:
            parts.append(f"<h2>{label} Priority Tasks</h2>")
            parts.append("<ac:task-list>")
            parts.extend(_render_task(task) for task in groups[key])
            parts.append("</ac:task-list>")

    parts.append("<h2>Summary</h2>")
    parts.append("<table><thead><tr><th>Priority</th><th>Count</th></tr></thead><tbody>")
    for key, label in _PRIORITY_GROUPS:
        if groups[key]:
            parts.append(f"<tr><td>{label}</td><td>{len(groups[key])}</td></tr>")
    parts.append(f"<tr><td><strong>Total</strong></td><td><strong>{len(tasks)}</strong></td></tr>")
    parts.append("</tbody></table>")
    return "".join(parts)
