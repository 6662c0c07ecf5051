"""Jira issue operations on top of the request layer.

All searches go through the enhanced JQL endpoint
(``/rest/api/{version}/search/jql``); the ``{version}`` segment is filled
in by the client's version negotiator, so a ``410 Gone`` on REST v3
transparently moves the whole service to v2.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from atlassian_mcp.core.api import Client, RequestDescriptor
from atlassian_mcp.core.content import calculate_issue_task_priority, text_from_field
from atlassian_mcp.core.content.tasks import parse_due_date

logger = logging.getLogger(__name__)

SEARCH_PATH = "/rest/api/{version}/search/jql"
ISSUE_PATH = "/rest/api/{version}/issue/"

SUMMARY_FIELDS = "key,summary,status,priority,assignee,reporter,issuetype,project,created,updated,duedate"
TASK_FIELDS = "key,summary,status,priority,duedate,project,issuetype,updated,assignee"

DONE_STATUSES = ("Done", "Closed", "Resolved")


def jql_quote(value: str) -> str:
    """Quote a value for use inside a JQL string literal."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _name(value: Any, default: str) -> str:
    if isinstance(value, dict):
        return value.get("name") or value.get("displayName") or default
    return value or default


class JiraService:
    """Issue search, detail and task views for one Jira site."""

    def __init__(self, client: Client):
        self.client = client

    def browse_url(self, key: str) -> str:
        return f"{self.client.base_url}/browse/{key}"

    async def search(self, jql: str, max_results: int, fields: str = SUMMARY_FIELDS) -> Dict[str, Any]:
        """Run a JQL search and return the raw response body."""
        logger.debug("Jira search: %s (max %d)", jql, max_results)
        descriptor = RequestDescriptor.get(
            SEARCH_PATH,
            service=self.client.service,
            jql=jql,
            maxResults=max_results,
            fields=fields,
        )
        response = await self.client.execute(descriptor)
        return response if isinstance(response, dict) else {}

    def summarize_issue(self, issue: Dict[str, Any]) -> Dict[str, Any]:
        fields = issue.get("fields") or {}
        key = issue.get("key") or issue.get("id") or "UNKNOWN"
        return {
            "key": key,
            "summary": fields.get("summary") or "No summary",
            "status": _name(fields.get("status"), "Unknown"),
            "priority": _name(fields.get("priority"), "None"),
            "assignee": _name(fields.get("assignee"), "Unassigned"),
            "reporter": _name(fields.get("reporter"), "Unknown"),
            "created": fields.get("created"),
            "updated": fields.get("updated"),
            "due_date": fields.get("duedate"),
            "issue_type": _name(fields.get("issuetype"), "Unknown"),
            "project": _name(fields.get("project"), "Unknown"),
            "url": self.browse_url(key),
        }

    def _issue_list(self, response: Dict[str, Any]) -> Dict[str, Any]:
        issues = [self.summarize_issue(i) for i in response.get("issues") or [] if isinstance(i, dict)]
        return {
            "total": response.get("total", len(issues)),
            "is_last": response.get("isLast"),
            "next_page_token": response.get("nextPageToken"),
            "issues": issues,
        }

    async def assigned_issues(self, max_results: int, status: Optional[str] = None) -> Dict[str, Any]:
        jql = "assignee = currentUser()"
        if status:
            jql += f" AND status = {jql_quote(status)}"
        jql += " ORDER BY priority DESC, updated DESC"
        return self._issue_list(await self.search(jql, max_results))

    async def search_issues(self, jql: str, max_results: int) -> Dict[str, Any]:
        result = self._issue_list(await self.search(jql, max_results))
        return {"jql": jql, **result}

    async def recent_issues(self, days: int, max_results: int) -> Dict[str, Any]:
        jql = f"updated >= -{days}d ORDER BY updated DESC"
        result = self._issue_list(await self.search(jql, max_results))
        return {"period": f"Last {days} days", **result}

    async def project_issues(self, project_key: str, max_results: int, status: Optional[str] = None) -> Dict[str, Any]:
        jql = f"project = {jql_quote(project_key)}"
        if status:
            jql += f" AND status = {jql_quote(status)}"
        jql += " ORDER BY priority DESC, updated DESC"
        result = self._issue_list(await self.search(jql, max_results))
        return {"project": project_key, **result}

    async def issue_details(self, issue_key: str) -> Dict[str, Any]:
        """Full issue view with flattened description and comments."""
        descriptor = RequestDescriptor.get(ISSUE_PATH + quote(issue_key, safe=""), service=self.client.service)
        response = await self.client.execute(descriptor)
        fields = response.get("fields") or {}
        key = response.get("key", issue_key)
        project = fields.get("project") or {}
        comments = (fields.get("comment") or {}).get("comments") or []

        return {
            "key": key,
            "summary": fields.get("summary"),
            "description": text_from_field(fields.get("description")),
            "status": _name(fields.get("status"), "Unknown"),
            "priority": _name(fields.get("priority"), "None"),
            "assignee": _name(fields.get("assignee"), "Unassigned"),
            "reporter": _name(fields.get("reporter"), "Unknown"),
            "created": fields.get("created"),
            "updated": fields.get("updated"),
            "due_date": fields.get("duedate"),
            "issue_type": _name(fields.get("issuetype"), "Unknown"),
            "project": {"key": project.get("key"), "name": project.get("name")},
            "components": [c.get("name") for c in fields.get("components") or []],
            "labels": list(fields.get("labels") or []),
            "fix_versions": [v.get("name") for v in fields.get("fixVersions") or []],
            "url": self.browse_url(key),
            "comments": [
                {
                    "author": _name(c.get("author"), "Unknown"),
                    "created": c.get("created"),
                    "body": text_from_field(c.get("body")),
                }
                for c in comments
            ],
        }

    async def my_tasks(
        self,
        max_results: int,
        include_completed: bool = False,
        *,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Open issues assigned to the caller, ordered by computed urgency."""
        jql = "assignee = currentUser()"
        if not include_completed:
            jql += " AND status NOT IN (" + ", ".join(jql_quote(s) for s in DONE_STATUSES) + ")"
        jql += " ORDER BY priority DESC, duedate ASC, updated DESC"

        response = await self.search(jql, max_results, fields=TASK_FIELDS)
        today = today or date.today()

        tasks: List[Dict[str, Any]] = []
        for issue in response.get("issues") or []:
            if not isinstance(issue, dict) or not (issue.get("key") or issue.get("id")):
                logger.warning("Skipping malformed issue in task search: %r", str(issue)[:200])
                continue
            summary = self.summarize_issue(issue)
            due = parse_due_date(summary["due_date"])
            tasks.append(
                {
                    "key": summary["key"],
                    "summary": summary["summary"],
                    "status": summary["status"],
                    "priority": summary["priority"],
                    "due_date": summary["due_date"],
                    "is_overdue": due is not None and due < today,
                    "project": summary["project"],
                    "issue_type": summary["issue_type"],
                    "updated": summary["updated"],
                    "url": summary["url"],
                    "task_priority": calculate_issue_task_priority(
                        summary["priority"],
                        summary["due_date"],
                        summary["issue_type"],
                        today=today,
                    ),
                }
            )

        tasks.sort(key=lambda t: t["task_priority"], reverse=True)
        return {
            "total": response.get("total", len(tasks)),
            "is_last": response.get("isLast", True),
            "next_page_token": response.get("nextPageToken"),
            "overdue_tasks": sum(1 for t in tasks if t["is_overdue"]),
            "tasks": tasks,
        }
