"""Jira tools for atlassian-mcp.

Each tool validates its arguments, delegates to ``JiraService`` and
returns a response-v2 envelope.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from mcp.server.fastmcp import FastMCP

from atlassian_mcp.config import ServerConfig
from atlassian_mcp.core.api import Client
from atlassian_mcp.core.jira import JiraService
from atlassian_mcp.core.naming import canonical_tool
from atlassian_mcp.tools.common import invalid, run_tool

logger = logging.getLogger(__name__)

_ISSUE_KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*-\d+$")
_PROJECT_KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

JIRA_TOOLS = (
    "get_assigned_issues",
    "search_issues",
    "get_issue_details",
    "get_recent_issues",
    "get_my_tasks",
    "get_project_issues",
)


def register_jira_tools(mcp: FastMCP, client: Client, config: ServerConfig) -> JiraService:
    """Register Jira tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        client: Request-layer client for the Jira site
        config: Server configuration

    Returns:
        The service instance the tools delegate to.
    """
    service = JiraService(client)
    disabled = config.disabled_tools

    @canonical_tool(mcp, canonical_name="get_assigned_issues", disabled_tools=disabled)
    async def get_assigned_issues(status: Optional[str] = None, max_results: int = 50) -> dict:
        """Get issues assigned to the current user, optionally filtered by status."""
        limit = config.clamp_limit(max_results)
        return await run_tool("get_assigned_issues", lambda: service.assigned_issues(limit, status))

    @canonical_tool(mcp, canonical_name="search_issues", disabled_tools=disabled)
    async def search_issues(jql: str, max_results: int = 50) -> dict:
        """Search issues with a JQL query."""
        if not jql or not jql.strip():
            return invalid("jql is required", field="jql")
        limit = config.clamp_limit(max_results)
        return await run_tool("search_issues", lambda: service.search_issues(jql.strip(), limit))

    @canonical_tool(mcp, canonical_name="get_issue_details", disabled_tools=disabled)
    async def get_issue_details(issue_key: str) -> dict:
        """
        Get full details of one issue.

        Includes the description and comments (rich text flattened to plain
        text), components, labels and fix versions.
        """
        if not issue_key or not _ISSUE_KEY_RE.match(issue_key.strip()):
            return invalid(
                f"Invalid issue key: {issue_key!r}",
                field="issue_key",
                remediation="Use the PROJECT-123 form.",
            )
        key = issue_key.strip().upper()
        return await run_tool(
            "get_issue_details",
            lambda: service.issue_details(key),
            max_text_length=config.max_text_length,
            text_fields=("description",),
        )

    @canonical_tool(mcp, canonical_name="get_recent_issues", disabled_tools=disabled)
    async def get_recent_issues(days: int = 7, max_results: int = 50) -> dict:
        """Get issues updated within the last N days."""
        if days < 1:
            return invalid("days must be at least 1", field="days")
        limit = config.clamp_limit(max_results)
        return await run_tool("get_recent_issues", lambda: service.recent_issues(days, limit))

    @canonical_tool(mcp, canonical_name="get_my_tasks", disabled_tools=disabled)
    async def get_my_tasks(include_completed: bool = False, max_results: int = 100) -> dict:
        """
        Get the current user's tasks ordered by urgency.

        Each task carries ``is_overdue`` and a ``task_priority`` score built
        from priority, due date and issue type.
        """
        limit = config.clamp_limit(max_results)
        return await run_tool("get_my_tasks", lambda: service.my_tasks(limit, include_completed))

    @canonical_tool(mcp, canonical_name="get_project_issues", disabled_tools=disabled)
    async def get_project_issues(project_key: str, status: Optional[str] = None, max_results: int = 50) -> dict:
        """Get issues of one project, optionally filtered by status."""
        if not project_key or not _PROJECT_KEY_RE.match(project_key.strip()):
            return invalid(f"Invalid project key: {project_key!r}", field="project_key")
        limit = config.clamp_limit(max_results)
        key = project_key.strip().upper()
        return await run_tool("get_project_issues", lambda: service.project_issues(key, limit, status))

    logger.debug("Registered Jira tools")
    return service
