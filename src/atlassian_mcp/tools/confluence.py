"""Confluence tools for atlassian-mcp.

Read tools search and fetch pages through CQL; write tools create and
update pages in storage format, on the v2 API when the site offers it.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from atlassian_mcp.config import ServerConfig
from atlassian_mcp.core.api import Client
from atlassian_mcp.core.confluence import DEFAULT_TASK_QUERY, ConfluenceService
from atlassian_mcp.core.content import TaskItem
from atlassian_mcp.core.naming import canonical_tool
from atlassian_mcp.tools.common import invalid, run_tool

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255

_SPACE_KEY_RE = re.compile(r"^[A-Za-z0-9]+$")
_PAGE_ID_RE = re.compile(r"^\d+$")

CONFLUENCE_TOOLS = (
    "search_pages",
    "get_page_content",
    "get_recent_pages",
    "get_my_pages",
    "get_page_tasks",
    "get_spaces",
    "get_page_comments",
    "create_page",
    "update_page",
    "create_task_page",
)


def _check_space_key(space_key: Optional[str]) -> Optional[dict]:
    if space_key is not None and not _SPACE_KEY_RE.match(space_key):
        return invalid(
            "Invalid space_key format. Space keys should contain only alphanumeric characters",
            field="space_key",
        )
    return None


def _check_page_id(page_id: Optional[str], field: str = "page_id") -> Optional[dict]:
    if page_id is not None and not _PAGE_ID_RE.match(str(page_id)):
        return invalid("Invalid page ID format. Page ID should be numeric", field=field)
    return None


def _check_title(title: Optional[str]) -> Optional[dict]:
    if title is not None and len(title) > MAX_TITLE_LENGTH:
        return invalid(
            f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters",
            field="title",
        )
    return None


def register_confluence_tools(mcp: FastMCP, client: Client, config: ServerConfig) -> ConfluenceService:
    """Register Confluence tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        client: Request-layer client for the Confluence site
        config: Server configuration

    Returns:
        The service instance the tools delegate to.
    """
    service = ConfluenceService(
        client,
        task_min_length=config.task_min_length,
        task_max_length=config.task_max_length,
        max_tasks_per_page=config.max_tasks_per_page,
    )
    disabled = config.disabled_tools

    @canonical_tool(mcp, canonical_name="search_pages", disabled_tools=disabled)
    async def search_pages(query: str, space_key: Optional[str] = None, limit: Optional[int] = None) -> dict:
        """Search pages by title and text, optionally within one space."""
        if not query or not query.strip():
            return invalid("query is required", field="query")
        if error := _check_space_key(space_key):
            return error
        size = config.clamp_limit(limit)
        return await run_tool("search_pages", lambda: service.search_pages(query.strip(), size, space_key))

    @canonical_tool(mcp, canonical_name="get_page_content", disabled_tools=disabled)
    async def get_page_content(page_id: str) -> dict:
        """Get a page's text content, labels and metadata."""
        if not page_id:
            return invalid("page_id is required", field="page_id")
        if error := _check_page_id(page_id):
            return error
        return await run_tool(
            "get_page_content",
            lambda: service.page_content(page_id),
            max_text_length=config.max_text_length,
            text_fields=("content",),
        )

    @canonical_tool(mcp, canonical_name="get_recent_pages", disabled_tools=disabled)
    async def get_recent_pages(limit: Optional[int] = None, space_key: Optional[str] = None) -> dict:
        """Get the most recently modified pages."""
        if error := _check_space_key(space_key):
            return error
        size = config.clamp_limit(limit)
        return await run_tool("get_recent_pages", lambda: service.recent_pages(size, space_key))

    @canonical_tool(mcp, canonical_name="get_my_pages", disabled_tools=disabled)
    async def get_my_pages(limit: Optional[int] = None) -> dict:
        """Get pages created by the current user."""
        size = config.clamp_limit(limit)
        return await run_tool("get_my_pages", lambda: service.my_pages(size))

    @canonical_tool(mcp, canonical_name="get_page_tasks", disabled_tools=disabled)
    async def get_page_tasks(
        query: str = DEFAULT_TASK_QUERY,
        limit: int = 15,
        space_key: Optional[str] = None,
    ) -> dict:
        """
        Find action items in matching pages.

        Pages are searched by text, scanned for checkbox/TODO/ACTION/TASK
        markers and action-item sections, and returned most urgent first
        with at most the configured number of tasks per page.
        """
        if error := _check_space_key(space_key):
            return error
        size = config.clamp_limit(limit)
        return await run_tool("get_page_tasks", lambda: service.page_tasks(size, query or DEFAULT_TASK_QUERY, space_key))

    @canonical_tool(mcp, canonical_name="get_spaces", disabled_tools=disabled)
    async def get_spaces(limit: Optional[int] = None) -> dict:
        """List spaces visible to the current user."""
        size = config.clamp_limit(limit)
        return await run_tool("get_spaces", lambda: service.spaces(size))

    @canonical_tool(mcp, canonical_name="get_page_comments", disabled_tools=disabled)
    async def get_page_comments(page_id: str) -> dict:
        """Get a page's footer comments."""
        if not page_id:
            return invalid("page_id is required", field="page_id")
        if error := _check_page_id(page_id):
            return error
        return await run_tool("get_page_comments", lambda: service.page_comments(page_id))

    @canonical_tool(mcp, canonical_name="create_page", disabled_tools=disabled)
    async def create_page(
        space_key: str,
        title: str,
        content: str,
        parent_page_id: Optional[str] = None,
    ) -> dict:
        """
        Create a page.

        ``content`` may be storage-format HTML or plain text (plain text is
        escaped and wrapped in a paragraph).
        """
        if not space_key or not title or not content:
            return invalid(
                "Missing required parameters: space_key, title, and content are required",
                field="space_key" if not space_key else ("title" if not title else "content"),
            )
        for error in (_check_title(title), _check_space_key(space_key), _check_page_id(parent_page_id, "parent_page_id")):
            if error:
                return error
        return await run_tool(
            "create_page",
            lambda: service.create_page(space_key, title, content, parent_page_id),
        )

    @canonical_tool(mcp, canonical_name="update_page", disabled_tools=disabled)
    async def update_page(page_id: str, content: str, title: Optional[str] = None) -> dict:
        """Replace a page's content (and optionally its title); the version is bumped by one."""
        if not page_id or not content:
            return invalid(
                "Missing required parameters: page_id and content are required",
                field="page_id" if not page_id else "content",
            )
        for error in (_check_title(title), _check_page_id(page_id)):
            if error:
                return error
        return await run_tool("update_page", lambda: service.update_page(page_id, content, title))

    @canonical_tool(mcp, canonical_name="create_task_page", disabled_tools=disabled)
    async def create_task_page(
        space_key: str,
        tasks: List[dict],
        title: Optional[str] = None,
        parent_page_id: Optional[str] = None,
    ) -> dict:
        """
        Create a page listing tasks grouped by priority.

        Each task needs a ``title`` and may carry ``description``,
        ``priority`` (High, Medium or Low), ``due_date``, ``assignee`` and
        ``source``. The page ends with a per-priority summary table.
        """
        if not space_key:
            return invalid("space_key is required", field="space_key")
        if not tasks:
            return invalid("At least one task is required", field="tasks")
        for error in (_check_title(title), _check_space_key(space_key), _check_page_id(parent_page_id, "parent_page_id")):
            if error:
                return error
        try:
            items = [TaskItem.model_validate(task) for task in tasks]
        except ValidationError as exc:
            return invalid(f"Invalid task list: {exc.errors()[0].get('msg', 'invalid value')}", field="tasks")

        return await run_tool(
            "create_task_page",
            lambda: service.create_task_page(space_key, items, title, parent_page_id),
        )

    logger.debug("Registered Confluence tools")
    return service
