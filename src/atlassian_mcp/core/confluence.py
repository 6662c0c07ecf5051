"""Confluence page operations on top of the request layer.

Reads use the v1 REST surface (``/wiki/rest/api``), which is the only one
with CQL search. Comments prefer v2 and fall back to v1. Page writes go to
v2 when the client's one-time probe found ``/wiki/api/v2`` reachable and
to v1 otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from atlassian_mcp.core.api import Client, RequestDescriptor
from atlassian_mcp.core.content import (
    TaskItem,
    calculate_page_task_priority,
    default_task_page_title,
    ensure_storage_format,
    extract_tasks_from_content,
    render_task_page,
    strip_html_tags,
)
from atlassian_mcp.core.errors import ClassifiedError

logger = logging.getLogger(__name__)

V1 = "/wiki/rest/api"
V2 = "/wiki/api/v2"

SEARCH_EXPAND = "content.space,content.history.lastUpdated,content.version"
UPDATE_MESSAGE = "Updated via atlassian-mcp"
DEFAULT_TASK_QUERY = "task OR action OR todo OR meeting"


def cql_quote(value: str) -> str:
    """Quote a value for use inside a CQL string literal."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _path_id(value: str) -> str:
    return quote(str(value), safe="")


class ConfluenceService:
    """Page search, content, comment and authoring operations for one site."""

    def __init__(
        self,
        client: Client,
        *,
        task_min_length: int = 3,
        task_max_length: int = 500,
        max_tasks_per_page: int = 5,
    ):
        self.client = client
        self.task_min_length = task_min_length
        self.task_max_length = task_max_length
        self.max_tasks_per_page = max_tasks_per_page

    @property
    def wiki_url(self) -> str:
        return f"{self.client.base_url}/wiki"

    def page_url(self, links: Optional[Dict[str, Any]]) -> Optional[str]:
        links = links or {}
        webui = links.get("webui")
        if not webui:
            return None
        return f"{links.get('base') or self.wiki_url}{webui}"

    def _page_summary(self, result: Dict[str, Any]) -> Dict[str, Any]:
        content = result.get("content") or {}
        space = content.get("space") or {}
        last_updated = (content.get("history") or {}).get("lastUpdated") or {}
        return {
            "id": content.get("id"),
            "title": content.get("title"),
            "space": space.get("name"),
            "space_key": space.get("key"),
            "last_updated": last_updated.get("when"),
            "last_updated_by": (last_updated.get("by") or {}).get("displayName"),
            "version": (content.get("version") or {}).get("number"),
            "url": self.page_url(content.get("_links")),
        }

    async def cql_search(self, cql: str, limit: int, expand: str = SEARCH_EXPAND) -> Dict[str, Any]:
        logger.debug("Confluence CQL search: %s (limit %d)", cql, limit)
        response = await self.client.get(f"{V1}/search", {"cql": cql, "limit": limit, "expand": expand})
        return response if isinstance(response, dict) else {}

    async def search_pages(self, query: str, limit: int, space_key: Optional[str] = None) -> Dict[str, Any]:
        quoted = cql_quote(query)
        cql = f"title ~ {quoted} OR text ~ {quoted}"
        if space_key:
            cql = f"space = {cql_quote(space_key)} AND ({cql})"

        response = await self.cql_search(cql, limit)
        pages = []
        for result in response.get("results") or []:
            if (result.get("content") or {}).get("type") != "page":
                continue
            page = self._page_summary(result)
            page["excerpt"] = strip_html_tags(result.get("excerpt") or "")
            pages.append(page)
        return {"query": query, "total": response.get("totalSize", len(pages)), "pages": pages}

    async def page_content(self, page_id: str) -> Dict[str, Any]:
        response = await self.client.get(
            f"{V1}/content/{_path_id(page_id)}",
            {"expand": "body.storage,space,history.lastUpdated,version,metadata.labels"},
        )
        space = response.get("space") or {}
        last_updated = (response.get("history") or {}).get("lastUpdated") or {}
        storage = ((response.get("body") or {}).get("storage") or {}).get("value") or ""
        labels = ((response.get("metadata") or {}).get("labels") or {}).get("results") or []
        return {
            "id": response.get("id"),
            "title": response.get("title"),
            "space": space.get("name"),
            "space_key": space.get("key"),
            "content": strip_html_tags(storage),
            "last_updated": last_updated.get("when"),
            "last_updated_by": (last_updated.get("by") or {}).get("displayName"),
            "version": (response.get("version") or {}).get("number"),
            "labels": [label.get("name") for label in labels],
            "url": self.page_url(response.get("_links")),
        }

    async def recent_pages(self, limit: int, space_key: Optional[str] = None) -> Dict[str, Any]:
        cql = "type = page"
        if space_key:
            cql = f"space = {cql_quote(space_key)} AND {cql}"
        cql += " ORDER BY lastmodified DESC"
        response = await self.cql_search(cql, limit)
        pages = [self._page_summary(r) for r in response.get("results") or []]
        return {"total": response.get("totalSize", len(pages)), "pages": pages}

    async def my_pages(self, limit: int) -> Dict[str, Any]:
        user = await self.client.get(f"{V1}/user/current")
        current_user = user.get("accountId") or user.get("username") or user.get("userKey")
        if not current_user:
            raise ValueError("Could not determine the current Confluence user")

        cql = f"creator = {cql_quote(current_user)} AND type = page ORDER BY lastmodified DESC"
        response = await self.cql_search(cql, limit)
        pages = [self._page_summary(r) for r in response.get("results") or []]
        return {
            "user": user.get("displayName") or current_user,
            "total": response.get("totalSize", len(pages)),
            "pages": pages,
        }

    async def _page_tasks_for(self, result: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        content = result.get("content") or {}
        page = await self.client.get(f"{V1}/content/{_path_id(content.get('id'))}", {"expand": "body.storage"})
        text = strip_html_tags(((page.get("body") or {}).get("storage") or {}).get("value") or "")
        tasks = extract_tasks_from_content(text, min_length=self.task_min_length, max_length=self.task_max_length)
        if not tasks:
            return None

        logger.debug("Found %d tasks in page %s", len(tasks), content.get("id"))
        title = content.get("title") or ""
        return {
            "id": content.get("id"),
            "title": title,
            "space": (content.get("space") or {}).get("name"),
            "last_updated": ((content.get("history") or {}).get("lastUpdated") or {}).get("when"),
            "url": self.page_url(content.get("_links")),
            "extracted_tasks": tasks[: self.max_tasks_per_page],
            "task_count": len(tasks),
            "priority": calculate_page_task_priority(title, text),
        }

    async def page_tasks(
        self,
        limit: int,
        query: str = DEFAULT_TASK_QUERY,
        space_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Scan matching pages for action items, most urgent page first.

        Page bodies are fetched concurrently; a page that fails to load is
        logged and skipped.
        """
        cql = f"text ~ {cql_quote(query)}"
        if space_key:
            cql = f"space = {cql_quote(space_key)} AND {cql}"

        response = await self.cql_search(cql, limit, expand="content.space,content.history.lastUpdated")
        results = response.get("results") or []
        candidates = [r for r in results if (r.get("content") or {}).get("type") == "page"]

        outcomes = await asyncio.gather(
            *(self._page_tasks_for(r) for r in candidates),
            return_exceptions=True,
        )

        pages: List[Dict[str, Any]] = []
        skipped = 0
        for result, outcome in zip(candidates, outcomes):
            if isinstance(outcome, BaseException):
                skipped += 1
                logger.warning(
                    "Failed to scan page %s for tasks: %s",
                    (result.get("content") or {}).get("id"),
                    outcome,
                )
                continue
            if outcome is not None:
                pages.append(outcome)

        pages.sort(key=lambda p: p["priority"], reverse=True)
        return {
            "query": query,
            "total_pages_searched": len(results),
            "pages_with_tasks": len(pages),
            "pages_skipped": skipped,
            "pages": pages,
        }

    async def spaces(self, limit: int) -> Dict[str, Any]:
        response = await self.client.get(f"{V1}/space", {"limit": limit, "expand": "description.plain,homepage"})
        spaces = [
            {
                "key": space.get("key"),
                "name": space.get("name"),
                "type": space.get("type"),
                "description": ((space.get("description") or {}).get("plain") or {}).get("value") or "",
                "homepage_id": (space.get("homepage") or {}).get("id"),
            }
            for space in response.get("results") or []
        ]
        return {"total": response.get("size", len(spaces)), "spaces": spaces}

    async def page_comments(self, page_id: str) -> Dict[str, Any]:
        """Footer comments via v2, or via v1 when the v2 call fails."""
        try:
            response = await self.client.get(
                f"{V2}/pages/{_path_id(page_id)}/footer-comments",
                {"body-format": "storage"},
            )
        except ClassifiedError as exc:
            logger.debug("v2 comments failed for page %s (%s); using v1", page_id, exc.kind.value)
            return await self._page_comments_v1(page_id)

        comments = []
        for comment in response.get("results") or []:
            version = comment.get("version") or {}
            body = (comment.get("body") or {}).get("storage") or comment.get("body") or {}
            comments.append(
                {
                    "id": comment.get("id"),
                    "author": version.get("authorId") or "Unknown",
                    "created": version.get("createdAt"),
                    "content": strip_html_tags(body.get("value") or ""),
                    "version": version.get("number"),
                }
            )
        return {"page_id": page_id, "api_version": "v2", "total_comments": len(comments), "comments": comments}

    async def _page_comments_v1(self, page_id: str) -> Dict[str, Any]:
        response = await self.client.get(
            f"{V1}/content/{_path_id(page_id)}/child/comment",
            {"expand": "history,version,body.view"},
        )
        comments = []
        for comment in response.get("results") or []:
            history = comment.get("history") or {}
            created_by = history.get("createdBy") or {}
            comments.append(
                {
                    "id": comment.get("id"),
                    "author": created_by.get("displayName") or "Unknown",
                    "created": history.get("createdDate"),
                    "content": strip_html_tags(((comment.get("body") or {}).get("view") or {}).get("value") or ""),
                    "version": (comment.get("version") or {}).get("number"),
                }
            )
        return {
            "page_id": page_id,
            "api_version": "v1",
            "total_comments": response.get("size", len(comments)),
            "comments": comments,
        }

    async def _write(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if method == "POST":
            result = await self.client.post(path, payload)
        else:
            result = await self.client.put(path, payload)
        # Cached reads of this site may be stale after a write.
        self.client.clear_cache()
        return result or {}

    async def space_id_for_key(self, space_key: str) -> str:
        """Resolve a space key to the numeric id v2 writes require."""
        try:
            response = await self.client.get(f"{V2}/spaces", {"keys": space_key})
            results = response.get("results") or []
            if results:
                return str(results[0]["id"])
            logger.debug("No v2 space found for key %s; trying v1", space_key)
        except ClassifiedError as exc:
            logger.debug("v2 space lookup failed for %s (%s); trying v1", space_key, exc.kind.value)

        response = await self.client.get(f"{V1}/space/{_path_id(space_key)}")
        return str(response["id"])

    async def create_page(
        self,
        space_key: str,
        title: str,
        content: str,
        parent_page_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = ensure_storage_format(content)
        if await self.client.probe():
            payload: Dict[str, Any] = {
                "spaceId": await self.space_id_for_key(space_key),
                "status": "current",
                "title": title,
                "body": {"representation": "storage", "value": body},
            }
            if parent_page_id:
                payload["parentId"] = parent_page_id
            created = await self._write("POST", f"{V2}/pages", payload)
            page_id = created.get("id")
            return {
                "page_id": page_id,
                "title": created.get("title"),
                "version": (created.get("version") or {}).get("number"),
                "url": f"{self.wiki_url}/spaces/{space_key}/pages/{page_id}",
                "api_version": "v2",
            }

        payload = {
            "type": "page",
            "title": title,
            "space": {"key": space_key},
            "body": {"storage": {"value": body, "representation": "storage"}},
        }
        if parent_page_id:
            payload["ancestors"] = [{"id": parent_page_id}]
        created = await self._write("POST", f"{V1}/content", payload)
        return {
            "page_id": created.get("id"),
            "title": created.get("title"),
            "version": (created.get("version") or {}).get("number"),
            "url": self.page_url(created.get("_links")),
            "api_version": "v1",
        }

    async def update_page(self, page_id: str, content: str, title: Optional[str] = None) -> Dict[str, Any]:
        """Replace a page body, bumping its version number by one."""
        # Read uncached; the version number must be current.
        current = await self.client.execute(
            RequestDescriptor(
                "GET",
                f"{V1}/content/{_path_id(page_id)}",
                query_params={"expand": "version,space"},
                idempotent=False,
                service=self.client.service,
            )
        )
        next_version = {
            "number": (current.get("version") or {}).get("number", 0) + 1,
            "message": UPDATE_MESSAGE,
        }
        new_title = title or current.get("title")
        space_key = (current.get("space") or {}).get("key")
        body = ensure_storage_format(content)

        if await self.client.probe():
            payload: Dict[str, Any] = {
                "id": page_id,
                "status": "current",
                "title": new_title,
                "body": {"representation": "storage", "value": body},
                "version": next_version,
            }
            updated = await self._write("PUT", f"{V2}/pages/{_path_id(page_id)}", payload)
            return {
                "page_id": updated.get("id"),
                "title": updated.get("title"),
                "version": (updated.get("version") or {}).get("number"),
                "url": f"{self.wiki_url}/spaces/{space_key}/pages/{updated.get('id')}",
                "api_version": "v2",
            }

        payload = {
            "id": page_id,
            "type": "page",
            "title": new_title,
            "space": {"key": space_key},
            "body": {"storage": {"value": body, "representation": "storage"}},
            "version": next_version,
        }
        updated = await self._write("PUT", f"{V1}/content/{_path_id(page_id)}", payload)
        return {
            "page_id": updated.get("id"),
            "title": updated.get("title"),
            "version": (updated.get("version") or {}).get("number"),
            "url": self.page_url(updated.get("_links")),
            "api_version": "v1",
        }

    async def create_task_page(
        self,
        space_key: str,
        tasks: Sequence[TaskItem],
        title: Optional[str] = None,
        parent_page_id: Optional[str] = None,
        *,
        today: Optional[date] = None,
        generated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        page_title = title or default_task_page_title(today)
        content = render_task_page(tasks, generated_at=generated_at)
        result = await self.create_page(space_key, page_title, content, parent_page_id)
        return {**result, "task_count": len(tasks)}
