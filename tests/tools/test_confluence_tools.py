"""Tests for Confluence tool handlers."""

import json
from unittest.mock import MagicMock

import pytest

from atlassian_mcp.tools.confluence import CONFLUENCE_TOOLS, register_confluence_tools
from tests.conftest import RouteHandler, json_response

V1 = "/wiki/rest/api"


@pytest.fixture
def confluence_tools(make_client, capture_tools, server_config):
    def _tools(handler, probe_result=False):
        client = make_client(handler, service="confluence")
        client.negotiator.set_probe_result("confluence", probe_result)
        return capture_tools("atlassian_mcp.tools.confluence", register_confluence_tools, client, server_config)

    return _tools


def test_all_tools_registered(confluence_tools):
    assert set(confluence_tools(RouteHandler())) == set(CONFLUENCE_TOOLS)


class TestValidation:
    """Tests for argument validation before any request is sent."""

    @pytest.mark.asyncio
    async def test_bad_space_key(self, confluence_tools):
        handler = RouteHandler()
        result = await confluence_tools(handler)["search_pages"]("q", space_key="ENG-1")

        assert result["success"] is False
        assert result["data"]["details"]["field"] == "space_key"
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_bad_page_id(self, confluence_tools):
        result = await confluence_tools(RouteHandler())["get_page_content"]("abc")
        assert result["data"]["details"]["field"] == "page_id"

    @pytest.mark.asyncio
    async def test_title_too_long(self, confluence_tools):
        result = await confluence_tools(RouteHandler())["create_page"]("ENG", "t" * 256, "body")
        assert result["data"]["details"]["field"] == "title"

    @pytest.mark.asyncio
    async def test_missing_content(self, confluence_tools):
        result = await confluence_tools(RouteHandler())["update_page"]("12", "")
        assert result["data"]["details"]["field"] == "content"

    @pytest.mark.asyncio
    async def test_invalid_task_priority(self, confluence_tools):
        result = await confluence_tools(RouteHandler())["create_task_page"]("ENG", [{"title": "A", "priority": "Urgent"}])
        assert result["success"] is False
        assert result["data"]["details"]["field"] == "tasks"

    @pytest.mark.asyncio
    async def test_empty_task_list(self, confluence_tools):
        result = await confluence_tools(RouteHandler())["create_task_page"]("ENG", [])
        assert result["data"]["details"]["field"] == "tasks"


class TestReads:
    """Tests for read tools."""

    @pytest.mark.asyncio
    async def test_page_content_truncated(self, confluence_tools):
        handler = RouteHandler().add(
            "GET",
            f"{V1}/content/5",
            json_response(200, {"id": "5", "title": "Big", "body": {"storage": {"value": "<p>" + "w" * 90 + "</p>"}}}),
        )
        result = await confluence_tools(handler)["get_page_content"]("5")

        assert result["success"] is True
        assert len(result["data"]["content"]) == 50
        assert result["data"]["content_truncated"] is True

    @pytest.mark.asyncio
    async def test_default_limit(self, confluence_tools):
        handler = RouteHandler().add("GET", f"{V1}/search", json_response(200, {"results": []}))
        await confluence_tools(handler)["get_recent_pages"]()

        assert handler.requests[0].url.params["limit"] == "25"

    @pytest.mark.asyncio
    async def test_my_pages_without_identity_is_validation_error(self, confluence_tools):
        handler = RouteHandler().add("GET", f"{V1}/user/current", json_response(200, {}))
        result = await confluence_tools(handler)["get_my_pages"]()

        assert result["success"] is False
        assert result["data"]["error_code"] == "VALIDATION_ERROR"


class TestWrites:
    """Tests for write tools."""

    @pytest.mark.asyncio
    async def test_create_task_page(self, confluence_tools):
        handler = RouteHandler().add("POST", f"{V1}/content", json_response(200, {"id": "99", "title": "Sprint"}))
        tools = confluence_tools(handler)

        result = await tools["create_task_page"](
            "ENG",
            [{"title": "Ship", "priority": "High", "dueDate": "2026-10-20"}, {"title": "Polish"}],
            title="Sprint",
        )

        assert result["success"] is True
        assert result["data"]["page_id"] == "99"
        assert result["data"]["task_count"] == 2
        storage = json.loads(handler.requests[0].content)["body"]["storage"]["value"]
        assert "Due: 2026-10-20" in storage

    @pytest.mark.asyncio
    async def test_create_page_upstream_error(self, confluence_tools):
        handler = RouteHandler().add("POST", f"{V1}/content", json_response(400, {"message": "A page with this title already exists"}))
        result = await confluence_tools(handler)["create_page"]("ENG", "Dup", "x")

        assert result["success"] is False
        assert result["data"]["error_code"] == "VALIDATION_ERROR"
        assert "already exists" in result["error"]


class TestUnexpectedErrors:
    """Tests for the internal-error fallback."""

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_internal_error(self, make_client, capture_tools, server_config):
        client = make_client(RouteHandler(), service="confluence")
        client.get = MagicMock(side_effect=KeyError("boom"))
        tools = capture_tools("atlassian_mcp.tools.confluence", register_confluence_tools, client, server_config)

        result = await tools["get_spaces"]()

        assert result["success"] is False
        assert result["data"]["error_code"] == "INTERNAL_ERROR"
        assert result["data"]["details"] == {"error_type": "KeyError"}
