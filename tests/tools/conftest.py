"""Fixtures for tool handler tests.

Handlers are captured by patching ``canonical_tool`` so they can be called
directly without a running MCP server.
"""

from unittest.mock import MagicMock, patch

import pytest

from atlassian_mcp.config import ServerConfig


@pytest.fixture
def server_config():
    return ServerConfig(default_result_limit=25, max_result_limit=100, max_text_length=50)


@pytest.fixture
def capture_tools():
    """Register tools through *register* and return handlers by canonical name."""

    def _capture(module_path, register, client, config):
        captured = {}

        def capture_decorator(mcp, canonical_name, **kwargs):
            def decorator(func):
                captured[canonical_name] = func
                return func

            return decorator

        with patch(f"{module_path}.canonical_tool", capture_decorator):
            register(MagicMock(), client, config)
        return captured

    return _capture
