"""MCP server entry point for atlassian-mcp.

Builds one request-layer ``Client`` per configured service and registers
that service's tools on a ``FastMCP`` instance served over stdio.
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, Optional

import httpx
from mcp.server.fastmcp import FastMCP

from atlassian_mcp.config import ServerConfig, get_config, set_config
from atlassian_mcp.core.api import CONFLUENCE, JIRA, Client
from atlassian_mcp.core.errors import ConfigurationError
from atlassian_mcp.tools import register_confluence_tools, register_jira_tools

logger = logging.getLogger(__name__)


def build_clients(
    config: ServerConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Client]:
    """One client per enabled service, keyed by service name."""
    return {
        name: Client.from_config(name, service_config, transport=transport)
        for name, service_config in config.enabled_services().items()
    }


def create_server(
    config: Optional[ServerConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastMCP:
    """Create the FastMCP server with tools for every enabled service.

    Args:
        config: Server configuration (defaults to the global config).
        transport: Optional httpx transport shared by all clients.
    """
    config = config or get_config()
    mcp = FastMCP(config.server_name)

    clients = build_clients(config, transport=transport)
    if not clients:
        logger.warning("No Atlassian service is configured; the server exposes no tools")

    if JIRA in clients:
        register_jira_tools(mcp, clients[JIRA], config)
        logger.info("Jira tools enabled for %s", clients[JIRA].base_url)
    if CONFLUENCE in clients:
        register_confluence_tools(mcp, clients[CONFLUENCE], config)
        logger.info("Confluence tools enabled for %s", clients[CONFLUENCE].base_url)

    return mcp


def main() -> None:
    """Run the server over stdio."""
    try:
        config = ServerConfig.from_env()
    except ConfigurationError as exc:
        print(f"atlassian-mcp: configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    config.setup_logging()
    set_config(config)
    for warning in config.startup_warnings:
        logger.warning(warning)

    mcp = create_server(config)
    mcp.run()


if __name__ == "__main__":
    main()
