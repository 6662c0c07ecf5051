"""MCP tool registration for Jira and Confluence."""

from atlassian_mcp.tools.confluence import CONFLUENCE_TOOLS, register_confluence_tools
from atlassian_mcp.tools.jira import JIRA_TOOLS, register_jira_tools

__all__ = [
    "CONFLUENCE_TOOLS",
    "JIRA_TOOLS",
    "register_confluence_tools",
    "register_jira_tools",
]
