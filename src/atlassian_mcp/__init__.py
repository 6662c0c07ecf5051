"""atlassian-mcp: resilient MCP tool server for the Jira and Confluence REST APIs."""

__version__ = "0.1.0"
