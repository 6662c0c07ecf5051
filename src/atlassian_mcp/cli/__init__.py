"""Command-line utilities for atlassian-mcp."""

from atlassian_mcp.cli.main import cli

__all__ = ["cli"]
