"""Core functionality for atlassian-mcp."""
