"""MCP server for Lychee Notes."""
