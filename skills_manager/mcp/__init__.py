"""MCP server exposing skill management tools."""
