"""Gitana MCP server - a Cloud CMS branch and node query facade."""

__version__ = "0.1.0"
