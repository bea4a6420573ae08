"""Run the Gitana MCP server: ``python -m gitana_mcp``."""

from .server import main

main()
