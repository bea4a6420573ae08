"""Gitana MCP server implementation using FastMCP."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from .client import GitanaClient
from .config import ServerConfig, setup_logging

logger = logging.getLogger(__name__)

# Global client instance; owns the branch cache for the server's lifetime
_client: GitanaClient | None = None


def get_client() -> GitanaClient:
    """Get the global Gitana client instance."""
    if _client is None:
        raise RuntimeError("Gitana client not initialized. Server not started properly.")
    return _client


def set_client(client: GitanaClient | None) -> None:
    """Install (or clear) the global client; used by the lifespan and tests."""
    global _client
    _client = client


def _branch_view(branch_id: str, branch: Any) -> dict[str, Any]:
    """Plain-dict rendering of a branch handle."""
    to_dict = getattr(branch, "to_dict", None)
    if callable(to_dict):
        view = dict(to_dict())
    else:
        view = {
            "type": getattr(branch, "type", None),
            "archived": getattr(branch, "archived", None),
            "snapshot": getattr(branch, "snapshot", None),
        }
    view.setdefault("id", branch_id)
    return view


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    logger.info("Starting Gitana MCP server")

    config = ServerConfig()
    api_config = config.get_api_config()
    set_client(GitanaClient(api_config))
    logger.info(f"Gitana client initialized, credentials from {api_config.credentials_dir}")

    try:
        yield
    finally:
        logger.info("Shutting down Gitana MCP server")
        if _client:
            await _client.close()
        set_client(None)


mcp = FastMCP(
    "Gitana MCP Server",
    instructions="MCP server for querying Cloud CMS branches and nodes",
    lifespan=lifespan,
)


async def get_datastore(project_name: str, datastore: str = "content") -> dict:
    """Resolve a datastore.

    Args:
        project_name: Project whose credentials file should be used
        datastore: Datastore key within the project's stack (default "content")

    Returns:
        Dictionary with the datastore key and id
    """
    client = get_client()
    handle = await client.get_datastore(project_name, datastore)
    return {
        "project": project_name,
        "key": getattr(handle, "key", datastore),
        "id": getattr(handle, "id", None),
    }


async def list_active_branches(project_name: str) -> dict:
    """List active branches.

    Args:
        project_name: Project whose content repository should be read

    Returns:
        Dictionary with 'branches' keyed by branch id and a 'total' count
    """
    client = get_client()
    branches = await client.get_active_branches(project_name)
    return {
        "branches": {branch_id: _branch_view(branch_id, b) for branch_id, b in branches.items()},
        "total": len(branches),
    }


async def get_branch(project_name: str, branch_id: str) -> dict:
    client = get_client()
    branch = await client.get_branch(project_name, branch_id)
    return _branch_view(branch_id, branch)


async def query_nodes(
    project_name: str,
    branch_id: str,
    query: dict[str, Any],
    pagination: dict[str, Any] | None = None,
) -> dict:
    """Run a node query.

    Args:
        project_name: Project whose content repository should be queried
        branch_id: Branch id, or "master" for the master branch
        query: Cloud CMS query object, forwarded as-is
        pagination: Optional limit/skip/sort options, forwarded as-is

    Returns:
        Dictionary with 'nodes' keyed by node id and a 'total' count
    """
    client = get_client()
    nodes = await client.query_nodes(project_name, branch_id, query, pagination)
    return {"nodes": nodes, "total": len(nodes)}


# Registered by call rather than decorator so the module names stay plain coroutines
mcp.tool(name="gitana_get_datastore", description="Resolve a datastore of a Cloud CMS project")(
    get_datastore
)
mcp.tool(
    name="gitana_list_active_branches",
    description="List the branches of a project that are neither archived nor snapshots",
)(list_active_branches)
mcp.tool(
    name="gitana_get_branch",
    description='Resolve one active branch by id; "master" resolves the master branch',
)(get_branch)
mcp.tool(name="gitana_query_nodes", description="Query nodes on a branch of a Cloud CMS project")(
    query_nodes
)


def main() -> None:
    """Console entry point: configure logging and serve over stdio."""
    config = ServerConfig()
    setup_logging(config.log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
