"""Gitana client facade: sessions, datastores, cached branches and node queries."""

import asyncio
from typing import Any, Mapping

from ..config import load_credentials
from ..models import (
    APIConfiguration,
    BranchNotFoundError,
    ConnectionError,
    DatastoreNotFoundError,
)
from .api_client_core import GitanaConnector, logger
from .branch_cache import MASTER_ALIAS, BranchCache, effective_name

# Active = not archived and not a snapshot. The second clause keeps branches
# created before the "archived" field existed.
ACTIVE_BRANCHES_QUERY: dict[str, Any] = {
    "$or": [
        {"archived": False, "snapshot": False},
        {"archived": {"$exists": False}, "snapshot": False},
    ]
}


class GitanaClient:
    """Facade over a Cloud CMS backend, one authenticated session per call chain.

    Args:
        config: Client settings (credentials directory, timeout, default datastore).
        connector: Remote collaborator exposing ``connect(credentials)``. Defaults
            to the bundled httpx connector.
        cache: Branch cache to use. Each client gets its own unless one is passed.
    """

    def __init__(
        self,
        config: APIConfiguration,
        connector: Any | None = None,
        cache: BranchCache | None = None,
    ):
        self.config = config
        self.connector = connector if connector is not None else GitanaConnector(config)
        self.cache = cache if cache is not None else BranchCache()

    async def close(self) -> None:
        close = getattr(self.connector, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "GitanaClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def connect(self, project_name: str) -> Any:
        """Authenticate a fresh session for the project. Never cached."""
        if not project_name:
            raise ConnectionError("A project name is required to connect")
        try:
            credentials = await asyncio.to_thread(
                load_credentials, self.config.credentials_dir, project_name
            )
            return await self.connector.connect(credentials)
        except Exception as err:
            logger.error(f"Connecting to project {project_name} failed: {err}")
            raise

    async def get_datastore(self, project_name: str, datastore: str | None = None) -> Any:
        """Resolve a datastore of the project, "content" unless told otherwise."""
        name = datastore or self.config.default_datastore
        session = await self.connect(project_name)
        try:
            return await session.datastore(name)
        except DatastoreNotFoundError as err:
            logger.error(f"Datastore {name} not found in project {project_name}")
            if err.project_name is None:
                raise DatastoreNotFoundError(err.datastore, project_name) from err
            raise
        except Exception as err:
            logger.error(f"Resolving datastore {name} in project {project_name} failed: {err}")
            raise

    async def get_active_branches(self, project_name: str) -> dict[str, Any]:
        """Map of branch id to branch for every branch not archived and not a snapshot."""
        datastore = await self.get_datastore(project_name)
        try:
            return await datastore.query_branches(ACTIVE_BRANCHES_QUERY)
        except Exception as err:
            logger.error(f"Querying branches of project {project_name} failed: {err}")
            raise

    async def get_branch(self, project_name: str, branch_id: str) -> Any:
        """Return one active branch, from cache when possible.

        A miss enumerates the project's active branches once and caches all of
        them. The master branch answers to its real id and to ``"master"``.

        Raises:
            BranchNotFoundError: No active branch matches ``branch_id``.
        """
        cached = self.cache.get(project_name, branch_id)
        if cached is not None:
            return cached

        async def enumerate_and_cache() -> dict[str, Any]:
            branches = await self.get_active_branches(project_name)
            self.cache.populate(project_name, branches)
            return branches

        branches = await self.cache.run_once(project_name, enumerate_and_cache)

        found = False
        for real_id, branch in branches.items():
            if branch_id in (real_id, effective_name(real_id, branch)):
                found = True
                break

        if not found:
            err = BranchNotFoundError(branch_id, project_name)
            logger.warning(str(err))
            raise err

        branch = self.cache.get(project_name, branch_id)
        logger.debug(
            f"Resolved branch {branch_id} in project {project_name}"
            + (" (master alias)" if branch_id == MASTER_ALIAS else "")
        )
        return branch

    async def query_nodes(
        self,
        project_name: str,
        branch_id: str,
        query: Mapping[str, Any],
        pagination: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run a node query against a branch, resolving the branch first."""
        branch = await self.get_branch(project_name, branch_id)
        try:
            return await branch.query_nodes(query, pagination or {})
        except Exception as err:
            logger.error(f"Running the node query on {project_name}/{branch_id} failed: {err}")
            raise
