"""Gitana API client package."""

from .api_client import ACTIVE_BRANCHES_QUERY, GitanaClient
from .api_client_core import GitanaBranch, GitanaConnector, GitanaDatastore, GitanaSession
from .branch_cache import BranchCache

__all__ = [
    "ACTIVE_BRANCHES_QUERY",
    "BranchCache",
    "GitanaBranch",
    "GitanaClient",
    "GitanaConnector",
    "GitanaDatastore",
    "GitanaSession",
]
