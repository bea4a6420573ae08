"""In-memory branch cache with per-project enumeration deduplication.

Entries are keyed by ``(project_name, branch_id)`` and live for the lifetime
of the cache object. Nothing is ever invalidated or expired: once a key is
present it is authoritative and the branch is never fetched again.

The cache is mutated only from the event loop. When several coroutines miss
on the same project at once, the first one starts the enumeration and the
others await that same task (``run_once``), so a project's branch list is
fetched at most once per burst of misses.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterator

CacheKey = tuple[str, str]

MASTER_ALIAS = "master"


def is_master(branch: Any) -> bool:
    """True when the branch's type tag is "master" (case-insensitive)."""
    branch_type = getattr(branch, "type", None) or ""
    return branch_type.lower() == MASTER_ALIAS


def effective_name(branch_id: str, branch: Any) -> str:
    """Name a branch answers to: "master" for the master branch, else its id."""
    return MASTER_ALIAS if is_master(branch) else branch_id


class BranchCache:
    """Process-lifetime mapping of (project, branch id) to branch handles."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(list(self._entries))

    def get(self, project_name: str, branch_id: str) -> Any | None:
        return self._entries.get((project_name, branch_id))

    def put(self, project_name: str, branch_id: str, branch: Any) -> None:
        self._entries[(project_name, branch_id)] = branch

    def populate(self, project_name: str, branches: dict[str, Any]) -> None:
        """Cache every enumerated branch under its real id.

        The master branch is also cached under the ``"master"`` alias so a
        caller can ask for it without knowing its real id. The alias is
        written last, so it wins over a non-master branch whose real id
        happens to be "master".
        """
        for branch_id, branch in branches.items():
            self.put(project_name, branch_id, branch)
        for branch in branches.values():
            if is_master(branch):
                self.put(project_name, MASTER_ALIAS, branch)

    def keys_for(self, project_name: str) -> list[str]:
        return sorted(branch_id for project, branch_id in self._entries if project == project_name)

    async def run_once(self, project_name: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Await the project's in-flight enumeration, starting it if needed.

        Every concurrent caller receives the same result or the same error.
        Cancelling one caller leaves the shared enumeration running for the rest.
        """
        task = self._inflight.get(project_name)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[project_name] = task
            task.add_done_callback(lambda done: self._forget(project_name, done))
        return await asyncio.shield(task)

    def _forget(self, project_name: str, task: asyncio.Task) -> None:
        if self._inflight.get(project_name) is task:
            del self._inflight[project_name]
