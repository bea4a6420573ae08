"""Gitana REST connector - sessions, datastores and branch handles over httpx."""

import json
import sys
from datetime import datetime
from typing import Any, Mapping

import httpx

from ..models import (
    APIConfiguration,
    BranchInfo,
    ConnectionError,
    DatastoreNotFoundError,
    GitanaCredentials,
    GitanaError,
    QueryError,
)

# Branch listings are small; ask for all of them in one page.
BRANCH_QUERY_LIMIT = -1


def log_event(message: str, component: str = "CLIENT") -> None:
    """Log an event to stderr with timestamp and consistent formatting."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


class _ClientLogger:
    """Lightweight logger that delegates to log_event.

    stdout is owned by the MCP stdio transport, so client code writes
    straight to stderr instead of going through the logging module.
    """

    def __init__(self, component: str = "CLIENT") -> None:
        self._component = component

    def info(self, msg: object) -> None:
        log_event(str(msg), self._component)

    def warning(self, msg: object) -> None:
        log_event(f"WARNING: {msg}", self._component)

    def error(self, msg: object) -> None:
        log_event(f"ERROR: {msg}", self._component)

    def debug(self, msg: object) -> None:
        log_event(f"DEBUG: {msg}", self._component)


logger = _ClientLogger("GITANA")


def _handle_response(
    response: httpx.Response,
    error_cls: type[GitanaError],
    not_found: GitanaError | None = None,
) -> dict[str, Any]:
    """Decode a JSON response or raise the matching domain error.

    ``not_found`` replaces the generic error for a 404 on lookups whose
    missing target has its own error type.
    """
    if response.status_code in (401, 403):
        raise ConnectionError(f"Unauthorized ({response.status_code}): {response.request.url.path}")

    if response.status_code == 404 and not_found is not None:
        raise not_found

    if response.status_code >= 400:
        try:
            message = response.json().get("message", "API request failed")
        except (json.JSONDecodeError, AttributeError):
            message = f"API error: {response.status_code}"
        if error_cls is QueryError:
            raise QueryError(message, status_code=response.status_code)
        raise error_cls(message)

    try:
        return response.json()  # type: ignore[no-any-return]
    except json.JSONDecodeError as err:
        raise error_cls("Invalid response format from API") from err


def _encode_pagination(pagination: Mapping[str, Any]) -> dict[str, str]:
    """Turn pagination options into query params (sort etc. travel as JSON)."""
    params: dict[str, str] = {}
    for key, value in pagination.items():
        if isinstance(value, (dict, list)):
            params[key] = json.dumps(value)
        elif isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = str(value)
    return params


class GitanaSession:
    """Authenticated context for one project's stack."""

    def __init__(self, http: httpx.AsyncClient, base_url: str, access_token: str):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self.application_id: str | None = None
        self.project_id: str | None = None
        self.stack_id: str | None = None

    async def request_json(
        self,
        method: str,
        path: str,
        error_cls: type[GitanaError],
        *,
        body: Any = None,
        params: Mapping[str, Any] | None = None,
        not_found: GitanaError | None = None,
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }
        try:
            response = await self.http.request(
                method, f"{self.base_url}{path}", json=body, params=params, headers=headers
            )
        except httpx.HTTPError as err:
            raise error_cls(f"{method} {path} failed: {err}") from err
        return _handle_response(response, error_cls, not_found=not_found)

    async def datastore(self, name: str) -> "GitanaDatastore":
        """Resolve a datastore of this session's stack by key."""
        data = await self.request_json(
            "GET",
            f"/stacks/{self.stack_id}/datastores",
            ConnectionError,
            not_found=DatastoreNotFoundError(name),
        )
        for row in data.get("rows", []) or []:
            if row.get("key") == name:
                datastore_id = row.get("datastoreId") or row.get("_doc")
                return GitanaDatastore(self, name, datastore_id)
        raise DatastoreNotFoundError(name)


class GitanaDatastore:
    """A datastore handle; for "content" this is the project's repository."""

    def __init__(self, session: GitanaSession, key: str, datastore_id: str):
        self.session = session
        self.key = key
        self.id = datastore_id

    async def query_branches(self, query: Mapping[str, Any]) -> dict[str, "GitanaBranch"]:
        data = await self.session.request_json(
            "POST",
            f"/repositories/{self.id}/branches/query",
            QueryError,
            body=dict(query),
            params={"limit": BRANCH_QUERY_LIMIT},
        )
        branches: dict[str, GitanaBranch] = {}
        for row in data.get("rows", []) or []:
            info = BranchInfo.from_row(row)
            branches[info.id] = GitanaBranch(self, info)
        return branches


class GitanaBranch:
    """A branch handle able to run node queries."""

    def __init__(self, datastore: GitanaDatastore, info: BranchInfo):
        self.datastore = datastore
        self.info = info

    @property
    def id(self) -> str:
        return self.info.id

    @property
    def type(self) -> str:
        return self.info.type

    @property
    def archived(self) -> bool | None:
        return self.info.archived

    @property
    def snapshot(self) -> bool | None:
        return self.info.snapshot

    def to_dict(self) -> dict[str, Any]:
        return self.info.model_dump(by_alias=False)

    async def query_nodes(
        self, query: Mapping[str, Any], pagination: Mapping[str, Any]
    ) -> dict[str, dict[str, Any]]:
        data = await self.datastore.session.request_json(
            "POST",
            f"/repositories/{self.datastore.id}/branches/{self.id}/nodes/query",
            QueryError,
            body=dict(query),
            params=_encode_pagination(pagination),
        )
        rows = data.get("rows", []) or []
        nodes = {row["_doc"]: row for row in rows if "_doc" in row}
        dropped = sum(1 for row in rows if "_doc" not in row)
        if dropped:
            logger.warning(f"Dropped {dropped} node row(s) without _doc from branch {self.id}")
        return nodes


class GitanaConnector:
    """Remote collaborator: authenticates against Cloud CMS and opens sessions.

    One httpx.AsyncClient is shared by every session this connector opens;
    each connect() still performs its own token handshake.
    """

    def __init__(self, config: APIConfiguration, http: httpx.AsyncClient | None = None):
        self.config = config
        self._client = http

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitanaConnector":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def connect(self, credentials: GitanaCredentials) -> GitanaSession:
        """Run the password-grant handshake and bind the session to its stack."""
        base_url = credentials.base_url.rstrip("/")
        try:
            response = await self.client.post(
                f"{base_url}/oauth/token",
                data={
                    "grant_type": "password",
                    "username": credentials.username,
                    "password": credentials.password.get_secret_value(),
                    "scope": "api",
                },
                auth=(credentials.client_key, credentials.client_secret.get_secret_value()),
            )
        except httpx.HTTPError as err:
            raise ConnectionError(f"Handshake with {base_url} failed: {err}") from err

        token_data = _handle_response(response, ConnectionError)
        access_token = token_data.get("access_token")
        if not access_token:
            raise ConnectionError(f"Handshake with {base_url} returned no access token")

        session = GitanaSession(self.client, base_url, access_token)
        application = await session.request_json(
            "GET", f"/applications/{credentials.application}", ConnectionError
        )
        project_id = application.get("projectId")
        if not project_id:
            raise ConnectionError(f"Application {credentials.application} is not bound to a project")
        project = await session.request_json("GET", f"/projects/{project_id}", ConnectionError)
        stack_id = project.get("stackId")
        if not stack_id:
            raise ConnectionError(f"Project {project_id} has no stack")

        session.application_id = credentials.application
        session.project_id = project_id
        session.stack_id = stack_id
        return session
