"""Gitana MCP data models and error types."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class GitanaError(Exception):
    """Base exception for all Gitana facade failures."""


class ConnectionError(GitanaError):  # noqa: A001
    """Authentication or transport failure while establishing a session.

    Shadows the builtin inside this package on purpose; import it as
    ``models.ConnectionError`` when both are needed.
    """


class DatastoreNotFoundError(GitanaError):
    """The named datastore does not exist in the project's stack."""

    def __init__(self, datastore: str, project_name: str | None = None):
        self.datastore = datastore
        self.project_name = project_name
        where = f" in project: {project_name}" if project_name else ""
        super().__init__(f"Datastore: {datastore}{where} was not found")


class QueryError(GitanaError):
    """Remote query execution failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class BranchNotFoundError(GitanaError):
    """No active branch matched the requested id after a full enumeration."""

    def __init__(self, branch_id: str, project_name: str):
        self.branch_id = branch_id
        self.project_name = project_name
        super().__init__(f"Branch: {branch_id} in project: {project_name} was not found")


class ConfigurationError(GitanaError):
    """Server settings are invalid."""


class APIConfiguration(BaseModel):
    """Client-side settings handed to GitanaClient."""

    credentials_dir: str = "credentials"
    timeout: float = Field(default=30.0, gt=0)
    default_datastore: str = "content"


class GitanaCredentials(BaseModel):
    """A project's credential record (the gitana.json layout)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    client_key: str = Field(alias="clientKey")
    client_secret: SecretStr = Field(alias="clientSecret")
    username: str
    password: SecretStr
    base_url: str = Field(default="https://api.cloudcms.com", alias="baseURL")
    application: str


class BranchInfo(BaseModel):
    """Plain view of a branch, as returned by the MCP tools."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_doc")
    type: str = "CUSTOM"
    title: str | None = None
    archived: bool | None = None
    snapshot: bool | None = None

    @property
    def is_master(self) -> bool:
        return self.type.lower() == "master"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BranchInfo":
        return cls.model_validate(row)
