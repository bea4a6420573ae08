"""Configuration for the Gitana MCP server."""

import json
import logging
import sys
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import APIConfiguration, ConfigurationError, ConnectionError, GitanaCredentials


class ServerConfig(BaseSettings):
    """Server settings, read from GITANA_* environment variables or .env."""

    model_config = SettingsConfigDict(env_prefix="GITANA_", env_file=".env", extra="ignore")

    credentials_dir: Path = Field(default_factory=lambda: Path.cwd() / "credentials")
    timeout: float = 30.0
    log_level: str = "INFO"
    default_datastore: str = "content"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level

    def get_api_config(self) -> APIConfiguration:
        """Build the client-side configuration."""
        if self.timeout <= 0:
            raise ConfigurationError(f"GITANA_TIMEOUT must be positive, got {self.timeout}")
        return APIConfiguration(
            credentials_dir=str(self.credentials_dir),
            timeout=self.timeout,
            default_datastore=self.default_datastore,
        )


def setup_logging(level: str = "INFO") -> None:
    """Send root logging to stderr; stdout belongs to the MCP transport."""
    root = logging.getLogger()
    root.setLevel(level)
    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)


def credentials_path(credentials_dir: str | Path, project_name: str) -> Path:
    return Path(credentials_dir) / f"{project_name}.json"


def load_credentials(credentials_dir: str | Path, project_name: str) -> GitanaCredentials:
    """Locate and parse the credential record for a project.

    Raises:
        ConnectionError: If the file is missing, not JSON, or lacks required keys.
    """
    path = credentials_path(credentials_dir, project_name)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as err:
        raise ConnectionError(f"No credentials found for project: {project_name} ({path})") from err
    except (OSError, json.JSONDecodeError) as err:
        raise ConnectionError(f"Unreadable credentials for project: {project_name}: {err}") from err

    try:
        return GitanaCredentials.model_validate(raw)
    except ValidationError as err:
        raise ConnectionError(f"Malformed credentials for project: {project_name}: {err}") from err
