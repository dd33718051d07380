"""
gitops_core.config
Configuration and settings management for the gitops fleet tool.
Overview:
- Provides Pydantic-based settings classes for the GitHub client, logging and the
    application's on-disk layout.
- Each settings class inherits from FactoryBaseSettings and supports environment variable
    overrides via Field aliases.
Contents:
- Settings Classes:
    - GitHubSettings:
        API base URL, personal access token (inline or read from a token file in the
        user's home directory), request timeout, TLS verification, user agent, page size,
        and named profile overlays read from a YAML profiles file.
    - LoggingSettings:
        Log level, log directory and the number of archived log files to keep.
    - AppSettings:
        Application root, environment, and computed temp (staging), cache and ledger paths.
- Functions:
    - get_settings: Factory function for retrieving cached settings instances (exported).
    - read_profiles: Load the mapping of profile name to GitHub overrides.
Design Notes:
- Default values are provided for all fields enabling zero-configuration startup.
- A missing token is not a validation error; it is raised as ConfigurationError only when
    a client actually needs it (resolve_token).
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator

from gitops_core.config.base import APP_ENV, APP_ROOT, HOME_DIR
from gitops_core.config.factory import FactoryBaseSettings
from gitops_core.config.factory import get_settings  # noqa: F401  This is used externally
from gitops_core.errors import ConfigurationError

_logger = logging.getLogger(__name__)


def read_profiles(path: Path) -> dict[str, dict[str, Any]]:
    """
    Read the profiles file. Each top-level key names a profile whose value holds
    GitHubSettings overrides (``api_base``, ``token_file_path``).

    A missing or empty file yields an empty mapping.
    """
    if not path.exists():
        _logger.warning(f"No such profiles file {path}")
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping of profile names")
    return data


class GitHubSettings(FactoryBaseSettings):
    """
    GitHub API configuration settings.
    """

    api_base: str = Field(
        default="https://api.github.com",
        alias="GITOPS_GITHUB_API_BASE",
        description="Base URL of the GitHub REST API.",
    )
    token: Optional[str] = Field(
        default=None,
        alias="GITOPS_GITHUB_TOKEN",
        description="Personal access token. Overrides the token file when set.",
    )
    token_file_path: str = Field(
        default=".git-token",
        alias="GITOPS_TOKEN_FILE_PATH",
        description="Token file path, relative to the user's home directory.",
    )
    timeout_seconds: float = Field(
        default=30.0,
        alias="GITOPS_GITHUB_TIMEOUT",
        description="Timeout applied to every API request.",
    )
    verify_ssl: bool = Field(
        default=True,
        alias="GITOPS_GITHUB_VERIFY_SSL",
        description="Verify TLS certificates of the API host.",
    )
    user_agent: str = Field(
        default="gitops-fleet",
        alias="GITOPS_USER_AGENT",
        description="User agent sent with every request.",
    )
    per_page: int = Field(
        default=100,
        alias="GITOPS_GITHUB_PER_PAGE",
        description="Page size used when listing repositories. (Max 100)",
    )
    profiles_file: Path = Field(
        default=HOME_DIR / ".gitopsrc.yaml",
        alias="GITOPS_PROFILES_FILE",
        description="YAML file holding named GitHub profiles.",
    )

    @field_validator("per_page", mode="after")
    def validate_per_page(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("per_page must be between 1 and 100")
        return v

    @field_validator("api_base", mode="after")
    def validate_api_base(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base must start with 'http://' or 'https://'")
        return v.rstrip("/")

    @property
    def token_file(self) -> Path:
        """Absolute path of the token file."""
        return HOME_DIR / self.token_file_path

    def resolve_token(self) -> str:
        """
        Return the personal access token.

        Raises:
            ConfigurationError: If neither a token nor a readable token file is available.
        """
        if self.token and self.token.strip():
            return self.token.strip()
        try:
            token = self.token_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigurationError(
                "A GitHub personal access token is required. "
                f"Set GITOPS_GITHUB_TOKEN or create {self.token_file}"
            ) from e
        if not token:
            raise ConfigurationError(f"The token file {self.token_file} is empty")
        return token

    def for_profile(self, name: Optional[str]) -> "GitHubSettings":
        """
        Return a copy of these settings with the named profile applied.

        Unknown profiles log a warning and return the settings unchanged.
        """
        if not name:
            return self
        profiles = read_profiles(self.profiles_file)
        profile = profiles.get(name)
        if profile is None:
            _logger.warning(f"No such profile '{name}' in {self.profiles_file}")
            return self
        allowed = {"api_base", "token_file_path", "user_agent", "verify_ssl"}
        update = {k: v for k, v in profile.items() if k in allowed}
        return self.model_validate({**self.model_dump(), **update})


class LoggingSettings(FactoryBaseSettings):
    """
    Logging configuration settings.
    """

    log_level: str = Field(
        default="INFO",
        alias="GITOPS_LOG_LEVEL",
        description="Log level for console and file output.",
    )
    log_dir: Path = Field(
        default=APP_ROOT / "logs",
        alias="GITOPS_LOG_DIR",
        description="Directory where output and error logs are written.",
    )
    archives_to_keep: int = Field(
        default=10,
        alias="GITOPS_LOG_ARCHIVES",
        description="Number of archived log files to keep.",
    )

    @field_validator("log_level", mode="before")
    def validate_log_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return "WARNING" if level == "WARN" else level


class AppSettings(FactoryBaseSettings):
    """Application configuration settings."""

    app_root: Path = Field(
        default=Path(APP_ROOT),
        alias="GITOPS_ROOT",
        description="Root directory for application data storage.",
    )
    environment: str = Field(
        default=APP_ENV,
        alias="ENVIRONMENT",
        description="Current application environment (prod, docker, dev).",
    )

    @property
    def temp_dir(self) -> Path:
        """Base directory for per-repository staging areas."""
        return self.app_root / ".tmp"

    @property
    def cache_dir(self) -> Path:
        """Base directory for cache."""
        return self.app_root / ".cache"

    @property
    def ledger_path(self) -> Path:
        """SQLite file recording run outcomes."""
        return self.cache_dir / "runs.db"


__all__ = [
    "AppSettings",
    "GitHubSettings",
    "LoggingSettings",
    "get_settings",
    "read_profiles",
]
