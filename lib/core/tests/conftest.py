import logging

import pytest

from gitops_core.config import GitHubSettings

GITOPS_ENV_VARS = [
    "GITOPS_GITHUB_API_BASE",
    "GITOPS_GITHUB_TOKEN",
    "GITOPS_TOKEN_FILE_PATH",
    "GITOPS_GITHUB_TIMEOUT",
    "GITOPS_GITHUB_VERIFY_SSL",
    "GITOPS_USER_AGENT",
    "GITOPS_GITHUB_PER_PAGE",
    "GITOPS_PROFILES_FILE",
    "GITOPS_LOG_LEVEL",
    "GITOPS_LOG_DIR",
    "GITOPS_LOG_ARCHIVES",
    "GITOPS_ROOT",
    "GITOPS_CONFIG_FILE",
]


@pytest.fixture(autouse=True)
def clean_gitops_env(monkeypatch):
    """Environment variables outrank init kwargs; clear them for every test."""
    for name in GITOPS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("gitops.tests")


@pytest.fixture
def github_settings(tmp_path) -> GitHubSettings:
    return GitHubSettings(
        api_base="https://api.github.test",
        token="test-token",
        profiles_file=tmp_path / "profiles.yaml",
    )
