"""
Tests for the gitops settings classes and the profiles file.
"""

import pytest
from pydantic import ValidationError

from gitops_core.config import (
    AppSettings,
    GitHubSettings,
    LoggingSettings,
    read_profiles,
)
from gitops_core.errors import ConfigurationError

# region Test GitHubSettings


class TestGitHubSettings:
    """Defaults, aliases and validation of GitHubSettings."""

    def test_default_values(self):
        settings = GitHubSettings()
        assert settings.api_base == "https://api.github.com"
        assert settings.token is None
        assert settings.token_file_path == ".git-token"
        assert settings.timeout_seconds == 30.0
        assert settings.verify_ssl is True
        assert settings.per_page == 100

    def test_environment_variable_aliases(self, monkeypatch):
        monkeypatch.setenv("GITOPS_GITHUB_API_BASE", "https://ghe.example.com/api/v3/")
        monkeypatch.setenv("GITOPS_GITHUB_TOKEN", "env-token")
        monkeypatch.setenv("GITOPS_GITHUB_PER_PAGE", "50")
        settings = GitHubSettings()
        assert settings.api_base == "https://ghe.example.com/api/v3"
        assert settings.token == "env-token"
        assert settings.per_page == 50

    def test_yaml_config_file(self, monkeypatch, tmp_path):
        config_file = tmp_path / "gitops.yaml"
        config_file.write_text("user_agent: from-yaml\nGITOPS_GITHUB_TIMEOUT: 5\n")
        monkeypatch.setenv("GITOPS_CONFIG_FILE", str(config_file))
        settings = GitHubSettings()
        assert settings.user_agent == "from-yaml"
        assert settings.timeout_seconds == 5.0

    def test_environment_outranks_yaml(self, monkeypatch, tmp_path):
        config_file = tmp_path / "gitops.yaml"
        config_file.write_text("user_agent: from-yaml\n")
        monkeypatch.setenv("GITOPS_CONFIG_FILE", str(config_file))
        monkeypatch.setenv("GITOPS_USER_AGENT", "from-env")
        assert GitHubSettings().user_agent == "from-env"

    def test_invalid_api_base_raises(self):
        with pytest.raises(ValidationError):
            GitHubSettings(api_base="ftp://example.com")

    def test_invalid_per_page_raises(self):
        with pytest.raises(ValidationError):
            GitHubSettings(per_page=101)


# endregion
# region Test Token Resolution


class TestResolveToken:
    def test_inline_token_wins(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("file-token")
        settings = GitHubSettings(token=" inline ", token_file_path=str(token_file))
        assert settings.resolve_token() == "inline"

    def test_token_read_from_file(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("file-token\n")
        settings = GitHubSettings(token_file_path=str(token_file))
        assert settings.token_file == token_file
        assert settings.resolve_token() == "file-token"

    def test_missing_token_file_raises(self, tmp_path):
        settings = GitHubSettings(token_file_path=str(tmp_path / "absent"))
        with pytest.raises(ConfigurationError, match="personal access token"):
            settings.resolve_token()

    def test_empty_token_file_raises(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("  \n")
        settings = GitHubSettings(token_file_path=str(token_file))
        with pytest.raises(ConfigurationError, match="empty"):
            settings.resolve_token()


# endregion
# region Test Profiles


class TestProfiles:
    def test_missing_profiles_file_is_empty(self, tmp_path):
        assert read_profiles(tmp_path / "absent.yaml") == {}

    def test_non_mapping_profiles_file_raises(self, tmp_path):
        path = tmp_path / "profiles.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ConfigurationError):
            read_profiles(path)

    def test_profile_overlays_allowed_keys(self, github_settings: GitHubSettings):
        github_settings.profiles_file.write_text(
            "enterprise:\n"
            "  api_base: https://ghe.example.com/api/v3\n"
            "  token_file_path: .ghe-token\n"
            "  timeout_seconds: 1\n"
        )
        settings = github_settings.for_profile("enterprise")
        assert settings.api_base == "https://ghe.example.com/api/v3"
        assert settings.token_file_path == ".ghe-token"
        assert settings.timeout_seconds == 30.0
        assert settings.token == "test-token"
        assert github_settings.api_base == "https://api.github.test"

    def test_unknown_profile_returns_same_settings(self, github_settings: GitHubSettings):
        github_settings.profiles_file.write_text("other:\n  user_agent: x\n")
        assert github_settings.for_profile("missing") is github_settings

    def test_no_profile_returns_same_settings(self, github_settings: GitHubSettings):
        assert github_settings.for_profile(None) is github_settings


# endregion
# region Test LoggingSettings & AppSettings


class TestLoggingSettings:
    def test_warn_is_normalized(self):
        assert LoggingSettings(log_level="warn").log_level == "WARNING"

    def test_invalid_level_raises(self):
        with pytest.raises(ValidationError):
            LoggingSettings(log_level="LOUD")

    def test_environment_variable_aliases(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GITOPS_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("GITOPS_LOG_ARCHIVES", "3")
        settings = LoggingSettings()
        assert settings.log_dir == tmp_path
        assert settings.archives_to_keep == 3


class TestAppSettings:
    def test_computed_paths(self, tmp_path):
        settings = AppSettings(app_root=tmp_path)
        assert settings.temp_dir == tmp_path / ".tmp"
        assert settings.cache_dir == tmp_path / ".cache"
        assert settings.ledger_path == tmp_path / ".cache" / "runs.db"


# endregion
