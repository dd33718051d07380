"""
Configuration for the gitops command line.

Settings instances come from the cached get_settings factory; command line options are
applied on top of them per invocation.

Functions:
    app_settings: Application paths (staging root, cache, run ledger).
    logging_settings: Log directory, level and archive count.
    github_settings: GitHub settings with the selected profile and the
        --token-file-path option applied.
"""

from typing import Optional

from gitops_core.config import (
    AppSettings,
    GitHubSettings,
    LoggingSettings,
    get_settings,
)


def app_settings() -> AppSettings:
    """Application-wide settings instance."""
    return get_settings(AppSettings)


def logging_settings() -> LoggingSettings:
    return get_settings(LoggingSettings)


def github_settings(
    profile: Optional[str] = None, token_file_path: Optional[str] = None
) -> GitHubSettings:
    settings = get_settings(GitHubSettings).for_profile(profile)
    if token_file_path:
        settings = settings.model_copy(update={"token_file_path": token_file_path})
    return settings
