# region Imports
"""
Core gitops package.

This package holds what every other gitops package builds on: settings (environment,
YAML and profile driven), the domain and result models, the exception hierarchy and
the GitHub REST client.

It leverages Pydantic for settings and models and httpx for HTTP.
"""

from . import errors  # noqa: F401
from .config import (  # noqa: F401
    AppSettings,
    GitHubSettings,
    LoggingSettings,
    get_settings,
)

# endregion
