from .github_client import GitHubClient  # noqa: F401

__all__ = ["GitHubClient"]
