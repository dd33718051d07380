# region Docstring
"""
gitops_core.errors
Exception hierarchy shared by the client, services and CLI.
Overview:
- Every error raised on purpose by gitops derives from GitOpsError so callers can catch
    the whole family in one place.
- NotFoundError groups the "remote object absent" conditions so the driver can tell them
    apart from transport failures.
Contents:
- GitOpsError: Root of the hierarchy.
- ConfigurationError: Missing token, unreadable profile file, invalid settings.
- InvalidReferenceError: A reference that is neither heads/<branch> nor tags/<tag>.
- NotFoundError and its subclasses OrganizationUnavailableError, ReferenceNotFoundError
    and EntryNotFoundError.
- ContentDecodeError: Blob content that is not valid base64 or UTF-8.
- TruncatedTreeError: A recursive tree listing the API cut short.
- ReferenceConflictError: The branch moved since it was read.
- TransportError and RateLimitError: Network failures and unexpected HTTP statuses.
- StagingError: Misuse of a staging area.
"""

# endregion
# region Imports
from datetime import datetime, timezone
from typing import Optional

# endregion
# region Exceptions


class GitOpsError(Exception):
    """Base class for gitops errors."""

    pass


class ConfigurationError(GitOpsError):
    """Custom exception for missing or invalid configuration."""

    pass


class InvalidReferenceError(GitOpsError):
    """Custom exception for malformed references."""

    pass


class NotFoundError(GitOpsError):
    """A remote object does not exist or is not visible with the current token."""

    pass


class OrganizationUnavailableError(NotFoundError):
    """Listing the repositories of an organization failed."""

    def __init__(self, organization: str, message: Optional[str] = None) -> None:
        self.organization = organization
        super().__init__(message or f"Organization '{organization}' is unavailable")


class ReferenceNotFoundError(NotFoundError):
    """A reference does not resolve to a commit."""

    pass


class EntryNotFoundError(NotFoundError):
    """A blob or tree entry does not exist."""

    pass


class ContentDecodeError(GitOpsError):
    """Blob content could not be decoded exactly."""

    pass


class TruncatedTreeError(GitOpsError):
    """The API returned a truncated recursive tree listing."""

    pass


class ReferenceConflictError(GitOpsError):
    """The reference no longer points at the expected commit."""

    def __init__(
        self,
        ref: str,
        expected_sha: Optional[str] = None,
        actual_sha: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.ref = ref
        self.expected_sha = expected_sha
        self.actual_sha = actual_sha
        super().__init__(
            message
            or f"Reference '{ref}' moved from {expected_sha} to {actual_sha}"
        )


class TransportError(GitOpsError):
    """Network failure or an unexpected HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(TransportError):
    """The API rate limit was exhausted."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reset_at: Optional[datetime] = None,
    ) -> None:
        self.reset_at = reset_at
        super().__init__(message, status_code)

    @classmethod
    def from_reset_header(
        cls, message: str, status_code: int, reset: Optional[str]
    ) -> "RateLimitError":
        reset_at = None
        if reset and reset.isdigit():
            reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc)
        return cls(message, status_code, reset_at)


class StagingError(GitOpsError):
    """Custom exception for staging area misuse."""

    pass


# endregion

__all__ = [
    "ConfigurationError",
    "ContentDecodeError",
    "EntryNotFoundError",
    "GitOpsError",
    "InvalidReferenceError",
    "NotFoundError",
    "OrganizationUnavailableError",
    "RateLimitError",
    "ReferenceConflictError",
    "ReferenceNotFoundError",
    "StagingError",
    "TransportError",
    "TruncatedTreeError",
]
