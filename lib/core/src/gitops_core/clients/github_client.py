# region Docstring
"""
gitops_core.clients.github_client
Thin synchronous client for the GitHub REST and git database APIs.
Overview:
- Wraps a single httpx.Client configured from GitHubSettings (base URL, bearer token,
    user agent, API version header, timeout, TLS verification).
- Maps HTTP failures onto the gitops exception hierarchy so services never look at
    status codes.
- Every public call is logged at DEBUG by the _log_call decorator; every HTTP exchange
    is logged with method, path and status.
Contents:
- Functions:
    - _log_call(method_name): Decorator logging start, end and elapsed time of a call.
- Classes:
    - GitHubClient:
        Context manager exposing list_organization_repositories, get_reference,
        get_commit, get_tree, get_blob, get_content, create_blob, create_tree,
        create_commit and update_reference.
Design notes:
- No retries are performed here. Rate limiting surfaces as RateLimitError carrying the
    reset time so the caller decides what to do.
- Blob content is always sent base64 encoded so arbitrary bytes survive the round trip.
"""

# endregion
# region Imports
import base64
import time
from functools import wraps
from logging import Logger
from typing import Any, Callable, Optional, TypeVar

import httpx

from gitops_core.config import GitHubSettings
from gitops_core.errors import (
    EntryNotFoundError,
    NotFoundError,
    OrganizationUnavailableError,
    RateLimitError,
    ReferenceConflictError,
    ReferenceNotFoundError,
    TransportError,
)
from gitops_core.models import Reference, Repository, Tree

# endregion
# region Helpers

T = TypeVar("T")

API_VERSION = "2022-11-28"


def _summarize(value: Any) -> Any:
    """Shorten values for log output."""
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, (list, tuple)):
        return f"<{len(value)} items>"
    if hasattr(value, "model_dump"):
        return str(value)
    return value


def _log_call(method_name: str):
    """Decorator to log the start and end of any GitHubClient method."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self: "GitHubClient", *args, **kwargs) -> T:
            logger = self.__logger__
            started = time.perf_counter()
            logger.debug(
                f"github.{method_name}",
                extra={
                    "github_method": method_name,
                    "github_args": [_summarize(a) for a in args],
                    "github_kwargs": {k: _summarize(v) for k, v in kwargs.items()},
                },
            )
            try:
                return func(self, *args, **kwargs)
            except Exception as e:
                logger.debug(
                    f"github.{method_name} failed: {e.__class__.__name__}",
                    extra={"github_method": method_name},
                )
                raise
            finally:
                logger.debug(
                    f"github.{method_name} finished",
                    extra={
                        "github_method": method_name,
                        "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
                    },
                )

        return wrapper

    return decorator


# endregion
# region GitHubClient


class GitHubClient:
    """
    GitHub API client bound to one token and API base.

    Arguments:
        settings (GitHubSettings): API base, timeouts and token sources.
        logger (Logger): Parent logger; the client logs through a child logger.
        token (Optional[str]): Explicit token, bypassing settings.resolve_token().
        transport (Optional[httpx.BaseTransport]): Custom transport (tests).
    """

    __client__: httpx.Client
    __settings__: GitHubSettings
    __logger__: Logger

    def __init__(
        self,
        settings: GitHubSettings,
        logger: Logger,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if settings is None or not isinstance(settings, GitHubSettings):
            raise ValueError("A valid GitHubSettings instance is required.")
        self.__settings__ = settings
        self.__logger__ = logger.getChild(self.__class__.__name__)
        token = token or settings.resolve_token()
        self.__client__ = httpx.Client(
            base_url=settings.api_base,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": settings.user_agent,
            },
            timeout=settings.timeout_seconds,
            verify=settings.verify_ssl,
            transport=transport,
        )

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self.__client__.close()

    # region Transport

    def _request(
        self,
        method: str,
        url: str,
        not_found: Optional[Callable[[httpx.Response], Exception]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send one request and map error statuses.

        Raises:
            RateLimitError: 429, or 403 with an exhausted rate limit.
            NotFoundError: 404 (or the error built by *not_found*).
            TransportError: Network failure or any other error status.
        """
        try:
            response = self.__client__.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        self.__logger__.debug(
            f"{method} {response.request.url.path} -> {response.status_code}",
            extra={"http_method": method, "status_code": response.status_code},
        )
        if response.is_success:
            return response

        status = response.status_code
        message = self._error_message(response)
        remaining = response.headers.get("X-RateLimit-Remaining")
        if status == 429 or (status == 403 and remaining == "0"):
            raise RateLimitError.from_reset_header(
                f"Rate limit exceeded: {message}",
                status,
                response.headers.get("X-RateLimit-Reset"),
            )
        if status == 404:
            if not_found is not None:
                raise not_found(response)
            raise NotFoundError(f"{method} {url}: {message}")
        raise TransportError(f"{method} {url} returned {status}: {message}", status)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase

    # endregion
    # region Repositories

    @_log_call("list_organization_repositories")
    def list_organization_repositories(self, organization: str) -> list[Repository]:
        """
        Return the repositories of *organization* in listing order, following
        'Link: rel="next"' pagination.

        Raises:
            OrganizationUnavailableError: The organization does not exist or the token
                may not list it.
        """
        url: Optional[str] = f"/orgs/{organization}/repos"
        params: Optional[dict[str, Any]] = {
            "per_page": self.__settings__.per_page,
            "type": "all",
        }
        repositories: list[Repository] = []
        while url:
            try:
                response = self._request(
                    "GET",
                    url,
                    params=params,
                    not_found=lambda r: OrganizationUnavailableError(
                        organization, f"Organization '{organization}' was not found"
                    ),
                )
            except RateLimitError:
                raise
            except TransportError as e:
                if e.status_code in (401, 403):
                    raise OrganizationUnavailableError(
                        organization,
                        f"Not allowed to list organization '{organization}': {e}",
                    ) from e
                raise
            for item in response.json():
                repositories.append(Repository.from_api(item))
            url = response.links.get("next", {}).get("url")
            # the next link already carries the query string
            params = None
        return repositories

    # endregion
    # region Git Database

    @_log_call("get_reference")
    def get_reference(self, owner: str, repo: str, ref: Reference) -> str:
        """
        Resolve *ref* to the commit sha it points at.

        Raises:
            ReferenceNotFoundError: The reference does not exist.
        """
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/ref/{ref.path}",
            not_found=lambda r: ReferenceNotFoundError(
                f"Reference '{ref}' not found in {owner}/{repo}"
            ),
        )
        data = response.json()
        if isinstance(data, list):
            # the API answers a prefix match with a list of candidates
            raise ReferenceNotFoundError(
                f"Reference '{ref}' is ambiguous in {owner}/{repo}"
            )
        return data["object"]["sha"]

    @_log_call("get_commit")
    def get_commit(self, owner: str, repo: str, sha: str) -> dict[str, Any]:
        """Return the git commit object (tree sha, parents, message)."""
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/commits/{sha}",
            not_found=lambda r: ReferenceNotFoundError(
                f"Commit {sha} not found in {owner}/{repo}"
            ),
        )
        return response.json()

    @_log_call("get_tree")
    def get_tree(
        self, owner: str, repo: str, sha: str, recursive: bool = False
    ) -> Tree:
        """Fetch a tree, flattened with full relative paths when *recursive*."""
        params = {"recursive": "1"} if recursive else None
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{sha}",
            params=params,
            not_found=lambda r: EntryNotFoundError(
                f"Tree {sha} not found in {owner}/{repo}"
            ),
        )
        tree = Tree.from_api(response.json(), recursive=recursive)
        if tree.truncated:
            self.__logger__.warning(
                f"Tree {sha} of {owner}/{repo} was truncated by the API",
                extra={"repository": f"{owner}/{repo}"},
            )
        return tree

    @_log_call("get_blob")
    def get_blob(self, owner: str, repo: str, sha: str) -> dict[str, Any]:
        """Return the raw blob payload ('content', 'encoding', 'size')."""
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/blobs/{sha}",
            not_found=lambda r: EntryNotFoundError(
                f"Blob {sha} not found in {owner}/{repo}"
            ),
        )
        return response.json()

    @_log_call("get_content")
    def get_content(
        self, owner: str, repo: str, path: str, ref: Optional[Reference] = None
    ) -> dict[str, Any]:
        """Return the contents API payload of a single file."""
        params = {"ref": ref.name} if ref else None
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{path}",
            params=params,
            not_found=lambda r: EntryNotFoundError(
                f"{path} not found in {owner}/{repo}"
            ),
        )
        return response.json()

    @_log_call("create_blob")
    def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        """Store *content* as a blob and return its sha."""
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={
                "content": base64.b64encode(content).decode("ascii"),
                "encoding": "base64",
            },
        )
        return response.json()["sha"]

    @_log_call("create_tree")
    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: list[dict[str, Any]],
        base_tree: Optional[str] = None,
    ) -> str:
        """
        Create a tree from *entries* on top of *base_tree* and return its sha.
        Entries with 'sha': None delete the path from the base tree.
        """
        payload: dict[str, Any] = {"tree": entries}
        if base_tree:
            payload["base_tree"] = base_tree
        response = self._request(
            "POST", f"/repos/{owner}/{repo}/git/trees", json=payload
        )
        return response.json()["sha"]

    @_log_call("create_commit")
    def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> str:
        """Create a commit object and return its sha."""
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return response.json()["sha"]

    @_log_call("update_reference")
    def update_reference(
        self, owner: str, repo: str, ref: Reference, sha: str, force: bool = False
    ) -> str:
        """
        Move *ref* to *sha*. Without *force* the API rejects anything that is not a
        fast-forward.

        Raises:
            ReferenceConflictError: The update was rejected (409/422).
        """
        try:
            response = self._request(
                "PATCH",
                f"/repos/{owner}/{repo}/git/refs/{ref.path}",
                json={"sha": sha, "force": force},
                not_found=lambda r: ReferenceNotFoundError(
                    f"Reference '{ref}' not found in {owner}/{repo}"
                ),
            )
        except RateLimitError:
            raise
        except TransportError as e:
            if e.status_code in (409, 422):
                raise ReferenceConflictError(
                    str(ref), message=f"Update of '{ref}' was rejected: {e}"
                ) from e
            raise
        return response.json()["object"]["sha"]

    # endregion


# endregion

__all__ = ["GitHubClient"]
