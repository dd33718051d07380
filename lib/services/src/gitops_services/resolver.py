# region Docstring
"""
gitops_services.resolver
Turns organizations and repository filters into the list of repositories to work on.
Overview:
- Lists each organization through the GitHub client, in input order.
- Filters every listing with the exclude list, then the allow-list (which overrides the
    regular expression when given) or the regular expression.
- Forks, archived and disabled repositories are left out unless asked for.
- An organization that cannot be listed is recorded as a warning and skipped; the
    remaining organizations are still resolved. Rate limiting is not an organization
    problem and propagates to the caller.
Contents:
- RepositoryFilter: Regex / allow-list / exclude-list plus fork and archive switches.
- ResolvedRepositories: Repositories in resolution order and organization warnings.
- RepositoryResolver: The service.
"""

# endregion
# region Imports
import re
from logging import Logger as T_Logger
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from gitops_core.clients import GitHubClient
from gitops_core.errors import (
    OrganizationUnavailableError,
    RateLimitError,
    TransportError,
)
from gitops_core.models import Repository

# endregion
# region Models


class RepositoryFilter(BaseModel):
    """
    Selects repositories of an organization listing.

    Attributes:
        pattern (Optional[str]): Regular expression matched against the repository name.
        include (list[str]): Explicit allow-list of names; overrides *pattern* when set.
        exclude (list[str]): Names to leave out, applied before anything else.
        include_forks (bool): Keep forked repositories.
        include_archived (bool): Keep archived and disabled repositories.
    """

    pattern: Optional[str] = Field(
        default=None, description="Regular expression matched against repository names"
    )
    include: list[str] = Field(
        default_factory=list, description="Allow-list of repository names"
    )
    exclude: list[str] = Field(
        default_factory=list, description="Repository names to exclude"
    )
    include_forks: bool = Field(default=False)
    include_archived: bool = Field(default=False)

    @field_validator("pattern", mode="after")
    def validate_pattern(cls, v: Optional[str]) -> Optional[str]:
        if v:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid repository pattern '{v}': {e}") from e
        return v or None

    def matches(self, repository: Repository) -> bool:
        if repository.name in self.exclude:
            return False
        if not self.include_forks and repository.fork:
            return False
        if not self.include_archived and (repository.archived or repository.disabled):
            return False
        if self.include:
            return repository.name in self.include
        if self.pattern:
            return re.search(self.pattern, repository.name) is not None
        return True


class ResolvedRepositories(BaseModel):
    repositories: list[Repository] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# endregion
# region Resolver Service


class RepositoryResolver:
    """
    Resolves organizations into repositories.
    """

    __client: GitHubClient
    __logger: T_Logger

    def __init__(self, client: GitHubClient, logger: T_Logger) -> None:
        self.__client = client
        self.__logger = logger.getChild(self.__class__.__name__)

    def resolve(
        self, organizations: list[str], filters: Optional[RepositoryFilter] = None
    ) -> ResolvedRepositories:
        """
        Resolve *organizations* into a deduplicated list of repositories.

        Arguments:
            organizations (list[str]): Organizations, processed in the given order.
            filters (Optional[RepositoryFilter]): Selection rules. Defaults select every
                repository that is not a fork, archived or disabled.

        Returns:
            ResolvedRepositories: Repositories in organization then listing order, and a
                warning for every organization that could not be listed.
        """
        filters = filters or RepositoryFilter()
        result = ResolvedRepositories()
        seen: set[str] = set()
        for organization in dict.fromkeys(organizations):
            try:
                listing = self.__client.list_organization_repositories(organization)
            except RateLimitError:
                raise
            except (OrganizationUnavailableError, TransportError) as e:
                self.__logger.warning(
                    f"Skipping organization {organization}: {e}",
                    extra={"organization": organization},
                )
                result.warnings.append(
                    f"Failed to list repositories for the {organization} organization: {e}"
                )
                continue

            selected = [repo for repo in listing if filters.matches(repo)]
            self.__logger.info(
                f"{len(selected)} of {len(listing)} repositories selected in {organization}",
                extra={"organization": organization},
            )
            for repo in selected:
                if repo.full_name in seen:
                    continue
                seen.add(repo.full_name)
                result.repositories.append(repo)
        return result


# endregion
