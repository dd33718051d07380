# region Docstring
"""
gitops_services.driver
Runs an operation across every selected repository, one repository at a time.
Overview:
- Resolves organizations into repositories, then for each repository in order:
    locate the target files, stage their content in a fresh staging area, let the
    operation edit them, and hand the result to the tree builder.
- Each step returns a StepResult; the driver looks at its status to decide whether the
    repository succeeded, was skipped or failed, and always moves on to the next one.
- The staging area of a repository is removed before the next repository starts,
    whatever the outcome.
Contents:
- OperationDriver:
    - resolve(organizations, filters) -> ResolvedRepositories
    - process(operation, repository, ref, dry_run) -> StepResult
    - run(operation, organizations, filters, ref, dry_run) -> RunReport
Design Notes:
- Organization listing failures become general errors of the report.
- With abort_on_rate_limit, a RateLimitError stops the batch and the remaining
    repositories are recorded as skipped. Without it the repository fails and the batch
    continues.
"""

# endregion
# region Imports
from logging import Logger as T_Logger
from pathlib import Path
from typing import Optional

from gitops_core.clients import GitHubClient
from gitops_core.errors import (
    ContentDecodeError,
    EntryNotFoundError,
    GitOpsError,
    RateLimitError,
    ReferenceConflictError,
)
from gitops_core.models import (
    CommitOutcome,
    Reference,
    Repository,
    RunReport,
    StagedFile,
    StepResult,
    TreeWithDescriptors,
)

from .blobs import BlobContentAccessor
from .locator import TreeDescriptorLocator
from .operations.base import Operation, OperationContext
from .resolver import RepositoryFilter, RepositoryResolver, ResolvedRepositories
from .staging import StagingArea
from .tree_builder import TreeMergeCommitBuilder

# endregion
# region Driver


class OperationDriver:
    """
    Sequences resolver, locator, blob accessor, operation and tree builder.

    Arguments:
        client (GitHubClient): Client shared by all services.
        logger (T_Logger): Parent logger.
        staging_root (Path): Directory under which staging areas are created.
        abort_on_rate_limit (bool): Stop the batch on the first RateLimitError.
    """

    __logger: T_Logger
    __staging_root: Path

    def __init__(
        self,
        client: GitHubClient,
        logger: T_Logger,
        staging_root: Path,
        abort_on_rate_limit: bool = False,
    ) -> None:
        self.__logger = logger.getChild(self.__class__.__name__)
        self.__staging_root = Path(staging_root)
        self.abort_on_rate_limit = abort_on_rate_limit
        self.resolver = RepositoryResolver(client, logger)
        self.locator = TreeDescriptorLocator(client, logger)
        self.blobs = BlobContentAccessor(client, logger)
        self.builder = TreeMergeCommitBuilder(client, logger)

    def resolve(
        self, organizations: list[str], filters: Optional[RepositoryFilter] = None
    ) -> ResolvedRepositories:
        return self.resolver.resolve(organizations, filters)

    # region Batch

    def run(
        self,
        operation: Operation,
        organizations: list[str],
        filters: Optional[RepositoryFilter] = None,
        ref: Optional[str] = None,
        dry_run: bool = False,
    ) -> RunReport:
        """
        Apply *operation* to every repository selected from *organizations*.

        Returns:
            RunReport: One outcome per repository plus organization-level errors.
        """
        report = RunReport(
            operation=operation.name, organizations=list(organizations), dry_run=dry_run
        )
        description = operation.describe()
        if description:
            self.__logger.info(description)

        prepared = operation.prepare(self.__logger)
        if not prepared.is_ok:
            self.__logger.error(f"{operation.name} not started: {prepared.reason}")
            report.general_errors.append(prepared.reason or "Operation not started")
            return report.finish()

        try:
            resolved = self.resolve(organizations, filters)
        except RateLimitError as e:
            self.__logger.error(f"Rate limited while listing repositories: {e}")
            report.general_errors.append(str(e))
            return report.finish()
        report.general_errors.extend(resolved.warnings)

        repositories = resolved.repositories
        aborted: Optional[str] = None
        for index, repository in enumerate(repositories):
            ref_label = ref or f"heads/{repository.default_branch}"
            if aborted:
                report.record(repository.full_name, "skipped", aborted, ref=ref_label)
                continue

            self.__logger.info(
                f"[{index + 1}|{len(repositories)}] {repository.full_name} <{ref_label}>",
                extra={"repository": repository.full_name, "ref": ref_label},
            )
            result = self.process(operation, repository, ref, dry_run)
            outcome = result.value if isinstance(result.value, CommitOutcome) else None
            if result.is_ok:
                report.record(
                    repository.full_name,
                    "succeeded",
                    None if outcome is None else outcome.plan.summary(),
                    ref=ref_label,
                    commit_sha=outcome.commit_sha if outcome else None,
                    commit_status=outcome.status if outcome else None,
                )
            elif result.is_skip:
                report.record(
                    repository.full_name,
                    "skipped",
                    result.reason,
                    ref=ref_label,
                    commit_status=outcome.status if outcome else None,
                )
            else:
                report.record(repository.full_name, "failed", result.reason, ref=ref_label)
                if isinstance(result.error, RateLimitError) and self.abort_on_rate_limit:
                    aborted = f"Run aborted after rate limiting: {result.error}"
                    self.__logger.error(aborted)

        report.finish()
        self.__logger.info(
            f"{operation.name} completed: {len(report.succeeded)} succeeded, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    # endregion
    # region Repository

    def process(
        self,
        operation: Operation,
        repository: Repository,
        ref: Optional[str] = None,
        dry_run: bool = False,
    ) -> StepResult:
        """
        Run *operation* against one repository. Never raises for repository errors.
        """
        extra = {"repository": repository.full_name}
        try:
            reference = Reference.for_repository(repository, ref)
            located = self.locator.locate(
                repository,
                reference,
                operation.target_paths,
                recursive=operation.recursive,
            )
            if not located.is_ok:
                return located
            with StagingArea(self.__staging_root, repository, self.__logger) as staging:
                return self._process_staged(
                    operation, repository, reference, located.value, staging, dry_run
                )
        except GitOpsError as e:
            self.__logger.error(f"{repository.full_name}: {e}", extra=extra)
            return StepResult.fail(e)
        except Exception as e:
            self.__logger.exception(
                f"{repository.full_name}: unexpected error {e}", extra=extra
            )
            return StepResult.fail(e)

    def _process_staged(
        self,
        operation: Operation,
        repository: Repository,
        reference: Reference,
        located: TreeWithDescriptors,
        staging: StagingArea,
        dry_run: bool,
    ) -> StepResult:
        extra = {"repository": repository.full_name, "ref": str(reference)}
        for descriptor in located.descriptors:
            try:
                content = self.blobs.read_bytes(repository, descriptor.entry)
            except (ContentDecodeError, EntryNotFoundError) as e:
                self.__logger.warning(
                    f"Error getting file descriptor content of {descriptor.path}: {e}",
                    extra=extra,
                )
                return StepResult.skip(f"Error getting file descriptor content: {e}")
            staging.stage(
                StagedFile(
                    relative_path=descriptor.path, content=content, source=descriptor
                )
            )

        ctx = OperationContext(
            repository=repository,
            ref=reference,
            located=located,
            staging=staging,
            logger=self.__logger.getChild(operation.__class__.__name__),
            dry_run=dry_run,
        )
        applied = operation.apply(ctx)
        if not applied.is_ok:
            log = self.__logger.warning if applied.is_skip else self.__logger.error
            log(f"{repository.full_name}: {applied.reason}", extra=extra)
            return applied

        outcome = self.builder.commit(
            repository,
            located,
            operation.removal_set(ctx),
            staging,
            operation.commit_message(ctx),
            glob_options=operation.glob_options,
            remove_subtrees=operation.remove_subtrees,
            dry_run=dry_run,
        )
        if outcome.status in ("committed", "dry_run"):
            return StepResult.ok(outcome)
        if outcome.status == "no_op":
            return StepResult.skip("No changes to commit", value=outcome)
        error = ReferenceConflictError(
            str(reference), outcome.base_commit_sha, message=outcome.detail
        )
        return StepResult(
            status="fail", value=outcome, error=error, reason=str(error)
        )

    # endregion


# endregion
