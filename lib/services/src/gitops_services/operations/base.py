# region Docstring
"""
gitops_services.operations.base
Base class and context shared by all mutation operations.
Overview:
- An Operation names the files it needs (target_paths), how the tree is read
    (recursive), which staged files are folded back (glob_options, remove_subtrees) and
    the commit message. apply() edits the staged files in place.
- The driver locates the files, stages them, calls apply() and hands the staging area to
    the tree builder. Operations never talk to the remote store themselves.
Contents:
- OperationContext: What apply() gets for one repository.
- Operation: Base class; subclasses override apply() and commit_message().
"""

# endregion
# region Imports
from logging import Logger as T_Logger
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from gitops_core.models import (
    FileDescriptor,
    GlobOptions,
    Reference,
    Repository,
    StepResult,
    TreeWithDescriptors,
)

from ..staging import StagingArea

# endregion
# region Context


class OperationContext(BaseModel):
    """
    Per-repository context handed to Operation.apply().
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repository: Repository
    ref: Reference
    located: TreeWithDescriptors
    staging: StagingArea
    logger: T_Logger
    dry_run: bool = False
    extra_removals: list[FileDescriptor] = Field(
        default_factory=list,
        description="Descriptors to remove from the tree besides the located ones",
    )

    def descriptor(self, requested_path: str) -> FileDescriptor:
        """Return the descriptor located for *requested_path*."""
        descriptor = self.located.descriptor(requested_path)
        if descriptor is None:
            raise KeyError(f"{requested_path} was not located")
        return descriptor


# endregion
# region Operation


class Operation:
    """
    A change applied to every selected repository.

    Attributes:
        name (str): Operation name used in reports and the run ledger.
        target_paths (tuple[str, ...]): Files that must all be located in the tree.
        recursive (bool): Read the tree recursively so nested paths can be located.
        glob_options (GlobOptions): Which staged files are folded back into the tree.
            A shallow read only sees the top level, so only top-level files are folded
            back by default; recursive operations widen it.
        remove_subtrees (bool): Remove descendants of removed directory entries.
    """

    name: str = "operation"
    target_paths: tuple[str, ...] = ()
    recursive: bool = False
    glob_options: GlobOptions = GlobOptions(depth=1)
    remove_subtrees: bool = True

    def prepare(self, logger: T_Logger) -> StepResult:
        """Run once before the first repository. A non-ok result stops the run."""
        return StepResult.ok()

    def apply(self, ctx: OperationContext) -> StepResult:
        """Edit the staged files. Return skip when there is nothing to change."""
        raise NotImplementedError(f"{self.__class__.__name__} must implement apply()")

    def commit_message(self, ctx: OperationContext) -> str:
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement commit_message()"
        )

    def removal_set(self, ctx: OperationContext) -> list[FileDescriptor]:
        """Descriptors excluded from the new tree before staged files are folded in."""
        return [*ctx.located.descriptors, *ctx.extra_removals]

    def describe(self) -> Optional[str]:
        """One line describing the run for report headers."""
        return None


# endregion
