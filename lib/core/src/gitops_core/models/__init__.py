# region Docstring
"""
gitops_core.models
Single import point for the gitops domain and result models.

Contents:
- Remote store models: Repository, Reference, Tree, TreeEntry, FileDescriptor,
    TreeWithDescriptors.
- Local models: StagedFile, CommitRequest, GlobOptions.
- Results: StepResult, MergePlan, CommitOutcome, RepositoryOutcome, RunReport.
"""
# endregion
from .github import (  # noqa: F401
    CommitRequest,
    FileDescriptor,
    FileMode,
    GlobOptions,
    Reference,
    Repository,
    StagedFile,
    Tree,
    TreeEntry,
    TreeWithDescriptors,
    normalize_path,
)
from .results import (  # noqa: F401
    CommitOutcome,
    MergePlan,
    RepositoryOutcome,
    RunReport,
    StepResult,
    StepStatus,
)

__all__ = [
    "CommitOutcome",
    "CommitRequest",
    "FileDescriptor",
    "FileMode",
    "GlobOptions",
    "MergePlan",
    "Reference",
    "Repository",
    "RepositoryOutcome",
    "RunReport",
    "StagedFile",
    "StepResult",
    "StepStatus",
    "Tree",
    "TreeEntry",
    "TreeWithDescriptors",
    "normalize_path",
]
