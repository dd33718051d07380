"""
gitops services package.

Tree resolution and atomic commit services built on gitops_core: repository
resolution, file location, blob access, staging areas, tree merge and commit, the
per-repository operation driver and the mutation operations it runs.
"""

from .blobs import BlobContentAccessor  # noqa: F401
from .driver import OperationDriver  # noqa: F401
from .locator import TreeDescriptorLocator  # noqa: F401
from .resolver import (  # noqa: F401
    RepositoryFilter,
    RepositoryResolver,
    ResolvedRepositories,
)
from .staging import LocalFile, StagingArea  # noqa: F401
from .tree_builder import TreeMergeCommitBuilder, git_blob_sha  # noqa: F401

__all__ = [
    "BlobContentAccessor",
    "LocalFile",
    "OperationDriver",
    "RepositoryFilter",
    "RepositoryResolver",
    "ResolvedRepositories",
    "StagingArea",
    "TreeDescriptorLocator",
    "TreeMergeCommitBuilder",
    "git_blob_sha",
]
