# region Docstring
"""
gitops_services.locator
Finds specific files in a repository's tree without downloading the repository.
Overview:
- Resolves a reference to its commit, reads the commit's root tree (first level only,
    unless the caller asks for a recursive listing) and matches requested paths against
    the blob entries.
- A path matches an entry with exactly the same path. Failing that, it matches the one
    entry whose path ends with the requested path on a directory boundary. Two or more
    such entries make the path ambiguous, which counts as missing.
- Either every requested path is found, or the result is a skip naming the missing
    paths. A partial set of descriptors is never returned as success.
Error handling:
- A reference that does not exist yields a fail result for the repository.
- Transport and rate-limit errors propagate unchanged.
"""

# endregion
# region Imports
from logging import Logger as T_Logger
from typing import Optional, Sequence

from gitops_core.clients import GitHubClient
from gitops_core.errors import NotFoundError
from gitops_core.models import (
    FileDescriptor,
    Reference,
    Repository,
    StepResult,
    Tree,
    TreeEntry,
    TreeWithDescriptors,
    normalize_path,
)

# endregion
# region Locator Service


class TreeDescriptorLocator:
    __client: GitHubClient
    __logger: T_Logger

    def __init__(self, client: GitHubClient, logger: T_Logger) -> None:
        self.__client = client
        self.__logger = logger.getChild(self.__class__.__name__)

    def locate(
        self,
        repository: Repository,
        ref: Reference,
        paths: Sequence[str],
        recursive: bool = False,
    ) -> StepResult:
        """
        Locate *paths* in the tree of *repository* at *ref*.

        Arguments:
            repository (Repository): Repository to read.
            ref (Reference): Branch or tag to read at.
            paths (Sequence[str]): Relative paths to find; duplicates are ignored.
            recursive (bool): Fetch the flattened recursive tree so nested paths match.

        Returns:
            StepResult: ok with a TreeWithDescriptors, skip with the list of missing
                paths as value, or fail when the reference does not resolve.
        """
        requested = list(dict.fromkeys(normalize_path(p) for p in paths))
        try:
            commit_sha = self.__client.get_reference(
                repository.owner, repository.name, ref
            )
            commit = self.__client.get_commit(
                repository.owner, repository.name, commit_sha
            )
            tree = self.__client.get_tree(
                repository.owner,
                repository.name,
                commit["tree"]["sha"],
                recursive=recursive,
            )
        except NotFoundError as e:
            self.__logger.error(
                f"Failed to read {ref} of {repository.full_name}: {e}",
                extra={"repository": repository.full_name},
            )
            return StepResult.fail(e)

        descriptors: list[FileDescriptor] = []
        missing: list[str] = []
        for path in requested:
            entry = self.match(tree, path)
            if entry is None:
                missing.append(path)
            else:
                descriptors.append(FileDescriptor(requested_path=path, entry=entry))

        if missing:
            reason = (
                f"{len(descriptors)} of {len(requested)} files found; "
                f"missing {', '.join(missing)}"
            )
            self.__logger.warning(
                f"{repository.full_name} <{ref}>: {reason}",
                extra={"repository": repository.full_name, "missing": missing},
            )
            return StepResult.skip(reason, value=missing)

        self.__logger.debug(
            f"Located {len(descriptors)} files in {repository.full_name} <{ref}>",
            extra={"repository": repository.full_name},
        )
        return StepResult.ok(
            TreeWithDescriptors(
                tree=tree, descriptors=descriptors, commit_sha=commit_sha, ref=ref
            )
        )

    @staticmethod
    def match(tree: Tree, path: str) -> Optional[TreeEntry]:
        """Return the blob entry of *tree* matching *path*, or None."""
        wanted = normalize_path(path)
        blobs = tree.blobs
        for entry in blobs:
            if entry.path == wanted:
                return entry
        suffix = "/" + wanted
        candidates = [entry for entry in blobs if entry.path.endswith(suffix)]
        if len(candidates) == 1:
            return candidates[0]
        return None


# endregion
