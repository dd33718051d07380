# region Docstring
"""
gitops_services.tree_builder
Folds a locally mutated working set back into a remote tree as one commit.
Overview:
- The caller read part of a repository (a TreeWithDescriptors), staged and changed some
    files locally, and now wants exactly those changes committed on top of the commit it
    read, without touching anything else in the tree.
- plan() works out the merged entry list and the delta against the original tree
    without writing anything. commit() writes the missing blobs, the tree, the commit,
    and finally moves the reference if it has not moved in the meantime.
Algorithm:
    1. Start from the original entries.
    2. Drop entries matching a descriptor of the removal set by content hash and path.
        With remove_subtrees, also drop everything below a dropped directory.
    3. Walk the staging area with the GlobOptions and hash every file the way git does.
    4. A staged file whose path and hash equal an original entry is unchanged. Any other
        staged file replaces or adds the entry at its path; a blob is only written when
        no original entry already has the same hash.
    5. Staged files win path collisions. A directory replaced by a file loses its
        descendants, a file replaced by a directory is dropped.
    6. No difference between merged and original entries is a no_op. In dry-run mode
        the plan is returned as is.
    7. The tree is created from base_tree = original root plus the delta; the commit's
        parent is the commit the tree was read at. A created tree equal to the original
        root is a no_op as well (staged files below a shallow listing can only be
        compared by the remote store).
    8. The reference is re-read; if it moved the outcome is a conflict. Otherwise it is
        updated with force=False and a rejection is a conflict as well.
Modes:
- A staged path that existed in the original tree keeps the original mode.
- Otherwise 100755 for executable files, 120000 for symlinks, else 100644.
- An explicit mode set in the staging area overrides both.
"""

# endregion
# region Imports
import hashlib
from logging import Logger as T_Logger
from typing import Any, Optional

from pydantic import BaseModel, Field

from gitops_core.clients import GitHubClient
from gitops_core.errors import (
    ReferenceConflictError,
    TruncatedTreeError,
)
from gitops_core.models import (
    CommitOutcome,
    CommitRequest,
    FileDescriptor,
    FileMode,
    GlobOptions,
    MergePlan,
    Repository,
    TreeEntry,
    TreeWithDescriptors,
)

from .staging import LocalFile, StagingArea

# endregion
# region Helpers


def git_blob_sha(data: bytes) -> str:
    """Hash *data* the way `git hash-object` does."""
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


def _ancestors(path: str) -> list[str]:
    parts = path.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


class PendingBlob(BaseModel):
    """A staged file whose content is not yet in the remote store."""

    path: str
    sha: str
    content: bytes


class MergeResult(BaseModel):
    """The merged entries, the plan, and the blobs still to be written."""

    entries: dict[str, TreeEntry] = Field(default_factory=dict)
    plan: MergePlan = Field(default_factory=MergePlan)
    pending_blobs: list[PendingBlob] = Field(default_factory=list)


# endregion
# region Builder Service


class TreeMergeCommitBuilder:
    """
    Builds and commits merged trees.
    """

    __client: GitHubClient
    __logger: T_Logger

    def __init__(self, client: GitHubClient, logger: T_Logger) -> None:
        self.__client = client
        self.__logger = logger.getChild(self.__class__.__name__)

    # region Planning

    def plan(
        self,
        located: TreeWithDescriptors,
        remove: list[FileDescriptor],
        staging: StagingArea,
        glob_options: Optional[GlobOptions] = None,
        remove_subtrees: bool = True,
    ) -> MergeResult:
        """
        Compute the merged tree of *located* and the staging area. Writes nothing.

        Raises:
            TruncatedTreeError: The original tree listing is incomplete.
        """
        tree = located.tree
        if tree.truncated:
            raise TruncatedTreeError(
                f"Tree {tree.sha} is truncated; refusing to build a commit on it"
            )
        original = tree.by_path()

        # step 2: removal by content hash and path
        removal_keys = {(d.sha, d.path) for d in remove}
        removed_dirs = [
            e.path
            for e in tree.entries
            if (e.sha, e.path) in removal_keys and e.type == "tree"
        ]
        merged: dict[str, TreeEntry] = {}
        for entry in tree.entries:
            if (entry.sha, entry.path) in removal_keys:
                continue
            if remove_subtrees and any(entry.is_under(d) for d in removed_dirs):
                continue
            merged[entry.path] = entry

        # steps 3-5: fold in staged files
        known_shas = {e.sha for e in tree.entries if e.type == "blob"}
        explicit_modes = staging.modes
        plan = MergePlan()
        pending: dict[str, PendingBlob] = {}
        for local in staging.walk(glob_options):
            sha = git_blob_sha(local.content)
            mode = self._mode_for(local, original.get(local.relative_path), explicit_modes)
            staged_entry = TreeEntry(
                path=local.relative_path,
                mode=mode,
                type="blob",
                sha=sha,
                size=len(local.content),
            )
            previous = original.get(local.relative_path)
            if (
                previous is not None
                and previous.sha == sha
                and previous.mode == mode
                and previous.type == "blob"
            ):
                plan.unchanged.append(local.relative_path)
            elif sha not in known_shas and sha not in pending:
                pending[sha] = PendingBlob(
                    path=local.relative_path, sha=sha, content=local.content
                )
            self._place(merged, staged_entry)

        # step 6: diff against the original
        for path, entry in merged.items():
            before = original.get(path)
            if before is None:
                plan.added.append(path)
            elif (before.sha, before.mode, before.type) != (entry.sha, entry.mode, entry.type):
                plan.modified.append(path)
        plan.removed = [path for path in original if path not in merged]
        self._drop_implied_directories(plan, merged, original)
        plan.tree_delta = self._delta(plan, merged, original)
        plan.blobs_required = len(pending)
        return MergeResult(entries=merged, plan=plan, pending_blobs=list(pending.values()))

    @staticmethod
    def _mode_for(
        local: LocalFile,
        previous: Optional[TreeEntry],
        explicit_modes: dict[str, str],
    ) -> str:
        if local.relative_path in explicit_modes:
            return explicit_modes[local.relative_path]
        if previous is not None and previous.type == "blob":
            return previous.mode
        if local.is_symlink:
            return FileMode.SYMLINK
        if local.is_executable:
            return FileMode.EXECUTABLE
        return FileMode.FILE

    @staticmethod
    def _place(merged: dict[str, TreeEntry], entry: TreeEntry) -> None:
        """Put *entry* into *merged*; the staged entry wins every collision."""
        for path in [p for p, e in merged.items() if e.is_under(entry.path)]:
            del merged[path]
        for ancestor in _ancestors(entry.path):
            existing = merged.get(ancestor)
            if existing is not None and existing.type != "tree":
                del merged[ancestor]
        merged[entry.path] = entry

    @staticmethod
    def _drop_implied_directories(
        plan: MergePlan,
        merged: dict[str, TreeEntry],
        original: dict[str, TreeEntry],
    ) -> None:
        """
        A directory entry of a recursive listing is implied by its descendants; it is
        only really gone when nothing remains below it.
        """
        still_present = []
        for path in plan.removed:
            entry = original[path]
            if entry.type == "tree" and any(e.is_under(path) for e in merged.values()):
                still_present.append(path)
        for path in still_present:
            plan.removed.remove(path)
            merged[path] = original[path]

    @staticmethod
    def _delta(
        plan: MergePlan,
        merged: dict[str, TreeEntry],
        original: dict[str, TreeEntry],
    ) -> list[dict[str, Any]]:
        """Entries to send on top of base_tree; deletions carry sha None."""
        delta: list[dict[str, Any]] = []
        written = set()
        for path in sorted(plan.added + plan.modified):
            entry = merged[path]
            if entry.type == "tree":
                continue
            delta.append(entry.to_api())
            written.add(path)
        removed = set(plan.removed)
        for path in sorted(plan.removed):
            ancestors = _ancestors(path)
            # covered by the deletion or replacement of an ancestor
            if any(a in removed or a in written for a in ancestors):
                continue
            # a file turned into a directory is replaced by writing its descendants
            if any(w.startswith(path + "/") for w in written):
                continue
            entry = original[path]
            delta.append(
                {"path": path, "mode": entry.mode, "type": entry.type, "sha": None}
            )
        return delta

    # endregion
    # region Commit

    def commit(
        self,
        repository: Repository,
        located: TreeWithDescriptors,
        remove: list[FileDescriptor],
        staging: StagingArea,
        message: str,
        glob_options: Optional[GlobOptions] = None,
        remove_subtrees: bool = True,
        dry_run: bool = False,
    ) -> CommitOutcome:
        """
        Merge the staging area into the tree of *located* and commit it to its ref.

        Returns:
            CommitOutcome: committed, no_op, dry_run or conflict.

        Raises:
            TruncatedTreeError: The original tree listing is incomplete.
            TransportError: A write failed for reasons other than a moved reference.
        """
        owner, name = repository.owner, repository.name
        ref = located.ref
        log_extra = {"repository": repository.full_name, "ref": str(ref)}
        merge = self.plan(located, remove, staging, glob_options, remove_subtrees)
        plan = merge.plan
        outcome = CommitOutcome(
            status="no_op",
            ref=str(ref),
            base_commit_sha=located.commit_sha,
            plan=plan,
            message=message,
        )

        if plan.is_empty:
            self.__logger.info(
                f"No changes for {repository.full_name} <{ref}>", extra=log_extra
            )
            return outcome

        self.__logger.info(
            f"{repository.full_name} <{ref}>: {plan.summary()}",
            extra={**log_extra, "added": plan.added, "modified": plan.modified, "removed": plan.removed},
        )
        if dry_run:
            self.__logger.info(
                f"Dry run; {plan.blobs_required} blobs and one commit not written",
                extra=log_extra,
            )
            outcome.status = "dry_run"
            return outcome

        delta = self._write_blobs(owner, name, merge)
        tree_sha = self.__client.create_tree(
            owner, name, delta, base_tree=located.tree.sha
        )
        # staged files outside a shallow listing can rebuild the very same tree
        if tree_sha == located.tree.sha:
            self.__logger.info(
                f"No changes for {repository.full_name} <{ref}>; "
                f"tree {tree_sha[:7]} is unchanged",
                extra=log_extra,
            )
            outcome.tree_sha = tree_sha
            return outcome
        request = CommitRequest(
            base_commit_sha=located.commit_sha, tree_sha=tree_sha, message=message
        )
        commit_sha = self.__client.create_commit(
            owner, name, request.message, request.tree_sha, request.parents
        )
        outcome.tree_sha = tree_sha
        outcome.commit_sha = commit_sha

        current = self.__client.get_reference(owner, name, ref)
        if current != located.commit_sha:
            self.__logger.warning(
                f"{ref} of {repository.full_name} moved from "
                f"{located.commit_sha[:7]} to {current[:7]}; not updating",
                extra=log_extra,
            )
            outcome.status = "conflict"
            outcome.detail = str(
                ReferenceConflictError(str(ref), located.commit_sha, current)
            )
            return outcome

        try:
            self.__client.update_reference(owner, name, ref, commit_sha, force=False)
        except ReferenceConflictError as e:
            self.__logger.warning(
                f"Update of {ref} in {repository.full_name} rejected: {e}",
                extra=log_extra,
            )
            outcome.status = "conflict"
            outcome.detail = str(e)
            return outcome

        self.__logger.info(
            f"Committed {commit_sha[:7]} to {repository.full_name} <{ref}>",
            extra={**log_extra, "commit_sha": commit_sha},
        )
        outcome.status = "committed"
        return outcome

    def _write_blobs(self, owner: str, name: str, merge: MergeResult) -> list[dict[str, Any]]:
        """Create the pending blobs and return the delta with the stored hashes."""
        replacements: dict[str, str] = {}
        for blob in merge.pending_blobs:
            stored = self.__client.create_blob(owner, name, blob.content)
            merge.plan.blobs_created += 1
            if stored != blob.sha:
                self.__logger.warning(
                    f"Blob for {blob.path} stored as {stored}, expected {blob.sha}"
                )
                replacements[blob.sha] = stored
        if not replacements:
            return merge.plan.tree_delta
        return [
            {**item, "sha": replacements.get(item["sha"], item["sha"])}
            if item["sha"] is not None
            else item
            for item in merge.plan.tree_delta
        ]

    # endregion


# endregion
