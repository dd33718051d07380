# region Docstring
"""
gitops_core.models.github
Pydantic models for the remote repository store (GitHub git database API).
Overview:
- Mirrors the subset of the GitHub git data model the fleet tool reads and writes:
    repositories, references, trees and their entries.
- Adds the local-side models the commit engine works with: file descriptors matched
    against requested paths, staged files and commit requests.
Contents:
- Constants:
    - FileMode: Git tree entry modes (regular, executable, symlink, tree, submodule).
- Models:
    - Repository:
        Owner, name, default branch and full name of a repository, plus the fork/archived/
        disabled flags used to filter listings. Built from the REST payload by from_api().
    - Reference:
        A validated "heads/<branch>" or "tags/<tag>" string. parse() accepts an optional
        "refs/" prefix; for_repository() yields the default branch reference.
    - TreeEntry:
        One entry of a tree (path, mode, type, sha, size). Immutable.
    - Tree:
        Root sha, ordered entries and the truncated flag. Remembers whether it was
        fetched recursively. Lookup helpers by path.
    - FileDescriptor:
        A TreeEntry matched against one of the caller's requested paths.
    - TreeWithDescriptors:
        A tree, the descriptors found in it, and the commit and reference it was read at.
    - StagedFile:
        Bytes for a relative path in the staging area, with an optional source descriptor
        and explicit mode override.
    - CommitRequest:
        Base commit, new tree and message; the parent is always the base commit.
    - GlobOptions:
        Depth limit, files-only flag and ignore patterns used to select staged files.
Design notes:
- Models that stand for remote objects are frozen: entries are content addressed, so
    a changed entry is a new entry.
- Path strings are stored POSIX style without leading "./" or "/".
"""

# endregion
# region Imports
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gitops_core.errors import InvalidReferenceError

# endregion
# region Constants


class FileMode:
    """Git tree entry modes."""

    FILE: Literal["100644"] = "100644"
    EXECUTABLE: Literal["100755"] = "100755"
    SYMLINK: Literal["120000"] = "120000"
    TREE: Literal["040000"] = "040000"
    SUBMODULE: Literal["160000"] = "160000"


REFERENCE_PATTERN = re.compile(r"^(heads|tags)/\S+$")

EntryType = Literal["blob", "tree", "commit"]


def normalize_path(path: str) -> str:
    """Return *path* in POSIX form without leading './' or '/' and trailing '/'."""
    value = path.replace("\\", "/").strip()
    while value.startswith("./"):
        value = value[2:]
    return value.strip("/")


# endregion
# region Repository & Reference


class Repository(BaseModel):
    """
    A repository returned by an organization listing.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Organization or user owning the repository")
    name: str = Field(..., description="Repository name")
    default_branch: str = Field(
        default="main", description="Name of the default branch"
    )
    full_name: str = Field(default="", description="'<owner>/<name>'")
    fork: bool = Field(default=False, description="Repository is a fork")
    archived: bool = Field(default=False, description="Repository is archived")
    disabled: bool = Field(default=False, description="Repository is disabled")

    @model_validator(mode="before")
    def fill_full_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("full_name"):
            data = {**data, "full_name": f"{data.get('owner')}/{data.get('name')}"}
        return data

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Repository":
        """Build a Repository from a GitHub REST repository payload."""
        owner = data.get("owner") or {}
        return cls(
            owner=owner.get("login") or data["full_name"].split("/")[0],
            name=data["name"],
            default_branch=data.get("default_branch") or "main",
            full_name=data.get("full_name") or "",
            fork=bool(data.get("fork", False)),
            archived=bool(data.get("archived", False)),
            disabled=bool(data.get("disabled", False)),
        )

    def __str__(self) -> str:
        return self.full_name


class Reference(BaseModel):
    """
    A branch or tag reference in the form "heads/<branch>" or "tags/<tag>".
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="'heads/<branch>' or 'tags/<tag>'")

    @field_validator("path", mode="before")
    def validate_path(cls, v: Any) -> str:
        value = str(v).strip()
        if value.startswith("refs/"):
            value = value[len("refs/"):]
        if not REFERENCE_PATTERN.match(value):
            raise InvalidReferenceError(
                f"Reference '{v}' must be in the form heads/<branch> or tags/<tag>"
            )
        return value

    @classmethod
    def parse(cls, value: str) -> "Reference":
        """
        Parse a reference string.

        Raises:
            InvalidReferenceError: If the value is not heads/<x> or tags/<x>.
        """
        if isinstance(value, Reference):
            return value
        return cls(path=value)

    @classmethod
    def for_repository(
        cls, repository: Repository, ref: Optional[str] = None
    ) -> "Reference":
        """Return *ref* parsed, or the default branch of *repository* when unset."""
        if ref:
            return cls.parse(ref)
        return cls(path=f"heads/{repository.default_branch}")

    @property
    def kind(self) -> Literal["heads", "tags"]:
        return self.path.split("/", 1)[0]  # type: ignore[return-value]

    @property
    def name(self) -> str:
        return self.path.split("/", 1)[1]

    @property
    def is_branch(self) -> bool:
        return self.kind == "heads"

    def __str__(self) -> str:
        return self.path


# endregion
# region Trees


class TreeEntry(BaseModel):
    """
    One entry of a git tree.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path relative to the tree root")
    mode: str = Field(default=FileMode.FILE, description="Git file mode")
    type: EntryType = Field(default="blob", description="blob, tree or commit")
    sha: str = Field(..., description="Content hash of the object")
    size: Optional[int] = Field(default=None, description="Blob size in bytes")

    @field_validator("path", mode="before")
    def validate_path(cls, v: Any) -> str:
        return normalize_path(str(v))

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""

    def is_under(self, directory: str) -> bool:
        """True when this entry is nested below *directory*."""
        return bool(directory) and self.path.startswith(directory.rstrip("/") + "/")

    def to_api(self) -> dict[str, Any]:
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


class Tree(BaseModel):
    """
    A git tree as returned by the trees API.
    """

    sha: str = Field(..., description="Hash of the root tree")
    entries: list[TreeEntry] = Field(default_factory=list)
    truncated: bool = Field(
        default=False, description="The API cut the recursive listing short"
    )
    recursive: bool = Field(
        default=False, description="Entries were fetched recursively"
    )

    @classmethod
    def from_api(cls, data: dict[str, Any], recursive: bool = False) -> "Tree":
        return cls(
            sha=data["sha"],
            entries=[TreeEntry(**entry) for entry in data.get("tree", [])],
            truncated=bool(data.get("truncated", False)),
            recursive=recursive,
        )

    def get(self, path: str) -> Optional[TreeEntry]:
        """Return the entry at *path* or None."""
        wanted = normalize_path(path)
        for entry in self.entries:
            if entry.path == wanted:
                return entry
        return None

    def by_path(self) -> dict[str, TreeEntry]:
        return {entry.path: entry for entry in self.entries}

    @property
    def blobs(self) -> list[TreeEntry]:
        return [entry for entry in self.entries if entry.type == "blob"]


class FileDescriptor(BaseModel):
    """A tree entry matched against a requested path."""

    model_config = ConfigDict(frozen=True)

    requested_path: str = Field(..., description="Path as the caller asked for it")
    entry: TreeEntry = Field(..., description="Matched tree entry")

    @property
    def path(self) -> str:
        return self.entry.path

    @property
    def sha(self) -> str:
        return self.entry.sha

    @property
    def mode(self) -> str:
        return self.entry.mode


class TreeWithDescriptors(BaseModel):
    """
    The result of locating files: the tree they were found in, the descriptors, and the
    commit and reference the tree was read at.
    """

    tree: Tree
    descriptors: list[FileDescriptor] = Field(default_factory=list)
    commit_sha: str = Field(..., description="Commit the reference pointed at when read")
    ref: Reference

    def descriptor(self, requested_path: str) -> Optional[FileDescriptor]:
        wanted = normalize_path(requested_path)
        for descriptor in self.descriptors:
            if normalize_path(descriptor.requested_path) == wanted:
                return descriptor
        return None


# endregion
# region Local Models


class StagedFile(BaseModel):
    """
    A file materialized in the staging area.
    """

    relative_path: str = Field(..., description="Path relative to the staging root")
    content: bytes = Field(default=b"", description="Exact file bytes")
    source: Optional[FileDescriptor] = Field(
        default=None, description="Descriptor the content was read from"
    )
    mode: Optional[str] = Field(
        default=None, description="Explicit mode overriding the inherited one"
    )

    @field_validator("relative_path", mode="before")
    def validate_relative_path(cls, v: Any) -> str:
        return normalize_path(str(v))


class CommitRequest(BaseModel):
    """A commit to create on top of the base commit."""

    base_commit_sha: str
    tree_sha: str
    message: str

    @property
    def parents(self) -> list[str]:
        return [self.base_commit_sha]


class GlobOptions(BaseModel):
    """
    Selects which files of a staging area are folded into the new tree.

    Attributes:
        depth (Optional[int]): Directory levels to include; 1 means top-level files only.
            None is unlimited.
        only_files (bool): Skip symlinks and anything that is not a regular file.
        ignore (tuple[str, ...]): fnmatch patterns of relative paths to leave out.
    """

    model_config = ConfigDict(frozen=True)

    depth: Optional[int] = Field(default=None, ge=1)
    only_files: bool = Field(default=True)
    ignore: tuple[str, ...] = Field(default=())


# endregion

__all__ = [
    "CommitRequest",
    "EntryType",
    "FileDescriptor",
    "FileMode",
    "GlobOptions",
    "Reference",
    "Repository",
    "StagedFile",
    "Tree",
    "TreeEntry",
    "TreeWithDescriptors",
    "normalize_path",
]
