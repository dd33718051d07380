# region Docstring
"""
gitops_services.staging
Scoped local working directories for one repository at a time.
Overview:
- StagingArea is a context manager. Entering it creates a fresh directory
    <root>/<owner>/<repo>-<random>; leaving it deletes the directory whatever happened
    inside the block.
- Files read from the remote tree are materialized as StagedFile objects; mutation steps
    then read and write files inside the area by relative path.
- walk() lists the files to fold back into the tree, honouring GlobOptions.
Contents:
- LocalFile: A file found by walk() with its bytes and file-type flags.
- StagingArea: The context manager.
Design Notes:
- Relative paths that resolve outside the staging root raise StagingError.
- Explicit modes given with StagedFile.mode are remembered so the tree builder can
    apply them.
"""

# endregion
# region Imports
import fnmatch
import os
import shutil
import stat
import tempfile
from logging import Logger as T_Logger
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from gitops_core.errors import StagingError
from gitops_core.models import GlobOptions, Repository, StagedFile, normalize_path

# endregion
# region Models


class LocalFile(BaseModel):
    """A file inside a staging area."""

    relative_path: str = Field(..., description="POSIX path relative to the root")
    content: bytes = Field(..., description="File bytes, or the link target of a symlink")
    is_executable: bool = False
    is_symlink: bool = False


# endregion
# region Staging Area


class StagingArea:
    """
    Per-repository staging directory.

    Arguments:
        root (Path): Base directory shared by all staging areas (settings temp_dir).
        repository (Repository): Repository the area belongs to.
        logger (T_Logger): Parent logger.
    """

    __root: Path
    __repository: Repository
    __logger: T_Logger
    __path: Optional[Path]
    __modes: dict[str, str]

    def __init__(self, root: Path, repository: Repository, logger: T_Logger) -> None:
        self.__root = Path(root)
        self.__repository = repository
        self.__logger = logger.getChild(self.__class__.__name__)
        self.__path = None
        self.__modes = {}

    def __enter__(self) -> "StagingArea":
        owner_dir = self.__root / self.__repository.owner
        owner_dir.mkdir(parents=True, exist_ok=True)
        self.__path = Path(
            tempfile.mkdtemp(prefix=f"{self.__repository.name}-", dir=owner_dir)
        )
        self.__logger.debug(
            f"Created staging area {self.__path}",
            extra={"repository": self.__repository.full_name},
        )
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.__path is None:
            return
        shutil.rmtree(self.__path, ignore_errors=True)
        self.__logger.debug(
            f"Removed staging area {self.__path}",
            extra={"repository": self.__repository.full_name},
        )
        self.__path = None
        self.__modes = {}

    # region Paths

    @property
    def path(self) -> Path:
        if self.__path is None:
            raise StagingError("The staging area is not open")
        return self.__path

    @property
    def repository(self) -> Repository:
        return self.__repository

    @property
    def modes(self) -> dict[str, str]:
        """Explicit modes by relative path."""
        return dict(self.__modes)

    def resolve(self, relative_path: str) -> Path:
        """
        Return the absolute path of *relative_path* inside the area.

        Raises:
            StagingError: The path is empty or escapes the staging root.
        """
        relative = normalize_path(relative_path)
        if not relative:
            raise StagingError("An empty path cannot be staged")
        root = self.path.resolve()
        target = (root / relative).resolve()
        if target != root and root not in target.parents:
            raise StagingError(f"{relative_path} escapes the staging area")
        return root / relative

    # endregion
    # region File Access

    def stage(self, staged: StagedFile) -> Path:
        """Materialize *staged* and remember its explicit mode."""
        target = self.write_bytes(staged.relative_path, staged.content)
        if staged.mode:
            self.__modes[staged.relative_path] = staged.mode
        return target

    def set_mode(self, relative_path: str, mode: str) -> None:
        self.__modes[normalize_path(relative_path)] = mode

    def write_bytes(self, relative_path: str, data: bytes) -> Path:
        target = self.resolve(relative_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    def write_text(self, relative_path: str, text: str) -> Path:
        return self.write_bytes(relative_path, text.encode("utf-8"))

    def read_bytes(self, relative_path: str) -> bytes:
        target = self.resolve(relative_path)
        if not target.is_file():
            raise StagingError(f"{relative_path} is not staged")
        return target.read_bytes()

    def read_text(self, relative_path: str) -> str:
        return self.read_bytes(relative_path).decode("utf-8")

    def exists(self, relative_path: str) -> bool:
        return self.resolve(relative_path).exists()

    def remove(self, relative_path: str) -> None:
        target = self.resolve(relative_path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        self.__modes.pop(normalize_path(relative_path), None)

    # endregion
    # region Walk

    def walk(self, options: Optional[GlobOptions] = None) -> list[LocalFile]:
        """
        List the files of the area selected by *options*, sorted by path.

        Depth counts path components: depth 1 is the top-level files only. With
        only_files, symlinks are left out; otherwise a symlink is listed with its link
        target as content.
        """
        options = options or GlobOptions()
        root = self.path
        found: list[LocalFile] = []
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            current = Path(dirpath)
            rel_dir = current.relative_to(root).as_posix()
            level = 0 if rel_dir == "." else len(rel_dir.split("/"))

            kept_dirs = []
            for name in sorted(dirnames):
                rel = name if level == 0 else f"{rel_dir}/{name}"
                full = current / name
                if full.is_symlink():
                    # os.walk lists symlinked directories as directories
                    if not options.only_files and self._selected(rel, level + 1, options):
                        found.append(self._local_file(full, rel))
                    continue
                if options.depth is not None and level + 1 >= options.depth:
                    continue
                if self._ignored_dir(rel, options):
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in sorted(filenames):
                rel = name if level == 0 else f"{rel_dir}/{name}"
                full = current / name
                if not self._selected(rel, level + 1, options):
                    continue
                if full.is_symlink():
                    if options.only_files:
                        continue
                elif not stat.S_ISREG(full.lstat().st_mode):
                    continue
                found.append(self._local_file(full, rel))
        return sorted(found, key=lambda f: f.relative_path)

    @staticmethod
    def _selected(relative_path: str, depth: int, options: GlobOptions) -> bool:
        if options.depth is not None and depth > options.depth:
            return False
        return not any(fnmatch.fnmatch(relative_path, p) for p in options.ignore)

    @staticmethod
    def _ignored_dir(relative_path: str, options: GlobOptions) -> bool:
        for pattern in options.ignore:
            if fnmatch.fnmatch(relative_path, pattern):
                return True
            if pattern.endswith("/**") and fnmatch.fnmatch(relative_path, pattern[:-3]):
                return True
        return False

    @staticmethod
    def _local_file(full: Path, relative_path: str) -> LocalFile:
        if full.is_symlink():
            return LocalFile(
                relative_path=relative_path,
                content=os.readlink(full).encode("utf-8"),
                is_symlink=True,
            )
        return LocalFile(
            relative_path=relative_path,
            content=full.read_bytes(),
            is_executable=bool(full.stat().st_mode & stat.S_IXUSR),
        )

    # endregion


# endregion
