# region Docstring
"""
gitops_services.operations.rename_file
Renames one file within its directory, keeping its content and mode.
Overview:
- Reads the tree recursively so the file may live anywhere in the repository.
- The located descriptor goes into the removal set and the same bytes are staged under
    the new name, so the new tree reuses the existing blob.
- A repository is skipped when the file already has the new name or a file with the new
    name already exists next to it.
Contents:
- RenameFileOperation: The rename-file operation.
"""

# endregion
# region Imports
from gitops_core.models import GlobOptions, StagedFile, StepResult, normalize_path

from .base import Operation, OperationContext

# endregion
# region Rename Operation


class RenameFileOperation(Operation):
    name = "rename-file"
    recursive = True
    glob_options = GlobOptions()

    def __init__(self, target_file_path: str, new_file_name: str) -> None:
        new_file_name = new_file_name.strip()
        if not new_file_name or "/" in new_file_name or "\\" in new_file_name:
            raise ValueError("The new file name must be a plain file name")
        self.target_file_path = normalize_path(target_file_path)
        self.new_file_name = new_file_name
        self.target_paths = (self.target_file_path,)

    def new_path(self, located_path: str) -> str:
        parent = located_path.rsplit("/", 1)[0] if "/" in located_path else ""
        return f"{parent}/{self.new_file_name}" if parent else self.new_file_name

    def apply(self, ctx: OperationContext) -> StepResult:
        descriptor = ctx.descriptor(self.target_file_path)
        new_path = self.new_path(descriptor.path)
        if new_path == descriptor.path:
            return StepResult.skip(f"{descriptor.path} already has that name")
        if ctx.located.tree.get(new_path) is not None:
            return StepResult.skip(f"{new_path} already exists")

        content = ctx.staging.read_bytes(descriptor.path)
        ctx.staging.remove(descriptor.path)
        ctx.staging.stage(
            StagedFile(
                relative_path=new_path,
                content=content,
                source=descriptor,
                mode=descriptor.mode,
            )
        )
        ctx.logger.info(f"Renamed {descriptor.path} to {new_path}")
        return StepResult.ok(new_path)

    def commit_message(self, ctx: OperationContext) -> str:
        return f"Rename {self.target_file_path} to {self.new_file_name}"

    def describe(self) -> str:
        return f"Renaming {self.target_file_path} to {self.new_file_name}"


# endregion
