# region Docstring
"""
gitops_services.operations.package_json
Helpers for reading and writing package.json, and the script editing operations.
Overview:
- package.json is written back with 4-space indentation and a trailing newline, keeping
    key order, so unrelated lines do not change.
- A document without a "name" key is not treated as a package.json.
Contents:
- Functions: parse_package_json, dump_package_json.
- Operations:
    - AddPackageJsonScriptOperation: Adds (or with override, replaces) a script.
    - RemovePackageJsonScriptOperation: Removes a script.
"""

# endregion
# region Imports
import json
from typing import Any

from gitops_core.errors import ContentDecodeError
from gitops_core.models import GlobOptions, StepResult

from .base import Operation, OperationContext

# endregion
# region Helpers

PACKAGE_JSON_FILE_NAME = "package.json"
LOCKFILE_FILE_NAME = "package-lock.json"


def parse_package_json(text: str) -> dict[str, Any]:
    """
    Parse package.json content.

    Raises:
        ContentDecodeError: Invalid JSON, or not a package.json document.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ContentDecodeError(f"Failed to parse {PACKAGE_JSON_FILE_NAME}: {e}") from e
    if not isinstance(data, dict) or "name" not in data:
        raise ContentDecodeError(
            f"Object is not a valid {PACKAGE_JSON_FILE_NAME} file"
        )
    return data


def dump_package_json(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=4, ensure_ascii=False) + "\n"


# endregion
# region Script Operations


class _PackageJsonScriptOperation(Operation):
    target_paths = (PACKAGE_JSON_FILE_NAME,)
    glob_options = GlobOptions(depth=1, only_files=True)
    remove_subtrees = False

    def _load(self, ctx: OperationContext) -> dict[str, Any]:
        return parse_package_json(ctx.staging.read_text(PACKAGE_JSON_FILE_NAME))

    def _save(self, ctx: OperationContext, data: dict[str, Any]) -> None:
        ctx.staging.write_text(PACKAGE_JSON_FILE_NAME, dump_package_json(data))


class AddPackageJsonScriptOperation(_PackageJsonScriptOperation):
    name = "add-package-json-script"

    def __init__(self, key: str, value: str, override_existing: bool = False) -> None:
        self.key = key
        self.value = value
        self.override_existing = override_existing

    def apply(self, ctx: OperationContext) -> StepResult:
        try:
            data = self._load(ctx)
        except ContentDecodeError as e:
            return StepResult.fail(e)
        scripts = data.get("scripts") or {}
        if self.key in scripts and not self.override_existing:
            return StepResult.skip(
                f'"{self.key}" already exists in "scripts" and override is disabled'
            )
        if scripts.get(self.key) == self.value:
            return StepResult.skip(f'"{self.key}" is already set to the same value')
        data["scripts"] = {**scripts, self.key: self.value}
        self._save(ctx, data)
        return StepResult.ok()

    def commit_message(self, ctx: OperationContext) -> str:
        return f'Added "{self.key}" to "scripts" in {PACKAGE_JSON_FILE_NAME}'

    def describe(self) -> str:
        return f'Adding "{self.key}" to "scripts" in {PACKAGE_JSON_FILE_NAME}'


class RemovePackageJsonScriptOperation(_PackageJsonScriptOperation):
    name = "remove-package-json-script"

    def __init__(self, key: str) -> None:
        self.key = key

    def apply(self, ctx: OperationContext) -> StepResult:
        try:
            data = self._load(ctx)
        except ContentDecodeError as e:
            return StepResult.fail(e)
        scripts = data.get("scripts") or {}
        if self.key not in scripts:
            return StepResult.skip(f'"{self.key}" does not exist in "scripts"')
        data["scripts"] = {k: v for k, v in scripts.items() if k != self.key}
        self._save(ctx, data)
        return StepResult.ok()

    def commit_message(self, ctx: OperationContext) -> str:
        return f'Removed "{self.key}" from "scripts" in {PACKAGE_JSON_FILE_NAME}'

    def describe(self) -> str:
        return f'Removing "{self.key}" from "scripts" in {PACKAGE_JSON_FILE_NAME}'


# endregion
