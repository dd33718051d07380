# region Docstring
"""
gitops_services.operations.npm
Dependency changes through npm, run against a partial checkout.
Overview:
- Only package.json and package-lock.json are staged; npm runs inside the staging area
    and rewrites both. Just the top-level files are folded back into the tree
    (GlobOptions(depth=1, only_files=True)), never the installed node_modules.
- A husky "prepare" script would fail in the partial checkout, so it is taken out of
    package.json before npm runs and put back afterwards.
- Before the first repository, the operations that install a version ask the registry
    (npm view) whether the requested version or dist-tag exists.
- Update, reinstall and uninstall may be limited by a VersionConstraint: the version
    currently declared in package.json ("^2.1.0", "~1.4", "1.x") is coerced to its base
    version and compared against the constraint, which is a version or a dist-tag of
    the package resolved once before the run.
Contents:
- Exceptions:
    - NpmCommandError: npm could not be started or exited non-zero.
- Classes:
    - PackageType: Dependency section selector (d, s, o).
    - UpdateCondition: Comparison applied by a VersionConstraint (lt, lte, gt, gte, eq).
    - VersionConstraint: Condition on the currently declared version of a package.
    - NpmRunner: subprocess wrapper for npm.
    - InstallPackageOperation, UpdatePackageVersionOperation, ReinstallPackageOperation,
        UninstallPackageOperation.
"""

# endregion
# region Imports
import json
import re
import subprocess
from enum import Enum
from logging import Logger as T_Logger
from pathlib import Path
from typing import Any, Optional

import semver

from gitops_core.errors import ContentDecodeError, GitOpsError
from gitops_core.models import GlobOptions, StepResult

from .base import Operation, OperationContext
from .package_json import (
    LOCKFILE_FILE_NAME,
    PACKAGE_JSON_FILE_NAME,
    dump_package_json,
    parse_package_json,
)

# endregion
# region Exceptions


class NpmCommandError(GitOpsError):
    """Custom exception for failed npm invocations."""

    pass


# endregion
# region Versions

HUSKY_KEYWORD = "husky"

_LEADING_VERSION = re.compile(r"\d+(?:\.\d+){0,2}")


class PackageType(str, Enum):
    DEV = "d"
    PROD = "s"
    OPTIONAL = "o"

    @property
    def flag(self) -> str:
        return {"d": "--save-dev", "s": "--save", "o": "--save-optional"}[self.value]

    @property
    def section(self) -> str:
        return {
            "d": "devDependencies",
            "s": "dependencies",
            "o": "optionalDependencies",
        }[self.value]


def find_dependency(
    package_json: dict[str, Any], package_name: str
) -> Optional[tuple[PackageType, str]]:
    """Return the section and declared version of *package_name*, searching every section."""
    for package_type in (PackageType.PROD, PackageType.DEV, PackageType.OPTIONAL):
        dependencies = package_json.get(package_type.section) or {}
        if isinstance(dependencies, dict) and package_name in dependencies:
            return package_type, str(dependencies[package_name])
    return None


def coerce_version(value: str) -> Optional[semver.Version]:
    """
    Parse a version or a package.json range to its base version.

    "1.2.3-beta.1" stays as is; "^2.1.0", "~1.4" and "1.x" become 2.1.0, 1.4.0 and 1.0.0.
    Returns None when *value* holds no version number (e.g. "latest").
    """
    candidate = value.strip().lstrip("^~=v").strip()
    if semver.Version.is_valid(candidate):
        return semver.Version.parse(candidate)
    match = _LEADING_VERSION.search(candidate)
    if match is None:
        return None
    return semver.Version.parse(match.group(0), optional_minor_and_patch=True)


class UpdateCondition(str, Enum):
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    EQ = "eq"

    def holds(self, current: semver.Version, constraint: semver.Version) -> bool:
        order = current.compare(constraint)
        return {
            "lt": order < 0,
            "lte": order <= 0,
            "gt": order > 0,
            "gte": order >= 0,
            "eq": order == 0,
        }[self.value]


class VersionConstraint:
    """
    Limits an operation to repositories whose declared version of the package satisfies
    *condition* against *constraint*.

    Arguments:
        constraint (str): A version ("2.0.0", "2.x") or a dist-tag ("latest").
        condition (UpdateCondition): How the declared version compares to the constraint.
    """

    def __init__(self, constraint: str, condition: UpdateCondition) -> None:
        self.constraint = constraint.strip()
        self.condition = UpdateCondition(condition)
        self.resolved: Optional[semver.Version] = None

    @classmethod
    def from_options(
        cls, constraint: Optional[str], condition: Optional[UpdateCondition]
    ) -> Optional["VersionConstraint"]:
        """Build a constraint from the two command line options, which go together."""
        if constraint is None and condition is None:
            return None
        if not constraint or condition is None:
            raise ValueError(
                "An update constraint and an update condition must be given together"
            )
        return cls(constraint, condition)

    def resolve(self, runner: "NpmRunner", package_name: str) -> semver.Version:
        """Turn the constraint into a version, looking dist-tags up in the registry."""
        version = coerce_version(self.constraint)
        if version is None:
            tagged = runner.dist_tags(package_name).get(self.constraint)
            version = coerce_version(tagged) if tagged else None
        if version is None:
            raise ValueError(
                f"{self.constraint} is neither a version nor a dist-tag of {package_name}"
            )
        self.resolved = version
        return version

    def check(self, declared: str) -> Optional[str]:
        """Return a skip reason when *declared* does not satisfy the constraint."""
        if self.resolved is None:
            raise RuntimeError("The constraint must be resolved before it is checked")
        current = coerce_version(declared)
        if current is None:
            return f"The declared version {declared} is not a valid version"
        if not self.condition.holds(current, self.resolved):
            return (
                f"The update constraint was not fulfilled: {declared} is not "
                f"{self.condition.value} {self.constraint}"
            )
        return None

    def __str__(self) -> str:
        return f"{self.condition.value} {self.constraint}"


# endregion
# region npm


class NpmRunner:
    """
    Runs npm commands.

    Arguments:
        logger (T_Logger): Parent logger.
        executable (str): npm executable name or path.
        timeout (Optional[float]): Seconds before an npm command is abandoned.
    """

    __logger: T_Logger

    def __init__(
        self, logger: T_Logger, executable: str = "npm", timeout: Optional[float] = 600
    ) -> None:
        self.__logger = logger.getChild(self.__class__.__name__)
        self.executable = executable
        self.timeout = timeout

    def run(self, args: list[str], cwd: Optional[Path] = None) -> str:
        """
        Run ``npm *args`` and return its standard output.

        Raises:
            NpmCommandError: npm is missing, timed out or exited non-zero.
        """
        command = [self.executable, *args]
        self.__logger.info(f"Running {' '.join(command)}", extra={"cwd": str(cwd)})
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise NpmCommandError(f"The command {' '.join(command)} failed: {e}") from e
        if completed.stdout:
            self.__logger.debug(completed.stdout)
        if completed.returncode != 0:
            self.__logger.error(
                f"The command {' '.join(command)} failed to execute",
                extra={"stderr": completed.stderr},
            )
            raise NpmCommandError(
                f"The command {' '.join(command)} exited with {completed.returncode}: "
                f"{(completed.stderr or '').strip()}"
            )
        return completed.stdout

    def view(self, package_name: str) -> dict[str, Any]:
        """Return the registry document of the package (``npm view --json``)."""
        output = self.run(["view", package_name, "--json"])
        try:
            view = json.loads(output)
        except json.JSONDecodeError as e:
            raise NpmCommandError(
                f"Failed to parse results of npm view {package_name}"
            ) from e
        if not isinstance(view, dict) or "versions" not in view:
            raise NpmCommandError(f"Failed to parse results of npm view {package_name}")
        return view

    def dist_tags(self, package_name: str) -> dict[str, str]:
        return self.view(package_name).get("dist-tags") or {}

    def version_exists(self, package_name: str, version: str) -> bool:
        """True when *version* is a published version or a dist-tag of the package."""
        view = self.view(package_name)
        if semver.Version.is_valid(version):
            return version in (view.get("versions") or [])
        return version in (view.get("dist-tags") or {})


# endregion
# region Operations


class _NpmOperation(Operation):
    target_paths = (PACKAGE_JSON_FILE_NAME, LOCKFILE_FILE_NAME)
    glob_options = GlobOptions(depth=1, only_files=True)
    # the tree is read shallowly; nothing below a removed entry is in it
    remove_subtrees = False

    def __init__(
        self,
        package_name: str,
        package_type: PackageType = PackageType.PROD,
        runner: Optional[NpmRunner] = None,
        constraint: Optional[VersionConstraint] = None,
    ) -> None:
        self.package_name = package_name
        self.package_type = PackageType(package_type)
        self.constraint = constraint
        self._runner = runner

    def runner(self, logger: T_Logger) -> NpmRunner:
        if self._runner is None:
            self._runner = NpmRunner(logger)
        return self._runner

    def prepare(self, logger: T_Logger) -> StepResult:
        if self.constraint is None:
            return StepResult.ok()
        try:
            resolved = self.constraint.resolve(self.runner(logger), self.package_name)
        except (NpmCommandError, ValueError) as e:
            return StepResult.fail(e)
        logger.info(f"Limiting the run to {self.package_name} {self.constraint} ({resolved})")
        return StepResult.ok()

    def npm_commands(self, package_json: dict[str, Any]) -> list[list[str]]:
        """npm argument lists run in order inside the staging area."""
        raise NotImplementedError(f"{self.__class__.__name__} must implement npm_commands()")

    def _load(self, ctx: OperationContext) -> dict[str, Any]:
        return parse_package_json(ctx.staging.read_text(PACKAGE_JSON_FILE_NAME))

    def _save(self, ctx: OperationContext, data: dict[str, Any]) -> None:
        ctx.staging.write_text(PACKAGE_JSON_FILE_NAME, dump_package_json(data))

    def check(self, package_json: dict[str, Any]) -> Optional[str]:
        """Return a skip reason when the repository needs no change."""
        return None

    def declared_version(self, package_json: dict[str, Any]) -> Optional[str]:
        """The version the constraint is checked against."""
        dependencies = package_json.get(self.package_type.section) or {}
        declared = dependencies.get(self.package_name)
        return None if declared is None else str(declared)

    def apply(self, ctx: OperationContext) -> StepResult:
        try:
            package_json = self._load(ctx)
        except ContentDecodeError as e:
            return StepResult.fail(e)
        reason = self.check(package_json)
        if reason is None and self.constraint is not None:
            declared = self.declared_version(package_json)
            if declared is not None:
                reason = self.constraint.check(declared)
        if reason:
            return StepResult.skip(reason)

        commands = self.npm_commands(package_json)
        prepare_script = remove_prepare_script(package_json, HUSKY_KEYWORD)
        if prepare_script is not None:
            ctx.logger.info(
                f'Excluding prepare script that was found to contain "{HUSKY_KEYWORD}"'
            )
            self._save(ctx, package_json)

        try:
            for args in commands:
                self.runner(ctx.logger).run(args, cwd=ctx.staging.path)
        except NpmCommandError as e:
            return StepResult.fail(e)

        if prepare_script is not None:
            ctx.logger.info("Restoring prepare script that was removed previously")
            updated = self._load(ctx)
            updated["scripts"] = {**(updated.get("scripts") or {}), "prepare": prepare_script}
            self._save(ctx, updated)
        return StepResult.ok()


def remove_prepare_script(package_json: dict[str, Any], keyword: str) -> Optional[str]:
    """Remove a prepare script containing *keyword* in place and return it."""
    scripts = package_json.get("scripts")
    if not isinstance(scripts, dict):
        return None
    prepare = scripts.get("prepare")
    if not isinstance(prepare, str) or keyword not in prepare:
        return None
    package_json["scripts"] = {k: v for k, v in scripts.items() if k != "prepare"}
    return prepare


class InstallPackageOperation(_NpmOperation):
    name = "install-package"

    def __init__(
        self,
        package_name: str,
        package_version: str,
        package_type: PackageType = PackageType.PROD,
        runner: Optional[NpmRunner] = None,
        constraint: Optional[VersionConstraint] = None,
    ) -> None:
        super().__init__(package_name, package_type, runner, constraint)
        self.package_version = package_version

    def prepare(self, logger: T_Logger) -> StepResult:
        try:
            exists = self.runner(logger).version_exists(
                self.package_name, self.package_version
            )
        except NpmCommandError as e:
            return StepResult.fail(e)
        if not exists:
            return StepResult.skip(
                f"The specified version {self.package_version} does not exist for "
                f"the package {self.package_name}"
            )
        return super().prepare(logger)

    @property
    def install_arguments(self) -> list[str]:
        return [
            "install",
            f"{self.package_name}@{self.package_version}",
            self.package_type.flag,
        ]

    def npm_commands(self, package_json: dict[str, Any]) -> list[list[str]]:
        return [self.install_arguments]

    def commit_message(self, ctx: OperationContext) -> str:
        return (
            f"Install {self.package_name} with version {self.package_version} "
            f"in {self.package_type.section}"
        )

    def describe(self) -> str:
        return f"Installing {self.package_name} with version {self.package_version}"


class UpdatePackageVersionOperation(InstallPackageOperation):
    """Moves a package already declared in the chosen section to another version."""

    name = "update-package-version"

    def check(self, package_json: dict[str, Any]) -> Optional[str]:
        if self.declared_version(package_json) is None:
            return f"{self.package_name} is not in {self.package_type.section}"
        return None

    def npm_commands(self, package_json: dict[str, Any]) -> list[list[str]]:
        return [["ci"], self.install_arguments]

    def commit_message(self, ctx: OperationContext) -> str:
        return f"Update {self.package_name} to version {self.package_version}"

    def describe(self) -> str:
        return f"Updating {self.package_name} to version {self.package_version}"


class ReinstallPackageOperation(InstallPackageOperation):
    """
    Moves a package declared in another dependency section into the chosen one, at the
    requested version.
    """

    name = "reinstall-package"

    def check(self, package_json: dict[str, Any]) -> Optional[str]:
        found = find_dependency(package_json, self.package_name)
        if found is None:
            return f"{self.package_name} is not a dependency"
        if found[0] is self.package_type:
            return f"{self.package_name} is already installed in {self.package_type.section}"
        return None

    def declared_version(self, package_json: dict[str, Any]) -> Optional[str]:
        found = find_dependency(package_json, self.package_name)
        return None if found is None else found[1]

    def npm_commands(self, package_json: dict[str, Any]) -> list[list[str]]:
        existing, _ = find_dependency(package_json, self.package_name)
        return [
            ["ci"],
            ["uninstall", self.package_name, existing.flag],
            self.install_arguments,
        ]

    def commit_message(self, ctx: OperationContext) -> str:
        return (
            f"Reinstall {self.package_name} with version {self.package_version} "
            f"in {self.package_type.section}"
        )

    def describe(self) -> str:
        return f"Reinstalling {self.package_name} to version {self.package_version}"


class UninstallPackageOperation(_NpmOperation):
    name = "uninstall-package"

    def check(self, package_json: dict[str, Any]) -> Optional[str]:
        if self.declared_version(package_json) is None:
            return f"{self.package_name} is not in {self.package_type.section}"
        return None

    def npm_commands(self, package_json: dict[str, Any]) -> list[list[str]]:
        return [["uninstall", self.package_name, self.package_type.flag]]

    def commit_message(self, ctx: OperationContext) -> str:
        return f"Uninstall {self.package_name} from {self.package_type.section}"

    def describe(self) -> str:
        return f"Uninstalling {self.package_name}"


# endregion
