"""
Mutation operations applied by the operation driver.
"""

from .base import Operation, OperationContext  # noqa: F401
from .find_and_replace import FindAndReplaceOperation  # noqa: F401
from .npm import (  # noqa: F401
    InstallPackageOperation,
    NpmCommandError,
    NpmRunner,
    PackageType,
    ReinstallPackageOperation,
    UninstallPackageOperation,
    UpdateCondition,
    UpdatePackageVersionOperation,
    VersionConstraint,
)
from .package_json import (  # noqa: F401
    AddPackageJsonScriptOperation,
    RemovePackageJsonScriptOperation,
)
from .rename_file import RenameFileOperation  # noqa: F401

__all__ = [
    "AddPackageJsonScriptOperation",
    "FindAndReplaceOperation",
    "InstallPackageOperation",
    "NpmCommandError",
    "NpmRunner",
    "Operation",
    "OperationContext",
    "PackageType",
    "ReinstallPackageOperation",
    "RemovePackageJsonScriptOperation",
    "RenameFileOperation",
    "UninstallPackageOperation",
    "UpdateCondition",
    "UpdatePackageVersionOperation",
    "VersionConstraint",
]
