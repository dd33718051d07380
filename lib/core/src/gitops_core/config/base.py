# region Docstring
"""
gitops_core.config.base

Environment detection and application path utilities.

Overview:
- Provides a utility class for detecting the current application environment
    (production, Docker, or development) based on environment variables or
    path-based heuristics.
- Exposes module-level constants for commonly needed configuration values
    such as the application root directory and environment type.

Contents:
- Classes:
    - AppEnv:
        A utility class for environment detection and path resolution. Provides
        class methods to determine the current environment, retrieve the application
        root directory and locate the user's home directory (where token files and
        the profiles file live).

- Module-level Constants:
    - APP_ROOT (Path): The resolved root directory of the application.
    - APP_ENV (Literal["prod", "docker", "dev"]): The detected application environment.

Environment Detection Logic:
- Priority 1: Checks the ENVIRONMENT environment variable for explicit configuration.
- Priority 2: Falls back to path-based detection:
    - Paths starting with "/app" indicate Docker environment.
    - Paths starting with "/srv" indicate production environment.
    - All other paths default to development environment.
- GITOPS_ROOT overrides the application root (defaults to the working directory).
"""
# endregion
# region Imports
import os
from pathlib import Path
from typing import Literal

# endregion
# region AppEnv Class


class AppEnv:
    """
    Application environment detection utility.

    Attributes:
        PROD (Literal["prod"]): Constant representing the production environment.
        DOCKER (Literal["docker"]): Constant representing the Docker environment.
        DEV (Literal["dev"]): Constant representing the development environment.
    """

    PROD: Literal["prod"] = "prod"
    DOCKER: Literal["docker"] = "docker"
    DEV: Literal["dev"] = "dev"

    @classmethod
    def environment(cls) -> Literal["prod", "docker", "dev"]:
        """Determine the current application environment."""
        # Check ENVIRONMENT variable first; validate and return if set
        if os.getenv("ENVIRONMENT") in {cls.PROD, cls.DOCKER, cls.DEV}:
            return os.getenv("ENVIRONMENT")

        # Fallback to path-based detection
        calling_path = Path.cwd().as_posix()
        if calling_path.startswith("/app"):
            return cls.DOCKER
        elif calling_path.startswith("/srv"):
            return cls.PROD
        else:
            return cls.DEV

    @classmethod
    def app_root(cls) -> Path:
        """Get the application root directory."""
        return Path(os.getenv("GITOPS_ROOT", Path.cwd())).resolve()

    @classmethod
    def home_dir(cls) -> Path:
        """Get the user's home directory."""
        return Path.home().resolve()


# endregion
# region Module-level Constants

APP_ROOT: Path = AppEnv.app_root()
"""[Path] Root directory of the application."""
APP_ENV: Literal["prod", "docker", "dev"] = AppEnv.environment()
"""[Literal] Environment type."""
HOME_DIR: Path = AppEnv.home_dir()
"""[Path] Home directory of the current user."""
# endregion


__all__ = [
    "APP_ENV",
    "APP_ROOT",
    "HOME_DIR",
    "AppEnv",
]
