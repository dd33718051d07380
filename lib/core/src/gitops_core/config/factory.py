# region Docstring
"""
gitops_core.config.factory
Settings base class with YAML file support, and the cached settings factory.
Overview:
- FactoryBaseSettings reads, from highest to lowest priority:
    1. Environment variables
    2. The .env file in the application root
    3. YAML files: GITOPS_CONFIG_FILE when set, then gitops.{env}.yaml, then gitops.yaml
    4. Init kwargs
    5. Field defaults
- get_settings() builds each settings class once per process.
Design notes:
- Every YAML file holds the settings of all classes side by side; unknown keys are
    ignored, so one file can configure GitHub, logging and paths at once.
- Keys may be given by field name or by their environment variable alias.
"""

# endregion
# region Imports
import os
from functools import lru_cache
from pathlib import Path
from typing import Type, TypeVar

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .base import APP_ENV, APP_ROOT

# endregion
# region FactoryBaseSettings Class
T = TypeVar("T", bound=BaseSettings)

CONFIG_FILE_ENV = "GITOPS_CONFIG_FILE"


def config_files() -> list[Path]:
    """YAML files to read, lowest priority first."""
    files = [APP_ROOT / "gitops.yaml", APP_ROOT / f"gitops.{APP_ENV}.yaml"]
    explicit = os.getenv(CONFIG_FILE_ENV)
    if explicit:
        files.append(Path(explicit).expanduser())
    return files


class FactoryBaseSettings(BaseSettings):
    """
    BaseSettings reading environment variables, .env and gitops YAML files.
    """

    model_config = SettingsConfigDict(
        env_file=APP_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # later files override earlier ones
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=config_files())
        return (
            env_settings,
            dotenv_settings,
            yaml_settings,
            init_settings,
        )


# endregion
# region get_settings Factory Function


@lru_cache
def get_settings(settings_cls: Type[T]) -> T:
    """
    Factory function to load any settings class.
    Results are cached so files are read once per class.
    """
    return settings_cls()


# endregion
