# region Docstring
"""
clipq.config.factory
Layered settings loading for clipq.
Overview:
- FactoryBaseSettings decides where clipq settings come from and in which
    order; ClipqSettings only declares fields.
- get_settings caches one instance per settings class, so the CLI and the
    daemon read the YAML and .env files once per process.
Contents:
- Classes:
    - FactoryBaseSettings:
        Sources, highest priority first:
            1. Keyword arguments (tests, `daemon --max-clips`)
            2. CLIPQ_* environment variables
            3. CLIPQ_HOME/.env
            4. CLIPQ_HOME/config.{env}.yaml
            5. CLIPQ_HOME/config.yaml
            6. Field defaults
        config_files(home) -> list[Path]: the YAML files above, lowest first.
- Functions:
    - get_settings(settings_cls: Type[T]) -> T
Design notes:
- Unknown keys are ignored, so a config.yaml written by another clipq version
    still loads.
- Missing YAML files are skipped; a fresh install runs on defaults.
"""
# endregion
# region Imports
from functools import lru_cache
from pathlib import Path
from typing import List, Type, TypeVar

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .base import APP_ENV, CLIPQ_HOME

# endregion
# region FactoryBaseSettings Class
T = TypeVar("T", bound=BaseSettings)


class FactoryBaseSettings(BaseSettings):
    """Settings read from keyword arguments, CLIPQ_* variables, .env and config.yaml."""

    model_config = SettingsConfigDict(
        env_file=CLIPQ_HOME / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def config_files(cls, home: Path = CLIPQ_HOME) -> List[Path]:
        """YAML files read from `home`; the environment-specific one overrides."""
        return [home / "config.yaml", home / f"config.{APP_ENV}.yaml"]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_settings = YamlConfigSettingsSource(
            settings_cls, yaml_file=cls.config_files()
        )
        # clipq keeps no secrets directory
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
        )


# endregion
# region get_settings Factory Function


@lru_cache
def get_settings(settings_cls: Type[T]) -> T:
    """Load `settings_cls` once; later calls return the same instance."""
    return settings_cls()


# endregion
