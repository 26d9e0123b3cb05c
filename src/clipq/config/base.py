# region Docstring
"""
clipq.config.base

Environment detection and home-directory resolution.

Overview:
- Resolves the clipq home directory that holds the database, logs and the
    YAML configuration files.
- Detects the environment name used to pick an environment-specific YAML file.

Contents:
- Classes:
    - AppEnv:
        Class methods returning the environment name and the clipq home path.

- Module-level Constants:
    - CLIPQ_HOME (Path): Directory holding config.yaml, the database and logs.
    - APP_ENV (Literal["prod", "dev", "test"]): The detected environment.

Environment Detection Logic:
- CLIPQ_HOME overrides the home directory; otherwise ~/.clipq is used.
- CLIPQ_ENV selects the environment; unknown or missing values mean "prod".
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
        PROD (Literal["prod"]): Normal interactive use.
        DEV (Literal["dev"]): Working on clipq itself.
        TEST (Literal["test"]): Running under the test-suite.
    """

    PROD: Literal["prod"] = "prod"
    DEV: Literal["dev"] = "dev"
    TEST: Literal["test"] = "test"

    @classmethod
    def environment(cls) -> Literal["prod", "dev", "test"]:
        """Determine the current application environment."""
        value = os.getenv("CLIPQ_ENV")
        if value in {cls.PROD, cls.DEV, cls.TEST}:
            return value
        return cls.PROD

    @classmethod
    def home(cls) -> Path:
        """Directory holding clipq's configuration, database and logs."""
        override = os.getenv("CLIPQ_HOME")
        if override:
            return Path(override).expanduser().resolve()
        return (Path.home() / ".clipq").resolve()


# endregion
# region Module-level Constants

CLIPQ_HOME: Path = AppEnv.home()
"""[Path] Directory holding config.yaml, the database and logs."""
APP_ENV: Literal["prod", "dev", "test"] = AppEnv.environment()
"""[Literal] Environment name."""
# endregion

__all__ = [
    "APP_ENV",
    "CLIPQ_HOME",
    "AppEnv",
]
