"""
clipq.config
Settings consumed by the history store, the change detector and the CLI.
Overview:
- ClipqSettings inherits from FactoryBaseSettings and can be populated from
    keyword arguments, CLIPQ_* environment variables, a .env file or YAML.
Contents:
- ClipqSettings:
    Capacity, storage location and file-clip gate read by the store; polling
    interval for the daemon; lock-contention budget; picker command; logging.
- get_settings: Cached factory re-exported from clipq.config.factory.
- AppEnv / APP_ENV / CLIPQ_HOME: Re-exported from clipq.config.base.
Design Notes:
- Fields use aliases so they can be set as environment variables
    (e.g. CLIPQ_MAX_CLIPS=50) and, thanks to populate_by_name, by field name in
    YAML and keyword arguments.
- The store treats these values as read-only input; nothing in clipq writes
    settings back except `clipq config --init`.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator

from .base import APP_ENV, CLIPQ_HOME, AppEnv
from .factory import FactoryBaseSettings, get_settings


class ClipqSettings(FactoryBaseSettings):
    """
    Configuration for the clipboard history store and its daemon.
    """

    max_clips: int = Field(
        default=100,
        gt=0,
        description="Maximum number of distinct clips kept in history.",
        alias="CLIPQ_MAX_CLIPS",
    )
    database_path: Path = Field(
        default=CLIPQ_HOME / "clipboard.db",
        description="Path to the SQLite history database.",
        alias="CLIPQ_DATABASE_PATH",
    )
    enable_file_clips: bool = Field(
        default=True,
        description="Accept File-typed clips. When false they are rejected.",
        alias="CLIPQ_ENABLE_FILE_CLIPS",
    )
    poll_interval: float = Field(
        default=0.5,
        gt=0,
        description="Interval for polling the clipboard. (Seconds) [Default: 0.5]",
        alias="CLIPQ_POLL_INTERVAL",
    )
    busy_timeout: float = Field(
        default=1.0,
        ge=0,
        description="How long SQLite waits on a lock before reporting busy. (Seconds)",
        alias="CLIPQ_BUSY_TIMEOUT",
    )
    busy_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts made on lock contention before failing with StoreBusy.",
        alias="CLIPQ_BUSY_RETRIES",
    )
    busy_backoff: float = Field(
        default=0.05,
        ge=0,
        description="Initial backoff between busy retries, doubled per attempt. (Seconds)",
        alias="CLIPQ_BUSY_BACKOFF",
    )
    picker_command: str = Field(
        default="fzf",
        description="Interactive selector used by `clipq pick`.",
        alias="CLIPQ_PICKER_COMMAND",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for the daemon and the JSON log file.",
        alias="CLIPQ_LOG_LEVEL",
    )
    log_dir: Path = Field(
        default=CLIPQ_HOME / "logs",
        description="Directory for clipq.jsonl and its archives.",
        alias="CLIPQ_LOG_DIR",
    )

    @field_validator("database_path", "log_dir", mode="before")
    def expand_user(cls, v: Any) -> Any:
        if isinstance(v, (str, Path)):
            return Path(v).expanduser()
        return v

    @field_validator("log_level", mode="before")
    def normalise_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    def to_yaml(self) -> str:
        """Render the settings as a config.yaml document."""
        return yaml.safe_dump(self.model_dump(mode="json"), sort_keys=False)


__all__ = [
    "APP_ENV",
    "CLIPQ_HOME",
    "AppEnv",
    "ClipqSettings",
    "FactoryBaseSettings",
    "get_settings",
]
