from datetime import datetime
import logging
from logging import Logger as T_Logger
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

from pythonjsonlogger.json import JsonFormatter  # type: ignore # noqa F401

from clipq.config import ClipqSettings
from clipq.utils import get_time

LOGGER_NAME = "clipq"
ARCHIVE_STAMP = "%Y%m%d_%H%M%S"

logger: T_Logger = logging.getLogger(LOGGER_NAME)


def _logging_config(log_file: Path, level: str, console_level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(process)d %(message)s",
            },
            "standard": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
        },
        "handlers": {
            "file": {
                "class": "logging.FileHandler",
                "filename": str(log_file),
                "formatter": "json",
                "level": level,
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": console_level,
            },
        },
        "loggers": {
            LOGGER_NAME: {
                "handlers": ["file", "console"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(
    settings: ClipqSettings, console_level: Optional[str] = None
) -> T_Logger:
    """
    Configure the `clipq` logger: JSON lines to <log_dir>/clipq.jsonl plus a
    plain console handler on stderr.

    Arguments:
        settings (ClipqSettings): Supplies log_dir and log_level.
        console_level (Optional[str]): Console threshold; defaults to log_level.

    Returns:
        Logger: The configured `clipq` logger.
    """
    log_file = settings.log_dir / "clipq.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    _archive_daily_log_file(log_file)
    _manage_logfile_archives(log_file)

    level = settings.log_level
    dictConfig(_logging_config(log_file, level, (console_level or level).upper()))
    system_logger = logger.getChild("SYSTEM")
    system_logger.debug("Logger for clipq initialized at %s.", log_file)
    return logger


def _archive_daily_log_file(log_file: Path) -> None:
    """Rename yesterday's log file with a timestamp so each day starts fresh."""
    if not log_file.exists():
        return
    current_time = get_time().astimezone()
    modified = datetime.fromtimestamp(log_file.stat().st_mtime).astimezone()
    if modified.date() >= current_time.date():
        return
    archive_path = log_file.with_name(
        f"{log_file.stem}_{modified.strftime(ARCHIVE_STAMP)}{log_file.suffix}"
    )
    log_file.rename(archive_path)


def _manage_logfile_archives(log_file: Path, days_to_keep: int = 10) -> None:
    """Keep only the most recent archives."""
    archive_files = sorted(
        log_file.parent.glob(f"{log_file.stem}_*{log_file.suffix}"),
        key=lambda f: f.stat().st_mtime,
        reverse=True,
    )
    for archive_file in archive_files[days_to_keep:]:
        archive_file.unlink()
