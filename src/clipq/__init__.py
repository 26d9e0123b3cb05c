"""
clipq: a bounded, deduplicated, persisted clipboard history.

The history lives in one SQLite file shared by a long-running daemon that
watches the clipboard and by short-lived `clipq` commands. HistoryStore is
the entry point for library use; ChangeDetector is the daemon loop.
"""

__version__ = "0.3.0"

from .config import ClipqSettings, get_settings  # noqa: F401
from .constants import ClipType, ExportFormat, ImportMode  # noqa: F401
from .errors import (  # noqa: F401
    CapacityInvariantViolation,
    ClipqError,
    NotFound,
    SchemaVersionMismatch,
    StoreBusy,
    StoreIOError,
    Unsupported,
)
from .services import ChangeDetector, HistoryStore  # noqa: F401

__all__ = [
    "__version__",
    "CapacityInvariantViolation",
    "ChangeDetector",
    "ClipType",
    "ClipqError",
    "ClipqSettings",
    "ExportFormat",
    "HistoryStore",
    "ImportMode",
    "NotFound",
    "SchemaVersionMismatch",
    "StoreBusy",
    "StoreIOError",
    "Unsupported",
    "get_settings",
]
