"""
clipq.services
Store, detector and picker services built on clipq.database and clipq.models.
"""

from .change_detector import NO_FINGERPRINT, ChangeDetector, install_signal_handlers  # noqa: F401
from .history_store import HistoryStore  # noqa: F401
from .models import ImportResult, StoreStats  # noqa: F401

__all__ = [
    "NO_FINGERPRINT",
    "ChangeDetector",
    "HistoryStore",
    "ImportResult",
    "StoreStats",
    "install_signal_handlers",
]
