# region Docstring
"""
clipq.services.change_detector
The daemon loop that records clipboard changes into the history store.
Overview:
- Each iteration reads the clipboard through a ClipboardAdapter, fingerprints
    the content and, when the fingerprint differs from the last one observed,
    hands the content to HistoryStore.insert.
- The last observed fingerprint is an explicit value: poll_once takes it and
    returns the next one. run() threads it through the loop, starting from
    NO_FINGERPRINT so the first real content is always captured.
Contents:
- NO_FINGERPRINT: Sentinel for "nothing observed yet".
- ChangeDetector:
    - poll_once(last_fingerprint) -> Optional[str]
    - run(stop_event, max_iterations) -> int
- install_signal_handlers(stop_event): SIGINT/SIGTERM set the stop event.
Design Notes:
- The fingerprint advances even when the insert fails, so a failing insert
    is not retried every cycle; the content is recorded again once it changes.
- A failed clipboard read leaves the fingerprint untouched.
- Stopping only sets an event. The in-flight iteration, and with it any
    store transaction, always runs to completion before the loop exits.
"""
# endregion
# region Imports
import signal
import threading
from logging import Logger as T_Logger
from typing import Optional

from clipq.clients import ClipboardAdapter, ClipboardUnavailable
from clipq.constants import ClipType
from clipq.errors import CapacityInvariantViolation, ClipqError
from clipq.logger import logger as _logger
from clipq.utils import compute_fingerprint, preview

from .history_store import HistoryStore

# endregion

NO_FINGERPRINT: Optional[str] = None
"""Fingerprint value before any clipboard content has been observed."""


class ChangeDetector:
    __store: HistoryStore
    __adapter: ClipboardAdapter
    __logger: T_Logger

    def __init__(
        self,
        store: HistoryStore,
        adapter: ClipboardAdapter,
        poll_interval: float,
        logger: Optional[T_Logger] = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.__store = store
        self.__adapter = adapter
        self.poll_interval = poll_interval
        self.__logger = (logger or _logger).getChild(self.__class__.__name__)

    def poll_once(self, last_fingerprint: Optional[str]) -> Optional[str]:
        """
        Run one detector iteration.

        Arguments:
            last_fingerprint (Optional[str]): Fingerprint returned by the
                previous iteration, or NO_FINGERPRINT.

        Returns:
            Optional[str]: The fingerprint to pass to the next iteration.
        """
        try:
            content = self.__adapter.read_current()
        except ClipboardUnavailable as e:
            self.__logger.warning("Clipboard read failed: %s", e)
            return last_fingerprint

        fingerprint = compute_fingerprint(content, ClipType.TEXT)
        if fingerprint == last_fingerprint:
            return last_fingerprint
        if not content.strip():
            return fingerprint

        try:
            clip_id = self.__store.insert(content, ClipType.TEXT)
            self.__logger.info("Captured clip %s: %s", clip_id, preview(content, 40))
        except CapacityInvariantViolation as e:
            self.__logger.error("Insert rolled back: %s", e)
        except ClipqError as e:
            self.__logger.warning("Insert failed (%s): %s", e.kind, e)
        return fingerprint

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        max_iterations: Optional[int] = None,
    ) -> int:
        """
        Poll until `stop_event` is set (or `max_iterations` have run).

        Returns:
            int: Number of completed iterations.
        """
        stop = stop_event or threading.Event()
        last_fingerprint = NO_FINGERPRINT
        iterations = 0
        self.__logger.info(
            "Watching the clipboard every %ss (max_clips=%s).",
            self.poll_interval,
            self.__store.max_clips,
        )
        while not stop.is_set():
            last_fingerprint = self.poll_once(last_fingerprint)
            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                break
            stop.wait(self.poll_interval)
        self.__logger.info("Stopped after %s iteration(s).", iterations)
        return iterations


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Make SIGINT and SIGTERM request a clean stop instead of interrupting."""

    def _handler(signum, frame):
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handler)


__all__ = ["NO_FINGERPRINT", "ChangeDetector", "install_signal_handlers"]
