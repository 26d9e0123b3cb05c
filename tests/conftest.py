import os
import tempfile

# Keep the developer's ~/.clipq (config.yaml, .env) out of the test-suite
os.environ["CLIPQ_HOME"] = tempfile.mkdtemp(prefix="clipq-home-")
os.environ["CLIPQ_ENV"] = "test"

from pathlib import Path  # noqa: E402
from typing import Callable, List  # noqa: E402

import pytest  # noqa: E402

from clipq.clients import ClipboardUnavailable  # noqa: E402
from clipq.config import ClipqSettings  # noqa: E402
from clipq.services import HistoryStore  # noqa: E402


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> int:
        self.now += seconds
        return self.now


class FakeClipboard:
    """
    In-memory ClipboardAdapter.

    `queue` feeds successive read_current() calls; an exception instance in
    the queue is raised instead of returned. Once the queue is drained the
    last value keeps being returned, like a real clipboard.
    """

    def __init__(self, queue=None) -> None:
        self.queue: List = list(queue or [])
        self.current = ""
        self.writes: List[str] = []
        self.fail_writes = False

    def read_current(self) -> str:
        if self.queue:
            item = self.queue.pop(0)
            if isinstance(item, Exception):
                raise item
            self.current = item
        return self.current

    def write(self, content: str) -> None:
        if self.fail_writes:
            raise ClipboardUnavailable("no clipboard in tests")
        self.writes.append(content)
        self.current = content


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def settings(tmp_path: Path) -> ClipqSettings:
    return ClipqSettings(
        database_path=tmp_path / "clipboard.db",
        log_dir=tmp_path / "logs",
        max_clips=100,
        poll_interval=0.01,
        busy_timeout=0.0,
        busy_retries=2,
        busy_backoff=0.0,
    )


@pytest.fixture
def make_store(settings: ClipqSettings, clock: FakeClock) -> Callable[..., HistoryStore]:
    """Open stores on the test database; overrides replace settings fields."""
    opened: List[HistoryStore] = []

    def _make(**overrides) -> HistoryStore:
        store_settings = settings.model_copy(update=overrides) if overrides else settings
        store = HistoryStore.open(store_settings, clock=clock)
        opened.append(store)
        return store

    yield _make
    for store in opened:
        store.close()


@pytest.fixture
def store(make_store) -> HistoryStore:
    return make_store()


@pytest.fixture
def insert_all(clock: FakeClock) -> Callable[..., List[str]]:
    """Insert each content one second apart; returns the ids."""

    def _insert(store: HistoryStore, *contents: str) -> List[str]:
        ids = []
        for content in contents:
            clock.advance()
            ids.append(store.insert(content))
        return ids

    return _insert
