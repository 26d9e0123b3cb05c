import os
import sqlite3
import subprocess
import sys
import threading

import pytest

from clipq.errors import StoreBusy
from clipq.services import HistoryStore


@pytest.fixture
def write_lock(store, settings):
    """A second connection holding the SQLite write lock, as a racing writer would."""
    conn = sqlite3.connect(
        settings.database_path, isolation_level=None, check_same_thread=False
    )
    conn.execute("BEGIN IMMEDIATE")
    yield conn
    if conn.in_transaction:
        conn.execute("ROLLBACK")
    conn.close()


def test_contended_write_raises_store_busy(store, write_lock):
    """A writer that cannot get the lock within its retry budget gets StoreBusy."""
    with pytest.raises(StoreBusy):
        store.insert("blocked")
    write_lock.execute("ROLLBACK")

    store.insert("after release")
    assert [c.content for c in store.list_clips()] == ["after release"]


def test_every_mutation_reports_busy(store, insert_all, settings):
    (a_id,) = insert_all(store, "a")
    conn = sqlite3.connect(settings.database_path, isolation_level=None)
    conn.execute("BEGIN IMMEDIATE")
    try:
        for mutate in (
            lambda: store.tag(a_id, "t"),
            lambda: store.delete(a_id),
            lambda: store.clear(),
        ):
            with pytest.raises(StoreBusy):
                mutate()
    finally:
        conn.execute("ROLLBACK")
        conn.close()
    assert store.count() == 1


def test_reads_and_backup_proceed_during_a_write(store, insert_all, settings, tmp_path):
    insert_all(store, "a", "b")
    conn = sqlite3.connect(settings.database_path, isolation_level=None)
    conn.execute("BEGIN IMMEDIATE")
    conn.execute(
        "INSERT INTO clips (id, content, clip_type, created_at, fingerprint, seq) "
        "VALUES ('pending', 'uncommitted', 'text', 1, 'f', 999)"
    )
    try:
        assert [c.content for c in store.list_clips()] == ["b", "a"]
        assert store.search("uncommitted") == []
        assert store.stats().total == 2
        backup = store.backup(tmp_path / "during-write.db")
    finally:
        conn.execute("ROLLBACK")
        conn.close()

    store.insert("c")
    store.restore(backup)
    assert [c.content for c in store.list_clips()] == ["b", "a"]


def test_opening_a_store_does_not_wait_for_a_writer(store, insert_all, settings, clock):
    """A fresh handle opened mid-write can read without touching the write lock."""
    insert_all(store, "a", "b")
    conn = sqlite3.connect(settings.database_path, isolation_level=None)
    conn.execute("BEGIN IMMEDIATE")
    try:
        with HistoryStore.open(settings, clock=clock) as reader:
            assert [c.content for c in reader.list_clips()] == ["b", "a"]
            assert [c.content for c in reader.search("a")] == ["a"]
            assert reader.stats().total == 2
            assert reader.tags() == {}
    finally:
        conn.execute("ROLLBACK")
        conn.close()


def test_busy_write_succeeds_once_lock_is_released(make_store, settings):
    store = make_store(busy_retries=10, busy_backoff=0.02)
    conn = sqlite3.connect(
        settings.database_path, isolation_level=None, check_same_thread=False
    )
    conn.execute("BEGIN IMMEDIATE")
    release = threading.Timer(0.1, lambda: conn.execute("ROLLBACK"))
    release.start()
    try:
        clip_id = store.insert("eventually")
    finally:
        release.join()
        conn.close()
    assert store.get(clip_id).content == "eventually"


def test_concurrent_writers_keep_invariants(settings, clock):
    """Writers in separate connections never push the store past max_clips."""
    shared = settings.model_copy(
        update={"max_clips": 10, "busy_timeout": 5.0, "busy_retries": 5}
    )
    HistoryStore.open(shared, clock=clock).close()
    errors = []
    observed = []
    done = threading.Event()

    def writer(worker: int) -> None:
        try:
            with HistoryStore.open(shared, clock=clock) as store:
                for i in range(25):
                    store.insert(f"shared {i % 5}" if i % 2 else f"worker {worker} item {i}")
        except Exception as e:  # noqa: BLE001
            errors.append(e)

    def reader() -> None:
        try:
            with HistoryStore.open(shared, clock=clock) as store:
                while not done.is_set():
                    clips = store.list_clips()
                    observed.append((len(clips), len({c.content for c in clips})))
        except Exception as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    watcher = threading.Thread(target=reader)
    watcher.start()
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    done.set()
    watcher.join()

    assert errors == []
    with HistoryStore.open(shared, clock=clock) as store:
        clips = store.list_clips()
        assert len(clips) == 10
        assert len({c.fingerprint for c in clips}) == 10
    for count, distinct in observed:
        assert count <= 10
        assert distinct == count


def test_separate_processes_share_one_store(settings, tmp_path):
    """Independent `clipq add` processes racing on one database."""
    HistoryStore.open(settings).close()
    env = dict(
        os.environ,
        CLIPQ_DATABASE_PATH=str(settings.database_path),
        CLIPQ_LOG_DIR=str(tmp_path / "logs"),
        CLIPQ_MAX_CLIPS="3",
        CLIPQ_BUSY_TIMEOUT="5",
    )
    processes = [
        subprocess.Popen(
            [sys.executable, "-m", "clipq", "add", f"from process {n}"],
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        for n in range(5)
    ]
    for process in processes:
        _, stderr = process.communicate(timeout=60)
        assert process.returncode == 0, stderr.decode()

    with HistoryStore.open(settings.model_copy(update={"max_clips": 3})) as store:
        clips = store.list_clips()
    assert len(clips) == 3
    assert all(c.content.startswith("from process") for c in clips)
