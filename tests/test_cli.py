import json
import logging
import sqlite3

import pytest
import yaml
from rich.console import Console
from typer.testing import CliRunner

import clipq.cli as cli_module
from clipq.cli import CliContext, app
from clipq.constants import SCHEMA_VERSION, ClipType
from clipq.logger import LOGGER_NAME


@pytest.fixture
def context(settings, clipboard, clock, tmp_path):
    return CliContext(settings=settings, adapter=clipboard, clock=clock, home=tmp_path / "home")


@pytest.fixture
def invoke(context, monkeypatch):
    """Run `clipq <args>` against the test store and fake clipboard."""
    monkeypatch.setattr(cli_module, "console", Console(width=200))
    runner = CliRunner()

    def _invoke(*args, input=None):
        return runner.invoke(app, [str(a) for a in args], obj=context, input=input)

    yield _invoke
    clipq_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(clipq_logger.handlers):
        clipq_logger.removeHandler(handler)
        handler.close()


def test_add(invoke, store, clipboard):
    result = invoke("add", "hello world")
    assert result.exit_code == 0, result.output
    assert "Added clip" in result.output
    assert [c.content for c in store.list_clips()] == ["hello world"]
    assert clipboard.writes == ["hello world"]


def test_add_survives_clipboard_failure(invoke, store, clipboard):
    clipboard.fail_writes = True
    result = invoke("add", "offline")
    assert result.exit_code == 0
    assert "Warning" in result.output
    assert store.count() == 1


def test_add_file(invoke, store, tmp_path, clipboard):
    target = tmp_path / "notes.txt"
    target.write_text("x")
    result = invoke("file", target)
    assert result.exit_code == 0, result.output

    (clip,) = store.list_clips()
    assert clip.clip_type is ClipType.FILE
    assert clip.content == str(target.resolve())
    assert clip.file_path == str(target.resolve())
    assert clipboard.writes == [str(target.resolve())]


def test_add_missing_file(invoke, tmp_path, store):
    result = invoke("file", tmp_path / "absent.txt")
    assert result.exit_code == 3
    assert "Error [not-found]" in result.output
    assert store.count() == 0


def test_add_file_when_disabled(invoke, context, tmp_path, store):
    context.settings = context.settings.model_copy(update={"enable_file_clips": False})
    target = tmp_path / "notes.txt"
    target.write_text("x")
    result = invoke("file", target)
    assert result.exit_code == 4
    assert "Error [unsupported]" in result.output
    assert store.count() == 0


def test_list_and_search(invoke, clock):
    for text in ["alpha", "beta", "gamma"]:
        clock.advance()
        invoke("add", text)

    listed = invoke("list")
    assert listed.exit_code == 0
    assert listed.output.index("gamma") < listed.output.index("beta") < listed.output.index("alpha")

    limited = invoke("list", "--limit", "1")
    assert "gamma" in limited.output and "beta" not in limited.output

    offset = invoke("list", "--limit", "1", "--offset", "1")
    assert "beta" in offset.output and "gamma" not in offset.output

    found = invoke("search", "BET")
    assert found.exit_code == 0
    assert "beta" in found.output and "alpha" not in found.output


def test_list_empty(invoke):
    result = invoke("list")
    assert result.exit_code == 0
    assert "No clips" in result.output


def test_tag_untag_by_position_and_id(invoke, store, clock):
    invoke("add", "first")
    clock.advance()
    invoke("add", "second")
    second_id, first_id = [c.id for c in store.list_clips()]

    assert invoke("tag", "1", "work").exit_code == 0
    assert invoke("tag", first_id, "home").exit_code == 0
    assert store.get(second_id).tags == ["work"]
    assert store.get(first_id).tags == ["home"]

    tags = invoke("tags")
    assert "work" in tags.output and "home" in tags.output
    one_tag = invoke("tags", "work")
    assert "second" in one_tag.output and "first" not in one_tag.output

    assert invoke("untag", "1", "work").exit_code == 0
    assert store.get(second_id).tags == []
    assert "was not tagged" in invoke("untag", "1", "work").output


def test_tag_unknown_clip(invoke):
    result = invoke("tag", "no-such-id", "work")
    assert result.exit_code == 3
    assert "Error [not-found]" in result.output
    assert invoke("tag", "7", "work").exit_code == 3
    assert invoke("tag", "0", "work").exit_code == 3


def test_delete(invoke, store, clock):
    invoke("add", "keep")
    clock.advance()
    invoke("add", "drop")
    result = invoke("delete", "1")
    assert result.exit_code == 0
    assert [c.content for c in store.list_clips()] == ["keep"]
    assert invoke("delete", "5").exit_code == 3


def test_clear(invoke, store):
    invoke("add", "a")
    aborted = invoke("clear", input="n\n")
    assert aborted.exit_code == 1
    assert store.count() == 1

    result = invoke("clear", "--yes")
    assert result.exit_code == 0
    assert "Cleared 1 clip(s)" in result.output
    assert store.count() == 0


def test_stats(invoke, store):
    invoke("add", "a")
    store.tag(store.list_clips()[0].id, "work")
    result = invoke("stats")
    assert result.exit_code == 0
    assert "Total clips" in result.output
    assert "work" in result.output
    assert "Database size" in result.output


def test_export_import(invoke, store, tmp_path, clock):
    invoke("add", "a")
    clock.advance()
    invoke("add", "b")
    out = tmp_path / "export.json"

    assert invoke("export", "--format", "json", "--output", out).exit_code == 0
    document = json.loads(out.read_text())
    assert document["version"] == SCHEMA_VERSION
    assert [c["content"] for c in document["clips"]] == ["b", "a"]

    to_stdout = invoke("export", "--format", "txt")
    assert to_stdout.output == "1: b\n2: a\n"

    invoke("clear", "--yes")
    result = invoke("import", "--format", "json", "--input", out)
    assert result.exit_code == 0, result.output
    assert "2 new" in result.output
    assert [c.content for c in store.list_clips()] == ["b", "a"]

    replaced = invoke("import", "--input", out, "--mode", "replace")
    assert replaced.exit_code == 0
    assert store.count() == 2


def test_import_errors(invoke, store, tmp_path):
    invoke("add", "untouched")
    missing = invoke("import", "--input", tmp_path / "nope.json")
    assert missing.exit_code == 7

    newer = tmp_path / "newer.json"
    newer.write_text(json.dumps({"version": SCHEMA_VERSION + 1, "clips": []}))
    mismatch = invoke("import", "--input", newer, "--mode", "replace")
    assert mismatch.exit_code == 5
    assert "Error [schema-version-mismatch]" in mismatch.output

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    assert invoke("import", "--input", broken).exit_code == 4
    assert [c.content for c in store.list_clips()] == ["untouched"]


def test_import_txt(invoke, store, tmp_path):
    invoke("add", "existing")
    listing = tmp_path / "list.txt"
    listing.write_text("1: newest\n\n2: existing\n3: oldest\n")
    result = invoke("import", "--format", "txt", "--input", listing)
    assert result.exit_code == 0, result.output
    assert [c.content for c in store.list_clips()] == ["newest", "existing", "oldest"]


def test_backup_restore(invoke, store, tmp_path):
    invoke("add", "saved")
    target = tmp_path / "backup.db"
    assert invoke("backup", "--output", target).exit_code == 0
    invoke("add", "later")

    result = invoke("restore", "--input", target)
    assert result.exit_code == 0, result.output
    assert "Restored 1 clip(s)" in result.output
    assert [c.content for c in store.list_clips()] == ["saved"]
    assert invoke("restore", "--input", tmp_path / "missing.db").exit_code == 7


def test_pick(invoke, store, clipboard, clock, monkeypatch):
    invoke("add", "one")
    clock.advance()
    invoke("add", "two")
    clipboard.writes.clear()

    monkeypatch.setattr(cli_module, "pick_clip", lambda clips, preferred, console: clips[1])
    result = invoke("pick")
    assert result.exit_code == 0, result.output
    assert clipboard.writes == ["one"]

    monkeypatch.setattr(cli_module, "pick_clip", lambda clips, preferred, console: None)
    assert "Nothing selected" in invoke("pick").output


def test_pick_empty_history(invoke):
    result = invoke("pick")
    assert result.exit_code == 0
    assert "No clipboard history found" in result.output


def test_config_show_and_init(invoke, context):
    shown = invoke("config")
    assert shown.exit_code == 0
    assert "max_clips: 100" in shown.output

    assert invoke("config", "--init").exit_code == 0
    written = yaml.safe_load((context.home / "config.yaml").read_text())
    assert written["max_clips"] == 100
    assert written["enable_file_clips"] is True
    assert invoke("config", "--init").exit_code == 1


def test_daemon_runs_until_stopped(invoke, clipboard, store, monkeypatch):
    clipboard.queue = ["captured"]
    monkeypatch.setattr(cli_module, "install_signal_handlers", lambda stop: None)

    def run_once(self, stop_event=None, max_iterations=None):
        return original_run(self, stop_event, max_iterations=1)

    original_run = cli_module.ChangeDetector.run
    monkeypatch.setattr(cli_module.ChangeDetector, "run", run_once)

    result = invoke("daemon", "--max-clips", "5")
    assert result.exit_code == 0, result.output
    assert "daemon stopped" in result.output
    assert [c.content for c in store.list_clips()] == ["captured"]
    assert invoke("daemon", "--max-clips", "0").exit_code == 2


def test_store_busy_exit_code(invoke, store, settings):
    conn = sqlite3.connect(settings.database_path, isolation_level=None)
    conn.execute("BEGIN IMMEDIATE")
    try:
        result = invoke("add", "blocked")
    finally:
        conn.execute("ROLLBACK")
        conn.close()
    assert result.exit_code == 6
    assert "Error [store-busy]" in result.output


def test_read_commands_run_while_store_is_locked(invoke, store, settings):
    invoke("add", "visible")
    conn = sqlite3.connect(settings.database_path, isolation_level=None)
    conn.execute("BEGIN IMMEDIATE")
    try:
        listed = invoke("list")
        stats = invoke("stats")
        exported = invoke("export", "--format", "txt")
    finally:
        conn.execute("ROLLBACK")
        conn.close()
    assert listed.exit_code == 0, listed.output
    assert "visible" in listed.output
    assert stats.exit_code == 0, stats.output
    assert exported.output == "1: visible\n"


def test_unwritable_database_exit_code(invoke, context, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    context.settings = context.settings.model_copy(
        update={"database_path": blocker / "clipboard.db"}
    )
    result = invoke("list")
    assert result.exit_code == 7
    assert "Error [io-error]" in result.output
