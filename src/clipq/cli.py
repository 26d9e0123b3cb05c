# region Docstring
"""
clipq.cli
Command-line interface for the clipboard history.
Overview:
- Every verb opens its own HistoryStore, performs one store call (two for
    verbs that take a list position instead of an id) and closes the store
    on the way out, whether the call succeeded or not.
- Store errors are reported as `Error [<kind>]: <message>` on stderr and
    turned into the error's exit code.
Contents:
- CliContext: Settings, clipboard adapter, clock and home directory shared
    by the commands; tests pass their own through `obj=`.
- app: The typer application (`clipq`).
"""
# endregion
# region Imports
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, NoReturn, Optional, assert_never

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from clipq.clients import ClipboardAdapter, ClipboardUnavailable, PyperclipAdapter
from clipq.config import CLIPQ_HOME, ClipqSettings, get_settings
from clipq.constants import (
    DEFAULT_LIST_LIMIT,
    DEFAULT_PICK_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    PREVIEW_WIDTH,
    ClipType,
    ExportFormat,
    ImportMode,
)
from clipq.errors import ClipqError, NotFound, StoreIOError
from clipq.logger import configure_logging
from clipq.models import Clip
from clipq.services import ChangeDetector, HistoryStore, install_signal_handlers
from clipq.services.picker import pick as pick_clip
from clipq.services.transfer import write_text_atomic
from clipq.utils import epoch_now, format_epoch, preview

# endregion
# region Context


@dataclass
class CliContext:
    settings: ClipqSettings = field(default_factory=lambda: get_settings(ClipqSettings))
    adapter: ClipboardAdapter = field(default_factory=PyperclipAdapter)
    clock: Callable[[], int] = epoch_now
    home: Path = CLIPQ_HOME


console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="clipq",
    help="Bounded, deduplicated clipboard history.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log to the console at the configured level."
    ),
):
    if ctx.obj is None:
        ctx.obj = CliContext()
    state: CliContext = ctx.obj
    try:
        configure_logging(
            state.settings, console_level=None if verbose else "WARNING"
        )
    except OSError as e:
        err_console.print(f"[bold yellow]Warning:[/bold yellow] logging disabled: {e}")


def _fail(error: ClipqError) -> NoReturn:
    label = escape(f"[{error.kind}]")
    err_console.print(
        f"[bold red]Error {label}:[/bold red] {escape(str(error))}", highlight=False
    )
    raise typer.Exit(code=error.exit_code)


@contextmanager
def _open_store(
    ctx: typer.Context, settings: Optional[ClipqSettings] = None
) -> Iterator[HistoryStore]:
    state: CliContext = ctx.obj
    try:
        with HistoryStore.open(settings or state.settings, clock=state.clock) as store:
            yield store
    except ClipqError as e:
        _fail(e)


def _resolve(store: HistoryStore, reference: str) -> str:
    """Accept a clip id or a 1-based position in the newest-first list."""
    if not reference.isdigit():
        return reference
    position = int(reference)
    clips = store.list_clips(limit=1, offset=position - 1) if position >= 1 else []
    if not clips:
        raise NotFound(f"No clip at position {position}.")
    return clips[0].id


def _type_label(clip: Clip) -> str:
    match clip.clip_type:
        case ClipType.TEXT:
            return "text"
        case ClipType.FILE:
            return "[cyan]file[/cyan]"
        case _:
            assert_never(clip.clip_type)


def _print_clips(clips: List[Clip], title: str, start: int = 1) -> None:
    if not clips:
        console.print("[dim]No clips.[/dim]")
        return
    table = Table(title=Text(title), show_lines=False)
    table.add_column("#", justify="right", style="bold")
    table.add_column("ID", no_wrap=True, style="dim")
    table.add_column("Type")
    table.add_column("Created")
    table.add_column("Tags", style="green")
    table.add_column("Content")
    for position, clip in enumerate(clips, start):
        table.add_row(
            str(position),
            clip.id,
            _type_label(clip),
            format_epoch(clip.created_at),
            Text(", ".join(clip.tags)),
            Text(preview(clip.content, PREVIEW_WIDTH)),
        )
    console.print(table)


def _write_clipboard(state: CliContext, content: str) -> bool:
    try:
        state.adapter.write(content)
    except ClipboardUnavailable as e:
        err_console.print(f"[bold yellow]Warning:[/bold yellow] {escape(str(e))}")
        return False
    return True


# endregion
# region Capture


@app.command(help="Watch the clipboard and record every change.")
def daemon(
    ctx: typer.Context,
    max_clips: Optional[int] = typer.Option(
        None, "--max-clips", min=1, help="Override max_clips for this run."
    ),
):
    state: CliContext = ctx.obj
    settings = state.settings
    if max_clips is not None:
        settings = settings.model_copy(update={"max_clips": max_clips})
    configure_logging(settings)

    stop = threading.Event()
    install_signal_handlers(stop)
    with _open_store(ctx, settings) as store:
        detector = ChangeDetector(store, state.adapter, settings.poll_interval)
        console.print(
            f"[bold green]clipq daemon[/bold green] watching the clipboard "
            f"(max_clips={settings.max_clips}). Ctrl+C to stop."
        )
        detector.run(stop)
    console.print("[bold green]clipq daemon stopped.[/bold green]")


@app.command(help="Add text to the history and the clipboard.")
def add(ctx: typer.Context, text: str = typer.Argument(..., help="Text to record.")):
    with _open_store(ctx) as store:
        clip_id = store.insert(text, ClipType.TEXT)
    _write_clipboard(ctx.obj, text)
    console.print(f"Added clip [bold]{clip_id}[/bold]")


@app.command(name="file", help="Add a file reference to the history and the clipboard.")
def add_file(
    ctx: typer.Context, path: Path = typer.Argument(..., help="File to record.")
):
    with _open_store(ctx) as store:
        resolved = path.expanduser().resolve()
        if not resolved.exists():
            raise NotFound(f"{resolved} does not exist.")
        clip_id = store.insert(str(resolved), ClipType.FILE, str(resolved))
    _write_clipboard(ctx.obj, str(resolved))
    console.print(f"Added file clip [bold]{clip_id}[/bold]: {escape(str(resolved))}")


# endregion
# region Browse


@app.command(name="list", help="List clips, newest first.")
def list_clips(
    ctx: typer.Context,
    limit: int = typer.Option(DEFAULT_LIST_LIMIT, "--limit", "-n", min=0),
    offset: int = typer.Option(0, "--offset", min=0),
):
    with _open_store(ctx) as store:
        clips = store.list_clips(limit=limit, offset=offset)
    _print_clips(clips, "Clipboard History", start=offset + 1)


@app.command(help="Case-insensitive search over clip content.")
def search(
    ctx: typer.Context,
    query: str = typer.Argument(...),
    limit: int = typer.Option(DEFAULT_SEARCH_LIMIT, "--limit", "-n", min=0),
):
    with _open_store(ctx) as store:
        clips = store.search(query, limit=limit)
    _print_clips(clips, f"Search: {query}")


@app.command(help="Choose a recent clip interactively and copy it to the clipboard.")
def pick(
    ctx: typer.Context,
    limit: int = typer.Option(DEFAULT_PICK_LIMIT, "--limit", "-n", min=1),
):
    state: CliContext = ctx.obj
    with _open_store(ctx) as store:
        clips = store.list_clips(limit=limit)
        if not clips:
            console.print("[dim]No clipboard history found.[/dim]")
            return
        selected = pick_clip(clips, state.settings.picker_command, console)
        if selected is None:
            console.print("[dim]Nothing selected.[/dim]")
            return
        state.adapter.write(selected.content)
    console.print(f"Copied clip [bold]{selected.id}[/bold] to the clipboard.")


@app.command(help="Show history statistics.")
def stats(ctx: typer.Context):
    with _open_store(ctx) as store:
        result = store.stats()
    table = Table(title="clipq stats", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Total clips", str(result.total))
    for clip_type, count in result.per_type_counts.items():
        table.add_row(f"  {clip_type}", str(count))
    table.add_row("Tags", str(len(result.per_tag_counts)))
    for tag, count in result.per_tag_counts.items():
        table.add_row(Text(f"  {tag}"), str(count))
    table.add_row("Oldest", format_epoch(result.oldest_created_at))
    table.add_row("Newest", format_epoch(result.newest_created_at))
    table.add_row("Database size", f"{result.db_size_kb} KB")
    console.print(table)


# endregion
# region Tags / Delete


@app.command(help="Attach a tag to a clip (id or list position).")
def tag(ctx: typer.Context, clip: str = typer.Argument(...), name: str = typer.Argument(...)):
    with _open_store(ctx) as store:
        clip_id = _resolve(store, clip)
        store.tag(clip_id, name)
    console.print(f"Tagged [bold]{clip_id}[/bold] with '{escape(name)}'.")


@app.command(help="Remove a tag from a clip (id or list position).")
def untag(ctx: typer.Context, clip: str = typer.Argument(...), name: str = typer.Argument(...)):
    with _open_store(ctx) as store:
        clip_id = _resolve(store, clip)
        removed = store.untag(clip_id, name)
    if removed:
        console.print(f"Removed '{escape(name)}' from [bold]{clip_id}[/bold].")
    else:
        console.print(f"[dim]Clip {clip_id} was not tagged '{escape(name)}'.[/dim]")


@app.command(help="Show tags and their clips, or the clips of one tag.")
def tags(ctx: typer.Context, name: Optional[str] = typer.Argument(None)):
    with _open_store(ctx) as store:
        if name is not None:
            _print_clips(store.clips_by_tag(name), f"Tag: {name}")
            return
        grouped = store.tags()
    if not grouped:
        console.print("[dim]No tags.[/dim]")
        return
    for tag_name, clips in grouped.items():
        _print_clips(clips, f"Tag: {tag_name}")


@app.command(help="Delete one clip (id or list position).")
def delete(ctx: typer.Context, clip: str = typer.Argument(...)):
    with _open_store(ctx) as store:
        clip_id = _resolve(store, clip)
        store.delete(clip_id)
    console.print(f"Deleted clip [bold]{clip_id}[/bold].")


@app.command(help="Delete every clip and tag.")
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    if not yes:
        typer.confirm("Delete the whole clipboard history?", abort=True)
    with _open_store(ctx) as store:
        removed = store.clear()
    console.print(f"Cleared {removed} clip(s).")


# endregion
# region Export / Import / Backup / Restore


@app.command(help="Export the history (json, csv or txt).")
def export(
    ctx: typer.Context,
    fmt: ExportFormat = typer.Option(
        ExportFormat.JSON, "--format", "-f", case_sensitive=False
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Destination file; stdout when omitted."
    ),
):
    with _open_store(ctx) as store:
        document = store.export(fmt)
        if output is None:
            typer.echo(document, nl=False)
            return
        destination = write_text_atomic(output, document)
    console.print(f"Exported history to {destination}")


@app.command(name="import", help="Import a json, csv or txt export.")
def import_(
    ctx: typer.Context,
    fmt: ExportFormat = typer.Option(
        ExportFormat.JSON, "--format", "-f", case_sensitive=False
    ),
    source: Path = typer.Option(..., "--input", "-i", help="File to import."),
    mode: ImportMode = typer.Option(
        ImportMode.MERGE, "--mode", "-m", case_sensitive=False
    ),
):
    with _open_store(ctx) as store:
        try:
            data = source.expanduser().read_text(encoding="utf-8")
        except OSError as e:
            raise StoreIOError(f"Cannot read {source}: {e}") from e
        result = store.import_data(fmt, data, mode)
    console.print(
        f"Imported {result.received} clip(s) ({result.mode.value}): "
        f"{result.created} new, {result.deduplicated} merged, "
        f"{result.evicted} evicted; {result.total} in history."
    )


@app.command(help="Write a consistent copy of the database.")
def backup(
    ctx: typer.Context,
    output: Path = typer.Option(..., "--output", "-o"),
):
    with _open_store(ctx) as store:
        destination = store.backup(output)
    console.print(f"Backed up history to {destination}")


@app.command(help="Replace the history with the contents of a backup.")
def restore(
    ctx: typer.Context,
    source: Path = typer.Option(..., "--input", "-i"),
):
    with _open_store(ctx) as store:
        restored = store.restore(source)
    console.print(f"Restored {restored} clip(s) from {source}")


# endregion
# region Config


@app.command(help="Show the effective configuration, or write config.yaml.")
def config(
    ctx: typer.Context,
    init: bool = typer.Option(False, "--init", help="Write config.yaml with these settings."),
):
    state: CliContext = ctx.obj
    document = state.settings.to_yaml()
    if not init:
        console.print(document, markup=False, highlight=False)
        return
    target = ClipqSettings.config_files(state.home)[0]
    if target.exists():
        err_console.print(f"[bold yellow]{target} already exists; leaving it unchanged.[/bold yellow]")
        raise typer.Exit(code=1)
    try:
        destination = write_text_atomic(target, document)
    except ClipqError as e:
        _fail(e)
    console.print(f"Wrote {destination}")


# endregion
