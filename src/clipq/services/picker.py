# region Docstring
"""
clipq.services.picker
Interactive selection of a clip, via an external fuzzy finder or a menu.
Overview:
- Recent clips are rendered as "N: preview" lines and piped to fzf or skim.
    The chosen line is mapped back to its clip through the leading number.
- Without a fuzzy finder on PATH, a numbered menu is printed and a number
    read from stdin (0 cancels).
Contents:
- PickerFailed: The fuzzy finder exited with an error.
- find_picker(preferred) -> Optional[str]
- render_choices(clips, width) -> str
- parse_selection(line, clips) -> Optional[Clip]
- run_picker(command, choices) -> Optional[str]
- simple_menu(clips, console) -> Optional[Clip]
- pick(clips, preferred, console) -> Optional[Clip]
"""
# endregion
# region Imports
import shutil
import subprocess
from typing import List, Optional, Sequence

from rich.console import Console
from rich.prompt import IntPrompt

from clipq.constants import PICKER_COMMANDS, PREVIEW_WIDTH
from clipq.errors import ClipqError
from clipq.logger import logger as _logger
from clipq.models import Clip
from clipq.utils import preview

# endregion

PICKER_ARGS: List[str] = ["--height", "40%", "--reverse", "--border"]
# fzf/sk exit 1 for "no match" and 130 when the user aborts
CANCEL_EXIT_CODES = {1, 130}

logger = _logger.getChild("Picker")


class PickerFailed(ClipqError):
    kind = "picker-failed"
    exit_code = 10


def find_picker(preferred: Optional[str] = None) -> Optional[str]:
    """Return the first fuzzy finder found on PATH, trying `preferred` first."""
    candidates = [preferred] if preferred else []
    candidates += [c for c in PICKER_COMMANDS if c != preferred]
    for candidate in candidates:
        if shutil.which(candidate):
            return candidate
    return None


def render_choices(clips: Sequence[Clip], width: int = 100) -> str:
    return "\n".join(
        f"{i}: {preview(clip.content, width)}" for i, clip in enumerate(clips, 1)
    )


def parse_selection(line: str, clips: Sequence[Clip]) -> Optional[Clip]:
    """
    Map a picked "N: preview" line back to its clip.

    Example:
        >>> parse_selection("oops", []) is None
        True
    """
    number, sep, _ = line.strip().partition(":")
    if not sep or not number.isdigit():
        return None
    index = int(number)
    if 1 <= index <= len(clips):
        return clips[index - 1]
    return None


def run_picker(command: str, choices: str) -> Optional[str]:
    """
    Pipe `choices` to the fuzzy finder and return the selected line.

    Raises:
        PickerFailed: The finder could not be started or reported an error.
    """
    try:
        completed = subprocess.run(
            [command, *PICKER_ARGS],
            input=choices,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise PickerFailed(f"Cannot start picker {command!r}: {e}") from e

    if completed.returncode in CANCEL_EXIT_CODES:
        return None
    if completed.returncode != 0:
        raise PickerFailed(
            f"Picker {command!r} failed ({completed.returncode}): {completed.stderr.strip()}"
        )
    selected = completed.stdout.strip()
    return selected or None


def simple_menu(clips: Sequence[Clip], console: Console) -> Optional[Clip]:
    console.print("\n[bold]Clipboard History[/bold]")
    for i, clip in enumerate(clips, 1):
        console.print(f"{i}: {preview(clip.content, PREVIEW_WIDTH)}", markup=False)
    choice = IntPrompt.ask(
        "Enter number to select (0 to cancel)", default=0, console=console
    )
    if 1 <= choice <= len(clips):
        return clips[choice - 1]
    return None


def pick(
    clips: Sequence[Clip], preferred: Optional[str], console: Console
) -> Optional[Clip]:
    """Let the user choose one of `clips`; None when nothing was chosen."""
    if not clips:
        return None
    command = find_picker(preferred)
    if command is None:
        logger.debug("No fuzzy finder on PATH; using the numbered menu.")
        return simple_menu(clips, console)
    logger.debug("Picking with %s.", command)
    selected = run_picker(command, render_choices(clips))
    if selected is None:
        return None
    return parse_selection(selected, clips)


__all__ = [
    "PickerFailed",
    "find_picker",
    "parse_selection",
    "pick",
    "render_choices",
    "run_picker",
    "simple_menu",
]
