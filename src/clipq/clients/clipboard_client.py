# region Docstring
"""
clipq.clients.clipboard_client
Narrow access to the system clipboard.
Overview:
- ClipboardAdapter is the contract the Change Detector and the CLI depend
    on: read the current text, write new text. Nothing else about the
    platform clipboard leaks into clipq.
- PyperclipAdapter implements it with pyperclip, which picks the platform
    backend (pbcopy, xclip/xsel, wl-clipboard, Windows API) on first use.
Contents:
- ClipboardUnavailable: The clipboard could not be read or written.
- ClipboardAdapter: Protocol.
- PyperclipAdapter: pyperclip-backed implementation.
"""
# endregion
# region Imports
from logging import Logger as T_Logger
from typing import Optional, Protocol, runtime_checkable

import pyperclip

from clipq.errors import ClipqError
from clipq.logger import logger as _logger

# endregion


class ClipboardUnavailable(ClipqError):
    kind = "clipboard-unavailable"
    exit_code = 9


@runtime_checkable
class ClipboardAdapter(Protocol):
    def read_current(self) -> str:
        """Return the clipboard's text ('' when it holds none)."""
        ...

    def write(self, content: str) -> None:
        """Replace the clipboard's text."""
        ...


class PyperclipAdapter:
    __logger: T_Logger

    def __init__(self, logger: Optional[T_Logger] = None) -> None:
        self.__logger = (logger or _logger).getChild(self.__class__.__name__)

    def read_current(self) -> str:
        try:
            content = pyperclip.paste()
        except pyperclip.PyperclipException as e:
            raise ClipboardUnavailable(f"Cannot read the clipboard: {e}") from e
        return content or ""

    def write(self, content: str) -> None:
        try:
            pyperclip.copy(content)
        except pyperclip.PyperclipException as e:
            raise ClipboardUnavailable(f"Cannot write the clipboard: {e}") from e
        self.__logger.debug("Wrote %s characters to the clipboard.", len(content))
