from .clipboard_client import (  # noqa: F401
    ClipboardAdapter,
    ClipboardUnavailable,
    PyperclipAdapter,
)

__all__ = ["ClipboardAdapter", "ClipboardUnavailable", "PyperclipAdapter"]
