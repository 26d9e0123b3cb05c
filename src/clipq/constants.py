# region Docstring
"""
clipq.constants
Shared constants and enumerations for the clipboard history store.
Overview:
- Defines the closed set of clip types the store accepts and the formats and
    modes understood by export/import.
- Pins the persisted schema version shared by snapshots and backup files.
Contents:
- Enumerations:
    - ClipType: The two clip variants, plain text and file references.
    - ExportFormat: Serialisation formats for export and import (json, csv, txt).
    - ImportMode: How an import combines with the live store (merge, replace).
- Constants:
    - SCHEMA_VERSION: Version stamped into snapshots and the store_meta table.
    - SCHEMA_VERSION_KEY: store_meta key holding SCHEMA_VERSION.
    - DEFAULT_LIST_LIMIT / DEFAULT_SEARCH_LIMIT / DEFAULT_PICK_LIMIT: CLI defaults.
    - PREVIEW_WIDTH: Maximum characters shown for one clip in listings.
    - PICKER_COMMANDS: Fuzzy selectors probed when no picker is configured.
Design Notes:
- Enums inherit from both str and enum.Enum so values compare and persist as
    plain strings while consumers still match on members.
"""
# endregion
# region Imports
import enum
from typing import List

# endregion
# region Enumerations


class ClipType(str, enum.Enum):
    """Kind of content a clip holds."""

    TEXT = "text"
    FILE = "file"


class ExportFormat(str, enum.Enum):
    """Serialisation formats supported by export and import."""

    JSON = "json"
    CSV = "csv"
    TXT = "txt"


class ImportMode(str, enum.Enum):
    """How imported clips combine with the live store."""

    MERGE = "merge"
    REPLACE = "replace"


# endregion
# region Constants

SCHEMA_VERSION: int = 1
"""[int] Version of the persisted schema and of the export snapshot format."""
SCHEMA_VERSION_KEY: str = "schema_version"
"""[str] Key of the schema version row in the store_meta table."""

DEFAULT_LIST_LIMIT: int = 20
DEFAULT_SEARCH_LIMIT: int = 20
DEFAULT_PICK_LIMIT: int = 50
PREVIEW_WIDTH: int = 80

PICKER_COMMANDS: List[str] = ["fzf", "sk", "skim"]
"""Fuzzy pickers probed in order when the configured one is missing."""
# endregion

__all__ = [
    "ClipType",
    "ExportFormat",
    "ImportMode",
    "SCHEMA_VERSION",
    "SCHEMA_VERSION_KEY",
    "DEFAULT_LIST_LIMIT",
    "DEFAULT_SEARCH_LIMIT",
    "DEFAULT_PICK_LIMIT",
    "PREVIEW_WIDTH",
    "PICKER_COMMANDS",
]
