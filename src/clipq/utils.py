import sqlite3
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path

import sqlite_utils

from clipq.constants import PREVIEW_WIDTH, ClipType


def get_time() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def epoch_now() -> int:
    """
    Current time in whole epoch seconds, the resolution clips are stored at.

    Example:
        >>> isinstance(epoch_now(), int)
        True
    """
    return int(get_time().timestamp())


def epoch_to_datetime(value: int | None) -> datetime | None:
    """Convert stored epoch seconds back into an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def format_epoch(value: int | None, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Render stored epoch seconds for humans, '-' when there is no value."""
    moment = epoch_to_datetime(value)
    return moment.strftime(fmt) if moment else "-"


def compute_fingerprint(content: str, clip_type: ClipType = ClipType.TEXT) -> str:
    """
    Content-derived identity used for deduplication.

    The clip type is folded in so a text clip that happens to spell a path
    never collapses into the file clip for that path.

    Arguments:
        content (str): Clip content.
        clip_type (ClipType): Variant the content is stored as.

    Returns:
        str: Hex SHA256 digest.

    Example:
        >>> compute_fingerprint("a") == compute_fingerprint("a")
        True
        >>> compute_fingerprint("a") == compute_fingerprint("a", ClipType.FILE)
        False
    """
    digest = sha256()
    digest.update(ClipType(clip_type).value.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(content.encode("utf-8"))
    return digest.hexdigest()


def preview(content: str, width: int = PREVIEW_WIDTH) -> str:
    """Single-line, width-bounded rendering of clip content."""
    flat = " ".join(content.split())
    if len(flat) > width:
        return flat[: width - 3] + "..."
    return flat


def get_sqlite_tables(path: Path) -> list[str]:
    """
    Retrieve the list of table names from a SQLite database.

    Args:
        path (Path): The file path to the SQLite database.

    Returns:
        list[str]: A list of table names in the database.

    Raises:
        ValueError: If the provided path is not a valid SQLite database file.

    Example:
        >>> get_sqlite_tables(Path("clipboard.db"))
        ['clips', 'clip_tags', 'store_meta']
    """
    try:
        db = sqlite_utils.Database(path.as_posix())
    except sqlite3.DatabaseError as e:
        raise ValueError(f"Invalid SQLite database file: {path}") from e
    try:
        return db.table_names()
    except sqlite3.DatabaseError as e:
        raise ValueError(f"Invalid SQLite database file: {path}") from e
    finally:
        db.close()
