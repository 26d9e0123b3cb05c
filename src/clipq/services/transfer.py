# region Docstring
"""
clipq.services.transfer
Rendering and parsing of export/import payloads.
Overview:
- Turns an ordered list of clips into a json, csv or txt document and turns
    any of them back into SnapshotClip records.
- Performs every check that does not need the database (format support,
    schema version, payload shape) so a bad payload is rejected before the
    store opens a transaction.
Contents:
- render_export(clips, fmt) -> str
- parse_import(fmt, data) -> list[SnapshotClip]
- write_text_atomic(path, text) -> Path
Design Notes:
- json is the lossless format: a versioned Snapshot. csv carries the same
    columns (tags joined with ';') but no version. txt is one clip per line;
    the "N: " prefix written on export is stripped again on import.
- Payload problems other than a version mismatch raise Unsupported.
"""
# endregion
# region Imports
import csv
import io
import json
import os
import re
from pathlib import Path
from typing import List, Sequence, assert_never

from pydantic import ValidationError

from clipq.constants import SCHEMA_VERSION, ClipType, ExportFormat
from clipq.errors import SchemaVersionMismatch, StoreIOError, Unsupported
from clipq.models import Clip, Snapshot, SnapshotClip, read_snapshot_version

# endregion
# region Constants

CSV_COLUMNS: List[str] = ["id", "content", "clip_type", "created_at", "file_path", "tags"]
TAG_SEPARATOR = ";"
TXT_PREFIX = re.compile(r"^\d+: ")

# endregion
# region Rendering


def _csv_file_path(clip: Clip) -> str:
    match clip.clip_type:
        case ClipType.TEXT:
            return ""
        case ClipType.FILE:
            return clip.file_path or clip.content
        case _:
            assert_never(clip.clip_type)


def render_export(clips: Sequence[Clip], fmt: ExportFormat) -> str:
    """
    Serialize clips, newest first, in the requested format.

    Arguments:
        clips (Sequence[Clip]): Clips in list order.
        fmt (ExportFormat): json, csv or txt.

    Returns:
        str: The document.
    """
    fmt = ExportFormat(fmt)
    match fmt:
        case ExportFormat.JSON:
            snapshot = Snapshot(clips=[SnapshotClip.from_clip(c) for c in clips])
            return snapshot.model_dump_json(indent=2) + "\n"
        case ExportFormat.CSV:
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            writer.writerow(CSV_COLUMNS)
            for clip in clips:
                writer.writerow(
                    [
                        clip.id,
                        clip.content,
                        clip.clip_type.value,
                        clip.created_at,
                        _csv_file_path(clip),
                        TAG_SEPARATOR.join(clip.tags),
                    ]
                )
            return buffer.getvalue()
        case ExportFormat.TXT:
            return "".join(f"{i}: {clip.content}\n" for i, clip in enumerate(clips, 1))
        case _:
            assert_never(fmt)


# endregion
# region Parsing


def _parse_json(data: str) -> List[SnapshotClip]:
    try:
        raw = json.loads(data)
    except json.JSONDecodeError as e:
        raise Unsupported(f"Import payload is not valid JSON: {e}") from e

    version = read_snapshot_version(raw)
    if type(version) is not int or version != SCHEMA_VERSION:
        raise SchemaVersionMismatch(version, SCHEMA_VERSION)

    try:
        return Snapshot.model_validate(raw).clips
    except ValidationError as e:
        raise Unsupported(f"Import payload is not a clipq snapshot: {e}") from e


def _parse_csv(data: str) -> List[SnapshotClip]:
    reader = csv.DictReader(io.StringIO(data))
    missing = {"content"} - set(reader.fieldnames or [])
    if missing:
        raise Unsupported("CSV import needs at least a 'content' column.")

    clips: List[SnapshotClip] = []
    for line_number, row in enumerate(reader, 2):
        tags = [t for t in (row.get("tags") or "").split(TAG_SEPARATOR) if t]
        try:
            clips.append(
                SnapshotClip(
                    id=row.get("id") or "",
                    content=row["content"] or "",
                    clip_type=row.get("clip_type") or ClipType.TEXT,
                    created_at=row.get("created_at") or 0,
                    file_path=row.get("file_path") or None,
                    tags=tags,
                )
            )
        except ValidationError as e:
            raise Unsupported(f"CSV line {line_number} is invalid: {e}") from e
    return clips


def _parse_txt(data: str) -> List[SnapshotClip]:
    clips: List[SnapshotClip] = []
    for line in data.splitlines():
        content = TXT_PREFIX.sub("", line.strip(), count=1).strip()
        if content:
            clips.append(SnapshotClip(id="", content=content, created_at=0))
    return clips


def parse_import(fmt: ExportFormat, data: str) -> List[SnapshotClip]:
    """
    Parse an import payload into snapshot clips, newest first.

    Raises:
        SchemaVersionMismatch: A json snapshot carries another schema version.
        Unsupported: The payload is malformed.
    """
    fmt = ExportFormat(fmt)
    match fmt:
        case ExportFormat.JSON:
            return _parse_json(data)
        case ExportFormat.CSV:
            return _parse_csv(data)
        case ExportFormat.TXT:
            return _parse_txt(data)
        case _:
            assert_never(fmt)


# endregion
# region Files


def write_text_atomic(path: Path, text: str) -> Path:
    """Write `text` next to `path` and move it into place in one step."""
    destination = Path(path).expanduser()
    temporary = destination.with_name(destination.name + ".tmp")
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with open(temporary, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(temporary, destination)
    except OSError as e:
        raise StoreIOError(f"Cannot write {destination}: {e}") from e
    return destination


# endregion
