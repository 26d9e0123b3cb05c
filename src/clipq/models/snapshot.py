# region Docstring
"""
clipq.models.snapshot
Pydantic models for the self-describing export snapshot.
Overview:
- A Snapshot is the lossless serialization of a whole store: schema version,
    export timestamp and every clip with its tags, newest first.
Contents:
- SnapshotClip: One exported clip.
- Snapshot: The versioned envelope.
- read_snapshot_version: Pull the version out of raw JSON before full
    validation, so a newer snapshot is rejected as a version mismatch rather
    than as a validation error.
Design Notes:
- created_at stays in epoch seconds, the unit it is persisted in; exported_at
    is serialized as an ISO 8601 string.
"""
# endregion
# region Imports
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from clipq.constants import SCHEMA_VERSION, ClipType
from clipq.utils import get_time

from .history import Clip

# endregion
# region Models


class SnapshotClip(BaseModel):
    id: str = Field(..., description="Identifier the clip had in the exporting store")
    content: str = Field(..., description="Clip text, or the path of a file clip")
    clip_type: ClipType = Field(ClipType.TEXT, description="Kind of clip")
    created_at: int = Field(..., description="Epoch seconds of the last submission")
    file_path: Optional[str] = Field(None, description="Path for file clips")
    tags: List[str] = Field(default_factory=list, description="Tags on the clip")

    @field_validator("tags")
    def dedupe_tags(cls, v: List[str]) -> List[str]:
        return sorted(set(v))

    @classmethod
    def from_clip(cls, clip: Clip) -> "SnapshotClip":
        return cls(
            id=clip.id,
            content=clip.content,
            clip_type=clip.clip_type,
            created_at=clip.created_at,
            file_path=clip.file_path,
            tags=clip.tags,
        )


class Snapshot(BaseModel):
    version: int = Field(SCHEMA_VERSION, description="Snapshot schema version")
    exported_at: datetime = Field(
        default_factory=get_time, description="When the snapshot was taken"
    )
    clips: List[SnapshotClip] = Field(
        default_factory=list, description="All clips, newest first"
    )

    @field_serializer("exported_at")
    def serialize_exported_at(self, value: datetime) -> str:
        return value.isoformat()


def read_snapshot_version(raw: Any) -> Any:
    """
    Return the `version` member of a decoded snapshot, or None when absent.

    Example:
        >>> read_snapshot_version({"version": 1, "clips": []})
        1
    """
    if isinstance(raw, dict):
        return raw.get("version")
    return None


# endregion

__all__ = ["Snapshot", "SnapshotClip", "read_snapshot_version"]
