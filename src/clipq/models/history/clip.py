# region Docstring
"""
clipq.models.history.clip
Persistence and domain models for clipboard history entries and their tags.
Overview:
- Provides SQLAlchemy entities for clips, their tag associations and the
    store's metadata rows.
- Provides Pydantic models mirroring the persisted clip for safe I/O,
    validation and serialization.
Contents:
- SQLAlchemy entities:
    - ClipEntity:
        One row per clip: opaque id, content, clip type, created_at (epoch
        seconds), optional file path, unique fingerprint and the recency
        sequence number. The .model property converts to a Clip.
    - ClipTagEntity:
        Association of a clip id with one tag string. The pair is the primary
        key, giving set semantics; rows cascade away with their clip.
    - StoreMetaEntity:
        Key/value rows describing the store itself (schema version).
- Pydantic models:
    - Clip:
        The domain view of a clip, including its sorted tag list.
- Ordering:
    - RECENCY_ORDER / EVICTION_ORDER: ORDER BY clauses giving a strict total
        order newest-first and oldest-first respectively.
Design notes:
- created_at has one-second resolution, so ties are common. seq is a per-store
    counter bumped on every insert and move-to-front; it breaks ties before the
    id does, keeping the order faithful to the order clips were submitted.
- clip_type is persisted through a non-native Enum column, so only "text" and
    "file" ever reach the database.
"""
# endregion
# region Imports
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clipq.constants import ClipType
from clipq.database import Base


# endregion
# region SQLAlchemy Models
class ClipEntity(Base):
    """
    Model representing one clip in the history.
    Attributes:
        id (str): Primary key, assigned once and never reused.
        content (str): Clip text, or the absolute path for file clips.
        clip_type (ClipType): TEXT or FILE.
        created_at (int): Epoch seconds of the latest submission.
        file_path (Optional[str]): Path for file clips.
        fingerprint (str): Content hash used for deduplication.
        seq (int): Recency sequence number, unique within a store.
    """

    __tablename__ = "clips"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    clip_type: Mapped[ClipType] = mapped_column(
        Enum(
            ClipType,
            native_enum=False,
            length=8,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=False,
        index=True,
    )
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    tags: Mapped[List["ClipTagEntity"]] = relationship(
        back_populates="clip",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="ClipTagEntity.tag",
    )

    def __repr__(self) -> str:
        return f"<Clip(id={self.id}, clip_type='{self.clip_type.value}', created_at={self.created_at})>"

    @property
    def tag_names(self) -> List[str]:
        return [t.tag for t in self.tags]

    @property
    def model(self) -> "Clip":
        return Clip(
            id=self.id,
            content=self.content,
            clip_type=self.clip_type,
            created_at=self.created_at,
            file_path=self.file_path,
            fingerprint=self.fingerprint,
            tags=self.tag_names,
        )


class ClipTagEntity(Base):
    """
    Model representing one tag attached to one clip.
    Attributes:
        clip_id (str): Owning clip, deleted together with it.
        tag (str): Tag text.
    """

    __tablename__ = "clip_tags"

    clip_id: Mapped[str] = mapped_column(
        String, ForeignKey("clips.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String, primary_key=True, index=True)

    clip: Mapped[ClipEntity] = relationship(back_populates="tags")

    def __repr__(self) -> str:
        return f"<ClipTag(clip_id={self.clip_id}, tag='{self.tag}')>"


class StoreMetaEntity(Base):
    """Key/value metadata about the store (schema version)."""

    __tablename__ = "store_meta"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(String, nullable=False)


Index(
    "idx_clips_created_at",
    ClipEntity.created_at.desc(),
    ClipEntity.seq.desc(),
)

RECENCY_ORDER = (
    ClipEntity.created_at.desc(),
    ClipEntity.seq.desc(),
    ClipEntity.id.desc(),
)
"""ORDER BY for newest-first listings."""
EVICTION_ORDER = (
    ClipEntity.created_at.asc(),
    ClipEntity.seq.asc(),
    ClipEntity.id.asc(),
)
"""ORDER BY for picking eviction victims, oldest first."""


# endregion
# region Pydantic Model
class Clip(BaseModel):
    id: str = Field(..., description="Stable opaque identifier of the clip")
    content: str = Field(..., description="Clip text, or the path of a file clip")
    clip_type: ClipType = Field(ClipType.TEXT, description="Kind of clip (text or file)")
    created_at: int = Field(
        ..., description="Epoch seconds of the most recent submission"
    )
    file_path: Optional[str] = Field(None, description="Path for file clips")
    fingerprint: str = Field(..., description="Content hash used for deduplication")
    tags: List[str] = Field(default_factory=list, description="Tags, sorted")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "id": "5f0c3c9e-3c1e-4b7a-9f55-0d3c2f1a9b11",
                    "content": "Sample clipboard text",
                    "clip_type": "text",
                    "created_at": 1704110400,
                    "file_path": None,
                    "fingerprint": "9f86d081884c7d659a2feaa0c55ad015...",
                    "tags": ["work"],
                }
            ]
        },
        from_attributes=True,
    )


# endregion

__all__ = [
    "ClipEntity",
    "ClipTagEntity",
    "StoreMetaEntity",
    "Clip",
    "RECENCY_ORDER",
    "EVICTION_ORDER",
]
