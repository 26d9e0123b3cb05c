"""
clipq.models.history
Package initialization for clipboard history persistence and domain models.
Contents:
- Entity Models:
    - ClipEntity, ClipTagEntity, StoreMetaEntity
- Domain Models:
    - Clip
"""

from .clip import (  # noqa: F401
    EVICTION_ORDER,
    RECENCY_ORDER,
    Clip,
    ClipEntity,
    ClipTagEntity,
    StoreMetaEntity,
)


__entities__ = ["ClipEntity", "ClipTagEntity", "StoreMetaEntity"]
__models__ = ["Clip"]
__all__ = [*__entities__, *__models__, "RECENCY_ORDER", "EVICTION_ORDER"]
