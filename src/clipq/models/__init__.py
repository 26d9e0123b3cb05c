# region Docstring
"""
clipq.models
Centralized imports for the Pydantic models and SQLAlchemy entities of clipq.

Contents:
- History Models:
        - ClipEntity / ClipTagEntity / StoreMetaEntity (persistence)
        - Clip (domain view of a persisted clip)
- Snapshot Models:
        - Snapshot / SnapshotClip (export and import payload)

Exports:
- entities: SQLAlchemy entity class names
- models: Pydantic model class names
- __all__: Combined export list
"""
# endregion
# region Imports
from .history import (  # noqa: F401
    EVICTION_ORDER,
    RECENCY_ORDER,
    Clip,
    ClipEntity,
    ClipTagEntity,
    StoreMetaEntity,
)
from .snapshot import Snapshot, SnapshotClip, read_snapshot_version  # noqa: F401

# endregion

entities = [
    "ClipEntity",
    "ClipTagEntity",
    "StoreMetaEntity",
]
"""
Entity classes for database persistence.
"""

models = [
    "Clip",
    "Snapshot",
    "SnapshotClip",
]
"""
Pydantic model classes for application logic and I/O.
"""

__all__ = entities + models + ["EVICTION_ORDER", "RECENCY_ORDER", "read_snapshot_version"]
