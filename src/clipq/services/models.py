# region Imports

from typing import Dict, Optional

from pydantic import BaseModel, Field

from clipq.constants import ClipType, ExportFormat, ImportMode

# endregion
# region Pydantic Models


class StoreStats(BaseModel):
    """
    Pydantic model describing the store as seen by one read transaction.
    Attributes:
        total (int): Number of clips.
        per_type_counts (Dict[str, int]): Clip count per clip type; every type is present.
        per_tag_counts (Dict[str, int]): Clip count per tag.
        oldest_created_at (Optional[int]): Smallest created_at, None when empty.
        newest_created_at (Optional[int]): Largest created_at, None when empty.
        db_size_kb (int): Size of the database file in KiB.
    """

    total: int = Field(0, description="Number of clips in the history")
    per_type_counts: Dict[str, int] = Field(
        default_factory=lambda: {t.value: 0 for t in ClipType},
        description="Clip count per clip type",
    )
    per_tag_counts: Dict[str, int] = Field(
        default_factory=dict, description="Clip count per tag"
    )
    oldest_created_at: Optional[int] = Field(
        None, description="Epoch seconds of the oldest clip"
    )
    newest_created_at: Optional[int] = Field(
        None, description="Epoch seconds of the newest clip"
    )
    db_size_kb: int = Field(0, description="Size of the database file in KiB")


class ImportResult(BaseModel):
    """
    Pydantic model summarising one import.
    Attributes:
        format (ExportFormat): Payload format.
        mode (ImportMode): merge or replace.
        received (int): Clips found in the payload.
        created (int): Clips that became new rows.
        deduplicated (int): Clips folded into an existing clip with the same fingerprint.
        evicted (int): Clips removed afterwards to respect max_clips.
        total (int): Clips in the store once the import committed.
    """

    format: ExportFormat = Field(..., description="Payload format")
    mode: ImportMode = Field(..., description="merge or replace")
    received: int = Field(0, description="Clips found in the payload")
    created: int = Field(0, description="Clips that became new rows")
    deduplicated: int = Field(
        0, description="Clips folded into an existing clip with the same fingerprint"
    )
    evicted: int = Field(0, description="Clips evicted to respect max_clips")
    total: int = Field(0, description="Clips in the store after the import")


# endregion
