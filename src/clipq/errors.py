# region Docstring
"""
clipq.errors
Error taxonomy shared by the history store, the change detector and the CLI.
Overview:
- Every failure a store operation can report derives from ClipqError.
- Each error carries a short `kind` label and a distinct process `exit_code`
    so the CLI can translate it without inspecting messages.
Contents:
- ClipqError: Base class.
- StoreBusy: Lock contention persisted past the retry budget. Retryable.
- NotFound: The operation targets an unknown clip id (or missing file).
- Unsupported: The request is valid but disabled or not implemented
    (file clips while disabled, unknown import payloads).
- SchemaVersionMismatch: A snapshot or backup was written by an incompatible
    schema version. Nothing is applied.
- CapacityInvariantViolation: The store observed more clips than max_clips
    after eviction. Indicates a defect; the transaction is rolled back.
- StoreIOError: The database could not be opened, read or written.
"""
# endregion


class ClipqError(Exception):
    """Base class for all clipq store errors."""

    kind: str = "error"
    exit_code: int = 1


class NotFound(ClipqError):
    kind = "not-found"
    exit_code = 3


class Unsupported(ClipqError):
    kind = "unsupported"
    exit_code = 4


class SchemaVersionMismatch(ClipqError):
    kind = "schema-version-mismatch"
    exit_code = 5

    def __init__(self, found: object, expected: int) -> None:
        super().__init__(
            f"Schema version {found!r} is not supported (expected {expected})."
        )
        self.found = found
        self.expected = expected


class StoreBusy(ClipqError):
    kind = "store-busy"
    exit_code = 6


class StoreIOError(ClipqError):
    kind = "io-error"
    exit_code = 7


class CapacityInvariantViolation(ClipqError):
    kind = "capacity-invariant-violation"
    exit_code = 8

    def __init__(self, count: int, max_clips: int) -> None:
        super().__init__(
            f"History holds {count} clips after eviction; the cap is {max_clips}."
        )
        self.count = count
        self.max_clips = max_clips


__all__ = [
    "ClipqError",
    "NotFound",
    "Unsupported",
    "SchemaVersionMismatch",
    "StoreBusy",
    "StoreIOError",
    "CapacityInvariantViolation",
]
