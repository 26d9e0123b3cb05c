# region Docstring
"""
clipq.services.history_store
The bounded, deduplicated, persisted clipboard history.
Overview:
    - HistoryStore is the single owner of clip records and their tags. Every
      public method is one transaction: mutations run through
      DatabaseSessionGenerator.run_write, queries through run_read.
    - Separate processes (the daemon and any number of CLI invocations) open
      their own HistoryStore on the same database file; SQLite's locking is
      the only coordination between them.
Contents:
    - HistoryStore:
        Methods:
            - open(settings, logger, clock) -> HistoryStore
            - insert(content, clip_type, file_path) -> str
            - get(clip_id) -> Clip
            - list_clips(limit, offset) -> list[Clip]
            - search(query, limit, offset) -> list[Clip]
            - tag(clip_id, tag) / untag(clip_id, tag)
            - tags() -> dict[str, list[Clip]]
            - clips_by_tag(tag) -> list[Clip]
            - delete(clip_id) / clear()
            - count() / stats()
            - export(fmt) -> str
            - import_data(fmt, data, mode) -> ImportResult
            - backup(path) -> Path
            - restore(path) -> int
            - close()
Design Notes:
    - Dedup: the fingerprint column is unique. Submitting known content moves
      the existing clip to the front (new created_at and seq) and keeps its id.
    - Eviction runs inside the same transaction as the write that overflowed
      the cap, oldest first, until count == max_clips. A final count check
      raises CapacityInvariantViolation, rolling the transaction back.
    - Tags are rows keyed by (clip_id, tag); deleting clips deletes their tag
      rows first in the same transaction.
    - Imports and restores parse and validate their source before the write
      transaction starts; any error inside the transaction rolls everything
      back, so a failed import or restore leaves the store untouched.
"""

# endregion
# region Imports
import itertools
import os
import sqlite3
from logging import Logger as T_Logger
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple, assert_never
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session
from sqlite_utils import Database

from clipq.config import ClipqSettings
from clipq.constants import (
    SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    ClipType,
    ExportFormat,
    ImportMode,
)
from clipq.database import DatabaseSessionGenerator as DBSession
from clipq.errors import (
    CapacityInvariantViolation,
    NotFound,
    SchemaVersionMismatch,
    StoreIOError,
    Unsupported,
)
from clipq.logger import logger as _logger
from clipq.models import (
    EVICTION_ORDER,
    RECENCY_ORDER,
    Clip,
    ClipEntity,
    ClipTagEntity,
    SnapshotClip,
)
from clipq.utils import compute_fingerprint, epoch_now, get_sqlite_tables

from .models import ImportResult, StoreStats
from .transfer import parse_import, render_export

# endregion
# region History Store


class HistoryStore:
    __db: DBSession
    __settings: ClipqSettings
    __logger: T_Logger
    __clock: Callable[[], int]

    def __init__(
        self,
        db: DBSession,
        settings: ClipqSettings,
        logger: Optional[T_Logger] = None,
        clock: Callable[[], int] = epoch_now,
    ) -> None:
        self.__db = db
        self.__settings = settings
        self.__logger = (logger or _logger).getChild(self.__class__.__name__)
        self.__clock = clock

    @classmethod
    def open(
        cls,
        settings: ClipqSettings,
        logger: Optional[T_Logger] = None,
        clock: Callable[[], int] = epoch_now,
    ) -> "HistoryStore":
        """
        Open (creating if needed) the store at settings.database_path.

        Raises:
            StoreIOError: The database cannot be created or opened.
            SchemaVersionMismatch: The database belongs to another schema version.
        """
        db = DBSession(settings, logger)
        try:
            db.init_db()
        except BaseException:
            db.dispose()
            raise
        return cls(db, settings, logger, clock)

    def close(self) -> None:
        self.__db.dispose()

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def max_clips(self) -> int:
        return self.__settings.max_clips

    @property
    def database_path(self) -> Path:
        return self.__db.database_path

    # region Writes

    def insert(
        self,
        content: str,
        clip_type: ClipType = ClipType.TEXT,
        file_path: Optional[str] = None,
    ) -> str:
        """
        Record `content`, deduplicating by fingerprint and evicting past the cap.

        Arguments:
            content (str): Clip text, or the path for file clips.
            clip_type (ClipType): TEXT or FILE.
            file_path (Optional[str]): Path of a file clip; defaults to content.

        Returns:
            str: Id of the new clip, or of the existing clip moved to the front.

        Raises:
            Unsupported: A file clip was submitted while file clips are disabled.
            StoreBusy: The write lock could not be taken.
        """
        clip_type, file_path = self._validate_type(clip_type, content, file_path)
        now = self.__clock()

        def operation(session: Session) -> Tuple[str, bool, int]:
            seq = self._seq_counter(session)
            entity, created = self._upsert(
                session, content, clip_type, file_path, now, seq, always_touch=True
            )
            clip_id = entity.id
            evicted = self._evict(session)
            self._assert_capacity(session)
            return clip_id, created, evicted

        clip_id, created, evicted = self.__db.run_write(operation)
        if created:
            self.__logger.info("Inserted %s clip %s.", clip_type.value, clip_id)
        else:
            self.__logger.info("Moved existing clip %s to the front.", clip_id)
        if evicted:
            self.__logger.debug("Evicted %s clip(s) to respect max_clips=%s.", evicted, self.max_clips)
        return clip_id

    def tag(self, clip_id: str, tag: str) -> None:
        """Attach `tag` to a clip. Re-adding an existing tag is a no-op."""
        tag = self._validate_tag(tag)

        def operation(session: Session) -> bool:
            self._require(session, clip_id)
            if session.get(ClipTagEntity, (clip_id, tag)) is not None:
                return False
            session.add(ClipTagEntity(clip_id=clip_id, tag=tag))
            return True

        if self.__db.run_write(operation):
            self.__logger.info("Tagged clip %s with '%s'.", clip_id, tag)

    def untag(self, clip_id: str, tag: str) -> bool:
        """Detach `tag` from a clip; returns whether it was attached."""
        tag = self._validate_tag(tag)

        def operation(session: Session) -> bool:
            self._require(session, clip_id)
            existing = session.get(ClipTagEntity, (clip_id, tag))
            if existing is None:
                return False
            session.delete(existing)
            return True

        removed = self.__db.run_write(operation)
        if removed:
            self.__logger.info("Removed tag '%s' from clip %s.", tag, clip_id)
        return removed

    def delete(self, clip_id: str) -> None:
        """Delete one clip together with its tags."""

        def operation(session: Session) -> None:
            self._require(session, clip_id)
            self._delete_ids(session, [clip_id])

        self.__db.run_write(operation)
        self.__logger.info("Deleted clip %s.", clip_id)

    def clear(self) -> int:
        """Delete every clip and tag; returns how many clips were removed."""

        def operation(session: Session) -> int:
            removed = self._count(session)
            self._delete_all(session)
            return removed

        removed = self.__db.run_write(operation)
        self.__logger.info("Cleared %s clip(s).", removed)
        return removed

    # endregion
    # region Reads

    def get(self, clip_id: str) -> Clip:
        return self.__db.run_read(lambda session: self._require(session, clip_id).model)

    def count(self) -> int:
        return self.__db.run_read(self._count)

    def list_clips(self, limit: Optional[int] = None, offset: int = 0) -> List[Clip]:
        """
        Clips newest first, optionally bounded.

        `offset` restarts the listing at a position; it is not a live cursor,
        so writes between two calls can shift what a given offset returns.
        """
        self._validate_window(limit, offset)
        statement = select(ClipEntity).order_by(*RECENCY_ORDER).offset(offset)
        if limit is not None:
            statement = statement.limit(limit)
        return self.__db.run_read(
            lambda session: [e.model for e in session.scalars(statement)]
        )

    def search(
        self, query: str, limit: Optional[int] = None, offset: int = 0
    ) -> List[Clip]:
        """Case-insensitive substring search over content, newest first."""
        self._validate_window(limit, offset)
        needle = query.casefold()
        statement = (
            select(ClipEntity)
            .where(func.instr(func.casefold(ClipEntity.content), needle) > 0)
            .order_by(*RECENCY_ORDER)
            .offset(offset)
        )
        if limit is not None:
            statement = statement.limit(limit)
        return self.__db.run_read(
            lambda session: [e.model for e in session.scalars(statement)]
        )

    def tags(self) -> Dict[str, List[Clip]]:
        """Every tag mapped to its clips, tags sorted, clips newest first."""
        statement = (
            select(ClipTagEntity.tag, ClipEntity)
            .join(ClipEntity, ClipEntity.id == ClipTagEntity.clip_id)
            .order_by(ClipTagEntity.tag, *RECENCY_ORDER)
        )

        def operation(session: Session) -> Dict[str, List[Clip]]:
            grouped: Dict[str, List[Clip]] = {}
            for tag, entity in session.execute(statement):
                grouped.setdefault(tag, []).append(entity.model)
            return grouped

        return self.__db.run_read(operation)

    def clips_by_tag(self, tag: str) -> List[Clip]:
        statement = (
            select(ClipEntity)
            .join(ClipTagEntity, ClipEntity.id == ClipTagEntity.clip_id)
            .where(ClipTagEntity.tag == tag)
            .order_by(*RECENCY_ORDER)
        )
        return self.__db.run_read(
            lambda session: [e.model for e in session.scalars(statement)]
        )

    def stats(self) -> StoreStats:
        """Totals, per-type and per-tag counts and the created_at range, from one read transaction."""

        def operation(session: Session) -> StoreStats:
            stats = StoreStats()
            for clip_type, count in session.execute(
                select(ClipEntity.clip_type, func.count()).group_by(ClipEntity.clip_type)
            ):
                stats.per_type_counts[ClipType(clip_type).value] = count
            stats.per_tag_counts = {
                tag: count
                for tag, count in session.execute(
                    select(ClipTagEntity.tag, func.count())
                    .group_by(ClipTagEntity.tag)
                    .order_by(ClipTagEntity.tag)
                )
            }
            total, oldest, newest = session.execute(
                select(
                    func.count(),
                    func.min(ClipEntity.created_at),
                    func.max(ClipEntity.created_at),
                ).select_from(ClipEntity)
            ).one()
            stats.total = total
            stats.oldest_created_at = oldest
            stats.newest_created_at = newest
            return stats

        stats = self.__db.run_read(operation)
        try:
            stats.db_size_kb = os.path.getsize(self.database_path) // 1024
        except OSError:
            stats.db_size_kb = 0
        return stats

    # endregion
    # region Export / Import / Backup / Restore

    def export(self, fmt: ExportFormat = ExportFormat.JSON) -> str:
        """Serialize every clip, newest first, from one read transaction."""
        clips = self.list_clips()
        return render_export(clips, fmt)

    def import_data(
        self,
        fmt: ExportFormat,
        data: str,
        mode: ImportMode = ImportMode.MERGE,
    ) -> ImportResult:
        """
        Import an exported payload.

        merge:   every clip is submitted like insert, oldest first, at the
                 current time: new content gets a fresh id, a duplicate moves
                 its existing clip to the front. Tags are unioned.
        replace: the store is emptied and refilled, keeping the snapshot's
                 ids and timestamps.
        Either way the cap is enforced before the transaction commits.

        Raises:
            SchemaVersionMismatch: The snapshot's version differs. Nothing is applied.
            Unsupported: The payload is malformed, or holds file clips while
                file clips are disabled. Nothing is applied.
        """
        fmt = ExportFormat(fmt)
        mode = ImportMode(mode)
        clips = parse_import(fmt, data)
        for clip in clips:
            self._validate_type(clip.clip_type, clip.content, clip.file_path)

        def operation(session: Session) -> ImportResult:
            result = ImportResult(format=fmt, mode=mode, received=len(clips))
            match mode:
                case ImportMode.REPLACE:
                    self._delete_all(session)
                    keep_ids, submitted_at = True, None
                case ImportMode.MERGE:
                    keep_ids, submitted_at = False, self.__clock()
                case _:
                    assert_never(mode)
            created, deduplicated = self._load(
                session, clips, keep_ids, submitted_at
            )
            result.created = created
            result.deduplicated = deduplicated
            result.evicted = self._evict(session)
            self._assert_capacity(session)
            result.total = self._count(session)
            return result

        result = self.__db.run_write(operation)
        self.__logger.info(
            "Imported %s clip(s) from %s (%s): %s created, %s deduplicated, %s evicted.",
            result.received,
            fmt.value,
            mode.value,
            result.created,
            result.deduplicated,
            result.evicted,
        )
        return result

    def backup(self, path: Path) -> Path:
        """Write a consistent copy of the whole store to `path`."""
        destination = self.__db.backup_to(path)
        self.__logger.info("Backed up store to %s.", destination)
        return destination

    def restore(self, path: Path) -> int:
        """
        Replace the store's contents with those of a backup file.

        The backup is read and validated first; the replacement then happens
        in one write transaction. Returns the number of clips restored.

        Raises:
            StoreIOError: The backup is missing or unreadable.
            SchemaVersionMismatch: The backup belongs to another schema version.
        """
        source = Path(path).expanduser()
        clips = self._read_backup(source)
        for clip in clips:
            self._validate_type(clip.clip_type, clip.content, clip.file_path)

        def operation(session: Session) -> int:
            self._delete_all(session)
            self._load(session, clips, keep_ids=True)
            self._evict(session)
            self._assert_capacity(session)
            return self._count(session)

        restored = self.__db.run_write(operation)
        self.__logger.info("Restored %s clip(s) from %s.", restored, source)
        return restored

    # endregion
    # region Internals

    def _validate_type(
        self, clip_type: ClipType, content: str, file_path: Optional[str]
    ) -> Tuple[ClipType, Optional[str]]:
        clip_type = ClipType(clip_type)
        match clip_type:
            case ClipType.TEXT:
                return clip_type, None
            case ClipType.FILE:
                if not self.__settings.enable_file_clips:
                    raise Unsupported("File clips are disabled (enable_file_clips=false).")
                return clip_type, file_path or content
            case _:
                assert_never(clip_type)

    @staticmethod
    def _validate_tag(tag: str) -> str:
        cleaned = tag.strip()
        if not cleaned:
            raise Unsupported("Tags must contain at least one non-blank character.")
        return cleaned

    @staticmethod
    def _validate_window(limit: Optional[int], offset: int) -> None:
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        if offset < 0:
            raise ValueError("offset must be >= 0")

    @staticmethod
    def _require(session: Session, clip_id: str) -> ClipEntity:
        entity = session.get(ClipEntity, clip_id)
        if entity is None:
            raise NotFound(f"No clip with id {clip_id!r}.")
        return entity

    @staticmethod
    def _count(session: Session) -> int:
        return session.scalar(select(func.count()).select_from(ClipEntity)) or 0

    @staticmethod
    def _seq_counter(session: Session) -> Iterator[int]:
        current = session.scalar(select(func.max(ClipEntity.seq))) or 0
        return itertools.count(current + 1)

    def _upsert(
        self,
        session: Session,
        content: str,
        clip_type: ClipType,
        file_path: Optional[str],
        created_at: int,
        seq: Iterator[int],
        always_touch: bool,
        clip_id: Optional[str] = None,
    ) -> Tuple[ClipEntity, bool]:
        fingerprint = compute_fingerprint(content, clip_type)
        existing = session.scalar(
            select(ClipEntity).where(ClipEntity.fingerprint == fingerprint)
        )
        if existing is not None:
            if always_touch or created_at > existing.created_at:
                existing.created_at = created_at
                existing.seq = next(seq)
            return existing, False

        if clip_id is None or session.get(ClipEntity, clip_id) is not None:
            clip_id = str(uuid4())
        entity = ClipEntity(
            id=clip_id,
            content=content,
            clip_type=clip_type,
            created_at=created_at,
            file_path=file_path,
            fingerprint=fingerprint,
            seq=next(seq),
        )
        session.add(entity)
        return entity, True

    def _load(
        self,
        session: Session,
        clips: List[SnapshotClip],
        keep_ids: bool,
        submitted_at: Optional[int] = None,
    ) -> Tuple[int, int]:
        """
        Upsert snapshot clips oldest first so seq follows their order.

        With `submitted_at` every clip is inserted at that time and duplicates
        move to the front; without it the snapshot's timestamps are kept.
        """
        seq = self._seq_counter(session)
        created = deduplicated = 0
        for clip in reversed(clips):
            clip_type, file_path = self._validate_type(
                clip.clip_type, clip.content, clip.file_path
            )
            entity, is_new = self._upsert(
                session,
                clip.content,
                clip_type,
                file_path,
                clip.created_at if submitted_at is None else submitted_at,
                seq,
                always_touch=submitted_at is not None,
                clip_id=(clip.id or None) if keep_ids else None,
            )
            if is_new:
                created += 1
            else:
                deduplicated += 1
            known = set(entity.tag_names)
            for tag in clip.tags:
                tag = tag.strip()
                if tag and tag not in known:
                    entity.tags.append(ClipTagEntity(tag=tag))
                    known.add(tag)
        session.flush()
        return created, deduplicated

    def _evict(self, session: Session) -> int:
        excess = self._count(session) - self.max_clips
        if excess <= 0:
            return 0
        victims = session.scalars(
            select(ClipEntity.id).order_by(*EVICTION_ORDER).limit(excess)
        ).all()
        self._delete_ids(session, list(victims))
        return len(victims)

    @staticmethod
    def _delete_ids(session: Session, clip_ids: List[str]) -> None:
        if not clip_ids:
            return
        session.execute(
            delete(ClipTagEntity).where(ClipTagEntity.clip_id.in_(clip_ids)),
            execution_options={"synchronize_session": False},
        )
        session.execute(
            delete(ClipEntity).where(ClipEntity.id.in_(clip_ids)),
            execution_options={"synchronize_session": False},
        )
        session.expire_all()

    @staticmethod
    def _delete_all(session: Session) -> None:
        session.execute(
            delete(ClipTagEntity), execution_options={"synchronize_session": False}
        )
        session.execute(
            delete(ClipEntity), execution_options={"synchronize_session": False}
        )
        session.expunge_all()

    def _assert_capacity(self, session: Session) -> None:
        count = self._count(session)
        if count > self.max_clips:
            raise CapacityInvariantViolation(count, self.max_clips)

    def _read_backup(self, source: Path) -> List[SnapshotClip]:
        if not source.is_file():
            raise StoreIOError(f"Backup file {source} does not exist.")
        try:
            tables = set(get_sqlite_tables(source))
        except ValueError as e:
            raise StoreIOError(str(e)) from e
        if not {"clips", "clip_tags", "store_meta"} <= tables:
            raise SchemaVersionMismatch(None, SCHEMA_VERSION)

        try:
            backup = Database(source.as_posix())
        except sqlite3.DatabaseError as e:
            raise StoreIOError(f"Backup file {source} is unreadable: {e}") from e
        try:
            meta = {row["key"]: row["value"] for row in backup["store_meta"].rows}
            version = meta.get(SCHEMA_VERSION_KEY)
            if version != str(SCHEMA_VERSION):
                raise SchemaVersionMismatch(version, SCHEMA_VERSION)

            tags: Dict[str, List[str]] = {}
            for row in backup["clip_tags"].rows:
                tags.setdefault(row["clip_id"], []).append(row["tag"])
            rows = backup["clips"].rows_where(
                order_by="created_at desc, seq desc, id desc"
            )
            return [
                SnapshotClip(
                    id=row["id"],
                    content=row["content"],
                    clip_type=row["clip_type"],
                    created_at=row["created_at"],
                    file_path=row["file_path"],
                    tags=tags.get(row["id"], []),
                )
                for row in rows
            ]
        except ValidationError as e:
            raise StoreIOError(f"Backup file {source} holds invalid clips: {e}") from e
        except sqlite3.DatabaseError as e:
            raise StoreIOError(f"Backup file {source} is corrupt: {e}") from e
        finally:
            backup.close()

    # endregion


# endregion
