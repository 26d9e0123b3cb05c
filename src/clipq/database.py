"""
clipq.database

Shared SQLAlchemy declarative base and transaction management for the history store.

Overview:
- Provides a single `declarative_base()` instance (`Base`) inherited by every
    clipq ORM entity.
- Provides `DatabaseSessionGenerator`, the only way clipq code touches the
    database: each call runs one operation inside one transaction.

Contents:
- Base:
    Singleton `declarative_base` instance.

- DatabaseSessionGenerator:
    - __init__(settings: ClipqSettings, logger):
        Builds a writer engine and a reader engine on the same SQLite file.
    - run_write(operation) -> T:
        Runs `operation(session)` inside a `BEGIN IMMEDIATE` transaction and
        commits. Lock contention is retried with exponential backoff and
        surfaces as StoreBusy once the budget is spent.
    - run_read(operation) -> T:
        Runs `operation(session)` inside a deferred read transaction and rolls
        it back. Every query in the operation sees one snapshot.
    - init_db():
        Creates the database directory, checks the schema version through a
        read transaction, and creates the tables and stamp only when missing.
    - backup_to(path):
        Writes a point-in-time copy of the database with SQLite's online
        backup API, atomically moved into place.
    - dispose():
        Releases pooled connections.

Design Notes:
- Processes, not threads, share the store. Coordination relies entirely on
    SQLite locking: WAL journal mode lets readers proceed while one writer
    holds the write lock, and writers take that lock up front with
    BEGIN IMMEDIATE so two writers never deadlock upgrading a read lock.
- pysqlite's implicit transaction handling is switched off on connect so the
    "begin" event can emit the BEGIN statement for each engine.
- Sessions never outlive an operation. Leaving the `with` block closes the
    session, which rolls back anything uncommitted, including on
    KeyboardInterrupt.
"""

import os
import sqlite3
import time
from logging import Logger as T_Logger
from pathlib import Path
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine, event, exc, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from clipq.config import ClipqSettings
from clipq.constants import SCHEMA_VERSION, SCHEMA_VERSION_KEY
from clipq.errors import SchemaVersionMismatch, StoreBusy, StoreIOError
from clipq.logger import logger as _logger


Base = declarative_base()
"""Singleton `declarative_base` instance for ORM models."""

T = TypeVar("T")


def is_busy_error(error: BaseException) -> bool:
    """True when a database error reports lock contention."""
    message = str(getattr(error, "orig", None) or error).lower()
    return "database is locked" in message or "busy" in message


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def _install_sqlite_hooks(engine: Engine, begin_statement: str) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # SQLite's lower() only folds ASCII
        dbapi_connection.create_function(
            "casefold", 1, _casefold, deterministic=True
        )

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin_statement)


class DatabaseSessionGenerator:
    """
    Runs store operations in short, single-purpose SQLite transactions.

    Attributes:
        database_path (Path): The SQLite file.
        engine (Engine): Writer engine, transactions begin IMMEDIATE.
        read_engine (Engine): Reader engine, transactions begin DEFERRED.
    """

    def __init__(
        self, settings: ClipqSettings, logger: Optional[T_Logger] = None
    ) -> None:
        self.database_path = Path(settings.database_path)
        self.busy_retries = settings.busy_retries
        self.busy_backoff = settings.busy_backoff
        self.__logger = (logger or _logger).getChild(self.__class__.__name__)

        url = f"sqlite:///{self.database_path.as_posix()}"
        connect_args = {"timeout": settings.busy_timeout}
        self.engine = create_engine(url, connect_args=connect_args)
        self.read_engine = create_engine(url, connect_args=connect_args)
        _install_sqlite_hooks(self.engine, "BEGIN IMMEDIATE")
        _install_sqlite_hooks(self.read_engine, "BEGIN")

        self._write_sessions = sessionmaker(
            bind=self.engine, autoflush=True, expire_on_commit=False
        )
        self._read_sessions = sessionmaker(
            bind=self.read_engine, autoflush=False, expire_on_commit=False
        )

    def run_write(self, operation: Callable[[Session], T]) -> T:
        """
        Run `operation` in one write transaction and commit it.

        Raises:
            StoreBusy: The write lock stayed unavailable for every attempt.
            StoreIOError: The database file could not be opened or written.
        """

        def attempt() -> T:
            with self._write_sessions() as session:
                result = operation(session)
                session.commit()
                return result

        return self._with_retries(attempt, "write")

    def run_read(self, operation: Callable[[Session], T]) -> T:
        """Run `operation` in one read transaction; nothing is committed."""

        def attempt() -> T:
            with self._read_sessions() as session:
                return operation(session)

        return self._with_retries(attempt, "read")

    def init_db(self) -> None:
        """
        Check the schema version, creating the tables and stamp on first use.

        An existing store is only inspected through the reader engine, so
        opening one never waits on a writer. The write lock is taken only when
        tables or the version stamp are missing.

        Raises:
            StoreIOError: The directory or file cannot be created or opened.
            SchemaVersionMismatch: The file was written by another schema version.
        """
        from clipq.models.history import StoreMetaEntity

        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(
                f"Cannot create database directory {self.database_path.parent}: {e}"
            ) from e

        def inspect_schema(session: Session) -> Optional[str]:
            present = set(
                session.scalars(
                    text("SELECT name FROM sqlite_master WHERE type = 'table'")
                )
            )
            if not set(Base.metadata.tables) <= present:
                return None
            row = session.get(StoreMetaEntity, SCHEMA_VERSION_KEY)
            return row.value if row is not None else None

        def stamp(session: Session) -> str:
            row = session.get(StoreMetaEntity, SCHEMA_VERSION_KEY)
            if row is None:
                row = StoreMetaEntity(key=SCHEMA_VERSION_KEY, value=str(SCHEMA_VERSION))
                session.add(row)
            return row.value

        found = self.run_read(inspect_schema)
        if found is None:
            self._with_retries(lambda: Base.metadata.create_all(self.engine), "schema")
            found = self.run_write(stamp)
            self.__logger.info("Initialised store schema at %s.", self.database_path)
        if found != str(SCHEMA_VERSION):
            raise SchemaVersionMismatch(found, SCHEMA_VERSION)
        self.__logger.debug("Database ready at %s.", self.database_path)

    def backup_to(self, path: Path) -> Path:
        """
        Copy the whole database to `path` as of one instant.

        The copy is taken through a reader connection, so it neither waits for
        nor blocks a concurrent writer, and lands under a temporary name first
        so a failed backup never leaves a truncated file at `path`.
        """
        destination = Path(path).expanduser().resolve()
        temporary = destination.with_name(destination.name + ".tmp")

        def attempt() -> None:
            if temporary.exists():
                temporary.unlink()
            raw = self.read_engine.raw_connection()
            try:
                target = sqlite3.connect(temporary.as_posix())
                try:
                    raw.driver_connection.backup(target)
                finally:
                    target.close()
            finally:
                raw.close()

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            self._with_retries(attempt, "backup")
            os.replace(temporary, destination)
        except OSError as e:
            raise StoreIOError(f"Cannot write backup {destination}: {e}") from e
        return destination

    def dispose(self) -> None:
        self.engine.dispose()
        self.read_engine.dispose()

    def _with_retries(self, action: Callable[[], T], label: str) -> T:
        delay = self.busy_backoff
        for attempt in range(1, self.busy_retries + 1):
            try:
                return action()
            except (exc.OperationalError, sqlite3.OperationalError) as e:
                if not is_busy_error(e):
                    raise StoreIOError(
                        f"Database {self.database_path} is unavailable: {e}"
                    ) from e
                if attempt == self.busy_retries:
                    raise StoreBusy(
                        f"Database {self.database_path} stayed locked after "
                        f"{attempt} attempts ({label})."
                    ) from e
                self.__logger.warning(
                    "Database busy during %s (attempt %s/%s); retrying in %.3fs.",
                    label,
                    attempt,
                    self.busy_retries,
                    delay,
                )
                time.sleep(delay)
                delay *= 2
            except exc.IntegrityError:
                raise
            except (exc.DatabaseError, sqlite3.DatabaseError) as e:
                raise StoreIOError(
                    f"Database {self.database_path} is unreadable: {e}"
                ) from e
        raise StoreBusy(f"Database {self.database_path} is busy ({label}).")
