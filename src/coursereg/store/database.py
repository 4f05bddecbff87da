"""Database connection manager for the registration store."""

from __future__ import annotations

import contextlib
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from coursereg.store.exceptions import StorageError
from coursereg.store.models import Base

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Engine


class Database:
    """Database connection manager.

    Manages SQLite database connections with WAL mode enabled. Every
    transaction starts with BEGIN IMMEDIATE, so writers are serialized and a
    read-check-insert sequence inside one transaction cannot interleave with
    another writer.
    """

    def __init__(self, db_path: str = "coursereg.db", busy_timeout: float = 30.0) -> None:
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. Use ":memory:" for in-memory DB.
            busy_timeout: Seconds a writer waits for the database lock.
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        # In-memory databases share one connection, so transactions must not overlap
        self._memory_lock: threading.RLock | None = (
            threading.RLock() if db_path == ":memory:" else None
        )

    @property
    def engine(self) -> Engine:
        """Get or create the database engine."""
        if self._engine is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            if self.db_path == ":memory:":
                self._engine = create_engine(
                    "sqlite:///:memory:",
                    echo=False,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                self._engine = create_engine(
                    f"sqlite:///{self.db_path}",
                    echo=False,
                    connect_args={"timeout": self.busy_timeout, "check_same_thread": False},
                )

            @event.listens_for(self._engine, "connect")
            def set_sqlite_pragma(dbapi_connection: object, _connection_record: object) -> None:
                # Let SQLAlchemy emit BEGIN itself instead of pysqlite
                dbapi_connection.isolation_level = None  # type: ignore[attr-defined]
                cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            @event.listens_for(self._engine, "begin")
            def begin_immediate(conn: object) -> None:
                conn.exec_driver_sql("BEGIN IMMEDIATE")  # type: ignore[attr-defined]

        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_tables(self) -> None:
        """Create all tables if they don't exist."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session.

        Returns:
            A new SQLAlchemy session.
        """
        return self.session_factory()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run a block as one atomic unit.

        Commits when the block exits normally and rolls back on any exception.
        Driver failures surface as StorageError.

        Yields:
            A session bound to the open transaction.
        """
        guard = self._memory_lock if self._memory_lock is not None else contextlib.nullcontext()
        with guard:
            session = self.get_session()
            try:
                with session.begin():
                    yield session
            except IntegrityError:
                raise
            except DBAPIError as e:
                raise StorageError(f"Database operation failed: {e.orig}") from e
            finally:
                session.close()

    @contextlib.contextmanager
    def reading(self) -> Iterator[Session]:
        """Open a short-lived session for reads."""
        guard = self._memory_lock if self._memory_lock is not None else contextlib.nullcontext()
        with guard:
            session = self.get_session()
            try:
                yield session
            except DBAPIError as e:
                raise StorageError(f"Database read failed: {e.orig}") from e
            finally:
                session.close()

    def is_wal_mode(self) -> bool:
        """Check if WAL mode is enabled.

        Returns:
            True if WAL mode is enabled.
        """
        with self.engine.connect() as conn:
            result = conn.execute(text("PRAGMA journal_mode"))
            mode = result.scalar()
            return mode == "wal"

    def close(self) -> None:
        """Close the database connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
