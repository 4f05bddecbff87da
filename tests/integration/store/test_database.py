"""Integration tests for the file-backed database."""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import inspect, select, text
from sqlalchemy.exc import IntegrityError

from coursereg.store import (
    Course,
    Database,
    Registration,
    StorageError,
    Student,
)


@pytest.fixture
def temp_db_path() -> str:
    """Create a temporary database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        return f.name


@pytest.fixture
def database(temp_db_path: str):
    """Create a database instance with tables."""
    db = Database(temp_db_path)
    db.create_tables()
    yield db
    db.close()
    # Cleanup
    Path(temp_db_path).unlink(missing_ok=True)
    Path(f"{temp_db_path}-wal").unlink(missing_ok=True)
    Path(f"{temp_db_path}-shm").unlink(missing_ok=True)


@pytest.fixture
def course_id(database: Database) -> int:
    """One course and one student."""
    with database.transaction() as session:
        course = Course(code="CS101", name="Intro", credit_hours=3)
        session.add_all([course, Student(id="alice")])
        session.flush()
        return course.id


@pytest.mark.integration
class TestDatabaseSetup:
    """Tests for database setup."""

    def test_database_creates_tables(self, database: Database) -> None:
        """Every table exists after init."""
        tables = set(inspect(database.engine).get_table_names())
        assert tables == {
            "courses",
            "course_prerequisites",
            "students",
            "registrations",
            "payments",
            "term_locks",
        }

    def test_database_wal_mode(self, database: Database) -> None:
        """WAL mode is enabled."""
        assert database.is_wal_mode()

    def test_database_foreign_keys_enabled(self, database: Database) -> None:
        """Foreign keys are enabled."""
        with database.engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_partial_unique_index_exists(self, database: Database) -> None:
        """The active-registration index is unique."""
        indexes = inspect(database.engine).get_indexes("registrations")
        active = next(i for i in indexes if i["name"] == "uq_registrations_active")
        assert active["unique"]


@pytest.mark.integration
class TestTransaction:
    """Tests for Database.transaction."""

    def test_commit_on_success(self, database: Database, course_id: int) -> None:
        """Changes are visible after the block."""
        with database.reading() as session:
            assert session.get(Course, course_id).code == "CS101"

    def test_rollback_on_error(self, database: Database, course_id: int) -> None:
        """An exception discards every change in the block."""
        with pytest.raises(RuntimeError), database.transaction() as session:
            session.add(Student(id="bob"))
            session.flush()
            raise RuntimeError("boom")

        with database.reading() as session:
            assert session.get(Student, "bob") is None

    def test_driver_errors_become_storage_error(self, database: Database) -> None:
        """DBAPI failures surface as StorageError."""
        with pytest.raises(StorageError), database.transaction() as session:
            session.execute(text("SELECT * FROM no_such_table"))

    def test_active_duplicates_violate_index(self, database: Database, course_id: int) -> None:
        """Two non-dropped rows for one key are refused by the index."""
        with pytest.raises(IntegrityError), database.transaction() as session:
            session.add(Registration("alice", course_id, "winter", 2025))
            session.add(Registration("alice", course_id, "winter", 2025))

    def test_dropped_rows_do_not_conflict(self, database: Database, course_id: int) -> None:
        """Dropped rows are outside the unique index."""
        with database.transaction() as session:
            first = Registration("alice", course_id, "winter", 2025)
            first.dropped = True
            first.dropped_at = datetime(2025, 1, 7)
            session.add(first)
            session.add(Registration("alice", course_id, "winter", 2025))

        with database.reading() as session:
            rows = session.execute(select(Registration)).scalars().all()
        assert sorted(r.dropped for r in rows) == [False, True]

    def test_credit_hours_check_constraint(self, database: Database) -> None:
        """Credit hours outside 1-6 are refused by the table."""
        with pytest.raises(IntegrityError), database.transaction() as session:
            session.add(Course(code="BIG", name="Too big", credit_hours=9))
