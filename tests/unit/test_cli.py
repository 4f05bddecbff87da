"""Unit tests for the coursereg CLI."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from sqlalchemy import inspect

from coursereg.cli import main
from coursereg.engine import RegistrationEngine
from coursereg.store import Database, Student


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> str:
    """A config that keeps logs under tmp_path."""
    config = tmp_path / "coursereg.yaml"
    config.write_text(f"logging:\n  dir: {tmp_path / 'logs'}\n  console: false\n")
    return str(config)


@pytest.fixture(autouse=True)
def _reset_logger():
    """Detach handlers installed by the commands."""
    yield
    logger = logging.getLogger("coursereg")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.mark.unit
class TestInitDb:
    """Tests for init-db."""

    def test_creates_tables(self, runner: CliRunner, tmp_path: Path, config_file: str) -> None:
        """Tables exist after init-db."""
        db_path = tmp_path / "reg.db"
        result = runner.invoke(main, ["init-db", "-c", config_file, "--db", str(db_path)])

        assert result.exit_code == 0, result.output
        assert "Initialized database" in result.output
        db = Database(str(db_path))
        try:
            tables = inspect(db.engine).get_table_names()
        finally:
            db.close()
        assert {"courses", "registrations", "payments", "students", "term_locks"} <= set(tables)

    def test_uses_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        """The database path comes from the config when --db is absent."""
        config = tmp_path / "coursereg.yaml"
        config.write_text("database:\n  path: from-config.db\nlogging:\n  console: false\n")

        result = runner.invoke(main, ["init-db", "-c", str(config)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "from-config.db").exists()

    def test_invalid_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """A bad config exits with status 1."""
        config = tmp_path / "coursereg.yaml"
        config.write_text("policy:\n  max_credit_hours: 0\n")

        result = runner.invoke(main, ["init-db", "-c", str(config)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


@pytest.mark.unit
class TestRebuildGpa:
    """Tests for rebuild-gpa."""

    @pytest.fixture
    def db_path(self, tmp_path: Path) -> str:
        """A database with one graded student."""
        path = str(tmp_path / "reg.db")
        engine = RegistrationEngine(path)
        try:
            course = engine.catalog.add_course("CS101", "Intro", 3)
            registration = engine.admit("alice", course.id, "fall", 2024)
            engine.assign_grade(registration.id, "B")
            with engine.database.transaction() as session:
                session.get(Student, "alice").gpa = 0
        finally:
            engine.close()
        return path

    def test_rebuild_all(self, runner: CliRunner, config_file: str, db_path: str) -> None:
        """Every student's GPA is recomputed."""
        result = runner.invoke(main, ["rebuild-gpa", "-c", config_file, "--db", db_path])

        assert result.exit_code == 0, result.output
        assert "Rebuilt GPA for 1 student(s)" in result.output

    def test_rebuild_one(self, runner: CliRunner, config_file: str, db_path: str) -> None:
        """--student rebuilds one student and prints the GPA."""
        result = runner.invoke(
            main, ["rebuild-gpa", "-c", config_file, "--db", db_path, "--student", "alice"]
        )

        assert result.exit_code == 0, result.output
        assert "Student alice: GPA 3.00" in result.output

    def test_rebuild_unknown_student(
        self, runner: CliRunner, config_file: str, db_path: str
    ) -> None:
        """Unknown students exit with status 1."""
        result = runner.invoke(
            main, ["rebuild-gpa", "-c", config_file, "--db", db_path, "--student", "ghost"]
        )

        assert result.exit_code == 1
        assert "not found" in result.output


@pytest.mark.unit
class TestServe:
    """Tests for serve."""

    def test_serve_runs_uvicorn(self, runner: CliRunner, config_file: str) -> None:
        """serve hands the app to uvicorn with the requested address."""
        args = ["serve", "-c", config_file, "--db", ":memory:"]
        args += ["--host", "0.0.0.0", "--port", "9000"]
        with patch("uvicorn.run") as run:
            result = runner.invoke(main, args)

        assert result.exit_code == 0, result.output
        run.assert_called_once()
        _, kwargs = run.call_args
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 9000

    def test_version(self, runner: CliRunner) -> None:
        """--version prints the package version."""
        result = runner.invoke(main, ["--version"])
        assert "0.1.0" in result.output
