"""CLI entry point for coursereg.

Commands operate on the database named by the configuration file
(coursereg.yaml, auto-detected) unless --db overrides it.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from coursereg import __version__
from coursereg.config import ConfigError, EngineConfig, find_config, load_config
from coursereg.logging import setup_logging
from coursereg.store.exceptions import EngineError


def _resolve_config(config_path: Path | None) -> EngineConfig:
    """Load an explicit config, else the nearest coursereg.yaml, else defaults."""
    if config_path is not None:
        return load_config(config_path)
    try:
        found = find_config()
    except ConfigError:
        return EngineConfig()
    return load_config(found)


def _setup(config: EngineConfig, verbose: bool) -> None:
    setup_logging(
        log_dir=config.get_log_dir(),
        level="DEBUG" if verbose else config.logging.level,
        console=config.logging.console,
    )


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to coursereg.yaml (auto-detected if not specified)",
)
db_option = click.option(
    "--db",
    "db_path",
    type=str,
    default=None,
    help="Database path (overrides the configured path)",
)
verbose_option = click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")


@click.group()
@click.version_option(version=__version__, prog_name="coursereg")
def main() -> None:
    """coursereg - course registration engine."""
    pass


@main.command("init-db")
@config_option
@db_option
@verbose_option
def init_db(config_path: Path | None, db_path: str | None, verbose: bool) -> None:
    """Create the database tables."""
    from coursereg.store.database import Database  # noqa: PLC0415

    try:
        config = _resolve_config(config_path)
        _setup(config, verbose)
        path = db_path or config.get_database_path()
        database = Database(path, busy_timeout=config.database.busy_timeout)
        try:
            database.create_tables()
        finally:
            database.close()
        click.echo(f"Initialized database at {path}")
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except EngineError as e:
        click.echo(f"Database error: {e}", err=True)
        sys.exit(1)


@main.command()
@config_option
@db_option
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port")
@verbose_option
def serve(
    config_path: Path | None, db_path: str | None, host: str, port: int, verbose: bool
) -> None:
    """Serve the REST API with uvicorn."""
    import uvicorn  # noqa: PLC0415

    from coursereg.api.app import create_app  # noqa: PLC0415

    try:
        config = _resolve_config(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    _setup(config, verbose)
    app = create_app(db_path=db_path, config=config)
    click.echo(f"Serving coursereg API on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="debug" if verbose else "info")


@main.command("rebuild-gpa")
@config_option
@db_option
@click.option("--student", "student_id", default=None, help="Only rebuild this student's GPA")
@verbose_option
def rebuild_gpa(
    config_path: Path | None, db_path: str | None, student_id: str | None, verbose: bool
) -> None:
    """Recompute GPAs from registration history."""
    from coursereg.engine import RegistrationEngine  # noqa: PLC0415

    try:
        config = _resolve_config(config_path)
        _setup(config, verbose)
        engine = RegistrationEngine(db_path, config=config)
        try:
            if student_id is not None:
                gpa = engine.recompute_gpa(student_id)
                click.echo(f"Student {student_id}: GPA {gpa}")
            else:
                count = engine.rebuild_all_gpas()
                click.echo(f"Rebuilt GPA for {count} student(s)")
        finally:
            engine.close()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except EngineError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
