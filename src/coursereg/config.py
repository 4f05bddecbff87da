"""Configuration loading for coursereg deployments."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from coursereg.drops.policy import REFUND_WINDOW_DAYS
from coursereg.enrollment.ledger import MAX_CREDIT_HOURS

CONFIG_FILENAME = "coursereg.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


def _is_int(value: object) -> bool:
    # YAML true/false load as bool, which is an int subclass
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class DatabaseConfig:
    """Database location.

    Relative paths are resolved against the directory holding the config file.
    """

    path: str = "coursereg.db"
    busy_timeout: float = 30.0


@dataclass
class PolicyConfig:
    """Registration policy knobs."""

    max_credit_hours: int = MAX_CREDIT_HOURS
    refund_window_days: int = REFUND_WINDOW_DAYS
    count_incomplete_in_gpa: bool = False

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If a value is out of range.
        """
        if not _is_int(self.max_credit_hours) or self.max_credit_hours < 1:
            raise ConfigError(
                f"policy.max_credit_hours must be a positive integer, got {self.max_credit_hours!r}"
            )
        if not _is_int(self.refund_window_days) or self.refund_window_days < 0:
            raise ConfigError(
                "policy.refund_window_days must be a non-negative integer, "
                f"got {self.refund_window_days!r}"
            )
        if not isinstance(self.count_incomplete_in_gpa, bool):
            raise ConfigError(
                "policy.count_incomplete_in_gpa must be a boolean, "
                f"got {self.count_incomplete_in_gpa!r}"
            )


@dataclass
class LoggingConfig:
    """Log output settings."""

    dir: str = "logs"
    level: str = "INFO"
    console: bool = True


@dataclass
class EngineConfig:
    """coursereg configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    root_path: Path = field(default_factory=Path)

    @classmethod
    def from_dict(cls, data: dict[str, Any], root_path: Path | None = None) -> EngineConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary from YAML.
            root_path: Directory containing the config file.

        Returns:
            Parsed configuration object.

        Raises:
            ConfigError: If a section is malformed or a value is invalid.
        """
        for section in ("database", "policy", "logging"):
            if section in data and not isinstance(data[section], dict):
                raise ConfigError(f"Section '{section}' must be a mapping")

        database_data = data.get("database", {})
        database = DatabaseConfig(
            path=str(database_data.get("path", "coursereg.db")),
            busy_timeout=float(database_data.get("busy_timeout", 30.0)),
        )

        policy_data = data.get("policy", {})
        policy = PolicyConfig(
            max_credit_hours=policy_data.get("max_credit_hours", MAX_CREDIT_HOURS),
            refund_window_days=policy_data.get("refund_window_days", REFUND_WINDOW_DAYS),
            count_incomplete_in_gpa=policy_data.get("count_incomplete_in_gpa", False),
        )
        policy.validate()

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            dir=str(logging_data.get("dir", "logs")),
            level=str(logging_data.get("level", "INFO")).upper(),
            console=bool(logging_data.get("console", True)),
        )

        return cls(
            database=database,
            policy=policy,
            logging=logging_config,
            root_path=root_path if root_path is not None else Path(),
        )

    def get_database_path(self) -> str:
        """Get the database path, resolved against the config directory.

        Returns:
            ":memory:" unchanged, otherwise an absolute path string.
        """
        if self.database.path == ":memory:":
            return self.database.path
        path = Path(self.database.path)
        if not path.is_absolute():
            path = self.root_path / path
        return str(path)

    def get_log_dir(self) -> Path:
        """Get the log directory, resolved against the config directory."""
        path = Path(self.logging.dir)
        if not path.is_absolute():
            path = self.root_path / path
        return path


def load_config(config_path: Path | str) -> EngineConfig:
    """Load coursereg configuration from a YAML file.

    Args:
        config_path: Path to coursereg.yaml file.

    Returns:
        Parsed configuration object.

    Raises:
        ConfigError: If file doesn't exist or is invalid.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    try:
        return EngineConfig.from_dict(data, config_path.parent)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {config_path}: {e}") from e


def find_config(start_path: Path | str | None = None) -> Path:
    """Find coursereg.yaml by walking up directory tree.

    Args:
        start_path: Starting directory. Defaults to current directory.

    Returns:
        Path to coursereg.yaml file.

    Raises:
        ConfigError: If no config file is found.
    """
    start_path = Path.cwd() if start_path is None else Path(start_path)
    current = start_path.resolve()

    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path
        if current == current.parent:
            break
        current = current.parent

    raise ConfigError(f"No {CONFIG_FILENAME} found in {start_path} or any parent directory")
