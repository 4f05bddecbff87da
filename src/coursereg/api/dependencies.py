"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends

from coursereg.engine import RegistrationEngine

if TYPE_CHECKING:
    from coursereg.config import EngineConfig

# Global RegistrationEngine instance (initialized on app startup)
_engine: RegistrationEngine | None = None


def init_engine(
    db_path: str | None = None, config: EngineConfig | None = None
) -> RegistrationEngine:
    """Initialize the global RegistrationEngine instance."""
    global _engine  # noqa: PLW0603
    _engine = RegistrationEngine(db_path, config=config)
    return _engine


def close_engine() -> None:
    """Close the global RegistrationEngine instance."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        _engine.close()
        _engine = None


def get_engine() -> Generator[RegistrationEngine, None, None]:
    """Dependency that provides the RegistrationEngine instance."""
    if _engine is None:
        raise RuntimeError("RegistrationEngine not initialized. Call init_engine() first.")
    yield _engine


# Type alias for dependency injection
EngineDep = Annotated[RegistrationEngine, Depends(get_engine)]
