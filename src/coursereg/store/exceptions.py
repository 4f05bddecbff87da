"""Error taxonomy shared by every engine component."""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base exception for registration engine errors."""


class RejectedError(EngineError):
    """A precondition failed. The caller can correct the request and retry."""

    code = "rejected"

    def details(self) -> dict[str, Any]:
        """Structured data for rendering the rejection."""
        return {}


class StorageError(EngineError):
    """The database failed. Safe to retry the whole operation."""


class NotFoundError(RejectedError):
    """Entity with given ID does not exist."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity.capitalize()} with id '{entity_id}' not found")
        self.entity = entity
        self.entity_id = entity_id

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "id": self.entity_id}


class InvalidStateError(RejectedError):
    """Operation is not allowed in the entity's current state."""

    code = "invalid_state"

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        current: str | None = None,
        attempted: str | None = None,
    ) -> None:
        super().__init__(message)
        self.entity = entity
        self.current = current
        self.attempted = attempted

    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "current": self.current, "attempted": self.attempted}
