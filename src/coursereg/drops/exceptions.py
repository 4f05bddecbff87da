"""Exceptions for the Drops module."""

from __future__ import annotations

from typing import Any

from coursereg.store.exceptions import RejectedError


class CannotDropCompletedError(RejectedError):
    """The registration already has a final grade."""

    code = "cannot_drop_completed"

    def __init__(self, registration_id: int) -> None:
        super().__init__(f"Cannot drop completed registration {registration_id}")
        self.registration_id = registration_id

    def details(self) -> dict[str, Any]:
        return {"registration_id": self.registration_id}
