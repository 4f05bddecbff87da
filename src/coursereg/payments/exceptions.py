"""Exceptions for the Payments module."""

from __future__ import annotations

from typing import Any

from coursereg.store.exceptions import RejectedError


class AlreadyPaidError(RejectedError):
    """Some registrations in the batch are already paid for."""

    code = "already_paid"

    def __init__(self, registration_ids: list[int]) -> None:
        ids = ", ".join(str(rid) for rid in registration_ids)
        super().__init__(f"Registrations already paid for: {ids}")
        self.registration_ids = registration_ids

    def details(self) -> dict[str, Any]:
        return {"registration_ids": self.registration_ids}
