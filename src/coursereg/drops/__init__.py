"""Drops package - Dropping registrations and drop refunds."""

from coursereg.drops.exceptions import CannotDropCompletedError
from coursereg.drops.policy import REFUND_WINDOW_DAYS, DropPolicy

__all__ = ["REFUND_WINDOW_DAYS", "CannotDropCompletedError", "DropPolicy"]
