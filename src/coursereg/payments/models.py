"""Data models for the Payments module."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coursereg.store.models import Payment


class PaymentOutcome(StrEnum):
    """Result reported by the payment processor for a batch."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class PaymentHistory:
    """A student's payments with running totals."""

    student_id: str
    payments: list[Payment]
    total_payments: int
    total_paid: Decimal
    total_pending: Decimal
    total_failed: int


@dataclass
class PaymentStatistics:
    """Aggregated statistics over all payments."""

    total_payments: int
    completed_payments: int
    pending_payments: int
    failed_payments: int
    total_revenue: Decimal
    success_rate: float
