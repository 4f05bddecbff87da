"""Data models for the Enrollment module."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coursereg.store.models import Registration


@dataclass
class RegistrationSummary:
    """A student's active registrations for one term.

    Attributes:
        student_id: The student.
        semester: Term semester.
        year: Term year.
        registrations: Active (non-dropped) registrations, newest first.
        total_courses: Number of active registrations.
        total_credit_hours: Credit load for the term.
        total_cost: Tuition at current catalog prices.
        payment_status_counts: Registrations per payment status.
    """

    student_id: str
    semester: str
    year: int
    registrations: list[Registration]
    total_courses: int
    total_credit_hours: int
    total_cost: Decimal
    payment_status_counts: dict[str, int] = field(default_factory=dict)
