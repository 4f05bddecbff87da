"""Data models for the Catalog module."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.orm import Session

    from coursereg.store.models import Course

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CourseInfo:
    """Read-only snapshot of a catalog course.

    Attributes:
        id: The course's unique ID.
        code: Unique course code such as "CS101".
        name: Human-readable title.
        credit_hours: Weight of the course, 1 to 6.
        price_per_credit_hour: Tuition per credit hour at read time.
        is_active: Whether the course accepts new registrations.
        prerequisite_ids: Required course IDs in declared order.
    """

    id: int
    code: str
    name: str
    credit_hours: int
    price_per_credit_hour: Decimal
    is_active: bool
    prerequisite_ids: tuple[int, ...] = ()

    @property
    def cost(self) -> Decimal:
        """Tuition for one registration in this course."""
        return self.price_per_credit_hour * self.credit_hours

    @classmethod
    def from_course(cls, course: Course) -> CourseInfo:
        """Snapshot a Course row."""
        return cls(
            id=course.id,
            code=course.code,
            name=course.name,
            credit_hours=course.credit_hours,
            price_per_credit_hour=Decimal(course.price_per_credit_hour).quantize(CENTS),
            is_active=course.is_active,
            prerequisite_ids=tuple(course.prerequisite_ids),
        )


@dataclass
class CourseStatistics:
    """Registration counts for one course across all terms.

    Attributes:
        course: The course.
        total_registrations: Every registration, dropped ones included.
        active_registrations: Registrations that are not dropped.
        completed_registrations: Registrations with a final grade.
    """

    course: CourseInfo
    total_registrations: int
    active_registrations: int
    completed_registrations: int


class Catalog(Protocol):
    """Interface the ledgers consume from a course catalog.

    The session-scoped lookups run inside the caller's transaction so
    admission and pricing see the same catalog state as their writes.
    """

    def lookup(self, course_id: int, include_inactive: bool = ...) -> CourseInfo:
        """Get one course, raising NotFoundError if missing or inactive."""
        ...

    def lookup_in(
        self, session: Session, course_id: int, include_inactive: bool = ...
    ) -> CourseInfo:
        """Same as lookup, inside a caller's session."""
        ...

    def lookup_many_in(self, session: Session, course_ids: Iterable[int]) -> dict[int, CourseInfo]:
        """Load several courses, active or not, keyed by ID."""
        ...

    def prerequisites_of(self, course_id: int) -> list[CourseInfo]:
        """Get the courses required before enrolling in course_id."""
        ...
