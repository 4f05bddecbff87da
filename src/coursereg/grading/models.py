"""Data models for the Grading module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from coursereg.store.models import Grade


@dataclass(frozen=True)
class GradeEntry:
    """One graded attempt as seen by the GPA calculation."""

    grade: Grade
    grade_points: Decimal | None
    credit_hours: int
    completed: bool = True
    dropped: bool = False


@dataclass
class TranscriptEntry:
    """A completed registration on a student's transcript.

    Attributes:
        registration_id: The registration.
        course_code: Course code at read time.
        course_name: Course title at read time.
        credit_hours: Course weight.
        semester: Term semester.
        year: Term year.
        grade: Letter grade.
        grade_points: Points frozen at grading time (None for Withdraw).
        completed_at: Last update of the registration row.
    """

    registration_id: int
    course_code: str
    course_name: str
    credit_hours: int
    semester: str
    year: int
    grade: str
    grade_points: Decimal | None
    completed_at: datetime | None = None


@dataclass
class Transcript:
    """A student's academic record with cumulative GPA."""

    student_id: str
    gpa: Decimal
    entries: list[TranscriptEntry] = field(default_factory=list)
    total_credit_hours: int = 0


@dataclass
class StudentStatistics:
    """Registration counts for one student across all terms."""

    student_id: str
    total_registrations: int
    active_registrations: int
    completed_registrations: int
    completed_credit_hours: int
    gpa: Decimal
