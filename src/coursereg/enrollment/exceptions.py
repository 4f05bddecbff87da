"""Exceptions for the Enrollment module."""

from __future__ import annotations

from typing import Any

from coursereg.store.exceptions import RejectedError


class DuplicateEnrollmentError(RejectedError):
    """Student already holds an active registration for this course and term."""

    code = "duplicate_enrollment"

    def __init__(self, student_id: str, course_id: int, semester: str, year: int) -> None:
        super().__init__(
            f"Student '{student_id}' is already registered for course {course_id} "
            f"in {semester} {year}"
        )
        self.student_id = student_id
        self.course_id = course_id
        self.semester = semester
        self.year = year

    def details(self) -> dict[str, Any]:
        return {"course_id": self.course_id, "semester": self.semester, "year": self.year}


class CourseUnavailableError(RejectedError):
    """Course is missing or no longer accepts registrations."""

    code = "course_unavailable"

    def __init__(self, course_id: int) -> None:
        super().__init__(f"Course {course_id} is not available for registration")
        self.course_id = course_id

    def details(self) -> dict[str, Any]:
        return {"course_id": self.course_id}


class PrerequisitesNotMetError(RejectedError):
    """Student has not passed every prerequisite of the course."""

    code = "prerequisites_not_met"

    def __init__(self, course_id: int, missing: list[str]) -> None:
        super().__init__(f"Missing prerequisites for course {course_id}: {', '.join(missing)}")
        self.course_id = course_id
        self.missing = missing

    def details(self) -> dict[str, Any]:
        return {"course_id": self.course_id, "missing": self.missing}


class CreditLimitExceededError(RejectedError):
    """Admission would push the term's credit load past the ceiling."""

    code = "credit_limit_exceeded"

    def __init__(self, current: int, attempted: int, limit: int) -> None:
        super().__init__(
            f"Cannot exceed {limit} credit hours per term "
            f"(currently {current}, attempted {attempted})"
        )
        self.current = current
        self.attempted = attempted
        self.limit = limit

    def details(self) -> dict[str, Any]:
        return {"current": self.current, "attempted": self.attempted, "limit": self.limit}


class BulkAdmissionError(RejectedError):
    """One or more courses in a bulk request were rejected. Nothing was admitted."""

    code = "bulk_admission_rejected"

    def __init__(self, errors: list[RejectedError]) -> None:
        super().__init__("; ".join(str(e) for e in errors))
        self.errors = errors

    def details(self) -> dict[str, Any]:
        return {
            "errors": [
                {"code": e.code, "message": str(e), **e.details()} for e in self.errors
            ]
        }
