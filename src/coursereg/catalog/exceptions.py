"""Exceptions for the Catalog module."""

from __future__ import annotations

from typing import Any

from coursereg.store.exceptions import RejectedError


class CourseExistsError(RejectedError):
    """Course with given code already exists."""

    code = "course_exists"


class PrerequisiteCycleError(RejectedError):
    """Prerequisite edit would make a course (transitively) require itself."""

    code = "prerequisite_cycle"

    def __init__(self, course_id: int, cycle: list[int]) -> None:
        path = " -> ".join(str(cid) for cid in cycle)
        super().__init__(f"Prerequisites for course {course_id} would form a cycle: {path}")
        self.course_id = course_id
        self.cycle = cycle

    def details(self) -> dict[str, Any]:
        return {"course_id": self.course_id, "cycle": self.cycle}
