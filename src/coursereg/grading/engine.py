"""GradingEngine - Grade assignment and the materialized GPA projection."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select

from coursereg.grading.gpa import compute_gpa
from coursereg.grading.models import (
    GradeEntry,
    StudentStatistics,
    Transcript,
    TranscriptEntry,
)
from coursereg.store.exceptions import InvalidStateError, NotFoundError
from coursereg.store.models import Course, Grade, Registration, Student, grade_points_for

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from coursereg.store.database import Database

logger = logging.getLogger(__name__)


def _entry(registration: Registration) -> GradeEntry:
    return GradeEntry(
        grade=Grade(registration.grade),
        grade_points=registration.grade_points,
        credit_hours=registration.course.credit_hours,
        completed=registration.completed,
        dropped=registration.dropped,
    )


class GradingEngine:
    """Assigns grades and keeps Student.gpa in step with registration history.

    The GPA is always rebuilt from every graded registration of the student,
    never adjusted incrementally, so a repair run and a grade write produce the
    same value.
    """

    def __init__(self, database: Database, count_incomplete: bool = False) -> None:
        """Initialize the engine.

        Args:
            database: Shared Database instance.
            count_incomplete: Count Incomplete grades as 0.0 in the GPA.
        """
        self._db = database
        self.count_incomplete = count_incomplete

    def assign_grade(self, registration_id: int, grade: Grade | str) -> Registration:
        """Grade a registration and recompute the student's GPA.

        Args:
            registration_id: The registration being graded
            grade: Letter grade (A, B, C, D, F, I or W)

        Returns:
            The updated Registration

        Raises:
            ValueError: If grade is not a known letter
            NotFoundError: If the registration doesn't exist
            InvalidStateError: If the registration has been dropped
        """
        grade = Grade(grade)
        with self._db.transaction() as session:
            stmt = (
                select(Registration)
                .where(Registration.id == registration_id)
                .with_for_update(of=Registration)
            )
            registration = session.execute(stmt).scalar_one_or_none()
            if registration is None:
                raise NotFoundError("registration", registration_id)
            if registration.dropped:
                raise InvalidStateError(
                    f"Registration {registration_id} has been dropped and cannot be graded",
                    entity="registration",
                    current="dropped",
                    attempted="grade",
                )

            previous = registration.grade
            registration.grade = grade.value
            registration.grade_points = grade_points_for(grade)
            registration.completed = True
            session.flush()

            gpa = self._recompute_in(session, registration.student_id)
            session.refresh(registration)

        if previous is not None and previous != grade.value:
            logger.info(
                "Regraded registration %s from %s to %s (student %s GPA %s)",
                registration_id,
                previous,
                grade.value,
                registration.student_id,
                gpa,
            )
        else:
            logger.info(
                "Graded registration %s: %s (student %s GPA %s)",
                registration_id,
                grade.value,
                registration.student_id,
                gpa,
            )
        return registration

    def recompute_gpa(self, student_id: str) -> Decimal:
        """Rebuild and persist one student's GPA from registration history.

        Raises:
            NotFoundError: If the student doesn't exist
        """
        with self._db.transaction() as session:
            gpa = self._recompute_in(session, student_id)
        logger.info("Recomputed GPA for student %s: %s", student_id, gpa)
        return gpa

    def rebuild_all_gpas(self) -> int:
        """Recompute every student's GPA, one transaction per student.

        Returns:
            Number of students rebuilt
        """
        with self._db.reading() as session:
            student_ids = list(session.execute(select(Student.id).order_by(Student.id)).scalars())

        for student_id in student_ids:
            with self._db.transaction() as session:
                self._recompute_in(session, student_id)

        logger.info("Rebuilt GPA for %d students", len(student_ids))
        return len(student_ids)

    def transcript(self, student_id: str) -> Transcript:
        """Completed registrations in term order with the cumulative GPA.

        Raises:
            NotFoundError: If the student doesn't exist
        """
        with self._db.reading() as session:
            student = session.get(Student, student_id)
            if student is None:
                raise NotFoundError("student", student_id)
            registrations = self._graded(session, student_id)

        entries = [
            TranscriptEntry(
                registration_id=r.id,
                course_code=r.course.code,
                course_name=r.course.name,
                credit_hours=r.course.credit_hours,
                semester=r.semester,
                year=r.year,
                grade=r.grade or "",
                grade_points=r.grade_points,
                completed_at=r.updated_at,
            )
            for r in registrations
        ]
        return Transcript(
            student_id=student_id,
            gpa=Decimal(student.gpa),
            entries=entries,
            total_credit_hours=sum(e.credit_hours for e in entries),
        )

    def semester_gpa(self, student_id: str, semester: str, year: int) -> Decimal:
        """GPA over one term's graded registrations. Not persisted."""
        with self._db.reading() as session:
            registrations = self._graded(session, student_id, semester=semester, year=year)
        return compute_gpa((_entry(r) for r in registrations), self.count_incomplete)

    def student_statistics(self, student_id: str) -> StudentStatistics:
        """Registration counts and completed credit hours for a student.

        Active means neither dropped nor completed. Dropped registrations
        still count toward the total.

        Raises:
            NotFoundError: If the student doesn't exist
        """
        with self._db.reading() as session:
            student = session.get(Student, student_id)
            if student is None:
                raise NotFoundError("student", student_id)
            stmt = (
                select(
                    func.count(Registration.id).label("total"),
                    func.sum(
                        case(
                            (
                                Registration.dropped.is_(False)
                                & Registration.completed.is_(False),
                                1,
                            ),
                            else_=0,
                        )
                    ).label("active"),
                    func.sum(case((Registration.completed.is_(True), 1), else_=0)).label(
                        "completed"
                    ),
                    func.sum(
                        case((Registration.completed.is_(True), Course.credit_hours), else_=0)
                    ).label("credit_hours"),
                )
                .select_from(Registration)
                .join(Course, Registration.course_id == Course.id)
                .where(Registration.student_id == student_id)
            )
            result = session.execute(stmt).one()

        return StudentStatistics(
            student_id=student_id,
            total_registrations=result.total or 0,
            active_registrations=result.active or 0,
            completed_registrations=result.completed or 0,
            completed_credit_hours=result.credit_hours or 0,
            gpa=Decimal(student.gpa),
        )

    # --- Helpers (caller's session) ---

    def _recompute_in(self, session: Session, student_id: str) -> Decimal:
        stmt = select(Student).where(Student.id == student_id).with_for_update()
        student = session.execute(stmt).scalar_one_or_none()
        if student is None:
            raise NotFoundError("student", student_id)

        gpa = compute_gpa(
            (_entry(r) for r in self._graded(session, student_id)), self.count_incomplete
        )
        student.gpa = gpa
        session.flush()
        return gpa

    def _graded(
        self,
        session: Session,
        student_id: str,
        semester: str | None = None,
        year: int | None = None,
    ) -> list[Registration]:
        stmt = select(Registration).where(
            Registration.student_id == student_id,
            Registration.completed.is_(True),
            Registration.dropped.is_(False),
            Registration.grade.is_not(None),
        )
        if semester is not None:
            stmt = stmt.where(Registration.semester == semester)
        if year is not None:
            stmt = stmt.where(Registration.year == year)
        stmt = stmt.order_by(Registration.year, Registration.semester, Registration.id)
        return list(session.execute(stmt).scalars().all())
