"""EnrollmentLedger - Admission decisions and registration reads."""

from __future__ import annotations

import logging
from collections import Counter
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from coursereg.enrollment.exceptions import (
    BulkAdmissionError,
    CourseUnavailableError,
    CreditLimitExceededError,
    DuplicateEnrollmentError,
    PrerequisitesNotMetError,
)
from coursereg.enrollment.models import RegistrationSummary
from coursereg.store.exceptions import NotFoundError, RejectedError
from coursereg.store.models import (
    PASSING_GRADES,
    Course,
    Registration,
    Student,
    TermLock,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from sqlalchemy.orm import Session

    from coursereg.catalog.models import Catalog, CourseInfo
    from coursereg.store.database import Database

logger = logging.getLogger(__name__)

# Fixed per-term ceiling on active credit hours
MAX_CREDIT_HOURS = 18


class EnrollmentLedger:
    """Source of truth for registrations.

    Every admission runs in one transaction that holds the term lock row for
    (student, semester, year), so the duplicate check, the credit-hour sum and
    the insert see a consistent view and cannot interleave with another
    admission for the same student and term.
    """

    def __init__(
        self,
        database: Database,
        catalog: Catalog,
        max_credit_hours: int = MAX_CREDIT_HOURS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the ledger.

        Args:
            database: Shared Database instance.
            catalog: Course lookup used for validation and credit hours.
            max_credit_hours: Per-term ceiling on active credit hours.
            clock: Source of the current naive-UTC time.
        """
        self._db = database
        self._catalog = catalog
        self.max_credit_hours = max_credit_hours
        self._clock = clock

    # --- Admission ---

    def admit(self, student_id: str, course_id: int, semester: str, year: int) -> Registration:
        """Admit a student into one course for a term.

        Args:
            student_id: Authenticated student identity
            course_id: Course to enroll in
            semester: Term semester (e.g. "winter")
            year: Term year

        Returns:
            The new Registration with payment_status pending

        Raises:
            DuplicateEnrollmentError: If an active registration already exists
            CourseUnavailableError: If the course is missing or inactive
            PrerequisitesNotMetError: If a prerequisite hasn't been passed
            CreditLimitExceededError: If the term's credit load would exceed the ceiling
        """
        try:
            with self._db.transaction() as session:
                self._ensure_student(session, student_id)
                self._lock_term(session, student_id, semester, year)

                passed = self._passed_course_ids(session, student_id)
                course = self._check_admissible(
                    session, student_id, course_id, semester, year, passed
                )

                current = self._term_credit_hours(session, student_id, semester, year)
                if current + course.credit_hours > self.max_credit_hours:
                    raise CreditLimitExceededError(
                        current, course.credit_hours, self.max_credit_hours
                    )

                registration = Registration(
                    student_id=student_id,
                    course_id=course_id,
                    semester=semester,
                    year=year,
                    created_at=self._clock(),
                )
                session.add(registration)
                self._flush_registrations(session, student_id, [course_id], semester, year)
                session.refresh(registration)
        except RejectedError as e:
            logger.info(
                "Admission of student %s to course %s rejected: %s", student_id, course_id, e
            )
            raise

        logger.info(
            "Admitted student %s to course %s for %s %s (registration %s)",
            student_id,
            course_id,
            semester,
            year,
            registration.id,
        )
        return registration

    def bulk_admit(
        self, student_id: str, course_ids: Iterable[int], semester: str, year: int
    ) -> list[Registration]:
        """Admit a student into several courses, all or nothing.

        Per-course checks (duplicate, availability, prerequisites) run for
        every course and are reported together. The credit ceiling is checked
        once against the batch total.

        Args:
            student_id: Authenticated student identity
            course_ids: Courses to enroll in
            semester: Term semester
            year: Term year

        Returns:
            The new Registrations, in request order

        Raises:
            BulkAdmissionError: If any course fails its per-course checks
            CreditLimitExceededError: If the batch would exceed the ceiling
        """
        requested = list(course_ids)
        if not requested:
            return []

        try:
            with self._db.transaction() as session:
                self._ensure_student(session, student_id)
                self._lock_term(session, student_id, semester, year)
                passed = self._passed_course_ids(session, student_id)

                errors: list[RejectedError] = []
                courses: list[CourseInfo] = []
                seen: set[int] = set()
                for course_id in requested:
                    try:
                        if course_id in seen:
                            raise DuplicateEnrollmentError(student_id, course_id, semester, year)
                        seen.add(course_id)
                        courses.append(
                            self._check_admissible(
                                session, student_id, course_id, semester, year, passed
                            )
                        )
                    except RejectedError as e:
                        errors.append(e)
                if errors:
                    raise BulkAdmissionError(errors)

                current = self._term_credit_hours(session, student_id, semester, year)
                attempted = sum(c.credit_hours for c in courses)
                if current + attempted > self.max_credit_hours:
                    raise CreditLimitExceededError(current, attempted, self.max_credit_hours)

                now = self._clock()
                registrations = [
                    Registration(
                        student_id=student_id,
                        course_id=c.id,
                        semester=semester,
                        year=year,
                        created_at=now,
                    )
                    for c in courses
                ]
                session.add_all(registrations)
                self._flush_registrations(session, student_id, requested, semester, year)
                for registration in registrations:
                    session.refresh(registration)
        except RejectedError as e:
            logger.info("Bulk admission of student %s rejected: %s", student_id, e)
            raise

        logger.info(
            "Admitted student %s to %d courses for %s %s",
            student_id,
            len(registrations),
            semester,
            year,
        )
        return registrations

    # --- Reads ---

    def get_registration(self, registration_id: int) -> Registration:
        """Get registration by ID.

        Raises:
            NotFoundError: If registration doesn't exist
        """
        with self._db.reading() as session:
            registration = session.get(Registration, registration_id)
            if registration is None:
                raise NotFoundError("registration", registration_id)
            return registration

    def list_registrations(
        self,
        student_id: str,
        semester: str | None = None,
        year: int | None = None,
        include_dropped: bool = False,
    ) -> list[Registration]:
        """List a student's registrations, newest first.

        Args:
            student_id: The student
            semester: Filter by semester (optional)
            year: Filter by year (optional)
            include_dropped: Also return dropped rows (audit view)
        """
        with self._db.reading() as session:
            stmt = select(Registration).where(Registration.student_id == student_id)
            if semester is not None:
                stmt = stmt.where(Registration.semester == semester)
            if year is not None:
                stmt = stmt.where(Registration.year == year)
            if not include_dropped:
                stmt = stmt.where(Registration.dropped.is_(False))
            stmt = stmt.order_by(Registration.created_at.desc(), Registration.id.desc())
            return list(session.execute(stmt).scalars().all())

    def current_credit_hours(self, student_id: str, semester: str, year: int) -> int:
        """Active credit load of a student for a term."""
        with self._db.reading() as session:
            return self._term_credit_hours(session, student_id, semester, year)

    def summary(self, student_id: str, semester: str, year: int) -> RegistrationSummary:
        """Summarize a student's active registrations for a term."""
        registrations = self.list_registrations(student_id, semester=semester, year=year)
        counts = Counter(r.payment_status for r in registrations)
        return RegistrationSummary(
            student_id=student_id,
            semester=semester,
            year=year,
            registrations=registrations,
            total_courses=len(registrations),
            total_credit_hours=sum(r.course.credit_hours for r in registrations),
            total_cost=sum(
                (r.course.price_per_credit_hour * r.course.credit_hours for r in registrations),
                Decimal("0.00"),
            ),
            payment_status_counts=dict(counts),
        )

    # --- Helpers (caller's session) ---

    def _check_admissible(
        self,
        session: Session,
        student_id: str,
        course_id: int,
        semester: str,
        year: int,
        passed: set[int],
    ) -> CourseInfo:
        if self._active_exists(session, student_id, course_id, semester, year):
            raise DuplicateEnrollmentError(student_id, course_id, semester, year)

        try:
            course = self._catalog.lookup_in(session, course_id)
        except NotFoundError as e:
            raise CourseUnavailableError(course_id) from e

        missing_ids = [pid for pid in course.prerequisite_ids if pid not in passed]
        if missing_ids:
            known = self._catalog.lookup_many_in(session, missing_ids)
            missing = [known[pid].code if pid in known else str(pid) for pid in missing_ids]
            raise PrerequisitesNotMetError(course_id, missing)
        return course

    def _active_exists(
        self, session: Session, student_id: str, course_id: int, semester: str, year: int
    ) -> bool:
        stmt = select(Registration.id).where(
            Registration.student_id == student_id,
            Registration.course_id == course_id,
            Registration.semester == semester,
            Registration.year == year,
            Registration.dropped.is_(False),
        )
        return session.execute(stmt).first() is not None

    def _passed_course_ids(self, session: Session, student_id: str) -> set[int]:
        """Courses the student completed with a passing grade, across all terms."""
        stmt = select(Registration.course_id).where(
            Registration.student_id == student_id,
            Registration.completed.is_(True),
            Registration.dropped.is_(False),
            Registration.grade.in_([g.value for g in PASSING_GRADES]),
        )
        return set(session.execute(stmt).scalars())

    def _term_credit_hours(
        self, session: Session, student_id: str, semester: str, year: int
    ) -> int:
        stmt = (
            select(func.coalesce(func.sum(Course.credit_hours), 0))
            .select_from(Registration)
            .join(Course, Registration.course_id == Course.id)
            .where(
                Registration.student_id == student_id,
                Registration.semester == semester,
                Registration.year == year,
                Registration.dropped.is_(False),
            )
        )
        return int(session.execute(stmt).scalar_one())

    def _ensure_student(self, session: Session, student_id: str) -> Student:
        student = session.get(Student, student_id)
        if student is not None:
            return student
        try:
            with session.begin_nested():
                student = Student(id=student_id)
                session.add(student)
        except IntegrityError:
            # Created concurrently by another transaction
            student = session.get(Student, student_id)
            if student is None:
                raise
        return student

    def _lock_term(self, session: Session, student_id: str, semester: str, year: int) -> TermLock:
        """Take the (student, semester, year) lock row for the rest of the transaction."""
        stmt = (
            select(TermLock)
            .where(
                TermLock.student_id == student_id,
                TermLock.semester == semester,
                TermLock.year == year,
            )
            .with_for_update()
        )
        lock = session.execute(stmt).scalar_one_or_none()
        if lock is None:
            try:
                with session.begin_nested():
                    lock = TermLock(student_id=student_id, semester=semester, year=year)
                    session.add(lock)
            except IntegrityError:
                lock = session.execute(stmt).scalar_one()
        lock.version += 1
        session.flush()
        return lock

    def _flush_registrations(
        self, session: Session, student_id: str, course_ids: list[int], semester: str, year: int
    ) -> None:
        try:
            session.flush()
        except IntegrityError as e:
            if "uq_registrations_active" in str(e) or "UNIQUE constraint failed" in str(e):
                raise DuplicateEnrollmentError(student_id, course_ids[0], semester, year) from e
            raise
