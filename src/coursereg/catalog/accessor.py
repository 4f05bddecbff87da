"""CatalogAccessor - SQL-backed course lookup and minimal catalog edits."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from coursereg.catalog.exceptions import CourseExistsError, PrerequisiteCycleError
from coursereg.catalog.models import CourseInfo, CourseStatistics
from coursereg.store.exceptions import NotFoundError
from coursereg.store.models import Course, CoursePrerequisite, Registration

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.orm import Session

    from coursereg.store.database import Database

logger = logging.getLogger(__name__)

MIN_CREDIT_HOURS = 1
MAX_COURSE_CREDIT_HOURS = 6


class CatalogAccessor:
    """Reads course metadata for the engine.

    Lookups never cache: price and credit hours always reflect committed
    catalog state at the moment of the call.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the accessor.

        Args:
            database: Shared Database instance.
        """
        self._db = database

    # --- Lookups ---

    def lookup(self, course_id: int, include_inactive: bool = False) -> CourseInfo:
        """Get a course by ID.

        Args:
            course_id: The course's unique ID
            include_inactive: Also return deactivated courses (history lookups)

        Returns:
            Snapshot of the course

        Raises:
            NotFoundError: If the course doesn't exist, or is inactive and
                include_inactive is False
        """
        with self._db.reading() as session:
            return self.lookup_in(session, course_id, include_inactive=include_inactive)

    def lookup_in(
        self, session: Session, course_id: int, include_inactive: bool = False
    ) -> CourseInfo:
        """Same as lookup, inside a caller's session."""
        stmt = (
            select(Course)
            .where(Course.id == course_id)
            .options(selectinload(Course.prerequisite_links))
        )
        course = session.execute(stmt).scalar_one_or_none()
        if course is None or (not course.is_active and not include_inactive):
            raise NotFoundError("course", course_id)
        return CourseInfo.from_course(course)

    def lookup_many_in(self, session: Session, course_ids: Iterable[int]) -> dict[int, CourseInfo]:
        """Load several courses, active or not, keyed by ID. Missing IDs are absent."""
        ids = set(course_ids)
        if not ids:
            return {}
        stmt = (
            select(Course)
            .where(Course.id.in_(ids))
            .options(selectinload(Course.prerequisite_links))
        )
        return {c.id: CourseInfo.from_course(c) for c in session.execute(stmt).scalars()}

    def prerequisites_of(self, course_id: int) -> list[CourseInfo]:
        """Get the prerequisites of a course in declared order.

        Inactive prerequisites are included: they still have to be satisfied.

        Raises:
            NotFoundError: If the course doesn't exist
        """
        with self._db.reading() as session:
            course = self.lookup_in(session, course_id, include_inactive=True)
            found = self.lookup_many_in(session, course.prerequisite_ids)
            return [found[pid] for pid in course.prerequisite_ids if pid in found]

    def price_of(self, course_id: int) -> Decimal:
        """Tuition for one registration in the course at current prices."""
        return self.lookup(course_id, include_inactive=True).cost

    def list_courses(self, include_inactive: bool = False) -> list[CourseInfo]:
        """List courses ordered by code."""
        with self._db.reading() as session:
            stmt = select(Course).options(selectinload(Course.prerequisite_links))
            if not include_inactive:
                stmt = stmt.where(Course.is_active.is_(True))
            stmt = stmt.order_by(Course.code)
            return [CourseInfo.from_course(c) for c in session.execute(stmt).scalars()]

    def course_statistics(self, course_id: int) -> CourseStatistics:
        """Registration counts for a course, active or not.

        Dropped registrations count toward the total but not as active.

        Raises:
            NotFoundError: If the course doesn't exist
        """
        with self._db.reading() as session:
            course = self.lookup_in(session, course_id, include_inactive=True)
            stmt = select(
                func.count(Registration.id).label("total"),
                func.sum(case((Registration.dropped.is_(False), 1), else_=0)).label("active"),
                func.sum(case((Registration.completed.is_(True), 1), else_=0)).label("completed"),
            ).where(Registration.course_id == course_id)
            result = session.execute(stmt).one()

        return CourseStatistics(
            course=course,
            total_registrations=result.total or 0,
            active_registrations=result.active or 0,
            completed_registrations=result.completed or 0,
        )

    # --- Catalog edits ---

    def add_course(
        self,
        code: str,
        name: str,
        credit_hours: int,
        price_per_credit_hour: Decimal | int | str = Decimal("500.00"),
        prerequisite_ids: Iterable[int] = (),
    ) -> CourseInfo:
        """Create a course.

        Args:
            code: Unique course code
            name: Course title
            credit_hours: Weight, between 1 and 6
            price_per_credit_hour: Tuition per credit hour
            prerequisite_ids: Courses required first

        Returns:
            Snapshot of the created course

        Raises:
            ValueError: If credit_hours is out of range
            CourseExistsError: If the code is taken
            NotFoundError: If a prerequisite doesn't exist
        """
        if not MIN_CREDIT_HOURS <= credit_hours <= MAX_COURSE_CREDIT_HOURS:
            raise ValueError(
                f"credit_hours must be between {MIN_CREDIT_HOURS} and "
                f"{MAX_COURSE_CREDIT_HOURS}, got {credit_hours}"
            )
        try:
            with self._db.transaction() as session:
                course = Course(
                    code=code,
                    name=name,
                    credit_hours=credit_hours,
                    price_per_credit_hour=Decimal(str(price_per_credit_hour)),
                )
                session.add(course)
                session.flush()
                self._replace_prerequisites(session, course, list(prerequisite_ids))
                session.flush()
                info = CourseInfo.from_course(course)
        except IntegrityError as e:
            if "courses.code" in str(e) or "UNIQUE constraint failed" in str(e):
                raise CourseExistsError(f"Course with code '{code}' already exists") from e
            raise
        logger.info("Added course %s (id=%s, %d credits)", info.code, info.id, info.credit_hours)
        return info

    def set_prerequisites(self, course_id: int, prerequisite_ids: Iterable[int]) -> CourseInfo:
        """Replace a course's prerequisites.

        Raises:
            NotFoundError: If the course or a prerequisite doesn't exist
            PrerequisiteCycleError: If the new edges would form a cycle
        """
        with self._db.transaction() as session:
            course = session.get(Course, course_id)
            if course is None:
                raise NotFoundError("course", course_id)
            self._replace_prerequisites(session, course, list(prerequisite_ids))
            session.flush()
            return CourseInfo.from_course(course)

    def deactivate_course(self, course_id: int) -> CourseInfo:
        """Stop accepting registrations for a course. History is kept.

        Raises:
            NotFoundError: If the course doesn't exist
        """
        with self._db.transaction() as session:
            course = session.get(Course, course_id)
            if course is None:
                raise NotFoundError("course", course_id)
            course.is_active = False
            session.flush()
            info = CourseInfo.from_course(course)
        logger.info("Deactivated course %s", info.code)
        return info

    def _replace_prerequisites(
        self, session: Session, course: Course, prerequisite_ids: list[int]
    ) -> None:
        ordered = list(dict.fromkeys(prerequisite_ids))
        if not ordered:
            course.prerequisite_links.clear()
            return

        existing = set(
            session.execute(select(Course.id).where(Course.id.in_(ordered))).scalars()
        )
        for pid in ordered:
            if pid not in existing:
                raise NotFoundError("course", pid)

        cycle = self._find_cycle(session, course.id, ordered)
        if cycle is not None:
            raise PrerequisiteCycleError(course.id, cycle)

        course.prerequisite_links.clear()
        session.flush()
        for position, pid in enumerate(ordered):
            course.prerequisite_links.append(
                CoursePrerequisite(course_id=course.id, prerequisite_id=pid, position=position)
            )

    def _find_cycle(self, session: Session, course_id: int, new_ids: list[int]) -> list[int] | None:
        """Return a path new_prereq -> ... -> course_id if one exists."""
        edges: dict[int, list[int]] = {}
        rows = session.execute(
            select(CoursePrerequisite.course_id, CoursePrerequisite.prerequisite_id).where(
                CoursePrerequisite.course_id != course_id
            )
        )
        for cid, pid in rows:
            edges.setdefault(cid, []).append(pid)

        for start in new_ids:
            stack: list[tuple[int, list[int]]] = [(start, [course_id, start])]
            seen: set[int] = set()
            while stack:
                node, path = stack.pop()
                if node == course_id:
                    return path
                if node in seen:
                    continue
                seen.add(node)
                for nxt in edges.get(node, []):
                    stack.append((nxt, [*path, nxt]))
        return None
