"""Unit tests for EnrollmentLedger admission."""

import pytest
from sqlalchemy import select

from coursereg.catalog import CatalogAccessor, CourseInfo
from coursereg.engine import RegistrationEngine
from coursereg.enrollment import (
    MAX_CREDIT_HOURS,
    BulkAdmissionError,
    CourseUnavailableError,
    CreditLimitExceededError,
    DuplicateEnrollmentError,
    EnrollmentLedger,
    PrerequisitesNotMetError,
)
from coursereg.store import Grade, Student, TermLock


def _pass(
    engine: RegistrationEngine, student_id: str, course: CourseInfo, grade: str = "A"
) -> None:
    """Give the student a completed, graded attempt in an earlier term."""
    registration = engine.admit(student_id, course.id, "fall", 2024)
    engine.assign_grade(registration.id, grade)


@pytest.mark.unit
class TestAdmit:
    """Tests for admit."""

    def test_admit_creates_pending_registration(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo], clock
    ) -> None:
        """A valid admission returns a pending, active registration."""
        registration = engine.admit("alice", courses["CS101"].id, "winter", 2025)

        assert registration.id is not None
        assert registration.student_id == "alice"
        assert registration.course_id == courses["CS101"].id
        assert registration.semester == "winter"
        assert registration.year == 2025
        assert registration.payment_status == "pending"
        assert registration.completed is False
        assert registration.dropped is False
        assert registration.created_at == clock.now

    def test_admit_creates_student_and_term_lock(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """The first admission creates the student row and the term lock."""
        engine.admit("alice", courses["CS101"].id, "winter", 2025)
        engine.admit("alice", courses["MATH101"].id, "winter", 2025)

        with engine.database.reading() as session:
            student = session.get(Student, "alice")
            lock = session.execute(select(TermLock)).scalar_one()

        assert student is not None
        assert lock.version == 2

    def test_admit_duplicate_rejected(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """A second active registration for the same key is rejected."""
        engine.admit("alice", courses["CS101"].id, "winter", 2025)

        with pytest.raises(DuplicateEnrollmentError) as exc_info:
            engine.admit("alice", courses["CS101"].id, "winter", 2025)

        assert exc_info.value.course_id == courses["CS101"].id
        assert len(engine.list_registrations("alice")) == 1

    def test_admit_same_course_other_term_allowed(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Uniqueness is per term."""
        engine.admit("alice", courses["CS101"].id, "winter", 2025)
        engine.admit("alice", courses["CS101"].id, "spring", 2025)

        assert len(engine.list_registrations("alice")) == 2

    def test_readmit_after_drop_creates_new_row(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Dropped rows don't block re-enrolling and are never reused."""
        first = engine.admit("alice", courses["CS101"].id, "winter", 2025)
        engine.drop(first.id)

        second = engine.admit("alice", courses["CS101"].id, "winter", 2025)

        assert second.id != first.id
        assert engine.get_registration(first.id).dropped is True

    def test_admit_unknown_course(self, engine: RegistrationEngine) -> None:
        """CourseUnavailableError for a course that doesn't exist."""
        with pytest.raises(CourseUnavailableError) as exc_info:
            engine.admit("alice", 999, "winter", 2025)
        assert exc_info.value.course_id == 999

    def test_admit_inactive_course(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """CourseUnavailableError for a deactivated course."""
        engine.catalog.deactivate_course(courses["ART101"].id)

        with pytest.raises(CourseUnavailableError):
            engine.admit("alice", courses["ART101"].id, "winter", 2025)

    def test_admit_missing_prerequisite(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Missing CS101 blocks CS201 and names the missing code."""
        with pytest.raises(PrerequisitesNotMetError) as exc_info:
            engine.admit("alice", courses["CS201"].id, "winter", 2025)

        assert exc_info.value.missing == ["CS101"]

    def test_admit_with_passed_prerequisite(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """A passing grade in an earlier term satisfies the prerequisite."""
        _pass(engine, "alice", courses["CS101"], "D")

        registration = engine.admit("alice", courses["CS201"].id, "winter", 2025)

        assert registration.course_id == courses["CS201"].id

    @pytest.mark.parametrize("grade", [Grade.F, Grade.INCOMPLETE, Grade.WITHDRAW])
    def test_non_passing_grades_do_not_satisfy(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo], grade: Grade
    ) -> None:
        """F, I and W never satisfy a prerequisite."""
        _pass(engine, "alice", courses["CS101"], grade.value)

        with pytest.raises(PrerequisitesNotMetError):
            engine.admit("alice", courses["CS201"].id, "winter", 2025)

    def test_missing_prerequisites_listed_in_order(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Every missing prerequisite is reported in declared order."""
        with pytest.raises(PrerequisitesNotMetError) as exc_info:
            engine.admit("alice", courses["CS301"].id, "winter", 2025)

        assert exc_info.value.missing == ["CS201", "MATH101"]

    def test_admit_up_to_the_limit(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Exactly 18 credit hours is allowed."""
        for code in ("PHYS101", "CHEM101", "BIO101", "MATH101"):
            engine.admit("alice", courses[code].id, "winter", 2025)

        engine.admit("alice", courses["ART101"].id, "winter", 2025)

        assert engine.current_credit_hours("alice", "winter", 2025) == MAX_CREDIT_HOURS

    def test_admit_overflow(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """16 enrolled plus a 4-credit course exceeds the ceiling."""
        geo = engine.catalog.add_course("GEO101", "Geology", 4)
        for code in ("PHYS101", "CHEM101", "BIO101", "MATH101"):
            engine.admit("alice", courses[code].id, "winter", 2025)

        with pytest.raises(CreditLimitExceededError) as exc_info:
            engine.admit("alice", geo.id, "winter", 2025)

        assert exc_info.value.current == 16
        assert exc_info.value.attempted == 4
        assert exc_info.value.limit == MAX_CREDIT_HOURS
        assert engine.current_credit_hours("alice", "winter", 2025) == 16

    def test_dropped_registrations_free_credit_hours(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Dropped rows don't count toward the term load."""
        regs = [
            engine.admit("alice", courses[code].id, "winter", 2025)
            for code in ("PHYS101", "CHEM101", "BIO101", "MATH101")
        ]
        engine.drop(regs[0].id)

        engine.admit("alice", courses["CS101"].id, "winter", 2025)

        assert engine.current_credit_hours("alice", "winter", 2025) == 15

    def test_other_students_unaffected(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Credit load is per student."""
        for code in ("PHYS101", "CHEM101", "BIO101", "MATH101"):
            engine.admit("alice", courses[code].id, "winter", 2025)

        engine.admit("bob", courses["PHYS101"].id, "winter", 2025)

        assert engine.current_credit_hours("bob", "winter", 2025) == 4


@pytest.mark.unit
class TestBulkAdmit:
    """Tests for bulk_admit."""

    def test_bulk_admit_all(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Every course is admitted in request order."""
        ids = [courses["CS101"].id, courses["MATH101"].id, courses["ART101"].id]

        registrations = engine.bulk_admit("alice", ids, "winter", 2025)

        assert [r.course_id for r in registrations] == ids
        assert engine.current_credit_hours("alice", "winter", 2025) == 9

    def test_bulk_admit_empty(self, engine: RegistrationEngine) -> None:
        """An empty batch admits nothing."""
        assert engine.bulk_admit("alice", [], "winter", 2025) == []

    def test_bulk_all_or_nothing(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """[ok, duplicate] admits neither."""
        engine.admit("alice", courses["CS101"].id, "winter", 2025)

        with pytest.raises(BulkAdmissionError) as exc_info:
            engine.bulk_admit(
                "alice", [courses["MATH101"].id, courses["CS101"].id], "winter", 2025
            )

        errors = exc_info.value.errors
        assert len(errors) == 1
        assert isinstance(errors[0], DuplicateEnrollmentError)
        assert [r.course_id for r in engine.list_registrations("alice")] == [
            courses["CS101"].id
        ]

    def test_bulk_collects_every_error(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Per-course failures are reported together."""
        with pytest.raises(BulkAdmissionError) as exc_info:
            engine.bulk_admit(
                "alice", [courses["CS201"].id, 999, courses["CS101"].id], "winter", 2025
            )

        kinds = [type(e) for e in exc_info.value.errors]
        assert kinds == [PrerequisitesNotMetError, CourseUnavailableError]
        details = exc_info.value.details()
        assert details["errors"][0]["code"] == "prerequisites_not_met"
        assert details["errors"][0]["missing"] == ["CS101"]
        assert engine.list_registrations("alice") == []

    def test_bulk_repeated_course_is_duplicate(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """A course listed twice in one batch counts as a duplicate."""
        with pytest.raises(BulkAdmissionError) as exc_info:
            engine.bulk_admit(
                "alice", [courses["CS101"].id, courses["CS101"].id], "winter", 2025
            )

        assert isinstance(exc_info.value.errors[0], DuplicateEnrollmentError)
        assert engine.list_registrations("alice") == []

    def test_bulk_credit_check_runs_once_over_batch(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """The ceiling applies to existing plus the whole batch."""
        engine.admit("alice", courses["PHYS101"].id, "winter", 2025)
        batch = [courses[code].id for code in ("CHEM101", "BIO101", "MATH101", "CS101")]

        with pytest.raises(CreditLimitExceededError) as exc_info:
            engine.bulk_admit("alice", batch, "winter", 2025)

        assert exc_info.value.current == 4
        assert exc_info.value.attempted == 15
        assert engine.current_credit_hours("alice", "winter", 2025) == 4


class RecordingCatalog:
    """A Catalog that delegates to an accessor and records looked-up course IDs."""

    def __init__(self, inner: CatalogAccessor) -> None:
        self.inner = inner
        self.seen: list[int] = []

    def lookup(self, course_id, include_inactive=False):
        self.seen.append(course_id)
        return self.inner.lookup(course_id, include_inactive=include_inactive)

    def lookup_in(self, session, course_id, include_inactive=False):
        self.seen.append(course_id)
        return self.inner.lookup_in(session, course_id, include_inactive=include_inactive)

    def lookup_many_in(self, session, course_ids):
        ids = list(course_ids)
        self.seen.extend(ids)
        return self.inner.lookup_many_in(session, ids)

    def prerequisites_of(self, course_id):
        return self.inner.prerequisites_of(course_id)


@pytest.mark.unit
class TestPluggableCatalog:
    """The ledger only needs the Catalog interface."""

    def test_admit_through_custom_catalog(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Admission consults whichever catalog it was given."""
        catalog = RecordingCatalog(engine.catalog)
        ledger = EnrollmentLedger(engine.database, catalog)

        registration = ledger.admit("alice", courses["CS101"].id, "winter", 2025)

        assert registration.course_id == courses["CS101"].id
        assert catalog.seen == [courses["CS101"].id]

    def test_missing_prerequisites_resolved_through_custom_catalog(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Prerequisite codes come from the supplied catalog."""
        catalog = RecordingCatalog(engine.catalog)
        ledger = EnrollmentLedger(engine.database, catalog)

        with pytest.raises(PrerequisitesNotMetError) as exc_info:
            ledger.admit("alice", courses["CS201"].id, "winter", 2025)

        assert exc_info.value.missing == ["CS101"]
        assert catalog.seen == [courses["CS201"].id, courses["CS101"].id]
