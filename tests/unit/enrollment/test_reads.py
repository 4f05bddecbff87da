"""Unit tests for EnrollmentLedger reads."""

from decimal import Decimal

import pytest

from coursereg.catalog import CourseInfo
from coursereg.engine import RegistrationEngine
from coursereg.store import NotFoundError


@pytest.mark.unit
class TestGetRegistration:
    """Tests for get_registration."""

    def test_get_registration(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Returns the stored registration with its course."""
        created = engine.admit("alice", courses["CS101"].id, "winter", 2025)

        found = engine.get_registration(created.id)

        assert found.id == created.id
        assert found.course.code == "CS101"

    def test_get_registration_missing(self, engine: RegistrationEngine) -> None:
        """NotFoundError for unknown IDs."""
        with pytest.raises(NotFoundError) as exc_info:
            engine.get_registration(404)
        assert exc_info.value.entity == "registration"


@pytest.mark.unit
class TestListRegistrations:
    """Tests for list_registrations."""

    def test_newest_first_and_filters(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo], clock
    ) -> None:
        """Filters by term and orders newest first."""
        first = engine.admit("alice", courses["CS101"].id, "winter", 2025)
        clock.advance(hours=1)
        second = engine.admit("alice", courses["MATH101"].id, "winter", 2025)
        clock.advance(hours=1)
        other = engine.admit("alice", courses["ART101"].id, "spring", 2025)

        assert [r.id for r in engine.list_registrations("alice")] == [
            other.id,
            second.id,
            first.id,
        ]
        assert [r.id for r in engine.list_registrations("alice", semester="winter")] == [
            second.id,
            first.id,
        ]
        assert engine.list_registrations("alice", year=2024) == []

    def test_dropped_hidden_by_default(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Dropped rows appear only with include_dropped."""
        registration = engine.admit("alice", courses["CS101"].id, "winter", 2025)
        engine.drop(registration.id)

        assert engine.list_registrations("alice") == []
        audit = engine.list_registrations("alice", include_dropped=True)
        assert [r.id for r in audit] == [registration.id]


@pytest.mark.unit
class TestSummary:
    """Tests for the term summary."""

    def test_summary_totals(
        self, engine: RegistrationEngine, courses: dict[str, CourseInfo]
    ) -> None:
        """Totals cover active registrations at current prices."""
        engine.admit("alice", courses["CS101"].id, "winter", 2025)
        engine.admit("alice", courses["ART101"].id, "winter", 2025)
        dropped = engine.admit("alice", courses["MATH101"].id, "winter", 2025)
        engine.drop(dropped.id)

        summary = engine.registration_summary("alice", "winter", 2025)

        assert summary.total_courses == 2
        assert summary.total_credit_hours == 5
        assert summary.total_cost == Decimal("2100.00")
        assert summary.payment_status_counts == {"pending": 2}

    def test_summary_empty(self, engine: RegistrationEngine) -> None:
        """A student with no registrations has an empty summary."""
        summary = engine.registration_summary("nobody", "winter", 2025)

        assert summary.registrations == []
        assert summary.total_cost == Decimal("0.00")
