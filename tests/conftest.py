"""Shared pytest fixtures and configuration."""

from datetime import datetime, timedelta

import pytest

from coursereg.catalog import CourseInfo
from coursereg.engine import RegistrationEngine


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


class FakeClock:
    """Settable naive-UTC clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# Shared fixtures


@pytest.fixture
def clock() -> FakeClock:
    """A clock fixed at the start of a term."""
    return FakeClock(datetime(2025, 1, 6, 9, 0, 0))


@pytest.fixture
def engine(clock: FakeClock):
    """An in-memory RegistrationEngine driven by the fake clock."""
    e = RegistrationEngine(":memory:", clock=clock)
    yield e
    e.close()


@pytest.fixture
def courses(engine: RegistrationEngine) -> dict[str, CourseInfo]:
    """A small catalog keyed by course code.

    CS201 requires CS101; CS301 requires CS201 and MATH101.
    """
    catalog = engine.catalog
    cs101 = catalog.add_course("CS101", "Intro to Programming", 3, price_per_credit_hour=500)
    math101 = catalog.add_course("MATH101", "Calculus I", 4, price_per_credit_hour=450)
    cs201 = catalog.add_course("CS201", "Data Structures", 3, prerequisite_ids=[cs101.id])
    cs301 = catalog.add_course(
        "CS301", "Algorithms", 3, prerequisite_ids=[cs201.id, math101.id]
    )
    phys101 = catalog.add_course("PHYS101", "Physics I", 4)
    chem101 = catalog.add_course("CHEM101", "Chemistry I", 4)
    bio101 = catalog.add_course("BIO101", "Biology I", 4)
    art101 = catalog.add_course("ART101", "Drawing", 2, price_per_credit_hour=300)
    return {
        c.code: c for c in (cs101, math101, cs201, cs301, phys101, chem101, bio101, art101)
    }
