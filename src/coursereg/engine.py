"""RegistrationEngine - Public entry point wiring the engine components."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from coursereg.catalog.accessor import CatalogAccessor
from coursereg.config import EngineConfig
from coursereg.drops.policy import DropPolicy
from coursereg.enrollment.ledger import EnrollmentLedger
from coursereg.grading.engine import GradingEngine
from coursereg.payments.ledger import PaymentLedger
from coursereg.payments.models import PaymentOutcome
from coursereg.store.database import Database
from coursereg.store.models import PaymentMethod, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime
    from decimal import Decimal

    from coursereg.catalog.models import CourseStatistics
    from coursereg.enrollment.models import RegistrationSummary
    from coursereg.grading.models import StudentStatistics, Transcript
    from coursereg.payments.models import PaymentHistory, PaymentStatistics
    from coursereg.store.models import Grade, Payment, Registration

logger = logging.getLogger(__name__)


class RegistrationEngine:
    """Enrollment consistency engine over one database.

    Owns the Database and the five components sharing it. Callers may invoke
    any operation from concurrent threads; every mutating call is a single
    transaction.
    """

    def __init__(
        self,
        db_path: str | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the engine.

        Args:
            db_path: SQLite path or ":memory:". Overrides the configured path.
            config: Engine configuration. Defaults to EngineConfig().
            clock: Source of the current naive-UTC time.
        """
        self.config = config if config is not None else EngineConfig()
        path = db_path if db_path is not None else self.config.get_database_path()
        policy = self.config.policy

        self.database = Database(path, busy_timeout=self.config.database.busy_timeout)
        self.database.create_tables()

        self.catalog = CatalogAccessor(self.database)
        self.enrollment = EnrollmentLedger(
            self.database,
            self.catalog,
            max_credit_hours=policy.max_credit_hours,
            clock=clock,
        )
        self.payments = PaymentLedger(self.database, self.catalog, clock=clock)
        self.grading = GradingEngine(self.database, count_incomplete=policy.count_incomplete_in_gpa)
        self.drops = DropPolicy(
            self.database,
            self.payments,
            refund_window_days=policy.refund_window_days,
            clock=clock,
        )
        logger.info(
            "Registration engine ready (db=%s, max_credit_hours=%d, refund_window_days=%d)",
            path,
            policy.max_credit_hours,
            policy.refund_window_days,
        )

    # --- Enrollment ---

    def admit(self, student_id: str, course_id: int, semester: str, year: int) -> Registration:
        """Admit a student into one course. See EnrollmentLedger.admit."""
        return self.enrollment.admit(student_id, course_id, semester, year)

    def bulk_admit(
        self, student_id: str, course_ids: Iterable[int], semester: str, year: int
    ) -> list[Registration]:
        """Admit a student into several courses atomically."""
        return self.enrollment.bulk_admit(student_id, course_ids, semester, year)

    def get_registration(self, registration_id: int) -> Registration:
        return self.enrollment.get_registration(registration_id)

    def list_registrations(
        self,
        student_id: str,
        semester: str | None = None,
        year: int | None = None,
        include_dropped: bool = False,
    ) -> list[Registration]:
        return self.enrollment.list_registrations(
            student_id, semester=semester, year=year, include_dropped=include_dropped
        )

    def current_credit_hours(self, student_id: str, semester: str, year: int) -> int:
        return self.enrollment.current_credit_hours(student_id, semester, year)

    def registration_summary(
        self, student_id: str, semester: str, year: int
    ) -> RegistrationSummary:
        return self.enrollment.summary(student_id, semester, year)

    # --- Payments ---

    def create_payment_batch(
        self,
        student_id: str,
        registration_ids: Iterable[int],
        method: PaymentMethod = PaymentMethod.CREDIT_CARD,
    ) -> Payment:
        """Open a pending payment for registrations. See PaymentLedger.create_batch."""
        return self.payments.create_batch(student_id, registration_ids, method)

    def settle_payment(
        self,
        payment_id: int,
        outcome: PaymentOutcome | str,
        failure_reason: str | None = None,
    ) -> Payment:
        """Record the processor outcome of a pending payment."""
        return self.payments.settle(payment_id, PaymentOutcome(outcome), failure_reason)

    def refund_payment(self, payment_id: int, reason: str) -> Payment:
        """Refund a completed payment and return the refund row."""
        return self.payments.refund(payment_id, reason)

    def cancel_payment_batch(self, payment_id: int) -> Payment:
        return self.payments.cancel_batch(payment_id)

    def get_payment(self, payment_id: int) -> Payment:
        return self.payments.get_payment(payment_id)

    def list_payments(self, student_id: str | None = None) -> list[Payment]:
        return self.payments.list_payments(student_id)

    def payment_history(self, student_id: str) -> PaymentHistory:
        return self.payments.history(student_id)

    def payment_statistics(self) -> PaymentStatistics:
        return self.payments.statistics()

    # --- Grading ---

    def assign_grade(self, registration_id: int, grade: Grade | str) -> Registration:
        """Grade a registration and recompute the student's GPA."""
        return self.grading.assign_grade(registration_id, grade)

    def recompute_gpa(self, student_id: str) -> Decimal:
        return self.grading.recompute_gpa(student_id)

    def rebuild_all_gpas(self) -> int:
        return self.grading.rebuild_all_gpas()

    def transcript(self, student_id: str) -> Transcript:
        return self.grading.transcript(student_id)

    def semester_gpa(self, student_id: str, semester: str, year: int) -> Decimal:
        return self.grading.semester_gpa(student_id, semester, year)

    def student_statistics(self, student_id: str) -> StudentStatistics:
        return self.grading.student_statistics(student_id)

    def course_statistics(self, course_id: int) -> CourseStatistics:
        """Registration counts for a course, dropped rows included in the total."""
        return self.catalog.course_statistics(course_id)

    # --- Drops ---

    def drop(self, registration_id: int) -> Registration:
        """Drop a registration, refunding it inside the window."""
        return self.drops.drop(registration_id)

    def close(self) -> None:
        """Release database connections."""
        self.database.close()
