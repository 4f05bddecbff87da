"""DropPolicy - Time-windowed reversal of registrations."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select

from coursereg.drops.exceptions import CannotDropCompletedError
from coursereg.store.exceptions import NotFoundError
from coursereg.store.models import Registration, RegistrationPaymentStatus, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from coursereg.payments.ledger import PaymentLedger
    from coursereg.store.database import Database

logger = logging.getLogger(__name__)

REFUND_WINDOW_DAYS = 7


class DropPolicy:
    """Drops registrations and refunds them inside the refund window."""

    def __init__(
        self,
        database: Database,
        payments: PaymentLedger,
        refund_window_days: int = REFUND_WINDOW_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the policy.

        Args:
            database: Shared Database instance.
            payments: Ledger that records compensating refunds.
            refund_window_days: Days after admission during which a drop is refunded.
            clock: Source of the current naive-UTC time.
        """
        self._db = database
        self._payments = payments
        self.refund_window = timedelta(days=refund_window_days)
        self._clock = clock

    def is_refund_eligible(self, registration: Registration, now: datetime | None = None) -> bool:
        """Whether dropping now would still be inside the refund window."""
        now = now if now is not None else self._clock()
        return now - registration.created_at <= self.refund_window

    def drop(self, registration_id: int) -> Registration:
        """Drop a registration.

        A second drop of the same registration returns it unchanged. Inside
        the refund window a paid registration moves to refunded and a refund
        row is written against the batch that paid for it.

        Args:
            registration_id: The registration to drop

        Returns:
            The dropped Registration

        Raises:
            NotFoundError: If the registration doesn't exist
            CannotDropCompletedError: If the registration has been graded
        """
        refunded = False
        with self._db.transaction() as session:
            stmt = (
                select(Registration)
                .where(Registration.id == registration_id)
                .with_for_update(of=Registration)
            )
            registration = session.execute(stmt).scalar_one_or_none()
            if registration is None:
                raise NotFoundError("registration", registration_id)
            if registration.completed:
                raise CannotDropCompletedError(registration_id)
            if registration.dropped:
                logger.info("Registration %s already dropped", registration_id)
                return registration

            now = self._clock()
            eligible = self.is_refund_eligible(registration, now)
            registration.dropped = True
            registration.dropped_at = now

            paid = registration.registration_payment_status == RegistrationPaymentStatus.PAID
            if eligible and paid:
                registration.transition_payment_status(RegistrationPaymentStatus.REFUNDED)
                self._payments.refund_for_drop(
                    session, registration, reason=f"Dropped registration {registration_id}"
                )
                refunded = True

            session.flush()
            session.refresh(registration)

        logger.info(
            "Dropped registration %s for student %s (refunded=%s)",
            registration_id,
            registration.student_id,
            refunded,
        )
        return registration
