"""PaymentLedger - Payment batches and their effect on registrations."""

from __future__ import annotations

import logging
import time
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select

from coursereg.logging import sanitize_for_log
from coursereg.payments.exceptions import AlreadyPaidError
from coursereg.payments.models import PaymentHistory, PaymentOutcome, PaymentStatistics
from coursereg.store.exceptions import InvalidStateError, NotFoundError
from coursereg.store.models import (
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Registration,
    RegistrationPaymentStatus,
    Student,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from sqlalchemy.orm import Session

    from coursereg.catalog.models import Catalog
    from coursereg.store.database import Database

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASON = "Payment processing failed"


def generate_transaction_id() -> str:
    """Build a processor-style transaction reference."""
    return f"TXN_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9].upper()}"


class PaymentLedger:
    """Tracks payment batches.

    Registration payment statuses change only through
    Registration.transition_payment_status, inside the same transaction as the
    payment row they mirror.
    """

    def __init__(
        self,
        database: Database,
        catalog: Catalog,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the ledger.

        Args:
            database: Shared Database instance.
            catalog: Course lookup used for pricing.
            clock: Source of the current naive-UTC time.
        """
        self._db = database
        self._catalog = catalog
        self._clock = clock

    # --- Batch lifecycle ---

    def create_batch(
        self,
        student_id: str,
        registration_ids: Iterable[int],
        method: PaymentMethod = PaymentMethod.CREDIT_CARD,
    ) -> Payment:
        """Open a pending tuition payment for a set of registrations.

        Args:
            student_id: Student paying
            registration_ids: Registrations covered by this payment
            method: Payment method

        Returns:
            The pending Payment

        Raises:
            ValueError: If no registrations are given
            NotFoundError: If the student or a registration doesn't exist,
                or a registration belongs to another student
            AlreadyPaidError: If a registration is paid or refunded
            InvalidStateError: If a registration is dropped, cancelled or
                already in another pending batch
        """
        ids = list(dict.fromkeys(registration_ids))
        if not ids:
            raise ValueError("A payment batch needs at least one registration")

        with self._db.transaction() as session:
            if session.get(Student, student_id) is None:
                raise NotFoundError("student", student_id)

            registrations = self._lock_registrations(session, ids)
            for rid in ids:
                registration = registrations.get(rid)
                if registration is None or registration.student_id != student_id:
                    raise NotFoundError("registration", rid)

            settled = [
                rid
                for rid in ids
                if registrations[rid].registration_payment_status
                in (RegistrationPaymentStatus.PAID, RegistrationPaymentStatus.REFUNDED)
            ]
            if settled:
                raise AlreadyPaidError(settled)

            for rid in ids:
                registration = registrations[rid]
                if registration.dropped:
                    raise InvalidStateError(
                        f"Registration {rid} has been dropped",
                        entity="registration",
                        current="dropped",
                        attempted="create_batch",
                    )
                if registration.registration_payment_status == RegistrationPaymentStatus.CANCELLED:
                    raise InvalidStateError(
                        f"Registration {rid} is cancelled",
                        entity="registration",
                        current=registration.payment_status,
                        attempted="create_batch",
                    )

            held = self._ids_in_open_batches(session, student_id) & set(ids)
            if held:
                raise InvalidStateError(
                    f"Registrations already in a pending payment: {sorted(held)}",
                    entity="registration",
                    current=PaymentStatus.PENDING.value,
                    attempted="create_batch",
                )

            # A failed attempt goes back to pending for the retry
            for rid in ids:
                registration = registrations[rid]
                if registration.registration_payment_status == RegistrationPaymentStatus.FAILED:
                    registration.transition_payment_status(RegistrationPaymentStatus.PENDING)

            courses = self._catalog.lookup_many_in(
                session, [registrations[rid].course_id for rid in ids]
            )
            breakdown: list[dict[str, Any]] = []
            total = Decimal("0.00")
            for rid in ids:
                course = courses[registrations[rid].course_id]
                total += course.cost
                breakdown.append(
                    {
                        "registration_id": rid,
                        "course_id": course.id,
                        "code": course.code,
                        "name": course.name,
                        "credit_hours": course.credit_hours,
                        "cost": str(course.cost),
                    }
                )

            payment = Payment(
                student_id=student_id,
                amount=total,
                method=PaymentMethod(method).value,
                description=f"Tuition payment for {len(ids)} course(s)",
                details={"registration_ids": ids, "courses": breakdown},
                created_at=self._clock(),
            )
            session.add(payment)
            session.flush()
            session.refresh(payment)

        logger.info(
            "Created payment %s for student %s: %d registrations, amount %s",
            payment.id,
            student_id,
            len(ids),
            payment.amount,
        )
        return payment

    def settle(
        self,
        payment_id: int,
        outcome: PaymentOutcome,
        failure_reason: str | None = None,
    ) -> Payment:
        """Record the processor's outcome for a pending batch.

        On success every referenced registration moves to paid in the same
        transaction. On failure the registrations stay pending.

        Args:
            payment_id: The pending payment
            outcome: Processor result
            failure_reason: Reason recorded on failure

        Returns:
            The settled Payment

        Raises:
            NotFoundError: If the payment doesn't exist
            InvalidStateError: If the payment isn't pending, or a referenced
                registration can no longer be paid
        """
        outcome = PaymentOutcome(outcome)
        with self._db.transaction() as session:
            payment = self._lock_payment(session, payment_id)
            if payment.payment_status != PaymentStatus.PENDING:
                raise InvalidStateError(
                    f"Payment {payment_id} is not pending",
                    entity="payment",
                    current=payment.status,
                    attempted=outcome.value,
                )

            now = self._clock()
            if outcome == PaymentOutcome.SUCCESS:
                registrations = self._lock_registrations(session, payment.registration_ids)
                for rid in payment.registration_ids:
                    registration = registrations.get(rid)
                    if registration is None:
                        raise NotFoundError("registration", rid)
                    if registration.dropped:
                        raise InvalidStateError(
                            f"Registration {rid} was dropped before settlement",
                            entity="registration",
                            current="dropped",
                            attempted=RegistrationPaymentStatus.PAID.value,
                        )
                    registration.transition_payment_status(RegistrationPaymentStatus.PAID)
                payment.status = PaymentStatus.COMPLETED.value
                payment.transaction_id = generate_transaction_id()
                payment.processed_at = now
            else:
                payment.status = PaymentStatus.FAILED.value
                payment.failure_reason = failure_reason or DEFAULT_FAILURE_REASON
                payment.processed_at = now

            session.flush()
            session.refresh(payment)

        if outcome == PaymentOutcome.SUCCESS:
            logger.info(
                "Payment %s completed (%s), %d registrations paid",
                payment_id,
                payment.transaction_id,
                len(payment.registration_ids),
            )
        else:
            logger.warning(
                "Payment %s failed: %s", payment_id, sanitize_for_log(payment.failure_reason or "")
            )
        return payment

    def refund(self, payment_id: int, reason: str) -> Payment:
        """Refund a completed tuition payment.

        Writes a negative refund row, marks the original refunded and moves
        every referenced registration that is still paid to refunded.

        Args:
            payment_id: The completed tuition payment
            reason: Why the refund was issued

        Returns:
            The refund Payment row

        Raises:
            NotFoundError: If the payment doesn't exist
            InvalidStateError: If the payment is not a completed tuition payment,
                or drop refunds already returned its whole amount
        """
        with self._db.transaction() as session:
            payment = self._lock_payment(session, payment_id)
            if (
                payment.payment_type != PaymentType.TUITION
                or payment.payment_status != PaymentStatus.COMPLETED
            ):
                raise InvalidStateError(
                    f"Can only refund completed tuition payments (payment {payment_id} "
                    f"is {payment.type}/{payment.status})",
                    entity="payment",
                    current=payment.status,
                    attempted=PaymentStatus.REFUNDED.value,
                )

            already_refunded = sum(
                (-p.amount for p in self._refunds_of(session, payment)), Decimal("0.00")
            )
            remaining = Decimal(payment.amount) - already_refunded
            if remaining <= 0:
                raise InvalidStateError(
                    f"Payment {payment_id} has nothing left to refund",
                    entity="payment",
                    current=payment.status,
                    attempted=PaymentStatus.REFUNDED.value,
                )

            registrations = self._lock_registrations(session, payment.registration_ids)
            flipped: list[int] = []
            for rid in payment.registration_ids:
                registration = registrations.get(rid)
                if registration is None:
                    raise NotFoundError("registration", rid)
                if registration.registration_payment_status == RegistrationPaymentStatus.REFUNDED:
                    continue
                registration.transition_payment_status(RegistrationPaymentStatus.REFUNDED)
                flipped.append(rid)

            now = self._clock()
            refund = Payment(
                student_id=payment.student_id,
                amount=-remaining,
                method=payment.method,
                type=PaymentType.REFUND.value,
                status=PaymentStatus.COMPLETED.value,
                description=f"Refund for payment {payment.id}",
                details={
                    "original_payment_id": payment.id,
                    "registration_ids": flipped,
                    "reason": reason,
                },
                transaction_id=generate_transaction_id(),
                processed_at=now,
                created_at=now,
            )
            payment.status = PaymentStatus.REFUNDED.value
            session.add(refund)
            session.flush()
            session.refresh(refund)

        logger.info(
            "Refunded payment %s (refund %s, amount %s): %s",
            payment_id,
            refund.id,
            refund.amount,
            sanitize_for_log(reason),
        )
        return refund

    def cancel_batch(self, payment_id: int) -> Payment:
        """Abandon a pending batch. Registrations stay pending.

        Raises:
            NotFoundError: If the payment doesn't exist
            InvalidStateError: If the payment isn't pending
        """
        with self._db.transaction() as session:
            payment = self._lock_payment(session, payment_id)
            if payment.payment_status != PaymentStatus.PENDING:
                raise InvalidStateError(
                    f"Payment {payment_id} is not pending",
                    entity="payment",
                    current=payment.status,
                    attempted=PaymentStatus.CANCELLED.value,
                )
            payment.status = PaymentStatus.CANCELLED.value
            session.flush()
            session.refresh(payment)

        logger.info("Cancelled payment %s", payment_id)
        return payment

    def refund_for_drop(
        self, session: Session, registration: Registration, reason: str
    ) -> Payment | None:
        """Write a compensating refund row for one dropped registration.

        Runs inside the caller's transaction. The amount is what the paying
        batch charged for that registration.

        Returns:
            The refund row, or None if no completed batch covers the registration
        """
        stmt = (
            select(Payment)
            .where(
                Payment.student_id == registration.student_id,
                Payment.type == PaymentType.TUITION.value,
                Payment.status == PaymentStatus.COMPLETED.value,
            )
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .with_for_update()
        )
        original = next(
            (p for p in session.execute(stmt).scalars() if registration.id in p.registration_ids),
            None,
        )
        if original is None:
            logger.warning(
                "No completed payment covers registration %s; refund not recorded", registration.id
            )
            return None

        charged = next(
            (
                Decimal(item["cost"])
                for item in original.details.get("courses", [])
                if int(item["registration_id"]) == registration.id
            ),
            None,
        )
        if charged is None:
            charged = self._catalog.lookup_in(
                session, registration.course_id, include_inactive=True
            ).cost

        now = self._clock()
        refund = Payment(
            student_id=registration.student_id,
            amount=-charged,
            method=original.method,
            type=PaymentType.REFUND.value,
            status=PaymentStatus.COMPLETED.value,
            description=f"Refund for dropped registration {registration.id}",
            details={
                "original_payment_id": original.id,
                "registration_ids": [registration.id],
                "reason": reason,
            },
            transaction_id=generate_transaction_id(),
            processed_at=now,
            created_at=now,
        )
        session.add(refund)
        session.flush()
        return refund

    # --- Reads ---

    def get_payment(self, payment_id: int) -> Payment:
        """Get payment by ID.

        Raises:
            NotFoundError: If payment doesn't exist
        """
        with self._db.reading() as session:
            payment = session.get(Payment, payment_id)
            if payment is None:
                raise NotFoundError("payment", payment_id)
            return payment

    def list_payments(self, student_id: str | None = None) -> list[Payment]:
        """List payments, newest first, optionally for one student."""
        with self._db.reading() as session:
            stmt = select(Payment)
            if student_id is not None:
                stmt = stmt.where(Payment.student_id == student_id)
            stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc())
            return list(session.execute(stmt).scalars().all())

    def history(self, student_id: str) -> PaymentHistory:
        """A student's payments with paid/pending totals."""
        payments = self.list_payments(student_id)
        return PaymentHistory(
            student_id=student_id,
            payments=payments,
            total_payments=len(payments),
            total_paid=sum(
                (p.amount for p in payments if p.payment_status == PaymentStatus.COMPLETED),
                Decimal("0.00"),
            ),
            total_pending=sum(
                (p.amount for p in payments if p.payment_status == PaymentStatus.PENDING),
                Decimal("0.00"),
            ),
            total_failed=sum(1 for p in payments if p.payment_status == PaymentStatus.FAILED),
        )

    def statistics(self) -> PaymentStatistics:
        """Counts per status and completed tuition revenue."""
        with self._db.reading() as session:
            stmt = select(
                func.count(Payment.id).label("total"),
                func.sum(
                    case((Payment.status == PaymentStatus.COMPLETED.value, 1), else_=0)
                ).label("completed"),
                func.sum(
                    case((Payment.status == PaymentStatus.PENDING.value, 1), else_=0)
                ).label("pending"),
                func.sum(
                    case((Payment.status == PaymentStatus.FAILED.value, 1), else_=0)
                ).label("failed"),
                func.sum(
                    case(
                        (
                            (Payment.status == PaymentStatus.COMPLETED.value)
                            & (Payment.type == PaymentType.TUITION.value),
                            Payment.amount,
                        ),
                        else_=0,
                    )
                ).label("revenue"),
            )
            result = session.execute(stmt).one()

        total = result.total or 0
        completed = result.completed or 0
        return PaymentStatistics(
            total_payments=total,
            completed_payments=completed,
            pending_payments=result.pending or 0,
            failed_payments=result.failed or 0,
            total_revenue=Decimal(str(result.revenue or 0)).quantize(Decimal("0.01")),
            success_rate=(completed / total * 100) if total > 0 else 0.0,
        )

    # --- Helpers (caller's session) ---

    def _lock_payment(self, session: Session, payment_id: int) -> Payment:
        stmt = select(Payment).where(Payment.id == payment_id).with_for_update()
        payment = session.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("payment", payment_id)
        return payment

    def _lock_registrations(self, session: Session, ids: list[int]) -> dict[int, Registration]:
        if not ids:
            return {}
        stmt = (
            select(Registration)
            .where(Registration.id.in_(ids))
            .with_for_update(of=Registration)
        )
        return {r.id: r for r in session.execute(stmt).unique().scalars()}

    def _ids_in_open_batches(self, session: Session, student_id: str) -> set[int]:
        stmt = select(Payment).where(
            Payment.student_id == student_id,
            Payment.type == PaymentType.TUITION.value,
            Payment.status == PaymentStatus.PENDING.value,
        )
        held: set[int] = set()
        for payment in session.execute(stmt).scalars():
            held.update(payment.registration_ids)
        return held

    def _refunds_of(self, session: Session, payment: Payment) -> list[Payment]:
        stmt = select(Payment).where(
            Payment.student_id == payment.student_id,
            Payment.type == PaymentType.REFUND.value,
        )
        return [
            p
            for p in session.execute(stmt).scalars()
            if p.details.get("original_payment_id") == payment.id
        ]
