"""SQLAlchemy models for the registration store."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)

from coursereg.store.exceptions import InvalidStateError


class RegistrationPaymentStatus(StrEnum):
    """Payment status of a single registration."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Grade(StrEnum):
    """Grade received for a course attempt."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"
    INCOMPLETE = "I"
    WITHDRAW = "W"


class PaymentStatus(StrEnum):
    """Status of a payment batch."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentType(StrEnum):
    """Direction of a payment row."""

    TUITION = "tuition"
    REFUND = "refund"


class PaymentMethod(StrEnum):
    """How a student pays."""

    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"


_PaymentStatusGraph = dict[RegistrationPaymentStatus, frozenset[RegistrationPaymentStatus]]

# Every status must appear as a key, even with no outgoing edges.
PAYMENT_STATUS_TRANSITIONS: _PaymentStatusGraph = {
    RegistrationPaymentStatus.PENDING: frozenset(
        {RegistrationPaymentStatus.PAID, RegistrationPaymentStatus.FAILED}
    ),
    RegistrationPaymentStatus.PAID: frozenset({RegistrationPaymentStatus.REFUNDED}),
    RegistrationPaymentStatus.FAILED: frozenset({RegistrationPaymentStatus.PENDING}),
    RegistrationPaymentStatus.CANCELLED: frozenset(),
    RegistrationPaymentStatus.REFUNDED: frozenset(),
}

GRADE_POINTS: dict[Grade, Decimal | None] = {
    Grade.A: Decimal("4.00"),
    Grade.B: Decimal("3.00"),
    Grade.C: Decimal("2.00"),
    Grade.D: Decimal("1.00"),
    Grade.F: Decimal("0.00"),
    Grade.INCOMPLETE: Decimal("0.00"),
    Grade.WITHDRAW: None,
}

PASSING_GRADES = frozenset({Grade.A, Grade.B, Grade.C, Grade.D})


def grade_points_for(grade: Grade) -> Decimal | None:
    """Look up grade points for a grade. Withdraw has none."""
    return GRADE_POINTS[grade]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching stored column values."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Course(Base):
    """Course model - catalog entry referenced by registrations."""

    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("credit_hours BETWEEN 1 AND 6", name="ck_courses_credit_hours"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    credit_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_credit_hour: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    prerequisite_links: Mapped[list[CoursePrerequisite]] = relationship(
        "CoursePrerequisite",
        foreign_keys="CoursePrerequisite.course_id",
        order_by="CoursePrerequisite.position",
        cascade="all, delete-orphan",
    )

    def __init__(
        self,
        code: str,
        name: str,
        credit_hours: int,
        price_per_credit_hour: Decimal = Decimal("500.00"),
        is_active: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.code = code
        self.name = name
        self.credit_hours = credit_hours
        self.price_per_credit_hour = price_per_credit_hour
        self.is_active = is_active

    @property
    def prerequisite_ids(self) -> list[int]:
        """Prerequisite course IDs in declared order."""
        return [link.prerequisite_id for link in self.prerequisite_links]

    def __repr__(self) -> str:
        return f"<Course(id={self.id!r}, code={self.code!r}, credit_hours={self.credit_hours!r})>"


class CoursePrerequisite(Base):
    """Directed prerequisite edge: course_id requires prerequisite_id."""

    __tablename__ = "course_prerequisites"

    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )
    prerequisite_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<CoursePrerequisite(course_id={self.course_id!r}, "
            f"prerequisite_id={self.prerequisite_id!r})>"
        )


class Student(Base):
    """Student aggregate - holds the materialized cumulative GPA."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    gpa: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(self, id: str, gpa: Decimal = Decimal("0.00"), **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.id = id
        self.gpa = gpa

    def __repr__(self) -> str:
        return f"<Student(id={self.id!r}, gpa={self.gpa!r})>"


class Registration(Base):
    """Registration model - one attempt at one course in one term."""

    __tablename__ = "registrations"
    __table_args__ = (
        Index(
            "uq_registrations_active",
            "student_id",
            "course_id",
            "semester",
            "year",
            unique=True,
            sqlite_where=text("dropped = 0"),
            postgresql_where=text("dropped = false"),
        ),
        Index("ix_registrations_student_term", "student_id", "semester", "year"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("students.id"), nullable=False
    )
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), nullable=False)
    semester: Mapped[str] = mapped_column(String(20), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    grade: Mapped[str | None] = mapped_column(String(2), nullable=True)
    grade_points: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    dropped: Mapped[bool] = mapped_column(Boolean, nullable=False)
    dropped_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    course: Mapped[Course] = relationship("Course", lazy="joined", innerjoin=True)

    def __init__(
        self,
        student_id: str,
        course_id: int,
        semester: str,
        year: int,
        created_at: datetime | None = None,
        payment_status: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.student_id = student_id
        self.course_id = course_id
        self.semester = semester
        self.year = year
        self.payment_status = (
            payment_status
            if payment_status is not None
            else RegistrationPaymentStatus.PENDING.value
        )
        self.grade = None
        self.grade_points = None
        self.completed = False
        self.dropped = False
        self.dropped_at = None
        self.created_at = created_at if created_at is not None else utcnow()

    @property
    def registration_payment_status(self) -> RegistrationPaymentStatus:
        """Get payment_status as RegistrationPaymentStatus enum."""
        return RegistrationPaymentStatus(self.payment_status)

    @property
    def grade_value(self) -> Grade | None:
        """Get grade as Grade enum."""
        return Grade(self.grade) if self.grade is not None else None

    def transition_payment_status(self, target: RegistrationPaymentStatus) -> None:
        """Move payment_status along the registration state machine.

        Raises:
            InvalidStateError: If the transition is not allowed.
        """
        current = self.registration_payment_status
        if target not in PAYMENT_STATUS_TRANSITIONS[current]:
            raise InvalidStateError(
                f"Registration {self.id} cannot move from '{current}' to '{target}'",
                entity="registration",
                current=current.value,
                attempted=target.value,
            )
        self.payment_status = target.value

    def __repr__(self) -> str:
        return (
            f"<Registration(id={self.id!r}, student_id={self.student_id!r}, "
            f"course_id={self.course_id!r}, payment_status={self.payment_status!r})>"
        )


class Payment(Base):
    """Payment model - a tuition batch or a refund row."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("students.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        student_id: str,
        amount: Decimal,
        method: str,
        type: str | None = None,
        status: str | None = None,
        description: str | None = None,
        details: dict[str, Any] | None = None,
        transaction_id: str | None = None,
        processed_at: datetime | None = None,
        created_at: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.student_id = student_id
        self.amount = amount
        self.method = method
        self.type = type if type is not None else PaymentType.TUITION.value
        self.status = status if status is not None else PaymentStatus.PENDING.value
        self.description = description
        self.details = details if details is not None else {}
        self.transaction_id = transaction_id
        self.failure_reason = None
        self.processed_at = processed_at
        self.created_at = created_at if created_at is not None else utcnow()

    @property
    def payment_status(self) -> PaymentStatus:
        """Get status as PaymentStatus enum."""
        return PaymentStatus(self.status)

    @property
    def payment_type(self) -> PaymentType:
        """Get type as PaymentType enum."""
        return PaymentType(self.type)

    @property
    def registration_ids(self) -> list[int]:
        """Registrations this payment covers."""
        return [int(rid) for rid in self.details.get("registration_ids", [])]

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id!r}, type={self.type!r}, "
            f"amount={self.amount!r}, status={self.status!r})>"
        )


class TermLock(Base):
    """Per-student-term lock row serializing admissions for one term."""

    __tablename__ = "term_locks"

    student_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    semester: Mapped[str] = mapped_column(String(20), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    def __init__(self, student_id: str, semester: str, year: int, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.student_id = student_id
        self.semester = semester
        self.year = year
        self.version = 0

    def __repr__(self) -> str:
        return (
            f"<TermLock(student_id={self.student_id!r}, semester={self.semester!r}, "
            f"year={self.year!r}, version={self.version!r})>"
        )
