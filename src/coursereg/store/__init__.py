"""Store - Persistent storage for courses, registrations, payments and students."""

from coursereg.store.database import Database
from coursereg.store.exceptions import (
    EngineError,
    InvalidStateError,
    NotFoundError,
    RejectedError,
    StorageError,
)
from coursereg.store.models import (
    GRADE_POINTS,
    PASSING_GRADES,
    PAYMENT_STATUS_TRANSITIONS,
    Course,
    CoursePrerequisite,
    Grade,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Registration,
    RegistrationPaymentStatus,
    Student,
    TermLock,
    grade_points_for,
    utcnow,
)

__all__ = [
    "GRADE_POINTS",
    "PASSING_GRADES",
    "PAYMENT_STATUS_TRANSITIONS",
    "Course",
    "CoursePrerequisite",
    "Database",
    "EngineError",
    "Grade",
    "InvalidStateError",
    "NotFoundError",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "Registration",
    "RegistrationPaymentStatus",
    "RejectedError",
    "StorageError",
    "Student",
    "TermLock",
    "grade_points_for",
    "utcnow",
]
