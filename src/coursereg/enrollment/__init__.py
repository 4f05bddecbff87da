"""Enrollment package - Admission decisions for registrations."""

from coursereg.enrollment.exceptions import (
    BulkAdmissionError,
    CourseUnavailableError,
    CreditLimitExceededError,
    DuplicateEnrollmentError,
    PrerequisitesNotMetError,
)
from coursereg.enrollment.ledger import MAX_CREDIT_HOURS, EnrollmentLedger
from coursereg.enrollment.models import RegistrationSummary

__all__ = [
    "MAX_CREDIT_HOURS",
    "BulkAdmissionError",
    "CourseUnavailableError",
    "CreditLimitExceededError",
    "DuplicateEnrollmentError",
    "EnrollmentLedger",
    "PrerequisitesNotMetError",
    "RegistrationSummary",
]
