"""Pydantic models for REST API."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from coursereg.payments.models import PaymentOutcome
from coursereg.store.models import Grade, PaymentMethod

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None
    code: str | None = None
    details: dict[str, Any] | None = None


# Registration models


class AdmitRequest(BaseModel):
    """Request model for admitting a student into one course."""

    student_id: str = Field(..., min_length=1, max_length=64)
    course_id: int = Field(..., ge=1)
    semester: str = Field(..., min_length=1, max_length=20)
    year: int = Field(..., ge=1900, le=2999)


class BulkAdmitRequest(BaseModel):
    """Request model for admitting a student into several courses."""

    student_id: str = Field(..., min_length=1, max_length=64)
    course_ids: list[int] = Field(default_factory=list)
    semester: str = Field(..., min_length=1, max_length=20)
    year: int = Field(..., ge=1900, le=2999)


class GradeRequest(BaseModel):
    """Request model for grading a registration."""

    grade: Grade


class RegistrationResponse(BaseModel):
    """Response model for a registration."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: str
    course_id: int
    semester: str
    year: int
    payment_status: str
    grade: str | None
    grade_points: Decimal | None
    completed: bool
    dropped: bool
    dropped_at: datetime | None
    created_at: datetime


def registration_to_response(registration: Any) -> RegistrationResponse:
    """Convert a Registration model to RegistrationResponse."""
    return RegistrationResponse.model_validate(registration)


class RegistrationSummaryResponse(BaseModel):
    """Response model for a student's term summary."""

    model_config = ConfigDict(from_attributes=True)

    student_id: str
    semester: str
    year: int
    registrations: list[RegistrationResponse]
    total_courses: int
    total_credit_hours: int
    total_cost: Decimal
    payment_status_counts: dict[str, int]


def summary_to_response(summary: Any) -> RegistrationSummaryResponse:
    """Convert a RegistrationSummary to RegistrationSummaryResponse."""
    return RegistrationSummaryResponse.model_validate(summary)


# Transcript models


class TranscriptEntryResponse(BaseModel):
    """Response model for one transcript line."""

    model_config = ConfigDict(from_attributes=True)

    registration_id: int
    course_code: str
    course_name: str
    credit_hours: int
    semester: str
    year: int
    grade: str
    grade_points: Decimal | None


class TranscriptResponse(BaseModel):
    """Response model for a transcript."""

    model_config = ConfigDict(from_attributes=True)

    student_id: str
    gpa: Decimal
    entries: list[TranscriptEntryResponse]
    total_credit_hours: int


def transcript_to_response(transcript: Any) -> TranscriptResponse:
    """Convert a Transcript to TranscriptResponse."""
    return TranscriptResponse.model_validate(transcript)


# Statistics models


class StudentStatisticsResponse(BaseModel):
    """Response model for a student's registration statistics."""

    model_config = ConfigDict(from_attributes=True)

    student_id: str
    total_registrations: int
    active_registrations: int
    completed_registrations: int
    completed_credit_hours: int
    gpa: Decimal


class CourseStatisticsResponse(BaseModel):
    """Response model for a course's registration statistics."""

    course_id: int
    code: str
    name: str
    is_active: bool
    total_registrations: int
    active_registrations: int
    completed_registrations: int


def student_statistics_to_response(statistics: Any) -> StudentStatisticsResponse:
    """Convert StudentStatistics to StudentStatisticsResponse."""
    return StudentStatisticsResponse.model_validate(statistics)


def course_statistics_to_response(statistics: Any) -> CourseStatisticsResponse:
    """Convert CourseStatistics to CourseStatisticsResponse."""
    return CourseStatisticsResponse(
        course_id=statistics.course.id,
        code=statistics.course.code,
        name=statistics.course.name,
        is_active=statistics.course.is_active,
        total_registrations=statistics.total_registrations,
        active_registrations=statistics.active_registrations,
        completed_registrations=statistics.completed_registrations,
    )


# Payment models


class PaymentCreate(BaseModel):
    """Request model for opening a payment batch."""

    student_id: str = Field(..., min_length=1, max_length=64)
    registration_ids: list[int] = Field(..., min_length=1)
    method: PaymentMethod = PaymentMethod.CREDIT_CARD


class SettleRequest(BaseModel):
    """Request model for recording a processor outcome."""

    outcome: PaymentOutcome
    failure_reason: str | None = Field(default=None, max_length=1000)


class RefundRequest(BaseModel):
    """Request model for refunding a payment."""

    reason: str = Field(..., min_length=1, max_length=1000)


class PaymentResponse(BaseModel):
    """Response model for a payment or refund row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: str
    amount: Decimal
    type: str
    method: str
    status: str
    transaction_id: str | None
    description: str | None
    details: dict[str, Any]
    failure_reason: str | None
    processed_at: datetime | None
    created_at: datetime


def payment_to_response(payment: Any) -> PaymentResponse:
    """Convert a Payment model to PaymentResponse."""
    return PaymentResponse.model_validate(payment)
