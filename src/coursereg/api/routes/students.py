"""Student views: term summary, transcript and statistics."""

from fastapi import APIRouter, Query

from coursereg.api.dependencies import EngineDep
from coursereg.api.models import (
    APIResponse,
    RegistrationSummaryResponse,
    StudentStatisticsResponse,
    TranscriptResponse,
    student_statistics_to_response,
    summary_to_response,
    transcript_to_response,
)

router = APIRouter(prefix="/students", tags=["students"])


@router.get(
    "/{student_id}/registrations",
    response_model=APIResponse[RegistrationSummaryResponse],
)
def get_registrations(
    student_id: str,
    engine: EngineDep,
    semester: str = Query(..., min_length=1),
    year: int = Query(...),
) -> APIResponse[RegistrationSummaryResponse]:
    """Summarize a student's active registrations for a term."""
    summary = engine.registration_summary(student_id, semester, year)
    return APIResponse(data=summary_to_response(summary))


@router.get("/{student_id}/transcript", response_model=APIResponse[TranscriptResponse])
def get_transcript(student_id: str, engine: EngineDep) -> APIResponse[TranscriptResponse]:
    """Get a student's transcript with cumulative GPA."""
    transcript = engine.transcript(student_id)
    return APIResponse(data=transcript_to_response(transcript))


@router.get(
    "/{student_id}/statistics",
    response_model=APIResponse[StudentStatisticsResponse],
)
def get_statistics(student_id: str, engine: EngineDep) -> APIResponse[StudentStatisticsResponse]:
    """Get a student's registration counts, completed credit hours and GPA."""
    statistics = engine.student_statistics(student_id)
    return APIResponse(data=student_statistics_to_response(statistics))
