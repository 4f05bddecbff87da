"""Course views."""

from fastapi import APIRouter

from coursereg.api.dependencies import EngineDep
from coursereg.api.models import (
    APIResponse,
    CourseStatisticsResponse,
    course_statistics_to_response,
)

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("/{course_id}/statistics", response_model=APIResponse[CourseStatisticsResponse])
def get_course_statistics(
    course_id: int, engine: EngineDep
) -> APIResponse[CourseStatisticsResponse]:
    """Get registration counts for a course."""
    statistics = engine.course_statistics(course_id)
    return APIResponse(data=course_statistics_to_response(statistics))
