"""Registration endpoints: admission, drop and grading."""

from fastapi import APIRouter, status

from coursereg.api.dependencies import EngineDep
from coursereg.api.models import (
    AdmitRequest,
    APIResponse,
    BulkAdmitRequest,
    GradeRequest,
    RegistrationResponse,
    registration_to_response,
)

router = APIRouter(prefix="/registrations", tags=["registrations"])


@router.post(
    "",
    response_model=APIResponse[RegistrationResponse],
    status_code=status.HTTP_201_CREATED,
)
def admit(request: AdmitRequest, engine: EngineDep) -> APIResponse[RegistrationResponse]:
    """Admit a student into a course."""
    registration = engine.admit(
        request.student_id, request.course_id, request.semester, request.year
    )
    return APIResponse(data=registration_to_response(registration))


@router.post(
    "/bulk",
    response_model=APIResponse[list[RegistrationResponse]],
    status_code=status.HTTP_201_CREATED,
)
def bulk_admit(
    request: BulkAdmitRequest, engine: EngineDep
) -> APIResponse[list[RegistrationResponse]]:
    """Admit a student into several courses, all or nothing."""
    registrations = engine.bulk_admit(
        request.student_id, request.course_ids, request.semester, request.year
    )
    return APIResponse(data=[registration_to_response(r) for r in registrations])


@router.get("/{registration_id}", response_model=APIResponse[RegistrationResponse])
def get_registration(
    registration_id: int, engine: EngineDep
) -> APIResponse[RegistrationResponse]:
    """Get a registration by ID."""
    registration = engine.get_registration(registration_id)
    return APIResponse(data=registration_to_response(registration))


@router.post("/{registration_id}/drop", response_model=APIResponse[RegistrationResponse])
def drop(registration_id: int, engine: EngineDep) -> APIResponse[RegistrationResponse]:
    """Drop a registration."""
    registration = engine.drop(registration_id)
    return APIResponse(data=registration_to_response(registration))


@router.put("/{registration_id}/grade", response_model=APIResponse[RegistrationResponse])
def assign_grade(
    registration_id: int, request: GradeRequest, engine: EngineDep
) -> APIResponse[RegistrationResponse]:
    """Assign a grade and recompute the student's GPA."""
    registration = engine.assign_grade(registration_id, request.grade)
    return APIResponse(data=registration_to_response(registration))
