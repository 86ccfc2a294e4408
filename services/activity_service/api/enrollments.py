"""
Enrollment API Endpoints

Enroll, join a waitlist, cancel, and list a student's enrollments. Domain
errors propagate to the application's DomainException handler.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from services.activity_service.api.dependencies import get_enrollment_engine
from services.activity_service.enrollment_service import (
    CancelOutcome,
    EnrollmentEngine,
    EnrollmentOutcome,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


class EnrollRequest(BaseModel):
    """Enrollment or waitlist-join request."""

    student: str = Field(..., min_length=1, max_length=100)
    activity_id: UUID


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    id: UUID
    activity_id: UUID
    student: str
    status: str
    position: int
    is_waitlisted: bool

    @classmethod
    def from_outcome(cls, outcome: EnrollmentOutcome) -> "EnrollmentResponse":
        return cls(
            id=outcome.enrollment_id,
            activity_id=outcome.activity_id,
            student=outcome.student,
            status=outcome.status.value,
            position=outcome.position,
            is_waitlisted=outcome.is_waitlisted,
        )


class CancelResponse(BaseModel):
    """Cancellation response."""

    id: UUID
    activity_id: UUID
    previous_status: str
    already_cancelled: bool
    promoted_enrollment_id: UUID | None

    @classmethod
    def from_outcome(cls, outcome: CancelOutcome) -> "CancelResponse":
        return cls(
            id=outcome.enrollment_id,
            activity_id=outcome.activity_id,
            previous_status=outcome.previous_status.value,
            already_cancelled=outcome.already_cancelled,
            promoted_enrollment_id=outcome.promoted_enrollment_id,
        )


class StudentEnrollmentResponse(BaseModel):
    """One entry of a student's enrollment list."""

    id: UUID
    activity_id: UUID
    title: str
    start_time: datetime
    end_time: datetime
    status: str
    position: int


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def enroll(
    request: EnrollRequest,
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
) -> EnrollmentResponse:
    """
    Enroll a student in an activity.

    A full activity puts the student on its waitlist instead; the response
    then carries ``status=waiting`` and the assigned position.
    """
    logger.info("Enrollment API called", student=request.student, activity_id=str(request.activity_id))

    outcome = await engine.enroll(request.student, request.activity_id)
    return EnrollmentResponse.from_outcome(outcome)


@router.post("/waitlist", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    request: EnrollRequest,
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
) -> EnrollmentResponse:
    """Put a student on an activity's waitlist without trying for a seat."""
    outcome = await engine.join_waitlist(request.student, request.activity_id)
    return EnrollmentResponse.from_outcome(outcome)


@router.post("/{enrollment_id}/cancel", response_model=CancelResponse)
async def cancel(
    enrollment_id: UUID,
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
) -> CancelResponse:
    """Cancel an enrollment; a freed seat goes to the head of the waitlist."""
    outcome = await engine.cancel(enrollment_id)
    return CancelResponse.from_outcome(outcome)


@router.get("", response_model=list[StudentEnrollmentResponse])
async def list_enrollments(
    student: str = Query(..., min_length=1),
    waiting_only: bool = Query(False),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
) -> list[StudentEnrollmentResponse]:
    """
    List a student's enrollments.

    Args:
        student: Student identifier
        waiting_only: Only waitlisted entries, ordered by position
        engine: Enrollment engine

    Returns:
        List of enrollments
    """
    entries = await engine.list_student_enrollments(student, waiting_only=waiting_only)
    return [
        StudentEnrollmentResponse(
            id=entry.enrollment_id,
            activity_id=entry.activity_id,
            title=entry.title,
            start_time=entry.window.start,
            end_time=entry.window.end,
            status=entry.status.value,
            position=entry.position,
        )
        for entry in entries
    ]
