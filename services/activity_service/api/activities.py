"""
Activity API Endpoints

Browse approved activities with remaining seats and inspect waitlists.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from services.activity_service.api.dependencies import get_enrollment_engine
from services.activity_service.api.enrollments import EnrollmentResponse
from services.activity_service.enrollment_service import EnrollmentEngine

router = APIRouter()


class ActivityResponse(BaseModel):
    """Approved activity with seat availability."""

    id: UUID
    title: str
    category: str
    location: str
    start_time: datetime
    end_time: datetime
    capacity: int
    enrolled: int
    seats_left: int


@router.get("", response_model=list[ActivityResponse])
async def list_activities(
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
) -> list[ActivityResponse]:
    """List approved activities ordered by start time."""
    activities = await engine.available_activities()

    return [
        ActivityResponse(
            id=activity.activity_id,
            title=activity.title,
            category=activity.category,
            location=activity.location,
            start_time=activity.start_time,
            end_time=activity.end_time,
            capacity=activity.capacity,
            enrolled=activity.enrolled,
            seats_left=activity.seats_left,
        )
        for activity in activities
    ]


@router.get("/{activity_id}/waitlist", response_model=list[EnrollmentResponse])
async def get_waitlist(
    activity_id: UUID,
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
) -> list[EnrollmentResponse]:
    """Waiting enrollments of an activity in promotion order."""
    entries = await engine.waitlist(activity_id)
    return [EnrollmentResponse.from_outcome(entry) for entry in entries]
