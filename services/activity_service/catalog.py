"""
Activity Catalog

Read-only view of activity records for the enrollment engine. The catalog is
the only place that decides whether an activity accepts enrollments.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.activity_service.models import (
    ActivityModel,
    ActivityStatus,
    EnrollmentModel,
    EnrollmentStatus,
)
from shared.domain.exceptions import NotEnrollableError
from shared.domain.scheduling import ScheduledActivity, TimeWindow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EnrollableActivity:
    """Window and capacity of an approved activity."""

    activity_id: UUID
    title: str
    window: TimeWindow
    capacity: int

    def as_scheduled(self) -> ScheduledActivity:
        """View used by the conflict checker."""
        return ScheduledActivity(activity_id=self.activity_id, title=self.title, window=self.window)


@dataclass(frozen=True)
class ActivityAvailability:
    """An approved activity with its current number of occupied seats."""

    activity_id: UUID
    title: str
    category: str
    location: str
    start_time: datetime
    end_time: datetime
    capacity: int
    enrolled: int

    @property
    def seats_left(self) -> int:
        return max(0, self.capacity - self.enrolled)


def to_scheduled(activity: ActivityModel) -> ScheduledActivity:
    """Convert an activity row into the conflict checker's view."""
    return ScheduledActivity(
        activity_id=activity.id,
        title=activity.title,
        window=TimeWindow(start=activity.start_time, end=activity.end_time),
    )


class ActivityCatalog:
    """Activity lookups within the caller's transaction."""

    def __init__(self, session: AsyncSession):
        """
        Initialize catalog.

        Args:
            session: Database session
        """
        self.session = session

    async def get(self, activity_id: UUID, lock: bool = False) -> ActivityModel | None:
        """
        Fetch an activity regardless of its status.

        Args:
            activity_id: Activity UUID
            lock: Take a row lock (SELECT ... FOR UPDATE) until the transaction ends

        Returns:
            ActivityModel or None
        """
        stmt = select(ActivityModel).where(ActivityModel.id == activity_id)
        if lock:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_enrollable(self, activity_id: UUID, lock: bool = False) -> EnrollableActivity:
        """
        Window and capacity of an activity that accepts enrollments.

        Args:
            activity_id: Activity UUID
            lock: Take a row lock on the activity

        Returns:
            EnrollableActivity

        Raises:
            NotEnrollableError: If the activity is missing or not approved
        """
        activity = await self.get(activity_id, lock=lock)

        if activity is None:
            raise NotEnrollableError(activity_id, reason="not_found")

        if activity.status != ActivityStatus.APPROVED.value:
            raise NotEnrollableError(activity_id, reason=activity.status)

        return EnrollableActivity(
            activity_id=activity.id,
            title=activity.title,
            window=TimeWindow(start=activity.start_time, end=activity.end_time),
            capacity=activity.capacity,
        )

    async def list_enrollable(self) -> list[ActivityAvailability]:
        """Approved activities ordered by start time, with their active-enrollment counts."""
        enrolled = func.count(EnrollmentModel.id)
        result = await self.session.execute(
            select(ActivityModel, enrolled)
            .outerjoin(
                EnrollmentModel,
                and_(
                    EnrollmentModel.activity_id == ActivityModel.id,
                    EnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
                ),
            )
            .where(ActivityModel.status == ActivityStatus.APPROVED.value)
            .group_by(ActivityModel.id)
            .order_by(ActivityModel.start_time)
        )

        return [
            ActivityAvailability(
                activity_id=activity.id,
                title=activity.title,
                category=activity.category,
                location=activity.location,
                start_time=activity.start_time,
                end_time=activity.end_time,
                capacity=activity.capacity,
                enrolled=count,
            )
            for activity, count in result.all()
        ]
