"""
Enrollment Repository

Database access layer for enrollment rows. Every method runs inside the
caller's session/transaction; nothing here commits.
"""

from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.activity_service.models import (
    OPEN_CLAIM_STATUSES,
    ActivityModel,
    ActivityStatus,
    EnrollmentModel,
    EnrollmentStatus,
)

logger = structlog.get_logger(__name__)


class EnrollmentRepository:
    """Repository for enrollment data access."""

    def __init__(self, session: AsyncSession):
        """
        Initialize repository.

        Args:
            session: Database session
        """
        self.session = session

    async def get(self, enrollment_id: UUID, for_update: bool = False) -> EnrollmentModel | None:
        """
        Get enrollment by ID.

        Args:
            enrollment_id: Enrollment UUID
            for_update: Lock the row until the transaction ends

        Returns:
            EnrollmentModel or None
        """
        stmt = select(EnrollmentModel).where(EnrollmentModel.id == enrollment_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_open_claim(self, student: str, activity_id: UUID) -> EnrollmentModel | None:
        """Find the student's active or waiting enrollment for the activity, if any."""
        result = await self.session.execute(
            select(EnrollmentModel).where(
                EnrollmentModel.student == student,
                EnrollmentModel.activity_id == activity_id,
                EnrollmentModel.status.in_(OPEN_CLAIM_STATUSES),
            )
        )
        return result.scalars().first()

    async def count_active(self, activity_id: UUID) -> int:
        """Count active enrollments (occupied seats) for an activity."""
        result = await self.session.execute(
            select(func.count())
            .select_from(EnrollmentModel)
            .where(
                EnrollmentModel.activity_id == activity_id,
                EnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
            )
        )
        return result.scalar_one()

    async def max_waiting_position(self, activity_id: UUID) -> int | None:
        """Highest position among waiting enrollments, or None if the waitlist is empty."""
        result = await self.session.execute(
            select(func.max(EnrollmentModel.position)).where(
                EnrollmentModel.activity_id == activity_id,
                EnrollmentModel.status == EnrollmentStatus.WAITING.value,
            )
        )
        return result.scalar_one_or_none()

    async def waitlist_head(self, activity_id: UUID) -> EnrollmentModel | None:
        """Waiting enrollment with the smallest position (creation order breaks ties)."""
        result = await self.session.execute(
            select(EnrollmentModel)
            .where(
                EnrollmentModel.activity_id == activity_id,
                EnrollmentModel.status == EnrollmentStatus.WAITING.value,
            )
            .order_by(EnrollmentModel.position, EnrollmentModel.created_at)
            .limit(1)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def waiting(self, activity_id: UUID) -> list[EnrollmentModel]:
        """All waiting enrollments for an activity in promotion order."""
        result = await self.session.execute(
            select(EnrollmentModel)
            .where(
                EnrollmentModel.activity_id == activity_id,
                EnrollmentModel.status == EnrollmentStatus.WAITING.value,
            )
            .order_by(EnrollmentModel.position, EnrollmentModel.created_at)
        )
        return list(result.scalars().all())

    async def add(
        self,
        activity_id: UUID,
        student: str,
        status: EnrollmentStatus,
        position: int = 0,
    ) -> EnrollmentModel:
        """
        Insert a new enrollment row.

        Args:
            activity_id: Activity UUID
            student: Student identifier
            status: Initial status (active or waiting)
            position: Waitlist position (0 for active)

        Returns:
            EnrollmentModel: Flushed enrollment
        """
        enrollment = EnrollmentModel(
            activity_id=activity_id,
            student=student,
            status=status.value,
            position=position,
        )
        self.session.add(enrollment)
        await self.session.flush()
        return enrollment

    async def active_activities_for_student(self, student: str) -> list[ActivityModel]:
        """Activities the student actively holds, skipping cancelled activities."""
        result = await self.session.execute(
            select(ActivityModel)
            .join(EnrollmentModel, EnrollmentModel.activity_id == ActivityModel.id)
            .where(
                EnrollmentModel.student == student,
                EnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
                ActivityModel.status != ActivityStatus.CANCELLED.value,
            )
            .order_by(ActivityModel.start_time)
        )
        return list(result.scalars().all())

    async def active_schedule(
        self, student: str | None = None
    ) -> list[tuple[str, ActivityModel]]:
        """
        Active enrollments joined to their (non-cancelled) activities.

        Args:
            student: Restrict to one student (None = everyone)

        Returns:
            (student, activity) pairs ordered by student then activity start time
        """
        stmt = (
            select(EnrollmentModel.student, ActivityModel)
            .join(ActivityModel, EnrollmentModel.activity_id == ActivityModel.id)
            .where(
                EnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
                ActivityModel.status != ActivityStatus.CANCELLED.value,
            )
            .order_by(EnrollmentModel.student, ActivityModel.start_time)
        )
        if student is not None:
            stmt = stmt.where(EnrollmentModel.student == student)

        result = await self.session.execute(stmt)
        return [(row_student, activity) for row_student, activity in result.all()]

    async def for_student(
        self, student: str, waiting_only: bool = False
    ) -> list[tuple[EnrollmentModel, ActivityModel]]:
        """
        A student's enrollments with their activities.

        Ordered by activity start time, or by waitlist position when only
        waiting entries are requested.
        """
        stmt = (
            select(EnrollmentModel, ActivityModel)
            .join(ActivityModel, EnrollmentModel.activity_id == ActivityModel.id)
            .where(EnrollmentModel.student == student)
        )
        if waiting_only:
            stmt = stmt.where(EnrollmentModel.status == EnrollmentStatus.WAITING.value).order_by(
                EnrollmentModel.position
            )
        else:
            stmt = stmt.order_by(ActivityModel.start_time, EnrollmentModel.created_at)

        result = await self.session.execute(stmt)
        return [(enrollment, activity) for enrollment, activity in result.all()]
