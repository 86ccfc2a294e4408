"""
Waitlist Queue

FIFO waitlist per activity. New entries get ``1 + max(position)`` among the
waiting rows; promotion flips the smallest position to active.
"""

from uuid import UUID

import structlog

from services.activity_service.models import EnrollmentModel, EnrollmentStatus
from services.activity_service.repository import EnrollmentRepository

logger = structlog.get_logger(__name__)


class WaitlistQueue:
    """
    Waitlist operations within the caller's transaction.

    Positions order promotion only; gaps left by promotions or cancellations
    are never closed up.
    """

    def __init__(self, enrollments: EnrollmentRepository):
        self.enrollments = enrollments

    async def next_position(self, activity_id: UUID) -> int:
        """Position for the next waitlisted enrollment (1 when the waitlist is empty)."""
        highest = await self.enrollments.max_waiting_position(activity_id)
        return (highest or 0) + 1

    async def enqueue(self, activity_id: UUID, student: str) -> EnrollmentModel:
        """
        Append a waiting enrollment to the activity's waitlist.

        Args:
            activity_id: Activity UUID
            student: Student identifier

        Returns:
            EnrollmentModel: The new waiting enrollment
        """
        position = await self.next_position(activity_id)
        return await self.enrollments.add(
            activity_id, student, EnrollmentStatus.WAITING, position=position
        )

    async def promote_head(self, activity_id: UUID) -> EnrollmentModel | None:
        """
        Promote the head of the waitlist to active.

        Args:
            activity_id: Activity UUID

        Returns:
            The promoted enrollment, or None if nobody was waiting
        """
        head = await self.enrollments.waitlist_head(activity_id)
        if head is None:
            return None

        previous_position = head.position
        head.status = EnrollmentStatus.ACTIVE.value
        head.position = 0
        await self.enrollments.session.flush()

        logger.info(
            "Waitlist head promoted",
            activity_id=str(activity_id),
            enrollment_id=str(head.id),
            student=head.student,
            previous_position=previous_position,
        )
        return head

    async def entries(self, activity_id: UUID) -> list[EnrollmentModel]:
        """Current waiting enrollments in promotion order."""
        return await self.enrollments.waiting(activity_id)
