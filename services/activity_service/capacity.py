"""
Capacity Gate

Seat availability check. Must run inside the same transaction as the insert
that follows it, after the activity lock is held.
"""

from uuid import UUID

import structlog

from services.activity_service.repository import EnrollmentRepository

logger = structlog.get_logger(__name__)


class CapacityGate:
    """Decides whether an activity still has a free active seat."""

    def __init__(self, enrollments: EnrollmentRepository):
        self.enrollments = enrollments

    async def has_seat(self, activity_id: UUID, capacity: int) -> bool:
        """
        Check seat availability.

        Args:
            activity_id: Activity UUID
            capacity: Activity capacity

        Returns:
            True if fewer than ``capacity`` enrollments are active
        """
        active = await self.enrollments.count_active(activity_id)
        logger.debug("Capacity checked", activity_id=str(activity_id), active=active, capacity=capacity)
        return active < capacity
