"""
Conflict Auditor

Read-only sweep over active enrollments that reports students holding
overlapping activities. Conflicts can exist despite the enrollment-time check,
e.g. after an activity is rescheduled or a waitlisted student is promoted.
"""

from dataclasses import dataclass, field
from itertools import groupby

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.activity_service.catalog import to_scheduled
from services.activity_service.repository import EnrollmentRepository
from shared.domain.exceptions import StorageError
from shared.domain.scheduling import ScheduleConflict, find_overlapping_pairs

logger = structlog.get_logger(__name__)

NO_CONFLICTS_MESSAGE = "No schedule conflicts found"


@dataclass
class ConflictReport:
    """Result of an audit sweep."""

    conflicts: list[ScheduleConflict] = field(default_factory=list)
    checked_students: int = 0

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def lines(self) -> list[str]:
        """One description per conflicting pair, or the no-conflict sentinel."""
        if not self.conflicts:
            return [NO_CONFLICTS_MESSAGE]
        return [conflict.description for conflict in self.conflicts]

    @property
    def summary(self) -> str:
        return "\n".join(self.lines)


class ConflictAuditor:
    """Detects overlapping active enrollments. Takes no locks and writes nothing."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def sweep_all_conflicts(self) -> ConflictReport:
        """
        Check every student's active enrollments for pairwise overlaps.

        Returns:
            ConflictReport grouped by student, pairs ordered by start time
        """
        report = await self._sweep(student=None)
        logger.info(
            "Conflict sweep completed",
            checked_students=report.checked_students,
            conflicts=len(report.conflicts),
        )
        return report

    async def check_student(self, student: str) -> ConflictReport:
        """Same check restricted to one student."""
        return await self._sweep(student=student)

    async def _sweep(self, student: str | None) -> ConflictReport:
        try:
            async with self.session_factory() as session:
                rows = await EnrollmentRepository(session).active_schedule(student)
        except SQLAlchemyError as e:
            raise StorageError(f"Conflict sweep failed: {e}", operation="sweep_all_conflicts", cause=e) from e

        report = ConflictReport()
        for name, group in groupby(rows, key=lambda row: row[0]):
            activities = [to_scheduled(activity) for _, activity in group]
            report.checked_students += 1
            report.conflicts.extend(find_overlapping_pairs(name, activities))

        return report
