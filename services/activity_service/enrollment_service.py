"""
Enrollment Engine

Orchestrates enroll, waitlist-join and cancel for campus activities.

Each operation is one database transaction, serialized per activity (and per
student for enroll/join) by the in-process lock manager and, across processes,
by a row lock on the activity plus the partial unique indexes on enrollments.
Retryable store failures re-run the whole operation a bounded number of times.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar
from uuid import UUID

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.activity_service.capacity import CapacityGate
from services.activity_service.catalog import ActivityAvailability, ActivityCatalog, to_scheduled
from services.activity_service.models import EnrollmentModel, EnrollmentStatus
from services.activity_service.repository import EnrollmentRepository
from services.activity_service.waitlist import WaitlistQueue
from shared.concurrency.locking import LockManager, get_lock_manager
from shared.config import settings
from shared.domain.exceptions import (
    AlreadyEnrolledError,
    EnrollmentNotFoundError,
    NotEnrollableError,
    ScheduleConflictError,
    StorageError,
    TransientEnrollmentError,
)
from shared.domain.scheduling import TimeWindow, find_conflicts

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True)
class EnrollmentOutcome:
    """Result of an enroll or waitlist-join call."""

    enrollment_id: UUID
    activity_id: UUID
    student: str
    status: EnrollmentStatus
    position: int

    @property
    def is_waitlisted(self) -> bool:
        return self.status is EnrollmentStatus.WAITING

    @classmethod
    def from_model(cls, enrollment: EnrollmentModel) -> "EnrollmentOutcome":
        return cls(
            enrollment_id=enrollment.id,
            activity_id=enrollment.activity_id,
            student=enrollment.student,
            status=EnrollmentStatus(enrollment.status),
            position=enrollment.position,
        )


@dataclass(frozen=True)
class CancelOutcome:
    """Result of a cancel call."""

    enrollment_id: UUID
    activity_id: UUID
    previous_status: EnrollmentStatus
    already_cancelled: bool = False
    promoted_enrollment_id: UUID | None = None


@dataclass(frozen=True)
class StudentEnrollment:
    """One row of a student's enrollment list."""

    enrollment_id: UUID
    activity_id: UUID
    title: str
    window: TimeWindow
    status: EnrollmentStatus
    position: int


def is_retryable(exc: SQLAlchemyError) -> bool:
    """
    Whether a store failure may succeed if the operation is re-run.

    Lock/serialization failures and lost races on the unique indexes are
    retryable. Other integrity errors (foreign key, check) fail the same way
    on every attempt and count as storage faults.
    """
    if isinstance(exc, IntegrityError):
        return _sqlstate(exc) == UNIQUE_VIOLATION or "UNIQUE constraint failed" in str(exc.orig)
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError):
        return exc.connection_invalidated or _sqlstate(exc) in RETRYABLE_SQLSTATES
    return False


def _sqlstate(exc: DBAPIError) -> str | None:
    return getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)


def activity_resource(activity_id: UUID) -> str:
    return f"activity:{activity_id}"


def student_resource(student: str) -> str:
    return f"student:{student}"


class EnrollmentEngine:
    """
    Service orchestrating student enrollment in campus activities.

    Implements:
    - Duplicate-claim rejection
    - Approval gate through the activity catalog
    - Schedule-conflict rejection against the student's active enrollments
    - Capacity enforcement with automatic FIFO waitlisting
    - Waitlist promotion when an active seat is cancelled
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock_manager: LockManager | None = None,
        max_attempts: int | None = None,
        retry_backoff_seconds: float | None = None,
    ):
        """
        Initialize enrollment engine.

        Args:
            session_factory: Factory for transactional sessions on the activity store
            lock_manager: In-process lock manager (defaults to the global one)
            max_attempts: Attempts per operation before TransientEnrollmentError
            retry_backoff_seconds: Base delay of the exponential backoff
        """
        self.session_factory = session_factory
        self.lock_manager = lock_manager or get_lock_manager()
        self.max_attempts = max_attempts or settings.enrollment_max_attempts
        self.retry_backoff_seconds = (
            settings.enrollment_retry_backoff_seconds
            if retry_backoff_seconds is None
            else retry_backoff_seconds
        )

    async def enroll(self, student: str, activity_id: UUID) -> EnrollmentOutcome:
        """
        Enroll a student, or waitlist them when the activity is full.

        Process:
        1. Reject a duplicate active/waiting claim
        2. Require an approved activity
        3. Reject overlaps with the student's active enrollments
        4. Insert an active enrollment if a seat is free, otherwise a waiting one

        Args:
            student: Student identifier
            activity_id: Activity UUID

        Returns:
            EnrollmentOutcome: ``active`` with position 0, or ``waiting`` with its position

        Raises:
            AlreadyEnrolledError: Student already holds an active or waiting claim
            NotEnrollableError: Activity missing or not approved
            ScheduleConflictError: Activity overlaps one of the student's active enrollments
            TransientEnrollmentError: Store kept failing with retryable errors
            StorageError: Non-retryable store failure
        """
        logger.info("Starting enrollment", student=student, activity_id=str(activity_id))

        async def work(session: AsyncSession) -> EnrollmentOutcome:
            enrollments = EnrollmentRepository(session)
            catalog = ActivityCatalog(session)

            existing = await enrollments.find_open_claim(student, activity_id)
            if existing is not None:
                raise AlreadyEnrolledError(student, activity_id, existing_status=existing.status)

            activity = await catalog.get_enrollable(activity_id, lock=True)

            held = [
                to_scheduled(other)
                for other in await enrollments.active_activities_for_student(student)
                if other.id != activity_id
            ]
            conflicts = find_conflicts(activity.as_scheduled(), held)
            if conflicts:
                raise ScheduleConflictError(student, conflicts)

            if await CapacityGate(enrollments).has_seat(activity_id, activity.capacity):
                enrollment = await enrollments.add(activity_id, student, EnrollmentStatus.ACTIVE)
            else:
                enrollment = await WaitlistQueue(enrollments).enqueue(activity_id, student)

            return EnrollmentOutcome.from_model(enrollment)

        async with self.lock_manager.hold(
            activity_resource(activity_id), student_resource(student), owner=student
        ):
            outcome = await self._run("enroll", work)

        logger.info(
            "Enrollment completed",
            enrollment_id=str(outcome.enrollment_id),
            student=student,
            activity_id=str(activity_id),
            status=outcome.status.value,
            position=outcome.position,
        )
        return outcome

    async def join_waitlist(self, student: str, activity_id: UUID) -> EnrollmentOutcome:
        """
        Explicitly join an activity's waitlist.

        Only checks for a duplicate claim and that the activity exists. Approval
        status, free capacity and schedule conflicts are not checked: a student
        can queue for an activity still pending approval.

        Args:
            student: Student identifier
            activity_id: Activity UUID

        Returns:
            EnrollmentOutcome: ``waiting`` with the assigned position

        Raises:
            AlreadyEnrolledError: Student already holds an active or waiting claim
            NotEnrollableError: Activity does not exist
            TransientEnrollmentError: Store kept failing with retryable errors
            StorageError: Non-retryable store failure
        """

        async def work(session: AsyncSession) -> EnrollmentOutcome:
            enrollments = EnrollmentRepository(session)

            existing = await enrollments.find_open_claim(student, activity_id)
            if existing is not None:
                raise AlreadyEnrolledError(student, activity_id, existing_status=existing.status)

            if await ActivityCatalog(session).get(activity_id, lock=True) is None:
                raise NotEnrollableError(activity_id, reason="not_found")

            enrollment = await WaitlistQueue(enrollments).enqueue(activity_id, student)
            return EnrollmentOutcome.from_model(enrollment)

        async with self.lock_manager.hold(
            activity_resource(activity_id), student_resource(student), owner=student
        ):
            outcome = await self._run("join_waitlist", work)

        logger.info(
            "Joined waitlist",
            enrollment_id=str(outcome.enrollment_id),
            student=student,
            activity_id=str(activity_id),
            position=outcome.position,
        )
        return outcome

    async def cancel(self, enrollment_id: UUID) -> CancelOutcome:
        """
        Cancel an enrollment and promote the waitlist head if a seat was freed.

        Cancelling an already-cancelled enrollment is a no-op.

        Args:
            enrollment_id: Enrollment UUID

        Returns:
            CancelOutcome

        Raises:
            EnrollmentNotFoundError: No enrollment with this id
            TransientEnrollmentError: Store kept failing with retryable errors
            StorageError: Non-retryable store failure
        """

        async def lookup(session: AsyncSession) -> UUID | None:
            enrollment = await EnrollmentRepository(session).get(enrollment_id)
            return enrollment.activity_id if enrollment else None

        activity_id = await self._run("cancel", lookup)
        if activity_id is None:
            raise EnrollmentNotFoundError(enrollment_id)

        async def work(session: AsyncSession) -> CancelOutcome:
            enrollments = EnrollmentRepository(session)

            # Serialize with enrollers of the same activity across processes
            await ActivityCatalog(session).get(activity_id, lock=True)

            enrollment = await enrollments.get(enrollment_id, for_update=True)
            if enrollment is None:
                raise EnrollmentNotFoundError(enrollment_id)

            previous = EnrollmentStatus(enrollment.status)
            if previous is EnrollmentStatus.CANCELLED:
                return CancelOutcome(
                    enrollment_id=enrollment_id,
                    activity_id=activity_id,
                    previous_status=previous,
                    already_cancelled=True,
                )

            enrollment.status = EnrollmentStatus.CANCELLED.value
            await session.flush()

            promoted = None
            if previous is EnrollmentStatus.ACTIVE:
                promoted = await WaitlistQueue(enrollments).promote_head(activity_id)

            return CancelOutcome(
                enrollment_id=enrollment_id,
                activity_id=activity_id,
                previous_status=previous,
                promoted_enrollment_id=promoted.id if promoted else None,
            )

        async with self.lock_manager.hold(activity_resource(activity_id), owner=str(enrollment_id)):
            outcome = await self._run("cancel", work)

        logger.info(
            "Enrollment cancelled",
            enrollment_id=str(enrollment_id),
            activity_id=str(activity_id),
            previous_status=outcome.previous_status.value,
            already_cancelled=outcome.already_cancelled,
            promoted_enrollment_id=(
                str(outcome.promoted_enrollment_id) if outcome.promoted_enrollment_id else None
            ),
        )
        return outcome

    async def available_activities(self) -> list[ActivityAvailability]:
        """Approved activities with their occupied seats, ordered by start time."""

        async def work(session: AsyncSession) -> list[ActivityAvailability]:
            return await ActivityCatalog(session).list_enrollable()

        return await self._run("available_activities", work)

    async def waitlist(self, activity_id: UUID) -> list[EnrollmentOutcome]:
        """Current waitlist of an activity in promotion order."""

        async def work(session: AsyncSession) -> list[EnrollmentOutcome]:
            entries = await WaitlistQueue(EnrollmentRepository(session)).entries(activity_id)
            return [EnrollmentOutcome.from_model(entry) for entry in entries]

        return await self._run("waitlist", work)

    async def list_student_enrollments(
        self, student: str, waiting_only: bool = False
    ) -> list[StudentEnrollment]:
        """
        A student's enrollments with activity title and window.

        Args:
            student: Student identifier
            waiting_only: Only waitlisted entries, ordered by position

        Returns:
            List of StudentEnrollment
        """

        async def work(session: AsyncSession) -> list[StudentEnrollment]:
            rows = await EnrollmentRepository(session).for_student(student, waiting_only)
            return [
                StudentEnrollment(
                    enrollment_id=enrollment.id,
                    activity_id=activity.id,
                    title=activity.title,
                    window=TimeWindow(start=activity.start_time, end=activity.end_time),
                    status=EnrollmentStatus(enrollment.status),
                    position=enrollment.position,
                )
                for enrollment, activity in rows
            ]

        return await self._run("list_student_enrollments", work)

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """
        Run ``work`` in one transaction, re-running it on retryable store failures.

        Domain exceptions raised by ``work`` roll the transaction back and
        propagate unchanged.
        """
        for attempt in range(self.max_attempts):
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        return await work(session)

            except SQLAlchemyError as e:
                if not is_retryable(e):
                    raise StorageError(
                        f"{operation} failed: {e}", operation=operation, cause=e
                    ) from e

                if attempt + 1 >= self.max_attempts:
                    raise TransientEnrollmentError(
                        operation, attempts=self.max_attempts, cause=e
                    ) from e

                wait_time = self.retry_backoff_seconds * 2 ** attempt
                logger.warning(
                    "Retryable store failure",
                    operation=operation,
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    retry_in=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

        raise TransientEnrollmentError(operation, attempts=self.max_attempts)
