"""
Campus Activity Domain

Schedule-conflict rules and the domain exception hierarchy shared by the
activity services.
"""

from shared.domain.exceptions import (
    AlreadyEnrolledError,
    DomainException,
    EnrollmentNotFoundError,
    EntityNotFoundError,
    ErrorCode,
    NotEnrollableError,
    ScheduleConflictError,
    StorageError,
    TransientEnrollmentError,
)
from shared.domain.scheduling import (
    ScheduleConflict,
    ScheduledActivity,
    TimeWindow,
    find_conflicts,
    find_overlapping_pairs,
    overlaps,
)

__all__ = [
    # Exceptions
    "DomainException",
    "ErrorCode",
    "EntityNotFoundError",
    "EnrollmentNotFoundError",
    "AlreadyEnrolledError",
    "NotEnrollableError",
    "ScheduleConflictError",
    "TransientEnrollmentError",
    "StorageError",
    # Scheduling
    "TimeWindow",
    "ScheduledActivity",
    "ScheduleConflict",
    "overlaps",
    "find_conflicts",
    "find_overlapping_pairs",
]
