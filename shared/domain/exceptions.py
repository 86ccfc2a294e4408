"""
Rich Domain Exceptions

Exception hierarchy for the enrollment engine.
Supports structured error information, error codes, and context.
"""

from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from shared.domain.scheduling import ScheduleConflict

logger = structlog.get_logger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes for domain exceptions."""

    # Domain errors
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"

    # Enrollment errors
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    NOT_ENROLLABLE = "NOT_ENROLLABLE"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"

    # System errors
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    DATABASE_ERROR = "DATABASE_ERROR"


class DomainException(Exception):
    """
    Base class for all domain exceptions.

    Provides structured error information with error codes, context, and metadata.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            error_code: Standard error code
            status_code: HTTP status code (default: 500)
            context: Additional context data
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.context = context or {}
        self.cause = cause

        log = logger.error if status_code >= 500 else logger.info
        log(
            "Domain exception raised",
            error_code=error_code.value,
            message=message,
            status_code=status_code,
            context=context,
            exception_type=type(self).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": self.error_code.value,
            "message": self.message,
            "type": type(self).__name__,
        }
        if self.context:
            result["context"] = self.context
        return result


class EntityNotFoundError(DomainException):
    """Raised when an entity is not found."""

    def __init__(
        self,
        entity_type: str,
        entity_id: str | None = None,
        **kwargs
    ):
        message = kwargs.pop("message", None) or f"{entity_type} not found"
        if entity_id:
            message += f" (ID: {entity_id})"

        context = kwargs.pop("context", {})
        context["entity_type"] = entity_type
        if entity_id:
            context["entity_id"] = entity_id

        super().__init__(
            message=message,
            error_code=ErrorCode.ENTITY_NOT_FOUND,
            status_code=404,
            context=context,
            **kwargs
        )


class EnrollmentNotFoundError(EntityNotFoundError):
    """Raised when a referenced enrollment id does not exist."""

    def __init__(self, enrollment_id: Any, **kwargs):
        super().__init__(entity_type="Enrollment", entity_id=str(enrollment_id), **kwargs)
        self.enrollment_id = enrollment_id


class AlreadyEnrolledError(DomainException):
    """Raised when a student already holds an active or waiting claim on the activity."""

    def __init__(
        self,
        student: str,
        activity_id: Any,
        existing_status: str | None = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context["student"] = student
        context["activity_id"] = str(activity_id)
        if existing_status:
            context["existing_status"] = existing_status

        super().__init__(
            message=f"Student {student} is already enrolled or waitlisted for this activity",
            error_code=ErrorCode.ALREADY_ENROLLED,
            status_code=409,
            context=context,
            **kwargs
        )
        self.student = student
        self.activity_id = activity_id
        self.existing_status = existing_status


class NotEnrollableError(DomainException):
    """Raised when the activity is missing or not approved."""

    def __init__(
        self,
        activity_id: Any,
        reason: str = "not_found",
        **kwargs
    ):
        if reason == "not_found":
            message = f"Activity {activity_id} does not exist"
        else:
            message = f"Activity {activity_id} is not open for enrollment (status: {reason})"

        context = kwargs.pop("context", {})
        context["activity_id"] = str(activity_id)
        context["reason"] = reason

        super().__init__(
            message=message,
            error_code=ErrorCode.NOT_ENROLLABLE,
            status_code=400,
            context=context,
            **kwargs
        )
        self.activity_id = activity_id
        self.reason = reason


class ScheduleConflictError(DomainException):
    """Raised when the candidate activity overlaps the student's active commitments."""

    def __init__(
        self,
        student: str,
        conflicts: list["ScheduleConflict"],
        **kwargs
    ):
        descriptions = [conflict.description for conflict in conflicts]

        context = kwargs.pop("context", {})
        context["student"] = student
        context["conflicts"] = descriptions

        super().__init__(
            message="\n".join(descriptions) or "Schedule conflict",
            error_code=ErrorCode.SCHEDULE_CONFLICT,
            status_code=409,
            context=context,
            **kwargs
        )
        self.student = student
        self.conflicts = conflicts
        self.descriptions = descriptions


class TransientEnrollmentError(DomainException):
    """Raised when the store kept failing with retryable errors; the caller may retry later."""

    def __init__(
        self,
        operation: str,
        attempts: int,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        context["operation"] = operation
        context["attempts"] = attempts

        super().__init__(
            message=f"{operation} failed after {attempts} attempts due to concurrent updates or an unavailable store",
            error_code=ErrorCode.TRANSIENT_FAILURE,
            status_code=503,
            context=context,
            **kwargs
        )
        self.operation = operation
        self.attempts = attempts


class StorageError(DomainException):
    """Raised when a database operation fails for a non-retryable reason."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if operation:
            context["operation"] = operation

        super().__init__(
            message=message,
            error_code=ErrorCode.DATABASE_ERROR,
            status_code=500,
            context=context,
            **kwargs
        )
