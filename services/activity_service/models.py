"""
Activity Service Database Models

SQLAlchemy models for campus activities and student enrollments.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


class ActivityStatus(str, Enum):
    """Lifecycle status of an activity. Only approved activities accept enrollments."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class EnrollmentStatus(str, Enum):
    """Status of a student's claim on an activity. ``cancelled`` is terminal."""

    ACTIVE = "active"
    WAITING = "waiting"
    CANCELLED = "cancelled"


OPEN_CLAIM_STATUSES = (EnrollmentStatus.ACTIVE.value, EnrollmentStatus.WAITING.value)


class ActivityModel(Base):
    """
    Activity database model.

    Owned by activity management; the enrollment engine only reads it.
    """

    __tablename__ = "activities"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(200), nullable=False)

    # Schedule
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ActivityStatus.PENDING.value, nullable=False, index=True
    )

    creator: Mapped[str] = mapped_column(String(100), nullable=False)
    approver: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_activities_capacity_positive"),
        CheckConstraint("start_time < end_time", name="ck_activities_window_ordered"),
    )


class EnrollmentModel(Base):
    """
    Enrollment database model.

    Rows are never deleted; cancellation is a status change so the history stays.
    ``position`` is only meaningful while the row is waiting and is 0 otherwise.
    """

    __tablename__ = "enrollments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    activity_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("activities.id"), nullable=False, index=True
    )
    student: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20), default=EnrollmentStatus.ACTIVE.value, nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("position >= 0", name="ck_enrollments_position_non_negative"),
        # At most one active or waiting claim per (activity, student)
        Index(
            "uq_enrollments_open_claim",
            "activity_id",
            "student",
            unique=True,
            postgresql_where=text("status IN ('active', 'waiting')"),
            sqlite_where=text("status IN ('active', 'waiting')"),
        ),
        # No two waiting entries of an activity share a position
        Index(
            "uq_enrollments_waiting_position",
            "activity_id",
            "position",
            unique=True,
            postgresql_where=text("status = 'waiting'"),
            sqlite_where=text("status = 'waiting'"),
        ),
    )
