"""
Schedule Conflict Rules

Pure time-window overlap checks used both when a student enrolls and by the
global conflict audit. Windows are half-open: an activity ending at 11:00 does
not conflict with one starting at 11:00.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

WINDOW_TIME_FORMAT = "%m-%d %H:%M"


@dataclass(frozen=True)
class TimeWindow:
    """Start/end pair taken from an activity."""

    start: datetime
    end: datetime

    def overlaps_with(self, other: "TimeWindow") -> bool:
        """
        Check if this window overlaps with another.

        Returns:
            True if overlapping, False otherwise
        """
        return not (self.end <= other.start or self.start >= other.end)

    def format(self) -> str:
        """Render as ``MM-dd HH:mm-MM-dd HH:mm``."""
        return f"{self.start.strftime(WINDOW_TIME_FORMAT)}-{self.end.strftime(WINDOW_TIME_FORMAT)}"


@dataclass(frozen=True)
class ScheduledActivity:
    """An activity as seen by the conflict checker: identity, title and window."""

    activity_id: Any
    title: str
    window: TimeWindow


@dataclass(frozen=True)
class ScheduleConflict:
    """One overlapping pair, with a description ready for display."""

    existing: ScheduledActivity
    candidate: ScheduledActivity
    description: str
    student: str | None = None

    @property
    def other(self) -> ScheduledActivity:
        """The already-held activity the candidate collides with."""
        return self.existing


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    """Half-open interval overlap test. Symmetric in its arguments."""
    return a.overlaps_with(b)


def describe_enrollment_conflict(existing: ScheduledActivity, candidate: ScheduledActivity) -> str:
    """Message shown to a student whose enrollment was refused."""
    return (
        f'Overlaps with "{existing.title}": {existing.window.format()} '
        f'vs "{candidate.title}": {candidate.window.format()}'
    )


def describe_audit_conflict(
    student: str, first: ScheduledActivity, second: ScheduledActivity
) -> str:
    """One line of the conflict audit report."""
    return (
        f'{student}: "{first.title}" ({first.window.format()}) '
        f'conflicts with "{second.title}" ({second.window.format()})'
    )


def find_conflicts(
    candidate: ScheduledActivity, existing: Iterable[ScheduledActivity]
) -> list[ScheduleConflict]:
    """
    Compare a candidate activity against the activities a student already holds.

    Args:
        candidate: Activity the student wants to join
        existing: Activities of the student's active enrollments

    Returns:
        One conflict per existing activity overlapping the candidate, in input order
    """
    return [
        ScheduleConflict(
            existing=other,
            candidate=candidate,
            description=describe_enrollment_conflict(other, candidate),
        )
        for other in existing
        if overlaps(candidate.window, other.window)
    ]


def find_overlapping_pairs(
    student: str, activities: Sequence[ScheduledActivity]
) -> list[ScheduleConflict]:
    """
    Pairwise overlap check over one student's activities.

    Args:
        student: Student identifier (used in the descriptions)
        activities: The student's activities, ordered by start time

    Returns:
        One conflict per overlapping pair; the earlier-listed activity is ``existing``
    """
    conflicts: list[ScheduleConflict] = []

    for i, current in enumerate(activities):
        for earlier in activities[:i]:
            if overlaps(earlier.window, current.window):
                conflicts.append(
                    ScheduleConflict(
                        existing=earlier,
                        candidate=current,
                        description=describe_audit_conflict(student, earlier, current),
                        student=student,
                    )
                )

    return conflicts
