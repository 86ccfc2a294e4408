"""Unit tests for the schedule-conflict rules."""

from datetime import datetime
from uuid import uuid4

import pytest

from shared.domain.scheduling import (
    ScheduledActivity,
    TimeWindow,
    find_conflicts,
    find_overlapping_pairs,
    overlaps,
)

pytestmark = pytest.mark.unit


def window(start_hour: int, start_minute: int, end_hour: int, end_minute: int) -> TimeWindow:
    return TimeWindow(
        start=datetime(2025, 3, 10, start_hour, start_minute),
        end=datetime(2025, 3, 10, end_hour, end_minute),
    )


def activity(title: str, w: TimeWindow) -> ScheduledActivity:
    return ScheduledActivity(activity_id=uuid4(), title=title, window=w)


class TestOverlaps:
    """Tests for the half-open interval overlap test."""

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            (window(10, 0, 11, 0), window(10, 30, 11, 30), True),
            (window(10, 0, 12, 0), window(10, 30, 11, 0), True),
            (window(10, 0, 11, 0), window(11, 0, 12, 0), False),
            (window(10, 0, 11, 0), window(12, 0, 13, 0), False),
        ],
    )
    def test_overlap_is_symmetric(self, a: TimeWindow, b: TimeWindow, expected: bool) -> None:
        """Test that overlap gives the same answer in both argument orders."""
        assert overlaps(a, b) is expected
        assert overlaps(b, a) is expected

    def test_touching_windows_do_not_overlap(self) -> None:
        """Test that an activity ending at 11:00 does not clash with one starting at 11:00."""
        assert not overlaps(window(10, 0, 11, 0), window(11, 0, 12, 0))

    def test_window_overlaps_itself(self) -> None:
        """Test that any non-empty window overlaps itself."""
        w = window(9, 15, 9, 45)
        assert overlaps(w, w)

    def test_format(self) -> None:
        """Test the window rendering used in conflict descriptions."""
        assert window(10, 0, 11, 30).format() == "03-10 10:00-03-10 11:30"


class TestFindConflicts:
    """Tests for the enrollment-time conflict check."""

    def test_reports_each_overlapping_activity(self) -> None:
        """Test that every overlapping held activity is reported, in input order."""
        candidate = activity("Robotics", window(10, 30, 11, 30))
        morning = activity("Chess", window(10, 0, 11, 0))
        noon = activity("Debate", window(11, 0, 12, 0))
        evening = activity("Choir", window(18, 0, 19, 0))

        conflicts = find_conflicts(candidate, [morning, noon, evening])

        assert [conflict.other for conflict in conflicts] == [morning, noon]
        assert all(conflict.candidate == candidate for conflict in conflicts)

    def test_description_names_both_activities(self) -> None:
        """Test that the description names the held and the requested activity with windows."""
        candidate = activity("Y", window(10, 30, 11, 30))
        held = activity("X", window(10, 0, 11, 0))

        (conflict,) = find_conflicts(candidate, [held])

        assert conflict.description == (
            'Overlaps with "X": 03-10 10:00-03-10 11:00 vs "Y": 03-10 10:30-03-10 11:30'
        )

    def test_no_existing_activities(self) -> None:
        """Test that a student with nothing held has no conflicts."""
        assert find_conflicts(activity("Y", window(10, 0, 11, 0)), []) == []


class TestFindOverlappingPairs:
    """Tests for the audit pairwise check."""

    def test_reports_every_overlapping_pair_once(self) -> None:
        """Test that a chain of three overlapping activities yields each pair once."""
        a = activity("A", window(9, 0, 11, 0))
        b = activity("B", window(10, 0, 12, 0))
        c = activity("C", window(10, 30, 10, 45))

        conflicts = find_overlapping_pairs("alice", [a, b, c])

        pairs = [(conflict.existing.title, conflict.candidate.title) for conflict in conflicts]
        assert pairs == [("A", "B"), ("A", "C"), ("B", "C")]
        assert all(conflict.student == "alice" for conflict in conflicts)

    def test_audit_description(self) -> None:
        """Test the audit line format."""
        a = activity("A", window(9, 0, 11, 0))
        b = activity("B", window(10, 0, 12, 0))

        (conflict,) = find_overlapping_pairs("alice", [a, b])

        assert conflict.description == (
            'alice: "A" (03-10 09:00-03-10 11:00) conflicts with "B" (03-10 10:00-03-10 12:00)'
        )

    def test_back_to_back_schedule_is_clean(self) -> None:
        """Test that back-to-back activities produce no conflicts."""
        schedule = [
            activity("A", window(9, 0, 10, 0)),
            activity("B", window(10, 0, 11, 0)),
            activity("C", window(11, 0, 12, 0)),
        ]
        assert find_overlapping_pairs("bob", schedule) == []
