"""Integration tests for the activity service HTTP API."""

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import ProgrammingError

from conftest import at
from services.activity_service.api.dependencies import get_enrollment_engine, get_sessions
from services.activity_service.enrollment_service import EnrollmentEngine
from services.activity_service.main import app
from services.activity_service.models import ActivityStatus
from shared.concurrency import LockManager

pytestmark = pytest.mark.integration


@pytest.fixture
async def client(sessions, enrollment_engine: EnrollmentEngine) -> AsyncGenerator[AsyncClient, None]:
    """Client bound to the app with the test store wired in (lifespan not run)."""
    app.dependency_overrides[get_sessions] = lambda: sessions
    app.dependency_overrides[get_enrollment_engine] = lambda: enrollment_engine

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestEnrollmentEndpoints:
    """Tests for /api/v1/enrollments."""

    async def test_enroll_and_waitlist(self, client: AsyncClient, make_activity) -> None:
        activity = await make_activity(capacity=1)

        first = await client.post("/api/v1/enrollments", json={"student": "alice", "activity_id": str(activity.id)})
        second = await client.post("/api/v1/enrollments", json={"student": "bob", "activity_id": str(activity.id)})

        assert first.status_code == 201
        assert first.json()["status"] == "active"
        assert second.status_code == 201
        assert second.json()["is_waitlisted"] is True
        assert second.json()["position"] == 1

    async def test_duplicate_returns_409(self, client: AsyncClient, make_activity) -> None:
        activity = await make_activity()
        body = {"student": "alice", "activity_id": str(activity.id)}
        await client.post("/api/v1/enrollments", json=body)

        response = await client.post("/api/v1/enrollments", json=body)

        assert response.status_code == 409
        assert response.json()["error"] == "ALREADY_ENROLLED"

    async def test_not_enrollable_returns_400(self, client: AsyncClient, make_activity) -> None:
        activity = await make_activity(status=ActivityStatus.PENDING)

        response = await client.post(
            "/api/v1/enrollments", json={"student": "alice", "activity_id": str(activity.id)}
        )

        assert response.status_code == 400
        assert response.json()["context"]["reason"] == "pending"

    async def test_conflict_returns_409_with_descriptions(self, client: AsyncClient, make_activity) -> None:
        x = await make_activity(title="X", start=at(10), end=at(11))
        y = await make_activity(title="Y", start=at(10, 30), end=at(11, 30))
        await client.post("/api/v1/enrollments", json={"student": "alice", "activity_id": str(x.id)})

        response = await client.post("/api/v1/enrollments", json={"student": "alice", "activity_id": str(y.id)})

        assert response.status_code == 409
        payload = response.json()
        assert payload["error"] == "SCHEDULE_CONFLICT"
        assert len(payload["context"]["conflicts"]) == 1

    async def test_join_waitlist(self, client: AsyncClient, make_activity) -> None:
        activity = await make_activity(status=ActivityStatus.PENDING)

        response = await client.post(
            "/api/v1/enrollments/waitlist", json={"student": "alice", "activity_id": str(activity.id)}
        )

        assert response.status_code == 201
        assert response.json()["status"] == "waiting"

    async def test_cancel_promotes(self, client: AsyncClient, make_activity) -> None:
        activity = await make_activity(capacity=1)
        holder = await client.post("/api/v1/enrollments", json={"student": "alice", "activity_id": str(activity.id)})
        waiter = await client.post("/api/v1/enrollments", json={"student": "bob", "activity_id": str(activity.id)})

        response = await client.post(f"/api/v1/enrollments/{holder.json()['id']}/cancel")

        assert response.status_code == 200
        assert response.json()["previous_status"] == "active"
        assert response.json()["promoted_enrollment_id"] == waiter.json()["id"]

    async def test_cancel_unknown_returns_404(self, client: AsyncClient) -> None:
        response = await client.post(f"/api/v1/enrollments/{uuid4()}/cancel")

        assert response.status_code == 404
        assert response.json()["error"] == "ENTITY_NOT_FOUND"

    async def test_list_student_enrollments(self, client: AsyncClient, make_activity) -> None:
        activity = await make_activity(capacity=1)
        await client.post("/api/v1/enrollments", json={"student": "bob", "activity_id": str(activity.id)})
        await client.post("/api/v1/enrollments", json={"student": "alice", "activity_id": str(activity.id)})

        response = await client.get("/api/v1/enrollments", params={"student": "alice", "waiting_only": "true"})

        assert response.status_code == 200
        (entry,) = response.json()
        assert entry["title"] == "Chess Club"
        assert entry["position"] == 1


class TestActivityAndConflictEndpoints:
    """Tests for /api/v1/activities and /api/v1/conflicts."""

    async def test_list_activities_shows_seats(self, client: AsyncClient, make_activity) -> None:
        open_activity = await make_activity(title="Open", start=at(9), capacity=3)
        await make_activity(title="Pending", status=ActivityStatus.PENDING)
        await client.post("/api/v1/enrollments", json={"student": "alice", "activity_id": str(open_activity.id)})

        response = await client.get("/api/v1/activities")

        assert response.status_code == 200
        (activity,) = response.json()
        assert activity["title"] == "Open"
        assert (activity["enrolled"], activity["seats_left"]) == (1, 2)

    async def test_activity_waitlist(self, client: AsyncClient, make_activity) -> None:
        activity = await make_activity(capacity=1)
        for student in ("a", "b", "c"):
            await client.post("/api/v1/enrollments", json={"student": student, "activity_id": str(activity.id)})

        response = await client.get(f"/api/v1/activities/{activity.id}/waitlist")

        assert [(e["student"], e["position"]) for e in response.json()] == [("b", 1), ("c", 2)]

    async def test_list_activities_store_failure(self, client: AsyncClient) -> None:
        """Test that a store failure while listing renders as a structured storage error."""

        def broken_sessions():
            raise ProgrammingError("SELECT", {}, Exception("relation \"activities\" does not exist"))

        app.dependency_overrides[get_enrollment_engine] = lambda: EnrollmentEngine(
            broken_sessions, lock_manager=LockManager(), max_attempts=1, retry_backoff_seconds=0
        )

        response = await client.get("/api/v1/activities")

        assert response.status_code == 500
        assert response.json()["error"] == "DATABASE_ERROR"
        assert response.json()["context"] == {"operation": "available_activities"}

    async def test_conflict_sweep(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/conflicts")

        assert response.status_code == 200
        assert response.json()["has_conflicts"] is False
        assert response.json()["summary"] == "No schedule conflicts found"

    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.json() == {"status": "healthy", "service": "activity_service"}
