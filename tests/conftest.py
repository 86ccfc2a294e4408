"""Pytest configuration and shared fixtures.

Integration fixtures run against a throwaway SQLite file through aiosqlite,
so no PostgreSQL server is needed.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.activity_service.enrollment_service import EnrollmentEngine
from services.activity_service.models import ActivityModel, ActivityStatus, EnrollmentModel
from shared.concurrency import LockManager
from shared.database import build_engine, build_session_factory, init_db

BASE_DAY = datetime(2025, 3, 10)

MakeActivity = Callable[..., Awaitable[ActivityModel]]


def at(hour: int, minute: int = 0, day: int = 0) -> datetime:
    """Naive timestamp on the shared test day."""
    return BASE_DAY + timedelta(days=day, hours=hour, minutes=minute)


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh activity store per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'activities.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest.fixture
def lock_manager() -> LockManager:
    return LockManager()


@pytest.fixture
def enrollment_engine(
    sessions: async_sessionmaker[AsyncSession], lock_manager: LockManager
) -> EnrollmentEngine:
    return EnrollmentEngine(
        session_factory=sessions,
        lock_manager=lock_manager,
        max_attempts=3,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def make_activity(sessions: async_sessionmaker[AsyncSession]) -> MakeActivity:
    """Factory inserting an activity row and returning it."""

    async def _make(
        title: str = "Chess Club",
        start: datetime | None = None,
        end: datetime | None = None,
        capacity: int = 2,
        status: ActivityStatus = ActivityStatus.APPROVED,
    ) -> ActivityModel:
        start = start or at(10)
        end = end or start + timedelta(hours=1)

        async with sessions() as session:
            async with session.begin():
                activity = ActivityModel(
                    title=title,
                    category="club",
                    location="Main Hall",
                    start_time=start,
                    end_time=end,
                    capacity=capacity,
                    status=status.value,
                    creator="organizer",
                    approver="admin" if status is ActivityStatus.APPROVED else None,
                )
                session.add(activity)
        return activity

    return _make


@pytest.fixture
def fetch_enrollment(
    sessions: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[EnrollmentModel | None]]:
    """Read an enrollment row straight from the store."""

    async def _fetch(enrollment_id) -> EnrollmentModel | None:
        async with sessions() as session:
            return await session.get(EnrollmentModel, enrollment_id)

    return _fetch
