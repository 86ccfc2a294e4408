"""FastAPI dependencies shared by the activity service routers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.activity_service.conflict_auditor import ConflictAuditor
from services.activity_service.enrollment_service import EnrollmentEngine
from shared.database import get_session_factory


def get_sessions() -> async_sessionmaker[AsyncSession]:
    """Session factory of the activity store."""
    return get_session_factory()


def get_enrollment_engine(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessions),
) -> EnrollmentEngine:
    """
    Dependency to create EnrollmentEngine.

    The engine holds no state of its own apart from the process-wide lock
    manager, so one instance per request is enough.
    """
    return EnrollmentEngine(session_factory=sessions)


def get_conflict_auditor(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessions),
) -> ConflictAuditor:
    """Dependency to create ConflictAuditor."""
    return ConflictAuditor(session_factory=sessions)
