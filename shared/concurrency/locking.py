"""
Concurrency Control: Keyed Pessimistic Locks

In-process async locks keyed by resource id. Used by the enrollment engine to
serialize read-then-write sequences on the same activity (and the same student)
before they reach the database, where row locks and unique indexes guard the
same rules across processes.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class ResourceLock:
    """
    FIFO lock for one resource.

    Tracks how many callers hold or wait for it so the manager can drop
    entries nobody uses any more.
    """

    def __init__(self, resource_id: str):
        """
        Initialize lock.

        Args:
            resource_id: Resource being locked
        """
        self.resource_id = resource_id
        self.lock = asyncio.Lock()
        self.users = 0
        self.owner: str | None = None
        self.acquired_at: datetime | None = None

    def is_locked(self) -> bool:
        """Check if the lock is currently held."""
        return self.lock.locked()


class LockManager:
    """
    Manages pessimistic locks for resources.

    Locks are acquired in the order the caller passes them; callers must use a
    fixed global ordering (e.g. activity before student) to stay deadlock-free.
    """

    def __init__(self):
        """Initialize lock manager."""
        self._locks: dict[str, ResourceLock] = {}
        logger.info("Lock manager initialized")

    @asynccontextmanager
    async def hold(self, *resource_ids: str, owner: str = "anonymous") -> AsyncIterator[None]:
        """
        Hold locks on all given resources for the duration of the block.

        Args:
            *resource_ids: Resources to lock, in acquisition order (duplicates ignored)
            owner: Lock owner identifier, for diagnostics

        Yields:
            None once every lock is held
        """
        acquired: list[ResourceLock] = []

        try:
            for resource_id in dict.fromkeys(resource_ids):
                entry = self._locks.get(resource_id)
                if entry is None:
                    entry = ResourceLock(resource_id)
                    self._locks[resource_id] = entry
                entry.users += 1

                try:
                    await entry.lock.acquire()
                except BaseException:
                    self._release_user(entry)
                    raise

                entry.owner = owner
                entry.acquired_at = datetime.utcnow()
                acquired.append(entry)

                logger.debug("Lock acquired", resource_id=resource_id, owner=owner)

            yield

        finally:
            for entry in reversed(acquired):
                entry.owner = None
                entry.acquired_at = None
                entry.lock.release()
                self._release_user(entry)
                logger.debug("Lock released", resource_id=entry.resource_id, owner=owner)

    def _release_user(self, entry: ResourceLock) -> None:
        """Drop one user from an entry; forget the entry when unused."""
        entry.users -= 1
        if entry.users == 0 and self._locks.get(entry.resource_id) is entry:
            del self._locks[entry.resource_id]

    def is_locked(self, resource_id: str) -> bool:
        """Check if resource is currently locked."""
        entry = self._locks.get(resource_id)
        return entry is not None and entry.is_locked()

    def get_all_locks(self) -> dict[str, dict[str, Any]]:
        """Get information about all tracked locks."""
        return {
            resource_id: {
                "owner": entry.owner,
                "locked": entry.is_locked(),
                "users": entry.users,
                "acquired_at": entry.acquired_at.isoformat() if entry.acquired_at else None,
            }
            for resource_id, entry in self._locks.items()
        }


# Global lock manager instance
_lock_manager: LockManager | None = None


def get_lock_manager() -> LockManager:
    """
    Get or create global lock manager.

    Returns:
        LockManager instance
    """
    global _lock_manager

    if _lock_manager is None:
        _lock_manager = LockManager()

    return _lock_manager
