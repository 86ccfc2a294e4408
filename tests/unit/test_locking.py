"""Unit tests for the keyed lock manager."""

import asyncio

import pytest

from shared.concurrency import LockManager

pytestmark = pytest.mark.unit


class TestLockManager:
    """Tests for LockManager.hold."""

    async def test_hold_locks_and_releases(self) -> None:
        """Test that resources are locked inside the block and forgotten after it."""
        manager = LockManager()

        async with manager.hold("activity:1", "student:alice", owner="alice"):
            assert manager.is_locked("activity:1")
            assert manager.is_locked("student:alice")
            assert manager.get_all_locks()["activity:1"]["owner"] == "alice"

        assert not manager.is_locked("activity:1")
        assert manager.get_all_locks() == {}

    async def test_duplicate_resource_ids_are_ignored(self) -> None:
        """Test that passing the same resource twice does not self-deadlock."""
        manager = LockManager()

        async with manager.hold("activity:1", "activity:1"):
            assert manager.get_all_locks()["activity:1"]["users"] == 1

    async def test_waiters_are_served_in_arrival_order(self) -> None:
        """Test that callers blocked on the same resource proceed first-come first-served."""
        manager = LockManager()
        order: list[int] = []

        async def worker(n: int) -> None:
            async with manager.hold("activity:1"):
                await asyncio.sleep(0)
                order.append(n)

        await asyncio.gather(*(worker(n) for n in range(5)))

        assert order == [0, 1, 2, 3, 4]

    async def test_lock_released_on_error(self) -> None:
        """Test that an exception inside the block still releases every lock."""
        manager = LockManager()

        with pytest.raises(RuntimeError):
            async with manager.hold("activity:1", "student:alice"):
                raise RuntimeError("boom")

        assert not manager.is_locked("activity:1")
        assert not manager.is_locked("student:alice")

    async def test_different_resources_do_not_block(self) -> None:
        """Test that holding one resource leaves others available."""
        manager = LockManager()

        async with manager.hold("activity:1"):
            await asyncio.wait_for(self._enter(manager, "activity:2"), timeout=1)

    @staticmethod
    async def _enter(manager: LockManager, resource_id: str) -> None:
        async with manager.hold(resource_id):
            pass
