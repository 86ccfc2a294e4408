"""
Concurrency Control

Keyed in-process locks for serializing enrollment operations.
"""

from shared.concurrency.locking import LockManager, ResourceLock, get_lock_manager

__all__ = ["LockManager", "ResourceLock", "get_lock_manager"]
