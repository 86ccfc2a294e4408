"""
Database Connection and Utilities

Manages the async SQLAlchemy engine and sessions for the activity store.
"""

from shared.database.postgres import (
    Base,
    build_engine,
    build_session_factory,
    close_db,
    get_engine,
    get_session_factory,
    init_db,
)

__all__ = [
    "Base",
    "build_engine",
    "build_session_factory",
    "get_engine",
    "get_session_factory",
    "init_db",
    "close_db",
]
