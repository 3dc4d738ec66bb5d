"""Database layer - engine, declarative base, column types."""

from fleet_kernel.db.base import UUID, Base, TimestampedBase, UTCDateTime, UUIDString
from fleet_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "TimestampedBase",
    "UTCDateTime",
    "UUID",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
]
