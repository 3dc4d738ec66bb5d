"""
Module: fleet_kernel.db.base
Responsibility: Declarative base for every ORM model in the fleet kernel:
    the UUID primary key convention, the column type map, and the
    TimestampedBase mixin.
Architecture position: Kernel > DB.  Lowest-level import target inside the
    kernel; MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Every model has a uuid4 primary key stored as String(36), which works
      the same on SQLite and PostgreSQL.
    - Decimal maps to Numeric(12, 2).  Hours and money are never floats.
    - Datetimes are timezone-aware and read back as UTC on every backend;
      values come from the injected Clock, not the database server.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, PyUUID):
            value = PyUUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalised to UTC.

    SQLite keeps no offset, so values are stored as UTC and re-tagged as
    UTC when read back.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"naive datetime not allowed: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all fleet models.

    Guarantees:
        - id is a uuid4 generated client-side.
        - Decimal -> Numeric(12, 2), datetime -> UTCDateTime,
          UUID -> UUIDString, int -> Integer.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(12, 2),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TimestampedBase(Base):
    """
    Abstract base adding created_at / updated_at.

    Services set both from their Clock; there is no server default so the
    values are reproducible under DeterministicClock in tests.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)


UUID = PyUUID
