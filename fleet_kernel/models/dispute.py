"""
Module: fleet_kernel.models.dispute
Responsibility: ORM persistence for ride disputes and their comment threads.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one OPEN dispute per ride: partial unique index
      ``uq_dispute_open_per_ride`` (SQLite and PostgreSQL both honour the
      WHERE clause).
    - Comments are append-only: ORM listeners raise
      ImmutabilityViolationError on UPDATE or DELETE.
    - Comment ``sequence`` is unique per dispute; it is allocated by a
      compare-and-set on ``PartRideDispute.comment_count`` and breaks ties
      between comments created in the same instant.

Failure modes:
    - IntegrityError from uq_dispute_open_per_ride when two writers open a
      dispute on the same ride; RideLifecycleService translates it to
      DisputeAlreadyOpenError.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_kernel.db.base import Base, UUIDString
from fleet_kernel.domain.dtos import DisputeCommentRecord, DisputeRecord
from fleet_kernel.domain.ride_lifecycle import DisputeStatus, PartRideStatus
from fleet_kernel.exceptions import ImmutabilityViolationError

_OPEN_ONLY = text("status = 'open'")


class PartRideDispute(Base):
    __tablename__ = "part_ride_disputes"

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'closed')",
            name="ck_part_ride_disputes_valid_status",
        ),
        CheckConstraint(
            "outcome IS NULL OR outcome IN ('accepted', 'rejected')",
            name="ck_part_ride_disputes_valid_outcome",
        ),
        Index(
            "uq_dispute_open_per_ride",
            "part_ride_id",
            unique=True,
            sqlite_where=_OPEN_ONLY,
            postgresql_where=_OPEN_ONLY,
        ),
        Index("ix_part_ride_disputes_part_ride_id", "part_ride_id"),
    )

    part_ride_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("part_rides.id"), nullable=False,
    )
    opened_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=DisputeStatus.OPEN.value,
    )
    correction_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    outcome: Mapped[str | None] = mapped_column(String(20), nullable=True)
    comment_count: Mapped[int] = mapped_column(nullable=False, default=0)
    version: Mapped[int] = mapped_column(nullable=False, default=0)

    comments: Mapped[list["DisputeComment"]] = relationship(
        "DisputeComment",
        back_populates="dispute",
        order_by=lambda: [DisputeComment.created_at, DisputeComment.sequence],
        lazy="selectin",
    )

    @property
    def dispute_status(self) -> DisputeStatus:
        return DisputeStatus(self.status)

    @property
    def is_open(self) -> bool:
        return self.status == DisputeStatus.OPEN.value

    def to_dto(self) -> DisputeRecord:
        return DisputeRecord(
            id=self.id,
            part_ride_id=self.part_ride_id,
            opened_by_id=self.opened_by_id,
            status=self.dispute_status,
            created_at=self.created_at,
            correction_hours=self.correction_hours,
            closed_at=self.closed_at,
            resolved_by_id=self.resolved_by_id,
            outcome=PartRideStatus(self.outcome) if self.outcome else None,
            comment_count=self.comment_count,
        )


class DisputeComment(Base):
    """One message in a dispute thread. Append-only."""

    __tablename__ = "dispute_comments"

    __table_args__ = (
        UniqueConstraint("dispute_id", "sequence", name="uq_dispute_comment_sequence"),
    )

    dispute_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("part_ride_disputes.id"), nullable=False,
    )
    author_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)

    dispute: Mapped[PartRideDispute] = relationship(
        PartRideDispute, back_populates="comments",
    )

    def to_dto(self) -> DisputeCommentRecord:
        return DisputeCommentRecord(
            id=self.id,
            dispute_id=self.dispute_id,
            author_id=self.author_id,
            body=self.body,
            created_at=self.created_at,
            sequence=self.sequence,
        )


@event.listens_for(DisputeComment, "before_update")
def prevent_comment_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="DisputeComment",
        entity_id=str(target.id),
        reason="dispute comments are append-only",
    )


@event.listens_for(DisputeComment, "before_delete")
def prevent_comment_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="DisputeComment",
        entity_id=str(target.id),
        reason="dispute comments are append-only",
    )
