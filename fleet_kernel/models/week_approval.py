"""
Module: fleet_kernel.models.week_approval
Responsibility: ORM persistence for WeekApproval, the per-driver,
    per-ISO-week container of PartRides.
Architecture position: Kernel > Models.

Invariants enforced:
    - UNIQUE(driver_id, year, week_nr): one week record per driver-week.
    - status is one of the WeekApprovalStatus values (check constraint).
    - No totals are stored here.  WeekApprovalService derives them from
      the week's PartRide rows on every read.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TimestampedBase, UUIDString
from fleet_kernel.domain.access import AccessTarget
from fleet_kernel.domain.dtos import WeekApprovalRecord
from fleet_kernel.domain.ride_lifecycle import WeekApprovalStatus


class WeekApproval(TimestampedBase):
    __tablename__ = "week_approvals"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_admin', 'pending_driver', 'signed', 'invalidated')",
            name="ck_week_approvals_valid_status",
        ),
        UniqueConstraint("driver_id", "year", "week_nr", name="uq_week_approval_driver_week"),
    )

    driver_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("drivers.id"), nullable=False,
    )
    year: Mapped[int] = mapped_column(nullable=False)
    week_nr: Mapped[int] = mapped_column(nullable=False)
    period_nr: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WeekApprovalStatus.PENDING_ADMIN.value,
    )
    version: Mapped[int] = mapped_column(nullable=False, default=0)

    admin_user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    admin_allowed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    driver_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def week_status(self) -> WeekApprovalStatus:
        return WeekApprovalStatus(self.status)

    def access_targets(
        self, ride_tenancy: Iterable[tuple[UUID | None, UUID | None]]
    ) -> tuple[AccessTarget, ...]:
        """
        Guard targets for the week: its own driver, then the
        (company_id, client_id) pair of every ride in it.  The driver's
        current company plays no part.
        """
        return (AccessTarget(driver_id=self.driver_id),) + tuple(
            AccessTarget(company_id=company_id, client_id=client_id)
            for company_id, client_id in ride_tenancy
        )

    def to_dto(self) -> WeekApprovalRecord:
        return WeekApprovalRecord(
            id=self.id,
            driver_id=self.driver_id,
            year=self.year,
            week_nr=self.week_nr,
            period_nr=self.period_nr,
            status=self.week_status,
            admin_user_id=self.admin_user_id,
            admin_allowed_at=self.admin_allowed_at,
            driver_signed_at=self.driver_signed_at,
        )
