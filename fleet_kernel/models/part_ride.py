"""
Module: fleet_kernel.models.part_ride
Responsibility: ORM persistence for PartRide, one recorded driving
    assignment subject to approval.
Architecture position: Kernel > Models.

Invariants enforced:
    - status is one of the PartRideStatus values (check constraint).
    - ``version`` starts at 0 and is incremented by every compare-and-set
      status change; a writer that read an older version matches no row.
    - Monetary and hour amounts are Numeric, never float.

The numeric fields feed the derived week summary; nothing aggregated is
stored on the ride or its week.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TimestampedBase, UUIDString
from fleet_kernel.domain.access import AccessTarget
from fleet_kernel.domain.dtos import PartRideRecord
from fleet_kernel.domain.ride_lifecycle import PartRideStatus
from fleet_kernel.domain.week_summary import RideFigures

_ZERO = Decimal("0")


class PartRide(TimestampedBase):
    __tablename__ = "part_rides"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_admin', 'accepted', 'rejected', 'dispute')",
            name="ck_part_rides_valid_status",
        ),
        Index("ix_part_rides_driver_week", "driver_id", "year", "week_nr"),
        Index("ix_part_rides_company_id", "company_id"),
        Index("ix_part_rides_client_id", "client_id"),
        Index("ix_part_rides_week_approval_id", "week_approval_id"),
    )

    driver_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("drivers.id"), nullable=True,
    )
    company_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=True,
    )
    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("clients.id"), nullable=True,
    )
    week_approval_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("week_approvals.id"), nullable=True,
    )

    ride_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(nullable=False)
    week_nr: Mapped[int] = mapped_column(nullable=False)
    period_nr: Mapped[int] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PartRideStatus.PENDING_ADMIN.value,
    )
    version: Mapped[int] = mapped_column(nullable=False, default=0)

    decimal_hours: Mapped[Decimal] = mapped_column(default=_ZERO, nullable=False)
    correction_hours: Mapped[Decimal] = mapped_column(default=_ZERO, nullable=False)
    night_allowance: Mapped[Decimal] = mapped_column(default=_ZERO, nullable=False)
    kilometer_reimbursement: Mapped[Decimal] = mapped_column(default=_ZERO, nullable=False)
    consignment_fee: Mapped[Decimal] = mapped_column(default=_ZERO, nullable=False)
    various_compensation: Mapped[Decimal] = mapped_column(default=_ZERO, nullable=False)
    tax_free_compensation: Mapped[Decimal] = mapped_column(default=_ZERO, nullable=False)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def ride_status(self) -> PartRideStatus:
        return PartRideStatus(self.status)

    def access_target(self) -> AccessTarget:
        return AccessTarget(
            company_id=self.company_id,
            client_id=self.client_id,
            driver_id=self.driver_id,
        )

    def to_figures(self) -> RideFigures:
        return RideFigures(
            status=self.ride_status,
            decimal_hours=self.decimal_hours,
            correction_hours=self.correction_hours,
            night_allowance=self.night_allowance,
            kilometer_reimbursement=self.kilometer_reimbursement,
            consignment_fee=self.consignment_fee,
            various_compensation=self.various_compensation,
            tax_free_compensation=self.tax_free_compensation,
        )

    def to_dto(self) -> PartRideRecord:
        return PartRideRecord(
            id=self.id,
            status=self.ride_status,
            ride_date=self.ride_date,
            driver_id=self.driver_id,
            company_id=self.company_id,
            client_id=self.client_id,
            week_approval_id=self.week_approval_id,
            year=self.year,
            week_nr=self.week_nr,
            period_nr=self.period_nr,
            decimal_hours=self.decimal_hours,
            correction_hours=self.correction_hours,
            night_allowance=self.night_allowance,
            kilometer_reimbursement=self.kilometer_reimbursement,
            consignment_fee=self.consignment_fee,
            various_compensation=self.various_compensation,
            tax_free_compensation=self.tax_free_compensation,
            remark=self.remark,
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<PartRide id={self.id} status={self.status} v{self.version}>"
