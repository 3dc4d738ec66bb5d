"""
Data transfer objects crossing the service boundary.

Inputs (``RideDraft``) are validated by services; outputs (``*Record``)
are immutable snapshots built from ORM rows by their ``to_dto`` methods,
so callers never hold a live ORM object after the session closes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from fleet_kernel.domain.ride_lifecycle import (
    DisputeStatus,
    PartRideStatus,
    WeekApprovalStatus,
)

ZERO = Decimal("0")


@dataclass(frozen=True)
class RideDraft:
    """A completed ride as recorded by (or for) a driver."""

    ride_date: date
    driver_id: UUID | None = None
    company_id: UUID | None = None
    client_id: UUID | None = None
    decimal_hours: Decimal = ZERO
    night_allowance: Decimal = ZERO
    kilometer_reimbursement: Decimal = ZERO
    consignment_fee: Decimal = ZERO
    various_compensation: Decimal = ZERO
    tax_free_compensation: Decimal = ZERO
    remark: str | None = None


@dataclass(frozen=True)
class PartRideRecord:
    id: UUID
    status: PartRideStatus
    ride_date: date
    driver_id: UUID | None
    company_id: UUID | None
    client_id: UUID | None
    week_approval_id: UUID | None
    year: int
    week_nr: int
    period_nr: int
    decimal_hours: Decimal
    correction_hours: Decimal
    night_allowance: Decimal
    kilometer_reimbursement: Decimal
    consignment_fee: Decimal
    various_compensation: Decimal
    tax_free_compensation: Decimal
    remark: str | None
    version: int

    @property
    def total_hours(self) -> Decimal:
        return self.decimal_hours + self.correction_hours


@dataclass(frozen=True)
class DisputeCommentRecord:
    id: UUID
    dispute_id: UUID
    author_id: UUID
    body: str
    created_at: datetime
    sequence: int


@dataclass(frozen=True)
class DisputeRecord:
    id: UUID
    part_ride_id: UUID
    opened_by_id: UUID
    status: DisputeStatus
    created_at: datetime
    correction_hours: Decimal | None = None
    closed_at: datetime | None = None
    resolved_by_id: UUID | None = None
    outcome: PartRideStatus | None = None
    comment_count: int = 0


@dataclass(frozen=True)
class DisputeDetail:
    """A dispute with its ordered comment thread and the ride's resulting hours."""

    dispute: DisputeRecord
    ride: PartRideRecord
    comments: tuple[DisputeCommentRecord, ...] = field(default_factory=tuple)

    @property
    def resulting_hours(self) -> Decimal:
        return self.ride.total_hours


@dataclass(frozen=True)
class WeekApprovalRecord:
    id: UUID
    driver_id: UUID
    year: int
    week_nr: int
    period_nr: int
    status: WeekApprovalStatus
    admin_user_id: UUID | None = None
    admin_allowed_at: datetime | None = None
    driver_signed_at: datetime | None = None


# =========================================================================
# Tenancy records
# =========================================================================


@dataclass(frozen=True)
class CompanyRecord:
    id: UUID
    name: str


@dataclass(frozen=True)
class ClientRecord:
    id: UUID
    company_id: UUID
    name: str
    address: str | None = None
    postcode: str | None = None
    city: str | None = None
    country: str | None = None
    phone_number: str | None = None
    email: str | None = None
    remark: str | None = None


@dataclass(frozen=True)
class DriverRecord:
    id: UUID
    user_id: UUID
    company_id: UUID | None = None


@dataclass(frozen=True)
class ContactPersonRecord:
    id: UUID
    user_id: UUID
    company_ids: frozenset[UUID] = field(default_factory=frozenset)
    client_ids: frozenset[UUID] = field(default_factory=frozenset)
