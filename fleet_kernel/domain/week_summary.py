"""
Week summary projection (``fleet_kernel.domain.week_summary``).

A WeekApproval stores no totals.  ``summarize_week`` derives status,
hours, forecasted compensation and per-status counts from the rides
every time it is called.

Summary status precedence:

    any ride in dispute                -> HAS_DISPUTES
    every ride accepted or rejected    -> ALL_APPROVED_OR_REJECTED
    any ride pending_admin             -> HAS_PENDING
    otherwise (including no rides)     -> UNKNOWN

Totals skip rejected rides.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from fleet_kernel.domain.ride_lifecycle import PartRideStatus, TERMINAL_RIDE_STATUSES

_CENTS = Decimal("0.01")


class WeekSummaryStatus(str, Enum):
    HAS_DISPUTES = "has_disputes"
    ALL_APPROVED_OR_REJECTED = "all_approved_or_rejected"
    HAS_PENDING = "has_pending"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RideFigures:
    """The numeric fields of one ride that feed the weekly totals."""

    status: PartRideStatus
    decimal_hours: Decimal = Decimal("0")
    correction_hours: Decimal = Decimal("0")
    night_allowance: Decimal = Decimal("0")
    kilometer_reimbursement: Decimal = Decimal("0")
    consignment_fee: Decimal = Decimal("0")
    various_compensation: Decimal = Decimal("0")
    tax_free_compensation: Decimal = Decimal("0")

    @property
    def hours(self) -> Decimal:
        return (self.decimal_hours or 0) + (self.correction_hours or 0)

    @property
    def compensation(self) -> Decimal:
        return sum(
            (
                self.night_allowance or 0,
                self.kilometer_reimbursement or 0,
                self.consignment_fee or 0,
                self.various_compensation or 0,
                self.tax_free_compensation or 0,
            ),
            Decimal("0"),
        )


@dataclass(frozen=True)
class WeekSummary:
    status: WeekSummaryStatus
    total_hours: Decimal
    forecasted: Decimal
    counts: dict[PartRideStatus, int] = field(default_factory=dict)
    ride_count: int = 0

    @property
    def dispute_count(self) -> int:
        return self.counts.get(PartRideStatus.DISPUTE, 0)

    @property
    def pending_count(self) -> int:
        return self.counts.get(PartRideStatus.PENDING_ADMIN, 0)


def summary_status(statuses: Iterable[PartRideStatus]) -> WeekSummaryStatus:
    seen = set(statuses)
    if PartRideStatus.DISPUTE in seen:
        return WeekSummaryStatus.HAS_DISPUTES
    if seen and seen <= TERMINAL_RIDE_STATUSES:
        return WeekSummaryStatus.ALL_APPROVED_OR_REJECTED
    if PartRideStatus.PENDING_ADMIN in seen:
        return WeekSummaryStatus.HAS_PENDING
    return WeekSummaryStatus.UNKNOWN


def summarize_week(rides: Iterable[RideFigures]) -> WeekSummary:
    rides = list(rides)
    counted = [r for r in rides if r.status != PartRideStatus.REJECTED]
    counts = Counter(r.status for r in rides)
    return WeekSummary(
        status=summary_status(counts),
        total_hours=sum((r.hours for r in counted), Decimal("0")).quantize(
            _CENTS, rounding=ROUND_HALF_UP
        ),
        forecasted=sum((r.compensation for r in counted), Decimal("0")).quantize(
            _CENTS, rounding=ROUND_HALF_UP
        ),
        counts={status: counts.get(status, 0) for status in PartRideStatus},
        ride_count=len(rides),
    )
