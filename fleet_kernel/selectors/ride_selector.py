"""
Module: fleet_kernel.selectors.ride_selector
Responsibility: Scoped reads of rides, disputes (with their comment
    threads) and week approvals.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every read is gated by the same rules as writes: ``check_access_any``
      for a single entity, ``scope_clause`` for listings.  A week is reached
      through its driver or through the company or client of any of its
      rides.
    - Dispute comments are returned in (created_at, sequence) order.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from fleet_kernel.domain.access import AccessTarget, check_access_any
from fleet_kernel.domain.dtos import (
    DisputeDetail,
    DisputeRecord,
    PartRideRecord,
    WeekApprovalRecord,
)
from fleet_kernel.domain.ride_lifecycle import (
    DisputeStatus,
    PartRideStatus,
    WeekApprovalStatus,
)
from fleet_kernel.domain.scope import AccessScope
from fleet_kernel.exceptions import (
    DisputeNotFoundError,
    ForbiddenError,
    RideNotFoundError,
    WeekApprovalNotFoundError,
)
from fleet_kernel.models.dispute import PartRideDispute
from fleet_kernel.models.part_ride import PartRide
from fleet_kernel.models.week_approval import WeekApproval
from fleet_kernel.selectors.base import (
    DEFAULT_PAGE_SIZE,
    BaseSelector,
    Page,
    paginate,
    scope_clause,
)


def parse_status_filter(
    values: str | Iterable[str] | None,
) -> frozenset[PartRideStatus]:
    """
    Parse a ride status filter.

    Accepts a single string, repeated values, comma-separated values or
    any mix (``["pending_admin,dispute", "accepted"]``).  Blank tokens are
    skipped.  An empty result means "no filter".

    Raises:
        ValueError: A token is not a PartRideStatus value.
    """
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = [values]

    statuses: set[PartRideStatus] = set()
    for value in values:
        for token in value.split(","):
            token = token.strip()
            if not token:
                continue
            try:
                statuses.add(PartRideStatus(token))
            except ValueError:
                raise ValueError(f"Unknown ride status: {token!r}") from None
    return frozenset(statuses)


def _ride_scope(scope: AccessScope):
    return scope_clause(
        scope,
        company=PartRide.company_id,
        client=PartRide.client_id,
        driver=PartRide.driver_id,
    )


def week_access_targets(session: Session, week: WeekApproval) -> tuple[AccessTarget, ...]:
    """Guard targets of ``week``, from the distinct tenancy of its rides."""
    ride_tenancy = session.execute(
        select(PartRide.company_id, PartRide.client_id)
        .where(PartRide.week_approval_id == week.id)
        .distinct()
    ).all()
    return week.access_targets(ride_tenancy)


class RideSelector(BaseSelector):
    """Scoped read side for rides, disputes and week approvals."""

    def _check(
        self,
        scope: AccessScope,
        targets: Iterable[AccessTarget],
        entity_type: str,
        entity_id: UUID,
    ) -> None:
        decision = check_access_any(scope, targets)
        if not decision.allowed:
            raise ForbiddenError(
                str(scope.actor_id),
                decision.reason.value,
                action="read",
                entity_type=entity_type,
                entity_id=str(entity_id),
            )

    def _load_ride(self, ride_id: UUID) -> PartRide:
        ride = self.session.get(PartRide, ride_id)
        if ride is None:
            raise RideNotFoundError(str(ride_id))
        return ride

    # -- rides ---------------------------------------------------------------

    def get_ride(self, ride_id: UUID, scope: AccessScope) -> PartRideRecord:
        ride = self._load_ride(ride_id)
        self._check(scope, [ride.access_target()], "PartRide", ride_id)
        return ride.to_dto()

    def list_rides(
        self,
        scope: AccessScope,
        statuses: str | Iterable[str] | None = None,
        driver_id: UUID | None = None,
        week_approval_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page_number: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[PartRideRecord]:
        stmt = select(PartRide).where(_ride_scope(scope))
        wanted = parse_status_filter(statuses)
        if wanted:
            stmt = stmt.where(PartRide.status.in_(sorted(s.value for s in wanted)))
        if driver_id is not None:
            stmt = stmt.where(PartRide.driver_id == driver_id)
        if week_approval_id is not None:
            stmt = stmt.where(PartRide.week_approval_id == week_approval_id)
        if date_from is not None:
            stmt = stmt.where(PartRide.ride_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(PartRide.ride_date <= date_to)
        stmt = stmt.order_by(PartRide.ride_date.desc(), PartRide.id)
        return paginate(self.session, stmt, PartRide.to_dto, page_number, page_size)

    # -- disputes ------------------------------------------------------------

    def get_dispute(self, dispute_id: UUID, scope: AccessScope) -> DisputeDetail:
        dispute = self.session.get(PartRideDispute, dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(str(dispute_id))
        ride = self._load_ride(dispute.part_ride_id)
        self._check(scope, [ride.access_target()], "PartRideDispute", dispute_id)
        return DisputeDetail(
            dispute=dispute.to_dto(),
            ride=ride.to_dto(),
            comments=tuple(c.to_dto() for c in dispute.comments),
        )

    def list_disputes(
        self,
        scope: AccessScope,
        status: DisputeStatus | str | None = None,
        page_number: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[DisputeRecord]:
        stmt = (
            select(PartRideDispute)
            .join(PartRide, PartRideDispute.part_ride_id == PartRide.id)
            .where(_ride_scope(scope))
        )
        if status is not None:
            stmt = stmt.where(PartRideDispute.status == DisputeStatus(status).value)
        stmt = stmt.order_by(PartRideDispute.created_at.desc(), PartRideDispute.id)
        return paginate(self.session, stmt, PartRideDispute.to_dto, page_number, page_size)

    # -- weeks ---------------------------------------------------------------

    def get_week(self, week_approval_id: UUID, scope: AccessScope) -> WeekApprovalRecord:
        week = self.session.get(WeekApproval, week_approval_id)
        if week is None:
            raise WeekApprovalNotFoundError(str(week_approval_id))
        self._check(
            scope, week_access_targets(self.session, week), "WeekApproval", week_approval_id,
        )
        return week.to_dto()

    def list_weeks(
        self,
        scope: AccessScope,
        driver_id: UUID | None = None,
        year: int | None = None,
        status: WeekApprovalStatus | str | None = None,
        page_number: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[WeekApprovalRecord]:
        """
        Weeks the scope reaches: the caller's own weeks as a driver, and
        weeks holding at least one ride whose company or client is in
        scope.  Same predicate as ``get_week``.
        """
        ride_in_scope = exists().where(
            PartRide.week_approval_id == WeekApproval.id,
            scope_clause(scope, company=PartRide.company_id, client=PartRide.client_id),
        )
        visible = or_(scope_clause(scope, driver=WeekApproval.driver_id), ride_in_scope)
        stmt = select(WeekApproval).where(visible)
        if driver_id is not None:
            stmt = stmt.where(WeekApproval.driver_id == driver_id)
        if year is not None:
            stmt = stmt.where(WeekApproval.year == year)
        if status is not None:
            stmt = stmt.where(WeekApproval.status == WeekApprovalStatus(status).value)
        stmt = stmt.order_by(
            WeekApproval.year.desc(), WeekApproval.week_nr.desc(), WeekApproval.id
        )
        return paginate(self.session, stmt, WeekApproval.to_dto, page_number, page_size)
