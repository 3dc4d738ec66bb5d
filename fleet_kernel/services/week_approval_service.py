"""
fleet_kernel.services.week_approval_service -- weekly ride aggregation.

Responsibility:
    Owns WeekApproval rows: finding or creating the week a ride belongs
    to, the derived week summary, and the release / signature workflow.

Architecture position:
    Kernel > Services.  Used directly by callers and by
    RideLifecycleService when a ride is submitted.

Invariants enforced:
    - Summary figures are derived from the week's rides on every call.
    - A week is released to its driver only when every ride is accepted
      or rejected (no pending ride, no open dispute).
    - Only the week's own driver signs it.
    - Attaching a ride to a released week sends it back to review; to a
      signed week, invalidates it.

Failure modes:
    - WeekApprovalNotFoundError, ForbiddenError, InvalidTransitionError,
      WeekNotReadyError, ConflictError.
    - WeekMismatchError when a ride linked to the week names another
      driver or week.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from fleet_kernel.domain.access import DenyReason
from fleet_kernel.domain.calendar import PeriodWeek
from fleet_kernel.domain.dtos import WeekApprovalRecord
from fleet_kernel.domain.ride_lifecycle import (
    WEEK_TRANSITIONS,
    WeekApprovalStatus,
    week_status_after_ride_added,
)
from fleet_kernel.domain.scope import AccessScope
from fleet_kernel.domain.week_summary import (
    WeekSummary,
    WeekSummaryStatus,
    summarize_week,
)
from fleet_kernel.domain.write_policy import WriteAction
from fleet_kernel.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    WeekApprovalNotFoundError,
    WeekMismatchError,
    WeekNotReadyError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.models.part_ride import PartRide
from fleet_kernel.models.week_approval import WeekApproval
from fleet_kernel.selectors.ride_selector import week_access_targets
from fleet_kernel.services.base import GuardedService, advance_status

logger = get_logger("services.week_approval")


class WeekApprovalService(GuardedService):
    """Week lookup, summary projection, release and signature."""

    # -- read side -------------------------------------------------------------

    def compute_week_summary(self, week_approval_id: UUID) -> WeekSummary:
        week = self._load_week(week_approval_id)
        rides = self._rides_of(week.id)
        for ride in rides:
            if (ride.driver_id, ride.year, ride.week_nr) != (week.driver_id, week.year, week.week_nr):
                raise WeekMismatchError(str(ride.id), str(week.id))
        return summarize_week(r.to_figures() for r in rides)

    def _rides_of(self, week_approval_id: UUID) -> list[PartRide]:
        return list(
            self.session.scalars(
                select(PartRide)
                .where(PartRide.week_approval_id == week_approval_id)
                .order_by(PartRide.ride_date, PartRide.created_at)
            )
        )

    def _load_week(self, week_approval_id: UUID) -> WeekApproval:
        week = self.session.get(WeekApproval, week_approval_id)
        if week is None:
            raise WeekApprovalNotFoundError(str(week_approval_id))
        return week

    # -- ride attachment ---------------------------------------------------------

    def attach_ride_week(self, driver_id: UUID, period: PeriodWeek) -> WeekApproval:
        """
        The week record for ``driver_id`` in ``period``, created on first use.
        If the week had already been released or signed, it is sent back.
        """
        week = self.session.scalars(
            select(WeekApproval).where(
                WeekApproval.driver_id == driver_id,
                WeekApproval.year == period.year,
                WeekApproval.week_nr == period.week_nr,
            )
        ).one_or_none()

        if week is None:
            now = self._clock.now()
            week = WeekApproval(
                driver_id=driver_id,
                year=period.year,
                week_nr=period.week_nr,
                period_nr=period.period_nr,
                status=WeekApprovalStatus.PENDING_ADMIN.value,
                version=0,
                created_at=now,
                updated_at=now,
            )
            self.session.add(week)
            try:
                self.session.flush()
            except IntegrityError as exc:
                # Another transaction created the same driver-week first.
                raise ConflictError("WeekApproval", f"{driver_id}/{period.year}-W{period.week_nr}", "absent") from exc
            logger.info(
                "week_approval_created",
                extra={
                    "week_approval_id": str(week.id),
                    "driver_id": str(driver_id),
                    "year": period.year,
                    "week_nr": period.week_nr,
                },
            )
            return week

        reopened = week_status_after_ride_added(week.week_status)
        if reopened is not week.week_status:
            previous = week.status
            advance_status(
                self.session,
                week,
                reopened.value,
                entity_type="WeekApproval",
                updated_at=self._clock.now(),
            )
            logger.info(
                "week_reopened",
                extra={
                    "week_approval_id": str(week.id),
                    "from_status": previous,
                    "to_status": reopened.value,
                },
            )
        return week

    # -- workflow ------------------------------------------------------------------

    def allow_driver(self, week_approval_id: UUID, scope: AccessScope) -> WeekApprovalRecord:
        """Admin releases a fully reviewed week to the driver for signature."""
        with LogContext.bind(week_approval_id=week_approval_id, actor_id=scope.actor_id):
            week = self._load_week(week_approval_id)
            self.authorize(
                scope,
                WriteAction.WEEK_ALLOW_DRIVER,
                week_access_targets(self.session, week),
                entity_type="WeekApproval",
                entity_id=week.id,
            )
            self._require_transition(week, WeekApprovalStatus.PENDING_DRIVER, "allow_driver")

            summary = self.compute_week_summary(week.id)
            if summary.status is not WeekSummaryStatus.ALL_APPROVED_OR_REJECTED:
                raise WeekNotReadyError(
                    str(week.id), summary.pending_count, summary.dispute_count,
                )

            now = self._clock.now()
            advance_status(
                self.session,
                week,
                WeekApprovalStatus.PENDING_DRIVER.value,
                entity_type="WeekApproval",
                admin_user_id=scope.actor_id,
                admin_allowed_at=now,
                updated_at=now,
            )
            logger.info(
                "week_allowed_for_driver",
                extra={"total_hours": summary.total_hours, "ride_count": summary.ride_count},
            )
            return week.to_dto()

    def sign(self, week_approval_id: UUID, scope: AccessScope) -> WeekApprovalRecord:
        """The week's driver signs a released week."""
        with LogContext.bind(week_approval_id=week_approval_id, actor_id=scope.actor_id):
            week = self._load_week(week_approval_id)
            self.authorize(
                scope,
                WriteAction.WEEK_SIGN,
                week_access_targets(self.session, week),
                entity_type="WeekApproval",
                entity_id=week.id,
            )
            if week.driver_id != scope.owned_driver_id:
                raise ForbiddenError(
                    str(scope.actor_id),
                    DenyReason.OUT_OF_SCOPE.value,
                    action=WriteAction.WEEK_SIGN.value,
                    entity_type="WeekApproval",
                    entity_id=str(week.id),
                )
            self._require_transition(week, WeekApprovalStatus.SIGNED, "sign")

            now = self._clock.now()
            advance_status(
                self.session,
                week,
                WeekApprovalStatus.SIGNED.value,
                entity_type="WeekApproval",
                driver_signed_at=now,
                updated_at=now,
            )
            logger.info("week_signed", extra={"driver_id": str(week.driver_id)})
            return week.to_dto()

    def _require_transition(
        self, week: WeekApproval, target: WeekApprovalStatus, action: str
    ) -> None:
        if target not in WEEK_TRANSITIONS[week.week_status]:
            raise InvalidTransitionError("WeekApproval", str(week.id), week.status, action)
