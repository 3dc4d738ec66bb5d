"""
fleet_kernel.services.ride_service -- PartRide and dispute lifecycle.

Responsibility:
    Every write that changes a ride or its dispute: submission, admin
    review, opening a dispute, the comment thread, and resolution.

Architecture position:
    Kernel > Services.  Calls WeekApprovalService to attach submitted
    rides to their week.

Invariants enforced:
    - A new ride is always pending_admin; the draft cannot choose a status.
    - accepted / rejected are terminal: ``next_status`` returns None for
      every action from them.
    - Each status change is a compare-and-set on (status, version).
    - At most one open dispute per ride; the partial unique index backs
      the in-service check.
    - A comment is authored by the acting user and only lands on an open
      dispute; comment sequence numbers come from a compare-and-set on
      ``comment_count`` so a concurrent close is detected.
    - Ride company and client agree with the tenancy graph.

Failure modes:
    - RideNotFoundError / DisputeNotFoundError / DriverNotFoundError /
      ClientNotFoundError / CompanyNotFoundError
    - ForbiddenError (role not granted, target out of scope, author mismatch)
    - InvalidTransitionError, ConflictError
    - DisputeAlreadyOpenError, DisputeClosedError, DisputeNotOpenError,
      EmptyCommentError
    - InvalidCorrectionError (correction hours not a finite decimal)
    - TenancyIntegrityError
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from fleet_kernel.domain.access import AccessTarget, DenyReason
from fleet_kernel.domain.calendar import period_for_date
from fleet_kernel.domain.dtos import (
    DisputeCommentRecord,
    DisputeRecord,
    PartRideRecord,
    RideDraft,
)
from fleet_kernel.domain.identity import Role
from fleet_kernel.domain.ride_lifecycle import (
    DIRECT_RIDE_ACTIONS,
    DisputeStatus,
    PartRideStatus,
    RideAction,
    next_status,
    resolution_action,
)
from fleet_kernel.domain.scope import AccessScope
from fleet_kernel.domain.write_policy import WriteAction
from fleet_kernel.exceptions import (
    ClientNotFoundError,
    CompanyNotFoundError,
    ConflictError,
    DisputeAlreadyOpenError,
    DisputeClosedError,
    DisputeNotFoundError,
    DisputeNotOpenError,
    DriverNotFoundError,
    EmptyCommentError,
    ForbiddenError,
    InvalidCorrectionError,
    InvalidTransitionError,
    RideNotFoundError,
    TenancyIntegrityError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.models.dispute import DisputeComment, PartRideDispute
from fleet_kernel.models.part_ride import PartRide
from fleet_kernel.models.tenancy import Client, Company, Driver
from fleet_kernel.services.base import GuardedService, advance_status, compare_and_set
from fleet_kernel.services.week_approval_service import WeekApprovalService

logger = get_logger("services.ride")

_REVIEW_ACTIONS: dict[RideAction, WriteAction] = {
    RideAction.APPROVE: WriteAction.RIDE_APPROVE,
    RideAction.REJECT: WriteAction.RIDE_REJECT,
}


def _parse_correction(dispute_id: UUID, value: Decimal | int | float | str) -> Decimal:
    """Correction hours as a finite Decimal, or InvalidCorrectionError."""
    if isinstance(value, bool):
        raise InvalidCorrectionError(str(dispute_id), value)
    try:
        correction = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidCorrectionError(str(dispute_id), value) from None
    if not correction.is_finite():
        raise InvalidCorrectionError(str(dispute_id), value)
    return correction


class RideLifecycleService(GuardedService):
    """
    Ride submission, review and dispute handling.

    All methods take the caller's AccessScope; they flush but never commit.
    """

    # =====================================================================
    # Loading
    # =====================================================================

    def _load_ride(self, ride_id: UUID) -> PartRide:
        ride = self.session.get(PartRide, ride_id)
        if ride is None:
            raise RideNotFoundError(str(ride_id))
        return ride

    def _load_dispute(self, dispute_id: UUID) -> PartRideDispute:
        dispute = self.session.get(PartRideDispute, dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(str(dispute_id))
        return dispute

    def _open_dispute_for(self, ride_id: UUID) -> PartRideDispute | None:
        return self.session.scalars(
            select(PartRideDispute).where(
                PartRideDispute.part_ride_id == ride_id,
                PartRideDispute.status == DisputeStatus.OPEN.value,
            )
        ).one_or_none()

    # =====================================================================
    # Submission
    # =====================================================================

    def _resolve_driver(self, draft: RideDraft, scope: AccessScope) -> Driver:
        driver_id = draft.driver_id
        if scope.role is Role.DRIVER:
            if driver_id is None:
                driver_id = scope.owned_driver_id
            elif driver_id != scope.owned_driver_id:
                raise ForbiddenError(
                    str(scope.actor_id),
                    DenyReason.OUT_OF_SCOPE.value,
                    action=WriteAction.RIDE_SUBMIT.value,
                    entity_type="Driver",
                    entity_id=str(driver_id),
                )
        if driver_id is None:
            raise TenancyIntegrityError("PartRide", "a ride must name its driver")

        driver = self.session.get(Driver, driver_id)
        if driver is None or driver.is_deleted:
            raise DriverNotFoundError(str(driver_id))
        return driver

    def _resolve_tenancy(
        self, draft: RideDraft, driver: Driver
    ) -> tuple[UUID | None, UUID | None]:
        """Company and client for the ride, checked against the graph."""
        company_id = draft.company_id
        if draft.client_id is not None:
            client = self.session.get(Client, draft.client_id)
            if client is None or client.is_deleted:
                raise ClientNotFoundError(str(draft.client_id))
            if company_id is None:
                company_id = client.company_id
            elif company_id != client.company_id:
                raise TenancyIntegrityError(
                    "PartRide",
                    f"client {client.id} belongs to company {client.company_id}, "
                    f"not {company_id}",
                )
        if company_id is None:
            company_id = driver.company_id

        if company_id is not None:
            company = self.session.get(Company, company_id)
            if company is None or company.is_deleted:
                raise CompanyNotFoundError(str(company_id))
            if driver.company_id is not None and driver.company_id != company_id:
                raise TenancyIntegrityError(
                    "PartRide",
                    f"driver {driver.id} works for company {driver.company_id}, "
                    f"not {company_id}",
                )
        return company_id, draft.client_id

    def submit_ride(self, draft: RideDraft, scope: AccessScope) -> PartRideRecord:
        """Record a ride in pending_admin and attach it to the driver's week."""
        driver = self._resolve_driver(draft, scope)
        company_id, client_id = self._resolve_tenancy(draft, driver)

        self.authorize(
            scope,
            WriteAction.RIDE_SUBMIT,
            AccessTarget(company_id=company_id, client_id=client_id, driver_id=driver.id),
            entity_type="PartRide",
        )

        period = period_for_date(draft.ride_date)
        weeks = WeekApprovalService(self.session, self._policy, self._clock)
        week = weeks.attach_ride_week(driver.id, period)

        now = self._clock.now()
        ride = PartRide(
            driver_id=driver.id,
            company_id=company_id,
            client_id=client_id,
            week_approval_id=week.id,
            ride_date=draft.ride_date,
            year=period.year,
            week_nr=period.week_nr,
            period_nr=period.period_nr,
            status=PartRideStatus.PENDING_ADMIN.value,
            version=0,
            decimal_hours=draft.decimal_hours,
            correction_hours=Decimal("0"),
            night_allowance=draft.night_allowance,
            kilometer_reimbursement=draft.kilometer_reimbursement,
            consignment_fee=draft.consignment_fee,
            various_compensation=draft.various_compensation,
            tax_free_compensation=draft.tax_free_compensation,
            remark=draft.remark,
            created_at=now,
            updated_at=now,
        )
        self.session.add(ride)
        self.session.flush()

        logger.info(
            "ride_submitted",
            extra={
                "ride_id": str(ride.id),
                "driver_id": str(driver.id),
                "week_approval_id": str(week.id),
                "actor_id": str(scope.actor_id),
                "decimal_hours": ride.decimal_hours,
            },
        )
        return ride.to_dto()

    # =====================================================================
    # Review
    # =====================================================================

    def transition(
        self,
        ride_id: UUID,
        action: RideAction | str,
        scope: AccessScope,
        expected_version: int | None = None,
    ) -> PartRideRecord:
        """
        Apply APPROVE or REJECT to a pending ride.

        RAISE_DISPUTE is accepted for convenience and goes through
        ``open_dispute``.  RESOLVE_* actions are only reachable through
        ``resolve_dispute``.  ``expected_version`` lets a caller pin the
        version it reviewed; a mismatch is a ConflictError.
        """
        action = RideAction(action)
        if action is RideAction.RAISE_DISPUTE:
            self.open_dispute(ride_id, scope)
            return self._load_ride(ride_id).to_dto()

        with LogContext.bind(ride_id=ride_id, actor_id=scope.actor_id):
            ride = self._load_ride(ride_id)
            if action not in DIRECT_RIDE_ACTIONS:
                raise InvalidTransitionError("PartRide", str(ride.id), ride.status, action.value)

            self.authorize(
                scope,
                _REVIEW_ACTIONS[action],
                ride.access_target(),
                entity_type="PartRide",
                entity_id=ride.id,
            )

            if expected_version is not None and ride.version != expected_version:
                raise ConflictError("PartRide", str(ride.id), ride.status)

            target = next_status(ride.ride_status, action)
            if target is None:
                raise InvalidTransitionError("PartRide", str(ride.id), ride.status, action.value)

            previous = ride.status
            advance_status(
                self.session,
                ride,
                target.value,
                entity_type="PartRide",
                updated_at=self._clock.now(),
            )
            logger.info(
                "ride_transitioned",
                extra={
                    "action": action.value,
                    "from_status": previous,
                    "to_status": ride.status,
                    "version": ride.version,
                },
            )
            return ride.to_dto()

    # =====================================================================
    # Disputes
    # =====================================================================

    def open_dispute(self, ride_id: UUID, scope: AccessScope) -> DisputeRecord:
        """Move a pending ride to dispute and open its thread."""
        with LogContext.bind(ride_id=ride_id, actor_id=scope.actor_id):
            ride = self._load_ride(ride_id)
            self.authorize(
                scope,
                WriteAction.DISPUTE_OPEN,
                ride.access_target(),
                entity_type="PartRide",
                entity_id=ride.id,
            )

            existing = self._open_dispute_for(ride.id)
            if existing is not None:
                raise DisputeAlreadyOpenError(str(ride.id), str(existing.id))

            target = next_status(ride.ride_status, RideAction.RAISE_DISPUTE)
            if target is None:
                raise InvalidTransitionError(
                    "PartRide", str(ride.id), ride.status, RideAction.RAISE_DISPUTE.value,
                )

            now = self._clock.now()
            advance_status(
                self.session, ride, target.value, entity_type="PartRide", updated_at=now,
            )

            dispute = PartRideDispute(
                part_ride_id=ride.id,
                opened_by_id=scope.actor_id,
                status=DisputeStatus.OPEN.value,
                created_at=now,
                comment_count=0,
                version=0,
            )
            self.session.add(dispute)
            try:
                self.session.flush()
            except IntegrityError as exc:
                raise DisputeAlreadyOpenError(str(ride.id)) from exc

            logger.info("dispute_opened", extra={"dispute_id": str(dispute.id)})
            return dispute.to_dto()

    def add_comment(
        self,
        dispute_id: UUID,
        author_id: UUID,
        body: str,
        scope: AccessScope,
    ) -> DisputeCommentRecord:
        """Append a comment to an open dispute's thread."""
        with LogContext.bind(dispute_id=dispute_id, actor_id=scope.actor_id):
            dispute = self._load_dispute(dispute_id)
            ride = self._load_ride(dispute.part_ride_id)

            if author_id != scope.actor_id:
                logger.warning(
                    "access_denied",
                    extra={
                        "reason": DenyReason.AUTHOR_MISMATCH.value,
                        "author_id": str(author_id),
                    },
                )
                raise ForbiddenError(
                    str(scope.actor_id),
                    DenyReason.AUTHOR_MISMATCH.value,
                    action=WriteAction.DISPUTE_COMMENT.value,
                    entity_type="PartRideDispute",
                    entity_id=str(dispute.id),
                )
            self.authorize(
                scope,
                WriteAction.DISPUTE_COMMENT,
                ride.access_target(),
                entity_type="PartRideDispute",
                entity_id=dispute.id,
            )

            if body is None or not body.strip():
                raise EmptyCommentError(str(dispute.id))
            if not dispute.is_open:
                raise DisputeClosedError(str(dispute.id))

            sequence = dispute.comment_count + 1
            try:
                compare_and_set(
                    self.session,
                    PartRideDispute,
                    dispute.id,
                    expected={
                        "status": DisputeStatus.OPEN.value,
                        "comment_count": dispute.comment_count,
                    },
                    values={"comment_count": sequence},
                    entity_type="PartRideDispute",
                )
            except ConflictError:
                current = self.session.scalar(
                    select(PartRideDispute.status).where(PartRideDispute.id == dispute.id)
                )
                if current == DisputeStatus.CLOSED.value:
                    raise DisputeClosedError(str(dispute.id)) from None
                raise

            comment = DisputeComment(
                dispute_id=dispute.id,
                author_id=author_id,
                body=body,
                created_at=self._clock.now(),
                sequence=sequence,
            )
            self.session.add(comment)
            self.session.flush()
            self.session.expire(dispute)

            logger.info(
                "dispute_comment_added",
                extra={"comment_id": str(comment.id), "sequence": sequence},
            )
            return comment.to_dto()

    def resolve_dispute(
        self,
        dispute_id: UUID,
        correction_hours: Decimal | int | float | str,
        outcome: PartRideStatus | str,
        scope: AccessScope,
    ) -> DisputeRecord:
        """
        Close an open dispute with an explicit outcome.

        The ride moves to ``outcome`` (accepted or rejected).  On acceptance
        ``correction_hours`` is added to the ride's correction so the
        resulting hours are decimal_hours + correction_hours.
        """
        with LogContext.bind(dispute_id=dispute_id, actor_id=scope.actor_id):
            dispute = self._load_dispute(dispute_id)
            ride = self._load_ride(dispute.part_ride_id)
            self.authorize(
                scope,
                WriteAction.DISPUTE_RESOLVE,
                ride.access_target(),
                entity_type="PartRideDispute",
                entity_id=dispute.id,
            )

            if not dispute.is_open:
                raise DisputeNotOpenError(str(dispute.id), dispute.status)

            action = resolution_action(outcome)
            target = next_status(ride.ride_status, action) if action else None
            if target is None:
                raise InvalidTransitionError(
                    "PartRide", str(ride.id), ride.status, f"resolve:{outcome}",
                )

            correction = _parse_correction(dispute.id, correction_hours)
            now = self._clock.now()
            compare_and_set(
                self.session,
                PartRideDispute,
                dispute.id,
                expected={"status": DisputeStatus.OPEN.value, "version": dispute.version},
                values={
                    "status": DisputeStatus.CLOSED.value,
                    "version": dispute.version + 1,
                    "correction_hours": correction,
                    "closed_at": now,
                    "resolved_by_id": scope.actor_id,
                    "outcome": target.value,
                },
                entity_type="PartRideDispute",
            )

            ride_values = {"updated_at": now}
            if target is PartRideStatus.ACCEPTED:
                ride_values["correction_hours"] = PartRide.correction_hours + correction
            advance_status(
                self.session, ride, target.value, entity_type="PartRide", **ride_values,
            )
            self.session.refresh(dispute)

            logger.info(
                "dispute_resolved",
                extra={
                    "ride_id": str(ride.id),
                    "outcome": target.value,
                    "correction_hours": correction,
                    "resulting_hours": ride.decimal_hours + ride.correction_hours,
                },
            )
            return dispute.to_dto()
