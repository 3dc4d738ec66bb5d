"""
Ride lifecycle domain types (``fleet_kernel.domain.ride_lifecycle``).

Responsibility
--------------
The state machines for PartRide, PartRideDispute and WeekApproval as
plain tables.  Services look transitions up here; nothing in this module
touches the database.

PartRide
--------
::

    pending_admin --APPROVE--------> accepted   (terminal)
    pending_admin --REJECT---------> rejected   (terminal)
    pending_admin --RAISE_DISPUTE--> dispute
    dispute       --RESOLVE_ACCEPT-> accepted
    dispute       --RESOLVE_REJECT-> rejected

RESOLVE_* actions are only reachable through dispute resolution, never
through a direct ``transition`` call.

WeekApproval
------------
::

    pending_admin  -> pending_driver   admin releases the week to the driver
    pending_driver -> signed           driver signs
    pending_driver -> pending_admin    a ride was added before signing
    signed         -> invalidated      a ride was added after signing
    invalidated    -> pending_driver   admin re-releases the corrected week
"""

from __future__ import annotations

from enum import Enum


# =========================================================================
# PartRide
# =========================================================================


class PartRideStatus(str, Enum):
    PENDING_ADMIN = "pending_admin"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DISPUTE = "dispute"


class RideAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    RAISE_DISPUTE = "raise_dispute"
    RESOLVE_ACCEPT = "resolve_accept"
    RESOLVE_REJECT = "resolve_reject"


RIDE_TRANSITIONS: dict[PartRideStatus, dict[RideAction, PartRideStatus]] = {
    PartRideStatus.PENDING_ADMIN: {
        RideAction.APPROVE: PartRideStatus.ACCEPTED,
        RideAction.REJECT: PartRideStatus.REJECTED,
        RideAction.RAISE_DISPUTE: PartRideStatus.DISPUTE,
    },
    PartRideStatus.DISPUTE: {
        RideAction.RESOLVE_ACCEPT: PartRideStatus.ACCEPTED,
        RideAction.RESOLVE_REJECT: PartRideStatus.REJECTED,
    },
    PartRideStatus.ACCEPTED: {},
    PartRideStatus.REJECTED: {},
}

TERMINAL_RIDE_STATUSES: frozenset[PartRideStatus] = frozenset({
    PartRideStatus.ACCEPTED,
    PartRideStatus.REJECTED,
})

# Actions a caller may request through RideLifecycleService.transition().
DIRECT_RIDE_ACTIONS: frozenset[RideAction] = frozenset({
    RideAction.APPROVE,
    RideAction.REJECT,
    RideAction.RAISE_DISPUTE,
})


def next_status(current: PartRideStatus, action: RideAction) -> PartRideStatus | None:
    """Target status for ``action`` from ``current``, or None if illegal."""
    return RIDE_TRANSITIONS.get(current, {}).get(action)


# =========================================================================
# PartRideDispute
# =========================================================================


class DisputeStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


# Explicit resolution decision -> ride action. Any other outcome is illegal.
RESOLUTION_ACTIONS: dict[PartRideStatus, RideAction] = {
    PartRideStatus.ACCEPTED: RideAction.RESOLVE_ACCEPT,
    PartRideStatus.REJECTED: RideAction.RESOLVE_REJECT,
}


def resolution_action(outcome: PartRideStatus | str) -> RideAction | None:
    try:
        return RESOLUTION_ACTIONS.get(PartRideStatus(outcome))
    except ValueError:
        return None


# =========================================================================
# WeekApproval
# =========================================================================


class WeekApprovalStatus(str, Enum):
    PENDING_ADMIN = "pending_admin"
    PENDING_DRIVER = "pending_driver"
    SIGNED = "signed"
    INVALIDATED = "invalidated"


WEEK_TRANSITIONS: dict[WeekApprovalStatus, frozenset[WeekApprovalStatus]] = {
    WeekApprovalStatus.PENDING_ADMIN: frozenset({WeekApprovalStatus.PENDING_DRIVER}),
    WeekApprovalStatus.PENDING_DRIVER: frozenset({
        WeekApprovalStatus.SIGNED,
        WeekApprovalStatus.PENDING_ADMIN,
    }),
    WeekApprovalStatus.SIGNED: frozenset({WeekApprovalStatus.INVALIDATED}),
    WeekApprovalStatus.INVALIDATED: frozenset({WeekApprovalStatus.PENDING_DRIVER}),
}


def week_status_after_ride_added(current: WeekApprovalStatus) -> WeekApprovalStatus:
    """A newly attached ride sends a released week back for review."""
    if current is WeekApprovalStatus.PENDING_DRIVER:
        return WeekApprovalStatus.PENDING_ADMIN
    if current is WeekApprovalStatus.SIGNED:
        return WeekApprovalStatus.INVALIDATED
    return current
