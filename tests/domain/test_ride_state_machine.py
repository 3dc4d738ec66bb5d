"""Ride, dispute and week transition tables."""

import pytest

from fleet_kernel.domain.ride_lifecycle import (
    DIRECT_RIDE_ACTIONS,
    TERMINAL_RIDE_STATUSES,
    WEEK_TRANSITIONS,
    PartRideStatus,
    RideAction,
    WeekApprovalStatus,
    next_status,
    resolution_action,
    week_status_after_ride_added,
)


class TestRideTransitions:
    @pytest.mark.parametrize(
        "action, expected",
        [
            (RideAction.APPROVE, PartRideStatus.ACCEPTED),
            (RideAction.REJECT, PartRideStatus.REJECTED),
            (RideAction.RAISE_DISPUTE, PartRideStatus.DISPUTE),
        ],
    )
    def test_pending_admin_transitions(self, action, expected):
        assert next_status(PartRideStatus.PENDING_ADMIN, action) is expected

    def test_dispute_resolves_to_explicit_outcome(self):
        assert next_status(PartRideStatus.DISPUTE, RideAction.RESOLVE_ACCEPT) is PartRideStatus.ACCEPTED
        assert next_status(PartRideStatus.DISPUTE, RideAction.RESOLVE_REJECT) is PartRideStatus.REJECTED

    def test_dispute_cannot_be_approved_directly(self):
        assert next_status(PartRideStatus.DISPUTE, RideAction.APPROVE) is None

    @pytest.mark.parametrize("status", sorted(TERMINAL_RIDE_STATUSES))
    @pytest.mark.parametrize("action", list(RideAction))
    def test_terminal_statuses_have_no_exit(self, status, action):
        assert next_status(status, action) is None

    def test_resolve_actions_are_not_direct(self):
        assert RideAction.RESOLVE_ACCEPT not in DIRECT_RIDE_ACTIONS
        assert RideAction.RESOLVE_REJECT not in DIRECT_RIDE_ACTIONS


class TestResolutionAction:
    def test_accepts_enum_and_string(self):
        assert resolution_action(PartRideStatus.ACCEPTED) is RideAction.RESOLVE_ACCEPT
        assert resolution_action("rejected") is RideAction.RESOLVE_REJECT

    @pytest.mark.parametrize("outcome", ["pending_admin", "dispute", "approved", ""])
    def test_other_outcomes_are_invalid(self, outcome):
        assert resolution_action(outcome) is None


class TestWeekTransitions:
    def test_release_and_sign_path(self):
        assert WeekApprovalStatus.PENDING_DRIVER in WEEK_TRANSITIONS[WeekApprovalStatus.PENDING_ADMIN]
        assert WeekApprovalStatus.SIGNED in WEEK_TRANSITIONS[WeekApprovalStatus.PENDING_DRIVER]
        assert WeekApprovalStatus.SIGNED not in WEEK_TRANSITIONS[WeekApprovalStatus.PENDING_ADMIN]

    def test_added_ride_sends_released_week_back(self):
        assert week_status_after_ride_added(WeekApprovalStatus.PENDING_DRIVER) is WeekApprovalStatus.PENDING_ADMIN
        assert week_status_after_ride_added(WeekApprovalStatus.SIGNED) is WeekApprovalStatus.INVALIDATED
        assert week_status_after_ride_added(WeekApprovalStatus.PENDING_ADMIN) is WeekApprovalStatus.PENDING_ADMIN
        assert week_status_after_ride_added(WeekApprovalStatus.INVALIDATED) is WeekApprovalStatus.INVALIDATED
