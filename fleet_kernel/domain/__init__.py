"""
Pure domain layer.

Value objects, enums and decision functions with no dependency on the
ORM, the database, or the wall clock.  Everything here can be exercised
in a unit test without a session.
"""

from fleet_kernel.domain.access import (
    AccessDecision,
    AccessTarget,
    DenyReason,
    check_access,
)
from fleet_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fleet_kernel.domain.identity import IdentityContext, Role, operative_role
from fleet_kernel.domain.ride_lifecycle import (
    DisputeStatus,
    PartRideStatus,
    RideAction,
    WeekApprovalStatus,
)
from fleet_kernel.domain.scope import AccessScope, ScopeRequirement, resolve_scope
from fleet_kernel.domain.week_summary import WeekSummary, WeekSummaryStatus, summarize_week
from fleet_kernel.domain.write_policy import WriteAction, WritePolicy

__all__ = [
    "AccessDecision",
    "AccessScope",
    "AccessTarget",
    "Clock",
    "DenyReason",
    "DeterministicClock",
    "DisputeStatus",
    "IdentityContext",
    "PartRideStatus",
    "RideAction",
    "Role",
    "ScopeRequirement",
    "SystemClock",
    "WeekApprovalStatus",
    "WeekSummary",
    "WeekSummaryStatus",
    "WriteAction",
    "WritePolicy",
    "check_access",
    "operative_role",
    "resolve_scope",
    "summarize_week",
]
