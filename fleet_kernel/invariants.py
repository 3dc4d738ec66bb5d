"""
Fleet kernel invariants.

Declares the structural guarantees the kernel provides regardless of which
write-permission policy is loaded.  Policy decides *who* may perform a write
action; it never decides whether these rules apply.

Enforcement lives in the modules named on each member.
"""

from enum import Enum, unique


@unique
class FleetInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    SCOPE_PER_REQUEST = "scope_per_request"
    """Access scope is resolved from the tenancy graph on every call and
    never cached.  Enforced by AccessService.resolve_scope."""

    GUARDED_MUTATION = "guarded_mutation"
    """Every mutating service call checks the write-policy table and the
    authorization guard before touching a row.  Enforced by
    services.base.GuardedService.authorize."""

    TERMINAL_RIDE_STATUS = "terminal_ride_status"
    """Accepted and rejected rides never change status again.  Enforced
    by domain.ride_lifecycle.next_status."""

    SINGLE_OPEN_DISPUTE = "single_open_dispute"
    """A ride has at most one open dispute.  Enforced by the partial
    unique index uq_dispute_open_per_ride and RideLifecycleService."""

    COMPARE_AND_SET = "compare_and_set"
    """Status changes are applied with a version-checked UPDATE; a lost
    race raises ConflictError.  Enforced by services.base.compare_and_set."""

    APPEND_ONLY_COMMENTS = "append_only_comments"
    """Dispute comments are never updated or deleted.  Enforced by ORM
    listeners in models.dispute."""

    TENANCY_CONSISTENCY = "tenancy_consistency"
    """A ride's company matches its client's company; a contact-person
    association's client belongs to its company.  Enforced by
    RideLifecycleService.submit_ride and TenancyService."""

    DERIVED_WEEK_SUMMARY = "derived_week_summary"
    """Week totals and summary status are recomputed from rides on every
    read and never stored.  Enforced by domain.week_summary."""


ALL_FLEET_INVARIANTS: frozenset[FleetInvariant] = frozenset(FleetInvariant)

# Checked by tests/architecture/test_fleet_import_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "fleet_config",
)
