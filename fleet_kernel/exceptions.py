"""
Typed Exception Hierarchy for the Fleet Kernel.

Every error the kernel can report to its caller is a typed class with a
machine-readable ``code`` class attribute and structured instance
attributes.  Callers catch by type and read the attributes; they never
parse messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from FleetKernelError:

    FleetKernelError (base)
    |
    +-- AccessError
    |   +-- UnauthorizedError
    |   +-- ForbiddenError
    |   +-- ProfileNotFoundError
    |
    +-- NotFoundError
    |   +-- CompanyNotFoundError
    |   +-- ClientNotFoundError
    |   +-- DriverNotFoundError
    |   +-- ContactPersonNotFoundError
    |   +-- RideNotFoundError
    |   +-- DisputeNotFoundError
    |   +-- WeekApprovalNotFoundError
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- WeekNotReadyError
    |
    +-- DisputeError
    |   +-- DisputeAlreadyOpenError
    |   +-- DisputeClosedError
    |   +-- DisputeNotOpenError
    |   +-- EmptyCommentError
    |   +-- InvalidCorrectionError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- TenancyError
    |   +-- TenancyIntegrityError
    |   +-- WeekMismatchError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Access          | UNAUTHORIZED                | No identity, or no recognised role
                | FORBIDDEN                   | Valid identity, target outside scope
                | PROFILE_NOT_FOUND           | Role implies a profile that is missing
----------------|-----------------------------|-----------------------------------------
Not found       | COMPANY_NOT_FOUND           | Company absent or soft-deleted
                | CLIENT_NOT_FOUND            | Client absent or soft-deleted
                | DRIVER_NOT_FOUND            | Driver absent or soft-deleted
                | CONTACT_PERSON_NOT_FOUND    | Contact person absent or soft-deleted
                | RIDE_NOT_FOUND              | PartRide absent
                | DISPUTE_NOT_FOUND           | Dispute absent
                | WEEK_APPROVAL_NOT_FOUND     | WeekApproval absent
----------------|-----------------------------|-----------------------------------------
Lifecycle       | INVALID_TRANSITION          | Action not legal from current state
                | WEEK_NOT_READY              | Week still has pending or disputed rides
----------------|-----------------------------|-----------------------------------------
Dispute         | ALREADY_OPEN                | Ride already has an open dispute
                | DISPUTE_CLOSED              | Comment on a closed dispute
                | NOT_OPEN                    | Resolve a dispute that is not open
                | EMPTY_COMMENT               | Comment body is blank
                | INVALID_CORRECTION          | Correction hours not a finite decimal
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONFLICT                    | Compare-and-set lost to another writer
----------------|-----------------------------|-----------------------------------------
Tenancy         | TENANCY_INTEGRITY           | Client/company association mismatch
                | WEEK_MISMATCH               | Ride does not belong to the week
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of an append-only record

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ProfileNotFoundError is NOT a ForbiddenError.  It means the actor's
   onboarding is incomplete (e.g. a driver login with no driver row) and
   is surfaced separately so operators can spot it:

    try:
        scope = access.resolve_scope(identity)
    except ProfileNotFoundError as e:
        alert_onboarding(e.actor_id, e.role)

2. ConflictError means another transaction changed the row first.  The
   kernel never retries; the caller decides whether re-reading and
   re-applying the user's intent is safe.

3. ForbiddenError carries ``reason`` (a DenyReason value) so callers can
   tell "out of scope" from "role not permitted for this action".
"""


class FleetKernelError(Exception):
    """
    Base exception for all fleet kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FLEET_KERNEL_ERROR"


# Access-related exceptions


class AccessError(FleetKernelError):
    """Base exception for identity and scope errors."""

    code: str = "ACCESS_ERROR"


class UnauthorizedError(AccessError):
    """No valid identity, or none of its roles is recognised."""

    code: str = "UNAUTHORIZED"

    def __init__(self, actor_id: str | None, reason: str):
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(f"Unauthorized actor {actor_id}: {reason}")


class ForbiddenError(AccessError):
    """Valid identity whose scope does not cover the requested target/action."""

    code: str = "FORBIDDEN"

    def __init__(
        self,
        actor_id: str,
        reason: str,
        action: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ):
        self.actor_id = actor_id
        self.reason = reason
        self.action = action
        self.entity_type = entity_type
        self.entity_id = entity_id
        target = f" on {entity_type} {entity_id}" if entity_type else ""
        verb = f" for {action}" if action else ""
        super().__init__(f"Actor {actor_id} forbidden{verb}{target}: {reason}")


class ProfileNotFoundError(AccessError):
    """
    The actor holds a role that implies a profile (driver / contact person)
    but no active profile exists, or the profile lacks the company link the
    operation needs.

    A configuration / onboarding problem, distinct from ForbiddenError.
    """

    code: str = "PROFILE_NOT_FOUND"

    def __init__(self, actor_id: str, role: str, detail: str = ""):
        self.actor_id = actor_id
        self.role = role
        self.detail = detail
        suffix = f": {detail}" if detail else ""
        super().__init__(f"No {role} profile for actor {actor_id}{suffix}")


# Not-found exceptions


class NotFoundError(FleetKernelError):
    """Base exception for absent or soft-deleted entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class CompanyNotFoundError(NotFoundError):
    code: str = "COMPANY_NOT_FOUND"
    entity_type: str = "Company"


class ClientNotFoundError(NotFoundError):
    code: str = "CLIENT_NOT_FOUND"
    entity_type: str = "Client"


class DriverNotFoundError(NotFoundError):
    code: str = "DRIVER_NOT_FOUND"
    entity_type: str = "Driver"


class ContactPersonNotFoundError(NotFoundError):
    code: str = "CONTACT_PERSON_NOT_FOUND"
    entity_type: str = "ContactPerson"


class RideNotFoundError(NotFoundError):
    code: str = "RIDE_NOT_FOUND"
    entity_type: str = "PartRide"


class DisputeNotFoundError(NotFoundError):
    code: str = "DISPUTE_NOT_FOUND"
    entity_type: str = "PartRideDispute"


class WeekApprovalNotFoundError(NotFoundError):
    code: str = "WEEK_APPROVAL_NOT_FOUND"
    entity_type: str = "WeekApproval"


# Lifecycle exceptions


class LifecycleError(FleetKernelError):
    """Base exception for state machine violations."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """Requested action is not legal from the entity's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, current_status: str, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} from status {current_status}"
        )


class WeekNotReadyError(LifecycleError):
    """Week cannot be released to the driver while rides are pending or disputed."""

    code: str = "WEEK_NOT_READY"

    def __init__(self, week_approval_id: str, pending_count: int, dispute_count: int):
        self.week_approval_id = week_approval_id
        self.pending_count = pending_count
        self.dispute_count = dispute_count
        super().__init__(
            f"Week {week_approval_id} not ready: "
            f"{pending_count} pending, {dispute_count} in dispute"
        )


# Dispute exceptions


class DisputeError(FleetKernelError):
    """Base exception for dispute sub-workflow precondition violations."""

    code: str = "DISPUTE_ERROR"


class DisputeAlreadyOpenError(DisputeError):
    """The ride already has an open dispute."""

    code: str = "ALREADY_OPEN"

    def __init__(self, ride_id: str, dispute_id: str | None = None):
        self.ride_id = ride_id
        self.dispute_id = dispute_id
        super().__init__(f"Ride {ride_id} already has an open dispute {dispute_id}")


class DisputeClosedError(DisputeError):
    """Comments cannot be appended to a closed dispute."""

    code: str = "DISPUTE_CLOSED"

    def __init__(self, dispute_id: str):
        self.dispute_id = dispute_id
        super().__init__(f"Dispute {dispute_id} is closed")


class DisputeNotOpenError(DisputeError):
    """Only an open dispute can be resolved."""

    code: str = "NOT_OPEN"

    def __init__(self, dispute_id: str, current_status: str):
        self.dispute_id = dispute_id
        self.current_status = current_status
        super().__init__(f"Dispute {dispute_id} is not open (status={current_status})")


class EmptyCommentError(DisputeError):
    """Comment body is empty or whitespace."""

    code: str = "EMPTY_COMMENT"

    def __init__(self, dispute_id: str):
        self.dispute_id = dispute_id
        super().__init__(f"Comment on dispute {dispute_id} cannot be empty")


class InvalidCorrectionError(DisputeError):
    """Correction hours are not a finite decimal."""

    code: str = "INVALID_CORRECTION"

    def __init__(self, dispute_id: str, value: object):
        self.dispute_id = dispute_id
        self.value = repr(value)
        super().__init__(f"Invalid correction for dispute {dispute_id}: {value!r}")


# Concurrency exceptions


class ConcurrencyError(FleetKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """
    Compare-and-set lost: the row no longer has the status/version the
    caller observed.
    """

    code: str = "CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_status: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_status = expected_status
        super().__init__(
            f"Conflict on {entity_type} {entity_id}: expected status "
            f"{expected_status}, entity was modified by another transaction"
        )


# Tenancy exceptions


class TenancyError(FleetKernelError):
    """Base exception for tenancy graph invariant violations."""

    code: str = "TENANCY_ERROR"


class TenancyIntegrityError(TenancyError):
    """A company/client reference disagrees with the owning company."""

    code: str = "TENANCY_INTEGRITY"

    def __init__(self, entity_type: str, reason: str):
        self.entity_type = entity_type
        self.reason = reason
        super().__init__(f"Tenancy integrity violation on {entity_type}: {reason}")


class WeekMismatchError(TenancyError):
    """A ride does not share driver/year/week with its WeekApproval."""

    code: str = "WEEK_MISMATCH"

    def __init__(self, ride_id: str, week_approval_id: str):
        self.ride_id = ride_id
        self.week_approval_id = week_approval_id
        super().__init__(
            f"Ride {ride_id} does not belong to week approval {week_approval_id}"
        )


# Immutability exceptions


class ImmutabilityError(FleetKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
