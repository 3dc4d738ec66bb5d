"""
Write-permission table (``fleet_kernel.domain.write_policy``).

Read scope is the same for every contact-person role, but who may *write*
differs by role and action (an accountant may comment on a dispute but not
resolve it).  That mapping is data, not code: a ``WritePolicy`` maps each
``WriteAction`` to the roles allowed to perform it.  The table is built by
``fleet_config.get_active_policy()`` from YAML; the kernel only consumes it.

Actions absent from the table are denied for every role.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from fleet_kernel.domain.access import (
    AccessDecision,
    AccessTarget,
    DenyReason,
    check_access,
    check_access_any,
)
from fleet_kernel.domain.identity import Role
from fleet_kernel.domain.scope import AccessScope


class WriteAction(str, Enum):
    """Every mutating kernel operation, as named in policy files."""

    RIDE_SUBMIT = "ride.submit"
    RIDE_APPROVE = "ride.approve"
    RIDE_REJECT = "ride.reject"
    DISPUTE_OPEN = "dispute.open"
    DISPUTE_COMMENT = "dispute.comment"
    DISPUTE_RESOLVE = "dispute.resolve"
    WEEK_ALLOW_DRIVER = "week.allow_driver"
    WEEK_SIGN = "week.sign"
    COMPANY_CREATE = "company.create"
    COMPANY_RENAME = "company.rename"
    CLIENT_CREATE = "client.create"
    CLIENT_DELETE = "client.delete"
    CONTACT_PERSON_CREATE = "contact_person.create"
    CONTACT_PERSON_LINK = "contact_person.link"
    CONTACT_PERSON_DELETE = "contact_person.delete"
    DRIVER_CREATE = "driver.create"
    DRIVER_ASSIGN = "driver.assign"
    DRIVER_DELETE = "driver.delete"


@dataclass(frozen=True)
class WritePolicy:
    """Immutable action -> allowed-roles table."""

    grants: Mapping[WriteAction, frozenset[Role]] = field(default_factory=dict)
    name: str = "default"
    version: int = 1
    checksum: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "grants", MappingProxyType(dict(self.grants)))

    def allows(self, role: Role, action: WriteAction) -> bool:
        return role in self.grants.get(action, frozenset())

    def roles_for(self, action: WriteAction) -> frozenset[Role]:
        return self.grants.get(action, frozenset())


def check_write(
    policy: WritePolicy,
    scope: AccessScope | None,
    action: WriteAction,
    target: AccessTarget | Iterable[AccessTarget],
) -> AccessDecision:
    """
    Gate a mutation: the operative role must be granted ``action``, then
    the target must be inside the scope.  Given several targets, one of
    them must be.
    """
    if scope is None:
        return AccessDecision.deny(DenyReason.NO_PROFILE)
    if not policy.allows(scope.role, action):
        return AccessDecision.deny(DenyReason.ROLE_NOT_PERMITTED)
    if isinstance(target, AccessTarget):
        return check_access(scope, target)
    return check_access_any(scope, target)
