"""
Identity context (``fleet_kernel.domain.identity``).

The authenticated actor as handed to the kernel by the authentication
collaborator.  The kernel never builds one from credentials; it only reads
the actor id and role claims and picks the single *operative* role the
request runs under.

Role precedence
---------------
An actor may carry several role claims.  Scoping runs under exactly one of
them, chosen by ``ROLE_PRECEDENCE`` (most privileged first).  Claims that
are not a known ``Role`` value are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Role claims recognised by the kernel."""

    GLOBAL_ADMIN = "globalAdmin"
    CUSTOMER_ADMIN = "customerAdmin"
    CUSTOMER_ACCOUNTANT = "customerAccountant"
    EMPLOYER = "employer"
    CUSTOMER = "customer"
    DRIVER = "driver"


ROLE_PRECEDENCE: tuple[Role, ...] = (
    Role.GLOBAL_ADMIN,
    Role.CUSTOMER_ADMIN,
    Role.CUSTOMER_ACCOUNTANT,
    Role.EMPLOYER,
    Role.CUSTOMER,
    Role.DRIVER,
)

# Roles whose scope comes from a ContactPerson profile. Read scope is
# identical across them; write rights differ via the WritePolicy table.
CONTACT_PERSON_ROLES: frozenset[Role] = frozenset({
    Role.CUSTOMER_ADMIN,
    Role.CUSTOMER_ACCOUNTANT,
    Role.EMPLOYER,
    Role.CUSTOMER,
})


def parse_role(value: str | Role) -> Role | None:
    """Map a claim string to a Role, or None if it is not recognised."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def operative_role(claims: Iterable[str | Role]) -> Role | None:
    """Highest-precedence recognised role among ``claims``."""
    recognised = {role for role in map(parse_role, claims) if role is not None}
    for role in ROLE_PRECEDENCE:
        if role in recognised:
            return role
    return None


@dataclass(frozen=True)
class IdentityContext:
    """
    Authenticated actor.

    ``actor_id`` is the user-account id.  ``profile_id`` is optional: when
    the authentication layer already knows the driver or contact-person id
    it may pass it, and scope resolution verifies it against the profile
    found for the actor.
    """

    actor_id: UUID
    roles: frozenset[str] = field(default_factory=frozenset)
    profile_id: UUID | None = None

    @classmethod
    def of(cls, actor_id: UUID, *roles: str | Role, profile_id: UUID | None = None) -> IdentityContext:
        return cls(
            actor_id=actor_id,
            roles=frozenset(r.value if isinstance(r, Role) else r for r in roles),
            profile_id=profile_id,
        )

    @property
    def operative_role(self) -> Role | None:
        return operative_role(self.roles)
