"""
Scope resolution (``fleet_kernel.domain.scope``).

Responsibility
--------------
Turn an ``IdentityContext`` plus the tenancy graph into an ``AccessScope``:
the companies, clients and (for drivers) the single driver the actor may
act upon.

Architecture position
---------------------
**Kernel domain layer**.  No ORM, no session.  The tenancy graph is
reached through the ``TenancyGraph`` protocol; ``TenancySelector`` is the
database-backed implementation and tests may pass an in-memory one.

Resolution rules
----------------
1. ``globalAdmin``                   -> unrestricted.
2. contact-person roles              -> company/client ids from the active
                                        ContactPerson's association records.
3. ``driver``                        -> owned_driver_id, plus the driver's
                                        company when it has one.
4. no recognised role / no identity  -> UnauthorizedError.

A role whose profile is missing (or soft-deleted) raises
ProfileNotFoundError.  A driver without a company raises it only when the
caller asked for ``ScopeRequirement.COMPANY``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol
from uuid import UUID

from fleet_kernel.domain.identity import (
    CONTACT_PERSON_ROLES,
    IdentityContext,
    Role,
)
from fleet_kernel.exceptions import ProfileNotFoundError, UnauthorizedError


class ScopeRequirement(str, Enum):
    """What the calling operation needs from a driver's scope."""

    COMPANY = "company"
    OWN_RECORDS = "own_records"


# =========================================================================
# Tenancy graph read model
# =========================================================================


@dataclass(frozen=True)
class ScopeAssociation:
    """One ContactPersonClientCompany record: a company, a client, or both."""

    company_id: UUID | None = None
    client_id: UUID | None = None


@dataclass(frozen=True)
class ContactPersonProfile:
    id: UUID
    user_id: UUID
    associations: tuple[ScopeAssociation, ...] = ()


@dataclass(frozen=True)
class DriverProfile:
    id: UUID
    user_id: UUID
    company_id: UUID | None = None


class TenancyGraph(Protocol):
    """Read access to active profiles. Soft-deleted rows are never returned."""

    def find_contact_person(self, user_id: UUID) -> ContactPersonProfile | None:
        ...

    def find_driver(self, user_id: UUID) -> DriverProfile | None:
        ...


# =========================================================================
# Access scope
# =========================================================================


@dataclass(frozen=True)
class AccessScope:
    """
    What one actor may touch during one request.

    Built by ``resolve_scope`` and passed explicitly to every service call.
    ``role`` is the operative role the scope was resolved under.
    """

    actor_id: UUID
    role: Role
    unrestricted: bool = False
    company_ids: frozenset[UUID] = field(default_factory=frozenset)
    client_ids: frozenset[UUID] = field(default_factory=frozenset)
    owned_driver_id: UUID | None = None
    profile_id: UUID | None = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.unrestricted
            and not self.company_ids
            and not self.client_ids
            and self.owned_driver_id is None
        )


def _resolve_contact_person(
    identity: IdentityContext, role: Role, graph: TenancyGraph
) -> AccessScope:
    profile = graph.find_contact_person(identity.actor_id)
    if profile is None:
        raise ProfileNotFoundError(str(identity.actor_id), role.value)
    if identity.profile_id is not None and identity.profile_id != profile.id:
        raise ProfileNotFoundError(
            str(identity.actor_id), role.value, "profile id does not match actor"
        )
    return AccessScope(
        actor_id=identity.actor_id,
        role=role,
        company_ids=frozenset(
            a.company_id for a in profile.associations if a.company_id is not None
        ),
        client_ids=frozenset(
            a.client_id for a in profile.associations if a.client_id is not None
        ),
        profile_id=profile.id,
    )


def _resolve_driver(
    identity: IdentityContext, graph: TenancyGraph, requirement: ScopeRequirement
) -> AccessScope:
    profile = graph.find_driver(identity.actor_id)
    if profile is None:
        raise ProfileNotFoundError(str(identity.actor_id), Role.DRIVER.value)
    if identity.profile_id is not None and identity.profile_id != profile.id:
        raise ProfileNotFoundError(
            str(identity.actor_id), Role.DRIVER.value, "profile id does not match actor"
        )
    if profile.company_id is None and requirement is ScopeRequirement.COMPANY:
        raise ProfileNotFoundError(
            str(identity.actor_id), Role.DRIVER.value, "driver is not assigned to a company"
        )
    return AccessScope(
        actor_id=identity.actor_id,
        role=Role.DRIVER,
        company_ids=(
            frozenset({profile.company_id}) if profile.company_id is not None else frozenset()
        ),
        owned_driver_id=profile.id,
        profile_id=profile.id,
    )


def resolve_scope(
    identity: IdentityContext | None,
    graph: TenancyGraph,
    requirement: ScopeRequirement = ScopeRequirement.COMPANY,
) -> AccessScope:
    """
    Resolve the access scope for ``identity``.

    Raises:
        UnauthorizedError: No identity, or no recognised role claim.
        ProfileNotFoundError: The operative role implies a profile that is
            missing, does not match ``identity.profile_id``, or (drivers,
            COMPANY requirement) has no company.
    """
    if identity is None:
        raise UnauthorizedError(None, "no identity")

    role = identity.operative_role
    if role is None:
        raise UnauthorizedError(str(identity.actor_id), "no recognised role")

    if role is Role.GLOBAL_ADMIN:
        return AccessScope(actor_id=identity.actor_id, role=role, unrestricted=True)
    if role in CONTACT_PERSON_ROLES:
        return _resolve_contact_person(identity, role, graph)
    return _resolve_driver(identity, graph, requirement)
