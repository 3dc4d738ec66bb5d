"""
Authorization guard (``fleet_kernel.domain.access``).

``check_access`` decides whether an ``AccessScope`` covers a target,
described only by its tenancy attributes.  Rules are evaluated in order
and the first match allows:

    unrestricted                          -> allow ("unrestricted")
    target.driver_id == owned_driver_id   -> allow ("owned_driver")
    target.company_id in company_ids      -> allow ("company")
    target.client_id in client_ids        -> allow ("client")
    otherwise                             -> deny OUT_OF_SCOPE

A missing scope (``None``) denies with NO_PROFILE so callers can tell an
onboarding gap from an ordinary boundary.  The SQL rendition of the same
rules for list queries is ``selectors.base.scope_clause``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from fleet_kernel.domain.scope import AccessScope


class DenyReason(str, Enum):
    NO_PROFILE = "no_profile"
    OUT_OF_SCOPE = "out_of_scope"
    ROLE_NOT_PERMITTED = "role_not_permitted"
    AUTHOR_MISMATCH = "author_mismatch"


@dataclass(frozen=True)
class AccessTarget:
    """Tenancy attributes of the entity being read or written."""

    company_id: UUID | None = None
    client_id: UUID | None = None
    driver_id: UUID | None = None


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: DenyReason | None = None
    matched_rule: str | None = None

    @classmethod
    def allow(cls, rule: str) -> AccessDecision:
        return cls(allowed=True, matched_rule=rule)

    @classmethod
    def deny(cls, reason: DenyReason) -> AccessDecision:
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed


def check_access(scope: AccessScope | None, target: AccessTarget) -> AccessDecision:
    if scope is None:
        return AccessDecision.deny(DenyReason.NO_PROFILE)
    if scope.unrestricted:
        return AccessDecision.allow("unrestricted")
    if target.driver_id is not None and target.driver_id == scope.owned_driver_id:
        return AccessDecision.allow("owned_driver")
    if target.company_id is not None and target.company_id in scope.company_ids:
        return AccessDecision.allow("company")
    if target.client_id is not None and target.client_id in scope.client_ids:
        return AccessDecision.allow("client")
    return AccessDecision.deny(DenyReason.OUT_OF_SCOPE)


def check_access_any(
    scope: AccessScope | None, targets: Iterable[AccessTarget]
) -> AccessDecision:
    """
    Allow if any of ``targets`` is allowed.

    For entities spanning several tenancy tuples: a week is reachable
    through its own driver and through the company or client of each of
    its rides.  An empty ``targets`` is allowed only to an unrestricted
    scope.
    """
    if scope is None:
        return AccessDecision.deny(DenyReason.NO_PROFILE)
    if scope.unrestricted:
        return AccessDecision.allow("unrestricted")
    for target in targets:
        decision = check_access(scope, target)
        if decision.allowed:
            return decision
    return AccessDecision.deny(DenyReason.OUT_OF_SCOPE)
