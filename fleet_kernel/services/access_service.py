"""
fleet_kernel.services.access_service -- scope resolution against the database.

Responsibility:
    Resolve an IdentityContext into an AccessScope by reading the live
    tenancy graph, and evaluate a single access check for an identity.

Architecture position:
    Kernel > Services.  Read-only; does not need a WritePolicy.

Invariants enforced:
    - Scope is re-resolved on every call.  Nothing is cached on the
      instance, so a contact person unlinked between two requests loses
      access on the second.

Failure modes:
    - UnauthorizedError: no identity / no recognised role.
    - ProfileNotFoundError: role implies a missing profile.  ``evaluate``
      turns it into a NO_PROFILE denial instead of raising.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from fleet_kernel.domain.access import AccessDecision, AccessTarget, DenyReason, check_access
from fleet_kernel.domain.identity import IdentityContext
from fleet_kernel.domain.scope import AccessScope, ScopeRequirement, resolve_scope
from fleet_kernel.exceptions import ProfileNotFoundError
from fleet_kernel.logging_config import get_logger
from fleet_kernel.selectors.tenancy_selector import TenancySelector

logger = get_logger("services.access")


class AccessService:
    """Resolve scopes and evaluate access for authenticated identities."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def resolve_scope(
        self,
        identity: IdentityContext | None,
        requirement: ScopeRequirement = ScopeRequirement.COMPANY,
    ) -> AccessScope:
        try:
            scope = resolve_scope(identity, TenancySelector(self.session), requirement)
        except ProfileNotFoundError as exc:
            logger.warning(
                "profile_not_found",
                extra={"role": exc.role, "detail": exc.detail, "requirement": requirement.value},
            )
            raise

        logger.info(
            "scope_resolved",
            extra={
                "actor_id": str(scope.actor_id),
                "role": scope.role.value,
                "unrestricted": scope.unrestricted,
                "company_count": len(scope.company_ids),
                "client_count": len(scope.client_ids),
                "owned_driver_id": str(scope.owned_driver_id) if scope.owned_driver_id else None,
            },
        )
        return scope

    def evaluate(
        self,
        identity: IdentityContext | None,
        target: AccessTarget,
        requirement: ScopeRequirement = ScopeRequirement.COMPANY,
    ) -> AccessDecision:
        """
        Resolve and check in one step.  A missing profile is a NO_PROFILE
        denial; an unauthenticated identity still raises UnauthorizedError.
        """
        try:
            scope = self.resolve_scope(identity, requirement)
        except ProfileNotFoundError:
            return AccessDecision.deny(DenyReason.NO_PROFILE)

        decision = check_access(scope, target)
        if not decision.allowed:
            logger.info(
                "access_denied",
                extra={
                    "actor_id": str(scope.actor_id),
                    "reason": decision.reason.value,
                    "company_id": str(target.company_id) if target.company_id else None,
                    "client_id": str(target.client_id) if target.client_id else None,
                    "driver_id": str(target.driver_id) if target.driver_id else None,
                },
            )
        return decision
