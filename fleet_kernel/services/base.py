"""
Shared write-side machinery.

GuardedService
    Constructor contract for every mutating service (session, write
    policy, clock) plus ``authorize``, the one place a mutation is gated
    by the write-policy table and the authorization guard.

compare_and_set / advance_status
    The optimistic-concurrency primitive.  A status change is a single
    UPDATE whose WHERE clause repeats what the caller observed (status and
    version); if another transaction got there first the UPDATE matches
    no row and ConflictError is raised.  The row is never locked and the
    kernel never retries.

Services flush; they never commit or roll back.  The caller's
``session_scope()`` owns the transaction.
"""

from __future__ import annotations

from abc import ABC
from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from fleet_kernel.domain.access import AccessTarget
from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.domain.scope import AccessScope
from fleet_kernel.domain.write_policy import WriteAction, WritePolicy, check_write
from fleet_kernel.exceptions import ConflictError, ForbiddenError
from fleet_kernel.logging_config import get_logger

logger = get_logger("services.base")


def compare_and_set(
    session: Session,
    model: Any,
    entity_id: UUID,
    *,
    expected: Mapping[str, Any],
    values: Mapping[str, Any],
    entity_type: str,
) -> None:
    """
    UPDATE ``model`` row ``entity_id`` with ``values`` only if every column
    in ``expected`` still holds the given value.

    Raises:
        ConflictError: The row did not match (changed or gone).
    """
    stmt = update(model).where(model.id == entity_id)
    for column, value in expected.items():
        stmt = stmt.where(getattr(model, column) == value)
    result = session.execute(
        stmt.values(**values).execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "transition_conflict",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "expected": {k: str(v) for k, v in expected.items()},
            },
        )
        raise ConflictError(entity_type, str(entity_id), str(expected.get("status", "")))


def advance_status(
    session: Session,
    obj: Any,
    new_status: str,
    *,
    entity_type: str,
    **values: Any,
) -> None:
    """
    Move ``obj`` to ``new_status`` if it still has the status and version
    this session observed, bump its version, and reload it.
    """
    compare_and_set(
        session,
        type(obj),
        obj.id,
        expected={"status": obj.status, "version": obj.version},
        values={"status": new_status, "version": obj.version + 1, **values},
        entity_type=entity_type,
    )
    session.refresh(obj)


class GuardedService(ABC):
    """
    Base class for services that mutate fleet records.

    Contract:
        Receives the caller's Session, the active WritePolicy and a Clock.
        Every public mutating method calls ``authorize`` before it writes.

    Non-goals:
        Does not commit, roll back, or retry.
    """

    def __init__(
        self,
        session: Session,
        policy: WritePolicy,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self._policy = policy
        self._clock = clock or SystemClock()

    def authorize(
        self,
        scope: AccessScope,
        action: WriteAction,
        target: AccessTarget | Iterable[AccessTarget],
        *,
        entity_type: str,
        entity_id: UUID | None = None,
    ) -> None:
        """Raise ForbiddenError unless the policy and the guard both allow."""
        decision = check_write(self._policy, scope, action, target)
        if decision.allowed:
            return
        logger.warning(
            "access_denied",
            extra={
                "actor_id": str(scope.actor_id),
                "role": scope.role.value,
                "action": action.value,
                "reason": decision.reason.value,
                "entity_type": entity_type,
                "entity_id": str(entity_id) if entity_id else None,
            },
        )
        raise ForbiddenError(
            str(scope.actor_id),
            decision.reason.value,
            action=action.value,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id else None,
        )
