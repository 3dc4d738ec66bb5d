"""
Module: fleet_kernel.selectors.base
Responsibility: Shared read-side plumbing: the BaseSelector contract, the
    single soft-delete predicate, the SQL form of the authorization guard,
    and pagination.
Architecture position: Kernel > Selectors.  May import db/, models/ and
    domain/.  MUST NOT import services/.

Invariants enforced:
    - Read-only: selectors never add, flush, delete or commit.
    - Soft-deleted tenancy rows are hidden by ``active_only`` and nowhere
      else re-implemented.
    - ``scope_clause`` admits exactly the rows ``domain.access.check_access``
      would allow: the union of the owned-driver, company and client rules.
"""

from __future__ import annotations

import math
from abc import ABC
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, false, func, or_, select, true
from sqlalchemy.orm import Session

from fleet_kernel.domain.scope import AccessScope

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 200


class BaseSelector(ABC):
    """
    Base class for read-side query objects.

    Contract:
        Receives the caller's Session; returns DTOs, never ORM instances.
    """

    def __init__(self, session: Session):
        self.session = session


def is_active(model: Any) -> ColumnElement[bool]:
    """The soft-delete predicate for one tenancy model."""
    return model.is_deleted.is_(False)


def active_only(stmt: Select, *models: Any) -> Select:
    """Restrict ``stmt`` to rows of ``models`` that are not soft-deleted."""
    for model in models:
        stmt = stmt.where(is_active(model))
    return stmt


def scope_clause(
    scope: AccessScope,
    *,
    company: ColumnElement | None = None,
    client: ColumnElement | None = None,
    driver: ColumnElement | None = None,
) -> ColumnElement[bool]:
    """
    WHERE-clause form of the guard for list queries.

    ``company`` / ``client`` / ``driver`` are the columns holding the row's
    tenancy attributes; omit any the entity does not have.
    """
    if scope.unrestricted:
        return true()

    conditions: list[ColumnElement[bool]] = []
    if driver is not None and scope.owned_driver_id is not None:
        conditions.append(driver == scope.owned_driver_id)
    if company is not None and scope.company_ids:
        conditions.append(company.in_(list(scope.company_ids)))
    if client is not None and scope.client_ids:
        conditions.append(client.in_(list(scope.client_ids)))

    if not conditions:
        return false()
    return or_(*conditions)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    page_number: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages


def paginate(
    session: Session,
    stmt: Select,
    to_dto: Callable[[Any], T],
    page_number: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Page[T]:
    """
    Run ``stmt`` for one page.  ``page_number`` is 1-based; ``page_size``
    is clamped to 1..MAX_PAGE_SIZE.
    """
    if page_number < 1:
        raise ValueError(f"page_number must be >= 1, got {page_number}")
    page_size = max(1, min(page_size, MAX_PAGE_SIZE))

    total = session.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ) or 0
    rows: Sequence[Any] = session.scalars(
        stmt.limit(page_size).offset((page_number - 1) * page_size)
    ).all()
    return Page(
        items=tuple(to_dto(row) for row in rows),
        page_number=page_number,
        page_size=page_size,
        total_count=total,
    )
