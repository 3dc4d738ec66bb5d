"""
Module: fleet_kernel.selectors.tenancy_selector
Responsibility: Read access to the tenancy graph.  Implements the
    ``TenancyGraph`` protocol consumed by scope resolution, and the scoped
    company / client / driver listings.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Soft-deleted companies, clients, contact persons and drivers are
      invisible here, including through a contact person's associations.
    - Listings are filtered with ``scope_clause``; single-entity reads are
      checked with ``check_access_any`` and raise ForbiddenError.  A
      company is also reachable through any of its clients in scope, in
      both forms.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import or_, select

from fleet_kernel.domain.access import AccessTarget, check_access_any
from fleet_kernel.domain.dtos import ClientRecord, CompanyRecord, DriverRecord
from fleet_kernel.domain.scope import (
    AccessScope,
    ContactPersonProfile,
    DriverProfile,
    ScopeAssociation,
)
from fleet_kernel.exceptions import (
    ClientNotFoundError,
    CompanyNotFoundError,
    DriverNotFoundError,
    ForbiddenError,
)
from fleet_kernel.models.tenancy import (
    Client,
    Company,
    ContactPerson,
    ContactPersonClientCompany,
    Driver,
)
from fleet_kernel.selectors.base import (
    DEFAULT_PAGE_SIZE,
    BaseSelector,
    Page,
    active_only,
    is_active,
    paginate,
    scope_clause,
)


def _require(
    scope: AccessScope, targets: Iterable[AccessTarget], entity_type: str, entity_id: UUID
) -> None:
    decision = check_access_any(scope, targets)
    if not decision.allowed:
        raise ForbiddenError(
            str(scope.actor_id),
            decision.reason.value,
            action="read",
            entity_type=entity_type,
            entity_id=str(entity_id),
        )


class TenancySelector(BaseSelector):
    """Tenancy graph reader. Every query goes through ``active_only``."""

    # -- TenancyGraph protocol ---------------------------------------------

    def find_contact_person(self, user_id: UUID) -> ContactPersonProfile | None:
        person = self.session.scalars(
            active_only(
                select(ContactPerson).where(ContactPerson.user_id == user_id),
                ContactPerson,
            )
        ).one_or_none()
        if person is None:
            return None

        rows = self.session.execute(
            select(ContactPersonClientCompany.company_id, ContactPersonClientCompany.client_id)
            .outerjoin(Company, ContactPersonClientCompany.company_id == Company.id)
            .outerjoin(Client, ContactPersonClientCompany.client_id == Client.id)
            .where(ContactPersonClientCompany.contact_person_id == person.id)
            .where(or_(ContactPersonClientCompany.company_id.is_(None), is_active(Company)))
            .where(or_(ContactPersonClientCompany.client_id.is_(None), is_active(Client)))
        ).all()
        return ContactPersonProfile(
            id=person.id,
            user_id=person.user_id,
            associations=tuple(
                ScopeAssociation(company_id=company_id, client_id=client_id)
                for company_id, client_id in rows
            ),
        )

    def find_driver(self, user_id: UUID) -> DriverProfile | None:
        driver = self.session.scalars(
            active_only(select(Driver).where(Driver.user_id == user_id), Driver)
        ).one_or_none()
        if driver is None:
            return None
        profile = driver.to_profile()
        if profile.company_id is not None and not self._company_is_active(profile.company_id):
            return DriverProfile(id=profile.id, user_id=profile.user_id, company_id=None)
        return profile

    def _company_is_active(self, company_id: UUID) -> bool:
        return self.session.scalar(
            active_only(select(Company.id).where(Company.id == company_id), Company)
        ) is not None

    # -- single-entity reads -----------------------------------------------

    def get_company(self, company_id: UUID, scope: AccessScope) -> CompanyRecord:
        company = self.session.scalars(
            active_only(select(Company).where(Company.id == company_id), Company)
        ).one_or_none()
        if company is None:
            raise CompanyNotFoundError(str(company_id))
        targets = [AccessTarget(company_id=company.id)] + [
            AccessTarget(client_id=client_id) for client_id in self._scoped_clients_of(company.id, scope)
        ]
        _require(scope, targets, "Company", company_id)
        return company.to_dto()

    def _scoped_clients_of(self, company_id: UUID, scope: AccessScope) -> list[UUID]:
        """Active clients of ``company_id`` that ``scope`` reaches by client."""
        if not scope.client_ids:
            return []
        return list(
            self.session.scalars(
                active_only(
                    select(Client.id).where(
                        Client.company_id == company_id,
                        Client.id.in_(list(scope.client_ids)),
                    ),
                    Client,
                )
            )
        )

    def get_client(self, client_id: UUID, scope: AccessScope) -> ClientRecord:
        client = self.session.scalars(
            active_only(select(Client).where(Client.id == client_id), Client)
        ).one_or_none()
        if client is None:
            raise ClientNotFoundError(str(client_id))
        _require(
            scope,
            [AccessTarget(company_id=client.company_id, client_id=client.id)],
            "Client",
            client_id,
        )
        return client.to_dto()

    def get_driver(self, driver_id: UUID, scope: AccessScope) -> DriverRecord:
        driver = self.session.scalars(
            active_only(select(Driver).where(Driver.id == driver_id), Driver)
        ).one_or_none()
        if driver is None:
            raise DriverNotFoundError(str(driver_id))
        _require(
            scope,
            [AccessTarget(company_id=driver.company_id, driver_id=driver.id)],
            "Driver",
            driver_id,
        )
        return driver.to_dto()

    # -- listings ------------------------------------------------------------

    def list_companies(
        self,
        scope: AccessScope,
        page_number: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[CompanyRecord]:
        """Companies in scope, plus the owners of any client in scope."""
        visible = scope_clause(scope, company=Company.id)
        if scope.client_ids and not scope.unrestricted:
            owners = active_only(
                select(Client.company_id).where(Client.id.in_(list(scope.client_ids))),
                Client,
            )
            visible = or_(visible, Company.id.in_(owners))
        stmt = active_only(select(Company).where(visible), Company).order_by(
            Company.name, Company.id
        )
        return paginate(self.session, stmt, Company.to_dto, page_number, page_size)

    def list_clients(
        self,
        scope: AccessScope,
        company_id: UUID | None = None,
        page_number: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[ClientRecord]:
        stmt = (
            active_only(select(Client).join(Company, Client.company_id == Company.id), Client, Company)
            .where(scope_clause(scope, company=Client.company_id, client=Client.id))
        )
        if company_id is not None:
            stmt = stmt.where(Client.company_id == company_id)
        stmt = stmt.order_by(Client.name, Client.id)
        return paginate(self.session, stmt, Client.to_dto, page_number, page_size)

    def list_drivers(
        self,
        scope: AccessScope,
        company_id: UUID | None = None,
        page_number: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[DriverRecord]:
        stmt = active_only(select(Driver), Driver).where(
            scope_clause(scope, company=Driver.company_id, driver=Driver.id)
        )
        if company_id is not None:
            stmt = stmt.where(Driver.company_id == company_id)
        stmt = stmt.order_by(Driver.created_at, Driver.id)
        return paginate(self.session, stmt, Driver.to_dto, page_number, page_size)
