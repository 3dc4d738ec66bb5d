"""
fleet_kernel.services.tenancy_service -- tenancy graph administration.

Responsibility:
    Create and maintain companies, clients, contact persons (with their
    company / client associations) and drivers.

Architecture position:
    Kernel > Services.  Writes the rows that TenancySelector reads for
    scope resolution; a change here is visible to the next
    ``resolve_scope`` call.

Invariants enforced:
    - A client belongs to exactly one active company.
    - An association naming both a client and a company names the
      client's own company.
    - One contact person / driver profile per user account.
    - Deletion is soft (``is_deleted``); rows are never removed.

Failure modes:
    - *NotFoundError for missing or soft-deleted rows.
    - TenancyIntegrityError for graph inconsistencies and duplicate profiles.
    - ForbiddenError from ``authorize``.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select

from fleet_kernel.domain.access import AccessTarget
from fleet_kernel.domain.dtos import (
    ClientRecord,
    CompanyRecord,
    ContactPersonRecord,
    DriverRecord,
)
from fleet_kernel.domain.scope import AccessScope
from fleet_kernel.domain.write_policy import WriteAction, check_write
from fleet_kernel.exceptions import (
    ClientNotFoundError,
    CompanyNotFoundError,
    ContactPersonNotFoundError,
    DriverNotFoundError,
    TenancyIntegrityError,
)
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.tenancy import (
    Client,
    Company,
    ContactPerson,
    ContactPersonClientCompany,
    Driver,
)
from fleet_kernel.services.base import GuardedService

logger = get_logger("services.tenancy")

_CLIENT_FIELDS = frozenset({
    "address", "postcode", "city", "country", "phone_number", "email", "remark",
})


class TenancyService(GuardedService):
    """Administrative writes on the tenancy graph."""

    # -- loading ---------------------------------------------------------------

    def _active_company(self, company_id: UUID) -> Company:
        company = self.session.get(Company, company_id)
        if company is None or company.is_deleted:
            raise CompanyNotFoundError(str(company_id))
        return company

    def _active_client(self, client_id: UUID) -> Client:
        client = self.session.get(Client, client_id)
        if client is None or client.is_deleted or client.company.is_deleted:
            raise ClientNotFoundError(str(client_id))
        return client

    def _active_driver(self, driver_id: UUID) -> Driver:
        driver = self.session.get(Driver, driver_id)
        if driver is None or driver.is_deleted:
            raise DriverNotFoundError(str(driver_id))
        return driver

    def _active_contact_person(self, contact_person_id: UUID) -> ContactPerson:
        person = self.session.get(ContactPerson, contact_person_id)
        if person is None or person.is_deleted:
            raise ContactPersonNotFoundError(str(contact_person_id))
        return person

    def _stamp(self) -> dict[str, Any]:
        now = self._clock.now()
        return {"created_at": now, "updated_at": now}

    # -- companies -------------------------------------------------------------

    def create_company(self, name: str, scope: AccessScope) -> CompanyRecord:
        self.authorize(scope, WriteAction.COMPANY_CREATE, AccessTarget(), entity_type="Company")
        if not name or not name.strip():
            raise TenancyIntegrityError("Company", "company name must not be blank")

        company = Company(name=name.strip(), is_deleted=False, **self._stamp())
        self.session.add(company)
        self.session.flush()
        logger.info("company_created", extra={"company_id": str(company.id), "company_name": company.name})
        return company.to_dto()

    def rename_company(self, company_id: UUID, name: str, scope: AccessScope) -> CompanyRecord:
        company = self._active_company(company_id)
        self.authorize(
            scope,
            WriteAction.COMPANY_RENAME,
            AccessTarget(company_id=company.id),
            entity_type="Company",
            entity_id=company.id,
        )
        if not name or not name.strip():
            raise TenancyIntegrityError("Company", "company name must not be blank")

        old_name = company.name
        company.name = name.strip()
        company.updated_at = self._clock.now()
        self.session.flush()
        logger.info(
            "company_renamed",
            extra={"company_id": str(company.id), "old_name": old_name, "company_name": company.name},
        )
        return company.to_dto()

    # -- clients ---------------------------------------------------------------

    def create_client(
        self, company_id: UUID, name: str, scope: AccessScope, **contact: Any
    ) -> ClientRecord:
        """Add a client to ``company_id``.  ``contact`` takes address fields."""
        unknown = set(contact) - _CLIENT_FIELDS
        if unknown:
            raise TypeError(f"Unknown client fields: {sorted(unknown)}")

        company = self._active_company(company_id)
        self.authorize(
            scope,
            WriteAction.CLIENT_CREATE,
            AccessTarget(company_id=company.id),
            entity_type="Client",
        )
        if not name or not name.strip():
            raise TenancyIntegrityError("Client", "client name must not be blank")

        client = Client(
            company_id=company.id,
            name=name.strip(),
            is_deleted=False,
            **contact,
            **self._stamp(),
        )
        self.session.add(client)
        self.session.flush()
        logger.info(
            "client_created",
            extra={"client_id": str(client.id), "company_id": str(company.id)},
        )
        return client.to_dto()

    def delete_client(self, client_id: UUID, scope: AccessScope) -> None:
        client = self._active_client(client_id)
        self.authorize(
            scope,
            WriteAction.CLIENT_DELETE,
            AccessTarget(company_id=client.company_id, client_id=client.id),
            entity_type="Client",
            entity_id=client.id,
        )
        client.is_deleted = True
        client.updated_at = self._clock.now()
        self.session.flush()
        logger.info("client_deleted", extra={"client_id": str(client.id)})

    # -- contact persons -------------------------------------------------------

    def _association_target(
        self, company_id: UUID | None, client_id: UUID | None
    ) -> AccessTarget:
        """Validate a company / client pair and return it as a guard target."""
        if company_id is None and client_id is None:
            raise TenancyIntegrityError(
                "ContactPersonClientCompany", "an association needs a company or a client",
            )
        if company_id is not None:
            self._active_company(company_id)
        if client_id is None:
            return AccessTarget(company_id=company_id)

        client = self._active_client(client_id)
        if company_id is not None and company_id != client.company_id:
            raise TenancyIntegrityError(
                "ContactPersonClientCompany",
                f"client {client.id} does not belong to company {company_id}",
            )
        # A client-only association is administered by the client's company.
        return AccessTarget(company_id=client.company_id, client_id=client.id)

    def _linked_target(self, assoc: ContactPersonClientCompany) -> AccessTarget:
        company_id = assoc.company_id
        if company_id is None and assoc.client_id is not None:
            client = self.session.get(Client, assoc.client_id)
            company_id = client.company_id if client is not None else None
        return AccessTarget(company_id=company_id, client_id=assoc.client_id)

    def create_contact_person(
        self,
        user_id: UUID,
        scope: AccessScope,
        company_id: UUID | None = None,
        client_id: UUID | None = None,
    ) -> ContactPersonRecord:
        """
        Create the contact-person profile for ``user_id``, optionally linked
        to a company and/or client in the same step.
        """
        linked = company_id is not None or client_id is not None
        target = self._association_target(company_id, client_id) if linked else AccessTarget()
        self.authorize(
            scope, WriteAction.CONTACT_PERSON_CREATE, target, entity_type="ContactPerson",
        )

        existing = self.session.scalar(
            select(ContactPerson.id).where(ContactPerson.user_id == user_id)
        )
        if existing is not None:
            raise TenancyIntegrityError(
                "ContactPerson", f"user {user_id} already has a contact person profile",
            )

        person = ContactPerson(user_id=user_id, is_deleted=False, **self._stamp())
        if linked:
            person.associations.append(
                ContactPersonClientCompany(
                    company_id=company_id, client_id=client_id, **self._stamp(),
                )
            )
        self.session.add(person)
        self.session.flush()
        logger.info(
            "contact_person_created",
            extra={"contact_person_id": str(person.id), "user_id": str(user_id)},
        )
        return person.to_dto()

    def link_contact_person(
        self,
        contact_person_id: UUID,
        scope: AccessScope,
        company_id: UUID | None = None,
        client_id: UUID | None = None,
    ) -> ContactPersonRecord:
        person = self._active_contact_person(contact_person_id)
        target = self._association_target(company_id, client_id)
        self.authorize(
            scope,
            WriteAction.CONTACT_PERSON_LINK,
            target,
            entity_type="ContactPerson",
            entity_id=person.id,
        )

        for assoc in person.associations:
            if assoc.company_id == company_id and assoc.client_id == client_id:
                raise TenancyIntegrityError(
                    "ContactPersonClientCompany",
                    f"contact person {person.id} is already linked to that company/client",
                )

        person.associations.append(
            ContactPersonClientCompany(company_id=company_id, client_id=client_id, **self._stamp())
        )
        person.updated_at = self._clock.now()
        self.session.flush()
        logger.info(
            "contact_person_linked",
            extra={
                "contact_person_id": str(person.id),
                "company_id": str(company_id) if company_id else None,
                "client_id": str(client_id) if client_id else None,
            },
        )
        return person.to_dto()

    def delete_contact_person(self, contact_person_id: UUID, scope: AccessScope) -> None:
        """Soft-delete; allowed when any of the person's associations is in scope."""
        person = self._active_contact_person(contact_person_id)
        targets = [self._linked_target(a) for a in person.associations] or [AccessTarget()]
        target = next(
            (
                t for t in targets
                if check_write(self._policy, scope, WriteAction.CONTACT_PERSON_DELETE, t)
            ),
            targets[0],
        )
        self.authorize(
            scope,
            WriteAction.CONTACT_PERSON_DELETE,
            target,
            entity_type="ContactPerson",
            entity_id=person.id,
        )
        person.is_deleted = True
        person.updated_at = self._clock.now()
        self.session.flush()
        logger.info("contact_person_deleted", extra={"contact_person_id": str(person.id)})

    # -- drivers ---------------------------------------------------------------

    def create_driver(
        self,
        user_id: UUID,
        scope: AccessScope,
        company_id: UUID | None = None,
    ) -> DriverRecord:
        if company_id is not None:
            self._active_company(company_id)
        self.authorize(
            scope,
            WriteAction.DRIVER_CREATE,
            AccessTarget(company_id=company_id),
            entity_type="Driver",
        )

        existing = self.session.scalar(select(Driver.id).where(Driver.user_id == user_id))
        if existing is not None:
            raise TenancyIntegrityError("Driver", f"user {user_id} already has a driver profile")

        driver = Driver(user_id=user_id, company_id=company_id, is_deleted=False, **self._stamp())
        self.session.add(driver)
        self.session.flush()
        logger.info(
            "driver_created",
            extra={
                "driver_id": str(driver.id),
                "user_id": str(user_id),
                "company_id": str(company_id) if company_id else None,
            },
        )
        return driver.to_dto()

    def assign_driver(
        self, driver_id: UUID, company_id: UUID, scope: AccessScope
    ) -> DriverRecord:
        """Move a driver to ``company_id``.  Needs scope over both companies."""
        driver = self._active_driver(driver_id)
        company = self._active_company(company_id)
        if driver.company_id is not None and driver.company_id != company.id:
            self.authorize(
                scope,
                WriteAction.DRIVER_ASSIGN,
                AccessTarget(company_id=driver.company_id),
                entity_type="Driver",
                entity_id=driver.id,
            )
        self.authorize(
            scope,
            WriteAction.DRIVER_ASSIGN,
            AccessTarget(company_id=company.id),
            entity_type="Driver",
            entity_id=driver.id,
        )

        previous = driver.company_id
        driver.company_id = company.id
        driver.updated_at = self._clock.now()
        self.session.flush()
        logger.info(
            "driver_assigned",
            extra={
                "driver_id": str(driver.id),
                "from_company_id": str(previous) if previous else None,
                "company_id": str(company.id),
            },
        )
        return driver.to_dto()

    def delete_driver(self, driver_id: UUID, scope: AccessScope) -> None:
        driver = self._active_driver(driver_id)
        self.authorize(
            scope,
            WriteAction.DRIVER_DELETE,
            AccessTarget(company_id=driver.company_id),
            entity_type="Driver",
            entity_id=driver.id,
        )
        driver.is_deleted = True
        driver.updated_at = self._clock.now()
        self.session.flush()
        logger.info("driver_deleted", extra={"driver_id": str(driver.id)})
