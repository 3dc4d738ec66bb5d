"""
TenancySelector: profile lookup for scope resolution and scoped listings.

Soft-deleted rows must disappear from every read, including when they
are only reachable through a contact person's associations.
"""

from uuid import uuid4

import pytest

from fleet_kernel.exceptions import (
    ClientNotFoundError,
    CompanyNotFoundError,
    ForbiddenError,
)
from fleet_kernel.selectors.tenancy_selector import TenancySelector


@pytest.fixture
def selector(session) -> TenancySelector:
    return TenancySelector(session)


class TestProfileLookup:
    def test_unknown_user(self, selector):
        assert selector.find_contact_person(uuid4()) is None
        assert selector.find_driver(uuid4()) is None

    def test_associations_to_deleted_companies_are_skipped(self, selector, factory, fleet, session):
        person = factory.contact_person(company=fleet.other_company)
        colleague = factory.contact_person(company=fleet.company)
        fleet.other_company.is_deleted = True
        session.flush()

        profile = selector.find_contact_person(person.user_id)

        assert profile is not None
        assert profile.associations == ()
        assert len(selector.find_contact_person(colleague.user_id).associations) == 1

    def test_deleted_contact_person_is_invisible(self, selector, factory, fleet, session):
        person = factory.contact_person(company=fleet.company)
        person.is_deleted = True
        session.flush()

        assert selector.find_contact_person(person.user_id) is None

    def test_driver_of_deleted_company_is_company_less(self, selector, fleet, session):
        fleet.company.is_deleted = True
        session.flush()

        profile = selector.find_driver(fleet.driver.user_id)

        assert profile.id == fleet.driver.id
        assert profile.company_id is None


class TestCompanies:
    def test_list_by_scope(self, selector, fleet):
        all_names = [c.name for c in selector.list_companies(fleet.scope("admin")).items]
        own = selector.list_companies(fleet.scope("customer_admin"))
        via_client = selector.list_companies(fleet.scope("client_contact"))

        assert all_names == ["Other Haulage", "Transport BV"]
        assert [c.id for c in own.items] == [fleet.company.id]
        assert [c.id for c in via_client.items] == [fleet.company.id]

    def test_deleted_company_is_hidden(self, selector, fleet, session):
        fleet.other_company.is_deleted = True
        session.flush()

        assert selector.list_companies(fleet.scope("admin")).total_count == 1
        with pytest.raises(CompanyNotFoundError):
            selector.get_company(fleet.other_company.id, fleet.scope("admin"))

    def test_get_company_out_of_scope(self, selector, fleet):
        with pytest.raises(ForbiddenError):
            selector.get_company(fleet.other_company.id, fleet.scope("customer_admin"))

    def test_client_contact_reads_the_company_it_lists(self, selector, fleet):
        contact = fleet.scope("client_contact")

        listed = [c.id for c in selector.list_companies(contact).items]

        assert selector.get_company(fleet.company.id, contact).id in listed
        with pytest.raises(ForbiddenError):
            selector.get_company(fleet.other_company.id, contact)

    def test_deleted_client_no_longer_reaches_its_company(self, selector, fleet, session):
        contact = fleet.scope("client_contact")
        fleet.client.is_deleted = True
        session.flush()

        assert selector.list_companies(contact).total_count == 0
        with pytest.raises(ForbiddenError):
            selector.get_company(fleet.company.id, contact)


class TestClients:
    def test_list_by_scope(self, selector, factory, fleet):
        factory.client(fleet.company, "Beta Freight")

        own = selector.list_clients(fleet.scope("employer"))
        contact = selector.list_clients(fleet.scope("client_contact"))

        assert [c.name for c in own.items] == ["Acme Logistics", "Beta Freight"]
        assert [c.id for c in contact.items] == [fleet.client.id]

    def test_clients_of_deleted_company_are_hidden(self, selector, fleet, session):
        fleet.company.is_deleted = True
        session.flush()

        listed = selector.list_clients(fleet.scope("admin"))

        assert [c.id for c in listed.items] == [fleet.other_client.id]

    def test_deleted_client(self, selector, fleet, session):
        fleet.client.is_deleted = True
        session.flush()

        with pytest.raises(ClientNotFoundError):
            selector.get_client(fleet.client.id, fleet.scope("admin"))

    def test_company_filter(self, selector, fleet):
        listed = selector.list_clients(fleet.scope("admin"), company_id=fleet.other_company.id)

        assert [c.id for c in listed.items] == [fleet.other_client.id]


class TestDrivers:
    def test_list_by_scope(self, selector, fleet):
        assert selector.list_drivers(fleet.scope("admin")).total_count == 2
        own = selector.list_drivers(fleet.scope("customer_admin"))
        assert [d.id for d in own.items] == [fleet.driver.id]

    def test_driver_reads_own_profile(self, selector, fleet):
        record = selector.get_driver(fleet.driver.id, fleet.scope("driver"))

        assert record.user_id == fleet.driver.user_id

    def test_get_driver_out_of_scope(self, selector, fleet):
        with pytest.raises(ForbiddenError):
            selector.get_driver(fleet.other_driver.id, fleet.scope("driver"))
