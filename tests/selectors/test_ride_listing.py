"""
RideSelector: scoped reads of rides, disputes and weeks.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from fleet_kernel.domain.identity import Role
from fleet_kernel.domain.ride_lifecycle import DisputeStatus, PartRideStatus, RideAction
from fleet_kernel.domain.scope import AccessScope
from fleet_kernel.exceptions import ForbiddenError, RideNotFoundError
from fleet_kernel.selectors.base import MAX_PAGE_SIZE
from fleet_kernel.selectors.ride_selector import RideSelector, parse_status_filter


@pytest.fixture
def selector(session) -> RideSelector:
    return RideSelector(session)


@pytest.fixture
def other_ride(submit_ride, fleet):
    """A ride in the other company, at the other client."""
    return submit_ride(
        scope_name="other_driver",
        driver_id=fleet.other_driver.id,
        client_id=fleet.other_client.id,
    )


class TestParseStatusFilter:
    def test_none_means_no_filter(self):
        assert parse_status_filter(None) == frozenset()

    def test_mixed_forms(self):
        parsed = parse_status_filter(["pending_admin, dispute", "accepted", ""])

        assert parsed == {
            PartRideStatus.PENDING_ADMIN,
            PartRideStatus.DISPUTE,
            PartRideStatus.ACCEPTED,
        }

    def test_single_string(self):
        assert parse_status_filter("rejected") == {PartRideStatus.REJECTED}

    def test_unknown_status(self):
        with pytest.raises(ValueError, match="archived"):
            parse_status_filter("accepted,archived")


class TestListRides:
    def test_scope_limits_listing(self, selector, submit_ride, other_ride, fleet):
        own = submit_ride()

        assert selector.list_rides(fleet.scope("admin")).total_count == 2
        assert [r.id for r in selector.list_rides(fleet.scope("customer_admin")).items] == [own.id]
        assert [r.id for r in selector.list_rides(fleet.scope("client_contact")).items] == [own.id]
        assert [r.id for r in selector.list_rides(fleet.scope("other_admin")).items] == [other_ride.id]

    def test_empty_scope_sees_nothing(self, selector, submit_ride):
        submit_ride()
        scope = AccessScope(actor_id=uuid4(), role=Role.CUSTOMER)

        assert selector.list_rides(scope).total_count == 0

    def test_status_and_date_filters(self, selector, rides, submit_ride, fleet):
        first = submit_ride()
        submit_ride(ride_date=date(2024, 3, 8))
        rides.transition(first.id, RideAction.APPROVE, fleet.scope("admin"))
        admin = fleet.scope("admin")

        accepted = selector.list_rides(admin, statuses="accepted")
        later = selector.list_rides(admin, date_from=date(2024, 3, 5))

        assert [r.id for r in accepted.items] == [first.id]
        assert later.total_count == 1
        assert later.items[0].ride_date == date(2024, 3, 8)

    def test_pagination(self, selector, submit_ride, fleet):
        for day in (4, 5, 6):
            submit_ride(ride_date=date(2024, 3, day))
        admin = fleet.scope("admin")

        first = selector.list_rides(admin, page_size=2)
        second = selector.list_rides(admin, page_number=2, page_size=2)

        assert first.total_pages == 2
        assert first.has_next is True
        # newest first
        assert first.items[0].ride_date == date(2024, 3, 6)
        assert len(second.items) == 1
        assert second.has_next is False

    def test_page_bounds(self, selector, fleet):
        with pytest.raises(ValueError):
            selector.list_rides(fleet.scope("admin"), page_number=0)

        page = selector.list_rides(fleet.scope("admin"), page_size=10_000)
        assert page.page_size == MAX_PAGE_SIZE
        assert page.total_pages == 0


class TestSingleReads:
    def test_get_ride_in_scope(self, selector, submit_ride, fleet):
        ride = submit_ride()

        assert selector.get_ride(ride.id, fleet.scope("accountant")).decimal_hours == Decimal("8.00")

    def test_get_ride_out_of_scope(self, selector, submit_ride, fleet):
        ride = submit_ride()

        with pytest.raises(ForbiddenError) as exc_info:
            selector.get_ride(ride.id, fleet.scope("other_admin"))

        assert exc_info.value.action == "read"

    def test_get_missing_ride(self, selector, fleet):
        with pytest.raises(RideNotFoundError):
            selector.get_ride(uuid4(), fleet.scope("admin"))

    def test_dispute_detail_orders_comments(self, selector, rides, submit_ride, fleet, deterministic_clock):
        ride = submit_ride()
        driver = fleet.scope("driver")
        employer = fleet.scope("employer")
        dispute = rides.open_dispute(ride.id, driver)
        rides.add_comment(dispute.id, driver.actor_id, "I drove nine hours", driver)
        deterministic_clock.advance(60)
        rides.add_comment(dispute.id, employer.actor_id, "Timesheet says eight", employer)

        detail = selector.get_dispute(dispute.id, fleet.scope("client_contact"))

        assert detail.ride.status is PartRideStatus.DISPUTE
        assert [c.sequence for c in detail.comments] == [1, 2]
        assert detail.comments[1].body == "Timesheet says eight"

    def test_dispute_detail_reports_resulting_hours(self, selector, rides, submit_ride, fleet):
        ride = submit_ride()
        dispute = rides.open_dispute(ride.id, fleet.scope("driver"))
        rides.resolve_dispute(dispute.id, "1.25", PartRideStatus.ACCEPTED, fleet.scope("employer"))

        detail = selector.get_dispute(dispute.id, fleet.scope("driver"))

        assert detail.dispute.correction_hours == Decimal("1.25")
        assert detail.resulting_hours == Decimal("9.25")

    def test_list_disputes_by_status(self, selector, rides, submit_ride, fleet):
        first = submit_ride()
        second = submit_ride()
        closed = rides.open_dispute(first.id, fleet.scope("driver"))
        still_open = rides.open_dispute(second.id, fleet.scope("driver"))
        rides.resolve_dispute(closed.id, Decimal("0"), PartRideStatus.REJECTED, fleet.scope("admin"))

        page = selector.list_disputes(fleet.scope("employer"), status=DisputeStatus.OPEN)

        assert [d.id for d in page.items] == [still_open.id]


class TestWeeks:
    def test_client_contact_sees_week_with_their_ride(self, selector, submit_ride, other_ride, fleet):
        ride = submit_ride()
        contact = fleet.scope("client_contact")

        week = selector.get_week(ride.week_approval_id, contact)
        listed = selector.list_weeks(contact)

        assert week.driver_id == fleet.driver.id
        assert [w.id for w in listed.items] == [ride.week_approval_id]
        with pytest.raises(ForbiddenError):
            selector.get_week(other_ride.week_approval_id, contact)

    def test_company_scope_sees_its_drivers_weeks(self, selector, submit_ride, other_ride, fleet):
        ride = submit_ride()

        listed = selector.list_weeks(fleet.scope("accountant"), year=2024)

        assert [w.id for w in listed.items] == [ride.week_approval_id]
        assert listed.items[0].week_nr == 10
        assert listed.items[0].period_nr == 3

    def test_status_filter(self, selector, submit_ride, fleet):
        submit_ride()

        assert selector.list_weeks(fleet.scope("admin"), status="pending_admin").total_count == 1
        assert selector.list_weeks(fleet.scope("admin"), status="signed").total_count == 0
