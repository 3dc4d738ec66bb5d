"""
Compare-and-set under concurrent writers.

Each writer uses its own session.  Rows are loaded before the competing
write commits, so the loser acts on a stale in-memory copy and its
conditional UPDATE matches no row.

Threads serialize their write phase with a lock: SQLite allows a single
writer, and the point here is the stale read, not lock contention.
"""

import threading
from decimal import Decimal

import pytest
from sqlalchemy import select

from fleet_kernel.db.engine import session_scope
from fleet_kernel.domain.clock import DeterministicClock
from fleet_kernel.domain.ride_lifecycle import PartRideStatus, RideAction
from fleet_kernel.exceptions import (
    ConflictError,
    DisputeAlreadyOpenError,
    DisputeClosedError,
)
from fleet_kernel.models.dispute import PartRideDispute
from fleet_kernel.models.part_ride import PartRide
from fleet_kernel.models.tenancy import Company
from fleet_kernel.selectors.ride_selector import RideSelector
from fleet_kernel.services.ride_service import RideLifecycleService


@pytest.fixture
def committed_ride(submit_ride, session):
    """A pending ride committed so other sessions can see it."""
    ride = submit_ride()
    session.commit()
    return ride


@pytest.fixture
def committed_dispute(rides, committed_ride, fleet, session):
    dispute = rides.open_dispute(committed_ride.id, fleet.scope("driver"))
    session.commit()
    return dispute


def _service(sess, policy) -> RideLifecycleService:
    return RideLifecycleService(sess, policy, DeterministicClock())


class TestSessionScope:
    def test_commits_on_exit_and_rolls_back_on_error(self, session_factory, deterministic_clock):
        stamp = {"created_at": deterministic_clock.now(), "updated_at": deterministic_clock.now()}
        with session_scope() as sess:
            sess.add(Company(name="Kept", is_deleted=False, **stamp))

        with pytest.raises(ConflictError):
            with session_scope() as sess:
                sess.add(Company(name="Dropped", is_deleted=False, **stamp))
                sess.flush()
                raise ConflictError("Company", "dropped", "absent")

        with session_factory() as check:
            assert check.scalars(select(Company.name)).all() == ["Kept"]


class TestInterleavedSessions:
    def test_stale_approval_is_rejected(self, session_factory, write_policy, fleet, committed_ride):
        employer = fleet.scope("employer")
        with session_factory() as first, session_factory() as second:
            held = second.get(PartRide, committed_ride.id)  # noqa: F841 - keep the stale row in the identity map

            _service(first, write_policy).transition(committed_ride.id, RideAction.APPROVE, employer)
            first.commit()

            with pytest.raises(ConflictError) as exc_info:
                _service(second, write_policy).transition(committed_ride.id, RideAction.REJECT, employer)
            second.rollback()

        assert exc_info.value.entity_type == "PartRide"
        with session_factory() as check:
            row = check.get(PartRide, committed_ride.id)
            assert row.status == PartRideStatus.ACCEPTED.value
            assert row.version == 1

    def test_second_dispute_on_same_ride(self, session_factory, write_policy, fleet, committed_ride):
        driver = fleet.scope("driver")
        with session_factory() as first, session_factory() as second:
            second.get(PartRide, committed_ride.id)

            opened = _service(first, write_policy).open_dispute(committed_ride.id, driver)
            first.commit()

            with pytest.raises(DisputeAlreadyOpenError) as exc_info:
                _service(second, write_policy).open_dispute(committed_ride.id, fleet.scope("employer"))
            second.rollback()

        assert exc_info.value.dispute_id == str(opened.id)

    def test_comment_on_dispute_closed_meanwhile(
        self, session_factory, write_policy, fleet, committed_dispute
    ):
        driver = fleet.scope("driver")
        with session_factory() as first, session_factory() as second:
            second.get(PartRideDispute, committed_dispute.id)

            _service(first, write_policy).resolve_dispute(
                committed_dispute.id, Decimal("1"), PartRideStatus.ACCEPTED, fleet.scope("admin"),
            )
            first.commit()

            with pytest.raises(DisputeClosedError):
                _service(second, write_policy).add_comment(
                    committed_dispute.id, driver.actor_id, "one more thing", driver,
                )
            second.rollback()

        with session_factory() as check:
            assert check.get(PartRideDispute, committed_dispute.id).comment_count == 0


@pytest.mark.slow_locks
class TestThreadedReview:
    def test_exactly_one_reviewer_wins(self, session_factory, write_policy, fleet, committed_ride):
        employer = fleet.scope("employer")
        barrier = threading.Barrier(2)
        write_lock = threading.Lock()
        outcomes: list[tuple[str, RideAction]] = []

        def review(action: RideAction) -> None:
            with session_factory() as sess:
                RideSelector(sess).get_ride(committed_ride.id, employer)
                barrier.wait(timeout=10)
                with write_lock:
                    try:
                        _service(sess, write_policy).transition(committed_ride.id, action, employer)
                        sess.commit()
                        outcomes.append(("won", action))
                    except ConflictError:
                        sess.rollback()
                        outcomes.append(("conflict", action))

        threads = [
            threading.Thread(target=review, args=(action,))
            for action in (RideAction.APPROVE, RideAction.REJECT)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(kind for kind, _ in outcomes) == ["conflict", "won"]
        winner = next(action for kind, action in outcomes if kind == "won")
        expected = PartRideStatus.ACCEPTED if winner is RideAction.APPROVE else PartRideStatus.REJECTED
        with session_factory() as check:
            row = check.get(PartRide, committed_ride.id)
            assert row.status == expected.value
            assert row.version == 1
