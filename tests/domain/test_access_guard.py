"""Authorization guard: ordered allow rules and deny reasons."""

from uuid import uuid4

import pytest

from fleet_kernel.domain.access import (
    AccessTarget,
    DenyReason,
    check_access,
    check_access_any,
)
from fleet_kernel.domain.identity import Role
from fleet_kernel.domain.scope import AccessScope


@pytest.fixture
def ids():
    return {name: uuid4() for name in ("company", "other_company", "client", "driver", "actor")}


class TestCheckAccess:
    def test_unrestricted_allows_anything(self, ids):
        scope = AccessScope(actor_id=ids["actor"], role=Role.GLOBAL_ADMIN, unrestricted=True)

        decision = check_access(scope, AccessTarget(company_id=ids["other_company"]))

        assert decision.allowed
        assert decision.matched_rule == "unrestricted"

    def test_owned_driver_rule(self, ids):
        scope = AccessScope(actor_id=ids["actor"], role=Role.DRIVER, owned_driver_id=ids["driver"])

        assert check_access(scope, AccessTarget(driver_id=ids["driver"])).matched_rule == "owned_driver"
        assert not check_access(scope, AccessTarget(driver_id=uuid4()))

    def test_owned_driver_rule_ignores_company(self, ids):
        scope = AccessScope(
            actor_id=ids["actor"],
            role=Role.DRIVER,
            company_ids=frozenset({ids["company"]}),
            owned_driver_id=ids["driver"],
        )
        own_ride_elsewhere = AccessTarget(company_id=ids["other_company"], driver_id=ids["driver"])
        colleague_ride_elsewhere = AccessTarget(company_id=ids["other_company"], driver_id=uuid4())

        assert check_access(scope, own_ride_elsewhere).matched_rule == "owned_driver"
        assert check_access(scope, colleague_ride_elsewhere).reason is DenyReason.OUT_OF_SCOPE

    def test_company_rule(self, ids):
        scope = AccessScope(
            actor_id=ids["actor"], role=Role.EMPLOYER, company_ids=frozenset({ids["company"]}),
        )

        decision = check_access(scope, AccessTarget(company_id=ids["company"], client_id=uuid4()))

        assert decision.allowed
        assert decision.matched_rule == "company"

    def test_client_rule(self, ids):
        scope = AccessScope(
            actor_id=ids["actor"], role=Role.CUSTOMER, client_ids=frozenset({ids["client"]}),
        )

        assert check_access(
            scope, AccessTarget(company_id=ids["company"], client_id=ids["client"])
        ).matched_rule == "client"
        assert not check_access(scope, AccessTarget(company_id=ids["company"]))

    def test_out_of_scope_denial(self, ids):
        scope = AccessScope(
            actor_id=ids["actor"], role=Role.CUSTOMER_ADMIN, company_ids=frozenset({ids["company"]}),
        )

        decision = check_access(scope, AccessTarget(company_id=ids["other_company"]))

        assert not decision
        assert decision.reason is DenyReason.OUT_OF_SCOPE

    def test_missing_scope_is_no_profile(self, ids):
        decision = check_access(None, AccessTarget(company_id=ids["company"]))

        assert not decision.allowed
        assert decision.reason is DenyReason.NO_PROFILE

    def test_empty_target_only_reachable_unrestricted(self, ids):
        scope = AccessScope(
            actor_id=ids["actor"], role=Role.CUSTOMER_ADMIN, company_ids=frozenset({ids["company"]}),
        )
        assert not check_access(scope, AccessTarget())

    def test_none_ids_never_match_empty_scope_fields(self, ids):
        """A target without a driver is not 'owned' by a scope without one."""
        scope = AccessScope(actor_id=ids["actor"], role=Role.CUSTOMER)
        assert check_access(scope, AccessTarget()).reason is DenyReason.OUT_OF_SCOPE


class TestCheckAccessAny:
    def test_first_allowed_target_wins(self, ids):
        scope = AccessScope(
            actor_id=ids["actor"], role=Role.CUSTOMER, client_ids=frozenset({ids["client"]}),
        )
        targets = [
            AccessTarget(driver_id=ids["driver"]),
            AccessTarget(company_id=ids["other_company"]),
            AccessTarget(company_id=ids["company"], client_id=ids["client"]),
        ]

        assert check_access_any(scope, targets).matched_rule == "client"
        assert check_access_any(scope, targets[:2]).reason is DenyReason.OUT_OF_SCOPE

    def test_no_targets(self, ids):
        admin = AccessScope(actor_id=ids["actor"], role=Role.GLOBAL_ADMIN, unrestricted=True)
        driver = AccessScope(actor_id=ids["actor"], role=Role.DRIVER, owned_driver_id=ids["driver"])

        assert check_access_any(admin, []).allowed
        assert not check_access_any(driver, [])
        assert check_access_any(None, []).reason is DenyReason.NO_PROFILE
