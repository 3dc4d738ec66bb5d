"""Write-permission table and the write-side gate."""

from types import MappingProxyType
from uuid import uuid4

import pytest

from fleet_kernel.domain.access import AccessTarget, DenyReason
from fleet_kernel.domain.identity import Role
from fleet_kernel.domain.scope import AccessScope
from fleet_kernel.domain.write_policy import WriteAction, WritePolicy, check_write


@pytest.fixture
def policy():
    return WritePolicy(grants={
        WriteAction.DISPUTE_COMMENT: frozenset({Role.CUSTOMER_ACCOUNTANT, Role.EMPLOYER}),
        WriteAction.DISPUTE_RESOLVE: frozenset({Role.EMPLOYER}),
    })


class TestWritePolicy:
    def test_grants_are_read_only(self, policy):
        assert isinstance(policy.grants, MappingProxyType)
        with pytest.raises(TypeError):
            policy.grants[WriteAction.RIDE_APPROVE] = frozenset({Role.DRIVER})

    def test_unlisted_action_is_denied_for_everyone(self, policy):
        assert policy.roles_for(WriteAction.COMPANY_CREATE) == frozenset()
        assert not policy.allows(Role.GLOBAL_ADMIN, WriteAction.COMPANY_CREATE)


class TestCheckWrite:
    def test_accountant_may_comment_but_not_resolve(self, policy):
        company = uuid4()
        scope = AccessScope(
            actor_id=uuid4(), role=Role.CUSTOMER_ACCOUNTANT, company_ids=frozenset({company}),
        )
        target = AccessTarget(company_id=company)

        assert check_write(policy, scope, WriteAction.DISPUTE_COMMENT, target).allowed
        denied = check_write(policy, scope, WriteAction.DISPUTE_RESOLVE, target)
        assert denied.reason is DenyReason.ROLE_NOT_PERMITTED

    def test_granted_role_still_needs_scope(self, policy):
        scope = AccessScope(actor_id=uuid4(), role=Role.EMPLOYER, company_ids=frozenset({uuid4()}))

        decision = check_write(policy, scope, WriteAction.DISPUTE_RESOLVE, AccessTarget(company_id=uuid4()))

        assert decision.reason is DenyReason.OUT_OF_SCOPE

    def test_no_scope_is_no_profile(self, policy):
        decision = check_write(policy, None, WriteAction.DISPUTE_COMMENT, AccessTarget())
        assert decision.reason is DenyReason.NO_PROFILE

    def test_any_of_several_targets(self, policy):
        company = uuid4()
        scope = AccessScope(actor_id=uuid4(), role=Role.EMPLOYER, company_ids=frozenset({company}))
        targets = [AccessTarget(driver_id=uuid4()), AccessTarget(company_id=company)]

        assert check_write(policy, scope, WriteAction.DISPUTE_RESOLVE, targets).matched_rule == "company"
        assert check_write(policy, scope, WriteAction.DISPUTE_RESOLVE, targets[:1]).reason is DenyReason.OUT_OF_SCOPE
