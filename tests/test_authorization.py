"""
Unit tests for the authorization pre-filter (toolgate/authorization.py).

The pre-filter is driven with the FakeSupplier from conftest, which records every oracle call,
so the tests check not only allow/deny but also which oracles were consulted
and how often:

- anonymous operations and operations without requirements never touch an
  oracle
- the authentication oracle is consulted exactly once per decision
- every requirement is evaluated in order until the first failure
"""

import pytest

from toolgate.authorization import AuthorizationPreFilter, Caller, authorize
from toolgate.errors import OracleFault
from toolgate.host import HostAuthSupplier
from toolgate.users import UserStore

ALICE = Caller(authenticated=True, subject="u-1", username="alice@example.com")


class TestAnonymousAccess:
    async def test_anonymous_operation_allows_without_oracle_calls(
        self, make_operation, make_supplier
    ):
        supplier = make_supplier(authenticated=False)
        operation = make_operation(requirements=[authorize(policy="A")], allow_anonymous=True)

        allowed = await AuthorizationPreFilter(supplier).check(operation, Caller.anonymous())

        assert allowed is True
        assert supplier.total_calls == 0

    async def test_group_anonymous_marker_is_inherited(self, make_operation, make_supplier):
        supplier = make_supplier(authenticated=False)
        operation = make_operation(
            group_requirements=[authorize()],
            group_allow_anonymous=True,
        )

        allowed = await AuthorizationPreFilter(supplier).check(operation, Caller.anonymous())

        assert allowed is True
        assert supplier.total_calls == 0

    async def test_operation_without_requirements_allows_without_oracle_calls(
        self, make_operation, make_supplier
    ):
        supplier = make_supplier(authenticated=False)

        allowed = await AuthorizationPreFilter(supplier).check(
            make_operation(), Caller.anonymous()
        )

        assert allowed is True
        assert supplier.total_calls == 0


class TestAuthentication:
    async def test_authenticated_caller_passes_bare_requirement(
        self, make_operation, make_supplier
    ):
        supplier = make_supplier(authenticated=True)
        operation = make_operation(requirements=[authorize()])

        allowed = await AuthorizationPreFilter(supplier).check(operation, ALICE)

        assert allowed is True
        assert supplier.authentication_calls == 1
        assert supplier.policy_calls == []

    async def test_unauthenticated_caller_is_denied_before_policies(
        self, make_operation, make_supplier
    ):
        supplier = make_supplier(authenticated=False, policies={"A": True})
        operation = make_operation(requirements=[authorize(policy="A")])

        allowed = await AuthorizationPreFilter(supplier).check(operation, Caller.anonymous())

        assert allowed is False
        assert supplier.authentication_calls == 1
        assert supplier.policy_calls == []


class TestPolicies:
    async def test_single_satisfied_policy(self, make_operation, make_supplier):
        supplier = make_supplier(policies={"A": True})
        operation = make_operation(requirements=[authorize(policy="A")])

        assert await AuthorizationPreFilter(supplier).check(operation, ALICE) is True
        assert supplier.policy_calls == ["A"]

    async def test_every_requirement_is_evaluated(self, make_operation, make_supplier):
        supplier = make_supplier(policies={"A": True, "B": False})
        operation = make_operation(requirements=[authorize(policy="A"), authorize(policy="B")])

        allowed = await AuthorizationPreFilter(supplier).check(operation, ALICE)

        assert allowed is False
        assert supplier.authentication_calls == 1
        assert supplier.policy_calls == ["A", "B"]

    async def test_first_failure_stops_evaluation(self, make_operation, make_supplier):
        supplier = make_supplier(policies={"A": False, "B": True})
        operation = make_operation(requirements=[authorize(policy="A"), authorize(policy="B")])

        allowed = await AuthorizationPreFilter(supplier).check(operation, ALICE)

        assert allowed is False
        assert supplier.policy_calls == ["A"]

    async def test_group_and_operation_policies_both_apply(self, make_operation, make_supplier):
        supplier = make_supplier(policies={"Group": True, "Own": True})
        operation = make_operation(
            group_requirements=[authorize(policy="Group")],
            requirements=[authorize(policy="Own")],
        )

        allowed = await AuthorizationPreFilter(supplier).check(operation, ALICE)

        assert allowed is True
        assert supplier.policy_calls == ["Group", "Own"]

    async def test_failing_group_policy_denies(self, make_operation, make_supplier):
        supplier = make_supplier(policies={"Group": False, "Own": True})
        operation = make_operation(
            group_requirements=[authorize(policy="Group")],
            requirements=[authorize(policy="Own")],
        )

        assert await AuthorizationPreFilter(supplier).check(operation, ALICE) is False
        assert supplier.policy_calls == ["Group"]


class TestRoleSets:
    async def test_caller_holding_one_of_the_roles_is_allowed(self, make_operation, make_supplier):
        caller = Caller(authenticated=True, subject="u-2", roles=frozenset({"Manager"}))
        operation = make_operation(requirements=[authorize(roles=["Manager", "Admin"])])

        assert await AuthorizationPreFilter(make_supplier()).check(operation, caller) is True

    async def test_caller_without_any_of_the_roles_is_denied(self, make_operation, make_supplier):
        caller = Caller(authenticated=True, subject="u-3", roles=frozenset({"Viewer"}))
        operation = make_operation(requirements=[authorize(roles=["Manager", "Admin"])])

        assert await AuthorizationPreFilter(make_supplier()).check(operation, caller) is False


class TestOracleFaults:
    async def test_raising_authentication_oracle_is_a_fault(self, make_operation, make_supplier):
        supplier = make_supplier(error=RuntimeError("identity provider unreachable"))
        operation = make_operation(requirements=[authorize()])

        with pytest.raises(OracleFault, match="identity provider unreachable"):
            await AuthorizationPreFilter(supplier).check(operation, ALICE)

    async def test_raising_policy_oracle_is_a_fault(self, make_operation, make_supplier):
        # The fake supplier raises KeyError for a policy it has no answer for.
        operation = make_operation(requirements=[authorize(policy="Undefined")])

        with pytest.raises(OracleFault, match="Undefined"):
            await AuthorizationPreFilter(make_supplier()).check(operation, ALICE)

    async def test_host_supplier_undefined_policy_is_a_fault(self, make_operation):
        supplier = HostAuthSupplier(UserStore())
        operation = make_operation(requirements=[authorize(policy="RequireAuditor")])

        with pytest.raises(OracleFault, match="RequireAuditor"):
            await AuthorizationPreFilter(supplier).check(operation, ALICE)


def test_requirement_roles_are_frozen():
    requirement = authorize(roles=["Admin", "Admin", "Manager"])

    assert requirement.roles == frozenset({"Admin", "Manager"})
