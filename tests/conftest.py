"""
Shared test fixtures for the toolgate test suite.

Key fixtures:
- make_token / make_auth_header: factories for signed JWTs with any claims
- user_store: a freshly seeded in-memory user store per test
- make_operation: builds a single OperationDescriptor for pre-filter tests
- make_supplier: builds a FakeSupplier, an AuthSupplier that records every
  oracle call

Testing approach:
- Unit tests exercise each bridge component in isolation (naming, roles,
  normalizer, pre-filter, registry, visibility, invoker).
- test_tools.py drives the full MCP server over in-memory HTTP
  (httpx + ASGI), through the middleware, the pre-filter and the tools.
"""

import datetime

import jwt
import pytest

from toolgate.authorization import AuthorizationRequirement, Caller
from toolgate.config import settings
from toolgate.registry import RegistryBuilder
from toolgate.users import UserStore

TEST_SECRET = settings.jwt_secret_key
TEST_ALGORITHM = settings.jwt_algorithm


class FakeSupplier:
    """AuthSupplier double with canned answers and a call log."""

    def __init__(
        self,
        authenticated: bool = True,
        policies: dict[str, bool] | None = None,
        error: Exception | None = None,
    ):
        self.authenticated = authenticated
        self.error = error
        self.policies = policies or {}
        self.authentication_calls = 0
        self.policy_calls: list[str] = []

    async def is_authenticated(self, caller: Caller) -> bool:
        self.authentication_calls += 1
        if self.error is not None:
            raise self.error
        return self.authenticated

    async def check_policy(self, caller: Caller, policy: str) -> bool:
        self.policy_calls.append(policy)
        return self.policies[policy]

    @property
    def total_calls(self) -> int:
        return self.authentication_calls + len(self.policy_calls)


@pytest.fixture
def make_token():
    """
    Factory fixture to generate JWT tokens for testing.

    Usage in tests:
        def test_something(make_token):
            token = make_token(sub="admin-1", username="admin")
    """

    def _make_token(
        sub: str = "test-user",
        username: str | None = None,
        role: str | None = None,
        realm_roles: list[str] | None = None,
        secret: str = TEST_SECRET,
        algorithm: str = TEST_ALGORITHM,
        exp_hours: float = 1.0,
        extra_claims: dict | None = None,
        include_exp: bool = True,
        include_sub: bool = True,
    ) -> str:
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {"iat": now}

        if include_sub:
            payload["sub"] = sub
        if include_exp:
            payload["exp"] = now + datetime.timedelta(hours=exp_hours)
        if username is not None:
            payload["preferred_username"] = username
        if role is not None:
            payload["role"] = role
        if realm_roles is not None:
            payload["realm_roles"] = realm_roles
        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token


@pytest.fixture
def make_auth_header(make_token):
    """Convenience fixture that returns a full "Bearer <token>" string."""

    def _make_auth_header(**kwargs) -> str:
        return f"Bearer {make_token(**kwargs)}"

    return _make_auth_header


@pytest.fixture
def make_supplier():
    """Factory for FakeSupplier: make_supplier(policies={"A": True, "B": False})."""
    return FakeSupplier


@pytest.fixture
def user_store():
    return UserStore()


@pytest.fixture
def make_operation():
    """
    Build one OperationDescriptor through the real RegistryBuilder.

    Usage:
        op = make_operation(requirements=[authorize(policy="A")])
        op = make_operation(group_requirements=[authorize()], allow_anonymous=True)
    """

    def _make_operation(
        requirements: list[AuthorizationRequirement] = (),
        allow_anonymous: bool = False,
        group_requirements: list[AuthorizationRequirement] = (),
        group_allow_anonymous: bool = False,
    ):
        async def operation() -> str:
            return "done"

        builder = RegistryBuilder()
        group = builder.group(
            "test",
            requirements=group_requirements,
            allow_anonymous=group_allow_anonymous,
        )
        group.add(operation, requirements=requirements, allow_anonymous=allow_anonymous)
        return builder.build().get("operation")

    return _make_operation
