"""
Host-side collaborators the tool bridge consults.

- HostAuthSupplier: the authentication and policy oracles. Policies are
  minimum-role rules ("RequireManager" = role >= MANAGER) evaluated against
  the user store, looked up by the token's preferred_username.
- UserRoleResolver: resolves a caller's RoleLevel for tool list filtering,
  using the same lookup.
- service_scope_factory: opens the per-invocation scope holding a fresh
  RequestTracker and UserService.

Every method takes the Caller explicitly; nothing reads request state on its
own.
"""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass

from toolgate.authorization import Caller
from toolgate.invocation import RequestTracker, ScopeFactory
from toolgate.roles import POLICY_ROLE_MAP, RoleLevel
from toolgate.users import UserService, UserStore

logger = logging.getLogger("toolgate.host")


@dataclass(frozen=True)
class ServiceScope:
    tracker: RequestTracker
    users: UserService


def service_scope_factory(store: UserStore) -> ScopeFactory:
    @asynccontextmanager
    async def open_scope() -> AsyncIterator[ServiceScope]:
        scope = ServiceScope(tracker=RequestTracker(), users=UserService(store))
        logger.debug("Opened invocation scope %s", scope.tracker.request_id)
        yield scope

    return open_scope


class UserRoleResolver:
    """Resolves the caller's role from the user store by preferred_username."""

    def __init__(self, store: UserStore):
        self._store = store

    async def resolve_role(self, caller: Caller) -> RoleLevel | None:
        if not caller.authenticated:
            return None

        if not caller.username:
            logger.warning("No preferred_username claim found in token")
            return None

        user = await UserService(self._store).get_by_email(caller.username)
        if user is None:
            logger.warning("User not found in user store: %s", caller.username)
            return None

        logger.debug("Resolved role %s for user %s", user.role.name, caller.username)
        return user.role


class HostAuthSupplier:
    """
    Authentication and policy oracles backed by the token and the user store.

    An unknown policy name raises LookupError: a tool declaring a policy the
    host never defined is a configuration fault, not a denial.
    """

    def __init__(
        self,
        store: UserStore,
        policies: Mapping[str, RoleLevel] = POLICY_ROLE_MAP,
    ):
        self._roles = UserRoleResolver(store)
        self._policies = policies

    async def is_authenticated(self, caller: Caller) -> bool:
        return caller.authenticated

    async def check_policy(self, caller: Caller, policy: str) -> bool:
        required = self._policies.get(policy)
        if required is None:
            raise LookupError(f"No authorization policy named '{policy}' is defined")

        if not caller.authenticated:
            return False

        role = await self._roles.resolve_role(caller)
        if role is None or role < required:
            logger.warning(
                "User %s with role %s does not meet minimum role %s",
                caller.username,
                role.name if role is not None else None,
                required.name,
            )
            return False

        logger.info(
            "User %s with role %s meets minimum role %s",
            caller.username,
            role.name,
            required.name,
        )
        return True
