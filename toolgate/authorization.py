"""
Pre-invocation authorization for MCP tools.

The host application declares authorization on its operations (and on the
groups they belong to) the same way it does for HTTP routes: "must be
authenticated", "must satisfy policy X", "must hold one of roles Y", or
"anonymous access allowed". This module re-evaluates those declarations for
tool calls, without any access to the host's HTTP request machinery.

Evaluation order for one invocation:

    1. allow_anonymous (on the operation or its group)  -> allow, no oracle calls
    2. no requirements                                   -> allow, no oracle calls
    3. authentication oracle (consulted exactly once)    -> deny if not authenticated
    4. EVERY requirement, in declaration order:
         policy    -> policy oracle for that exact policy name
         role set  -> caller must hold at least one of the roles
       the first failing requirement denies (remaining ones are skipped)
    5. all requirements passed                           -> allow

All requirements are evaluated, not just the first one. An operation guarded
by both its group's policy and its own policy needs both to pass.

The caller is passed explicitly as a Caller value. Oracles receive it as a
parameter; nothing here reads process-global or request-local state.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from toolgate.errors import OracleFault
from toolgate.roles import RoleLevel

if TYPE_CHECKING:
    from toolgate.registry import OperationDescriptor

logger = logging.getLogger("toolgate.authorization")


@dataclass(frozen=True)
class AuthorizationRequirement:
    """
    One declared authorization condition.

    Attributes:
        policy: Name of a host policy the caller must satisfy
        roles: Role names, any one of which the caller must hold

    A requirement with neither set only demands an authenticated caller.
    """

    policy: str | None = None
    roles: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.roles is not None and not isinstance(self.roles, frozenset):
            object.__setattr__(self, "roles", frozenset(self.roles))


def authorize(policy: str | None = None, roles: Iterable[str] | None = None) -> AuthorizationRequirement:
    """Shorthand for declaring a requirement: authorize(policy="RequireAdmin")."""
    return AuthorizationRequirement(
        policy=policy,
        roles=frozenset(roles) if roles is not None else None,
    )


@dataclass(frozen=True)
class Caller:
    """
    The identity behind one MCP request.

    Built fresh for every request from the bearer token and threaded through
    authorization explicitly. Frozen so nothing downstream can alter the
    validated claims.

    Attributes:
        authenticated: Whether a valid token was presented
        subject: The token's "sub" claim
        username: The token's "preferred_username" claim
        roles: Role names granted by the token
        claims: The full decoded claim set
    """

    authenticated: bool
    subject: str | None = None
    username: str | None = None
    roles: frozenset[str] = frozenset()
    claims: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def anonymous(cls) -> "Caller":
        return cls(authenticated=False)


class AuthSupplier(Protocol):
    """Host-supplied oracles. Both may perform I/O."""

    async def is_authenticated(self, caller: Caller) -> bool: ...

    async def check_policy(self, caller: Caller, policy: str) -> bool: ...


class RoleResolver(Protocol):
    async def resolve_role(self, caller: Caller) -> RoleLevel | None: ...


class AuthorizationPreFilter:
    """
    Decides allow/deny for a tool invocation before the operation runs.

    A denial is returned as False, not raised; the invocation layer maps it
    to an access-denied error. An oracle that raises is reported as
    OracleFault and never turns into an allow.
    """

    def __init__(self, supplier: AuthSupplier):
        self._supplier = supplier

    async def check(self, operation: "OperationDescriptor", caller: Caller) -> bool:
        if operation.allow_anonymous:
            logger.debug("Anonymous access allowed for %s", operation.name)
            return True

        if not operation.requirements:
            logger.debug("No requirements on %s, allowing", operation.name)
            return True

        if not await self._is_authenticated(operation, caller):
            self._log_denial(operation, caller, "authentication_required")
            return False

        for requirement in operation.requirements:
            if requirement.policy:
                if not await self._check_policy(operation, caller, requirement.policy):
                    self._log_denial(
                        operation, caller, "policy_denied", policy=requirement.policy
                    )
                    return False
            elif requirement.roles:
                if not caller.roles & requirement.roles:
                    self._log_denial(
                        operation, caller, "role_denied", roles=sorted(requirement.roles)
                    )
                    return False

        logger.debug(
            "All %d requirements passed for %s", len(operation.requirements), operation.name
        )
        return True

    async def _is_authenticated(self, operation: "OperationDescriptor", caller: Caller) -> bool:
        try:
            return bool(await self._supplier.is_authenticated(caller))
        except Exception as e:
            raise OracleFault(
                f"Authentication oracle failed while authorizing '{operation.name}': {e}"
            ) from e

    async def _check_policy(
        self, operation: "OperationDescriptor", caller: Caller, policy: str
    ) -> bool:
        try:
            return bool(await self._supplier.check_policy(caller, policy))
        except Exception as e:
            raise OracleFault(
                f"Policy oracle failed for policy '{policy}' on '{operation.name}': {e}"
            ) from e

    @staticmethod
    def _log_denial(
        operation: "OperationDescriptor", caller: Caller, reason: str, **details: Any
    ) -> None:
        logger.warning(
            "Tool authorization denied",
            extra={
                "auth_data": {
                    "subject": caller.subject,
                    "tool": operation.name,
                    "decision": "denied",
                    "reason": reason,
                    **details,
                }
            },
        )
