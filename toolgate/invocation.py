"""
Tool invocation: authorize, build a fresh scope, call, normalize.

Each invocation of a bound operation runs in its own scope, opened from the
host's scope factory (an async context manager). The group factory builds the
operation's instance from that scope, so request-scoped collaborators (a
request tracker, a unit of work, a service holding per-request state) are
never shared between two invocations, even concurrent ones.

The chain is asynchronous end to end: oracle calls, the operation itself and
any awaitable it returns are all awaited on the event loop. Cancelling the
task that handles a tools/call cancels whichever of those is in flight.
"""

import contextlib
import logging
import threading
import uuid
from collections.abc import Callable, Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from toolgate.authorization import AuthorizationPreFilter, Caller
from toolgate.errors import AccessDenied, MarshallingError, UnknownTool
from toolgate.registry import OperationDescriptor, ToolRegistry
from toolgate.results import MarshallingFailure, Value, normalize

logger = logging.getLogger("toolgate.invocation")

ScopeFactory = Callable[[], AbstractAsyncContextManager[Any]]

_clock_lock = threading.Lock()
_last_scope_time = datetime.min.replace(tzinfo=timezone.utc)


def _scope_timestamp() -> datetime:
    """Current UTC time, strictly later than any scope timestamp issued before."""
    global _last_scope_time
    with _clock_lock:
        now = datetime.now(timezone.utc)
        if now <= _last_scope_time:
            now = _last_scope_time + timedelta(microseconds=1)
        _last_scope_time = now
        return now


@dataclass(frozen=True)
class RequestTracker:
    """
    Identity of one invocation scope. A new one is created per scope.

    Creation timestamps are strictly increasing across trackers, even for
    scopes opened within the same clock tick.
    """

    request_id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_scope_timestamp)


class OperationInvoker:
    """
    Runs registered operations on behalf of the MCP layer.

    Args:
        registry: The immutable tool catalog
        prefilter: Authorization pre-filter; None disables authorization
                   (requirements are then ignored)
        scope_factory: Opens a per-invocation scope for bound operations
    """

    def __init__(
        self,
        registry: ToolRegistry,
        prefilter: AuthorizationPreFilter | None = None,
        scope_factory: ScopeFactory | None = None,
    ):
        self.registry = registry
        self._prefilter = prefilter
        self._scope_factory = scope_factory

    async def authorize(self, name: str, caller: Caller) -> OperationDescriptor:
        """
        Look up a tool and run the pre-filter for this caller.

        Raises:
            UnknownTool: No tool is registered under `name`
            AccessDenied: The pre-filter denied the call
            OracleFault: An oracle failed while deciding
        """
        descriptor = self.registry.get(name)
        if descriptor is None:
            raise UnknownTool(f"Unknown tool: '{name}'")

        if self._prefilter is None:
            logger.debug("Authorization disabled, skipping check for %s", name)
            return descriptor

        if not await self._prefilter.check(descriptor, caller):
            # The reason was logged by the pre-filter; the client only learns
            # that access was denied.
            raise AccessDenied(f"Access denied: not authorized to call tool '{name}'")

        return descriptor

    async def execute(self, descriptor: OperationDescriptor, arguments: Mapping[str, Any]) -> Value:
        """
        Call an already-authorized operation and normalize its result.

        Raises:
            MarshallingError: The operation returned a framework-level error outcome
        """
        if descriptor.is_static:
            result = await normalize(
                descriptor.invoker(**arguments), declared_void=descriptor.returns_void
            )
        else:
            async with self._open_scope() as scope:
                instance = descriptor.factory(scope)
                # Normalize inside the scope: a deferred result may still
                # depend on scope resources.
                result = await normalize(
                    descriptor.invoker(instance, **arguments),
                    declared_void=descriptor.returns_void,
                )

        if isinstance(result, MarshallingFailure):
            logger.error(
                "Tool returned an error outcome",
                extra={
                    "auth_data": {
                        "tool": descriptor.name,
                        "outcome_kind": result.outcome_kind,
                    }
                },
            )
            raise MarshallingError(descriptor.name, result.outcome_kind)

        return result

    async def invoke(self, name: str, arguments: Mapping[str, Any], caller: Caller) -> Value:
        descriptor = await self.authorize(name, caller)
        return await self.execute(descriptor, arguments)

    def _open_scope(self) -> AbstractAsyncContextManager[Any]:
        if self._scope_factory is None:
            return contextlib.nullcontext()
        return self._scope_factory()
