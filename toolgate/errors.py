"""
Exception types raised by the tool bridge.

Two families live here:

- **Startup errors** (`DiscoveryConflict`): raised while the operation registry
  is being built. They abort startup; a server with an inconsistent catalog
  never starts serving.
- **Invocation errors** (`InvocationError` and subclasses): raised while
  handling a single tools/call. They subclass FastMCP's `ToolError`, so the
  protocol layer turns them into an MCP error result (`isError=true`) whose
  text is `"<kind>: <message>"`.

Authentication failures and policy/role denials deliberately collapse into the
single `AccessDenied` signal. The specific reason is logged server-side and is
never sent to the caller.
"""

from fastmcp.exceptions import ToolError


class ToolGateError(Exception):
    """
    Base class for all bridge errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DiscoveryConflict(ToolGateError):
    """Duplicate canonical tool name or malformed operation metadata."""


class OracleFault(ToolGateError):
    """
    An authentication or policy oracle raised instead of answering.

    This is a configuration or infrastructure fault. It is propagated to the
    caller as an error and is never treated as an "allow" decision.
    """


class InvocationError(ToolGateError, ToolError):
    """
    An error surfaced to the MCP client for a single tool invocation.

    Attributes:
        kind: Stable machine-readable error kind (e.g. "access_denied")
    """

    kind = "invocation_error"

    def __init__(self, message: str):
        super().__init__(message)
        # ToolError's string form is what FastMCP sends to the client.
        self.args = (f"{self.kind}: {message}",)


class AccessDenied(InvocationError):
    kind = "access_denied"


class UnknownTool(InvocationError):
    kind = "unknown_tool"


class MarshallingError(InvocationError):
    """
    An operation returned a framework-level error outcome.

    Operations are expected to return domain failures (not found, validation
    problems) as ordinary payloads. An error outcome reaching the normalizer
    is a programming error in the operation and is reported as such.
    """

    kind = "marshalling_failure"

    def __init__(self, tool_name: str, outcome_kind: str):
        self.tool_name = tool_name
        self.outcome_kind = outcome_kind
        super().__init__(
            f"Tool '{tool_name}' returned error outcome {outcome_kind}. "
            "Operations must return domain errors as regular payloads "
            "(e.g. ok({'error': 'User not found'})) instead of error outcomes."
        )
