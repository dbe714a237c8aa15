"""
FastMCP middleware enforcing tool visibility and pre-invocation authorization.

The auth flow for every MCP request:

    1. Client sends an HTTP request with "Authorization: Bearer <jwt>"
    2. FastMCP's RequestContextMiddleware stores the HTTP request in a ContextVar
    3. ToolAuthMiddleware intercepts tools/list or tools/call
    4. The Authorization header is read once and turned into a Caller
       (auth.caller_from_header); from here on the Caller is passed explicitly
    5. tools/list: the caller's role is resolved and the tool list is filtered
       through visibility.visible_tools
    6. tools/call: OperationInvoker.authorize runs the pre-filter before the
       tool executes; a denial becomes an access_denied error result

Listing filters are a convenience, not the protection: a caller who calls a
hidden tool by name is still checked at step 6.
"""

import logging
import uuid
from collections.abc import Sequence

from fastmcp.server.dependencies import get_http_request
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest

from toolgate.auth import caller_from_header
from toolgate.authorization import Caller, RoleResolver
from toolgate.config import Settings
from toolgate.errors import AccessDenied
from toolgate.invocation import OperationInvoker
from toolgate.visibility import visible_tools

logger = logging.getLogger("toolgate.middleware")


class ToolAuthMiddleware(Middleware):
    """
    Role-filtered tools/list and pre-filtered tools/call.

    Every request is authenticated and authorized independently, even within
    the same MCP session.
    """

    def __init__(self, invoker: OperationInvoker, role_resolver: RoleResolver, config: Settings):
        self._invoker = invoker
        self._role_resolver = role_resolver
        self._config = config

    def _get_auth_header(self) -> str | None:
        """
        Extract the Authorization header from the current HTTP request.

        Returns None if no HTTP request is available (e.g., stdio transport).
        """
        try:
            request = get_http_request()
            return request.headers.get("authorization")
        except RuntimeError:
            return None

    def _resolve_caller(self, request_id: str, tool_name: str | None = None) -> Caller:
        caller = caller_from_header(
            self._get_auth_header(),
            request_id=request_id,
            secret=self._config.jwt_secret_key,
            algorithm=self._config.jwt_algorithm,
        )
        if self._config.require_authentication and not caller.authenticated:
            logger.warning(
                "Request rejected: authentication required",
                extra={
                    "auth_data": {
                        "request_id": request_id,
                        "tool": tool_name,
                        "decision": "rejected",
                        "reason": "authentication_required",
                    }
                },
            )
            if tool_name is None:
                raise AccessDenied("Access denied")
            raise AccessDenied(f"Access denied: not authorized to call tool '{tool_name}'")
        return caller

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        request_id = str(uuid.uuid4())[:8]
        caller = self._resolve_caller(request_id)

        all_tools = await call_next(context)

        if not self._config.use_authorization:
            return all_tools

        role = await self._role_resolver.resolve_role(caller) if caller.authenticated else None
        visible = visible_tools(role, self._invoker.registry)
        authorized_tools = [tool for tool in all_tools if tool.name in visible]

        logger.info(
            "Tool list filtered by role",
            extra={
                "auth_data": {
                    "request_id": request_id,
                    "subject": caller.subject,
                    "role": role.name if role is not None else None,
                    "total_tools": len(all_tools),
                    "authorized_tools": [t.name for t in authorized_tools],
                    "decision": "filtered",
                }
            },
        )

        return authorized_tools

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = str(uuid.uuid4())[:8]
        tool_name = context.message.name
        caller = self._resolve_caller(request_id, tool_name)

        await self._invoker.authorize(tool_name, caller)

        logger.info(
            "Tool call authorized",
            extra={
                "auth_data": {
                    "request_id": request_id,
                    "subject": caller.subject,
                    "tool": tool_name,
                    "decision": "allowed",
                }
            },
        )

        return await call_next(context)
