"""
MCP server exposing the host's operations as tools.

This module wires the bridge together:
- Builds the tool registry from the configured tool modules (fails fast on
  conflicting names or malformed authorization metadata)
- Registers every operation as a FastMCP tool
- Installs ToolAuthMiddleware: role-filtered tools/list and pre-filtered
  tools/call
- Health and readiness HTTP endpoints (for Kubernetes probes)
- Structured JSON logging
- Streamable HTTP transport

Running the server:
    python -m toolgate.server

    This starts the server on http://0.0.0.0:8080 with:
    - MCP endpoint at /mcp (MCP_MCP_ENDPOINT_PATH)
    - Health check at /health
    - Readiness check at /ready
"""

import logging

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from toolgate.authorization import AuthorizationPreFilter
from toolgate.bridge import register_operations
from toolgate.config import Settings, settings
from toolgate.host import HostAuthSupplier, UserRoleResolver, service_scope_factory
from toolgate.invocation import OperationInvoker
from toolgate.logs import configure_logging
from toolgate.middleware import ToolAuthMiddleware
from toolgate.registry import discover
from toolgate.users import UserStore

configure_logging(settings.log_level)
logger = logging.getLogger("mcp-server")


def create_server(config: Settings = settings, store: UserStore | None = None) -> FastMCP:
    """
    Build a fully wired MCP server.

    Args:
        config: Server configuration (defaults to the environment-based settings)
        store: User store to serve; a freshly seeded one if omitted

    Raises:
        DiscoveryConflict: If the tool catalog is inconsistent
    """
    store = store if store is not None else UserStore()

    registry = discover(config.tool_modules, convention=config.naming_convention)

    prefilter = AuthorizationPreFilter(HostAuthSupplier(store)) if config.use_authorization else None
    invoker = OperationInvoker(registry, prefilter, scope_factory=service_scope_factory(store))

    mcp = FastMCP(
        name="toolgate",
        instructions=(
            "User management tools. The tools you can see and call depend on "
            "the role granted to your access token."
        ),
        middleware=[ToolAuthMiddleware(invoker, UserRoleResolver(store), config)],
    )
    register_operations(mcp, invoker, config.naming_convention)

    # Plain HTTP endpoints (not MCP protocol) for Kubernetes probes. They are
    # unauthenticated: the kubelet has no token and they expose nothing.

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        """Liveness probe: is the server process alive and responsive?"""
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        """Readiness probe: is there a catalog to serve?"""
        if not len(registry):
            return JSONResponse(
                {"status": "not_ready", "reason": "no tools registered"},
                status_code=503,
            )
        return JSONResponse({"status": "ready", "tools": len(registry)})

    logger.info(
        "MCP server configured",
        extra={
            "auth_data": {
                "tools": registry.names(),
                "require_authentication": config.require_authentication,
                "use_authorization": config.use_authorization,
            }
        },
    )
    return mcp


mcp = create_server()


if __name__ == "__main__":
    logger.info(
        "Starting MCP server on %s:%d%s (transport=streamable-http)",
        settings.host,
        settings.port,
        settings.mcp_endpoint_path,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
        path=settings.mcp_endpoint_path,
        log_level=settings.log_level,
    )
