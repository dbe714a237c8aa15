"""
Registers catalog operations as FastMCP tools.

Each OperationDescriptor becomes one FastMCP tool. FastMCP derives the tool's
input schema from the function it is given and validates arguments with it,
so the function handed over carries the operation's own parameters (minus
`self` for bound operations) through __signature__ and __annotations__.

Authorization does NOT happen here: ToolAuthMiddleware runs the pre-filter
before FastMCP dispatches to the tool. The function below only executes the
operation and converts the normalized result into MCP content:

    void completion     -> no content
    str payload         -> the string as text
    anything else       -> JSON text (fields renamed to the configured
                           convention), plus structured content for mappings
"""

import json
import logging
from typing import Any

import pydantic_core
from fastmcp import FastMCP
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import TextContent

from toolgate.invocation import OperationInvoker
from toolgate.naming import NamingConvention, rename_fields
from toolgate.registry import OperationDescriptor
from toolgate.results import Value

logger = logging.getLogger("toolgate.bridge")


def register_operations(
    mcp: FastMCP,
    invoker: OperationInvoker,
    convention: NamingConvention = NamingConvention.SNAKE_CASE,
) -> None:
    for descriptor in invoker.registry:
        tool = Tool.from_function(
            _tool_function(descriptor, invoker, convention),
            name=descriptor.name,
            description=descriptor.description or None,
        )
        mcp.add_tool(tool)
        logger.debug("Registered tool %s (static=%s)", descriptor.name, descriptor.is_static)


def to_tool_result(value: Value, convention: NamingConvention) -> ToolResult:
    if not value.present:
        return ToolResult(content=[])

    if isinstance(value.payload, str):
        return ToolResult(content=[TextContent(type="text", text=value.payload)])

    payload = rename_fields(pydantic_core.to_jsonable_python(value.payload), convention)
    return ToolResult(
        content=[TextContent(type="text", text=json.dumps(payload))],
        structured_content=payload if isinstance(payload, dict) else None,
    )


def _tool_function(
    descriptor: OperationDescriptor,
    invoker: OperationInvoker,
    convention: NamingConvention,
):
    signature = descriptor.signature

    async def run(*args: Any, **kwargs: Any) -> ToolResult:
        arguments = signature.bind(*args, **kwargs).arguments
        value = await invoker.execute(descriptor, arguments)
        return to_tool_result(value, convention)

    run.__name__ = descriptor.name
    run.__qualname__ = descriptor.name
    run.__doc__ = descriptor.description
    run.__signature__ = signature
    run.__annotations__ = dict(descriptor.annotations)
    return run
