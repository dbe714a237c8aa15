"""
Canonical tool names and output field naming.

Operations are registered under their declared identifier (a function name
such as `get_by_id`, or a host-style name such as `GetByIdAsync`). MCP clients
see a canonical name derived from it:

    GetById          -> get_by_id
    GetAllAsync      -> get_all
    UpdateUserAsync  -> update_user
    HTTPRequest      -> http_request
    Async            -> async        (suffix kept: nothing would be left)

The same conventions are applied to the field names of marshalled payloads so
that tool names and result fields follow one style.
"""

import enum
import re
from typing import Any

ASYNC_SUFFIXES = ("Async", "_async")

# An uppercase run followed by a capitalized word: "HTTPRequest" -> "HTTP_Request"
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
# A lowercase letter or digit followed by an uppercase letter: "getBy" -> "get_By"
_WORD_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[\s\-_]+")


class NamingConvention(str, enum.Enum):
    SNAKE_CASE = "snake_case"
    CAMEL_CASE = "camel_case"


def strip_async_suffix(identifier: str) -> str:
    """Remove a trailing "Async"/"_async" unless that would empty the name."""
    for suffix in ASYNC_SUFFIXES:
        if identifier.endswith(suffix) and len(identifier) > len(suffix):
            return identifier[: -len(suffix)]
    return identifier


def to_snake_case(identifier: str) -> str:
    """
    Split an identifier into lowercase words joined by underscores.

    Handles PascalCase, camelCase, acronym runs and existing separators:
    "GetById" -> "get_by_id", "HTTPRequest" -> "http_request",
    "get-all users" -> "get_all_users".
    """
    words = _ACRONYM_BOUNDARY.sub(r"\1_\2", identifier)
    words = _WORD_BOUNDARY.sub(r"\1_\2", words)
    return _SEPARATORS.sub("_", words).strip("_").lower()


def to_camel_case(identifier: str) -> str:
    """Same word split as to_snake_case, rejoined as camelCase ("GetById" -> "getById")."""
    head, *rest = to_snake_case(identifier).split("_")
    return head + "".join(word.capitalize() for word in rest)


def convert_name(identifier: str, convention: NamingConvention) -> str:
    """Render an identifier in the given convention (no suffix stripping)."""
    if convention is NamingConvention.CAMEL_CASE:
        return to_camel_case(identifier)
    return to_snake_case(identifier)


def canonical_tool_name(
    identifier: str,
    convention: NamingConvention = NamingConvention.SNAKE_CASE,
) -> str:
    """
    Map a declared operation identifier to its externally visible tool name.

    Deterministic and pure: the same identifier always produces the same name,
    which is what lets the registry detect collisions at startup.
    """
    return convert_name(strip_async_suffix(identifier), convention)


def rename_fields(payload: Any, convention: NamingConvention) -> Any:
    """
    Recursively rename mapping keys in a JSON-compatible payload.

    Only string keys are renamed; values, list items and scalars are left
    untouched apart from the recursion into nested containers.
    """
    if isinstance(payload, dict):
        return {
            (convert_name(key, convention) if isinstance(key, str) else key): rename_fields(
                value, convention
            )
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [rename_fields(item, convention) for item in payload]
    return payload
