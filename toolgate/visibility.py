"""
Role-based tool list filtering.

Decides which tool names a caller sees in a tools/list response. This is a
listing concern only: hiding a tool is not what protects it. Every call is
still checked by the authorization pre-filter, so a caller who guesses a
hidden tool's name is denied at invocation time.
"""

from collections.abc import Iterable

from toolgate.registry import OperationDescriptor
from toolgate.roles import MinimumRole, Restriction, RoleLevel


def is_visible(caller_role: RoleLevel | None, required: MinimumRole) -> bool:
    """
    Whether a caller holding `caller_role` may see an operation in a listing.

    Args:
        caller_role: The caller's resolved role, or None if none was resolved
        required: The operation's minimum role (a level, UNRESTRICTED or UNKNOWN)

    Returns:
        False for a caller without a role or an UNKNOWN requirement; True for
        UNRESTRICTED; otherwise whether the caller's role reaches the level.
    """
    if caller_role is None:
        return False
    if required is Restriction.UNRESTRICTED:
        return True
    if required is Restriction.UNKNOWN:
        return False
    return caller_role >= required


def visible_tools(
    caller_role: RoleLevel | None,
    operations: Iterable[OperationDescriptor],
) -> frozenset[str]:
    """
    Names of the operations a caller with the given role may see.

    A caller without a resolved role (anonymous, or unknown to the host)
    sees nothing. Operations with an UNKNOWN minimum role are never listed.
    """
    if caller_role is None:
        return frozenset()
    return frozenset(op.name for op in operations if is_visible(caller_role, op.minimum_role))
