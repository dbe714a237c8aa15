"""
Role hierarchy and policy-to-role mapping.

Roles form a total order; a higher role permits everything a lower one does:

    VIEWER (0) < MEMBER (1) < MANAGER (2) < ADMIN (3)

Policies are named authorization rules declared on operations. The subset of
policies listed in POLICY_ROLE_MAP translates into a minimum role, which is
what the catalog listing uses to decide visibility. Policies outside the map
are still fully evaluated at invocation time (by the policy oracle); they just
carry no visibility information.

Every operation gets a three-state minimum role:

- a RoleLevel: listed for callers at or above that level
- Restriction.UNRESTRICTED: no role-bearing requirement, listed for everyone
  with a resolved role
- Restriction.UNKNOWN: guarded by requirements we can't translate into a
  level, hidden from listings (still enforced when invoked)
"""

import enum
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from toolgate.authorization import AuthorizationRequirement


class RoleLevel(enum.IntEnum):
    VIEWER = 0
    MEMBER = 1
    MANAGER = 2
    ADMIN = 3


class Restriction(enum.Enum):
    UNRESTRICTED = "unrestricted"
    UNKNOWN = "unknown"


MinimumRole: TypeAlias = RoleLevel | Restriction


class PolicyNames:
    REQUIRE_MEMBER = "RequireMember"
    REQUIRE_MANAGER = "RequireManager"
    REQUIRE_ADMIN = "RequireAdmin"


POLICY_ROLE_MAP: Mapping[str, RoleLevel] = MappingProxyType(
    {
        PolicyNames.REQUIRE_MEMBER: RoleLevel.MEMBER,
        PolicyNames.REQUIRE_MANAGER: RoleLevel.MANAGER,
        PolicyNames.REQUIRE_ADMIN: RoleLevel.ADMIN,
    }
)

ROLE_NAMES: Mapping[str, RoleLevel] = MappingProxyType(
    {
        "Viewer": RoleLevel.VIEWER,
        "Member": RoleLevel.MEMBER,
        "Manager": RoleLevel.MANAGER,
        "Admin": RoleLevel.ADMIN,
    }
)


def parse_role_name(role_name: str | None) -> RoleLevel | None:
    """Translate a role name ("Manager") into its level, or None if unknown."""
    if not role_name:
        return None
    return ROLE_NAMES.get(role_name)


def minimum_role(
    requirements: Iterable["AuthorizationRequirement"],
    policy_map: Mapping[str, RoleLevel] = POLICY_ROLE_MAP,
) -> MinimumRole:
    """
    Compute the minimum role needed to see an operation in a listing.

    Only requirements that carry a policy or a role set restrict visibility;
    a bare "must be authenticated" requirement does not. Among the restricting
    requirements, every mapped one must hold, so the strictest (maximum) level
    wins. A role-set requirement is satisfied by any one of its roles, so it
    maps to the lowest level it names.
    """
    restricting = 0
    levels: list[RoleLevel] = []

    for requirement in requirements:
        if requirement.policy:
            restricting += 1
            level = policy_map.get(requirement.policy)
        elif requirement.roles:
            restricting += 1
            named = [parse_role_name(name) for name in requirement.roles]
            known = [lvl for lvl in named if lvl is not None]
            level = min(known) if known else None
        else:
            continue

        if level is not None:
            levels.append(level)

    if levels:
        return max(levels)
    if restricting == 0:
        return Restriction.UNRESTRICTED
    return Restriction.UNKNOWN
