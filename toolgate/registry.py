"""
Operation registry: the immutable catalog of tools.

Host modules register their operations explicitly through a RegistryBuilder.
Each configured tool module exposes a `register(builder)` function:

    def register(builder: RegistryBuilder) -> None:
        users = builder.group(
            "users",
            factory=UsersOperations.from_scope,
            requirements=[authorize()],
        )
        users.add(UsersOperations.get_by_id, description="Gets a user by their ID")
        users.add(
            UsersOperations.create,
            description="Creates a new user",
            requirements=[authorize(policy=PolicyNames.REQUIRE_MEMBER)],
        )

Group-level requirements and the group's anonymous marker are inherited by
every operation in the group. Inheritance adds, it never replaces: an
operation's own requirements are appended after the group's.

`build()` validates the whole catalog at once and fails fast with
DiscoveryConflict (duplicate canonical names, malformed requirements,
signatures that can't be exposed as tool input). The resulting ToolRegistry
is read-only and safe to share between concurrent requests.
"""

import importlib
import inspect
import logging
import typing
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from toolgate.authorization import AuthorizationRequirement
from toolgate.errors import DiscoveryConflict
from toolgate.naming import NamingConvention, canonical_tool_name
from toolgate.roles import POLICY_ROLE_MAP, MinimumRole, RoleLevel, minimum_role

logger = logging.getLogger("toolgate.registry")


@dataclass(frozen=True)
class OperationDescriptor:
    """
    Everything the bridge needs to list, authorize and invoke one operation.

    Attributes:
        name: Canonical tool name (unique within the registry)
        identifier: The identifier the operation was declared with
        invoker: The function to call (unbound for bound operations)
        is_static: False if an instance must be built per invocation
        requirements: Group requirements followed by operation requirements
        allow_anonymous: Anonymous access marker (direct or inherited)
        minimum_role: Role needed to see the tool in a listing
        description: Tool description shown to clients
        group: Name of the declaring group, if any
        factory: Builds the instance for bound operations from an invocation scope
        signature: Parameters exposed as tool input (without `self`)
        annotations: Resolved type hints for the exposed parameters
        returns_void: The return annotation is None (the operation yields no value)
    """

    name: str
    identifier: str
    invoker: Callable[..., Any] = field(compare=False)
    is_static: bool
    requirements: tuple[AuthorizationRequirement, ...]
    allow_anonymous: bool
    minimum_role: MinimumRole
    description: str = ""
    group: str | None = None
    factory: Callable[[Any], Any] | None = field(default=None, compare=False)
    signature: inspect.Signature = field(default_factory=inspect.Signature, compare=False)
    annotations: Mapping[str, Any] = field(default_factory=dict, compare=False)
    returns_void: bool = False


@dataclass
class _Registration:
    fn: Callable[..., Any]
    description: str | None
    identifier: str | None
    requirements: tuple[AuthorizationRequirement, ...]
    allow_anonymous: bool
    group: "ToolGroup | None"


class ToolGroup:
    """A set of operations sharing a factory and group-level authorization markers."""

    def __init__(
        self,
        builder: "RegistryBuilder",
        name: str,
        factory: Callable[[Any], Any] | None,
        requirements: Iterable[AuthorizationRequirement],
        allow_anonymous: bool,
    ):
        self._builder = builder
        self.name = name
        self.factory = factory
        self.requirements = tuple(requirements)
        self.allow_anonymous = allow_anonymous

    def add(
        self,
        fn: Callable[..., Any],
        *,
        description: str | None = None,
        name: str | None = None,
        requirements: Iterable[AuthorizationRequirement] = (),
        allow_anonymous: bool = False,
    ) -> Callable[..., Any]:
        self._builder._register(
            _Registration(
                fn=fn,
                description=description,
                identifier=name,
                requirements=tuple(requirements),
                allow_anonymous=allow_anonymous,
                group=self,
            )
        )
        return fn


class RegistryBuilder:
    """Collects operation registrations and builds the immutable ToolRegistry."""

    def __init__(
        self,
        convention: NamingConvention = NamingConvention.SNAKE_CASE,
        policy_map: Mapping[str, RoleLevel] = POLICY_ROLE_MAP,
    ):
        self._convention = convention
        self._policy_map = policy_map
        self._registrations: list[_Registration] = []
        self._groups: dict[str, ToolGroup] = {}

    def group(
        self,
        name: str,
        *,
        factory: Callable[[Any], Any] | None = None,
        requirements: Iterable[AuthorizationRequirement] = (),
        allow_anonymous: bool = False,
    ) -> ToolGroup:
        if name in self._groups:
            raise DiscoveryConflict(f"Tool group '{name}' is registered twice")
        group = ToolGroup(self, name, factory, requirements, allow_anonymous)
        self._groups[name] = group
        return group

    def add(
        self,
        fn: Callable[..., Any],
        *,
        description: str | None = None,
        name: str | None = None,
        requirements: Iterable[AuthorizationRequirement] = (),
        allow_anonymous: bool = False,
    ) -> Callable[..., Any]:
        """Register an ungrouped (always static) operation."""
        self._register(
            _Registration(
                fn=fn,
                description=description,
                identifier=name,
                requirements=tuple(requirements),
                allow_anonymous=allow_anonymous,
                group=None,
            )
        )
        return fn

    def _register(self, registration: _Registration) -> None:
        if not callable(registration.fn):
            raise DiscoveryConflict(f"Operation {registration.fn!r} is not callable")
        self._registrations.append(registration)

    def build(self) -> "ToolRegistry":
        operations: dict[str, OperationDescriptor] = {}

        for registration in self._registrations:
            descriptor = self._describe(registration)
            existing = operations.get(descriptor.name)
            if existing is not None:
                raise DiscoveryConflict(
                    f"Duplicate tool name '{descriptor.name}': declared by "
                    f"'{existing.identifier}' and '{descriptor.identifier}'"
                )
            operations[descriptor.name] = descriptor

        logger.info(
            "Tool registry built",
            extra={
                "auth_data": {
                    "tools": {
                        name: _describe_role(op.minimum_role) for name, op in operations.items()
                    },
                }
            },
        )
        return ToolRegistry(operations)

    def _describe(self, registration: _Registration) -> OperationDescriptor:
        fn = registration.fn
        group = registration.group
        identifier = registration.identifier or fn.__name__

        requirements = (group.requirements if group else ()) + registration.requirements
        for requirement in requirements:
            _validate_requirement(identifier, requirement)

        signature = inspect.signature(fn)
        parameters = list(signature.parameters.values())
        is_static = not (
            group is not None
            and group.factory is not None
            and parameters
            and parameters[0].name == "self"
        )
        if not is_static:
            parameters = parameters[1:]

        for parameter in parameters:
            if parameter.kind in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
                inspect.Parameter.POSITIONAL_ONLY,
            ):
                raise DiscoveryConflict(
                    f"Operation '{identifier}' has parameter '{parameter.name}' "
                    f"of kind {parameter.kind.description}, which can't be exposed as tool input"
                )

        try:
            hints = typing.get_type_hints(fn)
        except Exception as e:
            raise DiscoveryConflict(
                f"Could not resolve type hints for operation '{identifier}': {e}"
            ) from e

        allow_anonymous = registration.allow_anonymous or bool(group and group.allow_anonymous)

        return OperationDescriptor(
            name=canonical_tool_name(identifier, self._convention),
            identifier=identifier,
            invoker=fn,
            is_static=is_static,
            requirements=requirements,
            allow_anonymous=allow_anonymous,
            minimum_role=_visibility(requirements, allow_anonymous, self._policy_map),
            description=registration.description or _first_doc_line(fn),
            group=group.name if group else None,
            factory=None if is_static else group.factory,
            signature=inspect.Signature(
                [p.replace(annotation=hints.get(p.name, p.annotation)) for p in parameters]
            ),
            annotations=MappingProxyType(
                {p.name: hints[p.name] for p in parameters if p.name in hints}
            ),
            returns_void=hints.get("return", inspect.Signature.empty) is type(None),
        )


class ToolRegistry:
    """Read-only catalog of operation descriptors, keyed by canonical name."""

    def __init__(self, operations: Mapping[str, OperationDescriptor]):
        self._operations = MappingProxyType(dict(operations))

    def get(self, name: str) -> OperationDescriptor | None:
        return self._operations.get(name)

    def names(self) -> list[str]:
        return list(self._operations)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)


def discover(
    module_names: Sequence[str],
    convention: NamingConvention = NamingConvention.SNAKE_CASE,
    policy_map: Mapping[str, RoleLevel] = POLICY_ROLE_MAP,
) -> ToolRegistry:
    """
    Import each tool module, let it register its operations, build the registry.

    Raises:
        DiscoveryConflict: If a module has no register() function or the
                           resulting catalog is inconsistent
    """
    builder = RegistryBuilder(convention=convention, policy_map=policy_map)
    for module_name in module_names:
        module = importlib.import_module(module_name)
        register = getattr(module, "register", None)
        if not callable(register):
            raise DiscoveryConflict(f"Tool module '{module_name}' has no register(builder) function")
        register(builder)
    return builder.build()


def _validate_requirement(identifier: str, requirement: AuthorizationRequirement) -> None:
    if requirement.policy is not None and requirement.roles is not None:
        raise DiscoveryConflict(
            f"Requirement on '{identifier}' declares both a policy and roles; "
            "declare them as separate requirements"
        )
    if requirement.policy is not None and not requirement.policy.strip():
        raise DiscoveryConflict(f"Requirement on '{identifier}' has an empty policy name")
    if requirement.roles is not None and not requirement.roles:
        raise DiscoveryConflict(f"Requirement on '{identifier}' has an empty role set")


def _visibility(
    requirements: Sequence[AuthorizationRequirement],
    allow_anonymous: bool,
    policy_map: Mapping[str, RoleLevel],
) -> MinimumRole:
    # Anyone may call an anonymous operation, so anyone may see it.
    if allow_anonymous:
        return minimum_role((), policy_map)
    return minimum_role(requirements, policy_map)


def _describe_role(role: MinimumRole) -> str:
    return role.name.lower()


def _first_doc_line(fn: Callable[..., Any]) -> str:
    doc = inspect.getdoc(fn) or ""
    return doc.strip().splitlines()[0] if doc.strip() else ""
