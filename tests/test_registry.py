"""
Unit tests for operation discovery and the tool registry.

Covers the catalog built from toolgate.users (names, binding, inherited
requirements, minimum roles, exposed signatures) and every startup conflict
the builder rejects.
"""

import pytest

from toolgate.authorization import AuthorizationRequirement, authorize
from toolgate.errors import DiscoveryConflict
from toolgate.naming import NamingConvention
from toolgate.registry import RegistryBuilder, discover
from toolgate.roles import PolicyNames, Restriction, RoleLevel
from toolgate.users import CreateUserRequest

USER_TOOLS = {
    "get_by_id",
    "get_all",
    "create",
    "update",
    "promote_to_manager",
    "get_scope_id",
    "get_public_info",
}


@pytest.fixture(scope="module")
def registry():
    return discover(["toolgate.users"])


class TestUsersCatalog:
    def test_all_operations_are_registered(self, registry):
        assert set(registry.names()) == USER_TOOLS
        assert len(registry) == len(USER_TOOLS)

    def test_instance_operations_are_bound(self, registry):
        operation = registry.get("get_by_id")

        assert operation.is_static is False
        assert operation.group == "users"
        assert operation.factory is not None

    def test_static_operation_is_not_bound(self, registry):
        operation = registry.get("get_public_info")

        assert operation.is_static is True
        assert operation.factory is None

    def test_group_requirements_come_first(self, registry):
        assert registry.get("create").requirements == (
            AuthorizationRequirement(),
            AuthorizationRequirement(policy=PolicyNames.REQUIRE_MEMBER),
        )

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("get_by_id", Restriction.UNRESTRICTED),
            ("get_all", Restriction.UNRESTRICTED),
            ("get_scope_id", Restriction.UNRESTRICTED),
            ("get_public_info", Restriction.UNRESTRICTED),
            ("create", RoleLevel.MEMBER),
            ("update", RoleLevel.MANAGER),
            ("promote_to_manager", RoleLevel.ADMIN),
        ],
    )
    def test_minimum_roles(self, registry, name, expected):
        assert registry.get(name).minimum_role is expected

    def test_anonymous_marker(self, registry):
        assert registry.get("get_public_info").allow_anonymous is True
        assert registry.get("get_by_id").allow_anonymous is False

    def test_signature_excludes_self(self, registry):
        operation = registry.get("update")

        assert list(operation.signature.parameters) == ["id", "request"]

    def test_annotations_are_resolved(self, registry):
        assert dict(registry.get("create").annotations) == {"request": CreateUserRequest}
        assert dict(registry.get("get_by_id").annotations) == {"id": int}

    def test_descriptions_are_carried(self, registry):
        assert registry.get("get_all").description == "Gets all users"

    def test_unknown_name(self, registry):
        assert registry.get("delete_everything") is None
        assert "delete_everything" not in registry

    def test_camel_case_convention(self):
        camel = discover(["toolgate.users"], convention=NamingConvention.CAMEL_CASE)

        assert "getById" in camel
        assert "promoteToManager" in camel
        assert camel.get("getById").identifier == "get_by_id"


class TestBuilder:
    def test_description_defaults_to_first_docstring_line(self):
        def ping():
            """Checks liveness.

            Longer explanation that is not part of the description.
            """
            return "pong"

        builder = RegistryBuilder()
        builder.add(ping)

        assert builder.build().get("ping").description == "Checks liveness."

    def test_explicit_name_is_canonicalized(self):
        async def handler():
            return None

        builder = RegistryBuilder()
        builder.add(handler, name="GetStatusAsync")
        registry = builder.build()

        assert registry.names() == ["get_status"]
        assert registry.get("get_status").identifier == "GetStatusAsync"

    def test_ungrouped_operation_with_self_is_static(self):
        def tool(self):
            return self

        builder = RegistryBuilder()
        builder.add(tool)

        assert builder.build().get("tool").is_static is True

    def test_void_return_annotation_is_recorded(self):
        async def notify() -> None:
            return None

        async def lookup() -> int | None:
            return None

        async def untyped():
            return None

        builder = RegistryBuilder()
        builder.add(notify)
        builder.add(lookup)
        builder.add(untyped)
        registry = builder.build()

        assert registry.get("notify").returns_void is True
        assert registry.get("lookup").returns_void is False
        assert registry.get("untyped").returns_void is False

    def test_registry_is_not_affected_by_later_registrations(self):
        def first():
            return 1

        def second():
            return 2

        builder = RegistryBuilder()
        builder.add(first)
        registry = builder.build()
        builder.add(second)

        assert registry.names() == ["first"]


class TestDiscoveryConflicts:
    def test_duplicate_canonical_name(self):
        def one():
            return 1

        def two():
            return 2

        builder = RegistryBuilder()
        builder.add(one, name="GetByIdAsync")
        builder.add(two, name="get_by_id")

        with pytest.raises(DiscoveryConflict, match="Duplicate tool name 'get_by_id'"):
            builder.build()

    def test_duplicate_group(self):
        builder = RegistryBuilder()
        builder.group("users")

        with pytest.raises(DiscoveryConflict, match="registered twice"):
            builder.group("users")

    def test_requirement_with_policy_and_roles(self):
        def op():
            return None

        builder = RegistryBuilder()
        builder.add(op, requirements=[AuthorizationRequirement(policy="A", roles={"Admin"})])

        with pytest.raises(DiscoveryConflict, match="both a policy and roles"):
            builder.build()

    def test_blank_policy_name(self):
        def op():
            return None

        builder = RegistryBuilder()
        builder.add(op, requirements=[authorize(policy="  ")])

        with pytest.raises(DiscoveryConflict, match="empty policy name"):
            builder.build()

    def test_empty_role_set(self):
        def op():
            return None

        builder = RegistryBuilder()
        builder.add(op, requirements=[authorize(roles=[])])

        with pytest.raises(DiscoveryConflict, match="empty role set"):
            builder.build()

    def test_malformed_group_requirement(self):
        def op(self):
            return None

        builder = RegistryBuilder()
        group = builder.group(
            "broken",
            factory=lambda scope: object(),
            requirements=[authorize(roles=[])],
        )
        group.add(op)

        with pytest.raises(DiscoveryConflict, match="empty role set"):
            builder.build()

    def test_variadic_parameters(self):
        def op(*items):
            return items

        builder = RegistryBuilder()
        builder.add(op)

        with pytest.raises(DiscoveryConflict, match="can't be exposed"):
            builder.build()

    def test_unresolvable_type_hint(self):
        def op(value: "UndefinedModel"):  # noqa: F821
            return value

        builder = RegistryBuilder()
        builder.add(op)

        with pytest.raises(DiscoveryConflict, match="type hints"):
            builder.build()

    def test_uncallable_operation(self):
        builder = RegistryBuilder()

        with pytest.raises(DiscoveryConflict, match="not callable"):
            builder.add("get_by_id")

    def test_module_without_register_function(self):
        with pytest.raises(DiscoveryConflict, match="toolgate.naming"):
            discover(["toolgate.naming"])
