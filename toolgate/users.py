"""
User management operations, shared by the HTTP API and the MCP tool channel.

The operations live on UsersOperations, the same way a web handler class
would hold them: an instance is built per request from that request's
services. They return status-coded outcomes (ok(...), created(...)) as a web
handler would, and the tool bridge unwraps those for MCP clients.

Domain failures ("user not found") are returned as successful payloads with
an "error" field, never as error outcomes, so MCP clients receive them as
ordinary tool results.

Authorization declared in register():
    group "users":          authenticated callers only
    create:                 + RequireMember
    update:                 + RequireManager
    promote_to_manager:     + RequireAdmin
    get_public_info:        anonymous access allowed (overrides the group)
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from toolgate.authorization import authorize
from toolgate.invocation import RequestTracker
from toolgate.outcomes import ActionResult, ObjectResult, created, ok
from toolgate.registry import RegistryBuilder
from toolgate.roles import PolicyNames, RoleLevel

if TYPE_CHECKING:
    from toolgate.host import ServiceScope

SERVER_VERSION = "1.8.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime = Field(default_factory=_utcnow)
    role: RoleLevel = RoleLevel.MEMBER


class CreateUserRequest(BaseModel):
    name: str = Field(description="Full name of the new user")
    email: str = Field(description="Email address, also used as login name")


class UpdateUserRequest(BaseModel):
    name: str
    email: str


class ScopeIdResponse(BaseModel):
    request_id: uuid.UUID
    created_at: datetime
    message: str


def _seed_users() -> list[User]:
    return [
        User(id=1, name="Alice Smith", email="alice@example.com", role=RoleLevel.MEMBER),
        User(id=2, name="Bob Jones", email="bob@example.com", role=RoleLevel.MANAGER),
        User(id=3, name="Carol White", email="carol@example.com", role=RoleLevel.ADMIN),
        User(id=100, name="Admin User", email="admin", role=RoleLevel.ADMIN),
        User(id=101, name="Regular User", email="user", role=RoleLevel.MEMBER),
        User(id=102, name="Viewer User", email="viewer", role=RoleLevel.VIEWER),
    ]


class UserStore:
    """
    In-memory user persistence shared across requests.

    Returns copies so callers can't mutate stored users behind the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users = _seed_users()

    def get_by_id(self, user_id: int) -> User | None:
        with self._lock:
            user = next((u for u in self._users if u.id == user_id), None)
            return user.model_copy() if user else None

    def get_by_email(self, email: str) -> User | None:
        with self._lock:
            user = next((u for u in self._users if u.email == email), None)
            return user.model_copy() if user else None

    def get_all(self) -> list[User]:
        with self._lock:
            return [u.model_copy() for u in self._users]

    def add(self, name: str, email: str, role: RoleLevel = RoleLevel.MEMBER) -> User:
        with self._lock:
            user = User(id=max(u.id for u in self._users) + 1, name=name, email=email, role=role)
            self._users.append(user)
            return user.model_copy()

    def update(self, user_id: int, **changes) -> User | None:
        with self._lock:
            for index, user in enumerate(self._users):
                if user.id == user_id:
                    self._users[index] = user.model_copy(update=changes)
                    return self._users[index].model_copy()
            return None


class UserService:
    """Request-scoped access to the user store."""

    def __init__(self, store: UserStore):
        self._store = store

    async def get_by_id(self, user_id: int) -> User | None:
        return self._store.get_by_id(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return self._store.get_by_email(email)

    async def get_all(self) -> list[User]:
        return self._store.get_all()

    async def create(self, name: str, email: str) -> User:
        return self._store.add(name, email)

    async def update(self, user_id: int, name: str, email: str) -> User | None:
        return self._store.update(user_id, name=name, email=email)

    async def set_role(self, user_id: int, role: RoleLevel) -> User | None:
        return self._store.update(user_id, role=role)


def _user_not_found(user_id: int) -> ObjectResult:
    return ok({"error": "User not found", "id": user_id})


class UsersOperations:
    def __init__(self, users: UserService, tracker: RequestTracker):
        self._users = users
        self._tracker = tracker

    @classmethod
    def from_scope(cls, scope: "ServiceScope") -> "UsersOperations":
        return cls(scope.users, scope.tracker)

    async def get_by_id(self, id: int) -> ActionResult[User]:
        user = await self._users.get_by_id(id)
        if user is None:
            return ActionResult(result=_user_not_found(id))
        return ActionResult(value=user)

    async def get_all(self) -> ActionResult[list[User]]:
        return ActionResult(result=ok(await self._users.get_all()))

    async def create(self, request: CreateUserRequest) -> ActionResult[User]:
        user = await self._users.create(request.name, request.email)
        return ActionResult(result=created(user))

    async def update(self, id: int, request: UpdateUserRequest) -> ActionResult[User]:
        user = await self._users.update(id, request.name, request.email)
        if user is None:
            return ActionResult(result=_user_not_found(id))
        return ActionResult(result=ok(user))

    async def promote_to_manager(self, id: int) -> ActionResult[User]:
        user = await self._users.set_role(id, RoleLevel.MANAGER)
        if user is None:
            return ActionResult(result=_user_not_found(id))
        return ActionResult(result=ok(user))

    def get_scope_id(self) -> ActionResult[ScopeIdResponse]:
        # Each invocation gets its own scope, hence its own tracker.
        return ActionResult(
            value=ScopeIdResponse(
                request_id=self._tracker.request_id,
                created_at=self._tracker.created_at,
                message="Each call should return a different ID if scoping works correctly",
            )
        )

    @staticmethod
    def get_public_info() -> ObjectResult:
        return ok(
            {
                "message": "This is public information accessible without authentication",
                "timestamp": _utcnow(),
                "server_version": SERVER_VERSION,
            }
        )


def register(builder: RegistryBuilder) -> None:
    users = builder.group(
        "users",
        factory=UsersOperations.from_scope,
        requirements=[authorize()],
    )
    users.add(UsersOperations.get_by_id, description="Gets a user by their ID")
    users.add(UsersOperations.get_all, description="Gets all users")
    users.add(
        UsersOperations.create,
        description="Creates a new user - requires Member role",
        requirements=[authorize(policy=PolicyNames.REQUIRE_MEMBER)],
    )
    users.add(
        UsersOperations.update,
        description="Updates a user - requires Manager role",
        requirements=[authorize(policy=PolicyNames.REQUIRE_MANAGER)],
    )
    users.add(
        UsersOperations.promote_to_manager,
        description="Promotes a user to Manager - requires Admin role",
        requirements=[authorize(policy=PolicyNames.REQUIRE_ADMIN)],
    )
    users.add(
        UsersOperations.get_scope_id,
        description="Returns the current request scope ID for scoping diagnostics",
    )
    users.add(
        UsersOperations.get_public_info,
        description="Gets public information without authentication",
        allow_anonymous=True,
    )
