"""
JWT token validation and caller extraction.

This module handles the Authentication (AuthN) layer for MCP requests:
- Extracts Bearer tokens from the HTTP Authorization header
- Validates JWT signature and expiration
- Extracts the caller's identity and role claims into a Caller value

Authorization (AuthZ) is not decided here. The resulting Caller is handed to
the authorization pre-filter and the role resolver, which decide what the
caller may list and invoke.

Token structure (JWT payload):
    {
        "sub": "user-or-agent-id",          # Who is making the request
        "preferred_username": "admin",      # Host user lookup key
        "role": "Admin",                    # Optional direct role claim
        "realm_roles": ["Admin"],           # Optional Keycloak-style roles
        "exp": 1738800000                   # Expiration (Unix timestamp)
    }

A request without an Authorization header is anonymous. A request with a
header that fails validation is also treated as anonymous (fail closed: it
never gains more access than an anonymous caller), and the reason is logged.
"""

import logging
from dataclasses import dataclass

import jwt

from toolgate.authorization import Caller
from toolgate.config import settings

logger = logging.getLogger("toolgate.auth")


class AuthError(Exception):
    """
    Raised when token validation fails for any reason.

    One exception type for all token failures (missing, malformed, bad
    signature, expired, bad claims). Detailed reasons are logged server-side
    only.

    Attributes:
        message: Human-readable error description (logged server-side)
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class TokenInfo:
    """
    Validated token information extracted from a JWT.

    Attributes:
        subject: The "sub" claim
        username: The "preferred_username" claim, if present
        roles: Role names from the "role" and "realm_roles" claims
        claims: The full decoded payload
    """

    subject: str
    username: str | None
    roles: list[str]
    claims: dict


def validate_token(
    authorization_header: str | None,
    secret: str | None = None,
    algorithm: str | None = None,
) -> TokenInfo:
    """
    Validate a Bearer token from the Authorization header.

    Args:
        authorization_header: The raw Authorization header value,
                              expected format: "Bearer <jwt-token>"
        secret: Signing key override (defaults to settings.jwt_secret_key)
        algorithm: Algorithm override (defaults to settings.jwt_algorithm)

    Returns:
        TokenInfo with the validated subject, username and roles

    Raises:
        AuthError: If any validation step fails
    """
    # Step 1: Check header presence
    if not authorization_header:
        raise AuthError("Missing Authorization header")

    # Step 2: Extract the token from "Bearer <token>" (scheme is case-insensitive)
    parts = authorization_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError("Invalid Authorization header format, expected 'Bearer <token>'")

    token = parts[1].strip()

    # Step 3: Decode and verify signature + expiration.
    # "exp" and "sub" are required so tokens have a finite lifetime and an
    # identity to put in the audit log.
    try:
        payload = jwt.decode(
            token,
            secret or settings.jwt_secret_key,
            algorithms=[algorithm or settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")

    # Step 4: Extract and type-check identity claims
    subject = payload.get("sub", "")

    username = payload.get("preferred_username")
    if username is not None and not isinstance(username, str):
        raise AuthError("Invalid preferred_username claim: must be a string")

    return TokenInfo(
        subject=subject,
        username=username,
        roles=_role_claims(payload),
        claims=payload,
    )


def _role_claims(payload: dict) -> list[str]:
    roles: list[str] = []

    role = payload.get("role")
    if role is not None:
        if not isinstance(role, str):
            raise AuthError("Invalid role claim: must be a string")
        roles.append(role)

    realm_roles = payload.get("realm_roles", [])
    if isinstance(realm_roles, str):
        realm_roles = [realm_roles]
    if not isinstance(realm_roles, list):
        raise AuthError("Invalid realm_roles claim: must be a list")
    if not all(isinstance(r, str) for r in realm_roles):
        raise AuthError("Invalid realm_roles claim: all entries must be strings")
    roles.extend(r for r in realm_roles if r not in roles)

    return roles


def caller_from_header(
    authorization_header: str | None,
    request_id: str = "-",
    secret: str | None = None,
    algorithm: str | None = None,
) -> Caller:
    """
    Build the Caller for one request.

    Never raises for bad credentials: a missing or invalid token yields an
    anonymous caller, and the pre-filter then denies anything that needs
    authentication.
    """
    if not authorization_header:
        return Caller.anonymous()

    try:
        token_info = validate_token(authorization_header, secret, algorithm)
    except AuthError as e:
        logger.warning(
            "Authentication failed",
            extra={
                "auth_data": {
                    "request_id": request_id,
                    "decision": "anonymous",
                    "reason": e.message,
                }
            },
        )
        return Caller.anonymous()

    logger.info(
        "Authentication successful",
        extra={
            "auth_data": {
                "request_id": request_id,
                "subject": token_info.subject,
                "roles": token_info.roles,
                "decision": "authenticated",
            }
        },
    )
    return Caller(
        authenticated=True,
        subject=token_info.subject,
        username=token_info.username,
        roles=frozenset(token_info.roles),
        claims=token_info.claims,
    )
