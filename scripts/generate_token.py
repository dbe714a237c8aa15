"""
CLI utility to generate JWT tokens for testing the MCP server.

In production, tokens come from the identity provider (e.g. Keycloak). This
script plays that role locally: it mints tokens with the claims the server
reads (sub, preferred_username, role) and signs them with the server's secret.

The server resolves a caller's role by looking up preferred_username in its
user store. The seeded users are:

    admin   -> Admin       user   -> Member       viewer -> Viewer
    alice@example.com -> Member, bob@example.com -> Manager,
    carol@example.com -> Admin

Usage examples:

    # Token for the seeded admin user
    python -m scripts.generate_token --sub admin-1 --username admin

    # Member token with an explicit role claim
    python -m scripts.generate_token --sub u-101 --username user --role Member

    # Expired token (for testing rejection)
    python -m scripts.generate_token --sub u-101 --username user --exp-hours -1

The generated token can be used with any MCP client over streamable HTTP:

    curl -X POST http://localhost:8080/mcp \\
      -H "Content-Type: application/json" \\
      -H "Accept: application/json, text/event-stream" \\
      -H "Authorization: Bearer <token>" \\
      -d '{"jsonrpc":"2.0","id":1,"method":"initialize",...}'
"""

import argparse
import datetime

import jwt


def generate_token(
    subject: str,
    secret: str,
    username: str | None = None,
    roles: list[str] | None = None,
    algorithm: str = "HS256",
    exp_hours: float = 8.0,
) -> str:
    """
    Generate a signed JWT token with the given claims.

    Args:
        subject: The "sub" claim
        secret: The signing key (must match the server's MCP_JWT_SECRET_KEY)
        username: The "preferred_username" claim (user store lookup key)
        roles: Role names for the "realm_roles" claim
        algorithm: JWT signing algorithm (default: HS256)
        exp_hours: Hours until expiration (negative = already expired)

    Returns:
        The encoded JWT token string
    """
    now = datetime.datetime.now(datetime.timezone.utc)

    payload: dict = {
        "sub": subject,
        "iat": now,
        "exp": now + datetime.timedelta(hours=exp_hours),
    }
    if username:
        payload["preferred_username"] = username
    if roles:
        payload["realm_roles"] = roles

    return jwt.encode(payload, secret, algorithm=algorithm)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate JWT tokens for the toolgate MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--sub", required=True, help="Subject claim (e.g. 'admin-1')")
    parser.add_argument(
        "--username",
        help="preferred_username claim, used to look up the caller's role (e.g. 'admin')",
    )
    parser.add_argument(
        "--role",
        nargs="+",
        default=[],
        help="Role names for the realm_roles claim (e.g. Member Manager)",
    )
    parser.add_argument(
        "--secret",
        default="dev-secret-change-me",
        help="JWT signing secret (must match server's MCP_JWT_SECRET_KEY)",
    )
    parser.add_argument("--algorithm", default="HS256", help="JWT signing algorithm")
    parser.add_argument(
        "--exp-hours",
        type=float,
        default=8.0,
        help="Hours until token expires (negative = already expired, default: 8)",
    )

    args = parser.parse_args()

    token = generate_token(
        subject=args.sub,
        secret=args.secret,
        username=args.username,
        roles=args.role,
        algorithm=args.algorithm,
        exp_hours=args.exp_hours,
    )

    print(f"Subject:    {args.sub}")
    print(f"Username:   {args.username}")
    print(f"Roles:      {args.role}")
    print(f"Algorithm:  {args.algorithm}")
    print()
    print(f"Token: {token}")


if __name__ == "__main__":
    main()
