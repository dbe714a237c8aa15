"""
Application configuration loaded from environment variables.

Uses pydantic-settings: every field maps to an MCP_-prefixed environment
variable (MCP_PORT, MCP_JWT_SECRET_KEY, MCP_REQUIRE_AUTHENTICATION, ...), with
an optional .env file for local development. List fields such as
MCP_TOOL_MODULES are given as JSON: MCP_TOOL_MODULES='["toolgate.users"]'.
"""

from pydantic_settings import BaseSettings

from toolgate.naming import NamingConvention


class Settings(BaseSettings):
    """
    Server configuration with environment variable bindings.

    The `model_config` at the bottom controls the prefix and .env file behavior.
    """

    # --- Server settings ---

    # "0.0.0.0" listens on all interfaces (needed inside containers).
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    # --- Authentication settings ---

    # Default is for local development only - NEVER use this in production.
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    # --- Tool bridge settings ---

    # Reject every MCP request (listing and calls) that carries no valid token.
    # When off, anonymous callers can still call tools marked allow_anonymous.
    require_authentication: bool = True

    # Evaluate the authorization requirements declared on operations before
    # each call. When off, requirements are ignored.
    use_authorization: bool = True

    # Path the MCP endpoint is served on.
    mcp_endpoint_path: str = "/mcp"

    # Modules whose register(builder) function declares the exposed operations.
    tool_modules: list[str] = ["toolgate.users"]

    # Style of tool names and of field names in marshalled results.
    naming_convention: NamingConvention = NamingConvention.SNAKE_CASE

    model_config = {
        "env_prefix": "MCP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


# Singleton instance: import this from other modules.
settings = Settings()
