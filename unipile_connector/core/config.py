"""Application configuration loaded from environment variables.

Settings for the database, the HTTP API, JWT verification, the Unipile
automation API and the connection engine. Uses pydantic-settings for
validation and .env file support.
"""

import uuid

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "connector_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "unipile_connector"
    database_user: str = "postgres"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8080

    # CORS
    # Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Authentication
    # Local mode: DEFAULT_USER_ID provides user context without JWT
    # Hosted mode: auth_enabled=True, JWT cookie required on every request
    default_user_id: uuid.UUID | None = None
    auth_enabled: bool = False
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "unipile-connector"
    auth_audience: str = "unipile-connector"
    auth_cookie_name: str = "connector.session-token"

    # Unipile automation API
    unipile_base_url: str = "https://api.unipile.com"
    unipile_api_key: SecretStr = SecretStr("")
    unipile_timeout_seconds: float = 30.0

    # Connection engine
    # Unipile keeps a checkpoint alive for ~5 minutes; expire ours slightly earlier
    checkpoint_ttl_seconds: int = 270
    long_poll_default_seconds: float = 300.0

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants.

        Checks:
        - Checkpoint TTL and long-poll default must be positive (all environments)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars when auth is enabled in production
        - UNIPILE_API_KEY must be set in production
        """
        if self.checkpoint_ttl_seconds <= 0:
            msg = (
                "CHECKPOINT_TTL_SECONDS must be positive. "
                f"Got: {self.checkpoint_ttl_seconds}"
            )
            raise ValueError(msg)
        if self.long_poll_default_seconds <= 0:
            msg = (
                "LONG_POLL_DEFAULT_SECONDS must be positive. "
                f"Got: {self.long_poll_default_seconds}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if self.auth_enabled:
                secret_value = self.auth_secret.get_secret_value()
                if not secret_value:
                    msg = "AUTH_SECRET must be set when AUTH_ENABLED=true in production."
                    raise ValueError(msg)
                if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                    msg = (
                        f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                        "characters for adequate security."
                    )
                    raise ValueError(msg)

            if not self.unipile_api_key.get_secret_value():
                msg = "UNIPILE_API_KEY must be set in production."
                raise ValueError(msg)

        return self


settings = Settings()
