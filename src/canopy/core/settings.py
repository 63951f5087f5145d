"""Application settings and configuration.

This module defines all configuration options for the Canopy application.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Services that need configuration (the submission guard, the reply
    dispatcher) receive an instance explicitly; the module-level ``settings``
    object is only the default used by the HTTP layer.
    """

    # Application metadata
    app_name: str = Field(default="Canopy", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./canopy.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Flood control: minimum seconds between two posts by the same actor.
    # Zero or less disables the check.
    throttle_time_seconds: int = Field(default=10, alias="THROTTLE_TIME_SECONDS")
    # Registered users granted the "throttle" capability.
    throttle_exempt_user_ids: list[int] = Field(
        default_factory=list,
        alias="THROTTLE_EXEMPT_USER_IDS",
    )

    # Duplicate detection look-back; 0 compares against every stored submission.
    duplicate_window_seconds: int = Field(default=0, alias="DUPLICATE_WINDOW_SECONDS")

    subscriptions_enabled: bool = Field(default=True, alias="SUBSCRIPTIONS_ENABLED")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    def capabilities_for(self, user_id: int | None) -> frozenset[str]:
        """Return the capability set configured for a registered user."""
        if user_id is not None and user_id in self.throttle_exempt_user_ids:
            return frozenset({"throttle"})
        return frozenset()


settings = Settings()
