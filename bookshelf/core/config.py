from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


###############################################################################
# Define config settings
###############################################################################
class Settings(BaseSettings):
    """Application configuration management, supports environment variables and .env files."""

    # Basic application settings
    app_name: str = Field(default="bookshelf", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    app_description: str = Field(
        default="Book catalog backend with Supabase authentication",
        description="Application description",
    )
    environment: str = Field(default="development", description="Runtime environment")
    refresh_interval: int = Field(default=300, description="Refresh interval in seconds")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    workers: int = Field(default=4, description="Number of worker processes")
    timeout_keep_alive: int = Field(default=5, description="Keep-alive timeout")
    allowed_hosts: list[str] = Field(default=["*"], description="List of allowed hosts")

    # Database settings
    database_url: str | None = Field(default=None, description="Database connection URL")
    database_pool_size: int = Field(default=20, description="Connection pool size")
    database_max_overflow: int = Field(default=0, description="Maximum overflow connections for the pool")
    database_echo: bool = Field(default=False, description="Enable SQL logging")

    # Supabase settings
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_anon_key: str | None = Field(default=None, description="Supabase anonymous key")

    # Auth flow settings
    oauth_providers: list[str] = Field(default=["github", "google"], description="Enabled OAuth providers")
    callback_path: str = Field(default="/auth/callback", description="OAuth/code exchange callback path")
    login_path: str = Field(default="/login", description="Where to go after signing out")
    error_path: str = Field(default="/error", description="Generic auth error page")
    auth_code_error_path: str = Field(default="/auth/auth-code-error", description="Missing auth code page")
    reset_password_path: str = Field(default="/reset-password", description="Password reset landing page")
    session_cookie_max_age: int = Field(default=400 * 24 * 60 * 60, description="Session cookie lifetime")

    # CORS settings
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")
    cors_credentials: bool = Field(default=True, description="Allow CORS credentials")
    cors_enabled: bool = Field(default=True, description="Enable CORS")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed CORS methods")
    cors_allow_headers: list[str] = Field(
        default=["X-Requested-With", "X-Request-ID"], description="Allowed CORS headers"
    )
    cors_expose_headers: list[str] = Field(default=["X-Request-ID"], description="Exposed CORS headers")
    gzip_enabled: bool = Field(default=True, description="Enable GZip compression")
    gzip_min_size: int = Field(default=1000, description="Minimum size for GZip compression")

    # Logging settings
    log_level: str = Field(default="INFO", description="Log level")
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    log_file: str | None = Field(default=None, description="Path to log file")

    # Sentry settings
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN for error tracking")
    sentry_trace_sample_rate: float = Field(default=0.1, description="Sentry trace sample rate")
    sentry_profiles_sample_rate: float = Field(default=0.1, description="Sentry profiles sample rate")
    sentry_shutdown_timeout: int = Field(default=5, description="Sentry shutdown flush timeout in seconds")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    def model_post_init(self, __context: object) -> None:
        super().model_post_init(__context)
        if self.environment != "production":
            return

        required_fields = [
            "database_url",
            "supabase_url",
            "supabase_anon_key",
        ]
        for field_name in required_fields:
            if getattr(self, field_name) is None:
                raise ValueError(f"Missing required configuration: {field_name}")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @property
    def is_debug(self) -> bool:
        """Check if the application is in debug mode."""
        return self.environment == "development"

    @property
    def is_development(self) -> bool:
        """Local/development deployments skip proxy headers and secure cookies."""
        return self.environment == "development"


default_settings = Settings()  # Load settings from environment variables and defaults


###############################################################################
# Define logger settings
###############################################################################
def get_default_logger_config() -> dict[str, Any]:
    return {
        "console": {
            "enabled": True,
            "correlation_id_length": 8,
            "show_logger_name": False,
            "colorize_level": True,
        },
        "file": {
            "enabled": False,
            "format": "json",
            "path": "logs/app.log",
            "encoding": "utf-8",
            "mode": "a",
        },
        "external_loggers": {
            "propagate": [
                "uvicorn",
                "uvicorn.error",
                "uvicorn.access",
            ],
            "ignore": ["aiosqlite", "httpx", "httpcore", "sentry_sdk.errors"],
        },
    }
