"""
FastAPI application configuration using Pydantic Settings.

Provides centralized configuration for:
- Runtime environment (development, test, staging, production)
- MongoDB connection (lazy, optional)
- CORS allow-lists
- Request body limits
- Feature route resolution
- Stripe webhook verification
- Logging and metrics

Settings are read from the plain variable names the storefront deployment
already uses (NODE_ENV, MONGO_URI, FRONTEND_URL, PORT, ...) and from an
optional .env file.
"""

from functools import lru_cache
from typing import Dict, List, Optional

import structlog
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

KNOWN_ENVIRONMENTS = ("development", "test", "staging", "production")


DEFAULT_DEV_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5175",
    "http://localhost:5177",
    "http://localhost:5178",
    "http://localhost:5179",
]


def _env(name: str) -> AliasChoices:
    """Accept both the deployment variable name and the field name."""
    return AliasChoices(name, name.lower())


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are loaded from:
    1. System environment
    2. .env file in the current directory
    3. Default values defined below
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="Storefront API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="API version"
    )
    api_prefix: str = Field(
        default="/api",
        description="API URL prefix"
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("NODE_ENV", "environment"),
        description='Environment name; only "production" changes behaviour'
    )

    host: str = Field(
        default="0.0.0.0",
        validation_alias=_env("HOST"),
        description="API bind host"
    )
    port: int = Field(
        default=3003,
        validation_alias=_env("PORT"),
        description="API bind port (non-production only)",
        gt=0,
        lt=65536
    )

    # =========================================================================
    # Database Settings (MongoDB)
    # =========================================================================

    mongo_uri: Optional[str] = Field(
        default=None,
        validation_alias=_env("MONGO_URI"),
        description="MongoDB connection string. Unset means limited mode."
    )
    mongo_database: str = Field(
        default="shop",
        validation_alias=_env("MONGO_DATABASE"),
        description="Database used when the URI names none"
    )
    mongo_connect_timeout_ms: int = Field(
        default=5000,
        validation_alias=_env("MONGO_CONNECT_TIMEOUT_MS"),
        description="Server selection timeout for the first connection",
        gt=0
    )

    # =========================================================================
    # CORS Settings
    # =========================================================================

    frontend_url: Optional[str] = Field(
        default=None,
        validation_alias=_env("FRONTEND_URL"),
        description="Single allowed origin in production"
    )
    dev_origins: List[str] = Field(
        default=DEFAULT_DEV_ORIGINS,
        validation_alias=_env("DEV_ORIGINS"),
        description="Allowed CORS origins outside production"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow credentials (cookies, authorization headers) in CORS"
    )
    cors_allow_methods: List[str] = Field(
        default=["GET", "POST", "PUT", "DELETE"],
        description="Allowed HTTP methods"
    )
    cors_allow_headers: List[str] = Field(
        default=["Content-Type", "Authorization"],
        description="Allowed HTTP headers"
    )

    # =========================================================================
    # Request Body Settings
    # =========================================================================

    max_body_size: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        validation_alias=_env("MAX_BODY_SIZE"),
        description="Maximum request body size in bytes",
        gt=0
    )

    # =========================================================================
    # Feature Routes
    # =========================================================================

    routes_package: str = Field(
        default="routes",
        validation_alias=_env("ROUTES_PACKAGE"),
        description="Package holding the feature route modules"
    )
    route_modules: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias=_env("ROUTE_MODULES"),
        description="Per-feature module overrides, feature -> dotted path"
    )

    # =========================================================================
    # Stripe Webhook Settings
    # =========================================================================

    stripe_webhook_secret: Optional[str] = Field(
        default=None,
        validation_alias=_env("STRIPE_WEBHOOK_SECRET"),
        description="Signing secret for the Stripe webhook endpoint"
    )
    stripe_webhook_tolerance: int = Field(
        default=300,
        validation_alias=_env("STRIPE_WEBHOOK_TOLERANCE"),
        description="Accepted signature timestamp skew (seconds)",
        gt=0
    )

    # =========================================================================
    # Monitoring and Logging
    # =========================================================================

    security_headers_enabled: bool = Field(
        default=True,
        description="Enable security headers (X-Frame-Options, etc.)"
    )
    security_hsts_max_age: int = Field(
        default=31536000,  # 1 year
        description="HSTS max age (seconds), production only"
    )
    metrics_enabled: bool = Field(
        default=True,
        validation_alias=_env("METRICS_ENABLED"),
        description="Enable Prometheus metrics"
    )
    metrics_endpoint: str = Field(
        default="/metrics",
        description="Metrics endpoint path"
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=_env("LOG_LEVEL"),
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """
        Normalise NODE_ENV.

        Only "production" changes behaviour; any other name is accepted and
        runs with non-production defaults.
        """
        v_lower = v.strip().lower() or "development"
        if v_lower not in KNOWN_ENVIRONMENTS:
            logger.warning(
                "unknown_environment",
                environment=v_lower,
                known=list(KNOWN_ENVIRONMENTS),
                treated_as="non-production"
            )
        return v_lower

    @field_validator("mongo_uri", "frontend_url", "stripe_webhook_secret")
    @classmethod
    def blank_as_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty strings from the environment as unset."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        return "/" + v.strip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def mongo_uri_set(self) -> bool:
        return self.mongo_uri is not None

    @property
    def expose_error_details(self) -> bool:
        """Error messages reach clients everywhere except production."""
        return not self.is_production

    @property
    def cors_origins(self) -> List[str]:
        """
        Origins allowed by the CORS policy.

        Production allows only FRONTEND_URL; with it unset the list is empty
        and every cross-origin request is refused.
        """
        if self.is_production:
            return [self.frontend_url.rstrip("/")] if self.frontend_url else []
        return list(self.dev_origins)

    @property
    def health_path(self) -> str:
        return f"{self.api_prefix}/health"

    # =========================================================================
    # Model Config
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
        validate_default=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and shared
    across the application.

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


def clear_settings_cache():
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
