"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required secrets for production:
- SPORTSDATA_API_KEY (upstream SportsData.io key)
- ADMIN_TOKEN (shared secret for the sync trigger endpoint)
"""
import os
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Get the project root directory (3 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESPONSE_BYTES = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "NFL Data Sync API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    SSL_CERTFILE: Optional[str] = None
    SSL_KEYFILE: Optional[str] = None

    # Document store
    DATABASE_URL: str = "sqlite:///./nfl_data.db"
    DATABASE_NAME: str = "nfl_data"
    SQL_ECHO: bool = False

    # SportsData.io
    SPORTSDATA_API_KEY: str = ""
    SPORTSDATA_BASE_URL: str = "https://api.sportsdata.io/v3/nfl"
    SEASON: int = 2023
    SEASON_TYPE: Literal["REG", "PRE", "POST"] = "REG"
    API_CALL_DELAY: float = 1.0  # seconds between upstream calls
    API_TIMEOUT: float = 10.0
    API_CONNECT_TIMEOUT: float = 5.0
    MAX_RESPONSE_BYTES: int = DEFAULT_MAX_RESPONSE_BYTES

    # Scheduling
    SYNC_INTERVAL_HOURS: float = 24.0
    RUN_SCHEDULER_IN_API: bool = False
    SYNC_LEASE_TTL_MINUTES: float = 120.0  # cross-process run lease, extended every week

    # Security secrets
    ADMIN_TOKEN: str = ""

    # Rate limiting (inbound HTTP)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"

    # Metrics
    METRICS_ENABLED: bool = True

    # Tracing (OpenTelemetry)
    TRACING_ENABLED: bool = True
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[str] = None  # e.g. http://jaeger:4317
    OTEL_SAMPLING_RATIO: float = 0.1

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = ""  # Environment variable: comma-separated origins

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Get CORS origins with environment-aware defaults."""
        if self.CORS_ORIGINS_STR:
            origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
            if origins:
                # Reject wildcard in production
                if self.is_production() and "*" in origins:
                    logger.warning(
                        "Wildcard CORS origins (*) are not allowed in production. "
                        "Please set explicit origins in CORS_ORIGINS_STR environment variable."
                    )
                    return []
                return origins

        if self.is_production():
            logger.warning(
                "CORS_ORIGINS_STR not set in production. "
                "Please set CORS_ORIGINS_STR environment variable with explicit origins."
            )
            return []
        return [
            "http://localhost:3000",
            "http://localhost:8080",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8080",
        ]

    @property
    def season_param(self) -> str:
        """Upstream season parameter for the configured season, e.g. ``2023REG``."""
        return f"{self.SEASON}{self.SEASON_TYPE}"

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required secrets are set for the current environment.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if not self.SPORTSDATA_API_KEY:
            missing.append("SPORTSDATA_API_KEY")

        # The trigger endpoint stays closed without a token, but production must configure one
        if self.is_production() and not self.ADMIN_TOKEN:
            missing.append("ADMIN_TOKEN")

        return missing

    def ensure_startup_secrets(self) -> None:
        """
        Log missing secrets and refuse to start in production without them.

        Raises:
            ValueError: In production when any required secret is missing
        """
        missing_secrets = self.validate_required_secrets()
        if not missing_secrets:
            return
        logger.warning(f"Missing required secrets for {self.ENVIRONMENT}: {', '.join(missing_secrets)}")
        if self.is_production():
            raise ValueError(
                f"Cannot start in production with missing secrets: {', '.join(missing_secrets)}. "
                f"Please set these environment variables in .env.production"
            )


def _load_env_file() -> Path:
    """
    Load the appropriate environment file based on ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
        return default_env

    logger.debug(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


@lru_cache
def get_settings() -> Settings:
    """
    Build the settings once per process from the detected environment file.

    Returns:
        Cached Settings instance
    """
    env_file = _load_env_file()
    return Settings(_env_file=str(env_file))
