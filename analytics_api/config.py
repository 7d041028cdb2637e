"""
Analytics API Configuration Module

Centralized configuration management with Pydantic validation.
All environment variables are validated at startup to catch misconfigurations early.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class AnalyticsSettings(BaseSettings):
    """
    Analytics API configuration with validation.

    All settings can be overridden via environment variables
    (JWT_SECRET = jwt_secret, case-insensitive).
    """

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, extra="ignore")

    # === Security ===
    jwt_secret: Optional[str] = Field(
        default=None,
        min_length=16,
        description="HS256 secret used to verify bearer tokens (min 16 chars)",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )

    # === CORS ===
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins",
    )

    # === MongoDB ===
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    mongo_db_name: str = Field(default="jobtracker", description="MongoDB database name")

    # === Automation ===
    enable_automation: bool = Field(
        default=False,
        description="Start the automation scheduler with the app",
    )

    # === Logging ===
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="simple", description="simple or json")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of: {', '.join(sorted(allowed))}")
        return v_lower

    @field_validator("jwt_secret")
    @classmethod
    def validate_secret_strength(cls, v: Optional[str]) -> Optional[str]:
        """Reject well-known weak secrets."""
        if v is None:
            return None
        weak_secrets = {"secret", "password", "changeme", "jwt-secret-change-me"}
        if v.lower() in weak_secrets or len(set(v)) < 4:
            raise ValueError("JWT secret is too weak - use a secure random string")
        return v

    @field_validator("mongodb_uri")
    @classmethod
    def validate_url_format(cls, v: str) -> str:
        """Basic URL format validation."""
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(f"Invalid URL format: {v}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {"simple", "json"}:
            raise ValueError("log_format must be 'simple' or 'json'")
        return v_lower

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration is suitable for production.

        Returns list of warning/error messages.
        """
        issues = []

        if not self.jwt_secret:
            if self.is_production:
                issues.append("CRITICAL: JWT_SECRET required in production")
            else:
                issues.append("WARNING: JWT_SECRET not set, every authenticated request will be rejected")

        if self.is_production:
            if not self.cors_origins:
                issues.append("WARNING: CORS_ORIGINS not configured")
            if "localhost" in self.mongodb_uri:
                issues.append("WARNING: Using localhost MongoDB in production")

        return issues


@lru_cache()
def get_settings() -> AnalyticsSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for performance.
    """
    return AnalyticsSettings()


def validate_config_on_startup() -> None:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    Logs warnings for non-critical issues.
    """
    try:
        settings = get_settings()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e

    for issue in settings.validate_production_config():
        if issue.startswith("CRITICAL"):
            raise ValueError(issue)
        logger.warning(issue)

    logger.info(f"Configuration loaded: environment={settings.environment}")
    logger.info(f"  mongodb_uri={'*****' if 'localhost' not in settings.mongodb_uri else settings.mongodb_uri}")
    logger.info(f"  automation={'enabled' if settings.enable_automation else 'disabled'}")
