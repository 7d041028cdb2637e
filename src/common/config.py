"""
Configuration loader for the analytics service.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Centralized configuration for the reporting layer.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== Environment =====
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()

    # ===== MongoDB =====
    MONGODB_URI: str = os.getenv("MONGODB_URI", "")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "job_tracker")

    # Source collections (owned by the application-tracking backend)
    JOB_APPLICATIONS_COLLECTION: str = os.getenv("JOB_APPLICATIONS_COLLECTION", "jobapplications")
    USERS_COLLECTION: str = os.getenv("USERS_COLLECTION", "users")
    USER_SESSIONS_COLLECTION: str = os.getenv("USER_SESSIONS_COLLECTION", "usersessions")
    RESUMES_COLLECTION: str = os.getenv("RESUMES_COLLECTION", "resumes")
    AUTOMATION_TASKS_COLLECTION: str = os.getenv("AUTOMATION_TASKS_COLLECTION", "automation_tasks")

    # ===== Cache =====
    # "memory" (process-local) or "redis" (shared across instances)
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "memory").lower()
    REDIS_URL: str = os.getenv("REDIS_URL", "")
    CACHE_KEY_PREFIX: str = os.getenv("CACHE_KEY_PREFIX", "analytics:")

    # TTLs in seconds per report type
    DEFAULT_CACHE_TTL: int = int(os.getenv("DEFAULT_CACHE_TTL", "300"))
    DASHBOARD_CACHE_TTL: int = int(os.getenv("DASHBOARD_CACHE_TTL", "600"))
    USER_ANALYTICS_CACHE_TTL: int = int(os.getenv("USER_ANALYTICS_CACHE_TTL", "300"))
    COMPANY_ANALYTICS_CACHE_TTL: int = int(os.getenv("COMPANY_ANALYTICS_CACHE_TTL", "900"))

    # Requests slower than this are logged as slow queries
    SLOW_QUERY_MS: int = int(os.getenv("SLOW_QUERY_MS", "2000"))

    # ===== Gemini =====
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-3-flash-preview")
    AI_TIMEOUT_SECONDS: float = float(os.getenv("AI_TIMEOUT_SECONDS", "45"))
    AI_MAX_RETRIES: int = int(os.getenv("AI_MAX_RETRIES", "2"))
    # Wait before retry N is N * AI_RETRY_WAIT_SECONDS
    AI_RETRY_WAIT_SECONDS: float = float(os.getenv("AI_RETRY_WAIT_SECONDS", "2"))

    # Temperature settings
    ANALYTICAL_TEMPERATURE: float = 0.3

    # ===== Automation =====
    ENABLE_AUTOMATION: bool = os.getenv("ENABLE_AUTOMATION", "false").lower() == "true"
    TASK_SCAN_INTERVAL_SECONDS: int = int(os.getenv("TASK_SCAN_INTERVAL_SECONDS", "60"))
    ALERT_SCAN_INTERVAL_SECONDS: int = int(os.getenv("ALERT_SCAN_INTERVAL_SECONDS", "300"))
    PERSIST_AUTOMATION_STATE: bool = os.getenv("PERSIST_AUTOMATION_STATE", "false").lower() == "true"

    # ===== Alerting =====
    SLACK_WEBHOOK_URL: str = os.getenv("SLACK_WEBHOOK_URL", "")

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required configuration is present.
        Raises ValueError if critical settings are missing.
        """
        required_settings = {
            "MONGODB_URI": cls.MONGODB_URI,
        }

        if cls.CACHE_BACKEND == "redis":
            required_settings["REDIS_URL"] = cls.REDIS_URL

        missing = [name for name, value in required_settings.items() if not value]

        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                f"Please check your .env file."
            )

        if cls.CACHE_BACKEND not in {"memory", "redis"}:
            raise ValueError(
                f"CACHE_BACKEND must be 'memory' or 'redis', got '{cls.CACHE_BACKEND}'"
            )

        if cls.AI_MAX_RETRIES < 1:
            raise ValueError("AI_MAX_RETRIES must be at least 1")

    @classmethod
    def is_production(cls) -> bool:
        """Production mode switches logs to JSON lines."""
        return cls.ENVIRONMENT == "production"

    @classmethod
    def get_gemini_api_key(cls) -> Optional[str]:
        """Gemini key, or None when AI features are disabled."""
        return cls.GEMINI_API_KEY or None

    @classmethod
    def summary(cls) -> dict:
        """
        Get configuration summary for logging (secrets masked).
        """
        return {
            "environment": cls.ENVIRONMENT,
            "mongodb_uri": "***" if cls.MONGODB_URI else "(not set)",
            "database": cls.MONGO_DB_NAME,
            "cache_backend": cls.CACHE_BACKEND,
            "gemini_configured": bool(cls.GEMINI_API_KEY),
            "gemini_model": cls.GEMINI_MODEL,
            "ai_timeout_seconds": cls.AI_TIMEOUT_SECONDS,
            "ai_max_retries": cls.AI_MAX_RETRIES,
            "automation_enabled": cls.ENABLE_AUTOMATION,
        }


# Validate configuration on import (optional - can be called explicitly)
# Config.validate()
