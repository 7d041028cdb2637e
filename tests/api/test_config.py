"""
Tests for analytics API settings validation.
"""

import pytest
from pydantic import ValidationError

from analytics_api.config import AnalyticsSettings


class TestAnalyticsSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)

        settings = AnalyticsSettings(_env_file=None)

        assert settings.jwt_secret is None
        assert settings.jwt_algorithm == "HS256"
        assert settings.cors_origins_list == []
        assert settings.is_production is False

    def test_cors_origins_parsed(self):
        settings = AnalyticsSettings(cors_origins="https://a.example.com, https://b.example.com,")

        assert settings.cors_origins_list == ["https://a.example.com", "https://b.example.com"]

    @pytest.mark.parametrize("secret", ["short", "aaaaaaaaaaaaaaaaaaaa", "jwt-secret-change-me"])
    def test_weak_secret_rejected(self, secret):
        with pytest.raises(ValidationError):
            AnalyticsSettings(jwt_secret=secret)

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            AnalyticsSettings(environment="qa")

    def test_mongodb_uri_format(self):
        with pytest.raises(ValidationError):
            AnalyticsSettings(mongodb_uri="postgres://localhost")

    def test_production_requires_secret(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)

        settings = AnalyticsSettings(environment="production")

        issues = settings.validate_production_config()
        assert "CRITICAL: JWT_SECRET required in production" in issues
        assert "WARNING: Using localhost MongoDB in production" in issues

    def test_development_missing_secret_is_warning(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)

        issues = AnalyticsSettings(environment="development").validate_production_config()

        assert issues == ["WARNING: JWT_SECRET not set, every authenticated request will be rejected"]
