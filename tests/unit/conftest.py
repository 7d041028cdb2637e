"""
Global fixtures for all unit tests.

This conftest provides autouse fixtures that prevent real external service calls:
- MongoDB connection attempts (would cause 5-30s timeout per test)
- Environment variable isolation (prevents credential leakage)

These fixtures apply automatically to ALL tests in tests/unit/.
"""

import os
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

# Set test environment BEFORE any imports to prevent Config from loading real values
os.environ["ENVIRONMENT"] = "development"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["GEMINI_API_KEY"] = ""

from src.analytics.queries import AnalyticsQueries  # noqa: E402

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture(autouse=True)
def mock_mongodb():
    """
    Prevent MongoDB connection attempts in all unit tests.

    MongoClient("") defaults to localhost:27017, causing 5-30s timeout per test.
    """
    with patch("pymongo.MongoClient") as mock_client:
        mock_instance = MagicMock()
        mock_db = MagicMock()
        mock_collection = MagicMock()

        # Setup chain: client["db"]["collection"]
        mock_instance.__getitem__ = MagicMock(return_value=mock_db)
        mock_db.__getitem__ = MagicMock(return_value=mock_collection)
        mock_collection.find_one = MagicMock(return_value=None)
        mock_collection.find = MagicMock(return_value=[])

        mock_client.return_value = mock_instance
        yield mock_client


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real credentials and configurations.

    Prevents real Gemini calls and Slack posts if a test forgets a mock.
    """
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("SLACK_WEBHOOK_URL", "")


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now):
    """Clock callable returning a fixed 'now'."""
    return lambda: fixed_now


@pytest.fixture
def mock_queries():
    """
    AnalyticsQueries double with empty results for every query.

    Tests override the return values they care about.
    """
    queries = MagicMock(spec=AnalyticsQueries)
    queries.count_users.return_value = 0
    queries.count_applications.return_value = 0
    queries.count_resumes.return_value = 0
    queries.count_successful_applications.return_value = 0
    queries.count_distinct_session_users.return_value = 0
    queries.average_application_score.return_value = 0
    queries.top_companies.return_value = []
    queries.top_job_titles.return_value = []
    queries.application_outcomes.return_value = []
    queries.application_market_data.return_value = []
    queries.user_technical_skills.return_value = []
    queries.session_locations.return_value = []
    queries.top_performing_users.return_value = []
    queries.status_distribution.return_value = {}
    queries.top_companies_simple.return_value = []
    queries.find_user.return_value = None
    queries.find_application.return_value = None
    queries.user_applications.return_value = []
    queries.user_sessions.return_value = []
    queries.user_resumes.return_value = []
    queries.company_applications.return_value = []
    queries.active_user_ids.return_value = []
    queries.weekly_applications.return_value = []
    queries.applications_by_source.return_value = []
    queries.user_top_companies.return_value = []
    queries.monthly_stats.return_value = []
    queries.ping.return_value = True
    return queries
