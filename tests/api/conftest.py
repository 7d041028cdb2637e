"""
Pytest fixtures for analytics API tests.
"""

import os
from unittest.mock import MagicMock, patch

# IMPORTANT: Set environment variables BEFORE any imports from analytics_api
# so AnalyticsSettings is configured correctly when first loaded.
# jwt_secret requires min 16 characters.
os.environ["ENVIRONMENT"] = "development"
os.environ["JWT_SECRET"] = "test-jwt-secret-key-1234"
os.environ["ENABLE_AUTOMATION"] = "false"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["GEMINI_API_KEY"] = ""

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.analytics.cache import AnalyticsCache  # noqa: E402
from src.analytics.insights import MarketInsightsService  # noqa: E402
from src.analytics.queries import AnalyticsQueries  # noqa: E402
from src.analytics.scheduler import AutomationScheduler  # noqa: E402
from src.analytics.service import AnalyticsService  # noqa: E402
from src.analytics.simple_service import SimpleAnalyticsService  # noqa: E402

TEST_SECRET = "test-jwt-secret-key-1234"
TEST_USER_ID = "507f1f77bcf86cd799439011"


@pytest.fixture(autouse=True)
def mock_mongodb():
    """Prevent MongoDB connection attempts if a test forgets an override."""
    with patch("pymongo.MongoClient") as mock_client:
        mock_client.return_value = MagicMock()
        yield mock_client


@pytest.fixture
def queries():
    """AnalyticsQueries double with empty results for every query."""
    mock = MagicMock(spec=AnalyticsQueries)
    for name in (
        "count_users", "count_applications", "count_resumes", "count_successful_applications",
        "count_distinct_session_users", "average_application_score",
    ):
        getattr(mock, name).return_value = 0
    for name in (
        "top_companies", "top_job_titles", "application_outcomes", "application_market_data",
        "user_technical_skills", "session_locations", "top_performing_users", "top_companies_simple",
        "user_applications", "user_sessions", "user_resumes", "company_applications",
        "active_user_ids", "weekly_applications", "applications_by_source", "user_top_companies",
        "monthly_stats",
    ):
        getattr(mock, name).return_value = []
    mock.status_distribution.return_value = {}
    mock.find_user.return_value = {"_id": TEST_USER_ID, "profile": {}}
    mock.find_application.return_value = None
    mock.ping.return_value = True
    return mock


@pytest.fixture
def analytics_service(queries):
    return AnalyticsService(queries=queries, cache=AnalyticsCache())


@pytest.fixture
def simple_service(queries):
    return SimpleAnalyticsService(queries=queries)


@pytest.fixture
def scheduler(analytics_service):
    return AutomationScheduler(analytics_service, alert_manager=MagicMock())


@pytest.fixture
def job_match_service():
    return MagicMock()


@pytest.fixture
def app(analytics_service, simple_service, scheduler, job_match_service):
    """The FastAPI app with service providers swapped for test instances."""
    from analytics_api import dependencies
    from analytics_api.app import app

    app.dependency_overrides[dependencies.get_analytics_service] = lambda: analytics_service
    app.dependency_overrides[dependencies.get_simple_analytics_service] = lambda: simple_service
    app.dependency_overrides[dependencies.get_insights_service] = (
        lambda: MarketInsightsService(analytics_service)
    )
    app.dependency_overrides[dependencies.get_scheduler] = lambda: scheduler
    app.dependency_overrides[dependencies.get_job_match_service] = lambda: job_match_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """FastAPI test client fixture."""
    return TestClient(app)


def _encode(claims=None, secret: str = TEST_SECRET) -> str:
    payload = {"id": TEST_USER_ID, "email": "ada@example.com"}
    payload.update(claims or {})
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def make_token():
    """Build HS256 tokens with extra or overriding claims."""
    return _encode


@pytest.fixture
def auth_headers(make_token):
    """Authentication headers for test requests."""
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def admin_headers(make_token):
    """Headers for a token carrying the admin role."""
    return {"Authorization": f"Bearer {make_token({'role': 'admin'})}"}


@pytest.fixture
def invalid_auth_headers():
    """Token signed with the wrong secret."""
    return {"Authorization": f"Bearer {_encode(secret='another-secret-value-5678')}"}
