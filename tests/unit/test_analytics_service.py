"""
Unit tests for src/analytics/service.py

Tests the cached report service with a mocked query layer:
- Dashboard caching (second call within the TTL issues no queries)
- Division-by-zero safety for users with no applications
- Missing user fails fast
- Section fallbacks (skills, location)
- Company analytics and report generation
- Performance stats and health check
"""

from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from src.analytics.cache import AnalyticsCache
from src.analytics.metrics import FALLBACK_SKILLS_ANALYTICS
from src.analytics.models import DashboardMetrics, UserAnalytics
from src.analytics.service import DEFAULT_COMPANY_RESPONSE_DAYS, AnalyticsService
from src.common.error_handling import AnalyticsError, NotFoundError, ReportFormatError


# ===== FIXTURES =====


@pytest.fixture
def service(mock_queries, clock):
    return AnalyticsService(queries=mock_queries, cache=AnalyticsCache(), clock=clock)


@pytest.fixture
def sample_user(fixed_now):
    return {
        "_id": ObjectId("507f1f77bcf86cd799439011"),
        "firstName": "Ada",
        "lastName": "Lovelace",
        "profile": {
            "headline": "Backend engineer",
            "technicalSkills": [
                {"name": "Python", "proficiency": "expert"},
                {"name": "SQL", "proficiency": "beginner"},
            ],
            "currentLocation": {"city": "Berlin", "country": "Germany"},
            "expectedSalary": {"min": 60000, "max": 80000},
            "updatedAt": fixed_now - timedelta(days=2),
        },
    }


def _count_query_calls(queries) -> int:
    return sum(
        getattr(queries, name).call_count
        for name in dir(queries)
        if not name.startswith("_") and hasattr(getattr(queries, name), "call_count")
    )


# ===== DASHBOARD =====


class TestDashboardMetrics:
    @pytest.mark.asyncio
    async def test_overview_rates(self, service, mock_queries):
        mock_queries.count_users.return_value = 4
        mock_queries.count_applications.return_value = 8
        mock_queries.count_successful_applications.return_value = 2
        mock_queries.average_application_score.return_value = 71

        dashboard = await service.get_dashboard_metrics()

        assert isinstance(dashboard, DashboardMetrics)
        assert dashboard.overview.total_users == 4
        assert dashboard.overview.total_profiles == 4
        assert dashboard.overview.application_success_rate == 25
        assert dashboard.overview.average_application_score == 71
        assert dashboard.application_trends.average_applications_per_user == 2
        assert dashboard.user_activity.user_retention_rate == 100

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, service, mock_queries):
        first = await service.get_dashboard_metrics()
        calls_after_first = _count_query_calls(mock_queries)

        second = await service.get_dashboard_metrics()

        assert calls_after_first > 0
        assert _count_query_calls(mock_queries) == calls_after_first
        assert second.to_response() == first.to_response()

    @pytest.mark.asyncio
    async def test_weekly_active_users_counted_once(self, service, mock_queries, fixed_now):
        week_filter = {"lastLogin": {"$gte": fixed_now - timedelta(days=7)}}
        mock_queries.count_users.side_effect = lambda filter=None: 6 if filter == week_filter else 10

        dashboard = await service.get_dashboard_metrics()

        week_calls = [c for c in mock_queries.count_users.call_args_list if c.args == (week_filter,)]
        assert len(week_calls) == 1
        assert dashboard.overview.active_users == 6
        assert dashboard.user_activity.active_users_this_week == 6

    @pytest.mark.asyncio
    async def test_empty_store_has_zero_rates(self, service):
        dashboard = await service.get_dashboard_metrics()

        assert dashboard.overview.application_success_rate == 0
        assert dashboard.application_trends.average_applications_per_user == 0
        assert dashboard.user_activity.user_retention_rate == 0
        assert dashboard.performance_metrics.average_response_time == 0

    @pytest.mark.asyncio
    async def test_skills_fallback_when_no_demand(self, service):
        dashboard = await service.get_dashboard_metrics()

        skills = dashboard.skills_analytics.to_response()
        assert skills["mostDemandedSkills"] == FALLBACK_SKILLS_ANALYTICS["mostDemandedSkills"]

    @pytest.mark.asyncio
    async def test_skills_fallback_when_query_fails(self, service, mock_queries):
        mock_queries.user_technical_skills.side_effect = RuntimeError("boom")

        dashboard = await service.get_dashboard_metrics()

        assert dashboard.skills_analytics.skills_gaps[0].skill == "Senior Developer"

    @pytest.mark.asyncio
    async def test_location_fallback_when_query_fails(self, service, mock_queries):
        mock_queries.session_locations.side_effect = RuntimeError("boom")

        dashboard = await service.get_dashboard_metrics()

        assert dashboard.location_analytics.top_cities == []
        assert dashboard.location_analytics.remote_jobs_percentage == 0

    @pytest.mark.asyncio
    async def test_location_analytics(self, service, mock_queries):
        def session_locations(start, end=None):
            count = 12 if end is None else 5
            return [{"location": {"city": "Berlin", "country": "Germany"}, "userCount": count, "sessionCount": 40}]

        mock_queries.session_locations.side_effect = session_locations
        mock_queries.application_market_data.return_value = [
            {"jobLocation": {"city": "Berlin", "country": "Germany"}, "compensation": {"salaryRange": {"max": 90000}}},
            {"jobLocation": {"remote": True}},
        ]

        dashboard = await service.get_dashboard_metrics()

        location = dashboard.location_analytics
        assert location.top_cities[0].city == "Berlin, Germany"
        assert location.top_cities[0].count == 12
        assert location.top_cities[0].avg_salary == 90000
        assert location.remote_jobs_percentage == 50
        assert location.location_trends[0].trend == "growing"

    @pytest.mark.asyncio
    async def test_core_query_failure_is_wrapped(self, service, mock_queries):
        mock_queries.count_users.side_effect = RuntimeError("connection reset")

        with pytest.raises(AnalyticsError, match="Failed to get dashboard metrics"):
            await service.get_dashboard_metrics()

        assert service.get_performance_stats()["errorRate"] == 100


# ===== USER =====


class TestUserAnalytics:
    @pytest.mark.asyncio
    async def test_missing_user_fails_fast(self, service, mock_queries):
        mock_queries.find_user.return_value = None

        with pytest.raises(AnalyticsError) as exc_info:
            await service.get_user_analytics("507f1f77bcf86cd799439011")

        assert isinstance(exc_info.value.__cause__, NotFoundError)
        mock_queries.user_applications.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_applications_gives_zero_rates(self, service, mock_queries, sample_user):
        mock_queries.find_user.return_value = sample_user

        analytics = await service.get_user_analytics("507f1f77bcf86cd799439011")

        metrics = analytics.application_metrics
        assert metrics.total_applications == 0
        assert metrics.success_rate == 0
        assert metrics.response_rate == 0
        assert metrics.interview_rate == 0
        assert metrics.offer_rate == 0
        assert metrics.average_score == 0

    @pytest.mark.asyncio
    async def test_application_metrics(self, service, mock_queries, sample_user, fixed_now):
        mock_queries.find_user.return_value = sample_user
        mock_queries.user_applications.return_value = [
            {
                "status": "offer_accepted",
                "applicationDate": fixed_now - timedelta(days=1),
                "jobTitle": "Engineer",
                "companyName": "Acme",
                "communications": [{"direction": "inbound"}],
                "interviews": [{}],
                "metrics": {"applicationScore": 80},
            },
            {
                "status": "applied",
                "applicationDate": fixed_now - timedelta(days=5),
                "jobTitle": "Developer",
                "companyName": "Globex",
                "metrics": {"applicationScore": 60},
            },
        ]

        analytics = await service.get_user_analytics("507f1f77bcf86cd799439011")

        metrics = analytics.application_metrics
        assert metrics.total_applications == 2
        assert metrics.success_rate == 50
        assert metrics.response_rate == 50
        assert metrics.interview_rate == 50
        assert metrics.average_score == 70
        assert analytics.skills_analysis.strongest_skills[0].skill == "Python"
        assert analytics.skills_analysis.strongest_skills[0].market_value == 85
        assert analytics.skills_analysis.market_demand[0].demand_level == "high"
        skills = analytics.to_response()["skillsAnalysis"]
        assert skills["skillsToImprove"][0] == {"skill": "Communication", "importance": 90, "currentLevel": "intermediate"}
        assert skills["strongestSkills"][0]["marketValue"] == 85

    @pytest.mark.asyncio
    async def test_timeline_newest_first(self, service, mock_queries, sample_user, fixed_now):
        mock_queries.find_user.return_value = sample_user
        mock_queries.user_applications.return_value = [
            {"applicationDate": fixed_now - timedelta(days=1), "jobTitle": "A", "companyName": "X"},
            {"applicationDate": fixed_now - timedelta(days=10), "jobTitle": "B", "companyName": "Y"},
        ]

        analytics = await service.get_user_analytics("507f1f77bcf86cd799439011")

        actions = [event.action for event in analytics.activity_timeline]
        assert actions == ["Job Application", "Profile Update", "Job Application"]

    @pytest.mark.asyncio
    async def test_salary_projection_from_expected_salary(self, service, mock_queries, sample_user, fixed_now):
        mock_queries.find_user.return_value = sample_user

        analytics = await service.get_user_analytics("507f1f77bcf86cd799439011")

        projection = analytics.career_insights.salary_projection
        assert projection[0].year == fixed_now.year
        assert projection[0].projected_salary == 70000

    @pytest.mark.asyncio
    async def test_user_report_is_cached(self, service, mock_queries, sample_user):
        mock_queries.find_user.return_value = sample_user

        first = await service.get_user_analytics("u1")
        second = await service.get_user_analytics("u1")

        assert mock_queries.find_user.call_count == 1
        assert isinstance(second, UserAnalytics)
        assert second.to_response() == first.to_response()


# ===== COMPANY =====


class TestCompanyAnalytics:
    @pytest.mark.asyncio
    async def test_company_overview(self, service, mock_queries, fixed_now):
        mock_queries.company_applications.return_value = [
            {
                "status": "offer_accepted",
                "applicationDate": fixed_now - timedelta(days=20),
                "statusHistory": [{"status": "offer_accepted", "date": fixed_now - timedelta(days=6)}],
                "jobTitle": "Backend Engineer",
                "jobDescription": "Python and Docker",
                "jobLocation": {"city": "Berlin", "country": "Germany"},
                "metrics": {"responseTime": 3},
            },
            {
                "status": "rejected",
                "applicationDate": fixed_now - timedelta(days=120),
                "jobTitle": "Backend Engineer",
                "jobLocation": {"remote": True},
            },
        ]

        report = await service.get_company_analytics("Acme")

        assert report.company_name == "Acme"
        assert report.overview.total_applications == 2
        assert report.overview.success_rate == 50
        assert report.overview.average_time_to_hire == 14
        assert report.overview.popularity_trend == "stable"
        assert report.competitive_analysis.benchmarks.average_response_time == 3
        assert report.hiring_trends.roles_demand[0].role == "Backend Developer"

    @pytest.mark.asyncio
    async def test_company_without_response_times_uses_default(self, service):
        report = await service.get_company_analytics("Nobody Inc")

        assert report.overview.total_applications == 0
        assert report.competitive_analysis.benchmarks.average_response_time == DEFAULT_COMPANY_RESPONSE_DAYS


# ===== REPORTS =====


class TestGenerateReport:
    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, service):
        with pytest.raises(AnalyticsError, match="Invalid report type"):
            await service.generate_report("weekly")

    @pytest.mark.asyncio
    async def test_non_json_format_rejected(self, service):
        with pytest.raises(ReportFormatError):
            await service.generate_report("market", format="csv")

    @pytest.mark.asyncio
    async def test_market_report_sections(self, service):
        report = await service.generate_report("market")

        assert report["type"] == "market"
        assert report["format"] == "json"
        assert set(report["data"]) == {
            "applicationTrends", "skillsAnalytics", "locationAnalytics", "performanceMetrics",
        }

    @pytest.mark.asyncio
    async def test_user_report_requires_user_id(self, service):
        with pytest.raises(AnalyticsError, match="Failed to generate report"):
            await service.generate_report("user", {})

    @pytest.mark.asyncio
    async def test_report_is_cached(self, service, mock_queries):
        await service.generate_report("company", {"companyName": "Acme"})
        await service.generate_report("company", {"companyName": "Acme"})

        assert mock_queries.company_applications.call_count == 1


# ===== MONITORING =====


class TestMonitoring:
    @pytest.mark.asyncio
    async def test_performance_stats_count_requests(self, service):
        await service.get_dashboard_metrics()
        await service.get_dashboard_metrics()

        stats = service.get_performance_stats()

        assert stats["totalRequests"] == 2
        assert stats["errorRate"] == 0
        assert stats["cacheStats"]["hits"] == 1

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, service):
        health = await service.health_check()

        assert health["status"] == "healthy"
        assert health["details"]["database"] == "connected"

    @pytest.mark.asyncio
    async def test_health_check_unhealthy_when_store_down(self, service, mock_queries):
        mock_queries.ping.side_effect = RuntimeError("no primary")

        health = await service.health_check()

        assert health["status"] == "unhealthy"
        assert health["details"]["database"] == "disconnected"

    @pytest.mark.asyncio
    async def test_health_check_degraded_on_errors(self, service, mock_queries):
        mock_queries.count_users.side_effect = RuntimeError("boom")
        with pytest.raises(AnalyticsError):
            await service.get_dashboard_metrics()

        health = await service.health_check()

        assert health["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_clear_cache_forces_recompute(self, service, mock_queries):
        await service.get_dashboard_metrics()
        service.clear_cache()
        await service.get_dashboard_metrics()

        assert mock_queries.count_successful_applications.call_count == 2

    def test_reset_performance_tracking(self, service):
        service._request_count = 5
        service.reset_performance_tracking()

        assert service.get_performance_stats()["totalRequests"] == 0
