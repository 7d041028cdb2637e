"""
Analytics Service

Computes the platform dashboard, per-user and per-company reports from the
application-tracking collections. Each report:

1. Is looked up in the injected cache (fixed TTL per report type)
2. On a miss, fans out its queries concurrently (asyncio.to_thread + gather)
3. Derives rates, trends and rankings with the helpers in metrics.py
4. Is stored back in the cache and returned as a pydantic model

Every public call is timed; slow requests are logged and request/error counts
feed get_performance_stats() and health_check().
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from src.common.config import Config
from src.common.error_handling import (
    AnalyticsError,
    NotFoundError,
    ReportFormatError,
    with_fallback,
    wrap_errors,
)
from src.common.logger import get_logger

from .cache import DASHBOARD_KEY, company_analytics_key, create_cache, report_key, user_analytics_key
from .metrics import (
    COMPANY_BENCHMARKS,
    FALLBACK_SKILLS_ANALYTICS,
    SUCCESS_STATUSES,
    application_salary,
    average,
    career_path,
    classify_popularity,
    classify_trend,
    default_salary_for_country,
    demanded_skills,
    emerging_skills,
    filter_by_date,
    has_inbound_communication,
    industry_trends_for_country,
    location_distribution,
    location_key,
    location_salary_data,
    location_salary_multiplier,
    monthly_hiring,
    most_demanded_skills,
    profile_completeness,
    profile_strength,
    quarterly_patterns,
    rank_top_n,
    relative_market_position,
    response_time_stats,
    roles_demand,
    safe_rate,
    salary_projection,
    skill_supply,
    skills_gaps,
    time_to_hire_days,
    top_skill_frequencies,
    utcnow,
)
from .models import (
    ApplicationMetrics,
    ApplicationTrends,
    Benchmarks,
    CandidateInsights,
    CareerInsights,
    CityStat,
    CompanyAnalytics,
    CompanyOverview,
    CompetitiveAnalysis,
    DashboardMetrics,
    DashboardOverview,
    HiringTrends,
    LocationAnalytics,
    LocationSalaryInsights,
    LocationTrend,
    MarketDemandEntry,
    PerformanceMetrics,
    ProfileMetrics,
    Recommendation,
    SkillsAnalysis,
    SkillsAnalytics,
    SkillToImprove,
    StrongSkill,
    TimelineEvent,
    UserActivityMetrics,
    UserAnalytics,
)
from .queries import AnalyticsQueries

logger = logging.getLogger(__name__)
analytics_logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

REPORT_TYPES = ("user", "company", "market")
REPORT_FORMATS = ("json",)

# Company benchmark used when no application carries a response time
DEFAULT_COMPANY_RESPONSE_DAYS = 7

STRONG_SKILL_MARKET_VALUE = 85

SKILLS_TO_IMPROVE = [
    {"skill": "Communication", "importance": 90, "currentLevel": "intermediate"},
    {"skill": "Leadership", "importance": 75, "currentLevel": "beginner"},
]

MARKET_DEMAND = [
    {"skill": "React", "demandLevel": "high"},
    {"skill": "Python", "demandLevel": "high"},
    {"skill": "AWS", "demandLevel": "medium"},
]

USER_RECOMMENDATIONS = [
    {
        "priority": "high",
        "category": "profile",
        "title": "Complete Your Profile",
        "description": "Adding more details to your profile increases visibility",
        "actionItems": ["Add portfolio links", "Update skills section", "Write detailed bio"],
    },
    {
        "priority": "medium",
        "category": "applications",
        "title": "Follow Up on Applications",
        "description": "Send follow-up messages to pending applications",
        "actionItems": ["Check application status", "Send thank you notes", "Update application tracking"],
    },
]


async def _run_query(func: Callable[..., Any], *args, **kwargs) -> Any:
    """Run a blocking repository call off the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)


class AnalyticsService:
    """
    Dashboard, user and company reports with caching and request tracking.

    Args:
        queries: Query layer; built lazily from the shared repositories if omitted
        cache: Report cache (AnalyticsCache or RedisAnalyticsCache)
        clock: Returns "now" for the trailing windows. Injected in tests.
    """

    def __init__(
        self,
        queries: Optional[AnalyticsQueries] = None,
        cache=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._queries = queries
        self.cache = cache if cache is not None else create_cache()
        self._clock = clock or utcnow
        self._started_at = time.monotonic()
        self.reset_performance_tracking()

    @property
    def queries(self) -> AnalyticsQueries:
        if self._queries is None:
            self._queries = AnalyticsQueries()
        return self._queries

    # ===== Request tracking =====

    async def _tracked(self, operation: str, user_id: str, compute: Callable[[], Awaitable[M]]) -> M:
        """Time one report request, log it and update the performance counters."""
        start = time.perf_counter()
        self._request_count += 1
        try:
            result = await compute()
        except Exception:
            duration_ms = int((time.perf_counter() - start) * 1000)
            self._error_count += 1
            self._total_duration_ms += duration_ms
            analytics_logger.log_request(operation, user_id, duration_ms, False)
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        self._total_duration_ms += duration_ms
        analytics_logger.log_request(operation, user_id, duration_ms, True)

        if duration_ms > Config.SLOW_QUERY_MS:
            logger.warning(f"Slow analytics query: {operation} took {duration_ms}ms")
            analytics_logger.log_metric("slow_query", duration_ms, user_id)

        return result

    async def _cached(
        self,
        key: str,
        ttl: float,
        model: Type[M],
        compute: Callable[[], Awaitable[M]],
    ) -> M:
        """Return the cached report under `key`, computing and storing it on a miss."""
        cached = self.cache.get(key)
        if cached is not None:
            return model.model_validate(cached)

        result = await compute()
        self.cache.set(key, result, ttl)
        return result

    # ===== Dashboard =====

    async def get_dashboard_metrics(self) -> DashboardMetrics:
        """Platform-wide dashboard, cached for DASHBOARD_CACHE_TTL seconds."""
        return await self._tracked(
            "getDashboardMetrics",
            "system",
            lambda: self._cached(
                DASHBOARD_KEY, Config.DASHBOARD_CACHE_TTL, DashboardMetrics, self._compute_dashboard
            ),
        )

    @wrap_errors("Failed to get dashboard metrics")
    async def _compute_dashboard(self) -> DashboardMetrics:
        now = self._clock()
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)
        q = self.queries

        (
            total_users,
            total_applications,
            active_users_week,
            new_users_week,
            new_users_month,
            active_users_month,
            applications_week,
            applications_month,
            successful,
            average_score,
            top_companies,
            top_job_titles,
            outcomes,
            top_performers,
            skills,
            locations,
        ) = await asyncio.gather(
            _run_query(q.count_users),
            _run_query(q.count_applications),
            _run_query(q.count_users, {"lastLogin": {"$gte": week_ago}}),
            _run_query(q.count_users, {"createdAt": {"$gte": week_ago}}),
            _run_query(q.count_users, {"createdAt": {"$gte": month_ago}}),
            _run_query(q.count_users, {"lastLogin": {"$gte": month_ago}}),
            _run_query(q.count_applications, {"applicationDate": {"$gte": week_ago}}),
            _run_query(q.count_applications, {"applicationDate": {"$gte": month_ago}}),
            _run_query(q.count_successful_applications),
            _run_query(q.average_application_score),
            _run_query(q.top_companies),
            _run_query(q.top_job_titles),
            _run_query(q.application_outcomes),
            _run_query(q.top_performing_users),
            self._skills_analytics(),
            self._location_analytics(now),
        )

        response_stats = response_time_stats(outcomes)

        return DashboardMetrics(
            overview=DashboardOverview(
                total_users=total_users,
                total_applications=total_applications,
                # Every user carries exactly one embedded profile
                total_profiles=total_users,
                active_users=active_users_week,
                application_success_rate=round(safe_rate(successful, total_applications)),
                average_application_score=average_score,
            ),
            user_activity=UserActivityMetrics(
                new_users_this_week=new_users_week,
                new_users_this_month=new_users_month,
                active_users_this_week=active_users_week,
                active_users_this_month=active_users_month,
                user_retention_rate=round(safe_rate(active_users_week, active_users_month)),
            ),
            application_trends=ApplicationTrends(
                applications_this_week=applications_week,
                applications_this_month=applications_month,
                average_applications_per_user=round(total_applications / total_users) if total_users else 0,
                top_companies=top_companies,
                top_job_titles=top_job_titles,
            ),
            performance_metrics=PerformanceMetrics(
                average_response_time=response_stats["average"],
                average_interview_rate=response_stats["interviewRate"],
                average_offer_rate=response_stats["offerRate"],
                top_performing_users=top_performers,
            ),
            skills_analytics=skills,
            location_analytics=locations,
        )

    @with_fallback(
        "skills analytics",
        fallback_factory=lambda self: SkillsAnalytics.model_validate(FALLBACK_SKILLS_ANALYTICS),
    )
    async def _skills_analytics(self) -> SkillsAnalytics:
        applications, users = await asyncio.gather(
            _run_query(self.queries.application_market_data),
            _run_query(self.queries.user_technical_skills),
        )

        demand = demanded_skills(applications)
        if not demand:
            return SkillsAnalytics.model_validate(FALLBACK_SKILLS_ANALYTICS)

        top = most_demanded_skills(demand)
        return SkillsAnalytics(
            most_demanded_skills=top,
            emerging_skills=emerging_skills(top),
            skills_gaps=skills_gaps(demand, skill_supply(users)),
        )

    @with_fallback("location analytics", fallback_factory=lambda self, now: LocationAnalytics())
    async def _location_analytics(self, now: datetime) -> LocationAnalytics:
        """
        Top cities by unique session users (last 30 days) with average posted
        salary, share of remote postings, and per-location trend against the
        preceding 30 days.
        """
        recent_start = now - timedelta(days=30)
        previous_start = now - timedelta(days=60)

        recent, previous, applications = await asyncio.gather(
            _run_query(self.queries.session_locations, recent_start),
            _run_query(self.queries.session_locations, previous_start, recent_start),
            _run_query(self.queries.application_market_data),
        )

        salaries: Dict[str, List[float]] = {}
        remote = 0
        for app in applications:
            location = app.get("jobLocation") or {}
            if location.get("remote"):
                remote += 1
            key = location_key(location)
            salary = application_salary(app)
            if key and salary > 0:
                salaries.setdefault(key, []).append(salary)

        top_cities = []
        for row in rank_top_n(recent, "userCount"):
            location = row.get("location") or {}
            key = location_key(location)
            if not key:
                continue
            values = salaries.get(key)
            avg_salary = round(average(values)) if values else default_salary_for_country(location.get("country"))
            top_cities.append(CityStat(city=key, count=row["userCount"], avg_salary=avg_salary))

        previous_counts = {location_key(row.get("location") or {}): row["userCount"] for row in previous}
        location_trends = [
            LocationTrend(location=city.city, trend=classify_trend(city.count, previous_counts.get(city.city, 0)))
            for city in top_cities
        ]

        return LocationAnalytics(
            top_cities=top_cities,
            remote_jobs_percentage=round(safe_rate(remote, len(applications))),
            location_trends=location_trends,
        )

    # ===== User =====

    async def get_user_analytics(self, user_id: str) -> UserAnalytics:
        """One user's application, profile, skills and career report."""
        return await self._tracked(
            "getUserAnalytics",
            user_id,
            lambda: self._cached(
                user_analytics_key(user_id),
                Config.USER_ANALYTICS_CACHE_TTL,
                UserAnalytics,
                lambda: self._compute_user_analytics(user_id),
            ),
        )

    @wrap_errors("Failed to get user analytics")
    async def _compute_user_analytics(self, user_id: str) -> UserAnalytics:
        user = await _run_query(self.queries.find_user, user_id)
        if not user:
            raise NotFoundError("User", user_id)

        applications, sessions, market_applications = await asyncio.gather(
            _run_query(self.queries.user_applications, user_id),
            _run_query(self.queries.user_sessions, user_id, limit=5),
            _run_query(self.queries.application_market_data),
        )

        profile = user.get("profile") or {}
        total = len(applications)
        successful = sum(1 for app in applications if app.get("status") in SUCCESS_STATUSES)
        responses = sum(1 for app in applications if has_inbound_communication(app))
        interviews = sum(1 for app in applications if app.get("interviews"))
        scores = [(app.get("metrics") or {}).get("applicationScore") or 0 for app in applications]

        application_metrics = ApplicationMetrics(
            total_applications=total,
            success_rate=round(safe_rate(successful, total)),
            average_score=round(average(scores)),
            response_rate=round(safe_rate(responses, total)),
            interview_rate=round(safe_rate(interviews, total)),
            offer_rate=round(safe_rate(successful, total)),
        )

        profile_metrics = ProfileMetrics(
            profile_views=profile.get("profileViews") or 0,
            profile_strength=round(profile_strength(profile)),
            search_ranking=round(profile.get("searchRankingScore") or 0),
            completeness=round(profile_completeness(profile)),
        )

        recent_location = (sessions[0].get("location") if sessions else None) or {}

        return UserAnalytics(
            user_id=str(user_id),
            application_metrics=application_metrics,
            profile_metrics=profile_metrics,
            skills_analysis=_skills_analysis(profile),
            career_insights=self._career_insights(profile, market_applications, recent_location),
            activity_timeline=_activity_timeline(applications, profile),
            recommendations=[Recommendation.model_validate(rec) for rec in USER_RECOMMENDATIONS],
        )

    def _career_insights(
        self,
        profile: Dict[str, Any],
        market_applications: List[Dict[str, Any]],
        recent_location: Dict[str, Any],
    ) -> CareerInsights:
        current_location = profile.get("currentLocation") or {}
        country = recent_location.get("country") or current_location.get("country")
        city = recent_location.get("city") or current_location.get("city")

        expected = profile.get("expectedSalary") or {}
        if expected.get("min") is not None and expected.get("max") is not None:
            current_salary = (expected["min"] + expected["max"]) / 2
        else:
            current_salary = default_salary_for_country(current_location.get("country"))

        salary_data = location_salary_data(market_applications, country, city)

        return CareerInsights(
            career_progression=career_path(profile.get("preferredRoles")),
            salary_projection=salary_projection(
                current_salary, location_salary_multiplier(country, city), self._clock().year
            ),
            location_salary_insights=LocationSalaryInsights(
                user_location_average=salary_data["userCityAverage"],
                country_average=salary_data["countryAverage"],
                top_cities_in_country=salary_data["topCities"],
                relative_position=relative_market_position(current_salary, salary_data["userCityAverage"]),
            ),
            industry_trends=industry_trends_for_country(country),
        )

    # ===== Company =====

    async def get_company_analytics(self, company_name: str) -> CompanyAnalytics:
        """Hiring report for one company, cached for COMPANY_ANALYTICS_CACHE_TTL seconds."""
        return await self._tracked(
            "getCompanyAnalytics",
            "system",
            lambda: self._cached(
                company_analytics_key(company_name),
                Config.COMPANY_ANALYTICS_CACHE_TTL,
                CompanyAnalytics,
                lambda: self._compute_company_analytics(company_name),
            ),
        )

    @wrap_errors("Failed to get company analytics")
    async def _compute_company_analytics(self, company_name: str) -> CompanyAnalytics:
        applications = await _run_query(self.queries.company_applications, company_name)

        now = self._clock()
        three_months_ago = now - timedelta(days=90)
        six_months_ago = now - timedelta(days=180)

        total = len(applications)
        successful = sum(1 for app in applications if app.get("status") in SUCCESS_STATUSES)
        success_rate = round(safe_rate(successful, total))

        hire_times = [
            days
            for days in (time_to_hire_days(app) for app in applications if app.get("status") == "offer_accepted")
            if days > 0
        ]

        recent = len(filter_by_date(applications, "applicationDate", three_months_ago))
        older = len(filter_by_date(applications, "applicationDate", six_months_ago, three_months_ago))

        monthly = monthly_hiring(applications)

        response_times = [
            (app.get("metrics") or {}).get("responseTime")
            for app in applications
            if (app.get("metrics") or {}).get("responseTime")
        ]

        return CompanyAnalytics(
            company_name=company_name,
            overview=CompanyOverview(
                total_applications=total,
                success_rate=success_rate,
                average_time_to_hire=round(average(hire_times)),
                popularity_trend=classify_popularity(recent, older),
            ),
            hiring_trends=HiringTrends(
                monthly_applications=monthly,
                seasonal_patterns=quarterly_patterns(monthly),
                roles_demand=roles_demand(applications),
            ),
            candidate_insights=CandidateInsights(
                top_skills=top_skill_frequencies(applications),
                location_distribution=location_distribution(applications),
            ),
            competitive_analysis=CompetitiveAnalysis(
                benchmarks=Benchmarks(
                    average_response_time=round(average(response_times))
                    if response_times else DEFAULT_COMPANY_RESPONSE_DAYS,
                    industry_response_time=COMPANY_BENCHMARKS["industryResponseTime"],
                    success_rate=success_rate,
                    industry_success_rate=COMPANY_BENCHMARKS["industrySuccessRate"],
                ),
            ),
        )

    # ===== Reports =====

    async def generate_report(
        self,
        report_type: str,
        filters: Optional[Dict[str, Any]] = None,
        format: str = "json",
    ) -> Dict[str, Any]:
        """
        Build an exportable report.

        Args:
            report_type: "user" (filters.userId), "company" (filters.companyName)
                or "market"
            filters: Report-specific filters
            format: Only "json" is supported

        Raises:
            ReportFormatError: For any format other than json
            AnalyticsError: For unknown report types or failed computation
        """
        filters = filters or {}
        if report_type not in REPORT_TYPES:
            raise AnalyticsError(f"Invalid report type: {report_type}")
        if format not in REPORT_FORMATS:
            raise ReportFormatError(f"Format {format} not yet implemented")

        key = report_key(report_type, filters)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        report = await self._build_report(report_type, filters)
        self.cache.set(key, report, Config.DEFAULT_CACHE_TTL)
        return report

    @wrap_errors("Failed to generate report")
    async def _build_report(self, report_type: str, filters: Dict[str, Any]) -> Dict[str, Any]:
        generated_at = self._clock().isoformat()

        if report_type == "user":
            user_id = filters.get("userId")
            if not user_id:
                raise AnalyticsError("userId filter is required for user reports")
            data = (await self.get_user_analytics(user_id)).to_response()
        elif report_type == "company":
            company_name = filters.get("companyName")
            if not company_name:
                raise AnalyticsError("companyName filter is required for company reports")
            data = (await self.get_company_analytics(company_name)).to_response()
        else:
            dashboard = await self.get_dashboard_metrics()
            data = {
                "applicationTrends": dashboard.application_trends.to_response(),
                "skillsAnalytics": dashboard.skills_analytics.to_response(),
                "locationAnalytics": dashboard.location_analytics.to_response(),
                "performanceMetrics": dashboard.performance_metrics.to_response(),
            }

        return {
            "type": report_type,
            "format": "json",
            "filters": filters,
            "generatedAt": generated_at,
            "data": data,
        }

    # ===== Monitoring =====

    def get_performance_stats(self) -> Dict[str, Any]:
        requests = self._request_count
        return {
            "totalRequests": requests,
            "averageResponseTime": round(self._total_duration_ms / requests) if requests else 0,
            "errorRate": safe_rate(self._error_count, requests),
            "cacheStats": self.cache.get_stats(),
            "uptime": round(time.monotonic() - self._started_at, 3),
        }

    async def health_check(self) -> Dict[str, Any]:
        """healthy / degraded from the request counters; unhealthy when the store is down."""
        timestamp = self._clock().isoformat()
        try:
            await _run_query(self.queries.ping)
        except Exception as e:
            logger.error(f"Analytics health check failed: {e}")
            return {
                "status": "unhealthy",
                "details": {"database": "disconnected", "error": str(e), "timestamp": timestamp},
            }

        stats = self.get_performance_stats()
        healthy = stats["errorRate"] < 10 and stats["averageResponseTime"] < 5000
        return {
            "status": "healthy" if healthy else "degraded",
            "details": {"database": "connected", "performance": stats, "timestamp": timestamp},
        }

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Analytics cache cleared")

    def reset_performance_tracking(self) -> None:
        self._request_count = 0
        self._total_duration_ms = 0
        self._error_count = 0


def _skills_analysis(profile: Dict[str, Any]) -> SkillsAnalysis:
    strongest = [
        StrongSkill(
            skill=skill.get("name"),
            proficiency=skill.get("proficiency"),
            market_value=STRONG_SKILL_MARKET_VALUE,
        )
        for skill in profile.get("technicalSkills") or []
        if (skill or {}).get("proficiency") in ("expert", "advanced")
    ][:5]
    return SkillsAnalysis(
        strongest_skills=strongest,
        skills_to_improve=[SkillToImprove.model_validate(item) for item in SKILLS_TO_IMPROVE],
        market_demand=[MarketDemandEntry.model_validate(item) for item in MARKET_DEMAND],
    )


def _activity_timeline(applications: List[Dict[str, Any]], profile: Dict[str, Any]) -> List[TimelineEvent]:
    """Ten most recent applications plus the last profile update, newest first."""
    events = [
        TimelineEvent(
            date=app.get("applicationDate"),
            action="Job Application",
            details=f"Applied to {app.get('jobTitle')} at {app.get('companyName')}",
            impact="positive",
        )
        for app in applications[:10]
    ]
    events.append(
        TimelineEvent(
            date=profile.get("updatedAt"),
            action="Profile Update",
            details="Updated professional profile",
            impact="positive",
        )
    )
    events.sort(key=lambda event: event.date or datetime.min, reverse=True)
    return events
