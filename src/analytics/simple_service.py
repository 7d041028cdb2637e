"""
Simple Analytics Service

Lightweight per-user and platform reports behind the HTTP surface:
application status buckets, resume quality, the production application
funnel and the user's location. Unlike AnalyticsService these reports are
not cached; each call reads the current state of the collections.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from src.common.error_handling import NotFoundError, with_fallback

from .metrics import (
    INACTIVE_STATUSES,
    INTERVIEW_STATUSES,
    OFFER_STATUSES,
    add_months,
    average_resume_score,
    average_response_days,
    bucket_statuses,
    categorize_skills,
    days_between,
    filter_by_date,
    group_count,
    normalize_job_title,
    rank_top_n,
    resume_is_complete,
    round2,
    safe_rate,
    skill_demand_for_applications,
    skill_name,
    trend_delta,
    utcnow,
)
from .models import (
    CompanySuccess,
    CountryInfo,
    FunnelStage,
    MarketTrend,
    OptimizationSuggestion,
    ProductionAnalytics,
    ResumeAnalytics,
    ResumeMetrics,
    ResumeSkillAnalysis,
    SimpleActivity,
    SimpleApplicationStats,
    SimpleDashboardApplications,
    SimpleDashboardMetrics,
    SimpleDashboardOverview,
    SimpleDashboardResumes,
    SimpleResumeStats,
    SimpleUserAnalytics,
    SourceConversion,
    StatusBuckets,
    UserLocation,
    UserLocationData,
)
from .queries import AnalyticsQueries

logger = logging.getLogger(__name__)

# Applications scanned when inferring a user's location
LOCATION_SAMPLE_SIZE = 10


async def _run_query(func: Callable[..., Any], *args, **kwargs) -> Any:
    return await asyncio.to_thread(func, *args, **kwargs)


class SimpleAnalyticsService:
    """Uncached per-user and dashboard reports used by the API routes."""

    def __init__(
        self,
        queries: Optional[AnalyticsQueries] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._queries = queries
        self._clock = clock or utcnow

    @property
    def queries(self) -> AnalyticsQueries:
        if self._queries is None:
            self._queries = AnalyticsQueries()
        return self._queries

    async def _require_user(self, user_id: str) -> Dict[str, Any]:
        user = await _run_query(self.queries.find_user, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    # ===== User =====

    async def get_user_analytics(self, user_id: str) -> SimpleUserAnalytics:
        """Status buckets, resume counts and login activity for one user."""
        user = await self._require_user(user_id)
        now = self._clock()
        month_ago = now - timedelta(days=30)

        applications, resumes, sessions = await asyncio.gather(
            _run_query(self.queries.user_applications, user_id),
            _run_query(self.queries.user_resumes, user_id),
            _run_query(self.queries.user_sessions, user_id),
        )

        recent_sessions = filter_by_date(sessions, "loginTime", month_ago)
        active_days = len({session["loginTime"].date() for session in recent_sessions})

        return SimpleUserAnalytics(
            user_id=str(user_id),
            applications=SimpleApplicationStats(
                total=len(applications),
                by_status=StatusBuckets(**bucket_statuses(app.get("status") for app in applications)),
                recent_applications=len(filter_by_date(applications, "createdAt", month_ago)),
                average_response_time=average_response_days(applications),
            ),
            resumes=SimpleResumeStats(
                total=len(resumes),
                created=len(resumes),
                updated=sum(
                    1
                    for resume in resumes
                    if resume.get("updatedAt") and resume.get("createdAt")
                    and resume["updatedAt"] > resume["createdAt"]
                ),
            ),
            activity=SimpleActivity(
                last_login_at=user.get("lastLoginAt") or user.get("lastLogin"),
                total_sessions=len(sessions),
                active_days=active_days,
                account_age=days_between(user.get("createdAt"), now),
            ),
        )

    # ===== Dashboard =====

    async def get_dashboard_metrics(self) -> SimpleDashboardMetrics:
        """Platform totals, this week/month counts and offer rate."""
        now = self._clock()
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)
        q = self.queries

        (
            total_applications,
            total_resumes,
            total_users,
            active_users,
            applications_week,
            applications_month,
            offers,
            top_companies,
            status_counts,
            resumes_created,
        ) = await asyncio.gather(
            _run_query(q.count_applications),
            _run_query(q.count_resumes),
            _run_query(q.count_users),
            _run_query(q.count_distinct_session_users, month_ago),
            _run_query(q.count_applications, {"createdAt": {"$gte": week_ago}}),
            _run_query(q.count_applications, {"createdAt": {"$gte": month_ago}}),
            _run_query(q.count_applications, {"status": "offer"}),
            _run_query(q.top_companies_simple, 5),
            _run_query(q.status_distribution),
            _run_query(q.count_resumes, {"createdAt": {"$gte": month_ago}}),
        )

        distribution = bucket_statuses([])
        distribution.update({status: count for status, count in status_counts.items() if status in distribution})

        return SimpleDashboardMetrics(
            overview=SimpleDashboardOverview(
                total_applications=total_applications,
                total_resumes=total_resumes,
                total_users=total_users,
                active_users=active_users,
            ),
            applications=SimpleDashboardApplications(
                this_week=applications_week,
                this_month=applications_month,
                success_rate=round2(safe_rate(offers, total_applications)),
                top_companies=top_companies,
                status_distribution=StatusBuckets(**distribution),
            ),
            resumes=SimpleDashboardResumes(created=resumes_created),
        )

    # ===== Resumes =====

    async def get_resume_analytics(self, user_id: str, resume_id: Optional[str] = None) -> ResumeAnalytics:
        """
        Resume quality report for a user (or one of their resumes).

        Returns the empty-shape report when no resume matches.
        """
        await self._require_user(user_id)
        resumes = await _run_query(self.queries.user_resumes, user_id, resume_id)
        if not resumes:
            return ResumeAnalytics()

        skills = [
            name
            for resume in resumes
            for name in (skill_name(skill) for skill in resume.get("skills") or [])
            if name
        ]
        skill_counts = group_count(skills)
        top_skills = rank_top_n(
            [{"skill": skill, "count": count} for skill, count in skill_counts.items()],
            "count",
        )

        completed = sum(1 for resume in resumes if resume_is_complete(resume))

        return ResumeAnalytics(
            resume_metrics=ResumeMetrics(
                total_resumes=len(resumes),
                average_score=average_resume_score(resumes),
                completion_rate=round(safe_rate(completed, len(resumes))),
                last_updated=resumes[0].get("updatedAt"),
            ),
            skill_analysis=ResumeSkillAnalysis(
                total_skills=len(skill_counts),
                top_skills=top_skills,
                skill_categories=categorize_skills(skill_counts.keys()),
            ),
            optimization_suggestions=self._optimization_suggestions(resumes),
        )

    def _optimization_suggestions(self, resumes: List[Dict[str, Any]]) -> List[OptimizationSuggestion]:
        suggestions = []

        incomplete = [resume for resume in resumes if not resume.get("isComplete")]
        if incomplete:
            suggestions.append(OptimizationSuggestion(
                type="completion",
                priority="high",
                message=f"Complete {len(incomplete)} incomplete resume(s)",
            ))

        if any(not (resume.get("summary") or "").strip() for resume in resumes):
            suggestions.append(OptimizationSuggestion(
                type="content",
                priority="medium",
                message="Add professional summary to improve resume impact",
            ))

        month_ago = self._clock() - timedelta(days=30)
        if any(resume.get("updatedAt") and resume["updatedAt"] < month_ago for resume in resumes):
            suggestions.append(OptimizationSuggestion(
                type="maintenance",
                priority="low",
                message="Consider updating resumes that haven't been modified in over a month",
            ))

        return suggestions

    # ===== Production funnel =====

    async def get_production_analytics(self, user_id: str) -> ProductionAnalytics:
        """
        Application funnel for one user: rates, weekly and monthly series,
        sources, companies, skill demand, year-over-year title trends and
        the trailing 30-day vs preceding 30-day deltas.
        """
        now = self._clock()
        six_months_ago = add_months(now, -6)
        q = self.queries

        applications, weekly, sources, companies, monthly = await asyncio.gather(
            _run_query(q.user_applications, user_id),
            _run_query(q.weekly_applications, user_id, six_months_ago),
            _run_query(q.applications_by_source, user_id),
            _run_query(q.user_top_companies, user_id, 5),
            _run_query(q.monthly_stats, user_id, six_months_ago),
        )

        total = len(applications)
        responses = _count_responses(applications)
        interviews = _count_status(applications, INTERVIEW_STATUSES)
        offers = _count_status(applications, OFFER_STATUSES)
        active = sum(1 for app in applications if app.get("status") not in INACTIVE_STATUSES)

        current = filter_by_date(applications, "applicationDate", now - timedelta(days=30))
        previous = filter_by_date(
            applications, "applicationDate", now - timedelta(days=60), now - timedelta(days=30)
        )

        return ProductionAnalytics(
            active_applications=active,
            response_rate=round2(safe_rate(responses, total)),
            interview_rate=round2(safe_rate(interviews, total)),
            offer_rate=round2(safe_rate(offers, total)),
            success_rate=round2(safe_rate(offers, total)),
            applications_over_time=weekly,
            applications_by_source=[
                SourceConversion(
                    source=row.get("_id"),
                    count=row["count"],
                    conversion_rate=round2(safe_rate(row.get("offers", 0), row["count"])),
                )
                for row in sources
            ],
            top_companies=[
                CompanySuccess(
                    company=row.get("_id"),
                    applications=row["count"],
                    success_rate=round2(safe_rate(row.get("successful", 0), row["count"])),
                )
                for row in companies
            ],
            skill_demand=skill_demand_for_applications(applications),
            market_trends=_market_trends(applications, now.year),
            monthly_stats=monthly,
            conversion_funnel=_conversion_funnel(total, responses, interviews, offers),
            applications_trend=round2(trend_delta(len(current), len(previous))),
            response_rate_trend=round2(
                safe_rate(_count_responses(current), len(current))
                - safe_rate(_count_responses(previous), len(previous))
            ),
            interview_rate_trend=round2(
                safe_rate(_count_status(current, INTERVIEW_STATUSES), len(current))
                - safe_rate(_count_status(previous, INTERVIEW_STATUSES), len(previous))
            ),
            response_time_trend=average_response_days(current) - average_response_days(previous),
        )

    # ===== Location =====

    @with_fallback(
        "user location data",
        fallback_factory=lambda self, user_id: UserLocationData(),
    )
    async def get_user_location_data(self, user_id: str) -> UserLocationData:
        """
        The user's location from their profile ("City, ..., Country"), or the
        most common city among their recent applications.
        """
        user = await _run_query(self.queries.find_user, user_id)
        if not user:
            return UserLocationData()

        applications = await _run_query(self.queries.user_applications, user_id, LOCATION_SAMPLE_SIZE)

        location = None
        profile_location = (user.get("profile") or {}).get("location")
        if isinstance(profile_location, str) and profile_location.strip():
            parts = [part.strip() for part in profile_location.split(",")]
            location = UserLocation(city=parts[0] or "Unknown", country=parts[-1] or "Unknown")
        elif applications:
            counts = group_count(
                (app["jobLocation"]["city"], app["jobLocation"]["country"])
                for app in applications
                if (app.get("jobLocation") or {}).get("city") and (app.get("jobLocation") or {}).get("country")
            )
            if counts:
                city, country = max(counts, key=counts.get)
                location = UserLocation(city=city, country=country)

        country_info = None
        if location and location.country:
            in_country = [
                app for app in applications
                if (app.get("jobLocation") or {}).get("country") == location.country
            ]
            country_info = CountryInfo(
                country=location.country,
                total_cities_analyzed=len({app["jobLocation"].get("city") for app in in_country}),
                total_applications_in_country=len(in_country),
            )

        return UserLocationData(user_location=location, country_info=country_info)


def _count_responses(applications: List[Dict[str, Any]]) -> int:
    return sum(1 for app in applications if app.get("status") != "applied")


def _count_status(applications: List[Dict[str, Any]], statuses) -> int:
    return sum(1 for app in applications if app.get("status") in statuses)


def _conversion_funnel(total: int, responses: int, interviews: int, offers: int) -> List[FunnelStage]:
    return [
        FunnelStage(stage="Applications Sent", count=total, percentage=100),
        FunnelStage(stage="Responses Received", count=responses, percentage=round(safe_rate(responses, total))),
        FunnelStage(stage="Interviews Scheduled", count=interviews, percentage=round(safe_rate(interviews, total))),
        FunnelStage(stage="Offers Received", count=offers, percentage=round(safe_rate(offers, total))),
    ]


def _market_trends(applications: List[Dict[str, Any]], current_year: int, limit: int = 5) -> List[MarketTrend]:
    """
    Year-over-year change in applications per normalised job title.

    Empty when the user has no applications from last year.
    """
    def titles_in(year: int) -> Dict[str, int]:
        return group_count(
            normalize_job_title(app.get("jobTitle") or "")
            for app in applications
            if app.get("applicationDate") and app["applicationDate"].year == year
        )

    last_year = titles_in(current_year - 1)
    if not last_year:
        return []

    trends = [
        MarketTrend(
            trend=title,
            change_percentage=round2(trend_delta(count, last_year.get(title, 0))),
            current_applications=count,
            previous_applications=last_year.get(title, 0),
        )
        for title, count in titles_in(current_year).items()
    ]
    trends.sort(key=lambda trend: abs(trend.change_percentage), reverse=True)
    return trends[:limit]
