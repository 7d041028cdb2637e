"""
Analytics Routes

Authenticated reporting API consumed by the dashboard frontend.

Endpoints:
    GET    /api/v1/analytics/dashboard                  - Platform dashboard (simple)
    GET    /api/v1/analytics/user                       - Current user's analytics + location
    GET    /api/v1/analytics/applications               - Overview/trends/insights/performance
    GET    /api/v1/analytics/resume/insights            - Resume analytics (?resumeId=)
    GET    /api/v1/analytics/overview                   - Full cached dashboard
    GET    /api/v1/analytics/company/{company_name}     - Company analytics
    GET    /api/v1/analytics/reports/{report_type}      - Report export (json only)
    GET    /api/v1/analytics/insights                   - Automated market insights
    GET    /api/v1/analytics/recommendations            - Automated recommendation plan
    GET    /api/v1/analytics/applications/{id}/match    - AI job match and application score
    GET    /api/v1/analytics/system/health              - Store and performance health
    GET    /api/v1/analytics/system/cache               - Cache statistics
    DELETE /api/v1/analytics/system/cache               - Clear the report cache (admin role)
    GET    /api/v1/analytics/automation/tasks           - Scheduled automation tasks
    GET    /api/v1/analytics/automation/alerts          - Current user's alert rules

Every failure answers 500 with `{success: false, message: "Failed to ..."}`;
the cause is only logged.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from src.analytics.insights import MarketInsightsService
from src.analytics.scheduler import AutomationScheduler, task_to_dict
from src.analytics.service import AnalyticsService
from src.analytics.simple_service import SimpleAnalyticsService
from src.common.error_handling import NotFoundError
from src.services.job_match_service import JobMatchService, application_score

from ..auth import AuthenticatedUser, get_current_user, require_admin
from ..dependencies import (
    get_analytics_service,
    get_insights_service,
    get_job_match_service,
    get_scheduler,
    get_simple_analytics_service,
)
from ..models import ActionResponse, ApiResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


def _failure(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content=ErrorResponse(message=message).model_dump())


# =============================================================================
# Simple reports (dashboard frontend)
# =============================================================================


@router.get("/dashboard", response_model=ApiResponse)
async def get_dashboard(
    user: AuthenticatedUser = Depends(get_current_user),
    service: SimpleAnalyticsService = Depends(get_simple_analytics_service),
):
    try:
        metrics = await service.get_dashboard_metrics()
        return ApiResponse(data=metrics.to_response())
    except Exception:
        logger.exception("Get dashboard metrics error")
        return _failure("Failed to get dashboard metrics")


@router.get("/user", response_model=ApiResponse)
async def get_user_analytics(
    user: AuthenticatedUser = Depends(get_current_user),
    service: SimpleAnalyticsService = Depends(get_simple_analytics_service),
):
    """User analytics merged with the user's location fields."""
    try:
        analytics = await service.get_user_analytics(user.id)
        location = await service.get_user_location_data(user.id)
        data = analytics.to_response()
        data.update(location.to_response())
        return ApiResponse(data=data)
    except Exception:
        logger.exception(f"Get user analytics error for {user.id}")
        return _failure("Failed to get user analytics")


@router.get("/applications", response_model=ApiResponse)
async def get_application_stats(
    user: AuthenticatedUser = Depends(get_current_user),
    service: SimpleAnalyticsService = Depends(get_simple_analytics_service),
):
    """
    Application stats reshaped for the applications page.

    Combines the simple user report with the production report into
    overview, trends, insights and performance sections.
    """
    try:
        analytics = (await service.get_user_analytics(user.id)).to_response()
        production = (await service.get_production_analytics(user.id)).to_response()
        applications = analytics["applications"]

        data = {
            "overview": {
                "totalApplications": applications["total"],
                "activeApplications": production["activeApplications"],
                "responseRate": production["responseRate"],
                "interviewRate": production["interviewRate"],
                "offerRate": production["offerRate"],
                "averageResponseTime": applications["averageResponseTime"],
            },
            "trends": {
                "applicationsOverTime": production["applicationsOverTime"],
                "statusDistribution": [
                    {"status": status, "count": count}
                    for status, count in applications["byStatus"].items()
                ],
                "applicationsTrend": production["applicationsTrend"],
                "responseRateTrend": production["responseRateTrend"],
                "interviewRateTrend": production["interviewRateTrend"],
                "responseTimeTrend": production["responseTimeTrend"],
            },
            "insights": {
                "topCompanies": production["topCompanies"],
                "applicationsBySource": production["applicationsBySource"],
                "skillDemand": production["skillDemand"],
                "marketTrends": production["marketTrends"],
            },
            "performance": {
                "monthlyStats": production["monthlyStats"],
                "successRate": production["successRate"],
                "averageTimeToResponse": applications["averageResponseTime"],
                "applicationFrequency": applications["recentApplications"],
                "conversionFunnel": production["conversionFunnel"],
            },
        }
        return ApiResponse(data=data)
    except Exception:
        logger.exception(f"Get application stats error for {user.id}")
        return _failure("Failed to get application stats")


@router.get("/resume/insights", response_model=ApiResponse)
async def get_resume_insights(
    resume_id: Optional[str] = Query(None, alias="resumeId"),
    user: AuthenticatedUser = Depends(get_current_user),
    service: SimpleAnalyticsService = Depends(get_simple_analytics_service),
):
    try:
        analytics = await service.get_resume_analytics(user.id, resume_id)
        return ApiResponse(data=analytics.to_response())
    except Exception:
        logger.exception(f"Get resume analytics error for {user.id}")
        return _failure("Failed to get resume analytics")


# =============================================================================
# Cached reports
# =============================================================================


@router.get("/overview", response_model=ApiResponse)
async def get_overview(
    user: AuthenticatedUser = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        metrics = await service.get_dashboard_metrics()
        return ApiResponse(data=metrics.to_response())
    except Exception:
        logger.exception("Get analytics overview error")
        return _failure("Failed to get analytics overview")


@router.get("/company/{company_name}", response_model=ApiResponse)
async def get_company_analytics(
    company_name: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        analytics = await service.get_company_analytics(company_name)
        return ApiResponse(data=analytics.to_response())
    except Exception:
        logger.exception(f"Get company analytics error for {company_name}")
        return _failure("Failed to get company analytics")


@router.get("/reports/{report_type}", response_model=ApiResponse)
async def get_report(
    report_type: str,
    format: str = Query("json"),
    company_name: Optional[str] = Query(None, alias="companyName"),
    user: AuthenticatedUser = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """User reports are always for the caller; company reports need ?companyName=."""
    filters = {"userId": user.id}
    if company_name:
        filters["companyName"] = company_name
    try:
        report = await service.generate_report(report_type, filters, format)
        return ApiResponse(data=report)
    except Exception:
        logger.exception(f"Generate {report_type} report error")
        return _failure("Failed to generate report")


@router.get("/insights", response_model=ApiResponse)
async def get_market_insights(
    location: Optional[str] = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    service: MarketInsightsService = Depends(get_insights_service),
):
    try:
        insights = await service.generate_automated_market_insights(location)
        return ApiResponse(data=[insight.to_response() for insight in insights])
    except Exception:
        logger.exception("Get market insights error")
        return _failure("Failed to get market insights")


@router.get("/recommendations", response_model=ApiResponse)
async def get_recommendations(
    user: AuthenticatedUser = Depends(get_current_user),
    service: MarketInsightsService = Depends(get_insights_service),
):
    try:
        recommendations = await service.automate_user_recommendations(user.id)
        return ApiResponse(data=recommendations.to_response())
    except Exception:
        logger.exception(f"Get recommendations error for {user.id}")
        return _failure("Failed to get recommendations")


@router.get("/applications/{application_id}/match", response_model=ApiResponse)
async def get_job_match(
    application_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    analytics: AnalyticsService = Depends(get_analytics_service),
    matcher: JobMatchService = Depends(get_job_match_service),
):
    """AI match analysis plus the weighted application score; no placeholder scores."""
    try:
        queries = analytics.queries
        profile_owner, application = await asyncio.gather(
            asyncio.to_thread(queries.find_user, user.id),
            asyncio.to_thread(queries.find_application, application_id, user.id),
        )
        if profile_owner is None:
            raise NotFoundError("User", user.id)
        if application is None:
            raise NotFoundError("Application", application_id)

        profile = profile_owner.get("profile") or {}
        analysis = await matcher.analyze_job_match(profile, application)
        score = application_score(analysis)
        return ApiResponse(data={"analysis": analysis.to_response(), "applicationScore": score})
    except Exception:
        logger.exception(f"Job match analysis error for application {application_id}")
        return _failure("Failed to analyze job match")


# =============================================================================
# System and automation
# =============================================================================


@router.get("/system/health", response_model=ApiResponse)
async def get_system_health(
    user: AuthenticatedUser = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        return ApiResponse(data=await service.health_check())
    except Exception:
        logger.exception("Analytics health check error")
        return _failure("Failed to get system health")


@router.get("/system/cache", response_model=ApiResponse)
async def get_cache_stats(
    user: AuthenticatedUser = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        return ApiResponse(data=service.get_performance_stats()["cacheStats"])
    except Exception:
        logger.exception("Get cache stats error")
        return _failure("Failed to get cache stats")


@router.delete("/system/cache", response_model=ActionResponse)
async def clear_cache(
    user: AuthenticatedUser = Depends(require_admin),
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        service.clear_cache()
        logger.info(f"Analytics cache cleared by {user.id}")
        return ActionResponse(message="Analytics cache cleared")
    except Exception:
        logger.exception("Clear cache error")
        return _failure("Failed to clear cache")


@router.get("/automation/tasks", response_model=ApiResponse)
async def get_automation_tasks(
    user: AuthenticatedUser = Depends(get_current_user),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    try:
        return ApiResponse(data={
            "running": scheduler.is_running,
            "tasks": [task_to_dict(task) for task in scheduler.get_all_tasks()],
        })
    except Exception:
        logger.exception("Get automation tasks error")
        return _failure("Failed to get automation tasks")


@router.get("/automation/alerts", response_model=ApiResponse)
async def get_automation_alerts(
    user: AuthenticatedUser = Depends(get_current_user),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    try:
        return ApiResponse(data=[rule.to_dict() for rule in scheduler.get_all_alerts(user.id)])
    except Exception:
        logger.exception("Get automation alerts error")
        return _failure("Failed to get automation alerts")
