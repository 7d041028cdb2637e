"""
Service providers for route dependencies.

Each provider returns a process-wide instance. Tests swap them out with
`app.dependency_overrides`.
"""

from functools import lru_cache

from src.analytics.insights import MarketInsightsService
from src.analytics.scheduler import AutomationScheduler, create_scheduler
from src.analytics.service import AnalyticsService
from src.analytics.simple_service import SimpleAnalyticsService
from src.services.job_match_service import JobMatchService


@lru_cache()
def get_analytics_service() -> AnalyticsService:
    return AnalyticsService()


@lru_cache()
def get_simple_analytics_service() -> SimpleAnalyticsService:
    return SimpleAnalyticsService()


@lru_cache()
def get_insights_service() -> MarketInsightsService:
    return MarketInsightsService(get_analytics_service())


@lru_cache()
def get_scheduler() -> AutomationScheduler:
    return create_scheduler(get_analytics_service())


@lru_cache()
def get_job_match_service() -> JobMatchService:
    return JobMatchService()
