"""
Application-tracking analytics.

Report services over the applications, users, sessions and resumes
collections, plus market insights and the automation scheduler.
"""

from src.analytics.cache import AnalyticsCache, create_cache
from src.analytics.insights import MarketInsightsService
from src.analytics.scheduler import AutomationScheduler, create_scheduler
from src.analytics.service import AnalyticsService
from src.analytics.simple_service import SimpleAnalyticsService

__all__ = [
    "AnalyticsCache",
    "create_cache",
    "AnalyticsService",
    "SimpleAnalyticsService",
    "MarketInsightsService",
    "AutomationScheduler",
    "create_scheduler",
]
