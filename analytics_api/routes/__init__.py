"""
Analytics API route modules.
"""

from .analytics import router as analytics_router

__all__ = [
    "analytics_router",
]
