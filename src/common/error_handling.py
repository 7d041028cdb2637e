"""
Centralized error handling for the analytics service.

Defines the exception taxonomy used by the report services and decorators
for the two failure policies they follow:

- Root entity missing: raise NotFoundError immediately.
- Query/aggregation failure: wrap and re-raise as AnalyticsError with a
  prefixed message (see wrap_errors).
- AI dependency failure on job-match: raise AIServiceError, never a
  fabricated score.
- Everything else: degrade to a hard-coded fallback value (see with_fallback).
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

# Type variable for generic return types
T = TypeVar("T")


class AnalyticsError(Exception):
    """Base error for report computation failures."""


class NotFoundError(AnalyticsError):
    """A root entity (user, resume, application) does not exist."""

    def __init__(self, entity: str, identifier: Optional[str] = None):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found")


class ReportFormatError(AnalyticsError):
    """Requested export format is not supported."""


class AIServiceError(AnalyticsError):
    """Hosted LLM call failed, timed out, or returned an unusable response."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


def wrap_errors(prefix: str):
    """
    Decorator that re-raises any failure as AnalyticsError("<prefix>: <cause>").

    The original exception is kept as __cause__ so callers can still inspect
    it (e.g. to map a wrapped NotFoundError to a 404).

    Usage:
        @wrap_errors("Failed to get dashboard metrics")
        async def _compute_dashboard(self): ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    raise AnalyticsError(f"{prefix}: {e}") from e

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                raise AnalyticsError(f"{prefix}: {e}") from e

        return wrapper

    return decorator


def with_fallback(
    operation_name: str,
    fallback: Any = None,
    fallback_factory: Optional[Callable[..., Any]] = None,
    level: int = logging.WARNING,
):
    """
    Decorator for best-effort sections that degrade to a fixed value.

    Works on both sync and async callables. On failure the exception is
    logged at `level` and the fallback is returned. `fallback_factory`, when
    given, is called with the same arguments as the wrapped function and its
    result returned instead of `fallback` (for per-call fallbacks such as
    salary defaults by country).

    Usage:
        @with_fallback("skills analytics", fallback_factory=lambda self: DEFAULT_SKILLS)
        async def _skills_analytics(self): ...
    """

    def _resolve(args, kwargs):
        if fallback_factory is not None:
            return fallback_factory(*args, **kwargs)
        return fallback

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        logger = logging.getLogger(func.__module__)

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    logger.log(level, f"[{operation_name}] Failed, using fallback: {e}")
                    return _resolve(args, kwargs)

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.log(level, f"[{operation_name}] Failed, using fallback: {e}")
                return _resolve(args, kwargs)

        return wrapper

    return decorator
