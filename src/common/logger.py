"""
Centralized logging configuration for the analytics service.

Provides a console formatter (simple or JSON) and an analytics logger that
tags request timings and performance metrics. In production the analytics
logger emits one JSON object per line so log aggregators can index it.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional


# Global debug mode flag - can be set via environment
_GLOBAL_DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"


def is_debug_mode() -> bool:
    """Check if debug mode is enabled globally."""
    return _GLOBAL_DEBUG_MODE


class AnalyticsLogger:
    """
    Logger for report requests and performance counters.

    Wraps a stdlib logger and formats request/metric events either as
    bracketed text (development) or as JSON lines (production).
    """

    def __init__(
        self,
        name: str,
        service: str = "analytics",
        json_output: Optional[bool] = None,
        debug_mode: Optional[bool] = None,
    ):
        """
        Initialize analytics logger.

        Args:
            name: Logger name (usually __name__)
            service: Service tag included in JSON events
            json_output: Force JSON output. If None, JSON is used when
                ENVIRONMENT=production.
            debug_mode: If True, enables DEBUG level for this logger.
                If None, uses global debug mode setting.
        """
        self.logger = logging.getLogger(name)
        self.service = service

        if json_output is None:
            json_output = os.getenv("ENVIRONMENT", "development").lower() == "production"
        self.json_output = json_output

        self._debug_mode = debug_mode if debug_mode is not None else is_debug_mode()
        if self._debug_mode:
            self.logger.setLevel(logging.DEBUG)

    def _emit(self, level: int, event: dict) -> None:
        event.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        self.logger.log(level, json.dumps(event, default=str))

    def log_request(self, operation: str, user_id: str, duration_ms: int, success: bool) -> None:
        """Log one completed (or failed) report request."""
        if self.json_output:
            self._emit(
                logging.INFO if success else logging.ERROR,
                {
                    "level": "info" if success else "error",
                    "service": self.service,
                    "operation": operation,
                    "userId": user_id,
                    "duration": duration_ms,
                    "success": success,
                    "environment": os.getenv("ENVIRONMENT", "development"),
                },
            )
            return

        status = "SUCCESS" if success else "FAILED"
        self.logger.log(
            logging.INFO if success else logging.ERROR,
            f"[ANALYTICS] {operation} for user {user_id} - {duration_ms}ms - {status}",
        )

    def log_metric(self, metric: str, value: Any, user_id: Optional[str] = None) -> None:
        """
        Log a performance counter (cache hit, slow query, error count).

        Metrics are JSON-only; in development they go to DEBUG.
        """
        if self.json_output:
            self._emit(
                logging.INFO,
                {
                    "level": "info",
                    "service": self.service,
                    "metric": metric,
                    "value": value,
                    "userId": user_id,
                },
            )
        else:
            self.logger.debug(f"[METRIC] {metric}={value}" + (f" user={user_id}" if user_id else ""))


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format ("simple" or "json")
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Remove existing handlers
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if format == "json":
        # JSON format for production (parseable by log aggregators)
        formatter = logging.Formatter(
            '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(
    name: str,
    service: str = "analytics",
    json_output: Optional[bool] = None,
) -> AnalyticsLogger:
    """
    Get an analytics logger instance.

    Args:
        name: Logger name (usually __name__)
        service: Service tag for JSON events
        json_output: Force JSON output (None = decide from ENVIRONMENT)

    Returns:
        AnalyticsLogger instance
    """
    return AnalyticsLogger(name, service=service, json_output=json_output)
