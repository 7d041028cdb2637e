"""
Shared Pydantic models for the analytics API.

Every analytics route answers with the same envelope: `{success, data}` on
success and `{success: false, message}` on failure.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Success envelope."""

    success: bool = True
    data: Any = None


class ErrorResponse(BaseModel):
    """Failure envelope; `message` is generic and never carries internals."""

    success: bool = False
    message: str


class ActionResponse(BaseModel):
    """Envelope for side-effecting admin endpoints."""

    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Liveness check response."""

    status: str = Field(..., description="Always 'healthy' while the process serves requests")
    service: str = "analytics-api"
    automation_running: bool = False
    timestamp: datetime
    version: Optional[str] = None
