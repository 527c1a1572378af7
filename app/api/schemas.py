"""API request and response schemas.

Pydantic v2 models for API serialization/deserialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.replication.models import RunSummary


# =============================================================================
# Webhook Schemas
# =============================================================================


class WebhookResponse(BaseModel):
    """Response for a completed webhook run."""

    message: str = Field(default="Workflow processing completed successfully")
    results: RunSummary


# =============================================================================
# Diagnostics Schemas
# =============================================================================


class HealthResponse(BaseModel):
    """Liveness probe response."""

    status: str = "OK"
    message: str = "Server is running"


class LogMessage(BaseModel):
    """One buffered log line."""

    timestamp: str
    level: str
    message: str


class DebugResponse(BaseModel):
    """Recent log messages and credential status."""

    message: str = "Debug information"
    timestamp: datetime
    api_key: str = Field(description="'Set' or 'Missing'")
    api_key_format: str
    api_key_length: int
    recent_messages: list[LogMessage] = Field(default_factory=list)


class EpicDetails(BaseModel):
    """Epic information as read from the record store."""

    id: str
    name: str
    anchor_date: datetime | None = None


class EpicCheckResponse(BaseModel):
    """Response for the epic lookup diagnostic."""

    success: bool
    epic_details: EpicDetails | None = None
    error: str | None = None
    timestamp: datetime


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(description="Error message")
    error_code: str | None = Field(default=None, description="Application-specific error code")
    extra: dict[str, Any] | None = Field(default=None, description="Additional error context")
