"""
QuestSheet - Common Schemas.

Shared Pydantic models used across all modules.
"""

from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# Error Responses
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response. Kept flat: clients switch on `error`."""

    error: str = Field(..., description="Machine-readable error code")
    message: str | None = Field(default=None, description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional context")
    request_id: str | None = Field(default=None, description="Request ID for tracing")


# =============================================================================
# Health Check
# =============================================================================


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str = Field(..., pattern="^(healthy|degraded)$")
    version: str
    app_env: str | None = None
    store_backend: str | None = None


class CacheQueueHealth(BaseModel):
    """Cache freshness and write backlog, for probes and dashboards."""

    cache_age_ms: int | None = Field(default=None, description="Age of the task snapshot; null before the first fetch")
    cache_rows: int = 0
    queue_depth: int = 0
