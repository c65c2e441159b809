# Hey future me - these endpoints are for Docker health checks and monitoring!
#
# Endpoints:
# - /health       → database + scheduler + last cycle (503 when status is "error")
# - /health/live  → liveness check, no dependency checks
#
# Docker HEALTHCHECK: curl -f http://localhost:3434/health/live || exit 1
"""Health check endpoints."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from janitarr import __version__
from janitarr.api.dependencies import get_context
from janitarr.infrastructure.observability import (
    HealthCheck,
    HealthStatus,
    check_database_health,
    check_scheduler_health,
    overall_status,
)

router = APIRouter()


class HealthResponse(BaseModel):
    """Overall health status response."""

    status: str = Field(description="Overall status: ok, degraded, error")
    timestamp: str = Field(description="ISO timestamp of health check")
    version: str = Field(default=__version__, description="Application version")
    uptime_seconds: float | None = Field(
        default=None, description="Seconds since app started"
    )
    checks: dict[str, Any] = Field(
        default_factory=dict, description="Individual component checks"
    )


class LivenessStatus(BaseModel):
    """Simple liveness response."""

    status: str = Field(description="alive")
    timestamp: str = Field(description="ISO timestamp")


@router.get("/live", response_model=LivenessStatus)
async def liveness() -> LivenessStatus:
    """Liveness check. Returns 200 whenever the process can answer at all."""
    return LivenessStatus(status="alive", timestamp=datetime.now(UTC).isoformat())


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    """Comprehensive health check endpoint.

    Returns 200 for ok/degraded, 503 for error.
    """
    context = get_context(request)
    scheduler = context.scheduler

    checks: list[HealthCheck] = [
        await check_database_health(context.db),
        check_scheduler_health(
            is_running=scheduler.is_running,
            enabled=scheduler.config.enabled,
            last_cycle=context.automation.last_cycle,
        ),
    ]
    overall = overall_status(checks)

    response = HealthResponse(
        status=overall.value,
        timestamp=datetime.now(UTC).isoformat(),
        uptime_seconds=(datetime.now(UTC) - context.started_at).total_seconds(),
        checks={check.name: check.to_dict() for check in checks},
    )
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if overall is HealthStatus.UNHEALTHY
        else status.HTTP_200_OK
    )
    return JSONResponse(content=response.model_dump(), status_code=status_code)
