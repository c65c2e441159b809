"""Health check functionality for the database and the automation scheduler."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import text

from janitarr.domain.entities import LastCycleSnapshot

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "ok"
    DEGRADED = "degraded"
    UNHEALTHY = "error"


@dataclass
class HealthCheck:
    """Result of a health check."""

    name: str
    status: HealthStatus
    message: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value}
        if self.message:
            data["message"] = self.message
        if self.details:
            data.update(self.details)
        return data


async def check_database_health(db: Any) -> HealthCheck:
    """Check database connectivity.

    Args:
        db: Database instance

    Returns:
        Health check result
    """
    try:
        async with db.session_scope() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()

        return HealthCheck(
            name="database",
            status=HealthStatus.HEALTHY,
            message="Database connection successful",
        )

    except Exception as e:
        logger.exception("Database health check failed", extra={"error": str(e)})
        return HealthCheck(
            name="database",
            status=HealthStatus.UNHEALTHY,
            message=f"Database connection failed: {str(e)}",
        )


# Hey future me, the scheduler rules:
# - enabled in config but not actually running -> UNHEALTHY (nothing will ever run!)
# - disabled in config -> DEGRADED (operator's choice, but automation is off)
# - last cycle aborted or had failures -> DEGRADED (storage or some server is unhappy)
# - otherwise HEALTHY (including "no cycle has run yet")
def check_scheduler_health(
    is_running: bool,
    enabled: bool,
    last_cycle: LastCycleSnapshot | None,
) -> HealthCheck:
    """Derive scheduler health from its status and the last cycle snapshot."""
    details: dict[str, Any] = {"running": is_running, "enabled": enabled}
    if last_cycle is not None:
        details["last_cycle"] = last_cycle.to_dict()

    if enabled and not is_running:
        return HealthCheck(
            name="scheduler",
            status=HealthStatus.UNHEALTHY,
            message="Scheduler is enabled but not running",
            details=details,
        )
    if not enabled:
        return HealthCheck(
            name="scheduler",
            status=HealthStatus.DEGRADED,
            message="Scheduler is disabled",
            details=details,
        )
    if last_cycle is not None and last_cycle.error is not None:
        return HealthCheck(
            name="scheduler",
            status=HealthStatus.DEGRADED,
            message=f"Last cycle aborted: {last_cycle.error}",
            details=details,
        )
    if last_cycle is not None and last_cycle.total_failures > 0:
        return HealthCheck(
            name="scheduler",
            status=HealthStatus.DEGRADED,
            message=f"Last cycle had {last_cycle.total_failures} failures",
            details=details,
        )
    return HealthCheck(name="scheduler", status=HealthStatus.HEALTHY, details=details)


def overall_status(checks: list[HealthCheck]) -> HealthStatus:
    """Worst status wins."""
    statuses = {check.status for check in checks}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
