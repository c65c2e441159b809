"""Observability infrastructure for structured logging, health checks and metrics."""

from janitarr.infrastructure.observability.health import (
    HealthCheck,
    HealthStatus,
    check_database_health,
    check_scheduler_health,
    overall_status,
)
from janitarr.infrastructure.observability.log_messages import LogMessages, LogTemplate
from janitarr.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)
from janitarr.infrastructure.observability.metrics import AutomationMetrics

__all__ = [
    "AutomationMetrics",
    "HealthCheck",
    "HealthStatus",
    "LogMessages",
    "LogTemplate",
    "check_database_health",
    "check_scheduler_health",
    "configure_logging",
    "get_correlation_id",
    "overall_status",
    "set_correlation_id",
]
