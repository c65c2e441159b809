"""Metrics endpoints for Prometheus scraping.

Hey future me - mounted at /metrics (no /api prefix), next to /health, because that's
where Prometheus looks by default:

- GET /metrics       -> Prometheus text format
- GET /metrics/json  -> same numbers as JSON, handy for debugging

Prometheus config example:
    scrape_configs:
      - job_name: 'janitarr'
        static_configs:
          - targets: ['localhost:3434']
"""

import logging
from collections import Counter
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from janitarr.api.dependencies import get_context
from janitarr.domain.exceptions import DomainException
from janitarr.infrastructure.lifecycle import AppContext
from janitarr.infrastructure.observability import HealthStatus, check_database_health

logger = logging.getLogger(__name__)

router = APIRouter()


# Listen up, counters are pushed by the automation cycle; everything below is a gauge we
# read fresh on every scrape. A broken database must not break the scrape itself, so the
# DB-backed gauges are skipped with a warning and database_connected reports 0.
async def _refresh_gauges(context: AppContext) -> None:
    metrics = context.metrics
    scheduler = context.scheduler

    metrics.set_gauge("scheduler_enabled", int(scheduler.config.enabled))
    metrics.set_gauge("scheduler_running", int(scheduler.is_running))
    metrics.set_gauge("scheduler_cycle_active", int(scheduler.is_cycle_active))
    next_run = scheduler.next_run_time
    metrics.set_gauge(
        "scheduler_next_run_timestamp", int(next_run.timestamp()) if next_run else 0
    )

    database = await check_database_health(context.db)
    connected = database.status is HealthStatus.HEALTHY
    metrics.set_gauge("database_connected", int(connected))
    if not connected:
        return

    try:
        servers = await context.server_store.list_servers()
        metrics.set_server_counts(
            configured=Counter(server.category for server in servers),
            enabled=Counter(server.category for server in servers if server.enabled),
        )
        metrics.set_gauge("logs_total", await context.activity_log.count())
    except DomainException as e:
        logger.warning("Failed to refresh database metrics: %s", e)


@router.get("", response_class=PlainTextResponse)
async def prometheus_metrics(context: AppContext = Depends(get_context)) -> str:
    """Metrics in Prometheus text exposition format."""
    await _refresh_gauges(context)
    return context.metrics.to_prometheus_format()


@router.get("/json")
async def metrics_json(context: AppContext = Depends(get_context)) -> dict[str, Any]:
    """Metrics as JSON."""
    await _refresh_gauges(context)
    return context.metrics.get_summary()
