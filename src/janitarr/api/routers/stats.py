"""Dashboard statistics endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from janitarr.api.dependencies import get_scheduler, get_stats_service
from janitarr.application.services import StatsService
from janitarr.application.workers import AutomationScheduler

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("/summary")
async def stats_summary(
    stats_service: StatsService = Depends(get_stats_service),
    scheduler: AutomationScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    """Server counts, 24h activity and schedule timing."""
    stats = await stats_service.get_system_stats()
    data = stats.to_dict()
    next_run = scheduler.next_run_time
    data["next_scheduled_time"] = next_run.isoformat() if next_run else None
    return data


@router.get("/servers/{server_id}")
async def server_stats(
    server_id: str,
    stats_service: StatsService = Depends(get_stats_service),
) -> dict[str, Any]:
    """Lifetime counters for one server (id or name)."""
    stats = await stats_service.get_server_stats(server_id)
    return stats.to_dict()
