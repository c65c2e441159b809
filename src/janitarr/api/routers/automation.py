"""Automation control endpoints: manual trigger and scheduler status."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from janitarr.api.dependencies import get_automation_service, get_scheduler
from janitarr.api.schemas import AutomationStatusResponse, TriggerRequest
from janitarr.application.services import AutomationService, format_cycle_result
from janitarr.application.workers import AutomationScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/automation", tags=["Automation"])


# Hey future me, a manual trigger runs the WHOLE cycle before answering. That's what the
# UI wants (it shows the summary right away), and a cycle is bounded by the rate limits.
# If a cycle is already running (timer or another click) the scheduler raises
# CycleInProgressError -> 409, we never queue a second one. The cycle itself runs in its
# own task, so a client that disconnects mid-request doesn't cancel it.
@router.post("/trigger")
async def trigger_cycle(
    request: TriggerRequest | None = Body(default=None),
    scheduler: AutomationScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    """Run one automation cycle now.

    Args:
        request: Optional body; {"dry_run": true} previews without searching

    Returns:
        Cycle result plus a human-readable summary
    """
    dry_run = request.dry_run if request is not None else False
    logger.info("Manual automation cycle requested (dry_run=%s)", dry_run)
    result = await scheduler.trigger_manual(dry_run=dry_run)
    data = result.to_dict()
    data["summary"] = format_cycle_result(result)
    return data


@router.get("/status", response_model=AutomationStatusResponse)
async def automation_status(
    scheduler: AutomationScheduler = Depends(get_scheduler),
    automation: AutomationService = Depends(get_automation_service),
) -> AutomationStatusResponse:
    """Scheduler state and the last finished cycle."""
    status = scheduler.get_status()
    last_cycle = automation.last_cycle
    return AutomationStatusResponse(
        **status,
        seconds_until_next_run=scheduler.time_until_next_run(),
        last_cycle=last_cycle.to_dict() if last_cycle else None,
    )
