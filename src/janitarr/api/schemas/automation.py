"""API schemas for automation control."""

from typing import Any

from pydantic import BaseModel, Field


class TriggerRequest(BaseModel):
    """Request body for a manual cycle."""

    dry_run: bool = Field(
        default=False,
        description="Run detection and item selection only; no searches, no log entries",
    )


class AutomationStatusResponse(BaseModel):
    """Scheduler state plus the last finished cycle."""

    is_running: bool = Field(description="Timer is armed")
    is_cycle_active: bool = Field(description="A cycle is executing right now")
    next_run_time: str | None = Field(default=None, description="ISO time of next tick")
    last_run_time: str | None = Field(default=None, description="ISO time of last cycle")
    seconds_until_next_run: float | None = Field(default=None)
    config: dict[str, Any] = Field(default_factory=dict, description="Schedule config")
    last_cycle: dict[str, Any] | None = Field(
        default=None, description="Snapshot of the most recent finished cycle"
    )
