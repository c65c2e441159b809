"""Dependency injection for API endpoints."""

from typing import cast

from fastapi import Depends, HTTPException, Request, WebSocket, status

from janitarr.application.services import (
    ActivityLogService,
    AutomationService,
    ConfigService,
    ServerService,
    StatsService,
)
from janitarr.application.workers import AutomationScheduler
from janitarr.infrastructure.lifecycle import AppContext


# Hey future me, the AppContext is attached to app.state by lifespan() (see
# infrastructure/lifecycle.py). If it's missing the app is still starting (or startup
# failed), so we answer 503 instead of crashing with AttributeError. Every other getter
# below goes through this one, so routes never touch app.state directly.
def get_context(request: Request) -> AppContext:
    """Get the application context from app state.

    Raises:
        HTTPException: 503 if the application is not initialized
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is not initialized",
        )
    return cast(AppContext, context)


def get_ws_context(websocket: WebSocket) -> AppContext | None:
    """WebSocket variant; returns None instead of raising (no HTTP response to send)."""
    return cast(AppContext | None, getattr(websocket.app.state, "context", None))


def get_scheduler(context: AppContext = Depends(get_context)) -> AutomationScheduler:
    return context.scheduler


def get_automation_service(context: AppContext = Depends(get_context)) -> AutomationService:
    return context.automation


def get_activity_log(context: AppContext = Depends(get_context)) -> ActivityLogService:
    return context.activity_log


def get_server_service(context: AppContext = Depends(get_context)) -> ServerService:
    return context.server_service


def get_config_service(context: AppContext = Depends(get_context)) -> ConfigService:
    return context.config_service


def get_stats_service(context: AppContext = Depends(get_context)) -> StatsService:
    return context.stats_service
