"""Runtime configuration endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from janitarr.api.dependencies import get_config_service
from janitarr.api.schemas import ConfigUpdateRequest
from janitarr.application.services import ConfigService

router = APIRouter(prefix="/config", tags=["Config"])


@router.get("")
async def get_config(
    config_service: ConfigService = Depends(get_config_service),
) -> dict[str, Any]:
    """Current schedule, rate limits and log retention."""
    config = await config_service.get_config()
    return config.to_dict()


# Yo, PATCH semantics: only fields present in the body change. An out-of-range value
# anywhere in the body fails the WHOLE request with 422 and nothing is saved.
@router.patch("")
async def update_config(
    body: ConfigUpdateRequest,
    config_service: ConfigService = Depends(get_config_service),
) -> dict[str, Any]:
    """Apply a partial configuration update."""
    config = await config_service.update_config(
        interval_hours=body.interval_hours,
        enabled=body.enabled,
        limits=body.limits.changed() if body.limits else None,
        retention_days=body.retention_days,
    )
    return config.to_dict()


@router.put("/reset")
async def reset_config(
    config_service: ConfigService = Depends(get_config_service),
) -> dict[str, Any]:
    """Restore default schedule, rate limits and retention. Servers are kept."""
    config = await config_service.reset_config()
    return config.to_dict()
