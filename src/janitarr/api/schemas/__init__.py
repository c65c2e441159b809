"""API schemas: request bodies and typed responses."""

from janitarr.api.schemas.automation import AutomationStatusResponse, TriggerRequest
from janitarr.api.schemas.config import ConfigUpdateRequest, RateLimitUpdate
from janitarr.api.schemas.logs import LogDeleteResponse, LogListResponse
from janitarr.api.schemas.servers import (
    ServerCreateRequest,
    ServerResponse,
    ServerTestResponse,
    ServerUpdateRequest,
)

__all__ = [
    "AutomationStatusResponse",
    "ConfigUpdateRequest",
    "LogDeleteResponse",
    "LogListResponse",
    "RateLimitUpdate",
    "ServerCreateRequest",
    "ServerResponse",
    "ServerTestResponse",
    "ServerUpdateRequest",
    "TriggerRequest",
]
