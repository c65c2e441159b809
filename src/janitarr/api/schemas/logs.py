"""API schemas for the activity log."""

from typing import Any

from pydantic import BaseModel, Field


class LogListResponse(BaseModel):
    """One page of log entries, newest first."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    total: int = Field(description="Entries matching the filters")
    limit: int
    offset: int


class LogDeleteResponse(BaseModel):
    deleted_count: int
