"""API schemas for runtime configuration.

Range checks (interval 1..168, limits 0..1000, retention 7..90) are NOT repeated here. The
domain config dataclasses own them and raise ConfigurationError, which maps to 422 with a
readable message.
"""

from pydantic import BaseModel, Field


class RateLimitUpdate(BaseModel):
    """Partial rate limit update; omitted fields keep their value."""

    missing_movies: int | None = None
    missing_episodes: int | None = None
    cutoff_movies: int | None = None
    cutoff_episodes: int | None = None

    def changed(self) -> dict[str, int]:
        return {key: value for key, value in self.model_dump().items() if value is not None}


class ConfigUpdateRequest(BaseModel):
    """PATCH body for /api/config."""

    interval_hours: int | None = Field(default=None, description="Cycle interval in hours")
    enabled: bool | None = Field(default=None, description="Enable the schedule")
    limits: RateLimitUpdate | None = Field(default=None, description="Per-cycle limits")
    retention_days: int | None = Field(default=None, description="Activity log retention")
