"""Runtime configuration: schedule, rate limits and log retention."""

import dataclasses
import logging
from typing import TYPE_CHECKING

from janitarr.domain.entities import (
    AppConfig,
    LogRetentionConfig,
    RateLimitConfig,
    ScheduleConfig,
)
from janitarr.domain.exceptions import ConfigurationError
from janitarr.domain.ports import IConfigStore

if TYPE_CHECKING:
    from janitarr.application.workers.scheduler import AutomationScheduler

logger = logging.getLogger(__name__)


class ConfigService:
    """Reads and validates runtime configuration edits."""

    def __init__(
        self,
        config_store: IConfigStore,
        scheduler: "AutomationScheduler | None" = None,
    ) -> None:
        self._store = config_store
        self._scheduler = scheduler

    async def get_config(self) -> AppConfig:
        return AppConfig(
            schedule=await self._store.get_schedule_config(),
            limits=await self._store.get_rate_limits(),
            retention=await self._store.get_retention_config(),
        )

    # Listen up, ALL new values are validated (by building the frozen dataclasses, whose
    # __post_init__ raises ConfigurationError) before ANYTHING is written. A request with a
    # good interval and a bad limit changes nothing. Schedule changes go through the
    # scheduler so it can start/stop/re-arm its timer.
    async def update_config(
        self,
        interval_hours: int | None = None,
        enabled: bool | None = None,
        limits: dict[str, int] | None = None,
        retention_days: int | None = None,
    ) -> AppConfig:
        """Apply a partial configuration update.

        Args:
            interval_hours: New schedule interval (1..168)
            enabled: Enable or disable the schedule
            limits: Subset of rate limit fields to change (0..1000 each)
            retention_days: New log retention (7..90)

        Raises:
            ConfigurationError: If any value is out of range (nothing is persisted)
        """
        current = await self.get_config()

        unknown = set(limits or {}) - {f.name for f in dataclasses.fields(RateLimitConfig)}
        if unknown:
            raise ConfigurationError(f"Unknown rate limit fields: {', '.join(sorted(unknown))}")

        new_schedule = ScheduleConfig(
            interval_hours=(
                interval_hours if interval_hours is not None else current.schedule.interval_hours
            ),
            enabled=enabled if enabled is not None else current.schedule.enabled,
        )
        new_limits = (
            dataclasses.replace(current.limits, **limits) if limits else current.limits
        )
        new_retention = (
            LogRetentionConfig(retention_days=retention_days)
            if retention_days is not None
            else current.retention
        )

        if new_limits != current.limits:
            await self._store.set_rate_limits(new_limits)
            logger.info("Rate limits updated: %s", new_limits.to_dict())
        if new_retention != current.retention:
            await self._store.set_retention_config(new_retention)
            logger.info("Log retention set to %d days", new_retention.retention_days)
        if new_schedule != current.schedule:
            if self._scheduler is not None:
                await self._scheduler.reconfigure(
                    interval_hours=new_schedule.interval_hours,
                    enabled=new_schedule.enabled,
                )
            else:
                await self._store.set_schedule_config(new_schedule)

        return AppConfig(schedule=new_schedule, limits=new_limits, retention=new_retention)

    async def reset_config(self) -> AppConfig:
        """Put schedule, rate limits and retention back to their defaults.

        Servers and the activity log are left alone.
        """
        defaults = AppConfig()
        config = await self.update_config(
            interval_hours=defaults.schedule.interval_hours,
            enabled=defaults.schedule.enabled,
            limits=defaults.limits.to_dict(),
            retention_days=defaults.retention.retention_days,
        )
        logger.info("Configuration reset to defaults")
        return config
