"""Automation scheduler: timed and manual cycles with single-flight execution."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from janitarr.application.services.automation_service import AutomationService
from janitarr.domain.entities import CycleResult, ScheduleConfig, utc_now
from janitarr.domain.exceptions import CycleInProgressError
from janitarr.domain.ports import IConfigStore
from janitarr.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class AutomationScheduler:
    """Runs automation cycles on a recurring timer and on demand.

    States: stopped -> running (idle <-> cycle active) -> stopped.
    """

    # Hey future me, the single-flight guarantee is ONE bool: _cycle_active. It's checked
    # and set in _launch_cycle() with no await in between, so on one event loop two callers
    # can never both get past it. Manual triggers that lose the race get CycleInProgressError;
    # timer ticks that lose it just skip (they'll fire again next interval). Nothing queues.
    #
    # Every cycle runs in its OWN task, and the timer only awaits it through
    # asyncio.shield(). stop() cancels the timer task, which cancels the shield-wait but
    # NOT the cycle - a cycle that already started always runs to completion, we never
    # abort half-sent search commands.
    #
    # The sleep function is injectable so tests can drive timer ticks without waiting hours.
    def __init__(
        self,
        automation: AutomationService,
        config_store: IConfigStore,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize scheduler.

        Args:
            automation: Service that runs one cycle
            config_store: Where the schedule config is read and persisted
            sleep: Coroutine used to wait between ticks
        """
        self._automation = automation
        self._config_store = config_store
        self._sleep = sleep
        self._config = ScheduleConfig()
        self._running = False
        self._cycle_active = False
        self._timer_task: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[CycleResult | None] | None = None
        self._next_run_time: datetime | None = None
        self._last_run_time: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_cycle_active(self) -> bool:
        return self._cycle_active

    @property
    def config(self) -> ScheduleConfig:
        return self._config

    async def load_config(self) -> ScheduleConfig:
        """Refresh the cached schedule config from the store."""
        self._config = await self._config_store.get_schedule_config()
        return self._config

    async def start(self) -> None:
        """Start the scheduler.

        No-op if already running or if the schedule is disabled. Otherwise launches one
        cycle immediately (or as soon as an already active cycle finishes) and arms the
        recurring timer (first tick one interval after that cycle finishes).
        """
        if self._running:
            logger.warning("Automation scheduler is already running")
            return

        config = await self.load_config()
        if not config.enabled:
            logger.info("Automation scheduler is disabled, not starting")
            return

        # Another start() may have won while we awaited the config read.
        if self._running:
            return

        self._running = True
        if self._cycle_active:
            logger.info("Immediate cycle deferred until the active cycle finishes")
            self._timer_task = asyncio.create_task(
                self._timer_loop(None, wait_for=self._cycle_task)
            )
        else:
            self._timer_task = asyncio.create_task(
                self._timer_loop(self._launch_cycle(is_manual=False))
            )
        logger.info(
            LogMessages.worker_started(
                worker="Automation scheduler",
                interval=config.interval_seconds,
                config={"Interval hours": config.interval_hours},
            )
        )

    async def stop(self) -> None:
        """Stop the timer. Idempotent; an active cycle keeps running to completion."""
        if not self._running and self._timer_task is None:
            logger.debug("Automation scheduler is already stopped")
            return

        self._running = False
        task, self._timer_task = self._timer_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._next_run_time = None
        logger.info("Automation scheduler stopped")

    async def trigger_manual(self, dry_run: bool = False) -> CycleResult:
        """Run a manual cycle now and wait for its result.

        Does not touch the timer's next fire time.

        Raises:
            CycleInProgressError: If a cycle is already active
            PersistenceError: If the cycle aborted because the log store failed
        """
        task = self._launch_cycle(is_manual=True, dry_run=dry_run)
        result = await asyncio.shield(task)
        if result is None:  # pragma: no cover - manual cycles raise instead
            raise RuntimeError("Manual cycle produced no result")
        return result

    # Listen up, reconfigure() validates by building a new ScheduleConfig (raises
    # ConfigurationError) BEFORE persisting. Then:
    # - enabled -> disabled while running: stop()
    # - disabled -> enabled while stopped: start() (runs a cycle immediately)
    # - interval changed while running: stop() + start(), which ALSO runs one cycle
    #   immediately. That extra cycle is intended behavior - it's how a new interval
    #   takes effect right away, and people rely on it. If a cycle is still running at
    #   that moment (e.g. the startup cycle), the extra cycle is deferred, not dropped:
    #   the timer waits for the active cycle and then fires it.
    async def reconfigure(
        self,
        interval_hours: int | None = None,
        enabled: bool | None = None,
    ) -> ScheduleConfig:
        """Change and persist the schedule, restarting the timer as needed."""
        current = await self._config_store.get_schedule_config()
        new_config = ScheduleConfig(
            interval_hours=interval_hours if interval_hours is not None else current.interval_hours,
            enabled=enabled if enabled is not None else current.enabled,
        )
        await self._config_store.set_schedule_config(new_config)
        self._config = new_config
        logger.info(
            "Schedule updated: every %dh, %s",
            new_config.interval_hours,
            "enabled" if new_config.enabled else "disabled",
        )

        if not new_config.enabled:
            if self._running:
                await self.stop()
        elif not self._running:
            await self.start()
        elif new_config.interval_hours != current.interval_hours:
            await self.stop()
            await self.start()

        return new_config

    def get_status(self) -> dict[str, Any]:
        """Get scheduler status for monitoring/UI."""
        return {
            "is_running": self._running,
            "is_cycle_active": self._cycle_active,
            "next_run_time": self._next_run_time.isoformat() if self._next_run_time else None,
            "last_run_time": self._last_run_time.isoformat() if self._last_run_time else None,
            "config": self._config.to_dict(),
        }

    @property
    def next_run_time(self) -> datetime | None:
        return self._next_run_time

    @property
    def last_run_time(self) -> datetime | None:
        return self._last_run_time

    def time_until_next_run(self) -> float | None:
        """Seconds until the next timer tick, or None when nothing is scheduled."""
        if self._next_run_time is None:
            return None
        return max(0.0, (self._next_run_time - utc_now()).total_seconds())

    async def wait_for_idle(self) -> None:
        """Wait until the current cycle (if any) has finished."""
        task = self._cycle_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Stop the timer and give an active cycle up to `timeout` seconds to finish."""
        await self.stop()
        task = self._cycle_task
        if task is not None and not task.done():
            logger.info("Waiting up to %.0fs for the active automation cycle", timeout)
            _, pending = await asyncio.wait({task}, timeout=timeout)
            if pending:
                logger.warning("Active automation cycle did not finish before shutdown")

    def _launch_cycle(
        self, is_manual: bool, dry_run: bool = False
    ) -> asyncio.Task[CycleResult | None]:
        if self._cycle_active:
            raise CycleInProgressError()
        self._cycle_active = True
        task = asyncio.create_task(self._execute_cycle(is_manual, dry_run))
        self._cycle_task = task
        return task

    async def _execute_cycle(self, is_manual: bool, dry_run: bool) -> CycleResult | None:
        try:
            result = await self._automation.run_cycle(is_manual=is_manual, dry_run=dry_run)
            if not dry_run:
                self._last_run_time = result.finished_at or utc_now()
            return result
        except Exception as e:
            logger.error(
                LogMessages.worker_failed(worker="Automation cycle", error=str(e)),
                exc_info=True,
            )
            if is_manual:
                raise
            return None
        finally:
            self._cycle_active = False

    async def _timer_loop(
        self,
        first_cycle: asyncio.Task[CycleResult | None] | None,
        wait_for: asyncio.Task[CycleResult | None] | None = None,
    ) -> None:
        if wait_for is not None:
            # wait_for may be a manual cycle that raises; its error belongs to its caller.
            await asyncio.wait({wait_for})
            if self._running and not self._cycle_active:
                first_cycle = self._launch_cycle(is_manual=False)
        if first_cycle is not None:
            await asyncio.shield(first_cycle)

        while self._running:
            interval = self._config.interval_seconds
            self._next_run_time = utc_now() + timedelta(seconds=interval)
            await self._sleep(interval)
            self._next_run_time = None

            if not self._running:
                break
            if self._cycle_active:
                logger.warning("Scheduled cycle skipped: a cycle is already in progress")
                continue

            await asyncio.shield(self._launch_cycle(is_manual=False))
