"""Background worker that purges activity log entries past their retention window."""

import asyncio
import contextlib
import logging
from typing import Any

from janitarr.application.services.activity_log_service import ActivityLogService
from janitarr.domain.ports import IConfigStore
from janitarr.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)


class LogRetentionWorker:
    """Periodically deletes log entries older than the configured retention."""

    # Yo, retention_days is re-read from the config store on EVERY pass, so a PATCH to
    # /api/config takes effect at the next check without restarting this worker.
    def __init__(
        self,
        activity_log: ActivityLogService,
        config_store: IConfigStore,
        check_interval_seconds: int = 86400,
    ) -> None:
        """Initialize worker.

        Args:
            activity_log: Log service that owns the purge
            config_store: Source of the retention setting
            check_interval_seconds: Seconds between purge passes
        """
        self._activity_log = activity_log
        self._config_store = config_store
        self._check_interval = check_interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._last_purged = 0

    async def start(self) -> None:
        if self._running:
            logger.warning("Log retention worker is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            LogMessages.worker_started(
                worker="Log retention", interval=self._check_interval
            )
        )

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Log retention worker stopped")

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "check_interval_seconds": self._check_interval,
            "last_purged": self._last_purged,
        }

    async def purge_once(self) -> int:
        """Run one purge pass and return how many entries were removed."""
        retention = await self._config_store.get_retention_config()
        removed = await self._activity_log.purge_older_than(retention.retention_days)
        self._last_purged = removed
        return removed

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.purge_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    LogMessages.worker_failed(worker="Log retention", error=str(e)),
                    exc_info=True,
                )
            await asyncio.sleep(self._check_interval)
