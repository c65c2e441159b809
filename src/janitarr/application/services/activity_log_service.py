"""Activity log: durable append-only history plus live broadcast."""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from janitarr.application.services.broadcast_hub import BroadcastHub
from janitarr.domain.entities import (
    LogEntry,
    LogEntryType,
    LogFilters,
    LogOperation,
    SearchCategory,
    ServerCategory,
    utc_now,
)
from janitarr.domain.ports import IActivityLogStore

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 1000


class ActivityLogService:
    """Appends, queries and prunes activity log entries."""

    def __init__(self, store: IActivityLogStore, hub: BroadcastHub | None = None) -> None:
        """Initialize the service.

        Args:
            store: Durable log storage
            hub: Broadcast hub for live observers (optional)
        """
        self._store = store
        self._hub = hub
        self._last_timestamp: datetime | None = None

    # Hey future me, append() is the ONLY way entries get an id and a timestamp. Timestamps
    # are forced strictly increasing within the process (bumped by 1µs on a tie) so that
    # "newest first" ordering always agrees with append order - cycle_start can never sort
    # after the cycle_end of the same cycle. The store write happens BEFORE the broadcast:
    # observers never see an entry that didn't make it to disk. A store failure raises
    # PersistenceError to the caller and nothing is broadcast.
    async def append(self, entry: LogEntry) -> LogEntry:
        """Stamp, persist and broadcast a log entry.

        Args:
            entry: Draft entry (id/timestamp are overwritten)

        Returns:
            The stamped entry as stored

        Raises:
            PersistenceError: If the entry could not be stored
        """
        stamped = LogEntry(
            id=str(uuid.uuid4()),
            timestamp=self._next_timestamp(),
            type=entry.type,
            message=entry.message,
            server_name=entry.server_name,
            server_type=entry.server_type,
            category=entry.category,
            count=entry.count,
            operation=entry.operation,
            is_manual=entry.is_manual,
            metadata=entry.metadata,
        )
        await self._store.append(stamped)

        if self._hub is not None:
            self._hub.publish(stamped)
        return stamped

    def _next_timestamp(self) -> datetime:
        now = utc_now()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    # === Convenience writers used by the automation cycle ===

    async def log_cycle_start(
        self, is_manual: bool, metadata: dict[str, Any] | None = None
    ) -> LogEntry:
        message = (
            "Manual automation cycle started" if is_manual else "Scheduled automation cycle started"
        )
        return await self.append(
            LogEntry(
                type=LogEntryType.CYCLE_START,
                message=message,
                operation=LogOperation.CYCLE,
                is_manual=is_manual,
                metadata=metadata,
            )
        )

    async def log_cycle_end(
        self,
        total_searches: int,
        total_failures: int,
        is_manual: bool,
        metadata: dict[str, Any] | None = None,
    ) -> LogEntry:
        message = f"Automation cycle complete: {total_searches} searches triggered"
        if total_failures > 0:
            message += f", {total_failures} failures"
        return await self.append(
            LogEntry(
                type=LogEntryType.CYCLE_END,
                message=message,
                count=total_searches,
                operation=LogOperation.CYCLE,
                is_manual=is_manual,
                metadata=metadata,
            )
        )

    async def log_detection(
        self,
        server_name: str,
        server_type: ServerCategory,
        missing_count: int,
        cutoff_count: int,
        is_manual: bool,
    ) -> LogEntry:
        return await self.append(
            LogEntry(
                type=LogEntryType.DETECTION,
                message=(
                    f"Detected {missing_count} missing and {cutoff_count} "
                    f"cutoff unmet items on {server_name}"
                ),
                server_name=server_name,
                server_type=server_type,
                count=missing_count + cutoff_count,
                is_manual=is_manual,
                metadata={"missing": missing_count, "cutoff": cutoff_count},
            )
        )

    async def log_searches(
        self,
        server_name: str,
        server_type: ServerCategory,
        category: SearchCategory,
        count: int,
        is_manual: bool,
    ) -> LogEntry:
        return await self.append(
            LogEntry(
                type=LogEntryType.SEARCH,
                message=f"Triggered {count} {category.value} searches on {server_name}",
                server_name=server_name,
                server_type=server_type,
                category=category,
                count=count,
                operation=LogOperation.TRIGGER_SEARCH,
                is_manual=is_manual,
            )
        )

    async def log_error(
        self,
        message: str,
        operation: LogOperation,
        server_name: str | None = None,
        server_type: ServerCategory | None = None,
        category: SearchCategory | None = None,
        is_manual: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> LogEntry:
        return await self.append(
            LogEntry(
                type=LogEntryType.ERROR,
                message=message,
                server_name=server_name,
                server_type=server_type,
                category=category,
                operation=operation,
                is_manual=is_manual,
                metadata=metadata,
            )
        )

    # === Reads and maintenance ===

    async def query(
        self,
        filters: LogFilters | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[LogEntry]:
        """Newest-first page of entries matching all filters."""
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        offset = max(0, offset)
        return await self._store.query(filters or LogFilters(), limit, offset)

    async def count(self, filters: LogFilters | None = None) -> int:
        return await self._store.count(filters or LogFilters())

    async def export(self, filters: LogFilters | None = None) -> list[LogEntry]:
        """Every entry matching the filters, newest first, read page by page."""
        filters = filters or LogFilters()
        entries: list[LogEntry] = []
        while True:
            page = await self._store.query(filters, MAX_QUERY_LIMIT, len(entries))
            entries.extend(page)
            if len(page) < MAX_QUERY_LIMIT:
                return entries

    async def clear(self) -> int:
        """Delete every entry."""
        deleted = await self._store.clear()
        logger.info("Cleared %d activity log entries", deleted)
        return deleted

    async def purge_older_than(self, max_age_days: int) -> int:
        """Delete entries older than max_age_days.

        Returns:
            Number of entries removed
        """
        if max_age_days < 1:
            raise ValueError("max_age_days must be at least 1")
        cutoff = utc_now() - timedelta(days=max_age_days)
        deleted = await self._store.delete_older_than(cutoff)
        if deleted:
            logger.info("Purged %d activity log entries older than %d days", deleted, max_age_days)
        return deleted
