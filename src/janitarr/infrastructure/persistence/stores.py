"""Port adapters that run repositories inside their own session scope.

Each call opens a short transaction via Database.session_scope(). SQLAlchemy failures are
translated into PersistenceError so the application layer never sees driver exceptions.
"""

import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from janitarr.domain.entities import (
    LogEntry,
    LogEntryType,
    LogFilters,
    LogRetentionConfig,
    ManagedServer,
    RateLimitConfig,
    ScheduleConfig,
)
from janitarr.domain.exceptions import DuplicateEntityException, PersistenceError
from janitarr.domain.ports import IActivityLogStore, IConfigStore, IServerStore
from janitarr.infrastructure.persistence.database import Database
from janitarr.infrastructure.persistence.repositories import (
    ActivityLogRepository,
    ConfigRepository,
    ServerRepository,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _translated_scope(
    db: Database, operation: str
) -> AsyncGenerator[AsyncSession, None]:
    try:
        async with db.session_scope() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error("Database operation '%s' failed: %s", operation, e)
        raise PersistenceError(operation, str(e)) from e


class SqlServerStore(IServerStore):
    """Server store backed by the servers table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def list_servers(self, enabled_only: bool = False) -> list[ManagedServer]:
        async with _translated_scope(self._db, "list servers") as session:
            return await ServerRepository(session).list_all(enabled_only=enabled_only)

    async def get_server(self, server_id: str) -> ManagedServer | None:
        async with _translated_scope(self._db, "get server") as session:
            return await ServerRepository(session).get_by_id(server_id)

    async def get_server_by_name(self, name: str) -> ManagedServer | None:
        async with _translated_scope(self._db, "get server") as session:
            return await ServerRepository(session).get_by_name(name)

    async def add_server(self, server: ManagedServer) -> None:
        try:
            async with self._db.session_scope() as session:
                await ServerRepository(session).add(server)
        except IntegrityError as e:
            raise DuplicateEntityException("Server", server.name) from e
        except SQLAlchemyError as e:
            raise PersistenceError("add server", str(e)) from e

    async def update_server(self, server: ManagedServer) -> None:
        try:
            async with self._db.session_scope() as session:
                await ServerRepository(session).update(server)
        except IntegrityError as e:
            raise DuplicateEntityException("Server", server.name) from e
        except SQLAlchemyError as e:
            raise PersistenceError("update server", str(e)) from e

    async def remove_server(self, server_id: str) -> None:
        async with _translated_scope(self._db, "remove server") as session:
            await ServerRepository(session).delete(server_id)


# Hey future me, config rows are plain strings in a key-value table, same keys the old
# installs used. Missing keys fall back to the dataclass defaults, so a fresh database
# behaves exactly like "interval 6h, enabled, limits 10/10/5/5, retention 30 days".
SCHEDULE_INTERVAL_KEY = "schedule.interval_hours"
SCHEDULE_ENABLED_KEY = "schedule.enabled"
LIMIT_KEYS = {
    "missing_movies": "limits.missing.movies",
    "missing_episodes": "limits.missing.episodes",
    "cutoff_movies": "limits.cutoff.movies",
    "cutoff_episodes": "limits.cutoff.episodes",
}
RETENTION_KEY = "logs.retention_days"


class SqlConfigStore(IConfigStore):
    """Config store backed by the key-value config table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_schedule_config(self) -> ScheduleConfig:
        async with _translated_scope(self._db, "read schedule config") as session:
            values = await ConfigRepository(session).get_many(
                [SCHEDULE_INTERVAL_KEY, SCHEDULE_ENABLED_KEY]
            )
        defaults = ScheduleConfig()
        return ScheduleConfig(
            interval_hours=int(values.get(SCHEDULE_INTERVAL_KEY, defaults.interval_hours)),
            enabled=_parse_bool(values.get(SCHEDULE_ENABLED_KEY), defaults.enabled),
        )

    async def set_schedule_config(self, config: ScheduleConfig) -> None:
        async with _translated_scope(self._db, "write schedule config") as session:
            await ConfigRepository(session).set_many(
                {
                    SCHEDULE_INTERVAL_KEY: str(config.interval_hours),
                    SCHEDULE_ENABLED_KEY: json.dumps(config.enabled),
                }
            )

    async def get_rate_limits(self) -> RateLimitConfig:
        async with _translated_scope(self._db, "read rate limits") as session:
            values = await ConfigRepository(session).get_many(list(LIMIT_KEYS.values()))
        defaults = RateLimitConfig()
        return RateLimitConfig(
            **{
                field_name: int(values.get(key, getattr(defaults, field_name)))
                for field_name, key in LIMIT_KEYS.items()
            }
        )

    async def set_rate_limits(self, limits: RateLimitConfig) -> None:
        async with _translated_scope(self._db, "write rate limits") as session:
            await ConfigRepository(session).set_many(
                {key: str(getattr(limits, field_name)) for field_name, key in LIMIT_KEYS.items()}
            )

    async def get_retention_config(self) -> LogRetentionConfig:
        async with _translated_scope(self._db, "read retention config") as session:
            value = await ConfigRepository(session).get(RETENTION_KEY)
        if value is None:
            return LogRetentionConfig()
        return LogRetentionConfig(retention_days=int(value))

    async def set_retention_config(self, config: LogRetentionConfig) -> None:
        async with _translated_scope(self._db, "write retention config") as session:
            await ConfigRepository(session).set(RETENTION_KEY, str(config.retention_days))


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"true", "1", "yes", "on"}


class SqlActivityLogStore(IActivityLogStore):
    """Activity log store backed by the activity_logs table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def append(self, entry: LogEntry) -> None:
        async with _translated_scope(self._db, "append log entry") as session:
            await ActivityLogRepository(session).add(entry)

    async def query(self, filters: LogFilters, limit: int, offset: int) -> list[LogEntry]:
        async with _translated_scope(self._db, "query logs") as session:
            return await ActivityLogRepository(session).list_entries(filters, limit, offset)

    async def count(self, filters: LogFilters) -> int:
        async with _translated_scope(self._db, "count logs") as session:
            return await ActivityLogRepository(session).count(filters)

    async def clear(self) -> int:
        async with _translated_scope(self._db, "clear logs") as session:
            return await ActivityLogRepository(session).delete_all()

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with _translated_scope(self._db, "purge logs") as session:
            return await ActivityLogRepository(session).delete_older_than(cutoff)

    async def sum_search_counts(
        self, since: datetime | None = None, server_name: str | None = None
    ) -> int:
        async with _translated_scope(self._db, "sum search counts") as session:
            return await ActivityLogRepository(session).sum_search_counts(since, server_name)

    async def count_errors(
        self, since: datetime | None = None, server_name: str | None = None
    ) -> int:
        async with _translated_scope(self._db, "count errors") as session:
            return await ActivityLogRepository(session).count_errors(since, server_name)

    async def latest_timestamp(
        self, entry_type: LogEntryType | None = None, server_name: str | None = None
    ) -> datetime | None:
        async with _translated_scope(self._db, "latest log timestamp") as session:
            return await ActivityLogRepository(session).latest_timestamp(entry_type, server_name)
