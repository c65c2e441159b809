"""Repository implementations over SQLAlchemy sessions."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from janitarr.domain.entities import (
    LogEntry,
    LogEntryType,
    LogFilters,
    LogOperation,
    ManagedServer,
    SearchCategory,
    ServerCategory,
)
from janitarr.domain.exceptions import EntityNotFoundException
from janitarr.infrastructure.persistence.models import (
    ActivityLogModel,
    ConfigModel,
    ServerModel,
    ensure_utc_aware,
    to_utc,
)

logger = logging.getLogger(__name__)


class ServerRepository:
    """SQLAlchemy repository for managed servers."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, server: ManagedServer) -> None:
        """Add a new server."""
        self.session.add(
            ServerModel(
                id=server.id,
                name=server.name,
                url=server.url,
                api_key=server.api_key_envelope,
                type=server.category.value,
                enabled=server.enabled,
                created_at=server.created_at,
                updated_at=server.updated_at,
            )
        )
        await self.session.flush()

    async def update(self, server: ManagedServer) -> None:
        """Update an existing server."""
        stmt = select(ServerModel).where(ServerModel.id == server.id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()

        if not model:
            raise EntityNotFoundException("Server", server.id)

        model.name = server.name
        model.url = server.url
        model.api_key = server.api_key_envelope
        model.type = server.category.value
        model.enabled = server.enabled
        model.updated_at = server.updated_at

    async def delete(self, server_id: str) -> None:
        """Delete a server."""
        stmt = delete(ServerModel).where(ServerModel.id == server_id)
        result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntityNotFoundException("Server", server_id)

    async def get_by_id(self, server_id: str) -> ManagedServer | None:
        """Get a server by id."""
        stmt = select(ServerModel).where(ServerModel.id == server_id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_name(self, name: str) -> ManagedServer | None:
        """Get a server by exact name."""
        stmt = select(ServerModel).where(ServerModel.name == name)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_all(self, enabled_only: bool = False) -> list[ManagedServer]:
        """List servers, oldest first."""
        stmt = select(ServerModel).order_by(ServerModel.created_at, ServerModel.name)
        if enabled_only:
            stmt = stmt.where(ServerModel.enabled.is_(True))
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    @staticmethod
    def _to_entity(model: ServerModel) -> ManagedServer:
        return ManagedServer(
            id=model.id,
            name=model.name,
            url=model.url,
            api_key_envelope=model.api_key,
            category=ServerCategory(model.type),
            enabled=model.enabled,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )


class ConfigRepository:
    """Key-value access to the config table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: str) -> str | None:
        result = await self.session.execute(
            select(ConfigModel.value).where(ConfigModel.key == key)
        )
        return result.scalar_one_or_none()

    async def get_many(self, keys: list[str]) -> dict[str, str]:
        result = await self.session.execute(
            select(ConfigModel.key, ConfigModel.value).where(ConfigModel.key.in_(keys))
        )
        return {row.key: row.value for row in result.all()}

    async def set(self, key: str, value: str) -> None:
        model = await self.session.get(ConfigModel, key)
        if model is None:
            self.session.add(ConfigModel(key=key, value=value))
        else:
            model.value = value

    async def set_many(self, values: dict[str, str]) -> None:
        for key, value in values.items():
            await self.set(key, value)


# Hey future me, every filter is optional and they AND together. The message search is
# case-insensitive via lower() on both sides; autoescape makes "%" and "_" in the user's
# search text match literally instead of acting as LIKE wildcards.
class ActivityLogRepository:
    """SQLAlchemy repository for activity log entries."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, entry: LogEntry) -> None:
        """Persist a stamped log entry."""
        if entry.id is None or entry.timestamp is None:
            raise ValueError("Log entries must be stamped with id and timestamp before saving")
        self.session.add(
            ActivityLogModel(
                id=entry.id,
                timestamp=to_utc(entry.timestamp),
                type=entry.type.value,
                server_name=entry.server_name,
                server_type=entry.server_type.value if entry.server_type else None,
                category=entry.category.value if entry.category else None,
                count=entry.count,
                operation=entry.operation.value if entry.operation else None,
                is_manual=entry.is_manual,
                message=entry.message,
                metadata_json=entry.metadata,
            )
        )

    async def list_entries(
        self, filters: LogFilters, limit: int, offset: int
    ) -> list[LogEntry]:
        """List entries newest first."""
        stmt = self._apply_filters(select(ActivityLogModel), filters)
        stmt = stmt.order_by(ActivityLogModel.timestamp.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def count(self, filters: LogFilters) -> int:
        stmt = self._apply_filters(select(func.count(ActivityLogModel.id)), filters)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(ActivityLogModel))
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def delete_older_than(self, cutoff: datetime) -> int:
        stmt = delete(ActivityLogModel).where(ActivityLogModel.timestamp < to_utc(cutoff))
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def sum_search_counts(
        self, since: datetime | None = None, server_name: str | None = None
    ) -> int:
        stmt = select(func.coalesce(func.sum(ActivityLogModel.count), 0)).where(
            ActivityLogModel.type == LogEntryType.SEARCH.value
        )
        if since is not None:
            stmt = stmt.where(ActivityLogModel.timestamp >= to_utc(since))
        if server_name is not None:
            stmt = stmt.where(ActivityLogModel.server_name == server_name)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def count_errors(
        self, since: datetime | None = None, server_name: str | None = None
    ) -> int:
        stmt = select(func.count(ActivityLogModel.id)).where(
            ActivityLogModel.type == LogEntryType.ERROR.value
        )
        if since is not None:
            stmt = stmt.where(ActivityLogModel.timestamp >= to_utc(since))
        if server_name is not None:
            stmt = stmt.where(ActivityLogModel.server_name == server_name)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def latest_timestamp(
        self, entry_type: LogEntryType | None = None, server_name: str | None = None
    ) -> datetime | None:
        stmt = select(func.max(ActivityLogModel.timestamp))
        if entry_type is not None:
            stmt = stmt.where(ActivityLogModel.type == entry_type.value)
        if server_name is not None:
            stmt = stmt.where(ActivityLogModel.server_name == server_name)
        result = await self.session.execute(stmt)
        value = result.scalar_one_or_none()
        return ensure_utc_aware(value) if value is not None else None

    @staticmethod
    def _apply_filters(stmt: Select[Any], filters: LogFilters) -> Select[Any]:
        conditions = []
        if filters.type is not None:
            conditions.append(ActivityLogModel.type == filters.type.value)
        if filters.server_name:
            conditions.append(ActivityLogModel.server_name == filters.server_name)
        if filters.category is not None:
            conditions.append(ActivityLogModel.category == filters.category.value)
        if filters.operation is not None:
            conditions.append(ActivityLogModel.operation == filters.operation.value)
        if filters.search:
            conditions.append(
                func.lower(ActivityLogModel.message).contains(
                    filters.search.lower(), autoescape=True
                )
            )
        if filters.start_time is not None:
            conditions.append(ActivityLogModel.timestamp >= to_utc(filters.start_time))
        if filters.end_time is not None:
            conditions.append(ActivityLogModel.timestamp <= to_utc(filters.end_time))
        if conditions:
            stmt = stmt.where(*conditions)
        return stmt

    @staticmethod
    def _to_entity(model: ActivityLogModel) -> LogEntry:
        return LogEntry(
            id=model.id,
            timestamp=ensure_utc_aware(model.timestamp),
            type=LogEntryType(model.type),
            server_name=model.server_name,
            server_type=ServerCategory(model.server_type) if model.server_type else None,
            category=SearchCategory(model.category) if model.category else None,
            count=model.count,
            operation=LogOperation(model.operation) if model.operation else None,
            is_manual=model.is_manual,
            message=model.message,
            metadata=model.metadata_json,
        )
