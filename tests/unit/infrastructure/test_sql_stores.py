"""Tests for the SQLAlchemy-backed stores against a real SQLite file."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import pytest

from janitarr.config import DatabaseSettings, Settings
from janitarr.domain.entities import (
    LogEntry,
    LogEntryType,
    LogFilters,
    LogOperation,
    LogRetentionConfig,
    ManagedServer,
    RateLimitConfig,
    ScheduleConfig,
    SearchCategory,
    ServerCategory,
)
from janitarr.domain.exceptions import (
    DuplicateEntityException,
    EntityNotFoundException,
    PersistenceError,
)
from janitarr.infrastructure.persistence import (
    Database,
    SqlActivityLogStore,
    SqlConfigStore,
    SqlServerStore,
)

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
async def db(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Fresh SQLite database file with all tables."""
    settings = Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'janitarr.db'}")
    )
    database = Database(settings)
    await database.create_tables()
    yield database
    await database.close()


def _server(name: str, enabled: bool = True, offset_seconds: int = 0) -> ManagedServer:
    created = BASE_TIME + timedelta(seconds=offset_seconds)
    return ManagedServer(
        name=name,
        url=f"http://{name.lower()}:7878",
        api_key_envelope="aXY=:Y3Q=",
        category=ServerCategory.MOVIE_MANAGER,
        enabled=enabled,
        created_at=created,
        updated_at=created,
    )


def _entry(
    entry_type: LogEntryType,
    message: str,
    minutes: int,
    server_name: str | None = None,
    count: int | None = None,
    category: SearchCategory | None = None,
) -> LogEntry:
    return LogEntry(
        id=f"entry-{entry_type.value}-{minutes}",
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        type=entry_type,
        message=message,
        server_name=server_name,
        server_type=ServerCategory.MOVIE_MANAGER if server_name else None,
        category=category,
        count=count,
        operation=LogOperation.TRIGGER_SEARCH if entry_type is LogEntryType.SEARCH else None,
        metadata={"minutes": minutes},
    )


class TestSqlServerStore:
    """Test server persistence."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, db: Database) -> None:
        """A stored server reads back by id and by name with aware timestamps."""
        store = SqlServerStore(db)
        server = _server("Movies")

        await store.add_server(server)

        by_id = await store.get_server(server.id)
        by_name = await store.get_server_by_name("Movies")
        assert by_id is not None and by_name is not None
        assert by_id.id == by_name.id == server.id
        assert by_id.category is ServerCategory.MOVIE_MANAGER
        assert by_id.api_key_envelope == "aXY=:Y3Q="
        assert by_id.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_list_orders_by_creation_and_filters_enabled(self, db: Database) -> None:
        """Servers list oldest first; enabled_only hides disabled ones."""
        store = SqlServerStore(db)
        await store.add_server(_server("Second", offset_seconds=10))
        await store.add_server(_server("First", offset_seconds=0))
        await store.add_server(_server("Off", enabled=False, offset_seconds=20))

        all_names = [s.name for s in await store.list_servers()]
        enabled_names = [s.name for s in await store.list_servers(enabled_only=True)]

        assert all_names == ["First", "Second", "Off"]
        assert enabled_names == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, db: Database) -> None:
        """Server names are unique."""
        store = SqlServerStore(db)
        await store.add_server(_server("Movies"))

        with pytest.raises(DuplicateEntityException):
            await store.add_server(_server("Movies"))

    @pytest.mark.asyncio
    async def test_update_and_remove(self, db: Database) -> None:
        """Updates persist; removing twice raises EntityNotFoundException."""
        store = SqlServerStore(db)
        server = _server("Movies")
        await store.add_server(server)

        server.enabled = False
        server.url = "http://radarr-new:7878"
        await store.update_server(server)
        updated = await store.get_server(server.id)
        assert updated is not None
        assert updated.enabled is False
        assert updated.url == "http://radarr-new:7878"

        await store.remove_server(server.id)
        assert await store.get_server(server.id) is None
        with pytest.raises(EntityNotFoundException):
            await store.remove_server(server.id)

    @pytest.mark.asyncio
    async def test_update_unknown_raises(self, db: Database) -> None:
        """Updating a server that was never stored raises EntityNotFoundException."""
        with pytest.raises(EntityNotFoundException):
            await SqlServerStore(db).update_server(_server("Ghost"))


class TestSqlConfigStore:
    """Test key-value configuration persistence."""

    @pytest.mark.asyncio
    async def test_empty_database_returns_defaults(self, db: Database) -> None:
        """No rows means the documented defaults."""
        store = SqlConfigStore(db)

        assert await store.get_schedule_config() == ScheduleConfig()
        assert await store.get_rate_limits() == RateLimitConfig()
        assert await store.get_retention_config() == LogRetentionConfig()

    @pytest.mark.asyncio
    async def test_values_persist(self, db: Database) -> None:
        """Written values read back, overwriting earlier ones."""
        store = SqlConfigStore(db)

        await store.set_schedule_config(ScheduleConfig(interval_hours=12, enabled=False))
        await store.set_schedule_config(ScheduleConfig(interval_hours=24, enabled=False))
        await store.set_rate_limits(RateLimitConfig(missing_movies=0, cutoff_episodes=50))
        await store.set_retention_config(LogRetentionConfig(retention_days=7))

        assert await store.get_schedule_config() == ScheduleConfig(
            interval_hours=24, enabled=False
        )
        limits = await store.get_rate_limits()
        assert limits.missing_movies == 0
        assert limits.cutoff_episodes == 50
        assert (await store.get_retention_config()).retention_days == 7


class TestSqlActivityLogStore:
    """Test activity log persistence and queries."""

    @pytest.fixture
    async def store(self, db: Database) -> SqlActivityLogStore:
        """Store pre-filled with a small cycle worth of entries."""
        store = SqlActivityLogStore(db)
        for entry in [
            _entry(LogEntryType.CYCLE_START, "Scheduled automation cycle started", 0),
            _entry(
                LogEntryType.SEARCH,
                "Triggered 3 missing searches on Movies",
                1,
                server_name="Movies",
                count=3,
                category=SearchCategory.MISSING,
            ),
            _entry(
                LogEntryType.SEARCH,
                "Triggered 2 cutoff searches on Shows",
                2,
                server_name="Shows",
                count=2,
                category=SearchCategory.CUTOFF,
            ),
            _entry(LogEntryType.ERROR, "Detection failed for Shows: 100% broken", 3, "Shows"),
            _entry(LogEntryType.CYCLE_END, "Automation cycle complete: 5 searches", 4),
        ]:
            await store.append(entry)
        return store

    @pytest.mark.asyncio
    async def test_query_newest_first(self, store: SqlActivityLogStore) -> None:
        """Entries come back newest first with metadata intact."""
        entries = await store.query(LogFilters(), limit=10, offset=0)

        assert [e.type for e in entries] == [
            LogEntryType.CYCLE_END,
            LogEntryType.ERROR,
            LogEntryType.SEARCH,
            LogEntryType.SEARCH,
            LogEntryType.CYCLE_START,
        ]
        assert entries[0].metadata == {"minutes": 4}
        assert entries[0].timestamp == BASE_TIME + timedelta(minutes=4)

    @pytest.mark.asyncio
    async def test_pagination(self, store: SqlActivityLogStore) -> None:
        """limit/offset page through the newest-first order."""
        page = await store.query(LogFilters(), limit=2, offset=1)
        assert [e.type for e in page] == [LogEntryType.ERROR, LogEntryType.SEARCH]

    @pytest.mark.asyncio
    async def test_filters_and_together(self, store: SqlActivityLogStore) -> None:
        """type + server narrow to the intersection."""
        filters = LogFilters(type=LogEntryType.SEARCH, server_name="Shows")

        entries = await store.query(filters, limit=10, offset=0)

        assert len(entries) == 1
        assert entries[0].category is SearchCategory.CUTOFF
        assert await store.count(filters) == 1

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_and_literal(
        self, store: SqlActivityLogStore
    ) -> None:
        """Message search ignores case and treats % literally."""
        assert await store.count(LogFilters(search="TRIGGERED")) == 2
        assert await store.count(LogFilters(search="100%")) == 1
        assert await store.count(LogFilters(search="1%0")) == 0

    @pytest.mark.asyncio
    async def test_time_range_is_inclusive(self, store: SqlActivityLogStore) -> None:
        """start_time/end_time bounds include their endpoints."""
        filters = LogFilters(
            start_time=BASE_TIME + timedelta(minutes=1),
            end_time=BASE_TIME + timedelta(minutes=3),
        )
        assert await store.count(filters) == 3

    @pytest.mark.asyncio
    async def test_time_range_with_offset_bounds(self, store: SqlActivityLogStore) -> None:
        """Bounds in another offset select the same instants as their UTC form."""
        plus_two = timezone(timedelta(hours=2))
        filters = LogFilters(
            start_time=(BASE_TIME + timedelta(minutes=1)).astimezone(plus_two),
            end_time=(BASE_TIME + timedelta(minutes=3)).astimezone(plus_two),
        )

        assert await store.count(filters) == 3
        assert await store.sum_search_counts(
            since=(BASE_TIME + timedelta(minutes=2)).astimezone(plus_two)
        ) == 2

    @pytest.mark.asyncio
    async def test_aggregates(self, store: SqlActivityLogStore) -> None:
        """Search sums, error counts and latest timestamps per type/server."""
        assert await store.sum_search_counts() == 5
        assert await store.sum_search_counts(server_name="Movies") == 3
        assert await store.sum_search_counts(since=BASE_TIME + timedelta(minutes=2)) == 2
        assert await store.count_errors() == 1
        assert await store.count_errors(server_name="Movies") == 0
        assert await store.latest_timestamp(LogEntryType.CYCLE_END) == BASE_TIME + timedelta(
            minutes=4
        )
        assert await store.latest_timestamp(server_name="Movies") == BASE_TIME + timedelta(
            minutes=1
        )
        assert await store.latest_timestamp(server_name="Nobody") is None

    @pytest.mark.asyncio
    async def test_delete_older_than_and_clear(self, store: SqlActivityLogStore) -> None:
        """Purging removes strictly older entries; clear removes the rest."""
        removed = await store.delete_older_than(BASE_TIME + timedelta(minutes=2))

        assert removed == 2
        assert await store.count(LogFilters()) == 3
        assert await store.clear() == 3
        assert await store.count(LogFilters()) == 0

    @pytest.mark.asyncio
    async def test_database_errors_become_persistence_errors(self, db: Database) -> None:
        """Driver errors surface as PersistenceError naming the operation."""
        store = SqlActivityLogStore(db)
        await db.drop_tables()

        with pytest.raises(PersistenceError, match="query logs"):
            await store.query(LogFilters(), limit=10, offset=0)
