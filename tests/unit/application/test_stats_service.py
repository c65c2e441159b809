"""Tests for StatsService."""

from datetime import timedelta

import pytest
from support.fakes import InMemoryActivityLogStore, InMemoryServerStore, make_server

from janitarr.application.services.stats_service import StatsService
from janitarr.domain.entities import LogEntry, LogEntryType, ManagedServer, utc_now
from janitarr.domain.exceptions import EntityNotFoundException


def _logged(
    entry_type: LogEntryType,
    hours_ago: float,
    server: ManagedServer | None = None,
    count: int | None = None,
) -> LogEntry:
    return LogEntry(
        id=f"{entry_type.value}-{hours_ago}-{server.name if server else ''}",
        timestamp=utc_now() - timedelta(hours=hours_ago),
        type=entry_type,
        message=entry_type.value,
        server_name=server.name if server else None,
        count=count,
    )


@pytest.fixture
def servers() -> list[ManagedServer]:
    return [make_server("Movies"), make_server("Shows", enabled=False)]


@pytest.fixture
def log_store(servers: list[ManagedServer]) -> InMemoryActivityLogStore:
    movies, shows = servers
    store = InMemoryActivityLogStore()
    store.entries = [
        _logged(LogEntryType.SEARCH, 30, movies, count=7),
        _logged(LogEntryType.CYCLE_END, 30),
        _logged(LogEntryType.SEARCH, 2, movies, count=3),
        _logged(LogEntryType.SEARCH, 1, shows, count=2),
        _logged(LogEntryType.ERROR, 1, shows),
        _logged(LogEntryType.CYCLE_END, 0.5),
    ]
    return store


@pytest.fixture
def service(
    servers: list[ManagedServer], log_store: InMemoryActivityLogStore
) -> StatsService:
    return StatsService(InMemoryServerStore(servers), log_store)


class TestSystemStats:
    """Test dashboard counters."""

    @pytest.mark.asyncio
    async def test_counts_last_24_hours(
        self, service: StatsService, log_store: InMemoryActivityLogStore
    ) -> None:
        """Searches and errors only count the last 24 hours."""
        stats = await service.get_system_stats()

        assert stats.total_servers == 2
        assert stats.enabled_servers == 1
        assert stats.searches_last_24h == 5
        assert stats.errors_last_24h == 1
        assert stats.last_cycle_time == log_store.entries[-1].timestamp

    @pytest.mark.asyncio
    async def test_empty_system(self) -> None:
        """No servers and no logs gives zeros and no last cycle."""
        stats = await StatsService(
            InMemoryServerStore(), InMemoryActivityLogStore()
        ).get_system_stats()

        assert stats.to_dict() == {
            "total_servers": 0,
            "enabled_servers": 0,
            "searches_last_24h": 0,
            "errors_last_24h": 0,
            "last_cycle_time": None,
        }


class TestServerStats:
    """Test per-server counters."""

    @pytest.mark.asyncio
    async def test_lifetime_counts_by_name(self, service: StatsService) -> None:
        """Per-server stats count the whole history and resolve by name."""
        stats = await service.get_server_stats("Movies")

        assert stats.server_name == "Movies"
        assert stats.total_searches == 10
        assert stats.error_count == 0
        assert stats.last_activity is not None

    @pytest.mark.asyncio
    async def test_unknown_server(self, service: StatsService) -> None:
        """Unknown servers raise not-found."""
        with pytest.raises(EntityNotFoundException):
            await service.get_server_stats("Nobody")
