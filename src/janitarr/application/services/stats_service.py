"""Dashboard statistics derived from servers and the activity log."""

from datetime import timedelta

from janitarr.domain.entities import LogEntryType, ServerStats, SystemStats, utc_now
from janitarr.domain.exceptions import EntityNotFoundException
from janitarr.domain.ports import IActivityLogStore, IServerStore


class StatsService:
    """Read-only aggregate queries."""

    def __init__(self, server_store: IServerStore, log_store: IActivityLogStore) -> None:
        self._server_store = server_store
        self._log_store = log_store

    async def get_system_stats(self) -> SystemStats:
        servers = await self._server_store.list_servers()
        since = utc_now() - timedelta(hours=24)
        return SystemStats(
            total_servers=len(servers),
            enabled_servers=sum(1 for server in servers if server.enabled),
            searches_last_24h=await self._log_store.sum_search_counts(since=since),
            errors_last_24h=await self._log_store.count_errors(since=since),
            last_cycle_time=await self._log_store.latest_timestamp(LogEntryType.CYCLE_END),
        )

    async def get_server_stats(self, server_id: str) -> ServerStats:
        """Lifetime counters for one server (log entries reference servers by name)."""
        server = await self._server_store.get_server(server_id)
        if server is None:
            server = await self._server_store.get_server_by_name(server_id)
        if server is None:
            raise EntityNotFoundException("Server", server_id)

        return ServerStats(
            server_id=server.id,
            server_name=server.name,
            total_searches=await self._log_store.sum_search_counts(server_name=server.name),
            error_count=await self._log_store.count_errors(server_name=server.name),
            last_activity=await self._log_store.latest_timestamp(server_name=server.name),
        )
