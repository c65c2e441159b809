"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime

from janitarr.domain.entities import (
    ConnectionResult,
    DetectionItem,
    LogEntry,
    LogEntryType,
    LogFilters,
    LogRetentionConfig,
    ManagedServer,
    RateLimitConfig,
    ScheduleConfig,
)


# Hey future me, IManagerClient is THE capability the engine needs from a Radarr/Sonarr
# instance. Every method raises ExternalServiceError on failure - never returns None or a
# half-filled list. The wire protocol (HTTP paths, paging, API-key header) lives in the
# concrete clients registered with ManagerClientRegistry; the engine never sees it.
class IManagerClient(ABC):
    """Port for a library manager (movie or episode)."""

    @abstractmethod
    async def list_missing(self) -> list[DetectionItem]:
        """List monitored items that have no file.

        Returns:
            Missing items in the order the manager reports them

        Raises:
            ExternalServiceError: If the manager cannot be queried
        """
        pass

    @abstractmethod
    async def list_cutoff_unmet(self) -> list[DetectionItem]:
        """List items whose file is below the quality cutoff.

        Raises:
            ExternalServiceError: If the manager cannot be queried
        """
        pass

    @abstractmethod
    async def trigger_search(self, item_id: int) -> None:
        """Ask the manager to search its indexers for one item.

        Args:
            item_id: Manager-side id of the movie or episode

        Raises:
            ExternalServiceError: If the search command is rejected
        """
        pass

    @abstractmethod
    async def test_connection(self) -> ConnectionResult:
        """Check that the manager is reachable and the credential is valid."""
        pass


# Factory signature: (base_url, api_key) -> client
ManagerClientFactory = Callable[[str, str], IManagerClient]


class ICredentialCipher(ABC):
    """Port for the symmetric credential encryption utility."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext into an IV:ciphertext envelope."""
        pass

    @abstractmethod
    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope.

        Raises:
            CredentialDecryptionError: Wrong key or corrupted envelope
        """
        pass


class IServerStore(ABC):
    """Port for managed server records."""

    @abstractmethod
    async def list_servers(self, enabled_only: bool = False) -> list[ManagedServer]:
        """List servers ordered by creation time."""
        pass

    @abstractmethod
    async def get_server(self, server_id: str) -> ManagedServer | None:
        pass

    @abstractmethod
    async def get_server_by_name(self, name: str) -> ManagedServer | None:
        pass

    @abstractmethod
    async def add_server(self, server: ManagedServer) -> None:
        pass

    @abstractmethod
    async def update_server(self, server: ManagedServer) -> None:
        """Raises EntityNotFoundException if the server does not exist."""
        pass

    @abstractmethod
    async def remove_server(self, server_id: str) -> None:
        """Raises EntityNotFoundException if the server does not exist."""
        pass


class IConfigStore(ABC):
    """Port for the persisted key-value configuration."""

    @abstractmethod
    async def get_schedule_config(self) -> ScheduleConfig:
        pass

    @abstractmethod
    async def set_schedule_config(self, config: ScheduleConfig) -> None:
        pass

    @abstractmethod
    async def get_rate_limits(self) -> RateLimitConfig:
        pass

    @abstractmethod
    async def set_rate_limits(self, limits: RateLimitConfig) -> None:
        pass

    @abstractmethod
    async def get_retention_config(self) -> LogRetentionConfig:
        pass

    @abstractmethod
    async def set_retention_config(self, config: LogRetentionConfig) -> None:
        pass


# Listen up, the activity log store only persists ALREADY-STAMPED entries (id + timestamp
# assigned by ActivityLogService). Every method raises PersistenceError when the backing
# database is unavailable - callers decide whether that aborts their operation.
class IActivityLogStore(ABC):
    """Port for durable activity log storage."""

    @abstractmethod
    async def append(self, entry: LogEntry) -> None:
        pass

    @abstractmethod
    async def query(self, filters: LogFilters, limit: int, offset: int) -> list[LogEntry]:
        """Return matching entries, newest first."""
        pass

    @abstractmethod
    async def count(self, filters: LogFilters) -> int:
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Delete every entry, returning how many were removed."""
        pass

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries with timestamp < cutoff, returning how many were removed."""
        pass

    @abstractmethod
    async def sum_search_counts(
        self, since: datetime | None = None, server_name: str | None = None
    ) -> int:
        """Sum the count field of search entries."""
        pass

    @abstractmethod
    async def count_errors(
        self, since: datetime | None = None, server_name: str | None = None
    ) -> int:
        pass

    @abstractmethod
    async def latest_timestamp(
        self, entry_type: LogEntryType | None = None, server_name: str | None = None
    ) -> datetime | None:
        """Timestamp of the newest entry matching type/server, if any."""
        pass


__all__ = [
    "IActivityLogStore",
    "IConfigStore",
    "ICredentialCipher",
    "IManagerClient",
    "IServerStore",
    "ManagerClientFactory",
]
