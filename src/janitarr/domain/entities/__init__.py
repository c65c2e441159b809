"""Domain entities for the automation engine."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from janitarr.domain.exceptions import ConfigurationError


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class ItemKind(str, Enum):
    """Kind of library item a manager tracks."""

    MOVIE = "movie"
    EPISODE = "episode"


# Hey future me, this is the CLOSED set of library managers we support. The values are the
# strings we persist and show in the API ("radarr"/"sonarr") but code must never compare raw
# strings - always go through the enum. Adding a category means adding it here AND to
# _CATEGORY_ITEM_KINDS below; the module-level check fails at import time if you forget the
# mapping, and ManagerClientRegistry.validate() fails at startup if there's no client factory.
class ServerCategory(str, Enum):
    """Kind of external library manager."""

    MOVIE_MANAGER = "radarr"
    EPISODE_MANAGER = "sonarr"

    @property
    def item_kind(self) -> ItemKind:
        """Item kind this manager category produces."""
        return _CATEGORY_ITEM_KINDS[self]

    @property
    def label(self) -> str:
        """Human label used in log messages."""
        return "Radarr" if self is ServerCategory.MOVIE_MANAGER else "Sonarr"

    @classmethod
    def parse(cls, value: str) -> "ServerCategory":
        """Parse a category string, raising ConfigurationError on unknown values."""
        try:
            return cls(value.lower())
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown server category '{value}'. "
                f"Expected one of: {', '.join(c.value for c in cls)}"
            ) from e


_CATEGORY_ITEM_KINDS: dict[ServerCategory, ItemKind] = {
    ServerCategory.MOVIE_MANAGER: ItemKind.MOVIE,
    ServerCategory.EPISODE_MANAGER: ItemKind.EPISODE,
}

if set(_CATEGORY_ITEM_KINDS) != set(ServerCategory):  # pragma: no cover - import-time guard
    raise RuntimeError("Every ServerCategory needs an ItemKind mapping")


class SearchCategory(str, Enum):
    """Why an item is searched."""

    MISSING = "missing"
    CUTOFF = "cutoff"


class LogEntryType(str, Enum):
    """Type of activity log entry."""

    CYCLE_START = "cycle_start"
    CYCLE_END = "cycle_end"
    SEARCH = "search"
    ERROR = "error"
    DETECTION = "detection"


class LogOperation(str, Enum):
    """Operation an activity log entry refers to (for diagnosis)."""

    CYCLE = "cycle"
    DETECT_MISSING = "detect_missing"
    DETECT_CUTOFF = "detect_cutoff"
    TRIGGER_SEARCH = "trigger_search"
    RETENTION = "retention"


class CycleOrigin(str, Enum):
    """What started a cycle."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"


# Listen up, ManagedServer is owned by the config store. The automation engine only ever sees
# a read-only snapshot taken at the start of each cycle - edits made while a cycle runs apply
# to the NEXT cycle. api_key_envelope is the encrypted IV:ciphertext envelope, never plaintext.
@dataclass
class ManagedServer:
    """One configured movie- or episode-library manager."""

    name: str
    url: str
    api_key_envelope: str
    category: ServerCategory
    enabled: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize without the credential."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.category.value,
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class DetectionItem:
    """A single missing or cutoff-unmet item reported by a manager."""

    id: int
    title: str
    kind: ItemKind


@dataclass
class ConnectionResult:
    """Outcome of a manager connection test."""

    success: bool
    version: str | None = None
    app_name: str | None = None
    error: str | None = None


# Hey future me, a failed DetectionResult ALWAYS has empty missing_items/cutoff_items and zero
# counts - the search trigger and the totals rely on that. When the missing query worked but
# the cutoff query blew up, the already-fetched missing items go to partial_missing_items so
# they show up in diagnostics, but they are never searched and never counted.
@dataclass
class DetectionResult:
    """Detection outcome for one server."""

    server_id: str
    server_name: str
    server_category: ServerCategory
    missing_items: list[DetectionItem] = field(default_factory=list)
    cutoff_items: list[DetectionItem] = field(default_factory=list)
    error: str | None = None
    failed_operation: LogOperation | None = None
    partial_missing_items: list[DetectionItem] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def missing_count(self) -> int:
        return len(self.missing_items)

    @property
    def cutoff_count(self) -> int:
        return len(self.cutoff_items)

    @classmethod
    def failure(
        cls,
        server: ManagedServer,
        error: str,
        operation: LogOperation,
        partial_missing_items: list[DetectionItem] | None = None,
    ) -> "DetectionResult":
        """Build a failed result carrying no counted items."""
        return cls(
            server_id=server.id,
            server_name=server.name,
            server_category=server.category,
            error=error,
            failed_operation=operation,
            partial_missing_items=list(partial_missing_items or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_id": self.server_id,
            "server_name": self.server_name,
            "server_type": self.server_category.value,
            "missing_count": self.missing_count,
            "cutoff_count": self.cutoff_count,
            "missing": [item.id for item in self.missing_items],
            "cutoff": [item.id for item in self.cutoff_items],
            "error": self.error,
            "failed_operation": self.failed_operation.value if self.failed_operation else None,
            "partial_missing_count": len(self.partial_missing_items),
        }


@dataclass
class AggregatedDetection:
    """Cycle-wide detection summary, results in server snapshot order."""

    results: list[DetectionResult] = field(default_factory=list)
    total_missing: int = 0
    total_cutoff: int = 0
    success_count: int = 0
    failure_count: int = 0

    @classmethod
    def from_results(cls, results: list[DetectionResult]) -> "AggregatedDetection":
        """Aggregate per-server results; totals only count successful servers."""
        aggregated = cls(results=list(results))
        for result in results:
            if result.failed:
                aggregated.failure_count += 1
                continue
            aggregated.success_count += 1
            aggregated.total_missing += result.missing_count
            aggregated.total_cutoff += result.cutoff_count
        return aggregated

    def summary(self) -> dict[str, int]:
        return {
            "total_missing": self.total_missing,
            "total_cutoff": self.total_cutoff,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
        }


@dataclass(frozen=True)
class SearchFailure:
    """One item whose search could not be triggered."""

    item_id: int
    reason: str


@dataclass
class SearchOutcome:
    """Search results for one server and one search category."""

    server_id: str
    server_name: str
    server_category: ServerCategory
    search_category: SearchCategory
    attempted_ids: list[int] = field(default_factory=list)
    triggered_ids: list[int] = field(default_factory=list)
    failures: list[SearchFailure] = field(default_factory=list)

    @property
    def attempted_count(self) -> int:
        return len(self.attempted_ids)

    @property
    def triggered_count(self) -> int:
        return len(self.triggered_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_id": self.server_id,
            "server_name": self.server_name,
            "server_type": self.server_category.value,
            "category": self.search_category.value,
            "attempted": self.attempted_ids,
            "triggered": self.triggered_ids,
            "failures": [
                {"item_id": failure.item_id, "reason": failure.reason}
                for failure in self.failures
            ],
        }


@dataclass
class TriggerResults:
    """Cycle-wide search trigger summary.

    success_count/failure_count count individual item triggers.
    """

    outcomes: list[SearchOutcome] = field(default_factory=list)
    missing_triggered: int = 0
    cutoff_triggered: int = 0
    success_count: int = 0
    failure_count: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "missing_triggered": self.missing_triggered,
            "cutoff_triggered": self.cutoff_triggered,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
        }


@dataclass
class CycleResult:
    """Result of one automation cycle."""

    success: bool
    detection: AggregatedDetection
    searches: TriggerResults
    total_searches: int = 0
    total_failures: int = 0
    errors: list[str] = field(default_factory=list)
    cycle_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    origin: CycleOrigin = CycleOrigin.SCHEDULED
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    dry_run: bool = False

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "success": self.success,
            "origin": self.origin.value,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "detection": self.detection.summary(),
            "searches": self.searches.summary(),
            "total_searches": self.total_searches,
            "total_failures": self.total_failures,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class LastCycleSnapshot:
    """Summary of the most recent finished or aborted cycle, read by status and health."""

    finished_at: datetime
    was_manual: bool
    success: bool
    total_searches: int
    total_failures: int
    error_count: int
    error: str | None = None

    @classmethod
    def from_result(cls, result: CycleResult) -> "LastCycleSnapshot":
        return cls(
            finished_at=result.finished_at or utc_now(),
            was_manual=result.origin is CycleOrigin.MANUAL,
            success=result.success,
            total_searches=result.total_searches,
            total_failures=result.total_failures,
            error_count=len(result.errors),
        )

    @classmethod
    def aborted(cls, result: CycleResult, reason: str) -> "LastCycleSnapshot":
        """Snapshot for a cycle that stopped before cycle_end, counted as one failure."""
        return cls(
            finished_at=utc_now(),
            was_manual=result.origin is CycleOrigin.MANUAL,
            success=False,
            total_searches=result.total_searches,
            total_failures=result.total_failures + 1,
            error_count=len(result.errors) + 1,
            error=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "last_cycle_time": self.finished_at.isoformat(),
            "was_manual": self.was_manual,
            "success": self.success,
            "last_cycle_searches": self.total_searches,
            "last_cycle_failures": self.total_failures,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


# Yo, LogEntry is IMMUTABLE once created. id and timestamp are None only for the draft you
# hand to ActivityLogService.append() - append() stamps both before persisting.
@dataclass(frozen=True)
class LogEntry:
    """One activity log record."""

    type: LogEntryType
    message: str
    id: str | None = None
    timestamp: datetime | None = None
    server_name: str | None = None
    server_type: ServerCategory | None = None
    category: SearchCategory | None = None
    count: int | None = None
    operation: LogOperation | None = None
    is_manual: bool = False
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "type": self.type.value,
            "server_name": self.server_name,
            "server_type": self.server_type.value if self.server_type else None,
            "category": self.category.value if self.category else None,
            "count": self.count,
            "operation": self.operation.value if self.operation else None,
            "is_manual": self.is_manual,
            "message": self.message,
            "metadata": self.metadata,
        }


@dataclass
class LogFilters:
    """Query filters for the activity log; every set field narrows the result (AND)."""

    type: LogEntryType | None = None
    server_name: str | None = None
    category: SearchCategory | None = None
    operation: LogOperation | None = None
    search: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


MIN_INTERVAL_HOURS = 1
MAX_INTERVAL_HOURS = 168
MIN_RATE_LIMIT = 0
MAX_RATE_LIMIT = 1000
MIN_RETENTION_DAYS = 7
MAX_RETENTION_DAYS = 90


@dataclass(frozen=True)
class ScheduleConfig:
    """Automation schedule: how often cycles run and whether they run at all."""

    interval_hours: int = 6
    enabled: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.interval_hours, bool) or not isinstance(self.interval_hours, int):
            raise ConfigurationError("interval_hours must be an integer")
        if not MIN_INTERVAL_HOURS <= self.interval_hours <= MAX_INTERVAL_HOURS:
            raise ConfigurationError(
                f"interval_hours must be between {MIN_INTERVAL_HOURS} and "
                f"{MAX_INTERVAL_HOURS}, got {self.interval_hours}"
            )

    @property
    def interval_seconds(self) -> int:
        return self.interval_hours * 3600

    def to_dict(self) -> dict[str, Any]:
        return {"interval_hours": self.interval_hours, "enabled": self.enabled}


# Hey future me, each limit is a ceiling on the TOTAL items searched in a cycle across ALL
# servers, not per server. 0 switches the category off for the whole cycle.
@dataclass(frozen=True)
class RateLimitConfig:
    """Per-category search limits for one cycle."""

    missing_movies: int = 10
    missing_episodes: int = 10
    cutoff_movies: int = 5
    cutoff_episodes: int = 5

    def __post_init__(self) -> None:
        for name in ("missing_movies", "missing_episodes", "cutoff_movies", "cutoff_episodes"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} limit must be an integer")
            if not MIN_RATE_LIMIT <= value <= MAX_RATE_LIMIT:
                raise ConfigurationError(
                    f"{name} limit must be between {MIN_RATE_LIMIT} and "
                    f"{MAX_RATE_LIMIT}, got {value}"
                )

    def limit_for(self, category: SearchCategory, kind: ItemKind) -> int:
        """Limit for one (search category, item kind) pair."""
        if category is SearchCategory.MISSING:
            return self.missing_movies if kind is ItemKind.MOVIE else self.missing_episodes
        return self.cutoff_movies if kind is ItemKind.MOVIE else self.cutoff_episodes

    def to_dict(self) -> dict[str, Any]:
        return {
            "missing_movies": self.missing_movies,
            "missing_episodes": self.missing_episodes,
            "cutoff_movies": self.cutoff_movies,
            "cutoff_episodes": self.cutoff_episodes,
        }


@dataclass(frozen=True)
class LogRetentionConfig:
    """How long activity log entries are kept."""

    retention_days: int = 30

    def __post_init__(self) -> None:
        if isinstance(self.retention_days, bool) or not isinstance(self.retention_days, int):
            raise ConfigurationError("retention_days must be an integer")
        if not MIN_RETENTION_DAYS <= self.retention_days <= MAX_RETENTION_DAYS:
            raise ConfigurationError(
                f"retention_days must be between {MIN_RETENTION_DAYS} and "
                f"{MAX_RETENTION_DAYS}, got {self.retention_days}"
            )


@dataclass(frozen=True)
class AppConfig:
    """All runtime-editable configuration."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    retention: LogRetentionConfig = field(default_factory=LogRetentionConfig)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedule": self.schedule.to_dict(),
            "limits": self.limits.to_dict(),
            "logs": {"retention_days": self.retention.retention_days},
        }


@dataclass
class SystemStats:
    """Dashboard-level counters."""

    total_servers: int
    enabled_servers: int
    searches_last_24h: int
    errors_last_24h: int
    last_cycle_time: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_servers": self.total_servers,
            "enabled_servers": self.enabled_servers,
            "searches_last_24h": self.searches_last_24h,
            "errors_last_24h": self.errors_last_24h,
            "last_cycle_time": self.last_cycle_time.isoformat() if self.last_cycle_time else None,
        }


@dataclass
class ServerStats:
    """Per-server counters derived from the activity log."""

    server_id: str
    server_name: str
    total_searches: int
    error_count: int
    last_activity: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "server_id": self.server_id,
            "server_name": self.server_name,
            "total_searches": self.total_searches,
            "error_count": self.error_count,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
        }


__all__ = [
    "AggregatedDetection",
    "AppConfig",
    "ConnectionResult",
    "CycleOrigin",
    "CycleResult",
    "DetectionItem",
    "DetectionResult",
    "ItemKind",
    "LastCycleSnapshot",
    "LogEntry",
    "LogEntryType",
    "LogFilters",
    "LogOperation",
    "LogRetentionConfig",
    "ManagedServer",
    "MAX_INTERVAL_HOURS",
    "MAX_RATE_LIMIT",
    "MAX_RETENTION_DAYS",
    "MIN_INTERVAL_HOURS",
    "MIN_RATE_LIMIT",
    "MIN_RETENTION_DAYS",
    "RateLimitConfig",
    "ScheduleConfig",
    "SearchCategory",
    "SearchFailure",
    "SearchOutcome",
    "ServerCategory",
    "ServerStats",
    "SystemStats",
    "TriggerResults",
    "utc_now",
]
