"""Tests for domain entities and config value objects."""

from datetime import timedelta

import pytest

from janitarr.domain.entities import (
    AggregatedDetection,
    CycleOrigin,
    CycleResult,
    DetectionItem,
    DetectionResult,
    ItemKind,
    LastCycleSnapshot,
    LogEntry,
    LogEntryType,
    LogOperation,
    LogRetentionConfig,
    ManagedServer,
    RateLimitConfig,
    ScheduleConfig,
    SearchCategory,
    ServerCategory,
    TriggerResults,
    utc_now,
)
from janitarr.domain.exceptions import ConfigurationError


def _server(name: str = "Movies") -> ManagedServer:
    return ManagedServer(
        name=name,
        url="http://radarr:7878",
        api_key_envelope="iv:ct",
        category=ServerCategory.MOVIE_MANAGER,
    )


class TestServerCategory:
    """Test the closed set of manager categories."""

    def test_item_kind_mapping(self) -> None:
        """Movie managers produce movies, episode managers produce episodes."""
        assert ServerCategory.MOVIE_MANAGER.item_kind is ItemKind.MOVIE
        assert ServerCategory.EPISODE_MANAGER.item_kind is ItemKind.EPISODE

    def test_parse_is_case_insensitive(self) -> None:
        """Persisted/API strings parse regardless of case."""
        assert ServerCategory.parse("Radarr") is ServerCategory.MOVIE_MANAGER
        assert ServerCategory.parse("SONARR") is ServerCategory.EPISODE_MANAGER

    def test_parse_unknown_raises_configuration_error(self) -> None:
        """Unknown categories are a configuration error naming the valid ones."""
        with pytest.raises(ConfigurationError, match="radarr"):
            ServerCategory.parse("lidarr")


class TestScheduleConfig:
    """Test schedule validation."""

    def test_defaults(self) -> None:
        """Default schedule is every 6 hours, enabled."""
        config = ScheduleConfig()
        assert config.interval_hours == 6
        assert config.enabled is True
        assert config.interval_seconds == 6 * 3600

    @pytest.mark.parametrize("hours", [1, 24, 168])
    def test_accepts_bounds(self, hours: int) -> None:
        """Interval bounds 1 and 168 are inclusive."""
        assert ScheduleConfig(interval_hours=hours).interval_hours == hours

    @pytest.mark.parametrize("hours", [0, -1, 169])
    def test_rejects_out_of_range(self, hours: int) -> None:
        """Intervals outside 1..168 raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ScheduleConfig(interval_hours=hours)

    def test_rejects_bool_interval(self) -> None:
        """True is an int subclass but never a valid interval."""
        with pytest.raises(ConfigurationError):
            ScheduleConfig(interval_hours=True)


class TestRateLimitConfig:
    """Test rate limit validation and lookup."""

    def test_defaults(self) -> None:
        """Defaults are 10/10 missing and 5/5 cutoff."""
        limits = RateLimitConfig()
        assert limits.to_dict() == {
            "missing_movies": 10,
            "missing_episodes": 10,
            "cutoff_movies": 5,
            "cutoff_episodes": 5,
        }

    def test_limit_for_each_pair(self) -> None:
        """limit_for maps (category, kind) onto the matching field."""
        limits = RateLimitConfig(
            missing_movies=1, missing_episodes=2, cutoff_movies=3, cutoff_episodes=4
        )
        assert limits.limit_for(SearchCategory.MISSING, ItemKind.MOVIE) == 1
        assert limits.limit_for(SearchCategory.MISSING, ItemKind.EPISODE) == 2
        assert limits.limit_for(SearchCategory.CUTOFF, ItemKind.MOVIE) == 3
        assert limits.limit_for(SearchCategory.CUTOFF, ItemKind.EPISODE) == 4

    def test_zero_and_max_are_valid(self) -> None:
        """0 disables a category and 1000 is the ceiling."""
        limits = RateLimitConfig(missing_movies=0, cutoff_episodes=1000)
        assert limits.missing_movies == 0
        assert limits.cutoff_episodes == 1000

    @pytest.mark.parametrize("value", [-1, 1001])
    def test_rejects_out_of_range(self, value: int) -> None:
        """Limits outside 0..1000 raise ConfigurationError naming the field."""
        with pytest.raises(ConfigurationError, match="cutoff_movies"):
            RateLimitConfig(cutoff_movies=value)


class TestLogRetentionConfig:
    """Test retention validation."""

    def test_default_is_30_days(self) -> None:
        """Logs are kept 30 days by default."""
        assert LogRetentionConfig().retention_days == 30

    @pytest.mark.parametrize("days", [6, 91])
    def test_rejects_out_of_range(self, days: int) -> None:
        """Retention outside 7..90 raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            LogRetentionConfig(retention_days=days)


class TestDetectionResults:
    """Test detection result shapes and aggregation."""

    def test_failure_has_no_counted_items(self) -> None:
        """A failed result keeps partial items aside and counts nothing."""
        partial = [DetectionItem(id=1, title="A", kind=ItemKind.MOVIE)]
        result = DetectionResult.failure(
            _server(), "boom", LogOperation.DETECT_CUTOFF, partial_missing_items=partial
        )

        assert result.failed
        assert result.missing_items == []
        assert result.cutoff_items == []
        assert result.missing_count == 0
        assert result.partial_missing_items == partial
        assert result.to_dict()["failed_operation"] == "detect_cutoff"

    def test_aggregation_only_counts_successful_servers(self) -> None:
        """Totals sum successful servers; failures only bump failure_count."""
        server = _server()
        ok = DetectionResult(
            server_id=server.id,
            server_name=server.name,
            server_category=server.category,
            missing_items=[DetectionItem(id=i, title="m", kind=ItemKind.MOVIE) for i in (1, 2)],
            cutoff_items=[DetectionItem(id=3, title="c", kind=ItemKind.MOVIE)],
        )
        failed = DetectionResult.failure(_server("Other"), "down", LogOperation.DETECT_MISSING)

        aggregated = AggregatedDetection.from_results([ok, failed])

        assert aggregated.total_missing == 2
        assert aggregated.total_cutoff == 1
        assert aggregated.success_count == 1
        assert aggregated.failure_count == 1
        assert [r.server_name for r in aggregated.results] == ["Movies", "Other"]


class TestCycleSnapshots:
    """Test cycle result serialization and the last-cycle snapshot."""

    def test_snapshot_from_manual_result(self) -> None:
        """The snapshot copies totals and marks manual origin."""
        started = utc_now()
        result = CycleResult(
            success=False,
            detection=AggregatedDetection(),
            searches=TriggerResults(),
            total_searches=7,
            total_failures=2,
            errors=["a", "b"],
            origin=CycleOrigin.MANUAL,
            started_at=started,
            finished_at=started + timedelta(seconds=3),
        )

        snapshot = LastCycleSnapshot.from_result(result)

        assert snapshot.was_manual is True
        assert snapshot.total_searches == 7
        assert snapshot.total_failures == 2
        assert snapshot.error_count == 2
        assert result.duration_seconds == pytest.approx(3.0)
        assert snapshot.to_dict()["last_cycle_searches"] == 7

    def test_log_entry_to_dict_uses_wire_values(self) -> None:
        """Enum fields serialize to their string values."""
        entry = LogEntry(
            type=LogEntryType.SEARCH,
            message="Triggered 2 missing searches on Movies",
            server_name="Movies",
            server_type=ServerCategory.MOVIE_MANAGER,
            category=SearchCategory.MISSING,
            count=2,
        )

        data = entry.to_dict()

        assert data["type"] == "search"
        assert data["server_type"] == "radarr"
        assert data["category"] == "missing"
        assert data["timestamp"] is None
