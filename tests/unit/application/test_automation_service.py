"""Tests for AutomationService.run_cycle and cycle summaries."""

from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest
from support.fakes import (
    FakeClientRegistry,
    FakeManagerClient,
    InMemoryActivityLogStore,
    InMemoryConfigStore,
    InMemoryServerStore,
    make_cipher,
    make_server,
    movies,
)

from janitarr.application.services.activity_log_service import ActivityLogService
from janitarr.application.services.automation_service import (
    AutomationService,
    format_cycle_result,
)
from janitarr.application.services.detector import Detector
from janitarr.application.services.search_trigger import SearchTrigger
from janitarr.domain.entities import (
    CycleOrigin,
    LogEntryType,
    ManagedServer,
    RateLimitConfig,
    SearchCategory,
)
from janitarr.domain.exceptions import PersistenceError
from janitarr.infrastructure.observability.metrics import AutomationMetrics
from janitarr.infrastructure.security import CredentialCipher


@dataclass
class Harness:
    service: AutomationService
    log_store: InMemoryActivityLogStore
    config_store: InMemoryConfigStore


def _harness(
    servers: list[ManagedServer],
    clients: dict[str, FakeManagerClient],
    cipher: CredentialCipher | None = None,
    limits: RateLimitConfig | None = None,
    metrics: AutomationMetrics | None = None,
) -> Harness:
    cipher = cipher or make_cipher()
    server_store = InMemoryServerStore(servers)
    config_store = InMemoryConfigStore(limits=limits)
    registry = FakeClientRegistry(clients)
    log_store = InMemoryActivityLogStore()
    service = AutomationService(
        server_store,
        config_store,
        Detector(server_store, registry, cipher),
        SearchTrigger(server_store, registry, cipher),
        ActivityLogService(log_store),
        metrics,
    )
    return Harness(service, log_store, config_store)


class TestRunCycle:
    """Test a full detect-then-search cycle."""

    @pytest.mark.asyncio
    async def test_zero_servers_is_a_successful_empty_cycle(self) -> None:
        """No servers still produces a start and end entry and a snapshot."""
        harness = _harness([], {})

        result = await harness.service.run_cycle()

        assert result.success is True
        assert result.total_searches == 0
        assert result.origin is CycleOrigin.SCHEDULED
        assert harness.log_store.types() == [LogEntryType.CYCLE_START, LogEntryType.CYCLE_END]
        snapshot = harness.service.last_cycle
        assert snapshot is not None
        assert snapshot.was_manual is False
        assert snapshot.success is True

    @pytest.mark.asyncio
    async def test_entries_follow_cycle_order(self) -> None:
        """Start, per-server detection/error entries, searches, then end."""
        cipher = make_cipher()
        good = make_server("Good", cipher=cipher)
        bad = make_server("Bad", cipher=cipher)
        good_client = FakeManagerClient(missing=movies(1, 2))
        harness = _harness(
            [good, bad],
            {good.url: good_client, bad.url: FakeManagerClient(fail_missing="timeout")},
            cipher=cipher,
        )

        result = await harness.service.run_cycle(is_manual=True)

        assert harness.log_store.types() == [
            LogEntryType.CYCLE_START,
            LogEntryType.DETECTION,
            LogEntryType.ERROR,
            LogEntryType.SEARCH,
            LogEntryType.CYCLE_END,
        ]
        assert all(entry.is_manual for entry in harness.log_store.entries)
        assert good_client.triggered == [1, 2]
        assert result.success is False
        assert result.total_searches == 2
        assert result.total_failures == 1
        assert result.errors == ["Detection failed for Bad: Missing detection failed: timeout"]
        error_entry = harness.log_store.entries[2]
        assert error_entry.server_name == "Bad"
        search_entry = harness.log_store.entries[3]
        assert search_entry.category is SearchCategory.MISSING
        assert search_entry.count == 2

    @pytest.mark.asyncio
    async def test_search_failures_are_logged_and_counted(self) -> None:
        """Item trigger failures become error entries and count toward total_failures."""
        cipher = make_cipher()
        server = make_server("Movies", cipher=cipher)
        harness = _harness(
            [server],
            {server.url: FakeManagerClient(missing=movies(1, 2), failing_items=[2])},
            cipher=cipher,
        )

        result = await harness.service.run_cycle()

        assert result.total_searches == 1
        assert result.total_failures == 1
        errors = [e for e in harness.log_store.entries if e.type is LogEntryType.ERROR]
        assert len(errors) == 1
        assert errors[0].category is SearchCategory.MISSING
        assert errors[0].metadata is not None and errors[0].metadata["item_id"] == 2
        end = harness.log_store.entries[-1]
        assert end.message == "Automation cycle complete: 1 searches triggered, 1 failures"

    @pytest.mark.asyncio
    async def test_limits_come_from_config_store(self) -> None:
        """The cycle uses the stored rate limits."""
        cipher = make_cipher()
        server = make_server("Movies", cipher=cipher)
        client = FakeManagerClient(missing=movies(1, 2, 3), cutoff=movies(4, 5))
        harness = _harness(
            [server],
            {server.url: client},
            cipher=cipher,
            limits=RateLimitConfig(missing_movies=1, cutoff_movies=0),
        )

        result = await harness.service.run_cycle()

        assert client.triggered == [1]
        assert result.searches.cutoff_triggered == 0


class TestDryRun:
    """Test preview cycles."""

    @pytest.mark.asyncio
    async def test_dry_run_has_no_side_effects(self) -> None:
        """Dry runs detect and select but write no entries and trigger nothing."""
        cipher = make_cipher()
        server = make_server("Movies", cipher=cipher)
        client = FakeManagerClient(missing=movies(1, 2))
        harness = _harness([server], {server.url: client}, cipher=cipher)

        result = await harness.service.run_cycle(is_manual=True, dry_run=True)

        assert result.dry_run is True
        assert result.total_searches == 2
        assert client.triggered == []
        assert harness.log_store.entries == []
        assert harness.service.last_cycle is None


class TestPersistenceFailure:
    """Test aborting when the activity log is unavailable."""

    @pytest.mark.asyncio
    async def test_log_store_failure_aborts_cycle(self) -> None:
        """A failing log store raises and records a failed snapshot."""
        cipher = make_cipher()
        server = make_server("Movies", cipher=cipher)
        client = FakeManagerClient(missing=movies(1))
        harness = _harness([server], {server.url: client}, cipher=cipher)
        harness.log_store.fail = True

        with pytest.raises(PersistenceError):
            await harness.service.run_cycle()

        snapshot = harness.service.last_cycle
        assert snapshot is not None
        assert snapshot.success is False
        assert snapshot.error == (
            "Persistence failure during append log entry: database is unavailable"
        )
        assert client.triggered == []

    @pytest.mark.asyncio
    async def test_abort_mid_cycle_replaces_previous_good_snapshot(self) -> None:
        """A later aborted cycle overwrites an earlier successful snapshot."""
        cipher = make_cipher()
        server = make_server("Movies", cipher=cipher)
        client = FakeManagerClient(missing=movies(1))
        metrics = AutomationMetrics()
        harness = _harness([server], {server.url: client}, cipher=cipher, metrics=metrics)
        await harness.service.run_cycle()
        assert harness.service.last_cycle is not None
        assert harness.service.last_cycle.success is True

        # cycle_start is written, the detection entry is not
        harness.log_store.fail_after = len(harness.log_store.entries) + 1
        with pytest.raises(PersistenceError):
            await harness.service.run_cycle(is_manual=True)

        snapshot = harness.service.last_cycle
        assert snapshot is not None
        assert snapshot.success is False
        assert snapshot.was_manual is True
        assert snapshot.to_dict()["error"].startswith("Persistence failure")
        assert metrics.get_counter("cycles_total", {"origin": "manual"}) == 1
        assert metrics.get_counter("cycles_failed_total", {"origin": "manual"}) == 1

    @pytest.mark.asyncio
    async def test_dry_run_abort_leaves_snapshot_alone(self) -> None:
        """Dry runs never touch the snapshot, even when they fail."""
        harness = _harness([], {})
        harness.config_store.get_rate_limits = AsyncMock(  # type: ignore[method-assign]
            side_effect=PersistenceError("read rate limits", "database is unavailable")
        )

        with pytest.raises(PersistenceError):
            await harness.service.run_cycle(dry_run=True)

        assert harness.service.last_cycle is None


class TestCycleMetrics:
    """Test that finished cycles feed the metrics collector."""

    @pytest.mark.asyncio
    async def test_searches_and_failures_are_counted(self) -> None:
        """Counters are labelled by server type and category."""
        cipher = make_cipher()
        good = make_server("Movies", cipher=cipher)
        bad = make_server("Bad", cipher=cipher, url="http://bad:7878")
        metrics = AutomationMetrics()
        harness = _harness(
            [good, bad],
            {
                good.url: FakeManagerClient(missing=movies(1, 2), cutoff=movies(3)),
                bad.url: FakeManagerClient(fail_missing="timeout"),
            },
            cipher=cipher,
            metrics=metrics,
        )

        await harness.service.run_cycle()

        assert metrics.get_counter("cycles_total", {"origin": "scheduled"}) == 1
        assert metrics.get_counter("cycles_failed_total", {"origin": "scheduled"}) == 1
        missing = {"type": "radarr", "category": "missing"}
        cutoff = {"type": "radarr", "category": "cutoff"}
        assert metrics.get_counter("searches_total", missing) == 2
        assert metrics.get_counter("searches_total", cutoff) == 1
        assert metrics.get_counter("detection_failures_total", {"type": "radarr"}) == 1

    @pytest.mark.asyncio
    async def test_dry_run_is_not_counted(self) -> None:
        """Previews leave the counters alone."""
        metrics = AutomationMetrics()
        harness = _harness([], {}, metrics=metrics)

        await harness.service.run_cycle(dry_run=True)

        assert metrics.get_counter("cycles_total", {"origin": "scheduled"}) == 0


class TestFormatCycleResult:
    """Test the human-readable summary."""

    @pytest.mark.asyncio
    async def test_success_summary(self) -> None:
        """Successful cycles end with a success status line."""
        result = await _harness([], {}).service.run_cycle()

        text = format_cycle_result(result)

        assert text.startswith("=== Automation Cycle Summary ===")
        assert "Status: ✓ Success" in text

    @pytest.mark.asyncio
    async def test_failure_summary_lists_errors(self) -> None:
        """Failed cycles list every error; dry runs say so."""
        cipher = make_cipher()
        server = make_server("Bad", cipher=cipher)
        harness = _harness(
            [server], {server.url: FakeManagerClient(fail_missing="down")}, cipher=cipher
        )

        text = format_cycle_result(await harness.service.run_cycle(dry_run=True))

        assert "(dry run - no searches were triggered)" in text
        assert "Status: ✗ 1 failures" in text
        assert "  - Detection failed for Bad: Missing detection failed: down" in text
