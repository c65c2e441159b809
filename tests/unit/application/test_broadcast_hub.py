"""Tests for the log broadcast hub."""

import pytest

from janitarr.application.services.broadcast_hub import BroadcastHub, ObserverFilter
from janitarr.domain.entities import LogEntry, LogEntryType, utc_now


def _entry(
    entry_type: LogEntryType, server_name: str | None = None, message: str = "x"
) -> LogEntry:
    return LogEntry(
        id=message,
        timestamp=utc_now(),
        type=entry_type,
        message=message,
        server_name=server_name,
    )


class TestObserverFilter:
    """Test observer filter matching."""

    def test_empty_filter_matches_everything(self) -> None:
        """No clauses means every entry matches."""
        assert ObserverFilter().matches(_entry(LogEntryType.ERROR))

    def test_clauses_and_together(self) -> None:
        """Both the type and server clause must match."""
        observer_filter = ObserverFilter.from_lists(types=["search"], servers=["Movies"])

        assert observer_filter.matches(_entry(LogEntryType.SEARCH, "Movies"))
        assert not observer_filter.matches(_entry(LogEntryType.SEARCH, "Shows"))
        assert not observer_filter.matches(_entry(LogEntryType.ERROR, "Movies"))

    def test_unknown_types_never_match(self) -> None:
        """Unknown type names are kept and simply match nothing."""
        observer_filter = ObserverFilter.from_lists(types=["search", "bogus"])

        assert observer_filter.types == frozenset({"search", "bogus"})
        assert observer_filter.matches(_entry(LogEntryType.SEARCH))
        assert not observer_filter.matches(_entry(LogEntryType.ERROR))

    @pytest.mark.parametrize("types", [["bogus"], ["ERROR"], [""]])
    def test_only_unknown_types_match_nothing(self, types: list[str]) -> None:
        """A non-empty type list never widens to match-all."""
        observer_filter = ObserverFilter.from_lists(types=types)

        for entry_type in LogEntryType:
            assert not observer_filter.matches(_entry(entry_type))

    @pytest.mark.asyncio
    async def test_unknown_type_subscriber_receives_nothing(self) -> None:
        """An observer asking only for an unknown type gets no messages."""
        hub = BroadcastHub()
        subscription = await hub.subscribe(ObserverFilter.from_lists(types=["ERROR"]))

        delivered = hub.publish(_entry(LogEntryType.SEARCH, "Movies"))

        assert delivered == 0
        assert subscription.pending == 0


class TestBroadcastHub:
    """Test subscribe/publish/unsubscribe behaviour."""

    @pytest.mark.asyncio
    async def test_publish_reaches_matching_observers_only(self) -> None:
        """Each observer only receives entries its filter accepts."""
        hub = BroadcastHub()
        everything = await hub.subscribe()
        errors_only = await hub.subscribe(ObserverFilter.from_lists(types=["error"]))

        delivered = hub.publish(_entry(LogEntryType.SEARCH, "Movies", "search-1"))

        assert delivered == 1
        message = everything.get_nowait()
        assert message["type"] == "log"
        assert message["data"]["id"] == "search-1"
        assert errors_only.pending == 0

    @pytest.mark.asyncio
    async def test_messages_arrive_in_publish_order(self) -> None:
        """An observer sees entries in the order they were published."""
        hub = BroadcastHub()
        subscription = await hub.subscribe()

        for name in ("a", "b", "c"):
            hub.publish(_entry(LogEntryType.DETECTION, message=name))

        received = [(await subscription.get())["data"]["id"] for _ in range(3)]
        assert received == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self) -> None:
        """A slow observer loses its oldest pending messages, not the newest."""
        hub = BroadcastHub(queue_size=2)
        subscription = await hub.subscribe()

        for name in ("a", "b", "c"):
            hub.publish(_entry(LogEntryType.DETECTION, message=name))

        assert subscription.dropped == 1
        assert subscription.get_nowait()["data"]["id"] == "b"
        assert subscription.get_nowait()["data"]["id"] == "c"
        assert hub.get_status() == {"observers": 1, "queue_size": 2, "dropped_messages": 1}

    @pytest.mark.asyncio
    async def test_slow_observer_does_not_affect_others(self) -> None:
        """Drops on one observer leave other observers untouched."""
        hub = BroadcastHub(queue_size=1)
        slow = await hub.subscribe()
        fast = await hub.subscribe()

        hub.publish(_entry(LogEntryType.DETECTION, message="a"))
        assert fast.get_nowait()["data"]["id"] == "a"
        hub.publish(_entry(LogEntryType.DETECTION, message="b"))

        assert slow.dropped == 1
        assert fast.dropped == 0
        assert fast.get_nowait()["data"]["id"] == "b"

    @pytest.mark.asyncio
    async def test_set_filter_and_reset(self) -> None:
        """Filters can be replaced at any time; None resets to match-all."""
        hub = BroadcastHub()
        subscription = await hub.subscribe()

        await hub.set_filter(subscription, ObserverFilter.from_lists(servers=["Shows"]))
        hub.publish(_entry(LogEntryType.SEARCH, "Movies"))
        assert subscription.pending == 0

        await hub.set_filter(subscription, None)
        hub.publish(_entry(LogEntryType.SEARCH, "Movies"))
        assert subscription.pending == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_is_idempotent(self) -> None:
        """Unsubscribed observers get nothing and a second unsubscribe is a no-op."""
        hub = BroadcastHub()
        subscription = await hub.subscribe()

        await hub.unsubscribe(subscription)
        await hub.unsubscribe(subscription)

        assert hub.observer_count == 0
        assert hub.publish(_entry(LogEntryType.ERROR)) == 0
        assert subscription.pending == 0
