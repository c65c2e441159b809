"""Real-time fan-out of activity log entries to connected observers.

Hey future me - this is what feeds the live log view. Every observer (one per WebSocket)
gets its OWN bounded queue and its OWN filter. The producer (ActivityLogService.append)
calls publish(), which is a plain sync method: it never awaits, so a slow or dead browser
tab can never stall an automation cycle.

Drop policy: when an observer's queue is full we drop its OLDEST pending message and enqueue
the new one. The live view shows the most recent activity; the full history is always
available from the REST endpoint. Drops are counted per observer.

Locking: subscribe/set_filter/unsubscribe mutate the observer set under an asyncio.Lock
and then swap in a new immutable snapshot tuple. publish() only reads the current snapshot,
so it never needs the lock and never sees a half-updated set.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from janitarr.domain.entities import LogEntry, LogEntryType

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


@dataclass(frozen=True)
class ObserverFilter:
    """Per-observer filter. An empty clause matches everything; clauses AND together.

    Type names are kept exactly as the client sent them. A name that is not a real log
    type simply never matches, so ["bogus"] receives nothing instead of everything.
    """

    types: frozenset[str] = field(default_factory=frozenset)
    servers: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_lists(
        cls,
        types: list[str] | None = None,
        servers: list[str] | None = None,
    ) -> "ObserverFilter":
        """Build a filter from raw client input."""
        known = {entry_type.value for entry_type in LogEntryType}
        requested = frozenset(types or [])
        unknown = requested - known
        if unknown:
            logger.debug("Observer filter names unknown log types: %s", sorted(unknown))
        return cls(
            types=requested,
            servers=frozenset(servers or []),
        )

    def matches(self, entry: LogEntry) -> bool:
        if self.types and entry.type.value not in self.types:
            return False
        if self.servers and entry.server_name not in self.servers:
            return False
        return True


MATCH_ALL = ObserverFilter()


class Subscription:
    """One observer's queue and filter."""

    def __init__(self, observer_filter: ObserverFilter, queue_size: int) -> None:
        self.id = str(uuid.uuid4())
        self.filter = observer_filter
        self.dropped = 0
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)

    def offer(self, message: dict[str, Any]) -> bool:
        """Enqueue without blocking, dropping the oldest message if full.

        Returns:
            False if a message had to be dropped to make room
        """
        dropped_one = False
        if self._queue.full():
            try:
                self._queue.get_nowait()
                self.dropped += 1
                dropped_one = True
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(message)
        return not dropped_one

    async def get(self) -> dict[str, Any]:
        """Wait for the next message."""
        return await self._queue.get()

    def get_nowait(self) -> dict[str, Any]:
        return self._queue.get_nowait()

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class BroadcastHub:
    """Fan-out hub for log entries."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._lock = asyncio.Lock()
        self._observers: dict[str, Subscription] = {}
        self._snapshot: tuple[Subscription, ...] = ()

    async def subscribe(self, observer_filter: ObserverFilter | None = None) -> Subscription:
        """Register a new observer."""
        subscription = Subscription(observer_filter or MATCH_ALL, self._queue_size)
        async with self._lock:
            self._observers[subscription.id] = subscription
            self._snapshot = tuple(self._observers.values())
        logger.debug("Log observer %s subscribed (%d total)", subscription.id, len(self._snapshot))
        return subscription

    async def set_filter(
        self, subscription: Subscription, observer_filter: ObserverFilter | None
    ) -> None:
        """Replace an observer's filter; None resets it to match-all."""
        async with self._lock:
            subscription.filter = observer_filter or MATCH_ALL

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Remove an observer. Unknown or already-removed observers are ignored."""
        async with self._lock:
            if self._observers.pop(subscription.id, None) is None:
                return
            self._snapshot = tuple(self._observers.values())
        if subscription.dropped:
            logger.info(
                "Log observer %s disconnected after dropping %d messages",
                subscription.id,
                subscription.dropped,
            )

    def publish(self, entry: LogEntry) -> int:
        """Offer an entry to every matching observer without blocking.

        Returns:
            Number of observers the entry was delivered to
        """
        observers = self._snapshot
        if not observers:
            return 0

        message = {"type": "log", "data": entry.to_dict()}
        delivered = 0
        for subscription in observers:
            if not subscription.filter.matches(entry):
                continue
            subscription.offer(message)
            delivered += 1
        return delivered

    @property
    def observer_count(self) -> int:
        return len(self._snapshot)

    def get_status(self) -> dict[str, Any]:
        observers = self._snapshot
        return {
            "observers": len(observers),
            "queue_size": self._queue_size,
            "dropped_messages": sum(s.dropped for s in observers),
        }
