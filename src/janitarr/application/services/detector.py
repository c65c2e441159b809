"""Concurrent detection of missing and cutoff-unmet items across managed servers."""

import asyncio
import logging

from janitarr.domain.entities import (
    AggregatedDetection,
    DetectionItem,
    DetectionResult,
    LogOperation,
    ManagedServer,
    ServerCategory,
)
from janitarr.domain.exceptions import DomainException, ExternalServiceError
from janitarr.domain.ports import ICredentialCipher, IManagerClient, IServerStore
from janitarr.infrastructure.clients import ManagerClientRegistry
from janitarr.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)


class Detector:
    """Queries every server for missing and cutoff-unmet items."""

    def __init__(
        self,
        server_store: IServerStore,
        client_registry: ManagerClientRegistry,
        cipher: ICredentialCipher,
    ) -> None:
        self._server_store = server_store
        self._client_registry = client_registry
        self._cipher = cipher

    # Hey future me, every server is queried in its own coroutine via gather(). Failures are
    # turned into failed DetectionResults INSIDE _detect_server, so gather never sees an
    # exception and one dead server can't cancel the others. gather() returns results in the
    # order the coroutines were passed, which is the server snapshot order - that's the fixed
    # order the search trigger consumes rate limits in, regardless of who answered first.
    async def detect_all(
        self, servers: list[ManagedServer] | None = None
    ) -> AggregatedDetection:
        """Detect on all enabled servers.

        Args:
            servers: Snapshot to use instead of loading enabled servers from the store

        Returns:
            Aggregated results in snapshot order
        """
        if servers is None:
            servers = await self._server_store.list_servers(enabled_only=True)
        return await self._detect_servers(servers)

    async def detect_by_category(self, category: ServerCategory) -> AggregatedDetection:
        """Detect on enabled servers of one category."""
        servers = await self._server_store.list_servers(enabled_only=True)
        return await self._detect_servers([s for s in servers if s.category is category])

    async def detect_single(self, id_or_name: str) -> DetectionResult | None:
        """Detect on one server, resolved by id first and then by name.

        Returns:
            The server's result, or None if no such server exists
        """
        server = await self._server_store.get_server(id_or_name)
        if server is None:
            server = await self._server_store.get_server_by_name(id_or_name)
        if server is None:
            return None
        return await self._detect_server(server)

    async def _detect_servers(self, servers: list[ManagedServer]) -> AggregatedDetection:
        if not servers:
            return AggregatedDetection()
        results = await asyncio.gather(*(self._detect_server(server) for server in servers))
        aggregated = AggregatedDetection.from_results(list(results))
        logger.info(
            "Detection finished: %d missing, %d cutoff unmet across %d servers (%d failed)",
            aggregated.total_missing,
            aggregated.total_cutoff,
            len(servers),
            aggregated.failure_count,
        )
        return aggregated

    async def _detect_server(self, server: ManagedServer) -> DetectionResult:
        try:
            client = self._client_for(server)
        except DomainException as e:
            logger.warning("Cannot build client for %s: %s", server.name, e.message)
            return DetectionResult.failure(server, e.message, LogOperation.DETECT_MISSING)
        except Exception as e:
            logger.exception("Unexpected error building client for %s", server.name)
            return DetectionResult.failure(server, str(e), LogOperation.DETECT_MISSING)

        # Missing first. If that fails the server is unreachable or misconfigured, so we
        # don't waste a second call on the cutoff endpoint.
        try:
            missing = await client.list_missing()
        except ExternalServiceError as e:
            return self._failed(
                server, f"Missing detection failed: {e.message}", LogOperation.DETECT_MISSING
            )
        except Exception as e:
            logger.exception("Unexpected error detecting missing items on %s", server.name)
            return self._failed(
                server, f"Missing detection failed: {e}", LogOperation.DETECT_MISSING
            )

        try:
            cutoff = await client.list_cutoff_unmet()
        except ExternalServiceError as e:
            return self._failed(
                server, f"Cutoff detection failed: {e.message}", LogOperation.DETECT_CUTOFF, missing
            )
        except Exception as e:
            logger.exception("Unexpected error detecting cutoff items on %s", server.name)
            return self._failed(
                server, f"Cutoff detection failed: {e}", LogOperation.DETECT_CUTOFF, missing
            )

        return DetectionResult(
            server_id=server.id,
            server_name=server.name,
            server_category=server.category,
            missing_items=list(missing),
            cutoff_items=list(cutoff),
        )

    @staticmethod
    def _failed(
        server: ManagedServer,
        error: str,
        operation: LogOperation,
        partial_missing: list[DetectionItem] | None = None,
    ) -> DetectionResult:
        logger.warning(
            LogMessages.detection_failed(
                server=server.name,
                server_type=server.category.value,
                operation=operation.value,
                error=error,
            )
        )
        return DetectionResult.failure(server, error, operation, partial_missing)

    def _client_for(self, server: ManagedServer) -> IManagerClient:
        api_key = self._cipher.decrypt(server.api_key_envelope)
        return self._client_registry.create(server.category, server.url, api_key)
