"""Rate-limited dispatch of search commands for detected items."""

import logging
from dataclasses import dataclass, field

from janitarr.domain.entities import (
    AggregatedDetection,
    DetectionItem,
    DetectionResult,
    ItemKind,
    ManagedServer,
    RateLimitConfig,
    SearchCategory,
    SearchFailure,
    SearchOutcome,
    TriggerResults,
)
from janitarr.domain.exceptions import DomainException
from janitarr.domain.ports import ICredentialCipher, IManagerClient, IServerStore
from janitarr.infrastructure.clients import ManagerClientRegistry
from janitarr.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)


# Listen up, these counters are the whole rate-limit story. There is ONE counter per
# (search category, item kind) for the entire cycle - not per server. Server A spending 8 of
# a 10 missing-movie budget leaves 2 for server B. The counter counts items we ATTEMPTED,
# so a failed trigger still used up budget (the indexer may have been hit anyway).
@dataclass
class _Budget:
    limits: RateLimitConfig
    used: dict[tuple[SearchCategory, ItemKind], int] = field(default_factory=dict)

    def try_consume(self, category: SearchCategory, kind: ItemKind) -> bool:
        key = (category, kind)
        used = self.used.get(key, 0)
        if used >= self.limits.limit_for(category, kind):
            return False
        self.used[key] = used + 1
        return True


class SearchTrigger:
    """Turns detection results into search commands, respecting per-cycle limits."""

    def __init__(
        self,
        server_store: IServerStore,
        client_registry: ManagerClientRegistry,
        cipher: ICredentialCipher,
    ) -> None:
        self._server_store = server_store
        self._client_registry = client_registry
        self._cipher = cipher

    async def trigger_searches(
        self,
        detection: AggregatedDetection,
        limits: RateLimitConfig,
        servers: dict[str, ManagedServer] | None = None,
        dry_run: bool = False,
    ) -> TriggerResults:
        """Trigger searches for detected items.

        Items are consumed in a fixed order: servers in the order of detection.results,
        then missing items before cutoff items, each in the order the manager returned
        them. First N wins, nothing is re-sorted.

        Args:
            detection: Aggregated detection (failed servers are skipped)
            limits: Per-category limits for this cycle
            servers: Server snapshot by id; loaded from the store when omitted
            dry_run: Select items but don't call any manager

        Returns:
            Per server/category outcomes and totals
        """
        budget = _Budget(limits)
        results = TriggerResults()

        for detection_result in detection.results:
            if detection_result.failed:
                continue

            server = await self._resolve_server(detection_result, servers)
            for category, items in (
                (SearchCategory.MISSING, detection_result.missing_items),
                (SearchCategory.CUTOFF, detection_result.cutoff_items),
            ):
                outcome = await self._process_category(
                    detection_result, server, category, items, budget, dry_run
                )
                if outcome is None:
                    continue
                results.outcomes.append(outcome)
                if category is SearchCategory.MISSING:
                    results.missing_triggered += outcome.triggered_count
                else:
                    results.cutoff_triggered += outcome.triggered_count
                results.success_count += outcome.triggered_count
                results.failure_count += len(outcome.failures)

        logger.info(
            "%sSearch trigger finished: %d missing, %d cutoff, %d failures",
            "[dry-run] " if dry_run else "",
            results.missing_triggered,
            results.cutoff_triggered,
            results.failure_count,
        )
        return results

    async def _process_category(
        self,
        detection_result: DetectionResult,
        server: ManagedServer | None,
        category: SearchCategory,
        items: list[DetectionItem],
        budget: _Budget,
        dry_run: bool,
    ) -> SearchOutcome | None:
        expected_kind = detection_result.server_category.item_kind
        selected: list[DetectionItem] = []
        for item in items:
            if item.kind is not expected_kind:
                logger.debug(
                    "Ignoring %s item %d reported by %s manager %s",
                    item.kind.value,
                    item.id,
                    detection_result.server_category.value,
                    detection_result.server_name,
                )
                continue
            if budget.try_consume(category, item.kind):
                selected.append(item)

        if not selected:
            return None

        outcome = SearchOutcome(
            server_id=detection_result.server_id,
            server_name=detection_result.server_name,
            server_category=detection_result.server_category,
            search_category=category,
            attempted_ids=[item.id for item in selected],
        )

        if dry_run:
            outcome.triggered_ids = list(outcome.attempted_ids)
            return outcome

        client: IManagerClient | None = None
        client_error: str | None = None
        if server is None:
            client_error = "Server no longer exists"
        else:
            try:
                client = self._client_for(server)
            except DomainException as e:
                client_error = e.message
            except Exception as e:
                logger.exception("Unexpected error building client for %s", server.name)
                client_error = str(e)

        for item in selected:
            if client is None:
                outcome.failures.append(SearchFailure(item.id, client_error or "No client"))
                continue
            try:
                await client.trigger_search(item.id)
                outcome.triggered_ids.append(item.id)
            except DomainException as e:
                self._record_failure(outcome, item, e.message)
            except Exception as e:
                logger.exception(
                    "Unexpected error triggering search for item %d on %s",
                    item.id,
                    outcome.server_name,
                )
                self._record_failure(outcome, item, str(e))

        return outcome

    @staticmethod
    def _record_failure(outcome: SearchOutcome, item: DetectionItem, reason: str) -> None:
        logger.warning(
            LogMessages.search_failed(
                server=outcome.server_name,
                category=outcome.search_category.value,
                item_id=item.id,
                error=reason,
            )
        )
        outcome.failures.append(SearchFailure(item.id, reason))

    async def _resolve_server(
        self,
        detection_result: DetectionResult,
        servers: dict[str, ManagedServer] | None,
    ) -> ManagedServer | None:
        if servers is not None:
            return servers.get(detection_result.server_id)
        return await self._server_store.get_server(detection_result.server_id)

    def _client_for(self, server: ManagedServer) -> IManagerClient:
        api_key = self._cipher.decrypt(server.api_key_envelope)
        return self._client_registry.create(server.category, server.url, api_key)
