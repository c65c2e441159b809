"""Automation cycle: detect on every server, then trigger rate-limited searches."""

import logging

from janitarr.application.services.activity_log_service import ActivityLogService
from janitarr.application.services.detector import Detector
from janitarr.application.services.search_trigger import SearchTrigger
from janitarr.domain.entities import (
    AggregatedDetection,
    CycleOrigin,
    CycleResult,
    LastCycleSnapshot,
    LogOperation,
    TriggerResults,
    utc_now,
)
from janitarr.domain.ports import IConfigStore, IServerStore
from janitarr.infrastructure.observability.log_messages import LogMessages
from janitarr.infrastructure.observability.logging import set_correlation_id
from janitarr.infrastructure.observability.metrics import AutomationMetrics

logger = logging.getLogger(__name__)


class AutomationService:
    """Composes Detector, SearchTrigger and the activity log into one cycle.

    Holds the process-wide last-cycle snapshot read by the status and health surfaces.
    Does NOT enforce single-flight - that's the scheduler's job.
    """

    def __init__(
        self,
        server_store: IServerStore,
        config_store: IConfigStore,
        detector: Detector,
        search_trigger: SearchTrigger,
        activity_log: ActivityLogService,
        metrics: AutomationMetrics | None = None,
    ) -> None:
        self._server_store = server_store
        self._config_store = config_store
        self._detector = detector
        self._search_trigger = search_trigger
        self._activity_log = activity_log
        self._metrics = metrics
        self._last_cycle: LastCycleSnapshot | None = None

    @property
    def last_cycle(self) -> LastCycleSnapshot | None:
        return self._last_cycle

    # Hey future me, the order of log entries here is a contract: cycle_start first, then
    # every detection/error/search entry, then cycle_end. Per-server problems are collected
    # into result.errors and logged as error entries - they never abort the cycle. The only
    # thing that DOES abort is the activity log itself failing (PersistenceError from
    # append). Then we bail out without cycle_end, record an aborted (failed) snapshot so
    # status and health stop reporting the previous good cycle, and re-raise for the
    # scheduler.
    #
    # The server set and the rate limits are read once, right after cycle_start. Config
    # edits made while the cycle runs only affect the next cycle.
    #
    # dry_run: full detection + item selection, but no searches, no log entries and no
    # snapshot update. Used for "what would happen" previews.
    async def run_cycle(self, is_manual: bool = False, dry_run: bool = False) -> CycleResult:
        """Run one automation cycle.

        Args:
            is_manual: True for operator-triggered cycles
            dry_run: Preview only, nothing is searched or logged

        Returns:
            The cycle result

        Raises:
            PersistenceError: If the activity log or config store is unavailable
        """
        result = CycleResult(
            success=False,
            detection=AggregatedDetection(),
            searches=TriggerResults(),
            origin=CycleOrigin.MANUAL if is_manual else CycleOrigin.SCHEDULED,
            dry_run=dry_run,
        )
        set_correlation_id(result.cycle_id)

        try:
            await self._run(result, is_manual, dry_run)
        except Exception as e:
            if not dry_run:
                self._last_cycle = LastCycleSnapshot.aborted(result, str(e))
                if self._metrics is not None:
                    self._metrics.record_cycle_aborted(result)
            raise

        if not dry_run and self._metrics is not None:
            self._metrics.record_cycle(result)
        return result

    async def _run(self, result: CycleResult, is_manual: bool, dry_run: bool) -> None:
        if not dry_run:
            await self._activity_log.log_cycle_start(
                is_manual, metadata={"cycle_id": result.cycle_id}
            )

        servers = await self._server_store.list_servers(enabled_only=True)
        limits = await self._config_store.get_rate_limits()
        logger.info(LogMessages.cycle_started(is_manual, server_count=len(servers)))

        # Phase 1: detection
        detection = await self._detector.detect_all(servers)
        result.detection = detection

        for detection_result in detection.results:
            if detection_result.failed:
                error = (
                    f"Detection failed for {detection_result.server_name}: "
                    f"{detection_result.error}"
                )
                result.errors.append(error)
                if not dry_run:
                    await self._activity_log.log_error(
                        error,
                        operation=detection_result.failed_operation or LogOperation.DETECT_MISSING,
                        server_name=detection_result.server_name,
                        server_type=detection_result.server_category,
                        is_manual=is_manual,
                        metadata={
                            "cycle_id": result.cycle_id,
                            "partial_missing": len(detection_result.partial_missing_items),
                        },
                    )
            elif not dry_run:
                await self._activity_log.log_detection(
                    detection_result.server_name,
                    detection_result.server_category,
                    detection_result.missing_count,
                    detection_result.cutoff_count,
                    is_manual,
                )

        # Phase 2: searches, in detection (= server snapshot) order
        searches = await self._search_trigger.trigger_searches(
            detection,
            limits,
            servers={server.id: server for server in servers},
            dry_run=dry_run,
        )
        result.searches = searches

        for outcome in searches.outcomes:
            if outcome.triggered_count > 0 and not dry_run:
                await self._activity_log.log_searches(
                    outcome.server_name,
                    outcome.server_category,
                    outcome.search_category,
                    outcome.triggered_count,
                    is_manual,
                )
            for failure in outcome.failures:
                error = (
                    f"Search trigger failed for {outcome.server_name} "
                    f"({outcome.search_category.value}): item {failure.item_id}: {failure.reason}"
                )
                result.errors.append(error)
                if not dry_run:
                    await self._activity_log.log_error(
                        error,
                        operation=LogOperation.TRIGGER_SEARCH,
                        server_name=outcome.server_name,
                        server_type=outcome.server_category,
                        category=outcome.search_category,
                        is_manual=is_manual,
                        metadata={"cycle_id": result.cycle_id, "item_id": failure.item_id},
                    )

        result.total_searches = searches.missing_triggered + searches.cutoff_triggered
        result.total_failures = detection.failure_count + searches.failure_count
        result.success = not result.errors
        result.finished_at = utc_now()

        if not dry_run:
            await self._activity_log.log_cycle_end(
                result.total_searches,
                result.total_failures,
                is_manual,
                metadata={
                    "cycle_id": result.cycle_id,
                    "duration_seconds": round(result.duration_seconds, 3),
                    **detection.summary(),
                    **searches.summary(),
                },
            )
            self._last_cycle = LastCycleSnapshot.from_result(result)

        logger.info(
            LogMessages.cycle_completed(
                result.total_searches, result.total_failures, result.duration_seconds
            )
        )


def format_cycle_result(result: CycleResult) -> str:
    """Human-readable multi-line summary of a cycle."""
    lines = ["=== Automation Cycle Summary ==="]
    if result.dry_run:
        lines.append("(dry run - no searches were triggered)")
    lines.append("")

    detection = result.detection
    lines.append("Detection:")
    lines.append(f"  Found: {detection.total_missing} missing, {detection.total_cutoff} cutoff")
    lines.append(
        f"  Servers: {detection.success_count} successful, {detection.failure_count} failed"
    )
    lines.append("")

    searches = result.searches
    lines.append("Search Triggering:")
    lines.append(
        f"  Triggered: {searches.missing_triggered} missing, {searches.cutoff_triggered} cutoff"
    )
    lines.append(f"  Total: {result.total_searches} searches, {searches.failure_count} failures")
    lines.append("")

    if result.success:
        lines.append("Status: ✓ Success")
    else:
        lines.append(f"Status: ✗ {result.total_failures} failures")
        if result.errors:
            lines.append("")
            lines.append("Errors:")
            lines.extend(f"  - {error}" for error in result.errors)

    return "\n".join(lines)
