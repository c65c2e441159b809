"""Application services - the automation engine and its supporting services."""

from janitarr.application.services.activity_log_service import ActivityLogService
from janitarr.application.services.automation_service import (
    AutomationService,
    format_cycle_result,
)
from janitarr.application.services.broadcast_hub import (
    BroadcastHub,
    ObserverFilter,
    Subscription,
)
from janitarr.application.services.config_service import ConfigService
from janitarr.application.services.detector import Detector
from janitarr.application.services.search_trigger import SearchTrigger
from janitarr.application.services.server_service import ServerService
from janitarr.application.services.stats_service import StatsService

__all__ = [
    "ActivityLogService",
    "AutomationService",
    "BroadcastHub",
    "ConfigService",
    "Detector",
    "ObserverFilter",
    "SearchTrigger",
    "ServerService",
    "StatsService",
    "Subscription",
    "format_cycle_result",
]
