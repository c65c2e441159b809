"""Background workers: the automation scheduler and log retention."""

from janitarr.application.workers.log_retention_worker import LogRetentionWorker
from janitarr.application.workers.scheduler import AutomationScheduler

__all__ = ["AutomationScheduler", "LogRetentionWorker"]
