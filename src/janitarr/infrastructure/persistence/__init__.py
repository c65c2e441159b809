"""Infrastructure persistence layer."""

from .database import Database
from .models import ActivityLogModel, Base, ConfigModel, ServerModel
from .repositories import ActivityLogRepository, ConfigRepository, ServerRepository
from .stores import SqlActivityLogStore, SqlConfigStore, SqlServerStore

__all__ = [
    "ActivityLogModel",
    "ActivityLogRepository",
    "Base",
    "ConfigModel",
    "ConfigRepository",
    "Database",
    "ServerModel",
    "ServerRepository",
    "SqlActivityLogStore",
    "SqlConfigStore",
    "SqlServerStore",
]
