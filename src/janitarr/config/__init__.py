"""Configuration module for Janitarr."""

from .settings import (
    ApiSettings,
    AutomationSettings,
    DatabaseSettings,
    ObservabilitySettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "ApiSettings",
    "AutomationSettings",
    "DatabaseSettings",
    "ObservabilitySettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
