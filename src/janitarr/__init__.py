"""Janitarr - keeps Radarr/Sonarr libraries complete by triggering rate-limited searches."""

__version__ = "1.0.0"
