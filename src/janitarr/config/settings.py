"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Hey future me, these nested groups map to env vars with a double underscore, e.g.
# JANITARR_DATABASE__URL or JANITARR_OBSERVABILITY__LOG_JSON_FORMAT=true. Keep each group
# small and focused. Runtime-tunable knobs (interval, rate limits, retention) do NOT live
# here - they are persisted in the config table and edited through the API. Settings are
# only the process-level knobs you need before the database even exists.
class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = Field(
        default="sqlite+aiosqlite:///./data/janitarr.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_pre_ping: bool = Field(default=True, description="Ping connections before use")


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_json_format: bool = Field(default=False, description="Emit JSON logs")


class StorageSettings(BaseModel):
    """Filesystem locations."""

    data_dir: Path = Field(default=Path("./data"), description="Directory for runtime data")
    key_file_name: str = Field(
        default=".janitarr.key", description="Credential key file name inside data_dir"
    )

    @property
    def key_path(self) -> Path:
        """Full path of the credential encryption key file."""
        return self.data_dir / self.key_file_name


class AutomationSettings(BaseModel):
    """Engine tuning that is not editable at runtime."""

    start_scheduler: bool = Field(
        default=True, description="Start the scheduler during application startup"
    )
    retention_check_interval_seconds: int = Field(
        default=86400, ge=60, description="How often the log retention worker runs"
    )
    broadcast_queue_size: int = Field(
        default=256, ge=1, description="Per-observer buffered log messages"
    )


class ApiSettings(BaseModel):
    """HTTP server settings."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3434, ge=1, le=65535)


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="JANITARR_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "janitarr"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    automation: AutomationSettings = Field(default_factory=AutomationSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    def ensure_directories(self) -> None:
        """Create the data directory if it does not exist."""
        self.storage.data_dir.mkdir(parents=True, exist_ok=True)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for non-file databases."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


# Listen up, lru_cache makes this a process-wide cached instance. Tests that need different
# settings should construct Settings(...) directly and pass it in - never monkeypatch this.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
