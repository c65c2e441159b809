"""Application lifecycle management for startup and shutdown tasks.

This module owns the FastAPI lifespan context manager and the AppContext that wires every
service together. Everything the API needs at request time hangs off `app.state.context`.

Startup order:
1. Logging, directories, SQLite path validation
2. Database engine + tables
3. Credential cipher (key file is created on first start)
4. Stores, broadcast hub, services
5. Scheduler (if enabled in config and in settings) and the log retention worker

Shutdown runs in reverse: workers stop first, an in-flight cycle gets a grace period, then
the database is closed.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime

from fastapi import FastAPI

from janitarr import __version__
from janitarr.application.services import (
    ActivityLogService,
    AutomationService,
    BroadcastHub,
    ConfigService,
    Detector,
    SearchTrigger,
    ServerService,
    StatsService,
)
from janitarr.application.workers import AutomationScheduler, LogRetentionWorker
from janitarr.config import Settings, get_settings
from janitarr.domain.entities import utc_now
from janitarr.domain.exceptions import ConfigurationError
from janitarr.domain.ports import ICredentialCipher
from janitarr.infrastructure.clients import ManagerClientRegistry
from janitarr.infrastructure.observability import AutomationMetrics, configure_logging
from janitarr.infrastructure.persistence import (
    Database,
    SqlActivityLogStore,
    SqlConfigStore,
    SqlServerStore,
)
from janitarr.infrastructure.security import CredentialCipher

logger = logging.getLogger(__name__)

SHUTDOWN_CYCLE_TIMEOUT_SECONDS = 30.0


@dataclass
class AppContext:
    """Every long-lived object of a running application."""

    settings: Settings
    db: Database
    cipher: ICredentialCipher
    client_registry: ManagerClientRegistry
    server_store: SqlServerStore
    config_store: SqlConfigStore
    log_store: SqlActivityLogStore
    hub: BroadcastHub
    activity_log: ActivityLogService
    detector: Detector
    search_trigger: SearchTrigger
    automation: AutomationService
    scheduler: AutomationScheduler
    retention_worker: LogRetentionWorker
    server_service: ServerService
    config_service: ConfigService
    stats_service: StatsService
    metrics: AutomationMetrics
    started_at: datetime = field(default_factory=utc_now)


# Hey future me, this is the ONE place the object graph gets built. Tests build the same
# graph around a temp SQLite file by calling this directly, so keep it free of side
# effects (no table creation, no worker start) - lifespan() does those.
def build_context(
    settings: Settings,
    db: Database,
    cipher: ICredentialCipher,
    client_registry: ManagerClientRegistry,
) -> AppContext:
    """Wire stores, services and workers together.

    Args:
        settings: Process settings
        db: Database (tables must exist before first use)
        cipher: Credential cipher for server API keys
        client_registry: Manager client factories per server category

    Returns:
        Fully wired, not yet started, AppContext
    """
    server_store = SqlServerStore(db)
    config_store = SqlConfigStore(db)
    log_store = SqlActivityLogStore(db)
    hub = BroadcastHub(queue_size=settings.automation.broadcast_queue_size)
    activity_log = ActivityLogService(log_store, hub)
    metrics = AutomationMetrics(version=__version__)

    detector = Detector(server_store, client_registry, cipher)
    search_trigger = SearchTrigger(server_store, client_registry, cipher)
    automation = AutomationService(
        server_store=server_store,
        config_store=config_store,
        detector=detector,
        search_trigger=search_trigger,
        activity_log=activity_log,
        metrics=metrics,
    )
    scheduler = AutomationScheduler(automation, config_store)
    retention_worker = LogRetentionWorker(
        activity_log,
        config_store,
        check_interval_seconds=settings.automation.retention_check_interval_seconds,
    )

    return AppContext(
        settings=settings,
        db=db,
        cipher=cipher,
        client_registry=client_registry,
        server_store=server_store,
        config_store=config_store,
        log_store=log_store,
        hub=hub,
        activity_log=activity_log,
        detector=detector,
        search_trigger=search_trigger,
        automation=automation,
        scheduler=scheduler,
        retention_worker=retention_worker,
        server_service=ServerService(server_store, client_registry, cipher),
        config_service=ConfigService(config_store, scheduler),
        stats_service=StatsService(server_store, log_store),
        metrics=metrics,
    )


# Hey future me, this validates SQLite paths BEFORE we try creating the DB engine! SQLite
# needs to create -journal/-wal/-shm files next to the .db file, so we check the directory
# is writable with a throwaway file. We DON'T pre-create the .db file - SQLite handles that.
# Non-file URLs (":memory:", other dialects) return early.
def _validate_sqlite_path(settings: Settings) -> None:
    """Validate SQLite database path accessibility before engine creation."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update JANITARR_DATABASE__URL or adjust directory permissions."
        ) from exc

    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "SQLite requires write permissions to create database and journal files."
        ) from exc


# Listen future me, everything before `yield` runs at STARTUP, everything after at
# SHUTDOWN. The try/finally makes sure workers are stopped and the DB is closed even when
# startup blows up halfway. The client registry comes from create_app() via app.state, so
# tests can hand in fake manager clients without touching this module.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    client_registry: ManagerClientRegistry = (
        getattr(app.state, "client_registry", None) or ManagerClientRegistry()
    )

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    context: AppContext | None = None
    db: Database | None = None
    try:
        settings.ensure_directories()
        _validate_sqlite_path(settings)

        db = Database(settings)
        await db.create_tables()
        logger.info("Database initialized: %s", settings.database.url)

        cipher = CredentialCipher.from_key_file(settings.storage.key_path)
        logger.info("Credential key loaded from %s", settings.storage.key_path)

        missing = client_registry.missing_categories()
        if missing:
            logger.warning(
                "No manager client registered for: %s. Servers of these types will "
                "report detection errors.",
                ", ".join(category.value for category in missing),
            )

        context = build_context(settings, db, cipher, client_registry)
        app.state.context = context

        schedule = await context.scheduler.load_config()
        if settings.automation.start_scheduler:
            await context.scheduler.start()
        else:
            logger.info("Scheduler autostart disabled by settings")
        if not schedule.enabled:
            logger.info("Automation schedule is disabled in config")

        await context.retention_worker.start()

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        if context is not None:
            try:
                await context.retention_worker.stop()
            except Exception as e:
                logger.exception("Error stopping log retention worker: %s", e)
            try:
                await context.scheduler.shutdown(timeout=SHUTDOWN_CYCLE_TIMEOUT_SECONDS)
            except Exception as e:
                logger.exception("Error stopping scheduler: %s", e)

        if db is not None:
            try:
                await db.close()
                logger.info("Database connection closed")
            except Exception as e:
                logger.exception("Error closing database: %s", e)
