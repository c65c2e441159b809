"""FastAPI application factory and uvicorn entry point."""

import uvicorn
from fastapi import FastAPI

from janitarr import __version__
from janitarr.api.exception_handlers import register_exception_handlers
from janitarr.api.routers import api_router, health, metrics
from janitarr.config import Settings, get_settings
from janitarr.infrastructure.clients import ManagerClientRegistry
from janitarr.infrastructure.lifecycle import lifespan


# Hey future me, the Radarr/Sonarr HTTP clients are NOT part of this package - deployment
# code registers a factory per server type on a ManagerClientRegistry and passes it in
# here. Tests pass a registry full of fakes. Without a registry every server just reports
# a detection error each cycle (and startup logs a warning), the rest of the app works.
def create_app(
    settings: Settings | None = None,
    client_registry: ManagerClientRegistry | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Process settings (defaults to environment-based settings)
        client_registry: Manager client factories per server type

    Returns:
        Configured application; services start in the lifespan handler
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="Janitarr",
        version=__version__,
        description="Automated missing/cutoff search scheduling for Radarr and Sonarr",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.client_registry = client_registry or ManagerClientRegistry()

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
