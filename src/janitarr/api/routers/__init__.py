"""API router initialization."""

# Hey future me, this is the MAIN API router aggregator! Each sub-router defines its own
# prefix ("/automation", "/servers", ...) and this one gets mounted at /api in main.py, so
# endpoints end up as /api/servers, /api/logs/ws etc. Health is NOT in here - it's mounted
# at /health (no /api prefix) so Docker healthchecks don't depend on the API layout. Same for
# /metrics, which is where Prometheus scrapes by default.

from fastapi import APIRouter

from janitarr.api.routers import automation, config, health, logs, metrics, servers, stats

api_router = APIRouter()

api_router.include_router(automation.router)
api_router.include_router(config.router)
api_router.include_router(servers.router)
api_router.include_router(logs.router)
api_router.include_router(stats.router)

__all__ = [
    "api_router",
    "automation",
    "config",
    "health",
    "logs",
    "metrics",
    "servers",
    "stats",
]
