"""HTTP and WebSocket API.

- routers/: endpoints (automation, config, servers, logs, stats, health)
- schemas/: Pydantic request/response models
- dependencies.py: dependency injection from the AppContext
- exception_handlers.py: domain exception -> HTTP status mapping
"""

from janitarr.api.routers import api_router

__all__ = ["api_router"]
