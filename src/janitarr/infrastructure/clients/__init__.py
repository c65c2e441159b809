"""Library manager client wiring."""

from janitarr.infrastructure.clients.registry import ManagerClientRegistry

__all__ = ["ManagerClientRegistry"]
