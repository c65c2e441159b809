"""
Registry mapping each server category to its manager client factory.

Hey future me - this is the ONE place that decides which client talks to a server. Callers
never branch on "radarr"/"sonarr" strings; they hand a ServerCategory to create() and get an
IManagerClient back. The wire protocol clients are supplied by deployment code:

    registry = ManagerClientRegistry()
    registry.register(ServerCategory.MOVIE_MANAGER, RadarrClient)
    registry.register(ServerCategory.EPISODE_MANAGER, SonarrClient)
    registry.validate()  # raises if a category has no factory

    client = registry.create(ServerCategory.MOVIE_MANAGER, url, api_key)
"""

from janitarr.domain.entities import ServerCategory
from janitarr.domain.exceptions import ConfigurationError
from janitarr.domain.ports import IManagerClient, ManagerClientFactory


class ManagerClientRegistry:
    """Central registry of manager client factories, keyed by server category."""

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._factories: dict[ServerCategory, ManagerClientFactory] = {}

    def register(self, category: ServerCategory, factory: ManagerClientFactory) -> None:
        """Register (or replace) the client factory for a category.

        Args:
            category: Server category the factory builds clients for
            factory: Callable taking (base_url, api_key) and returning a client
        """
        self._factories[category] = factory

    def unregister(self, category: ServerCategory) -> None:
        self._factories.pop(category, None)

    def missing_categories(self) -> list[ServerCategory]:
        """Categories that have no registered factory."""
        return [category for category in ServerCategory if category not in self._factories]

    def validate(self) -> None:
        """Require a factory for every category.

        Raises:
            ConfigurationError: If any category is missing a factory
        """
        missing = self.missing_categories()
        if missing:
            raise ConfigurationError(
                "No manager client registered for: "
                + ", ".join(category.value for category in missing)
            )

    def create(self, category: ServerCategory, url: str, api_key: str) -> IManagerClient:
        """Build a client for one server.

        Raises:
            ConfigurationError: If no factory is registered for the category
        """
        factory = self._factories.get(category)
        if factory is None:
            raise ConfigurationError(f"No manager client registered for {category.value}")
        return factory(url, api_key)

    @property
    def available_categories(self) -> list[ServerCategory]:
        return list(self._factories)
