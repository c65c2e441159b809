"""Management of Radarr/Sonarr server records."""

import logging
from dataclasses import replace
from urllib.parse import urlparse

from janitarr.domain.entities import ConnectionResult, ManagedServer, ServerCategory, utc_now
from janitarr.domain.exceptions import (
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    ExternalServiceError,
    ValidationException,
)
from janitarr.domain.ports import ICredentialCipher, IServerStore
from janitarr.infrastructure.clients import ManagerClientRegistry

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """Validate a server base URL and strip trailing slashes.

    Raises:
        ValidationException: If the URL is not an absolute http(s) URL
    """
    candidate = url.strip()
    if candidate and "://" not in candidate:
        candidate = f"http://{candidate}"
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationException(f"Invalid server URL: {url!r}")
    return candidate.rstrip("/")


class ServerService:
    """Add, update, remove and test managed servers."""

    def __init__(
        self,
        server_store: IServerStore,
        client_registry: ManagerClientRegistry,
        cipher: ICredentialCipher,
    ) -> None:
        self._store = server_store
        self._client_registry = client_registry
        self._cipher = cipher

    # Hey future me, we test the connection BEFORE saving. A server that can't be reached
    # with the given key would only produce detection errors every cycle, so we reject it
    # up front with an ExternalServiceError carrying the manager's reason.
    async def add_server(
        self,
        name: str,
        url: str,
        api_key: str,
        server_type: str | ServerCategory,
        enabled: bool = True,
    ) -> ManagedServer:
        """Validate, connection-test and store a new server.

        Raises:
            ValidationException: Empty name/key or bad URL
            ConfigurationError: Unknown server type
            DuplicateEntityException: Name already taken
            ExternalServiceError: Connection test failed
        """
        name = name.strip()
        if not name:
            raise ValidationException("Server name must not be empty")
        if not api_key.strip():
            raise ValidationException("API key must not be empty")
        category = (
            server_type
            if isinstance(server_type, ServerCategory)
            else ServerCategory.parse(server_type)
        )
        base_url = normalize_url(url)

        if await self._store.get_server_by_name(name) is not None:
            raise DuplicateEntityException("Server", name)

        connection = await self._check_connection(category, base_url, api_key.strip())
        if not connection.success:
            raise ExternalServiceError(
                category.value, f"Connection test failed: {connection.error}"
            )

        server = ManagedServer(
            name=name,
            url=base_url,
            api_key_envelope=self._cipher.encrypt(api_key.strip()),
            category=category,
            enabled=enabled,
        )
        await self._store.add_server(server)
        logger.info("Added %s server '%s' (%s)", category.value, name, base_url)
        return server

    async def update_server(
        self,
        server_id: str,
        name: str | None = None,
        url: str | None = None,
        api_key: str | None = None,
        enabled: bool | None = None,
    ) -> ManagedServer:
        """Apply partial updates; URL/key changes are connection-tested first."""
        # Work on a copy so a rejected update never leaks into a store that hands out
        # its own objects.
        server = replace(await self._require(server_id))

        if name is not None:
            new_name = name.strip()
            if not new_name:
                raise ValidationException("Server name must not be empty")
            if new_name != server.name:
                existing = await self._store.get_server_by_name(new_name)
                if existing is not None and existing.id != server.id:
                    raise DuplicateEntityException("Server", new_name)
                server.name = new_name

        credentials_changed = False
        if url is not None:
            server.url = normalize_url(url)
            credentials_changed = True
        plaintext_key: str | None = None
        if api_key is not None:
            if not api_key.strip():
                raise ValidationException("API key must not be empty")
            plaintext_key = api_key.strip()
            credentials_changed = True

        if credentials_changed:
            key_for_test = plaintext_key or self._cipher.decrypt(server.api_key_envelope)
            connection = await self._check_connection(server.category, server.url, key_for_test)
            if not connection.success:
                raise ExternalServiceError(
                    server.category.value, f"Connection test failed: {connection.error}"
                )
            if plaintext_key is not None:
                server.api_key_envelope = self._cipher.encrypt(plaintext_key)

        if enabled is not None:
            server.enabled = enabled

        server.updated_at = utc_now()
        await self._store.update_server(server)
        logger.info("Updated server '%s'", server.name)
        return server

    async def remove_server(self, server_id: str) -> None:
        server = await self._require(server_id)
        await self._store.remove_server(server.id)
        logger.info("Removed server '%s'", server.name)

    async def list_servers(self) -> list[ManagedServer]:
        return await self._store.list_servers()

    async def get_server(self, id_or_name: str) -> ManagedServer | None:
        """Resolve a server by id first, then by name."""
        server = await self._store.get_server(id_or_name)
        if server is None:
            server = await self._store.get_server_by_name(id_or_name)
        return server

    async def test_connection(self, id_or_name: str) -> ConnectionResult:
        """Test a stored server's connection. Failures come back in the result."""
        server = await self.get_server(id_or_name)
        if server is None:
            raise EntityNotFoundException("Server", id_or_name)
        try:
            api_key = self._cipher.decrypt(server.api_key_envelope)
        except DomainException as e:
            return ConnectionResult(success=False, error=e.message)
        return await self._check_connection(server.category, server.url, api_key)

    async def _check_connection(
        self, category: ServerCategory, url: str, api_key: str
    ) -> ConnectionResult:
        try:
            client = self._client_registry.create(category, url, api_key)
            return await client.test_connection()
        except DomainException as e:
            return ConnectionResult(success=False, error=e.message)

    async def _require(self, server_id: str) -> ManagedServer:
        server = await self.get_server(server_id)
        if server is None:
            raise EntityNotFoundException("Server", server_id)
        return server
