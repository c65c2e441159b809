"""Tests for ServerService."""

import pytest
from support.fakes import (
    FakeClientRegistry,
    FakeManagerClient,
    InMemoryServerStore,
    make_cipher,
    make_server,
)

from janitarr.application.services.server_service import ServerService, normalize_url
from janitarr.domain.entities import ConnectionResult, ServerCategory
from janitarr.domain.exceptions import (
    ConfigurationError,
    DuplicateEntityException,
    EntityNotFoundException,
    ExternalServiceError,
    ValidationException,
)
from janitarr.infrastructure.security import CredentialCipher

RADARR_URL = "http://radarr:7878"


@pytest.fixture
def cipher() -> CredentialCipher:
    return make_cipher()


@pytest.fixture
def store() -> InMemoryServerStore:
    return InMemoryServerStore()


@pytest.fixture
def registry() -> FakeClientRegistry:
    return FakeClientRegistry({RADARR_URL: FakeManagerClient()})


@pytest.fixture
def service(
    store: InMemoryServerStore, registry: FakeClientRegistry, cipher: CredentialCipher
) -> ServerService:
    return ServerService(store, registry, cipher)


class TestNormalizeUrl:
    """Test base URL validation."""

    def test_strips_trailing_slash_and_adds_scheme(self) -> None:
        """Bare hosts get http:// and trailing slashes go away."""
        assert normalize_url("radarr:7878/") == "http://radarr:7878"
        assert normalize_url("https://sonarr.local/") == "https://sonarr.local"

    @pytest.mark.parametrize("url", ["", "ftp://radarr", "http://"])
    def test_rejects_invalid(self, url: str) -> None:
        """Empty, non-http and host-less URLs are rejected."""
        with pytest.raises(ValidationException):
            normalize_url(url)


class TestAddServer:
    """Test adding servers."""

    @pytest.mark.asyncio
    async def test_add_encrypts_key(
        self, service: ServerService, store: InMemoryServerStore, cipher: CredentialCipher
    ) -> None:
        """The stored envelope decrypts back to the key; plaintext is never stored."""
        server = await service.add_server("Movies", RADARR_URL + "/", " abc123 ", "radarr")

        stored = store.servers[server.id]
        assert stored.url == RADARR_URL
        assert stored.category is ServerCategory.MOVIE_MANAGER
        assert "abc123" not in stored.api_key_envelope
        assert cipher.decrypt(stored.api_key_envelope) == "abc123"

    @pytest.mark.asyncio
    async def test_add_disabled(self, service: ServerService) -> None:
        """Servers can be added in a disabled state."""
        server = await service.add_server("Movies", RADARR_URL, "k", "radarr", enabled=False)
        assert server.enabled is False

    @pytest.mark.asyncio
    async def test_connection_failure_rejects_server(
        self, service: ServerService, store: InMemoryServerStore
    ) -> None:
        """Unreachable servers are not saved."""
        with pytest.raises(ExternalServiceError, match="Connection test failed"):
            await service.add_server("Movies", "http://nowhere:7878", "k", "radarr")

        assert store.servers == {}

    @pytest.mark.asyncio
    async def test_validation_errors(self, service: ServerService) -> None:
        """Empty names/keys and unknown types are rejected."""
        with pytest.raises(ValidationException):
            await service.add_server("  ", RADARR_URL, "k", "radarr")
        with pytest.raises(ValidationException):
            await service.add_server("Movies", RADARR_URL, "  ", "radarr")
        with pytest.raises(ConfigurationError):
            await service.add_server("Movies", RADARR_URL, "k", "lidarr")

    @pytest.mark.asyncio
    async def test_duplicate_name(self, service: ServerService) -> None:
        """Names are unique."""
        await service.add_server("Movies", RADARR_URL, "k", "radarr")
        with pytest.raises(DuplicateEntityException):
            await service.add_server("Movies", RADARR_URL, "k", "radarr")


class TestUpdateAndRemove:
    """Test editing and removing servers."""

    @pytest.mark.asyncio
    async def test_partial_update(self, service: ServerService) -> None:
        """Only the given fields change."""
        server = await service.add_server("Movies", RADARR_URL, "k", "radarr")

        updated = await service.update_server(server.id, name="Films", enabled=False)

        assert updated.name == "Films"
        assert updated.enabled is False
        assert updated.url == RADARR_URL

    @pytest.mark.asyncio
    async def test_rename_to_existing_name(
        self, service: ServerService, registry: FakeClientRegistry
    ) -> None:
        """Renaming onto another server's name is a duplicate."""
        registry.clients["http://other:7878"] = FakeManagerClient()
        await service.add_server("Movies", RADARR_URL, "k", "radarr")
        other = await service.add_server("Other", "http://other:7878", "k", "radarr")

        with pytest.raises(DuplicateEntityException):
            await service.update_server(other.id, name="Movies")

    @pytest.mark.asyncio
    async def test_rejected_url_change_leaves_server_untouched(
        self, service: ServerService, store: InMemoryServerStore
    ) -> None:
        """A URL that fails the connection test changes nothing."""
        server = await service.add_server("Movies", RADARR_URL, "k", "radarr")

        with pytest.raises(ExternalServiceError):
            await service.update_server(server.id, url="http://nowhere:7878", enabled=False)

        stored = store.servers[server.id]
        assert stored.url == RADARR_URL
        assert stored.enabled is True

    @pytest.mark.asyncio
    async def test_key_change_is_reencrypted(
        self, service: ServerService, cipher: CredentialCipher
    ) -> None:
        """A new key replaces the envelope."""
        server = await service.add_server("Movies", RADARR_URL, "old", "radarr")

        updated = await service.update_server(server.id, api_key="new")

        assert cipher.decrypt(updated.api_key_envelope) == "new"

    @pytest.mark.asyncio
    async def test_remove_by_name_and_unknown(
        self, service: ServerService, store: InMemoryServerStore
    ) -> None:
        """Servers can be removed by name; unknown ones raise not-found."""
        await service.add_server("Movies", RADARR_URL, "k", "radarr")

        await service.remove_server("Movies")

        assert store.servers == {}
        with pytest.raises(EntityNotFoundException):
            await service.remove_server("Movies")


class TestConnectionTest:
    """Test connection checks on stored servers."""

    @pytest.mark.asyncio
    async def test_reports_version(self, service: ServerService) -> None:
        """A reachable server reports its version."""
        server = await service.add_server("Movies", RADARR_URL, "k", "radarr")

        result = await service.test_connection(server.id)

        assert result.success is True
        assert result.version == "5.0.0"

    @pytest.mark.asyncio
    async def test_failure_comes_back_in_result(
        self,
        service: ServerService,
        registry: FakeClientRegistry,
    ) -> None:
        """Connection problems are returned, not raised."""
        server = await service.add_server("Movies", RADARR_URL, "k", "radarr")
        registry.clients[RADARR_URL] = FakeManagerClient(
            connection=ConnectionResult(success=False, error="Unauthorized")
        )

        result = await service.test_connection("Movies")

        assert result.success is False
        assert result.error == "Unauthorized"

    @pytest.mark.asyncio
    async def test_undecryptable_key(
        self, store: InMemoryServerStore, registry: FakeClientRegistry, cipher: CredentialCipher
    ) -> None:
        """A key encrypted under another key reports failure instead of raising."""
        foreign = make_server("Foreign", cipher=make_cipher(), url=RADARR_URL)
        store.servers[foreign.id] = foreign
        service = ServerService(store, registry, cipher)

        result = await service.test_connection(foreign.id)

        assert result.success is False
        assert result.error is not None

    @pytest.mark.asyncio
    async def test_unknown_server(self, service: ServerService) -> None:
        """Testing a server that doesn't exist is a not-found error."""
        with pytest.raises(EntityNotFoundException):
            await service.test_connection("missing")
