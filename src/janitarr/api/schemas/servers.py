"""API schemas for server management."""

from pydantic import BaseModel, Field

from janitarr.domain.entities import ManagedServer


class ServerCreateRequest(BaseModel):
    """Request body for adding a server."""

    name: str = Field(..., min_length=1, description="Unique display name")
    type: str = Field(..., description="radarr or sonarr")
    url: str = Field(..., description="Base URL, e.g. http://radarr:7878")
    api_key: str = Field(..., min_length=1, description="Manager API key")
    enabled: bool = Field(default=True)


class ServerUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their value."""

    name: str | None = None
    url: str | None = None
    api_key: str | None = None
    enabled: bool | None = None


# Listen up, there is NO api_key field here on purpose. Build responses with
# from_entity() and the credential can't leak through the API.
class ServerResponse(BaseModel):
    """Server as returned by the API."""

    id: str
    name: str
    url: str
    type: str
    enabled: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, server: ManagedServer) -> "ServerResponse":
        return cls(**server.to_public_dict())


class ServerTestResponse(BaseModel):
    """Result of a connection test."""

    success: bool
    message: str
    version: str | None = None
    app_name: str | None = None
