"""Server management endpoints."""

from fastapi import APIRouter, Depends, Response, status

from janitarr.api.dependencies import get_server_service
from janitarr.api.schemas import (
    ServerCreateRequest,
    ServerResponse,
    ServerTestResponse,
    ServerUpdateRequest,
)
from janitarr.application.services import ServerService
from janitarr.domain.exceptions import EntityNotFoundException

router = APIRouter(prefix="/servers", tags=["Servers"])


@router.get("", response_model=list[ServerResponse])
async def list_servers(
    server_service: ServerService = Depends(get_server_service),
) -> list[ServerResponse]:
    servers = await server_service.list_servers()
    return [ServerResponse.from_entity(server) for server in servers]


@router.post("", response_model=ServerResponse, status_code=status.HTTP_201_CREATED)
async def add_server(
    body: ServerCreateRequest,
    server_service: ServerService = Depends(get_server_service),
) -> ServerResponse:
    """Add a server. The connection is tested before anything is saved (502 on failure)."""
    server = await server_service.add_server(
        name=body.name,
        url=body.url,
        api_key=body.api_key,
        server_type=body.type,
        enabled=body.enabled,
    )
    return ServerResponse.from_entity(server)


@router.get("/{server_id}", response_model=ServerResponse)
async def get_server(
    server_id: str,
    server_service: ServerService = Depends(get_server_service),
) -> ServerResponse:
    """Get a server by id or name."""
    server = await server_service.get_server(server_id)
    if server is None:
        raise EntityNotFoundException("Server", server_id)
    return ServerResponse.from_entity(server)


@router.patch("/{server_id}", response_model=ServerResponse)
async def update_server(
    server_id: str,
    body: ServerUpdateRequest,
    server_service: ServerService = Depends(get_server_service),
) -> ServerResponse:
    server = await server_service.update_server(
        server_id,
        name=body.name,
        url=body.url,
        api_key=body.api_key,
        enabled=body.enabled,
    )
    return ServerResponse.from_entity(server)


@router.delete("/{server_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_server(
    server_id: str,
    server_service: ServerService = Depends(get_server_service),
) -> Response:
    await server_service.remove_server(server_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Hey future me, a failed test is NOT an HTTP error here - the request itself worked, the
# server just didn't answer. We return 200 with success=false and the reason, so the UI
# can show it inline. Only an unknown server id is a 404.
@router.post("/{server_id}/test", response_model=ServerTestResponse)
async def test_server(
    server_id: str,
    server_service: ServerService = Depends(get_server_service),
) -> ServerTestResponse:
    """Test the connection of a stored server."""
    result = await server_service.test_connection(server_id)
    if result.success:
        message = f"Connected to {result.app_name or 'server'}"
        if result.version:
            message += f" v{result.version}"
    else:
        message = result.error or "Connection failed"
    return ServerTestResponse(
        success=result.success,
        message=message,
        version=result.version,
        app_name=result.app_name,
    )
