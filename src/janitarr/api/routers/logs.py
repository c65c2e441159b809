"""Activity log API Router.

Hey future me - this router exposes the activity log three ways:
1. GET/DELETE /api/logs - paged history from the database, newest first
2. GET /api/logs/export - every matching entry as a JSON or CSV download
3. WS /api/logs/ws - live push of new entries as they're appended

WebSocket protocol (JSON text frames):
- client -> server: {"type": "subscribe", "filters": {"types": [...], "servers": [...]}}
                    {"type": "unsubscribe"}  (back to receiving everything)
                    {"type": "ping"}
- server -> client: {"type": "connected", "message": "..."}  (once, on accept)
                    {"type": "log", "data": {...entry...}}
                    {"type": "pong"}

Each socket gets its own bounded queue in the BroadcastHub. A slow browser only loses
its OWN oldest messages, it can never stall the automation cycle that produces them.
"""

import asyncio
import csv
import io
import logging
from contextlib import suppress
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse, Response

from janitarr.api.dependencies import get_activity_log, get_ws_context
from janitarr.api.schemas import LogDeleteResponse, LogListResponse
from janitarr.application.services import (
    ActivityLogService,
    BroadcastHub,
    ObserverFilter,
    Subscription,
)
from janitarr.domain.entities import (
    LogEntry,
    LogEntryType,
    LogFilters,
    LogOperation,
    SearchCategory,
    utc_now,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logs", tags=["Logs"])

CSV_COLUMNS = [
    "id",
    "timestamp",
    "type",
    "server_name",
    "server_type",
    "category",
    "count",
    "operation",
    "is_manual",
    "message",
]


def log_filters(
    type: LogEntryType | None = Query(None, description="Entry type"),
    server: str | None = Query(None, description="Exact server name"),
    category: SearchCategory | None = Query(None, description="missing or cutoff"),
    operation: LogOperation | None = Query(None, description="Operation tag"),
    search: str | None = Query(None, description="Case-insensitive message search"),
    start_time: datetime | None = Query(None, description="Inclusive lower bound"),
    end_time: datetime | None = Query(None, description="Inclusive upper bound"),
) -> LogFilters:
    """Query-string filters shared by the list and export endpoints. All AND together."""
    return LogFilters(
        type=type,
        server_name=server,
        category=category,
        operation=operation,
        search=search,
        start_time=start_time,
        end_time=end_time,
    )


@router.get("", response_model=LogListResponse)
async def list_logs(
    filters: LogFilters = Depends(log_filters),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    activity_log: ActivityLogService = Depends(get_activity_log),
) -> LogListResponse:
    """Query the activity log. All filters AND together."""
    entries = await activity_log.query(filters, limit=limit, offset=offset)
    total = await activity_log.count(filters)
    return LogListResponse(
        items=[entry.to_dict() for entry in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.delete("", response_model=LogDeleteResponse)
async def clear_logs(
    activity_log: ActivityLogService = Depends(get_activity_log),
) -> LogDeleteResponse:
    """Delete every activity log entry."""
    deleted = await activity_log.clear()
    return LogDeleteResponse(deleted_count=deleted)


# Yo, export ignores limit/offset on purpose: it's the "give me everything that matches"
# download. Same filters as GET /api/logs. Unknown formats are rejected by the Literal
# type with a 422 before we touch the database.
@router.get("/export")
async def export_logs(
    format: Literal["json", "csv"] = Query("json", description="json or csv"),
    filters: LogFilters = Depends(log_filters),
    activity_log: ActivityLogService = Depends(get_activity_log),
) -> Response:
    """Download matching log entries, newest first."""
    entries = await activity_log.export(filters)
    filename = f"janitarr_logs_{utc_now().strftime('%Y%m%d_%H%M%S')}.{format}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    logger.info("Exporting %d activity log entries as %s", len(entries), format)

    if format == "csv":
        return Response(
            content=_entries_to_csv(entries), media_type="text/csv", headers=headers
        )
    return JSONResponse(
        content={
            "count": len(entries),
            "exported_at": utc_now().isoformat(),
            "entries": [entry.to_dict() for entry in entries],
        },
        headers=headers,
    )


def _entries_to_csv(entries: list[LogEntry]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for entry in entries:
        row = {key: "" if value is None else value for key, value in entry.to_dict().items()}
        writer.writerow(row)
    return output.getvalue()


# Listen up, the socket has exactly ONE writer: _forward_messages(). Pongs are pushed into
# the subscription queue instead of being sent from the receive loop, so two tasks never
# write to the socket at the same time. When the client goes away the receive loop ends
# with WebSocketDisconnect, the finally block cancels the writer and unsubscribes.
@router.websocket("/ws")
async def logs_websocket(websocket: WebSocket) -> None:
    """Live activity log stream."""
    context = get_ws_context(websocket)
    if context is None:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    await websocket.accept()
    hub = context.hub
    subscription = await hub.subscribe()
    await websocket.send_json(
        {"type": "connected", "message": "WebSocket connection established"}
    )
    logger.debug("Log WebSocket connected (%d observers)", hub.observer_count)

    sender = asyncio.create_task(_forward_messages(websocket, subscription))
    try:
        await _receive_commands(websocket, hub, subscription)
    except WebSocketDisconnect:
        logger.debug("Log WebSocket disconnected")
    finally:
        sender.cancel()
        with suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await sender
        await hub.unsubscribe(subscription)


async def _forward_messages(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        message = await subscription.get()
        await websocket.send_json(message)


async def _receive_commands(
    websocket: WebSocket, hub: BroadcastHub, subscription: Subscription
) -> None:
    while True:
        try:
            message: Any = await websocket.receive_json()
        except ValueError:
            logger.warning("Ignoring malformed WebSocket message")
            continue

        if not isinstance(message, dict):
            logger.warning("Ignoring non-object WebSocket message: %r", message)
            continue

        kind = message.get("type")
        if kind == "subscribe":
            observer_filter = _parse_filters(message.get("filters"))
            if observer_filter is None:
                logger.warning("Ignoring subscribe with malformed filters: %r", message)
                continue
            await hub.set_filter(subscription, observer_filter)
        elif kind == "unsubscribe":
            await hub.set_filter(subscription, None)
        elif kind == "ping":
            subscription.offer({"type": "pong"})
        else:
            logger.warning("Unknown WebSocket message type: %r", kind)


def _string_list(value: Any) -> list[str] | None:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None
    return value


def _parse_filters(raw: Any) -> ObserverFilter | None:
    """Turn a subscribe payload into a filter, or None if its shape is wrong.

    "filters" must be an object whose "types" and "servers" are lists of strings. A bare
    string is rejected rather than walked character by character.
    """
    if raw is None:
        return ObserverFilter()
    if not isinstance(raw, dict):
        return None
    types = _string_list(raw.get("types"))
    servers = _string_list(raw.get("servers"))
    if types is None or servers is None:
        return None
    return ObserverFilter.from_lists(types, servers)
