"""HTTP and WebSocket routes for the notification hub.

- GET  /health  - liveness plus connected client count
- WS   /ws      - notification stream (server -> client only)
- POST /events  - publish an event to every connected client
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..events import EventKind, NotificationEvent
from .hub import NotificationHub

logger = logging.getLogger(__name__)


def _hub(scope_owner: Request | WebSocket) -> NotificationHub:
    return scope_owner.app.state.hub


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "ok", "clients": _hub(request).client_count})


async def websocket_endpoint(websocket: WebSocket) -> None:
    """Stream notifications to one client until it disconnects.

    Inbound frames are read and ignored; reading is how we notice the
    client going away.
    """
    hub = _hub(websocket)

    # Register before accepting so nothing broadcast after the handshake is missed
    client = hub.register(websocket)
    writer: asyncio.Task[None] | None = None
    try:
        await websocket.accept()
        writer = asyncio.create_task(client.write_pump())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception(f"WebSocket error for {client.id}: {e}")
    finally:
        hub.unregister(client)
        if writer is not None:
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer


async def publish_event(request: Request) -> JSONResponse:
    """Broadcast ``{"type": <kind>, "payload": {...}}`` to all clients."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Body must be JSON"}, status_code=400)

    if not isinstance(body, dict):
        return JSONResponse({"error": "Body must be a JSON object"}, status_code=400)

    kind = EventKind.parse(body.get("type", ""))
    if kind is None:
        return JSONResponse(
            {"error": f"Unknown event type: {body.get('type')!r}"},
            status_code=400,
        )

    payload = body.get("payload", {})
    if not isinstance(payload, dict):
        return JSONResponse({"error": "'payload' must be an object"}, status_code=400)

    delivered = _hub(request).broadcast(NotificationEvent.create(kind, payload))
    return JSONResponse({"delivered": delivered})


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]

event_routes = [
    Route("/events", publish_event, methods=["POST"]),
]

websocket_routes = [
    WebSocketRoute("/ws", websocket_endpoint),
]
