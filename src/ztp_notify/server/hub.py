"""Notification hub - broadcasts events to every connected WebSocket client.

Each client gets a bounded send queue drained by its own writer task.
A client that cannot keep up (queue full) is dropped rather than allowed
to stall the broadcast for everyone else.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from ..events import (
    ConfigPulledPayload,
    DeviceDiscoveredPayload,
    EventKind,
    NotificationEvent,
)
from ..transport.base import CloseCode

logger = logging.getLogger(__name__)

SEND_QUEUE_SIZE = 256


class HubClient:
    """One connected WebSocket subscriber."""

    def __init__(self, websocket: WebSocket, queue_size: int = SEND_QUEUE_SIZE):
        self.id = f"client_{uuid.uuid4().hex[:12]}"
        self.websocket = websocket
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self.dropped = False

    async def write_pump(self) -> None:
        """Send queued messages until the socket goes away."""
        try:
            while True:
                message = await self.queue.get()
                await self.websocket.send_text(message)
        except (WebSocketDisconnect, RuntimeError) as e:
            # RuntimeError: starlette refuses to send after close
            logger.debug(f"Writer for {self.id} stopped: {e}")

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except RuntimeError as e:
            logger.debug(f"Close for {self.id} skipped: {e}")


class NotificationHub:
    """Registry of connected clients with fan-out broadcast."""

    def __init__(self, queue_size: int = SEND_QUEUE_SIZE):
        self._clients: dict[str, HubClient] = {}
        self._queue_size = queue_size
        self._background: set[asyncio.Task[None]] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def register(self, websocket: WebSocket) -> HubClient:
        client = HubClient(websocket, self._queue_size)
        self._clients[client.id] = client
        logger.info(f"WebSocket client connected. Total clients: {self.client_count}")
        return client

    def unregister(self, client: HubClient) -> None:
        if self._clients.pop(client.id, None) is not None:
            logger.info(f"WebSocket client disconnected. Total clients: {self.client_count}")

    def broadcast(self, event: NotificationEvent) -> int:
        """Queue an event for every client.

        Returns:
            Number of clients the event was queued for
        """
        if not self._clients:
            return 0

        message = event.to_json()
        delivered = 0
        for client in list(self._clients.values()):
            try:
                client.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Send queue full for {client.id}, dropping client")
                self._drop(client)

        logger.info(f"Broadcasting event {event.type} to {delivered} clients")
        return delivered

    def broadcast_device_discovered(
        self,
        mac: str,
        ip: str,
        hostname: str | None = None,
        vendor: str | None = None,
    ) -> int:
        """Announce a device seen via a new DHCP lease."""
        payload = DeviceDiscoveredPayload(mac=mac, ip=ip, hostname=hostname, vendor=vendor)
        return self.broadcast(NotificationEvent.create(EventKind.DEVICE_DISCOVERED, payload))

    def broadcast_config_pulled(
        self,
        mac: str,
        ip: str,
        filename: str,
        protocol: str,
        hostname: str | None = None,
    ) -> int:
        """Announce a config fetch over TFTP or HTTP."""
        payload = ConfigPulledPayload(
            mac=mac, ip=ip, hostname=hostname, filename=filename, protocol=protocol
        )
        return self.broadcast(NotificationEvent.create(EventKind.CONFIG_PULLED, payload))

    def _drop(self, client: HubClient) -> None:
        client.dropped = True
        self.unregister(client)
        task = asyncio.get_running_loop().create_task(
            client.close(CloseCode.GOING_AWAY, "Client too slow")
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
