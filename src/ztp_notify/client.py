"""Notification client - the application-facing API.

Composes the reconnection controller (connection lifecycle) with the
event dispatcher (subscriptions). Construct one per application session
and hand it to whatever needs notifications.

Usage:
    client = create_notification_client("http://ztp.local:8080/api")

    unsubscribe = client.on("device_discovered", lambda e: print(e.payload))
    client.on_any(log_event)
    client.on_give_up(show_offline_banner)

    client.connect()
    ...
    unsubscribe()
    client.disconnect()

Testing:
    transport = MockTransport()
    client = create_test_client(transport)
    client.connect()
    transport.simulate_open()
    transport.simulate_message('{"type": "device_online", "payload": {}}')
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .config import NotificationConfig, resolve_base_url
from .controller import ConnectionState, ReconnectionController, Scheduler
from .dispatcher import EventDispatcher, EventHandler, HandlerSet, Subscription
from .events import EventKind
from .transport.base import Transport
from .transport.mock import MockTransport
from .transport.websocket import WebSocketTransport

logger = logging.getLogger(__name__)

GiveUpHandler = Callable[[], object]
StateHandler = Callable[[ConnectionState, ConnectionState], object]


class NotificationClient:
    """Resilient publish/subscribe client for provisioning notifications.

    Args:
        config: Client configuration (base URL, backoff, keep-alive)
        transport: Transport to use; defaults to a WebSocketTransport
            built from ``config``
        base_url: Optional callable returning the current API base URL.
            Overrides ``config.base_url`` and is read on every attempt.
        scheduler: Timer source for retries (tests inject a fake one)
    """

    def __init__(
        self,
        config: NotificationConfig | None = None,
        transport: Transport | None = None,
        base_url: Callable[[], str] | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.config = config or NotificationConfig()
        self._transport = transport or WebSocketTransport(
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
            open_timeout=self.config.open_timeout,
        )
        self._dispatcher = EventDispatcher()
        self._give_up_handlers: HandlerSet[GiveUpHandler] = HandlerSet()
        self._state_handlers: HandlerSet[StateHandler] = HandlerSet()

        self._controller = ReconnectionController(
            transport=self._transport,
            base_url=base_url or self._current_base_url,
            on_message=self._dispatcher.dispatch,
            policy=self.config.backoff_policy(),
            scheduler=scheduler,
            on_give_up=self._notify_give_up,
            on_state_change=self._notify_state_change,
        )

    # -- Connection lifecycle --------------------------------------------------

    @property
    def is_connected(self) -> bool:
        """True while the notification channel is open."""
        return self._controller.is_connected

    @property
    def state(self) -> ConnectionState:
        return self._controller.state

    @property
    def controller(self) -> ReconnectionController:
        return self._controller

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def transport(self) -> Transport:
        return self._transport

    def connect(self) -> None:
        """Start (or resume) the notification channel. Idempotent."""
        self._controller.connect()

    def disconnect(self) -> None:
        """Stop the channel without reconnecting. Subscriptions are kept."""
        self._controller.disconnect()

    async def aclose(self) -> None:
        """Disconnect and wait for the transport to wind down."""
        self.disconnect()
        await self._transport.aclose()
        await self._dispatcher.drain()

    async def __aenter__(self) -> NotificationClient:
        self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # -- Subscriptions ---------------------------------------------------------

    def on(self, kind: EventKind | str, handler: EventHandler) -> Subscription:
        """Subscribe to one event kind. Returns the unsubscribe token."""
        return self._dispatcher.subscribe(kind, handler)

    def on_any(self, handler: EventHandler) -> Subscription:
        """Subscribe to every event. Returns the unsubscribe token."""
        return self._dispatcher.subscribe_all(handler)

    def on_give_up(self, handler: GiveUpHandler) -> Subscription:
        """Called when reconnect attempts are exhausted.

        The client stays CLOSED until connect() is called again.
        """
        return self._give_up_handlers.add(handler)

    def on_state_change(self, handler: StateHandler) -> Subscription:
        """Called with (old_state, new_state) on every transition."""
        return self._state_handlers.add(handler)

    # -- Internals -------------------------------------------------------------

    def _current_base_url(self) -> str:
        return resolve_base_url(self.config.base_url, self.config.origin)

    def _notify_give_up(self) -> None:
        for handler in self._give_up_handlers.snapshot():
            try:
                handler()
            except Exception:
                logger.exception("Error in give-up handler")

    def _notify_state_change(self, old: ConnectionState, new: ConnectionState) -> None:
        for handler in self._state_handlers.snapshot():
            try:
                handler(old, new)
            except Exception:
                logger.exception("Error in state change handler")


# Factory functions


def create_notification_client(
    base_url: str | None = None,
    config: NotificationConfig | None = None,
) -> NotificationClient:
    """Create a client backed by the WebSocket transport.

    Args:
        base_url: API base URL (overrides the config/environment value)
        config: Full configuration; read from the environment if None

    Returns:
        NotificationClient ready to connect()
    """
    config = config or NotificationConfig.from_env()
    if base_url is not None:
        config.base_url = base_url
    config.validate()
    return NotificationClient(config)


def create_test_client(
    transport: MockTransport | None = None,
    config: NotificationConfig | None = None,
    scheduler: Scheduler | None = None,
) -> NotificationClient:
    """Create a client over a MockTransport for testing."""
    return NotificationClient(
        config or NotificationConfig(),
        transport=transport or MockTransport(),
        scheduler=scheduler,
    )


async def wait_for_state(
    client: NotificationClient,
    *states: ConnectionState,
    timeout: float | None = None,
) -> ConnectionState:
    """Wait until the client reaches one of ``states``.

    Raises:
        TimeoutError: If the state is not reached within ``timeout``
    """
    if client.state in states:
        return client.state

    future: asyncio.Future[ConnectionState] = asyncio.get_running_loop().create_future()

    def on_change(old: ConnectionState, new: ConnectionState) -> None:
        if new in states and not future.done():
            future.set_result(new)

    subscription = client.on_state_change(on_change)
    try:
        return await asyncio.wait_for(future, timeout=timeout)
    finally:
        subscription.unsubscribe()
