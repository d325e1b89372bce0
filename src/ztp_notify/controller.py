"""Reconnection controller - keeps the notification channel alive.

State machine layered on a Transport:

    IDLE/CLOSED --connect()----------> CONNECTING
    CONNECTING  --on_open------------> OPEN          (attempt count reset)
    CONNECTING  --on_close(unclean)--> CONNECTING    (retry scheduled)
    OPEN        --on_close(unclean)--> CONNECTING    (retry scheduled)
    OPEN/CONNECTING --disconnect()---> IDLE          (no retry, ever)
    any         --on_close(clean)----> CLOSED        (server said goodbye)
    CONNECTING  --retries exhausted--> CLOSED        (give-up signal fired)

All callbacks (transport and timer) run on one asyncio loop, so the state
needs no locking. Public methods return immediately; their effects show
up through later callbacks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from .backoff import BackoffPolicy
from .config import websocket_url
from .transport.base import CloseCode, Transport, TransportHandle

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection state machine."""

    IDLE = "idle"  # Never connected, or disconnected on purpose
    CONNECTING = "connecting"  # Handshaking, or waiting for a retry timer
    OPEN = "open"
    CLOSED = "closed"  # Closed by the server, or gave up retrying


class TimerHandle(Protocol):
    """Cancellable scheduled callback (asyncio.TimerHandle fits)."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Source of delayed callbacks (an asyncio event loop fits)."""

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle: ...


class _RunningLoopScheduler:
    """Schedules on whichever asyncio loop is running at call time."""

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class ReconnectionController:
    """Owns the current transport handle and decides when to reconnect.

    Args:
        transport: Transport used for every connection attempt
        base_url: API base URL, or a callable returning it. Read on every
            attempt so the application can repoint the client at any time.
        on_message: Called with each raw inbound message
        policy: Backoff policy (defaults to 1s doubling, 30s cap, 10 tries)
        scheduler: Timer source; defaults to the running asyncio loop
        on_give_up: Called once when the retry budget is exhausted
        on_state_change: Called with (old, new) on every state transition
    """

    def __init__(
        self,
        transport: Transport,
        base_url: str | Callable[[], str],
        on_message: Callable[[str | bytes], object],
        policy: BackoffPolicy | None = None,
        scheduler: Scheduler | None = None,
        on_give_up: Callable[[], object] | None = None,
        on_state_change: Callable[[ConnectionState, ConnectionState], object] | None = None,
    ):
        self._transport = transport
        self._base_url = base_url
        self._on_message = on_message
        self.policy = policy or BackoffPolicy()
        self._scheduler: Scheduler = scheduler or _RunningLoopScheduler()
        self._on_give_up = on_give_up
        self._on_state_change = on_state_change

        self._state = ConnectionState.IDLE
        self._handle: TransportHandle | None = None
        self._timer: TimerHandle | None = None
        self._should_reconnect = False
        self._attempts = 0

    # -- Queries ---------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """True only while the channel is open."""
        return self._state == ConnectionState.OPEN

    @property
    def attempt_count(self) -> int:
        """Retries scheduled since the last successful open."""
        return self._attempts

    @property
    def should_reconnect(self) -> bool:
        return self._should_reconnect

    @property
    def retry_pending(self) -> bool:
        return self._timer is not None

    @property
    def handle(self) -> TransportHandle | None:
        """The transport handle currently owned, if any."""
        return self._handle

    # -- Commands --------------------------------------------------------------

    def connect(self) -> None:
        """Arm auto-reconnect and start connecting.

        No-op while CONNECTING or OPEN. From IDLE or CLOSED the retry
        budget starts over.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return

        self._should_reconnect = True
        self._attempts = 0
        self._open_transport()

    def disconnect(self) -> None:
        """Disarm auto-reconnect and close the channel."""
        self._should_reconnect = False
        self._cancel_timer()

        handle, self._handle = self._handle, None
        if handle is not None:
            self._transport.close(handle, CloseCode.NORMAL, "Client closing")

        if self._state != ConnectionState.IDLE:
            logger.info("Notification channel disconnected")
        self._set_state(ConnectionState.IDLE)

    # -- Transport listener ----------------------------------------------------

    def on_open(self, handle: TransportHandle) -> None:
        if handle is not self._handle:
            return
        self._attempts = 0
        self._set_state(ConnectionState.OPEN)
        logger.info(f"Notification channel connected: {handle.endpoint}")

    def on_message(self, handle: TransportHandle, data: str | bytes) -> None:
        if handle is not self._handle:
            return
        self._on_message(data)

    def on_close(self, handle: TransportHandle, was_clean: bool, code: int) -> None:
        if handle is not self._handle:
            return  # Released by disconnect() or superseded
        self._handle = None

        if was_clean or not self._should_reconnect:
            logger.info(f"Notification channel closed (code={code})")
            self._should_reconnect = False
            self._set_state(ConnectionState.CLOSED)
            return

        if self._state == ConnectionState.OPEN:
            logger.warning(f"Notification channel lost (code={code})")
        self._schedule_reconnect()

    # -- Internals -------------------------------------------------------------

    def _open_transport(self) -> None:
        self._set_state(ConnectionState.CONNECTING)

        try:
            endpoint = websocket_url(self._resolve_base_url())
            self._handle = self._transport.open(endpoint, self)
        except Exception as e:
            # Counts as a failed attempt so connect() never raises
            logger.error(f"Cannot open notification channel: {e}")
            self._handle = None
            self._schedule_reconnect()

    def _resolve_base_url(self) -> str:
        if callable(self._base_url):
            return self._base_url()
        return self._base_url

    def _schedule_reconnect(self) -> None:
        if not self._should_reconnect:
            return

        if self.policy.exhausted(self._attempts):
            self._give_up()
            return

        self._cancel_timer()
        delay = self.policy.delay(self._attempts)
        self._attempts += 1
        self._set_state(ConnectionState.CONNECTING)

        logger.info(f"Reconnecting in {delay:g}s (attempt {self._attempts})")
        self._timer = self._scheduler.call_later(delay, self._on_retry_timer)

    def _on_retry_timer(self) -> None:
        self._timer = None
        if not self._should_reconnect or self._handle is not None:
            return
        self._open_transport()

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _give_up(self) -> None:
        self._should_reconnect = False
        self._cancel_timer()
        logger.error(f"Notification channel gave up after {self._attempts} reconnect attempts")
        self._set_state(ConnectionState.CLOSED)

        if self._on_give_up is not None:
            try:
                self._on_give_up()
            except Exception:
                logger.exception("Error in give-up callback")

    def _set_state(self, new: ConnectionState) -> None:
        old, self._state = self._state, new
        if old == new or self._on_state_change is None:
            return
        try:
            self._on_state_change(old, new)
        except Exception:
            logger.exception("Error in state change callback")
