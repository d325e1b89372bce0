"""Transport abstraction for the notification channel.

A transport opens one duplex connection per ``open()`` call and reports
everything that happens to it through a listener:

    on_open(handle)                     connection established
    on_message(handle, data)            one inbound frame (str or bytes)
    on_close(handle, was_clean, code)   connection gone (or never opened)

Opening is non-blocking. Connection failures are never raised from
``open()``; they arrive later as ``on_close(handle, False, 1006)``.
Listener callbacks never fire synchronously from inside ``open()`` or
``close()``, so the caller can store the returned handle first.

There is no retry logic at this level - see ReconnectionController.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol, runtime_checkable


class CloseCode(IntEnum):
    """WebSocket close codes the client cares about (RFC 6455)."""

    NORMAL = 1000  # Client- or server-initiated orderly shutdown
    GOING_AWAY = 1001  # Server restarting, browser navigating away
    ABNORMAL = 1006  # No close frame: refused, dropped, timed out


@dataclass(eq=False)
class TransportHandle:
    """One connection attempt.

    Identity matters: a listener compares handles with ``is`` to ignore
    callbacks from connections it has already let go of.
    """

    endpoint: str
    id: str = field(default_factory=lambda: f"conn_{uuid.uuid4().hex[:12]}")
    close_requested: bool = False
    closed: bool = False


@runtime_checkable
class TransportListener(Protocol):
    """Receiver of transport notifications (the reconnection controller)."""

    def on_open(self, handle: TransportHandle) -> None: ...

    def on_message(self, handle: TransportHandle, data: str | bytes) -> None: ...

    def on_close(self, handle: TransportHandle, was_clean: bool, code: int) -> None: ...


class Transport(ABC):
    """Swappable boundary between the controller and the network."""

    @abstractmethod
    def open(self, endpoint: str, listener: TransportListener) -> TransportHandle:
        """Start connecting to ``endpoint``.

        Returns immediately. The outcome is reported to ``listener``.
        """
        ...

    @abstractmethod
    def close(
        self,
        handle: TransportHandle,
        code: int = CloseCode.NORMAL,
        reason: str = "Client closing",
    ) -> None:
        """Request a graceful shutdown of ``handle``.

        A close requested here is reported to the listener as clean.
        Closing an already closed handle is a no-op.
        """
        ...

    async def aclose(self) -> None:
        """Release transport-wide resources (default: nothing to release)."""
        return None
