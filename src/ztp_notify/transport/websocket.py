"""WebSocket transport for the notification channel.

Each ``open()`` spawns one background task that performs the handshake,
pumps inbound frames to the listener, and reports the final close. The
task is the only owner of the underlying websockets connection.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from .base import CloseCode, Transport, TransportHandle, TransportListener

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class WebSocketHandle(TransportHandle):
    """Handle for one WebSocket connection attempt."""

    task: asyncio.Task[None] | None = field(default=None, repr=False)
    connection: ClientConnection | None = field(default=None, repr=False)
    close_code: int = CloseCode.NORMAL
    close_reason: str = ""


class WebSocketTransport(Transport):
    """Client-side WebSocket transport built on the ``websockets`` library.

    Must be used from a running asyncio event loop.
    """

    def __init__(
        self,
        ping_interval: float | None = 30.0,
        ping_timeout: float | None = 10.0,
        open_timeout: float | None = 10.0,
        max_size: int | None = 2**20,
    ):
        self._connect_options: dict[str, Any] = {
            "ping_interval": ping_interval,
            "ping_timeout": ping_timeout,
            "open_timeout": open_timeout,
            "max_size": max_size,
        }
        self._handles: set[WebSocketHandle] = set()
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def active_handles(self) -> int:
        """Connections that have not reported their close yet."""
        return len(self._handles)

    def open(self, endpoint: str, listener: TransportListener) -> WebSocketHandle:
        """Start connecting to ``endpoint`` in a background task."""
        loop = asyncio.get_running_loop()
        handle = WebSocketHandle(endpoint=endpoint)
        handle.task = loop.create_task(self._run(handle, listener), name=f"ztp-notify-{handle.id}")
        self._handles.add(handle)
        handle.task.add_done_callback(lambda _: self._handles.discard(handle))
        logger.debug(f"Opening WebSocket {handle.id} to {endpoint}")
        return handle

    def close(
        self,
        handle: TransportHandle,
        code: int = CloseCode.NORMAL,
        reason: str = "Client closing",
    ) -> None:
        """Request a graceful close; the listener sees a clean close."""
        if not isinstance(handle, WebSocketHandle):
            raise TypeError(f"Not a WebSocket handle: {handle!r}")
        if handle.closed or handle.close_requested:
            return

        handle.close_requested = True
        handle.close_code = int(code)
        handle.close_reason = reason

        if handle.connection is None:
            # Still handshaking - abandon the attempt
            if handle.task is not None:
                handle.task.cancel()
            return

        task = asyncio.get_running_loop().create_task(handle.connection.close(int(code), reason))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def aclose(self) -> None:
        """Close every open connection and wait for the tasks to finish."""
        handles = list(self._handles)
        for handle in handles:
            self.close(handle)

        tasks = [h.task for h in handles if h.task is not None]
        tasks.extend(self._background)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, handle: WebSocketHandle, listener: TransportListener) -> None:
        """Connect, pump messages, then report how the connection ended."""
        connection: ClientConnection | None = None
        failed = False

        try:
            async with connect(handle.endpoint, **self._connect_options) as connection:
                handle.connection = connection

                if handle.close_requested:
                    await connection.close(handle.close_code, handle.close_reason)
                    return

                listener.on_open(handle)
                async for data in connection:
                    listener.on_message(handle, data)

        except asyncio.CancelledError:
            if not handle.close_requested:
                raise
        except ConnectionClosed:
            pass  # close code inspected below
        except Exception as e:
            failed = True
            if connection is None:
                logger.info(f"WebSocket connect to {handle.endpoint} failed: {e}")
            else:
                logger.warning(f"WebSocket {handle.id} error: {e}")
        finally:
            self._finish(handle, listener, connection, failed)

    def _finish(
        self,
        handle: WebSocketHandle,
        listener: TransportListener,
        connection: ClientConnection | None,
        failed: bool,
    ) -> None:
        if handle.closed:
            return
        handle.closed = True
        handle.connection = None

        if handle.close_requested:
            was_clean, code = True, handle.close_code
        elif not failed and connection is not None and connection.close_code is not None:
            code = int(connection.close_code)
            was_clean = code == CloseCode.NORMAL
        else:
            was_clean, code = False, int(CloseCode.ABNORMAL)

        logger.debug(f"WebSocket {handle.id} closed (clean={was_clean}, code={code})")
        try:
            listener.on_close(handle, was_clean, code)
        except Exception:
            logger.exception(f"Error in close listener for WebSocket {handle.id}")
