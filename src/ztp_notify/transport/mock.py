"""Mock transport for testing.

No network I/O - tests drive the connection lifecycle by hand:

    transport = MockTransport()
    client = NotificationClient(config, transport=transport)
    client.connect()

    transport.simulate_open()
    transport.simulate_message('{"type": "device_online", "payload": {}}')
    transport.simulate_close(was_clean=False)

    assert len(transport.opened) == 2  # reconnect scheduled and fired
"""

from __future__ import annotations

from dataclasses import dataclass

from .base import CloseCode, Transport, TransportHandle, TransportListener


@dataclass
class CloseRequest:
    """A close() call recorded by the mock."""

    handle: TransportHandle
    code: int
    reason: str


class MockTransport(Transport):
    """In-memory transport that records calls and simulates events."""

    def __init__(self) -> None:
        self._listeners: dict[str, TransportListener] = {}
        self.opened: list[TransportHandle] = []
        self.close_requests: list[CloseRequest] = []

    @property
    def endpoints(self) -> list[str]:
        """Endpoints passed to open(), in order."""
        return [h.endpoint for h in self.opened]

    @property
    def current(self) -> TransportHandle | None:
        """Most recently opened handle that has not closed yet."""
        for handle in reversed(self.opened):
            if not handle.closed:
                return handle
        return None

    def open(self, endpoint: str, listener: TransportListener) -> TransportHandle:
        handle = TransportHandle(endpoint=endpoint)
        self._listeners[handle.id] = listener
        self.opened.append(handle)
        return handle

    def close(
        self,
        handle: TransportHandle,
        code: int = CloseCode.NORMAL,
        reason: str = "Client closing",
    ) -> None:
        if handle.closed or handle.close_requested:
            return
        handle.close_requested = True
        self.close_requests.append(CloseRequest(handle=handle, code=int(code), reason=reason))

    # Simulation helpers - each targets the current handle unless given one

    def simulate_open(self, handle: TransportHandle | None = None) -> TransportHandle:
        handle = self._resolve(handle)
        self._listeners[handle.id].on_open(handle)
        return handle

    def simulate_message(
        self, data: str | bytes, handle: TransportHandle | None = None
    ) -> TransportHandle:
        handle = self._resolve(handle)
        self._listeners[handle.id].on_message(handle, data)
        return handle

    def simulate_close(
        self,
        was_clean: bool = False,
        code: int | None = None,
        handle: TransportHandle | None = None,
    ) -> TransportHandle:
        """Report a close. Defaults to an abnormal drop (1006)."""
        handle = self._resolve(handle)
        if code is None:
            code = CloseCode.NORMAL if was_clean else CloseCode.ABNORMAL
        handle.closed = True
        self._listeners[handle.id].on_close(handle, was_clean, int(code))
        return handle

    def simulate_failure(self, handle: TransportHandle | None = None) -> TransportHandle:
        """Connection refused / handshake failed."""
        return self.simulate_close(was_clean=False, code=CloseCode.ABNORMAL, handle=handle)

    def _resolve(self, handle: TransportHandle | None) -> TransportHandle:
        if handle is not None:
            return handle
        if not self.opened:
            raise RuntimeError("No transport has been opened")
        return self.opened[-1]
