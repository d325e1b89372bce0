"""Transport layer for the notification channel.

- base: Transport / TransportHandle / TransportListener contract
- websocket: real client over the ``websockets`` library
- mock: in-memory double for tests

Reconnection lives in ztp_notify.controller, not here.
"""

from .base import CloseCode, Transport, TransportHandle, TransportListener
from .mock import CloseRequest, MockTransport
from .websocket import WebSocketHandle, WebSocketTransport

__all__ = [
    # Base abstractions
    "CloseCode",
    "Transport",
    "TransportHandle",
    "TransportListener",
    # WebSocket implementation
    "WebSocketHandle",
    "WebSocketTransport",
    # Testing
    "CloseRequest",
    "MockTransport",
]
