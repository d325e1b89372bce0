"""ztp-notify - real-time notification client for the ZTP provisioning console.

A resilient, reconnecting publish/subscribe client over the backend's
notification WebSocket, plus a small hub server for development.

- NotificationClient: connect/disconnect, on()/on_any() subscriptions
- ReconnectionController: capped exponential backoff state machine
- EventDispatcher: typed envelope decoding and isolated fan-out
"""

from .backoff import BackoffPolicy
from .client import (
    NotificationClient,
    create_notification_client,
    create_test_client,
    wait_for_state,
)
from .config import NotificationConfig, resolve_base_url, websocket_url
from .controller import ConnectionState, ReconnectionController
from .dispatcher import EventDispatcher, HandlerSet, Subscription
from .events import (
    ConfigPulledPayload,
    DeviceDiscoveredPayload,
    EventKind,
    MalformedEventError,
    NotificationEvent,
    decode_event,
)

__version__ = "0.1.0"

__all__ = [
    # Client (recommended entry point)
    "NotificationClient",
    "create_notification_client",
    "create_test_client",
    "wait_for_state",
    # Configuration
    "NotificationConfig",
    "BackoffPolicy",
    "resolve_base_url",
    "websocket_url",
    # Connection lifecycle
    "ConnectionState",
    "ReconnectionController",
    # Dispatch
    "EventDispatcher",
    "HandlerSet",
    "Subscription",
    # Events
    "EventKind",
    "NotificationEvent",
    "MalformedEventError",
    "decode_event",
    "DeviceDiscoveredPayload",
    "ConfigPulledPayload",
]
