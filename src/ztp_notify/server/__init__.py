"""Notification hub server (producer side of the notification channel)."""

from .app import create_app
from .hub import HubClient, NotificationHub
from .routes import event_routes, health_routes, websocket_routes

__all__ = [
    "create_app",
    "HubClient",
    "NotificationHub",
    "event_routes",
    "health_routes",
    "websocket_routes",
]
