"""Notification hub application.

Creates the Starlette ASGI application. Routes live under the API prefix
(``/api`` by default) so the WebSocket endpoint matches what the client
derives from the API base URL:

- /api/health  - Health check
- /api/ws      - Notification stream
- /api/events  - Publish an event
"""

from __future__ import annotations

import os

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import BaseRoute, Mount

from .hub import NotificationHub
from .routes import event_routes, health_routes, websocket_routes

DEFAULT_PREFIX = "/api"


def create_app(*, prefix: str | None = None, hub: NotificationHub | None = None) -> Starlette:
    """Create the notification hub application.

    Args:
        prefix: Path prefix for all routes; defaults to $ZTP_API_PREFIX or /api.
            Use "" to serve at the root.
        hub: Hub instance to use (a new one is created if None)

    Returns:
        Configured Starlette application with the hub on ``app.state.hub``
    """
    if prefix is None:
        prefix = os.environ.get("ZTP_API_PREFIX", DEFAULT_PREFIX)
    prefix = prefix.rstrip("/")

    api_routes: list[BaseRoute] = []
    api_routes.extend(health_routes)
    api_routes.extend(websocket_routes)
    api_routes.extend(event_routes)

    routes: list[BaseRoute] = [Mount(prefix, routes=api_routes)] if prefix else api_routes

    # CORS middleware for the admin console dev server
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware)
    app.state.hub = hub or NotificationHub()
    return app
