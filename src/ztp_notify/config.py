"""Client configuration and endpoint derivation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit, urlunsplit

from .backoff import BackoffPolicy

DEFAULT_BASE_URL = "http://localhost:8080/api"
WEBSOCKET_PATH = "/ws"

_SCHEME_MAP = {
    "http": "ws",
    "https": "wss",
    "ws": "ws",
    "wss": "wss",
}


def resolve_base_url(base_url: str, origin: str | None = None) -> str:
    """Resolve a relative base URL (``/api``) against ``origin``.

    Absolute base URLs, and any base URL when no origin is given, are
    returned unchanged.
    """
    base_url = base_url.strip()
    if origin and not urlsplit(base_url).netloc:
        return urljoin(origin.strip(), base_url)
    return base_url


def websocket_url(base_url: str, origin: str | None = None) -> str:
    """Derive the notification WebSocket URL from the API base URL.

    http://host:8080/api  -> ws://host:8080/api/ws
    https://host/api/     -> wss://host/api/ws
    /api with origin https://host -> wss://host/api/ws

    Raises:
        ValueError: If the base URL is relative with no origin, or not
            HTTP(S)/WS(S)
    """
    if not isinstance(base_url, str):
        raise ValueError(f"Base URL must be a string, got {type(base_url).__name__}")
    parts = urlsplit(resolve_base_url(base_url, origin))
    scheme = _SCHEME_MAP.get(parts.scheme.lower())
    if scheme is None or not parts.netloc:
        raise ValueError(f"Base URL must be an absolute http(s) URL: {base_url!r}")

    path = parts.path.rstrip("/") + WEBSOCKET_PATH
    return urlunsplit((scheme, parts.netloc, path, parts.query, ""))


@dataclass
class NotificationConfig:
    """Configuration for the notification client.

    ``base_url`` is the provisioning API address. The WebSocket endpoint
    is derived from it on every connection attempt. A relative base URL
    (``/api``) is resolved against ``origin``, the console's own address.
    """

    base_url: str = DEFAULT_BASE_URL
    origin: str | None = None

    # Reconnection
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff: float = 2.0
    max_attempts: int | None = 10

    # WebSocket keep-alive
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0
    open_timeout: float | None = 10.0

    def backoff_policy(self) -> BackoffPolicy:
        """Build the reconnect policy (validates the delay settings)."""
        return BackoffPolicy(
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            backoff=self.backoff,
            max_attempts=self.max_attempts,
        )

    def validate(self) -> None:
        """Check settings, raising ValueError on the first bad value."""
        websocket_url(self.base_url, self.origin)
        self.backoff_policy()
        for name in ("ping_interval", "ping_timeout", "open_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive or None")

    @classmethod
    def from_env(cls, **overrides: object) -> NotificationConfig:
        """Build a config from ZTP_* environment variables.

        Keyword overrides take precedence over the environment.
        """
        config = cls(
            base_url=os.getenv("ZTP_API_URL", DEFAULT_BASE_URL),
            origin=os.getenv("ZTP_ORIGIN") or None,
            base_delay=_env_float("ZTP_WS_RECONNECT_DELAY", 1.0),
            max_delay=_env_float("ZTP_WS_MAX_RECONNECT_DELAY", 30.0),
            backoff=_env_float("ZTP_WS_RECONNECT_BACKOFF", 2.0),
            max_attempts=_env_attempts("ZTP_WS_MAX_ATTEMPTS", 10),
        )
        for key, value in overrides.items():
            if not hasattr(config, key):
                raise TypeError(f"Unknown config option: {key}")
            setattr(config, key, value)
        return config


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_attempts(name: str, default: int) -> int | None:
    """Read a retry budget; 0 means unlimited."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    return None if value == 0 else value
