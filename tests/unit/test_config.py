"""Unit tests for client configuration."""

from __future__ import annotations

import pytest

from ztp_notify.config import (
    DEFAULT_BASE_URL,
    NotificationConfig,
    resolve_base_url,
    websocket_url,
)


class TestWebSocketUrl:
    """Tests for deriving the WebSocket endpoint from the API base URL."""

    @pytest.mark.parametrize(
        ("base_url", "expected"),
        [
            ("http://localhost:8080/api", "ws://localhost:8080/api/ws"),
            ("https://ztp.example.com/api", "wss://ztp.example.com/api/ws"),
            ("https://ztp.example.com/api/", "wss://ztp.example.com/api/ws"),
            ("http://10.0.0.1:8080", "ws://10.0.0.1:8080/ws"),
            ("HTTP://ztp.local/api", "ws://ztp.local/api/ws"),
            ("ws://ztp.local/api", "ws://ztp.local/api/ws"),
            ("http://ztp.local/api?token=abc", "ws://ztp.local/api/ws?token=abc"),
            ("http://ztp.local/api#frag", "ws://ztp.local/api/ws"),
            ("  http://ztp.local/api  ", "ws://ztp.local/api/ws"),
        ],
    )
    def test_derivation(self, base_url: str, expected: str) -> None:
        assert websocket_url(base_url) == expected

    @pytest.mark.parametrize(
        "base_url",
        ["/api", "localhost:8080/api", "ftp://ztp.local/api", "", "http://"],
    )
    def test_rejects_unusable(self, base_url: str) -> None:
        """Relative and non-HTTP URLs cannot yield an endpoint."""
        with pytest.raises(ValueError):
            websocket_url(base_url)

    def test_rejects_non_string(self) -> None:
        with pytest.raises(ValueError, match="string"):
            websocket_url(None)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("base_url", "origin", "expected"),
        [
            ("/api", "https://console.example.com", "wss://console.example.com/api/ws"),
            ("/api/", "http://10.0.0.1:8080/admin/", "ws://10.0.0.1:8080/api/ws"),
            ("api", "http://10.0.0.1:8080/admin/", "ws://10.0.0.1:8080/admin/api/ws"),
            ("http://other.test/api", "https://console.example.com", "ws://other.test/api/ws"),
        ],
    )
    def test_relative_base_with_origin(self, base_url: str, origin: str, expected: str) -> None:
        """Relative bases resolve against the console's origin, absolute ones ignore it."""
        assert websocket_url(base_url, origin) == expected


class TestResolveBaseUrl:
    """Tests for resolve_base_url."""

    def test_without_origin_unchanged(self) -> None:
        assert resolve_base_url(" /api ") == "/api"

    def test_relative_resolved(self) -> None:
        assert resolve_base_url("/api", "http://ztp.local:8080") == "http://ztp.local:8080/api"


class TestNotificationConfig:
    """Tests for NotificationConfig."""

    def test_defaults(self) -> None:
        config = NotificationConfig()

        assert config.base_url == DEFAULT_BASE_URL
        assert config.base_delay == 1.0
        assert config.max_delay == 30.0
        assert config.backoff == 2.0
        assert config.max_attempts == 10

    def test_backoff_policy(self) -> None:
        config = NotificationConfig(base_delay=0.5, max_delay=4.0, max_attempts=None)
        policy = config.backoff_policy()

        assert policy.delay(0) == 0.5
        assert policy.delay(10) == 4.0
        assert policy.max_attempts is None

    def test_validate_ok(self) -> None:
        NotificationConfig().validate()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_url": "/api"},
            {"base_delay": 0},
            {"max_delay": 0.1},
            {"ping_interval": 0},
        ],
    )
    def test_validate_rejects(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            NotificationConfig(**kwargs).validate()


class TestConfigFromEnv:
    """Tests for NotificationConfig.from_env."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "ZTP_API_URL",
            "ZTP_WS_RECONNECT_DELAY",
            "ZTP_WS_MAX_RECONNECT_DELAY",
            "ZTP_WS_RECONNECT_BACKOFF",
            "ZTP_WS_MAX_ATTEMPTS",
            "ZTP_ORIGIN",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_defaults_without_env(self) -> None:
        assert NotificationConfig.from_env() == NotificationConfig()

    def test_reads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ZTP_API_URL", "https://ztp.example.com/api")
        monkeypatch.setenv("ZTP_WS_RECONNECT_DELAY", "0.25")
        monkeypatch.setenv("ZTP_WS_MAX_RECONNECT_DELAY", "8")
        monkeypatch.setenv("ZTP_WS_RECONNECT_BACKOFF", "1.5")
        monkeypatch.setenv("ZTP_WS_MAX_ATTEMPTS", "3")

        config = NotificationConfig.from_env()

        assert config.base_url == "https://ztp.example.com/api"
        assert config.base_delay == 0.25
        assert config.max_delay == 8.0
        assert config.backoff == 1.5
        assert config.max_attempts == 3

    def test_relative_base_with_origin(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ZTP_API_URL", "/api")
        monkeypatch.setenv("ZTP_ORIGIN", "https://console.example.com")

        config = NotificationConfig.from_env()

        assert config.origin == "https://console.example.com"
        config.validate()

    def test_zero_attempts_means_unlimited(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ZTP_WS_MAX_ATTEMPTS", "0")
        assert NotificationConfig.from_env().max_attempts is None

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ZTP_API_URL", "http://from-env/api")
        config = NotificationConfig.from_env(base_url="http://override/api")
        assert config.base_url == "http://override/api"

    def test_unknown_override(self) -> None:
        with pytest.raises(TypeError):
            NotificationConfig.from_env(retries=5)

    def test_invalid_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ZTP_WS_RECONNECT_DELAY", "soon")
        with pytest.raises(ValueError, match="ZTP_WS_RECONNECT_DELAY"):
            NotificationConfig.from_env()

    def test_invalid_attempts(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ZTP_WS_MAX_ATTEMPTS", "many")
        with pytest.raises(ValueError, match="ZTP_WS_MAX_ATTEMPTS"):
            NotificationConfig.from_env()
