"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from ztp_notify.config import NotificationConfig
from ztp_notify.transport.mock import MockTransport


@dataclass
class FakeTimer:
    """Timer recorded by FakeScheduler."""

    delay: float
    callback: Callable[[], object]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeScheduler:
    """Deterministic stand-in for loop.call_later.

    Nothing fires on its own - tests call fire_next().
    """

    timers: list[FakeTimer] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], object]) -> FakeTimer:
        timer = FakeTimer(delay=delay, callback=callback)
        self.timers.append(timer)
        return timer

    @property
    def delays(self) -> list[float]:
        return [t.delay for t in self.timers]

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self) -> None:
        timer = self.pending[0]
        timer.fired = True
        timer.callback()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def config() -> NotificationConfig:
    return NotificationConfig(base_url="http://ztp.test:8080/api")
