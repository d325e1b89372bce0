"""Event dispatcher - fans decoded notifications out to subscribers.

Two registries:
- per-kind handlers, invoked for events of that kind
- any-kind handlers, invoked for every decoded event (including unknown kinds)

Kind-specific handlers always run before any-kind handlers; within a set,
handlers run in registration order. Every handler runs in its own failure
boundary so one broken subscriber cannot starve the others or leak an
exception into the transport layer.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from .events import EventKind, MalformedEventError, NotificationEvent, decode_event

logger = logging.getLogger(__name__)

# Handlers may be plain callables or coroutine functions
EventHandler = Callable[[NotificationEvent], "Awaitable[None] | None"]

H = TypeVar("H", bound=Callable[..., Any])


class Subscription:
    """Capability to remove exactly one registration.

    Calling the subscription (or ``unsubscribe()``) removes it. Repeated
    calls are no-ops.
    """

    __slots__ = ("_owner", "_key")

    def __init__(self, owner: HandlerSet[Any], key: int):
        self._owner: HandlerSet[Any] | None = owner
        self._key = key

    @property
    def active(self) -> bool:
        return self._owner is not None and self._key in self._owner._handlers

    def unsubscribe(self) -> None:
        if self._owner is not None:
            self._owner._discard(self._key)
            self._owner = None

    def __call__(self) -> None:
        self.unsubscribe()


class HandlerSet(Generic[H]):
    """Insertion-ordered handler registry with token-based removal."""

    def __init__(self) -> None:
        self._handlers: dict[int, H] = {}
        self._keys = itertools.count()

    def add(self, handler: H) -> Subscription:
        if not callable(handler):
            raise TypeError(f"Handler must be callable, got {type(handler).__name__}")
        # snapshot() de-duplicates by hash
        try:
            hash(handler)
        except TypeError as e:
            raise TypeError(f"Handler must be hashable: {e}") from e
        key = next(self._keys)
        self._handlers[key] = handler
        return Subscription(self, key)

    def _discard(self, key: int) -> None:
        self._handlers.pop(key, None)

    def snapshot(self) -> list[H]:
        """Handlers in registration order, each at most once."""
        return list(dict.fromkeys(self._handlers.values()))

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)

    def __bool__(self) -> bool:
        return bool(self._handlers)


class EventDispatcher:
    """Decodes raw messages and distributes them to subscribers.

    Never raises from ``dispatch``/``publish``: decode failures and handler
    failures are logged and counted.

    Attributes:
        decode_errors: Raw messages dropped because they could not be decoded
        handler_errors: Handler invocations that raised (sync or async)
        dispatched: Events successfully decoded and fanned out
    """

    def __init__(self) -> None:
        self._by_kind: dict[EventKind, HandlerSet[EventHandler]] = {}
        self._any: HandlerSet[EventHandler] = HandlerSet()
        self._pending_tasks: set[asyncio.Task[Any]] = set()
        self.decode_errors = 0
        self.handler_errors = 0
        self.dispatched = 0

    def subscribe(self, kind: EventKind | str, handler: EventHandler) -> Subscription:
        """Register a handler for one event kind.

        Raises:
            ValueError: If ``kind`` is not a known EventKind
        """
        event_kind = EventKind.parse(kind)
        if event_kind is None:
            raise ValueError(f"Unknown event kind: {kind!r}")
        handlers = self._by_kind.setdefault(event_kind, HandlerSet())
        return handlers.add(handler)

    def subscribe_all(self, handler: EventHandler) -> Subscription:
        """Register a handler for every event regardless of kind."""
        return self._any.add(handler)

    def handler_count(self, kind: EventKind | str | None = None) -> int:
        """Number of registrations for a kind, or any-kind ones if None."""
        if kind is None:
            return len(self._any)
        event_kind = EventKind.parse(kind)
        handlers = self._by_kind.get(event_kind) if event_kind else None
        return len(handlers) if handlers else 0

    def clear(self) -> None:
        """Drop every registration."""
        self._by_kind.clear()
        self._any.clear()

    def dispatch(self, raw: str | bytes | bytearray) -> NotificationEvent | None:
        """Decode a raw message and publish it.

        Returns the decoded event, or None if the message was dropped.
        """
        try:
            event = decode_event(raw)
        except MalformedEventError as e:
            self.decode_errors += 1
            logger.warning(f"Dropping malformed notification: {e}")
            return None

        self.publish(event)
        return event

    def publish(self, event: NotificationEvent) -> None:
        """Fan a decoded event out: kind-specific handlers, then any-kind."""
        kind = event.kind
        if kind is None:
            logger.debug(f"Notification with unknown type {event.type!r}")

        # Snapshot so handlers may (un)subscribe while we iterate
        specific = self._by_kind.get(kind) if kind else None
        specific_handlers = specific.snapshot() if specific else []
        any_handlers = self._any.snapshot()

        self.dispatched += 1

        for handler in specific_handlers:
            self._invoke(handler, event, "handler")

        for handler in any_handlers:
            self._invoke(handler, event, "any-kind handler")

    def _invoke(self, handler: EventHandler, event: NotificationEvent, scope: str) -> None:
        try:
            # Private copy: the payload is a mutable container
            result = handler(event.model_copy(deep=True))
        except Exception:
            self.handler_errors += 1
            logger.exception(f"Error in {scope} for {event.type}")
            return

        if inspect.isawaitable(result):
            self._track(result, event, scope)

    def _track(self, awaitable: Awaitable[Any], event: NotificationEvent, scope: str) -> None:
        """Run an async handler as a task and log its failure."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop to host the coroutine
            self.handler_errors += 1
            logger.error(f"Async {scope} for {event.type} needs a running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending_tasks.add(task)

        def on_done(done: asyncio.Task[Any]) -> None:
            self._pending_tasks.discard(done)
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                self.handler_errors += 1
                logger.error(f"Error in async {scope} for {event.type}", exc_info=exc)

        task.add_done_callback(on_done)

    async def drain(self) -> None:
        """Wait for async handlers that are still running."""
        while self._pending_tasks:
            await asyncio.gather(*list(self._pending_tasks), return_exceptions=True)
