"""In-process event bus for SystemEvents.

The tracker, the sweep, the directory and the admin routes publish events;
subscribers (the audit log) consume them from a queue on a background task,
so a slow or failing subscriber never holds up a role change or a purge.

Usage:
    from userpurge.admin.events import emit, subscribe

    subscribe(audit_on_event)                                # every event
    subscribe(alert_on_failure, [EventType.SWEEP_FAILED])    # only these

    await emit(SystemEvent(event_type=EventType.USER_PURGED, user_id=user_id))
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from userpurge.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]


class EventBus:
    """Queue-backed publish/subscribe for one event loop."""

    def __init__(self) -> None:
        self.handlers: list[EventHandler] = []
        self.typed_handlers: dict[EventType, list[EventHandler]] = {}
        self._queue: asyncio.Queue[SystemEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    # ── Subscriptions ────────────────────────────────────────────────

    def subscribe(self, handler: EventHandler, event_types: list[EventType] | None = None) -> None:
        """Register `handler` for `event_types`, or for every event when None."""
        if event_types is None:
            self.handlers.append(handler)
        else:
            for event_type in event_types:
                self.typed_handlers.setdefault(event_type, []).append(handler)
        logger.info(
            "Subscribed %s to %s",
            handler.__name__,
            "all events" if event_types is None else [t.value for t in event_types],
        )

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)
        for handlers in self.typed_handlers.values():
            if handler in handlers:
                handlers.remove(handler)

    def handlers_for(self, event_type: EventType) -> list[EventHandler]:
        return self.handlers + self.typed_handlers.get(event_type, [])

    # ── Publishing ───────────────────────────────────────────────────

    async def emit(self, event: SystemEvent) -> None:
        """Queue an event for delivery. Starts the worker lazily."""
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._ensure_worker()
        await self._queue.put(event)
        logger.debug("Event queued: %s (user=%s)", event.event_type.value, event.user_id)

    async def dispatch(self, event: SystemEvent) -> None:
        """Deliver one event to its handlers concurrently."""
        handlers = self.handlers_for(event.event_type)
        if not handlers:
            return
        await asyncio.gather(*(self._deliver(handler, event) for handler in handlers))

    @staticmethod
    async def _deliver(handler: EventHandler, event: SystemEvent) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception("Handler %s failed for %s", handler.__name__, event.event_type.value)

    # ── Worker lifecycle ─────────────────────────────────────────────

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain(), name="event-bus")

    async def _drain(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                await self.dispatch(event)
            except Exception:
                logger.exception("Event worker failed on %s", event.event_type.value)
            finally:
                self._queue.task_done()

    async def start(self) -> None:
        """Create a fresh queue and worker. Call from the app lifespan."""
        self._queue = asyncio.Queue()
        self._ensure_worker()
        logger.info(
            "Event bus started (%d global, %d typed subscribers)",
            len(self.handlers),
            sum(len(h) for h in self.typed_handlers.values()),
        )

    async def stop(self) -> None:
        """Deliver whatever is queued, then cancel the worker."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
        self._worker = None
        self._queue = None
        logger.info("Event bus stopped")


# Module-level singleton and its bound entry points
event_bus = EventBus()

subscribe = event_bus.subscribe
unsubscribe = event_bus.unsubscribe
emit = event_bus.emit
start_event_system = event_bus.start
stop_event_system = event_bus.stop
