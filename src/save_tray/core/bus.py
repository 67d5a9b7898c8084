"""
Save Tray Event Bus

Event sources (checks being initiated or resolved) and the presentation layer
(roll/delete/clear intents) talk to the ledger through this bus. Handlers in
:mod:`save_tray.services.check_events` turn those events into ledger
mutations and report commit outcomes back onto the bus.

=============================================================================
PRINCIPLES
=============================================================================

1. THE BUS RECORDS FACTS
   - Events say what happened ("check:resolved"), they do not command
   - Intents are facts too: "tray:delete_requested" means a user asked

2. EVENTS ARE IMMUTABLE
   - Once emitted, an event cannot be changed
   - Handlers receive events, they cannot modify them

3. EMIT IS SYNCHRONOUS
   - Event creation and log commit happen before emit() returns
   - Sequence numbers give a global order

4. ASYNC IS AN EXECUTION DETAIL
   - Async handlers are SCHEDULED after the event is committed
   - drain() awaits everything scheduled so far

=============================================================================
USAGE
=============================================================================

    from save_tray.core.bus import bus
    from save_tray.core.events import Events

    event = bus.emit(Events.TRAY_CLEAR_REQUESTED, {"documentRef": "Message.abc"})

    async def on_clear(event):
        await operations.clear_participants(event.detail["documentRef"])

    unsubscribe = bus.on(Events.TRAY_CLEAR_REQUESTED, on_clear)

=============================================================================
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

SyncHandler = Callable[["TrayEvent"], None]
AsyncHandler = Callable[["TrayEvent"], Coroutine[Any, Any, None]]
EventHandler = SyncHandler | AsyncHandler
Unsubscribe = Callable[[], None]


# =============================================================================
# EVENTS
# =============================================================================


@dataclass(frozen=True)
class EventMetadata:
    """
    Metadata attached to every event.

    Attributes:
        timestamp: Unix epoch milliseconds (UTC). For display, NOT ordering.
        source: Name of the component that emitted the event.
        sequence: Monotonically increasing integer; the only reliable order.
    """

    timestamp: int
    source: str
    sequence: int

    @staticmethod
    def create(source: str, sequence: int) -> EventMetadata:
        now_ms = int(datetime.now(UTC).timestamp() * 1000)
        return EventMetadata(timestamp=now_ms, source=source, sequence=sequence)


@dataclass(frozen=True)
class TrayEvent:
    """
    A single event on the bus.

    Attributes:
        type: Event type string in "domain:action" format.
        detail: Event payload. Treat as immutable.
        _meta: Timestamp, source and sequence, assigned by the bus.
    """

    type: str
    detail: dict = field(default_factory=dict)
    _meta: EventMetadata | None = field(default=None)

    def __str__(self) -> str:
        if self._meta:
            return (
                f"TrayEvent(type='{self.type}', "
                f"source='{self._meta.source}', "
                f"seq={self._meta.sequence})"
            )
        return f"TrayEvent(type='{self.type}')"

    @property
    def meta(self) -> EventMetadata | None:
        return self._meta


# =============================================================================
# TRAY BUS (SINGLETON)
# =============================================================================


class TrayBus:
    """
    The event bus - Singleton Pattern.

    There is exactly ONE bus per process so that every event source and
    every handler shares the same history. Tests call reset_for_testing().

    Thread Safety:
    - NOT thread-safe. Each peer runs a single asyncio loop.

    Key Methods:
    - emit(): Record an event and notify handlers
    - on() / once(): Subscribe (returns an unsubscribe function)
    - wait_for(): Await the next event of a type
    - drain(): Await all async handlers scheduled so far
    - get_event_log(): Event history, oldest first
    """

    _instance: TrayBus | None = None
    _initialized: bool = False

    def __new__(cls) -> TrayBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if TrayBus._initialized:
            return

        # event_type -> handlers, in registration order
        self._handlers: dict[str, list[EventHandler]] = {}

        # Bounded history
        self._event_log: deque[TrayEvent] = deque(maxlen=5000)

        self._sequence: int = 0

        # event_type -> futures waiting for the next event of that type
        self._wait_promises: dict[str, list[asyncio.Future[TrayEvent]]] = {}

        # Async handler tasks not yet finished
        self._pending: set[asyncio.Task[None]] = set()

        self.debug: bool = False

        TrayBus._initialized = True
        logger.info("Tray bus initialized")

    # =========================================================================
    # EMIT
    # =========================================================================

    def emit(
        self, event_type: str, detail: dict[str, Any] | None = None, source: str = "tray"
    ) -> TrayEvent:
        """
        Emit an event to the bus.

        When this returns, the event has a sequence number, is in the log,
        sync handlers have run and async handlers are scheduled.

        Args:
            event_type: The type of event (e.g., "check:resolved")
            detail: The event payload. Defaults to an empty dict.
            source: Which component is emitting. Defaults to "tray".

        Returns:
            The committed TrayEvent.
        """
        self._sequence += 1
        event = TrayEvent(
            type=event_type,
            detail=detail if detail is not None else {},
            _meta=EventMetadata.create(source, self._sequence),
        )
        self._event_log.append(event)

        if self.debug:
            logger.debug("EMIT [%d]: %s from %s", self._sequence, event.type, source)

        self._notify_handlers(event)
        self._resolve_wait_promises(event)
        return event

    def _notify_handlers(self, event: TrayEvent) -> None:
        # Copy: once() handlers unsubscribe while we iterate.
        for handler in list(self._handlers.get(event.type, ())):
            try:
                if inspect.iscoroutinefunction(handler):
                    self._schedule_async_handler(handler, event)
                else:
                    handler(event)
            except Exception as e:
                # The event is committed regardless of handler errors
                logger.error(f"Handler error for '{event.type}': {e}", exc_info=True)

    def _schedule_async_handler(self, handler: AsyncHandler, event: TrayEvent) -> None:
        """
        Schedule an async handler.

        With a running loop the handler becomes a tracked task; without one
        (scripts, sync tests) it runs to completion via asyncio.run().
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._run_async_handler(handler, event))
            return

        task = loop.create_task(self._run_async_handler(handler, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_async_handler(self, handler: AsyncHandler, event: TrayEvent) -> None:
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Async handler error for '{event.type}': {e}", exc_info=True)

    def _resolve_wait_promises(self, event: TrayEvent) -> None:
        futures = self._wait_promises.pop(event.type, None)
        if not futures:
            return
        for future in futures:
            if not future.done():
                future.set_result(event)

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    def on(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        """
        Subscribe to an event type. Handlers run in registration order.

        Returns:
            An unsubscribe function.
        """
        self._handlers.setdefault(event_type, []).append(handler)

        if self.debug:
            count = len(self._handlers[event_type])
            logger.debug("SUBSCRIBE: '%s' (total handlers: %d)", event_type, count)

        def unsubscribe() -> None:
            try:
                self._handlers.get(event_type, []).remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def once(self, event_type: str, handler: EventHandler) -> Unsubscribe:
        """Subscribe for a single event only."""
        unsub: Unsubscribe | None = None

        def one_time_wrapper(event: TrayEvent) -> None:
            try:
                if inspect.iscoroutinefunction(handler):
                    self._schedule_async_handler(handler, event)
                else:
                    handler(event)
            finally:
                if unsub is not None:
                    unsub()

        unsub = self.on(event_type, one_time_wrapper)
        return unsub

    # =========================================================================
    # ASYNC COORDINATION
    # =========================================================================

    async def wait_for(self, event_type: str, timeout: float | None = None) -> TrayEvent:
        """
        Wait for the next event of ``event_type``.

        Raises:
            TimeoutError: If ``timeout`` seconds pass first.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[TrayEvent] = loop.create_future()
        waiters = self._wait_promises.setdefault(event_type, [])
        waiters.append(future)

        try:
            if timeout is not None:
                return await asyncio.wait_for(future, timeout=timeout)
            return await future
        finally:
            if future in waiters:
                waiters.remove(future)
            if not waiters and self._wait_promises.get(event_type) is waiters:
                del self._wait_promises[event_type]

    async def drain(self) -> None:
        """Await every async handler scheduled so far, including ones they schedule."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def get_event_log(self, limit: int | None = None) -> list[TrayEvent]:
        """Events in order, oldest first. ``limit`` keeps the newest N."""
        if limit is not None:
            return list(self._event_log)[-limit:]
        return list(self._event_log)

    def get_sequence(self) -> int:
        return self._sequence

    def get_handler_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, ()))

    # =========================================================================
    # TESTING SUPPORT
    # =========================================================================

    @classmethod
    def reset_for_testing(cls) -> None:
        """
        Reset the singleton.

        *** NOT FOR PRODUCTION USE ***
        """
        cls._instance = None
        cls._initialized = False

    def clear_event_log(self) -> None:
        self._event_log.clear()


# This is THE bus. Import this, not the class.
bus = TrayBus()
