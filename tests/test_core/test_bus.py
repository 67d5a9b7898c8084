"""
Tests for the Tray Event Bus

These tests verify the bus guarantees the ledger adapters rely on:

1. Events are immutable after creation
2. Emit is synchronous (event committed before return)
3. Sequence numbers give a deterministic order
4. Handlers are called in registration order
5. Async handlers are scheduled, and drain() awaits them
6. The bus is a singleton
"""

import asyncio

import pytest

from save_tray.core.bus import EventMetadata, TrayBus, TrayEvent

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_bus():
    """Reset the bus singleton before and after each test."""
    TrayBus.reset_for_testing()
    yield
    TrayBus.reset_for_testing()


@pytest.fixture
def tray_bus():
    return TrayBus()


# =============================================================================
# EVENTS
# =============================================================================


class TestEventMetadata:
    @pytest.mark.unit
    def test_create_metadata(self):
        meta = EventMetadata.create(source="test", sequence=42)

        assert meta.source == "test"
        assert meta.sequence == 42
        assert meta.timestamp > 0

    @pytest.mark.unit
    def test_metadata_is_immutable(self):
        meta = EventMetadata.create(source="test", sequence=1)

        with pytest.raises(AttributeError):
            meta.sequence = 999  # type: ignore


class TestTrayEvent:
    @pytest.mark.unit
    def test_event_is_immutable(self, tray_bus):
        event = tray_bus.emit("tray:clear_requested", {"documentRef": "Message.abc"})

        with pytest.raises(AttributeError):
            event.type = "other"  # type: ignore

    @pytest.mark.unit
    def test_str_includes_source_and_sequence(self, tray_bus):
        event = tray_bus.emit("check:resolved", source="roller")

        assert str(event) == "TrayEvent(type='check:resolved', source='roller', seq=1)"

    @pytest.mark.unit
    def test_str_without_metadata(self):
        assert str(TrayEvent(type="check:resolved")) == "TrayEvent(type='check:resolved')"


# =============================================================================
# BUS
# =============================================================================


class TestSingleton:
    @pytest.mark.unit
    def test_same_instance(self):
        assert TrayBus() is TrayBus()

    @pytest.mark.unit
    def test_reset_creates_new_instance(self):
        first = TrayBus()
        TrayBus.reset_for_testing()

        assert TrayBus() is not first


class TestEmit:
    @pytest.mark.unit
    def test_emit_commits_before_return(self, tray_bus):
        """The event is in the log as soon as emit() returns."""
        event = tray_bus.emit("ledger:committed", {"documentRef": "Message.abc"})

        assert tray_bus.get_event_log() == [event]
        assert event.meta.sequence == 1

    @pytest.mark.unit
    def test_sequence_increases(self, tray_bus):
        events = [tray_bus.emit("ledger:committed") for _ in range(3)]

        assert [e.meta.sequence for e in events] == [1, 2, 3]
        assert tray_bus.get_sequence() == 3

    @pytest.mark.unit
    def test_default_detail_is_empty_dict(self, tray_bus):
        assert tray_bus.emit("ledger:committed").detail == {}

    @pytest.mark.unit
    def test_event_log_limit_keeps_newest(self, tray_bus):
        for _ in range(5):
            tray_bus.emit("ledger:committed")

        assert [e.meta.sequence for e in tray_bus.get_event_log(limit=2)] == [4, 5]

    @pytest.mark.unit
    def test_clear_event_log(self, tray_bus):
        tray_bus.emit("ledger:committed")
        tray_bus.clear_event_log()

        assert tray_bus.get_event_log() == []


class TestHandlers:
    @pytest.mark.unit
    def test_handlers_run_in_registration_order(self, tray_bus):
        calls = []
        tray_bus.on("tray:clear_requested", lambda e: calls.append("first"))
        tray_bus.on("tray:clear_requested", lambda e: calls.append("second"))

        tray_bus.emit("tray:clear_requested")

        assert calls == ["first", "second"]

    @pytest.mark.unit
    def test_unsubscribe(self, tray_bus):
        calls = []
        unsubscribe = tray_bus.on("tray:clear_requested", calls.append)

        unsubscribe()
        unsubscribe()
        tray_bus.emit("tray:clear_requested")

        assert calls == []
        assert tray_bus.get_handler_count("tray:clear_requested") == 0

    @pytest.mark.unit
    def test_once_fires_a_single_time(self, tray_bus):
        calls = []
        tray_bus.once("ledger:committed", calls.append)

        tray_bus.emit("ledger:committed")
        tray_bus.emit("ledger:committed")

        assert len(calls) == 1

    @pytest.mark.unit
    def test_handler_error_does_not_stop_other_handlers(self, tray_bus):
        """A failing handler is logged; the event stays committed."""
        calls = []

        def broken(event):
            raise RuntimeError("handler bug")

        tray_bus.on("ledger:committed", broken)
        tray_bus.on("ledger:committed", calls.append)

        event = tray_bus.emit("ledger:committed")

        assert calls == [event]
        assert tray_bus.get_event_log() == [event]


class TestAsyncHandlers:
    @pytest.mark.unit
    async def test_async_handler_is_scheduled_not_awaited(self, tray_bus):
        calls = []

        async def handler(event):
            calls.append(event.type)

        tray_bus.on("check:resolved", handler)
        tray_bus.emit("check:resolved")

        assert calls == []
        await tray_bus.drain()
        assert calls == ["check:resolved"]

    @pytest.mark.unit
    async def test_drain_follows_chained_handlers(self, tray_bus):
        """Handlers that emit further events are awaited too."""
        calls = []

        async def first(event):
            await asyncio.sleep(0)
            tray_bus.emit("ledger:committed")

        async def second(event):
            calls.append(event.type)

        tray_bus.on("check:resolved", first)
        tray_bus.on("ledger:committed", second)
        tray_bus.emit("check:resolved")
        await tray_bus.drain()

        assert calls == ["ledger:committed"]

    @pytest.mark.unit
    async def test_async_handler_error_is_contained(self, tray_bus):
        async def broken(event):
            raise RuntimeError("async handler bug")

        tray_bus.on("check:resolved", broken)
        tray_bus.emit("check:resolved")

        await tray_bus.drain()

    @pytest.mark.unit
    def test_async_handler_without_loop_runs_inline(self, tray_bus):
        calls = []

        async def handler(event):
            calls.append(event.type)

        tray_bus.on("check:resolved", handler)
        tray_bus.emit("check:resolved")

        assert calls == ["check:resolved"]


class TestWaitFor:
    @pytest.mark.unit
    async def test_wait_for_resolves_on_next_event(self, tray_bus):
        waiter = asyncio.create_task(tray_bus.wait_for("ledger:committed"))
        await asyncio.sleep(0)

        event = tray_bus.emit("ledger:committed", {"documentRef": "Message.abc"})

        assert await waiter is event

    @pytest.mark.unit
    async def test_wait_for_times_out(self, tray_bus):
        with pytest.raises(TimeoutError):
            await tray_bus.wait_for("ledger:committed", timeout=0.01)

    @pytest.mark.unit
    async def test_timed_out_waiters_are_released(self, tray_bus):
        for _ in range(3):
            with pytest.raises(TimeoutError):
                await tray_bus.wait_for("ledger:committed", timeout=0.01)

        assert "ledger:committed" not in tray_bus._wait_promises

    @pytest.mark.unit
    async def test_cancelled_waiter_leaves_others_waiting(self, tray_bus):
        cancelled = asyncio.create_task(tray_bus.wait_for("ledger:committed"))
        survivor = asyncio.create_task(tray_bus.wait_for("ledger:committed"))
        await asyncio.sleep(0)

        cancelled.cancel()
        await asyncio.gather(cancelled, return_exceptions=True)
        event = tray_bus.emit("ledger:committed", {"documentRef": "Message.abc"})

        assert await survivor is event
