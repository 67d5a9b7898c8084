"""
Tests for the bus adapters that turn check events and tray intents into
ledger operations.
"""

from __future__ import annotations

import pytest

from save_tray.core.bus import TrayBus
from save_tray.core.events import Events
from save_tray.ledger.model import Ledger, ParticipantRecord
from save_tray.services.check_events import (
    RollRequest,
    register_tray_handlers,
    resolve_success,
)

from tests.helpers import DOCUMENT_REF, KEY, NAMESPACE, stored_ledger


@pytest.fixture
def tray_bus():
    TrayBus.reset_for_testing()
    yield TrayBus()
    TrayBus.reset_for_testing()


@pytest.fixture
def registered(tray_bus, operations):
    unsubscribers = register_tray_handlers(tray_bus, operations)
    yield tray_bus
    for unsubscribe in unsubscribers:
        unsubscribe()


def _initiated(**overrides) -> dict:
    detail = {
        "documentRef": DOCUMENT_REF,
        "checkType": "save",
        "targets": [
            {"entityRef": "Actor.a", "displayName": "Aela"},
            {"entityRef": "Actor.b", "displayName": "Bram"},
        ],
        "threshold": 14,
        "checkKind": "dex",
    }
    detail.update(overrides)
    return detail


def _resolved(**overrides) -> dict:
    detail = {
        "originDocumentRef": DOCUMENT_REF,
        "entityRef": "Actor.a",
        "displayName": "Aela",
        "total": 17,
    }
    detail.update(overrides)
    return detail


class TestResolveSuccess:
    @pytest.mark.unit
    def test_explicit_verdict_wins(self):
        assert resolve_success(3, 10, True) is True
        assert resolve_success(30, 10, False) is False

    @pytest.mark.unit
    def test_compares_against_threshold(self):
        assert resolve_success(10, 10, None) is True
        assert resolve_success(9, 10, None) is False

    @pytest.mark.unit
    def test_unknown_without_threshold(self):
        assert resolve_success(17, None, None) is None


class TestCheckInitiated:
    @pytest.mark.unit
    async def test_save_check_populates_the_tray(self, registered, document):
        registered.emit(Events.CHECK_INITIATED, _initiated())
        await registered.drain()

        ledger = stored_ledger(document)
        assert list(ledger.records) == ["Actor.a", "Actor.b"]
        assert ledger.threshold == 14
        assert ledger.check_kind == "dex"

    @pytest.mark.unit
    async def test_other_check_types_are_ignored(self, registered, document):
        registered.emit(Events.CHECK_INITIATED, _initiated(checkType="attack"))
        await registered.drain()

        assert document.write_count == 0

    @pytest.mark.unit
    async def test_no_targets_is_ignored(self, registered, transport):
        registered.emit(Events.CHECK_INITIATED, _initiated(targets=[]))
        await registered.drain()

        assert transport.sent == []

    @pytest.mark.unit
    async def test_commit_is_reported(self, registered):
        registered.emit(Events.CHECK_INITIATED, _initiated())
        await registered.drain()

        committed = [e for e in registered.get_event_log() if e.type == Events.LEDGER_COMMITTED]
        assert committed[0].detail == {"documentRef": DOCUMENT_REF, "action": "attach"}

    @pytest.mark.unit
    async def test_failed_commit_is_reported(self, registered, directory):
        directory.hand_off(None)

        registered.emit(Events.CHECK_INITIATED, _initiated())
        await registered.drain()

        failed = [e for e in registered.get_event_log() if e.type == Events.LEDGER_COMMIT_FAILED]
        assert failed[0].detail["reason"] == "no-authority"


class TestCheckResolved:
    @pytest.mark.unit
    async def test_outcome_is_merged_into_existing_row(self, registered, document):
        registered.emit(Events.CHECK_INITIATED, _initiated())
        await registered.drain()

        registered.emit(Events.CHECK_RESOLVED, _resolved(total=16))
        await registered.drain()

        ledger = stored_ledger(document)
        assert ledger.get("Actor.a").outcome_value == 16
        assert ledger.get("Actor.a").outcome_success is None
        assert ledger.get("Actor.b").outcome_value is None
        assert ledger.threshold == 14

    @pytest.mark.unit
    async def test_success_uses_threshold_from_event(self, registered, document):
        registered.emit(Events.CHECK_RESOLVED, _resolved(total=8, threshold=12))
        await registered.drain()

        assert stored_ledger(document).get("Actor.a").outcome_success is False

    @pytest.mark.unit
    async def test_explicit_verdict_is_stored(self, registered, document):
        registered.emit(Events.CHECK_RESOLVED, _resolved(total=8, threshold=12, isSuccess=True))
        await registered.drain()

        assert stored_ledger(document).get("Actor.a").outcome_success is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "overrides",
        [{"total": None}, {"total": "17"}, {"originDocumentRef": None}, {"entityRef": ""}],
    )
    async def test_incomplete_events_are_ignored(self, registered, transport, overrides):
        registered.emit(Events.CHECK_RESOLVED, _resolved(**overrides))
        await registered.drain()

        assert transport.sent == []


class TestTrayIntents:
    @pytest.fixture
    async def seeded(self, document):
        ledger = Ledger(
            threshold=12,
            check_kind="wis",
            records={
                "Actor.a": ParticipantRecord("Actor.a", "Aela"),
                "Actor.b": ParticipantRecord("Actor.b", "Bram", 15, True),
            },
        )
        await document.set_attachment(NAMESPACE, KEY, ledger.to_wire())
        return document

    @pytest.mark.unit
    async def test_delete_requested(self, registered, seeded):
        registered.emit(
            Events.TRAY_DELETE_REQUESTED, {"documentRef": DOCUMENT_REF, "entityRef": "Actor.a"}
        )
        await registered.drain()

        assert list(stored_ledger(seeded).records) == ["Actor.b"]

    @pytest.mark.unit
    async def test_clear_requested(self, registered, seeded):
        registered.emit(Events.TRAY_CLEAR_REQUESTED, {"documentRef": DOCUMENT_REF})
        await registered.drain()

        ledger = stored_ledger(seeded)
        assert ledger.is_empty
        assert ledger.check_kind == "wis"

    @pytest.mark.unit
    async def test_roll_requested_emits_roll_request(self, registered, seeded):
        registered.emit(
            Events.TRAY_ROLL_REQUESTED, {"documentRef": DOCUMENT_REF, "entityRef": "Actor.a"}
        )
        await registered.drain()

        requests = [e for e in registered.get_event_log() if e.type == Events.CHECK_ROLL_REQUESTED]
        assert requests[0].detail["request"] == RollRequest(
            origin_document_ref=DOCUMENT_REF,
            entity_ref="Actor.a",
            check_kind="wis",
            threshold=12,
        )

    @pytest.mark.unit
    async def test_roll_without_check_kind_is_ignored(self, registered, document):
        registered.emit(
            Events.TRAY_ROLL_REQUESTED, {"documentRef": DOCUMENT_REF, "entityRef": "Actor.a"}
        )
        await registered.drain()

        assert registered.get_handler_count(Events.CHECK_ROLL_REQUESTED) == 0
        assert all(e.type != Events.CHECK_ROLL_REQUESTED for e in registered.get_event_log())


class TestRegistration:
    @pytest.mark.unit
    def test_registers_and_unregisters_all_handlers(self, tray_bus, operations):
        unsubscribers = register_tray_handlers(tray_bus, operations)

        assert tray_bus.get_handler_count(Events.CHECK_INITIATED) == 1
        assert tray_bus.get_handler_count(Events.TRAY_CLEAR_REQUESTED) == 1

        for unsubscribe in unsubscribers:
            unsubscribe()

        assert tray_bus.get_handler_count(Events.CHECK_INITIATED) == 0
        assert tray_bus.get_handler_count(Events.CHECK_RESOLVED) == 0
