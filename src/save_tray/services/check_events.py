"""
Adapters between bus events and ledger mutations.

Event sources publish what happened (a save was asked for, a save was
rolled) and the tray publishes what users asked for (roll, delete, clear).
:class:`CheckEventHandlers` translates each of those into at most one ledger
operation and reports the commit outcome back onto the bus as
``ledger:committed`` / ``ledger:commit_failed``.

Malformed events are ignored with a debug log; they never raise.

Usage:
    from save_tray.core.bus import bus
    from save_tray.services.check_events import register_tray_handlers

    unsubscribers = register_tray_handlers(bus, operations)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from save_tray.channel.models import CommitResult
from save_tray.core.bus import TrayBus, TrayEvent, Unsubscribe
from save_tray.core.events import Events
from save_tray.ledger.merge import MergeTarget, MetaPatch
from save_tray.ledger.model import is_entity_ref, is_finite_number
from save_tray.services.ledger_operations import LedgerOperations

logger = logging.getLogger(__name__)

# Only this kind of initiated check populates a tray.
SAVE_CHECK_TYPE = "save"


@dataclass(frozen=True, slots=True)
class RollRequest:
    """Everything the host needs to roll one participant's check from the tray.

    ``origin_document_ref`` lets the resolved roll find its way back to the
    tray that asked for it.
    """

    origin_document_ref: str
    entity_ref: str
    check_kind: str
    threshold: int | float | None


def resolve_success(total: Any, threshold: Any, is_success: Any) -> bool | None:
    """
    Decide whether a rolled total met the threshold.

    An explicit boolean verdict wins. Otherwise compare against a finite
    threshold. With neither, the outcome is unknown (None), not a failure.
    """
    if isinstance(is_success, bool):
        return is_success
    if is_finite_number(total) and is_finite_number(threshold):
        return total >= threshold
    return None


def _targets_from(raw_targets: Any) -> list[MergeTarget]:
    if not isinstance(raw_targets, list):
        return []
    targets = []
    for raw in raw_targets:
        if not isinstance(raw, Mapping):
            continue
        name = raw.get("displayName")
        targets.append(
            MergeTarget(
                entity_ref=raw.get("entityRef"),
                display_name=name if isinstance(name, str) else "",
            )
        )
    return targets


class CheckEventHandlers:
    """
    Bus handlers for one peer.

    Args:
        operations: Ledger operations used for every mutation.
        bus: Bus to report commit outcomes and roll requests on.
    """

    def __init__(self, operations: LedgerOperations, bus: TrayBus) -> None:
        self.operations = operations
        self.bus = bus

    def _report(self, document_ref: str, action: str, result: CommitResult | None) -> None:
        if result is None:
            return
        if result.ok:
            self.bus.emit(
                Events.LEDGER_COMMITTED,
                {"documentRef": document_ref, "action": action},
                source="check_events",
            )
        else:
            self.bus.emit(
                Events.LEDGER_COMMIT_FAILED,
                {
                    "documentRef": document_ref,
                    "action": action,
                    "reason": result.reason.value if result.reason else None,
                },
                source="check_events",
            )

    async def on_check_initiated(self, event: TrayEvent) -> None:
        detail = event.detail
        if detail.get("checkType") != SAVE_CHECK_TYPE:
            return
        document_ref = detail.get("documentRef")
        targets = _targets_from(detail.get("targets"))
        if not is_entity_ref(document_ref) or not targets:
            logger.debug("Ignoring %s without document or targets", event)
            return

        patch = MetaPatch(threshold=detail.get("threshold"), check_kind=detail.get("checkKind"))
        result = await self.operations.attach_participants(document_ref, targets, patch)
        self._report(document_ref, "attach", result)

    async def on_check_resolved(self, event: TrayEvent) -> None:
        detail = event.detail
        document_ref = detail.get("originDocumentRef")
        entity_ref = detail.get("entityRef")
        total = detail.get("total")
        if not is_entity_ref(document_ref) or not is_entity_ref(entity_ref):
            logger.debug("Ignoring %s without origin document or entity", event)
            return
        if not is_finite_number(total):
            logger.debug("Ignoring %s with non-finite total %r", event, total)
            return

        threshold = detail.get("threshold")
        name = detail.get("displayName")
        patch = MetaPatch(
            threshold=threshold,
            check_kind=detail.get("checkKind"),
            outcome_value=total,
            outcome_success=resolve_success(total, threshold, detail.get("isSuccess")),
        )
        target = MergeTarget(
            entity_ref=entity_ref, display_name=name if isinstance(name, str) else ""
        )
        result = await self.operations.attach_participants(document_ref, [target], patch)
        self._report(document_ref, "resolve", result)

    async def on_roll_requested(self, event: TrayEvent) -> None:
        document_ref = event.detail.get("documentRef")
        entity_ref = event.detail.get("entityRef")
        if not is_entity_ref(document_ref) or not is_entity_ref(entity_ref):
            return

        ledger = await self.operations.read_ledger(document_ref)
        if not ledger.check_kind:
            logger.debug("No check kind on %s; roll request ignored", document_ref)
            return

        request = RollRequest(
            origin_document_ref=document_ref,
            entity_ref=entity_ref,
            check_kind=ledger.check_kind,
            threshold=ledger.threshold,
        )
        self.bus.emit(Events.CHECK_ROLL_REQUESTED, {"request": request}, source="check_events")

    async def on_delete_requested(self, event: TrayEvent) -> None:
        document_ref = event.detail.get("documentRef")
        entity_ref = event.detail.get("entityRef")
        if not is_entity_ref(document_ref) or not is_entity_ref(entity_ref):
            return
        result = await self.operations.delete_participant(document_ref, entity_ref)
        self._report(document_ref, "delete", result)

    async def on_clear_requested(self, event: TrayEvent) -> None:
        document_ref = event.detail.get("documentRef")
        if not is_entity_ref(document_ref):
            return
        result = await self.operations.clear_participants(document_ref)
        self._report(document_ref, "clear", result)


def register_tray_handlers(bus: TrayBus, operations: LedgerOperations) -> list[Unsubscribe]:
    """Subscribe the tray handlers on ``bus``. Returns the unsubscribe callables."""
    handlers = CheckEventHandlers(operations, bus)
    return [
        bus.on(Events.CHECK_INITIATED, handlers.on_check_initiated),
        bus.on(Events.CHECK_RESOLVED, handlers.on_check_resolved),
        bus.on(Events.TRAY_ROLL_REQUESTED, handlers.on_roll_requested),
        bus.on(Events.TRAY_DELETE_REQUESTED, handlers.on_delete_requested),
        bus.on(Events.TRAY_CLEAR_REQUESTED, handlers.on_clear_requested),
    ]
