"""
Read-only tray view of a ledger.

The presentation layer renders these rows; it never reads the ledger
directly. Permissions follow the session's two trust questions:

    can_delete  coordinator, or the peer that owns the host document
    can_roll    coordinator, or the peer that owns the participant's entity,
                and only while the participant is unresolved

Damage helpers:

    damage_targets             participants to target when damage is rolled
    damage_multiplier_presets  multipliers for participants who saved
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from save_tray.ledger.model import EntityRef, Ledger, ParticipantRecord


class RowStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TrayViewer:
    """Who is looking at the tray."""

    peer_id: str
    is_coordinator: bool = False
    owned_entities: frozenset[EntityRef] = field(default_factory=frozenset)

    @classmethod
    def for_peer(
        cls, peer_id: str, *, is_coordinator: bool = False, owned: Iterable[EntityRef] = ()
    ) -> TrayViewer:
        return cls(
            peer_id=peer_id, is_coordinator=is_coordinator, owned_entities=frozenset(owned)
        )


@dataclass(frozen=True)
class TrayRow:
    entity_ref: EntityRef
    display_name: str
    outcome_value: int | float | None
    status: RowStatus
    can_delete: bool
    can_roll: bool


@dataclass(frozen=True)
class TrayView:
    check_kind: str | None
    threshold: int | float | None
    rows: tuple[TrayRow, ...]

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def can_clear(self) -> bool:
        return any(row.can_delete for row in self.rows)


def row_status(record: ParticipantRecord) -> RowStatus:
    # Unresolved records stay pending even if a stale success flag survived.
    if record.outcome_value is None:
        return RowStatus.PENDING
    if record.outcome_success is True:
        return RowStatus.SUCCESS
    if record.outcome_success is False:
        return RowStatus.FAILURE
    return RowStatus.UNKNOWN


def build_tray_view(
    ledger: Ledger, viewer: TrayViewer, *, document_owner: str | None = None
) -> TrayView:
    """Project ``ledger`` into rows with per-viewer permissions."""
    can_delete = viewer.is_coordinator or (
        document_owner is not None and document_owner == viewer.peer_id
    )

    rows = []
    for record in ledger.records.values():
        owns_entity = record.entity_ref in viewer.owned_entities
        rows.append(
            TrayRow(
                entity_ref=record.entity_ref,
                display_name=record.display_name or "Unknown",
                outcome_value=record.outcome_value,
                status=row_status(record),
                can_delete=can_delete,
                can_roll=not record.is_resolved and (viewer.is_coordinator or owns_entity),
            )
        )

    return TrayView(check_kind=ledger.check_kind, threshold=ledger.threshold, rows=tuple(rows))


def damage_targets(ledger: Ledger) -> list[EntityRef]:
    """Entity refs to target when damage for this check is rolled."""
    return list(ledger.records)


# damage-on-save mode -> multiplier applied to participants who saved
_SAVE_MULTIPLIERS = {"none": 0.0, "half": 0.5}


def damage_multiplier_presets(
    ledger: Ledger, damage_on_save: str | None
) -> dict[EntityRef, float]:
    """
    Multipliers to preselect in a damage application for successful saves.

    Only participants whose ``outcome_success`` is exactly True are included;
    unknown outcomes get no preset. Modes other than "none"/"half" preset
    nothing.
    """
    multiplier = _SAVE_MULTIPLIERS.get(damage_on_save or "")
    if multiplier is None:
        return {}
    return {
        ref: multiplier
        for ref, record in ledger.records.items()
        if record.outcome_success is True
    }
