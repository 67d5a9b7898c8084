"""Merge engine for the participant ledger.

Two independent event sources feed the ledger and neither has the full
picture.  "A check was initiated against these targets, threshold 15" knows
the targets but no outcomes; "this target rolled 17" knows one outcome but
nothing about the other participants.  The merge policy is therefore
*fill-if-present, else preserve*:

- display names are always refreshed;
- an outcome value replaces the stored one only if it is a finite number;
- an outcome success flag replaces the stored one only if it is a real bool;
- ledger-wide threshold and check kind replace the stored ones only if given
  (a finite number and a string respectively).

:func:`merge_participants` is pure.  It reads the existing ledger and returns
a new one; nothing is persisted here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from save_tray.ledger.model import (
    EntityRef,
    Ledger,
    ParticipantRecord,
    is_entity_ref,
    is_finite_number,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MergeTarget:
    """An entity to add to (or refresh in) the ledger."""

    entity_ref: EntityRef | None
    display_name: str = ""


@dataclass(frozen=True, slots=True)
class MetaPatch:
    """Fields applied uniformly to every target of one merge call.

    Values are deliberately untyped at runtime: event payloads arrive from
    outside and are checked field by field during the merge.
    """

    threshold: Any = None
    check_kind: Any = None
    outcome_value: Any = None
    outcome_success: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> MetaPatch:
        """Accept snake_case or the camelCase wire names."""
        if not data:
            return cls()
        return cls(
            threshold=data.get("threshold"),
            check_kind=data.get("check_kind", data.get("checkKind")),
            outcome_value=data.get("outcome_value", data.get("outcomeValue")),
            outcome_success=data.get("outcome_success", data.get("outcomeSuccess")),
        )


def _merged_record(
    prior: ParticipantRecord | None, entity_ref: EntityRef, name: str, patch: MetaPatch
) -> ParticipantRecord:
    value = patch.outcome_value if is_finite_number(patch.outcome_value) else None
    success = patch.outcome_success if isinstance(patch.outcome_success, bool) else None

    if prior is None:
        return ParticipantRecord(
            entity_ref=entity_ref,
            display_name=name,
            outcome_value=value,
            outcome_success=success,
        )

    return replace(
        prior,
        display_name=name,
        outcome_value=value if value is not None else prior.outcome_value,
        outcome_success=success if success is not None else prior.outcome_success,
    )


def merge_participants(
    existing: Ledger,
    targets: Sequence[MergeTarget],
    patch: MetaPatch | None = None,
) -> Ledger | None:
    """
    Combine ``existing`` with incoming targets and a metadata patch.

    Args:
        existing: Current ledger (the empty ledger when nothing is stored).
        targets: Entities to upsert, in order.  Targets whose reference is not
            a non-empty string are skipped silently.
        patch: Optional metadata applied to every target in this call.

    Returns:
        The new ledger, or ``None`` when ``targets`` is empty (no-op).
    """
    if not targets:
        return None
    patch = patch or MetaPatch()

    records = dict(existing.records)
    skipped = 0
    for target in targets:
        entity_ref = target.entity_ref
        if not is_entity_ref(entity_ref):
            skipped += 1
            continue
        name = target.display_name if isinstance(target.display_name, str) else ""
        records[entity_ref] = _merged_record(records.get(entity_ref), entity_ref, name, patch)

    if skipped:
        logger.debug("Skipped %d merge target(s) without an entity reference", skipped)

    threshold = patch.threshold if is_finite_number(patch.threshold) else existing.threshold
    check_kind = patch.check_kind if isinstance(patch.check_kind, str) else existing.check_kind

    return Ledger(
        schema_version=existing.schema_version,
        threshold=threshold,
        check_kind=check_kind,
        records=records,
    )
