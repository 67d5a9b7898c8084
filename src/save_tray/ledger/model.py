"""Participant ledger data model.

Overview
--------
A ledger is the mergeable state attached to one host document: ledger-wide
metadata (a difficulty ``threshold`` and a ``check_kind``) plus one
:class:`ParticipantRecord` per participating entity.

The ledger has no identity of its own.  It lives as a single opaque
attachment on the document and every commit replaces it wholesale, so the
in-memory types here are immutable values: a mutation produces a new
:class:`Ledger`, it never edits one in place.

Wire format
-----------
The stored form is a JSON object with camelCase keys and ``records`` as an
ordered list::

    {
      "schemaVersion": 1,
      "threshold": 15,
      "checkKind": "dex",
      "records": [
        {"entityRef": "Actor.abc", "displayName": "Gribnak",
         "outcomeValue": 17, "outcomeSuccess": true}
      ]
    }

In memory, ``records`` is a dict keyed by entity reference (insertion
ordered).  :meth:`Ledger.from_wire` is tolerant of damaged payloads: entries
it cannot make sense of are dropped instead of raising.

Tri-state outcomes
------------------
``outcome_success`` is ``True``, ``False`` or ``None``.  ``None`` means
"unknown" and is never collapsed to ``False``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Opaque, globally unique identifier of a participant's entity or a document.
EntityRef = str

# ── Schema version ─────────────────────────────────────────────────────────────
# Written into every stored ledger so a later release can migrate old payloads.
SCHEMA_VERSION = 1


def is_finite_number(value: Any) -> bool:
    """Return True for finite ints/floats.  Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_entity_ref(value: Any) -> bool:
    """Return True when ``value`` can key a ledger record."""
    return isinstance(value, str) and value != ""


@dataclass(frozen=True, slots=True)
class ParticipantRecord:
    """One row of the ledger.

    Attributes:
        entity_ref: Identity key.  Immutable once the record exists.
        display_name: Label shown to users, refreshed on every merge.
        outcome_value: Result of the resolved check, ``None`` while unresolved.
        outcome_success: Whether the outcome met the threshold; ``None`` when
            unknown, which is distinct from ``False``.
    """

    entity_ref: EntityRef
    display_name: str
    outcome_value: int | float | None = None
    outcome_success: bool | None = None

    @property
    def is_resolved(self) -> bool:
        return self.outcome_value is not None

    def to_wire(self) -> dict[str, Any]:
        return {
            "entityRef": self.entity_ref,
            "displayName": self.display_name,
            "outcomeValue": self.outcome_value,
            "outcomeSuccess": self.outcome_success,
        }

    @classmethod
    def from_wire(cls, data: Any) -> ParticipantRecord | None:
        """Build a record from its stored form, or None if it has no usable key."""
        if not isinstance(data, Mapping):
            return None
        entity_ref = data.get("entityRef")
        if not is_entity_ref(entity_ref):
            return None

        name = data.get("displayName")
        outcome_value = data.get("outcomeValue")
        outcome_success = data.get("outcomeSuccess")
        return cls(
            entity_ref=entity_ref,
            display_name=name if isinstance(name, str) else "",
            outcome_value=outcome_value if is_finite_number(outcome_value) else None,
            outcome_success=outcome_success if isinstance(outcome_success, bool) else None,
        )


@dataclass(frozen=True, slots=True)
class Ledger:
    """The full mergeable payload attached to one document.

    Attributes:
        schema_version: Stored format version, currently ``1``.
        threshold: Shared difficulty value for the check, if known.
        check_kind: Shared identifier of the kind of check, if known.
        records: Participant records keyed by entity reference.
    """

    schema_version: int = SCHEMA_VERSION
    threshold: int | float | None = None
    check_kind: str | None = None
    records: dict[EntityRef, ParticipantRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, entity_ref: object) -> bool:
        return entity_ref in self.records

    @property
    def is_empty(self) -> bool:
        return not self.records

    def get(self, entity_ref: EntityRef) -> ParticipantRecord | None:
        return self.records.get(entity_ref)

    def without(self, entity_ref: EntityRef) -> Ledger:
        """Return a copy with ``entity_ref`` removed (metadata unchanged)."""
        remaining = {ref: rec for ref, rec in self.records.items() if ref != entity_ref}
        return Ledger(
            schema_version=self.schema_version,
            threshold=self.threshold,
            check_kind=self.check_kind,
            records=remaining,
        )

    def cleared(self) -> Ledger:
        """Return a copy with the same metadata and no records."""
        return Ledger(
            schema_version=self.schema_version,
            threshold=self.threshold,
            check_kind=self.check_kind,
            records={},
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "threshold": self.threshold,
            "checkKind": self.check_kind,
            "records": [record.to_wire() for record in self.records.values()],
        }

    @classmethod
    def from_wire(cls, data: Any) -> Ledger:
        """Parse a stored attachment.  Missing or malformed input is the empty ledger."""
        if not isinstance(data, Mapping):
            return empty_ledger()

        records: dict[EntityRef, ParticipantRecord] = {}
        raw_records = data.get("records")
        if isinstance(raw_records, list):
            for raw in raw_records:
                record = ParticipantRecord.from_wire(raw)
                # First occurrence wins on duplicate keys.
                if record is not None and record.entity_ref not in records:
                    records[record.entity_ref] = record

        version = data.get("schemaVersion")
        if isinstance(version, bool) or not isinstance(version, int):
            version = SCHEMA_VERSION
        threshold = data.get("threshold")
        check_kind = data.get("checkKind")
        return cls(
            schema_version=version,
            threshold=threshold if is_finite_number(threshold) else None,
            check_kind=check_kind if isinstance(check_kind, str) else None,
            records=records,
        )


def empty_ledger() -> Ledger:
    """The ledger implied by a document that has no attachment yet."""
    return Ledger(schema_version=SCHEMA_VERSION, records={})
