"""Ledger package: the participant ledger and its merge engine.

Public surface
--------------
- :class:`Ledger`, :class:`ParticipantRecord`: immutable ledger values.
- :func:`empty_ledger`: the ledger of a document with no attachment.
- :func:`merge_participants`: pure upsert of targets + metadata patch.
- :class:`MergeTarget`, :class:`MetaPatch`: merge inputs.

Usage example
-------------
::

    from save_tray.ledger import MergeTarget, MetaPatch, empty_ledger, merge_participants

    ledger = merge_participants(
        empty_ledger(),
        [MergeTarget("Actor.gribnak", "Gribnak")],
        MetaPatch(threshold=15, check_kind="dex"),
    )
"""

from save_tray.ledger.merge import MergeTarget, MetaPatch, merge_participants
from save_tray.ledger.model import (
    SCHEMA_VERSION,
    EntityRef,
    Ledger,
    ParticipantRecord,
    empty_ledger,
)

__all__ = [
    "SCHEMA_VERSION",
    "EntityRef",
    "Ledger",
    "MergeTarget",
    "MetaPatch",
    "ParticipantRecord",
    "empty_ledger",
    "merge_participants",
]
