"""
Event Type Constants for the save tray.

Using constants instead of string literals gives a single source of truth for
event names and turns typos into attribute errors.

=============================================================================
NAMING CONVENTION
=============================================================================

Events use "domain:action" format in PAST TENSE for facts:

    "check:initiated", "check:resolved", "ledger:committed"

Tray intents ("tray:*_requested") are facts too: a user asked for something.
Whether the request is honoured is decided by the handler.

=============================================================================
USAGE
=============================================================================

    from save_tray.core.bus import bus
    from save_tray.core.events import Events

    bus.emit(Events.CHECK_RESOLVED, {"originDocumentRef": "Message.abc", ...})
    bus.on(Events.LEDGER_COMMITTED, on_committed)

=============================================================================
"""


class Events:
    """
    All standard event types of the save tray.

    Organized by domain for easy navigation.
    """

    # =========================================================================
    # CHECKS (event sources)
    # =========================================================================

    CHECK_INITIATED = "check:initiated"
    """
    Emitted when an action asking targets for a check has been used.

    Detail: {
        "documentRef": str,     # Document that carries the ledger
        "checkType": str,       # Only "save" checks populate a tray
        "targets": [{"entityRef": str, "displayName": str}, ...],
        "threshold": int | None,
        "checkKind": str | None
    }
    """

    CHECK_RESOLVED = "check:resolved"
    """
    Emitted when one participant's check has been rolled.

    Detail: {
        "originDocumentRef": str,  # Document whose tray requested the check
        "entityRef": str,
        "displayName": str,
        "total": int,
        "threshold": int | None,
        "checkKind": str | None,
        "isSuccess": bool | None   # Authoritative verdict, when known
    }
    """

    CHECK_ROLL_REQUESTED = "check:roll_requested"
    """
    Emitted when the tray asks the host to roll a check for one participant.

    Detail: {"request": RollRequest}
    """

    # =========================================================================
    # TRAY INTENTS (presentation layer)
    # =========================================================================

    TRAY_ROLL_REQUESTED = "tray:roll_requested"
    """
    Detail: {"documentRef": str, "entityRef": str}
    """

    TRAY_DELETE_REQUESTED = "tray:delete_requested"
    """
    Detail: {"documentRef": str, "entityRef": str}
    """

    TRAY_CLEAR_REQUESTED = "tray:clear_requested"
    """
    Detail: {"documentRef": str}
    """

    # =========================================================================
    # LEDGER
    # =========================================================================

    LEDGER_COMMITTED = "ledger:committed"
    """
    Emitted after the coordinator accepted a ledger write.

    Detail: {"documentRef": str, "action": str}
    """

    LEDGER_COMMIT_FAILED = "ledger:commit_failed"
    """
    Emitted when a ledger write was not persisted.

    Detail: {"documentRef": str, "action": str, "reason": str}
    """


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def _standard_events() -> set[str]:
    return {
        value
        for name, value in vars(Events).items()
        if isinstance(value, str) and not name.startswith("_")
    }


def is_valid_event_type(event_type: str) -> bool:
    """True if ``event_type`` is one of the predefined constants."""
    return event_type in _standard_events()


def get_all_event_types() -> list[str]:
    """Sorted list of all standard event types."""
    return sorted(_standard_events())
