"""
Shared test constants and helpers.

Kept out of conftest.py so test modules can import them directly.
"""

from save_tray.ledger.model import Ledger

NAMESPACE = "save-tray"
KEY = "participants"
DOCUMENT_REF = "Message.abc"
PEERS = ("gm", "alice", "bob")


def stored_ledger(document) -> Ledger:
    """Parse whatever the document currently holds in the tray slot."""
    return Ledger.from_wire(document.get_attachment(NAMESPACE, KEY))
