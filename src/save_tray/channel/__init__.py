"""Delegated write channel: the only path by which a ledger is persisted.

Public surface
--------------
- :class:`DelegatedWriter`: requester role, runs on every peer.
- :class:`AuthorityHandler`: serves writes on the current coordinator.
- :class:`CommitResult`, :class:`CommitReason`: result values.
- :exc:`TransportError`: raised by transports, never by the channel.
"""

from save_tray.channel.authority import AuthorityHandler
from save_tray.channel.models import CommitReason, CommitResult, SetAttachmentRequest
from save_tray.channel.protocols import (
    CoordinatorDirectory,
    Document,
    DocumentStore,
    PeerRef,
    Transport,
    TransportError,
)
from save_tray.channel.requester import DelegatedWriter

__all__ = [
    "AuthorityHandler",
    "CommitReason",
    "CommitResult",
    "CoordinatorDirectory",
    "DelegatedWriter",
    "Document",
    "DocumentStore",
    "PeerRef",
    "SetAttachmentRequest",
    "Transport",
    "TransportError",
]
