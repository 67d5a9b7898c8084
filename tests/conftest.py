"""
Shared pytest fixtures for the save tray test suite.

The default session is fully in memory:
- one shared document store holding "Message.abc" (owned by "alice")
- a peer directory where "gm" is the coordinator
- a local transport with an authority handler installed on every peer
- a writer and ledger operations wired to all of the above
"""

from __future__ import annotations

import pytest

from save_tray.channel.authority import AuthorityHandler
from save_tray.channel.requester import DelegatedWriter
from save_tray.services.ledger_operations import LedgerOperations
from save_tray.session.memory import (
    LocalTransport,
    MemoryDocument,
    MemoryDocumentStore,
    PeerDirectory,
)

from tests.helpers import DOCUMENT_REF, KEY, NAMESPACE, PEERS


# ============================================================================
# SESSION FIXTURES
# ============================================================================


@pytest.fixture
def store() -> MemoryDocumentStore:
    store = MemoryDocumentStore()
    store.add(MemoryDocument(DOCUMENT_REF, owner="alice"))
    return store


@pytest.fixture
def document(store: MemoryDocumentStore) -> MemoryDocument:
    return store.get(DOCUMENT_REF)


@pytest.fixture
def directory() -> PeerDirectory:
    return PeerDirectory(coordinator="gm")


@pytest.fixture
def transport(directory: PeerDirectory, store: MemoryDocumentStore) -> LocalTransport:
    """Local transport with an authority handler installed on every peer."""
    transport = LocalTransport()
    for peer in PEERS:
        transport.register(peer, AuthorityHandler(peer, directory, store))
    return transport


@pytest.fixture
def writer(directory: PeerDirectory, transport: LocalTransport) -> DelegatedWriter:
    return DelegatedWriter(directory, transport, timeout=1.0)


@pytest.fixture
def operations(store: MemoryDocumentStore, writer: DelegatedWriter) -> LedgerOperations:
    return LedgerOperations(store, writer, namespace=NAMESPACE, key=KEY)
