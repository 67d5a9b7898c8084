"""
In-memory session host: documents, coordinator directory and transport.

Everything a peer needs from its host, kept in process. Used for tests,
simulations and single-process sessions where every peer shares one loop.

    store = MemoryDocumentStore()
    store.add(MemoryDocument("Message.abc", owner="alice"))

    directory = PeerDirectory(coordinator="gm")
    transport = LocalTransport()
    transport.register("gm", AuthorityHandler("gm", directory, store))

    writer = DelegatedWriter(directory, transport, timeout=1.0)

All peers share one ``MemoryDocumentStore`` which stands in for the
replicated document state every peer can read.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Mapping
from typing import Any

from save_tray.channel.authority import AuthorityHandler
from save_tray.channel.protocols import PeerRef, TransportError

logger = logging.getLogger(__name__)


class MemoryDocument:
    """A document with namespaced attachments.

    Attachment values are deep-copied on the way in and out so a caller can
    never mutate stored state by accident.
    """

    def __init__(self, document_ref: str, *, owner: str | None = None) -> None:
        self.document_ref = document_ref
        self.owner = owner
        self._attachments: dict[str, dict[str, Any]] = {}
        self.write_count = 0

    def get_attachment(self, namespace: str, key: str) -> Any:
        return copy.deepcopy(self._attachments.get(namespace, {}).get(key))

    async def set_attachment(self, namespace: str, key: str, value: Any) -> None:
        self._attachments.setdefault(namespace, {})[key] = copy.deepcopy(value)
        self.write_count += 1


class PlainDocument:
    """A document that cannot hold attachments (for example a scene or a folder)."""

    def __init__(self, document_ref: str) -> None:
        self.document_ref = document_ref


class MemoryDocumentStore:
    def __init__(self) -> None:
        self._documents: dict[str, Any] = {}

    def add(self, document: Any) -> Any:
        self._documents[document.document_ref] = document
        return document

    def remove(self, document_ref: str) -> None:
        self._documents.pop(document_ref, None)

    def get(self, document_ref: str) -> Any | None:
        return self._documents.get(document_ref)

    async def resolve(self, document_ref: str) -> Any | None:
        return self._documents.get(document_ref)


class PeerDirectory:
    """
    Tracks which peer holds coordinator status.

    Election is the host's business; this directory only records its outcome.
    ``hand_off(None)`` models "no coordinator online".
    """

    def __init__(self, coordinator: PeerRef | None = None) -> None:
        self._coordinator = coordinator

    def current_coordinator(self) -> PeerRef | None:
        return self._coordinator

    def hand_off(self, coordinator: PeerRef | None) -> None:
        logger.info("Coordinator handoff: %s -> %s", self._coordinator, coordinator)
        self._coordinator = coordinator


class LocalTransport:
    """
    Delivers payloads to AuthorityHandlers registered in this process.

    Args:
        latency: Seconds every delivery takes before the handler sees it.
            Lets tests model a reply that arrives after the requester gave up.

    Raises (from send):
        TransportError: If no handler is registered for the peer.
    """

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency
        self._handlers: dict[PeerRef, AuthorityHandler] = {}
        self.sent: list[tuple[PeerRef, dict[str, Any]]] = []

    def register(self, peer: PeerRef, handler: AuthorityHandler) -> None:
        self._handlers[peer] = handler

    def unregister(self, peer: PeerRef) -> None:
        self._handlers.pop(peer, None)

    async def send(
        self, peer: PeerRef, payload: Mapping[str, Any], *, timeout: float
    ) -> Mapping[str, Any]:
        self.sent.append((peer, copy.deepcopy(dict(payload))))
        handler = self._handlers.get(peer)
        if handler is None:
            raise TransportError(f"peer {peer!r} is not reachable")
        if self.latency:
            await asyncio.sleep(self.latency)
        result = await handler.handle(copy.deepcopy(dict(payload)))
        return result.to_reply()
