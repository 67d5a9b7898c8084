"""Authority side of the delegated write channel.

An :class:`AuthorityHandler` is installed on every peer so that whichever
peer is elected coordinator can serve writes.  It is the only code that ever
persists a ledger attachment.

Checks, in order::

    serving peer is not the coordinator     -> not-authorized
    payload shape is wrong                  -> bad-request
    document reference does not resolve    -> not-found
    document cannot hold attachments        -> unsupported-target
    write succeeded                         -> {ok: true, changed: true}
    anything raised along the way           -> internal-error

:meth:`AuthorityHandler.handle` never raises, so one bad request cannot take
the handler down for the requests behind it.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from save_tray.channel.models import CommitReason, CommitResult, SetAttachmentRequest
from save_tray.channel.protocols import (
    CoordinatorDirectory,
    DocumentStore,
    PeerRef,
    supports_attachments,
)

logger = logging.getLogger(__name__)


class AuthorityHandler:
    """
    Serves set-attachment requests for one peer.

    Args:
        peer_id: The peer this handler runs on.
        directory: Used to confirm the peer still holds coordinator status at
            the moment each request is processed.
        store: Resolves document references.
    """

    def __init__(
        self, peer_id: PeerRef, directory: CoordinatorDirectory, store: DocumentStore
    ) -> None:
        self.peer_id = peer_id
        self._directory = directory
        self._store = store

    @property
    def is_coordinator(self) -> bool:
        return self._directory.current_coordinator() == self.peer_id

    async def handle(self, payload: Any) -> CommitResult:
        """Validate and apply one request. Always returns a result."""
        try:
            return await self._handle(payload)
        except Exception:
            logger.exception("Set-attachment request failed on %s: %r", self.peer_id, payload)
            return CommitResult.failure(CommitReason.INTERNAL_ERROR)

    async def _handle(self, payload: Any) -> CommitResult:
        if not self.is_coordinator:
            logger.info("Peer %s refused a write: not the coordinator", self.peer_id)
            return CommitResult.failure(CommitReason.NOT_AUTHORIZED)

        try:
            request = SetAttachmentRequest.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed set-attachment request %r: %s", payload, exc)
            return CommitResult.failure(CommitReason.BAD_REQUEST)

        document = await self._store.resolve(request.document_ref)
        if document is None:
            return CommitResult.failure(CommitReason.NOT_FOUND)

        if not supports_attachments(document):
            return CommitResult.failure(CommitReason.UNSUPPORTED_TARGET)

        await document.set_attachment(request.namespace, request.key, request.value)
        logger.debug(
            "Stored %s/%s on %s", request.namespace, request.key, request.document_ref
        )
        return CommitResult.success()
