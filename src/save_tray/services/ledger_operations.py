"""
Ledger mutation operations: attach/merge, delete-one, clear-all.

Why this module exists:
    Event adapters and tray intents all need the same fetch -> compute ->
    commit cycle. This service centralizes it so every mutation reads the
    current snapshot the same way and every write goes through the
    delegated write channel.

Concurrency:
    The three steps are not atomic. Two operations on the same document can
    both fetch before either commits; the later commit then replaces the
    earlier one (lost update). The storage primitive is whole-value
    replacement, so this is accepted. Keep the window short: do not add
    awaits between fetch and commit.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from save_tray.channel.models import CommitReason, CommitResult
from save_tray.channel.protocols import DocumentStore, supports_attachments
from save_tray.channel.requester import DelegatedWriter
from save_tray.config import config
from save_tray.ledger.merge import MergeTarget, MetaPatch, merge_participants
from save_tray.ledger.model import EntityRef, Ledger, empty_ledger

logger = logging.getLogger(__name__)


class DocumentUnavailable(LookupError):
    """The document could not be read on this peer."""

    def __init__(self, document_ref: str, reason: CommitReason) -> None:
        super().__init__(f"{document_ref}: {reason}")
        self.reason = reason


class LedgerOperations:
    """
    Externally triggered ledger mutations for one attachment slot.

    Every method returns ``None`` when it decided there was nothing to do
    (no commit attempted), otherwise the :class:`CommitResult` of the commit.
    Nothing raises across this boundary.

    Args:
        store: Local view of documents, used to read the current ledger.
        writer: Delegated writer used for every commit.
        namespace: Attachment namespace (default from config).
        key: Attachment key (default from config).
    """

    def __init__(
        self,
        store: DocumentStore,
        writer: DelegatedWriter,
        *,
        namespace: str | None = None,
        key: str | None = None,
    ) -> None:
        self._store = store
        self._writer = writer
        self.namespace = namespace or config.channel.namespace
        self.key = key or config.channel.key

    async def read_ledger(self, document_ref: str) -> Ledger:
        """Current ledger of a document, or the empty ledger if none is stored."""
        try:
            return await self._fetch(document_ref)
        except DocumentUnavailable:
            return empty_ledger()

    async def _fetch(self, document_ref: str) -> Ledger:
        try:
            document = await self._store.resolve(document_ref)
            if document is None:
                raise DocumentUnavailable(document_ref, CommitReason.NOT_FOUND)
            if not supports_attachments(document):
                raise DocumentUnavailable(document_ref, CommitReason.UNSUPPORTED_TARGET)
            stored = document.get_attachment(self.namespace, self.key)
        except DocumentUnavailable:
            raise
        except Exception as exc:
            logger.warning("Reading %s failed", document_ref, exc_info=True)
            raise DocumentUnavailable(document_ref, CommitReason.INTERNAL_ERROR) from exc
        return Ledger.from_wire(stored)

    async def _commit(self, document_ref: str, ledger: Ledger, action: str) -> CommitResult:
        result = await self._writer.commit(document_ref, self.namespace, self.key, ledger)
        if result.ok:
            logger.debug("%s on %s committed (%d records)", action, document_ref, len(ledger))
        else:
            logger.warning("%s on %s failed: %s", action, document_ref, result.reason)
        return result

    async def attach_participants(
        self,
        document_ref: str,
        targets: Sequence[MergeTarget],
        patch: MetaPatch | None = None,
    ) -> CommitResult | None:
        """Merge ``targets`` and ``patch`` into the document's ledger and commit it."""
        if not targets:
            return None
        try:
            current = await self._fetch(document_ref)
        except DocumentUnavailable as exc:
            logger.warning("Attach skipped: %s", exc)
            return CommitResult.failure(exc.reason)

        merged = merge_participants(current, targets, patch)
        if merged is None:
            return None
        return await self._commit(document_ref, merged, "Attach")

    async def delete_participant(
        self, document_ref: str, entity_ref: EntityRef
    ) -> CommitResult | None:
        """Remove one record. No-op when the record is not present."""
        try:
            current = await self._fetch(document_ref)
        except DocumentUnavailable as exc:
            logger.warning("Delete skipped: %s", exc)
            return CommitResult.failure(exc.reason)

        if entity_ref not in current:
            return None
        return await self._commit(document_ref, current.without(entity_ref), "Delete")

    async def clear_participants(self, document_ref: str) -> CommitResult | None:
        """Remove every record, keeping threshold and check kind. No-op when empty."""
        try:
            current = await self._fetch(document_ref)
        except DocumentUnavailable as exc:
            logger.warning("Clear skipped: %s", exc)
            return CommitResult.failure(exc.reason)

        if current.is_empty:
            return None
        return await self._commit(document_ref, current.cleared(), "Clear")
