"""Requester side of the delegated write channel.

Every peer runs a :class:`DelegatedWriter`.  It never writes a document
itself: it finds the current coordinator, ships the complete ledger to it and
waits a bounded time for the reply.

Outcomes::

    no coordinator            -> no-authority       (nothing is sent)
    reply received            -> the reply, verbatim
    wait expired              -> transport-failure
    delivery failed           -> transport-failure
    reply is not a result     -> transport-failure

There are no retries here.  Whether a ``transport-failure`` is worth retrying
is the caller's decision.
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from save_tray.channel.models import CommitReason, CommitResult, SetAttachmentRequest
from save_tray.channel.protocols import CoordinatorDirectory, Transport, TransportError
from save_tray.config import config
from save_tray.ledger.model import Ledger

logger = logging.getLogger(__name__)


class DelegatedWriter:
    """
    Commits ledgers through whichever peer currently holds coordinator status.

    Args:
        directory: Answers "who is the coordinator right now?"
        transport: Delivers a payload to a peer and returns its reply.
        timeout: Seconds to wait for the reply. Defaults to
            ``config.channel.commit_timeout_seconds``.

    Example:
        writer = DelegatedWriter(directory, transport)
        result = await writer.commit("Message.abc", "save-tray", "participants", ledger)
        if not result.ok:
            logger.warning("Commit failed: %s", result.reason)
    """

    def __init__(
        self,
        directory: CoordinatorDirectory,
        transport: Transport,
        *,
        timeout: float | None = None,
    ) -> None:
        self._directory = directory
        self._transport = transport
        self.timeout = timeout if timeout is not None else config.channel.commit_timeout_seconds

    async def commit(
        self, document_ref: str, namespace: str, key: str, ledger: Ledger
    ) -> CommitResult:
        """Ask the coordinator to replace the attachment with ``ledger``."""
        coordinator = self._directory.current_coordinator()
        if coordinator is None:
            logger.warning("No coordinator online; commit to %s abandoned", document_ref)
            return CommitResult.failure(CommitReason.NO_AUTHORITY)

        payload = SetAttachmentRequest.model_construct(
            document_ref=document_ref,
            namespace=namespace,
            key=key,
            value=ledger.to_wire(),
        ).to_payload()

        try:
            reply = await asyncio.wait_for(
                self._transport.send(coordinator, payload, timeout=self.timeout),
                timeout=self.timeout,
            )
        except TimeoutError:
            logger.warning(
                "Coordinator %s did not answer within %.1fs for %s",
                coordinator,
                self.timeout,
                document_ref,
            )
            return CommitResult.failure(CommitReason.TRANSPORT_FAILURE)
        except TransportError as exc:
            logger.warning("Commit to %s via %s failed: %s", document_ref, coordinator, exc)
            return CommitResult.failure(CommitReason.TRANSPORT_FAILURE)
        except Exception:
            logger.warning(
                "Transport raised while committing %s via %s",
                document_ref,
                coordinator,
                exc_info=True,
            )
            return CommitResult.failure(CommitReason.TRANSPORT_FAILURE)

        try:
            result = CommitResult.model_validate(reply)
        except ValidationError:
            logger.warning("Coordinator %s sent an unreadable reply: %r", coordinator, reply)
            return CommitResult.failure(CommitReason.TRANSPORT_FAILURE)

        logger.debug("Commit to %s via %s -> %s", document_ref, coordinator, result)
        return result
