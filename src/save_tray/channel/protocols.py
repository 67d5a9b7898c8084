"""Host capabilities consumed by the delegated write channel.

The core never decides who the coordinator is, how bytes move between peers
or where documents live.  The host supplies those as the protocols below;
:mod:`save_tray.session.memory`, :mod:`save_tray.session.files` and
:mod:`save_tray.transport.http` are the implementations shipped with the
package.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

# Opaque identifier of a peer in the session.
PeerRef = str


class TransportError(Exception):
    """Raised by a transport when a payload could not be delivered or answered."""


@runtime_checkable
class Document(Protocol):
    """A host document that can carry attachments."""

    def get_attachment(self, namespace: str, key: str) -> Any: ...

    async def set_attachment(self, namespace: str, key: str, value: Any) -> None: ...


class DocumentStore(Protocol):
    async def resolve(self, document_ref: str) -> Any | None:
        """Return the document (which may not support attachments) or None."""
        ...


class CoordinatorDirectory(Protocol):
    def current_coordinator(self) -> PeerRef | None: ...


class Transport(Protocol):
    async def send(
        self, peer: PeerRef, payload: Mapping[str, Any], *, timeout: float
    ) -> Mapping[str, Any]:
        """Deliver ``payload`` to ``peer`` and return its reply.

        Raises:
            TransportError: If the payload could not be delivered or answered.
        """
        ...


def supports_attachments(document: Any) -> bool:
    """True when ``document`` exposes callable get/set attachment methods."""
    return callable(getattr(document, "get_attachment", None)) and callable(
        getattr(document, "set_attachment", None)
    )
