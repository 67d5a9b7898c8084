"""
HTTP transport for the delegated write channel.

Delivers set-attachment payloads to a peer's authority endpoint
(:mod:`save_tray.api.server`) with httpx. Every delivery problem becomes a
:exc:`TransportError`; the requester turns that into ``transport-failure``.

The transport can own its client or borrow one:

    async with HttpTransport({"gm": "http://10.0.0.5:8100"}) as transport:
        writer = DelegatedWriter(directory, transport)
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from save_tray.api.server import SET_ATTACHMENT_PATH
from save_tray.channel.protocols import PeerRef, TransportError

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    Sends payloads to peers addressed by base URL.

    Args:
        peer_urls: Peer id -> base URL of its authority endpoint.
        client: Optional shared AsyncClient. When omitted the transport
            creates one on ``__aenter__`` and closes it on ``__aexit__``.
    """

    def __init__(
        self, peer_urls: Mapping[PeerRef, str], client: httpx.AsyncClient | None = None
    ) -> None:
        self.peer_urls = dict(peer_urls)
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> HttpTransport:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("HttpTransport must be used as async context manager")
        return self._client

    async def send(
        self, peer: PeerRef, payload: Mapping[str, Any], *, timeout: float
    ) -> Mapping[str, Any]:
        base_url = self.peer_urls.get(peer)
        if not base_url:
            raise TransportError(f"No address known for peer {peer!r}")

        url = base_url.rstrip("/") + SET_ATTACHMENT_PATH
        try:
            response = await self.client.post(url, json=dict(payload), timeout=timeout)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out talking to {peer!r}") from exc
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Peer {peer!r} answered HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Could not reach {peer!r}: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Peer {peer!r} returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise TransportError(f"Peer {peer!r} returned a non-object reply")
        return body
