"""
FastAPI endpoint exposing a peer's authority handler over HTTP.

Every peer that may be elected coordinator runs this app so that requesters
using :class:`save_tray.transport.http.HttpTransport` can reach it. The route
is a thin relay: the handler decides everything and the reply is its result,
always with HTTP 200. Transport-level failures are the only non-200 outcomes.

Routes:
    POST /queries/set-attachment   body: SetAttachmentRequest (camelCase)
    GET  /health                   liveness and coordinator status
"""

import logging

from fastapi import FastAPI, Request

from save_tray import __version__
from save_tray.channel.authority import AuthorityHandler

logger = logging.getLogger(__name__)

SET_ATTACHMENT_PATH = "/queries/set-attachment"


def create_app(handler: AuthorityHandler) -> FastAPI:
    """
    Build the authority app for one peer.

    Args:
        handler: The peer's authority handler.

    Returns:
        FastAPI application with the set-attachment and health routes.
    """
    app = FastAPI(title="Save Tray Authority", version=__version__)
    app.state.handler = handler

    @app.post(SET_ATTACHMENT_PATH)
    async def set_attachment(request: Request) -> dict:
        """Relay one set-attachment request to the authority handler."""
        try:
            payload = await request.json()
        except ValueError:
            # The handler still answers: not-authorized first, else bad-request.
            logger.warning("Non-JSON set-attachment body from %s", request.client)
            payload = None

        result = await handler.handle(payload)
        return result.to_reply()

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint."""
        return {
            "status": "ok",
            "peer": handler.peer_id,
            "coordinator": handler.is_coordinator,
            "version": __version__,
        }

    return app
