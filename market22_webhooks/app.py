"""FastAPI application factory for the Market22 webhook receiver.

Run with an ASGI server, e.g. ``uvicorn market22_webhooks.app:app``.
"""

from __future__ import annotations

from fastapi import FastAPI

from market22_webhooks import __version__
from market22_webhooks.events import broadcaster
from market22_webhooks.webhooks.handlers import register_webhook_routes


def create_app() -> FastAPI:
    """Build the receiver app with webhook routes and a liveness probe."""
    app = FastAPI(title="Market22 Webhook Receiver", version=__version__)

    register_webhook_routes(app)

    @app.get("/health")
    async def health():
        return {"status": "ok", "subscribers": broadcaster.subscriber_count}

    return app


app = create_app()
