"""Webhook HTTP handlers — FastAPI route handlers for inbound Market22 webhooks.

Each request:
1. Reads raw body (needed for HMAC verification)
2. Verifies signature and timestamp freshness
3. Parses the event
4. Checks idempotency (reject duplicates)
5. Dispatches and returns 202 Accepted immediately

Security contract:
- Never return rejection reasons to the webhook caller (info disclosure)
- Return 202 even for unrecognized events (don't leak event support map)
- Return 401 only for verification failures and a missing secret
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import json
import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from market22_webhooks import config
from market22_webhooks.webhooks.dispatcher import PROVIDER, dispatch_event, parse_event
from market22_webhooks.webhooks.idempotency import is_duplicate
from market22_webhooks.webhooks.verification import SIGNATURE_HEADER, verify_request

logger = logging.getLogger(__name__)

# Receive counters for monitoring (in-memory, per process)
_webhook_counts: dict[str, int] = {}
_rejection_counts: dict[str, int] = {}


def _log_webhook(event_type: str, webhook_id: str, status: str) -> None:
    """Audit log for webhook activity."""
    _webhook_counts[status] = _webhook_counts.get(status, 0) + 1
    logger.info(
        "WEBHOOK_AUDIT provider=%s event=%s id=%s status=%s count=%d",
        PROVIDER,
        event_type,
        webhook_id,
        status,
        _webhook_counts[status],
    )


def _unauthorized() -> JSONResponse:
    return JSONResponse({"status": "unauthorized"}, status_code=401)


def _received(status_code: int = 202) -> JSONResponse:
    return JSONResponse({"status": "received"}, status_code=status_code)


async def _handle_market22_webhook(request: Request) -> JSONResponse:
    """Verify, dedupe and dispatch one Market22 delivery."""
    start = time.time()

    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}

    secret = config.WEBHOOK_SECRET
    if not secret:
        logger.warning("MARKET22_WEBHOOK_SECRET not set — rejecting webhook")
        _log_webhook("unknown", "unknown", "secret_missing")
        return _unauthorized()

    # 1. Verify signature and freshness
    now_ms = int(time.time() * 1000)
    result = verify_request(
        headers, body, secret, now_ms, replay_window_ms=config.REPLAY_WINDOW_MS
    )
    if not result:
        reason = result.reason.value
        _rejection_counts[reason] = _rejection_counts.get(reason, 0) + 1
        logger.warning("Market22 webhook rejected: %s", reason)
        _log_webhook("unknown", "unknown", "verification_failed")
        return _unauthorized()

    webhook_id = headers.get(SIGNATURE_HEADER, "")

    # 2. Parse JSON payload
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        _log_webhook("unknown", webhook_id, "invalid_json")
        # Return 202 anyway — don't leak that we couldn't parse
        return _received()
    if not isinstance(payload, dict):
        _log_webhook("unknown", webhook_id, "invalid_json")
        return _received()

    # 3. Normalize
    event = parse_event(payload, webhook_id=webhook_id)
    if event is None:
        _log_webhook("unrecognized", webhook_id, "skipped")
        return _received()

    # 4. Idempotency
    if is_duplicate(event.webhook_id):
        _log_webhook(event.event_type, event.webhook_id, "duplicate")
        return _received(status_code=200)

    # 5. Dispatch
    try:
        dispatch_event(event)
        _log_webhook(event.event_type, event.webhook_id, "dispatched")
    except Exception:
        logger.exception("Failed to dispatch webhook event: %s/%s", PROVIDER, event.event_type)
        _log_webhook(event.event_type, event.webhook_id, "dispatch_failed")

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Webhook processed in %.1fms: %s/%s", elapsed_ms, PROVIDER, event.event_type)

    return _received()


def register_webhook_routes(app: FastAPI) -> None:
    """Register Market22 webhook endpoint routes on the FastAPI app."""

    @app.post("/webhooks/market22")
    async def market22_webhook(request: Request):
        """Receive Market22 webhooks (signature-verified)."""
        return await _handle_market22_webhook(request)

    @app.get("/webhooks/status")
    async def webhook_status():
        """Webhook receive counts by status and rejection counts by reason."""
        return {
            "counts": dict(_webhook_counts),
            "rejections": dict(_rejection_counts),
        }

    logger.info("Webhook routes registered: /webhooks/market22")
