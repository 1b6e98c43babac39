"""Webhook event dispatcher — routes verified Market22 payloads to subscribers.

Maps Market22 event types to normalized WebhookEvents and broadcasts them
for async processing. Payloads are consumed verbatim; only the event type and
the order/product identifier are read, so receivers can re-fetch authoritative
state from the Market22 API.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from market22_webhooks.events import broadcaster

logger = logging.getLogger(__name__)

# Maximum summary field length to keep log lines and broadcasts bounded
_MAX_FIELD_LENGTH = 500

PROVIDER = "market22"

# Market22 event type -> summary template
_EVENT_MAP: dict[str, str] = {
    "product.approved": "Market22 product approved: {ref}.",
    "product.updated": "Market22 product updated: {ref}.",
    "product.deactivated": "Market22 product deactivated: {ref}.",
    "order.created": "Market22 order created: {ref}.",
    "order.paid": "Market22 order paid: {ref}.",
    "order.abandoned": "Market22 checkout abandoned: {ref}.",
    "order.subscription_renewed": "Market22 subscription renewed: {ref}.",
    "order.subscription_payment_failed": "Market22 subscription payment failed: {ref}.",
    "order.subscription_updated": "Market22 subscription updated: {ref}.",
    "order.subscription_cancelled": "Market22 subscription cancelled: {ref}.",
}

EVENT_TYPES: frozenset[str] = frozenset(_EVENT_MAP)

# Events that need immediate attention
_HIGH_PRIORITY_EVENTS = {
    "order.subscription_payment_failed",
    "order.subscription_cancelled",
    "product.deactivated",
}


class Market22Payload(BaseModel):
    """Fields read from a Market22 webhook body; everything else passes through."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    event: str | None = None
    type: str | None = None
    order_id: str | int | None = Field(default=None, alias="orderId")
    product_id: str | int | None = Field(default=None, alias="productId")
    data: dict[str, Any] | None = None


@dataclass
class WebhookEvent:
    """Normalized webhook event ready for dispatch."""

    event_type: str
    resource: str  # order, product
    resource_id: str
    webhook_id: str
    payload: dict[str, Any]
    summary: str
    priority: str = "normal"  # normal, high
    provider: str = PROVIDER


def _sanitize_field(value: Any) -> str:
    """Sanitize a payload field value for safe inclusion in summaries."""
    if value is None:
        return ""
    s = str(value)
    # Strip HTML tags
    s = re.sub(r"<[^>]+>", "", s)
    s = html.unescape(s)
    s = re.sub(r"\s+", " ", s).strip()
    if len(s) > _MAX_FIELD_LENGTH:
        s = s[:_MAX_FIELD_LENGTH] + "..."
    return s


def _extract_resource_id(resource: str, parsed: Market22Payload) -> str:
    """Find the order/product identifier at top level or inside ``data``."""
    top_level = parsed.order_id if resource == "order" else parsed.product_id
    if top_level is not None:
        return _sanitize_field(top_level)

    data = parsed.data or {}
    key = "orderId" if resource == "order" else "productId"
    return _sanitize_field(data.get(key) or data.get("id"))


def parse_event(payload: dict[str, Any], webhook_id: str = "") -> WebhookEvent | None:
    """Parse a verified webhook payload into a normalized WebhookEvent.

    Args:
        payload: Parsed JSON body of the webhook
        webhook_id: Delivery identifier used for de-duplication

    Returns:
        WebhookEvent ready for dispatch, or None if the event type is unrecognized
    """
    try:
        parsed = Market22Payload.model_validate(payload)
    except ValidationError:
        logger.info("Malformed Market22 payload — skipping")
        return None

    event_type = parsed.event or parsed.type or "unknown"
    template = _EVENT_MAP.get(event_type)
    if not template:
        logger.info("Unrecognized webhook event: %s/%s — skipping", PROVIDER, event_type)
        return None

    resource = event_type.split(".", 1)[0]
    resource_id = _extract_resource_id(resource, parsed)
    ref = f"{resource} {resource_id}" if resource_id else f"{resource} (no id)"

    return WebhookEvent(
        event_type=event_type,
        resource=resource,
        resource_id=resource_id,
        webhook_id=webhook_id,
        payload=payload,
        summary=template.format(ref=ref),
        priority="high" if event_type in _HIGH_PRIORITY_EVENTS else "normal",
    )


def dispatch_event(event: WebhookEvent) -> None:
    """Dispatch a webhook event for async processing.

    Broadcasts an event notification to every in-process subscriber.
    """
    broadcaster.broadcast(
        {
            "type": "webhook_received",
            "provider": event.provider,
            "event_type": event.event_type,
            "resource": event.resource,
            "resource_id": event.resource_id,
            "webhook_id": event.webhook_id,
            "priority": event.priority,
            "summary": event.summary,
        }
    )

    logger.info(
        "Dispatching webhook event: %s/%s %s=%s (priority=%s)",
        event.provider,
        event.event_type,
        event.resource,
        event.resource_id,
        event.priority,
    )
