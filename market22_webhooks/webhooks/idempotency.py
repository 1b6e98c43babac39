"""Webhook idempotency — Redis-based deduplication.

Security contract:
- Tracks delivery IDs in Redis with a TTL (default 24h)
- Duplicate webhooks are acknowledged with 200 (Market22 retries on errors)
- Key pattern: webhook:seen:market22:{webhook_id}
- The delivery ID is the received signature, unique per (timestamp, body)
- If Redis is down, falls back to allowing (fail-open for availability)
"""

from __future__ import annotations

import logging

import redis as redis_lib

from market22_webhooks import config

logger = logging.getLogger(__name__)

_KEY_PREFIX = "webhook:seen:market22"


def _get_redis():
    """Get a Redis client for the configured REDIS_URL."""
    return redis_lib.from_url(config.REDIS_URL, decode_responses=True)


def _key(webhook_id: str) -> str:
    return f"{_KEY_PREFIX}:{webhook_id}"


def is_duplicate(webhook_id: str) -> bool:
    """Check if this delivery has already been processed.

    Uses Redis SET NX EX for an atomic check-and-mark.

    Args:
        webhook_id: Unique delivery ID

    Returns:
        True if this delivery has already been seen (duplicate)
    """
    if not webhook_id:
        return False  # No ID = can't dedup, allow through

    try:
        r = _get_redis()
        # SET NX returns True if the key was set (new), None if it already existed
        was_set = r.set(_key(webhook_id), "1", nx=True, ex=config.DEDUP_TTL_SECONDS)
        if not was_set:
            logger.info("Duplicate webhook rejected: market22/%s", webhook_id)
            return True
        return False
    except redis_lib.RedisError:
        logger.warning(
            "Redis unavailable for webhook dedup — allowing market22/%s",
            webhook_id,
            exc_info=True,
        )
        return False


def mark_seen(webhook_id: str) -> None:
    """Explicitly mark a delivery as seen.

    The receive path marks deliveries atomically through is_duplicate(); this is
    for replay and backfill tooling that feeds deliveries in out of band.
    """
    if not webhook_id:
        return

    try:
        r = _get_redis()
        r.set(_key(webhook_id), "1", ex=config.DEDUP_TTL_SECONDS)
    except redis_lib.RedisError:
        logger.warning("Failed to mark webhook as seen: market22/%s", webhook_id)
