"""Runtime configuration read from environment variables.

Values are read once at import. Callers look them up as module attributes
(``config.WEBHOOK_SECRET``) at call time so tests can patch them.
"""

from __future__ import annotations

import os

# Shared secret provisioned per product in the Market22 dashboard.
# Empty -> every webhook is rejected (fail-closed).
WEBHOOK_SECRET = os.environ.get("MARKET22_WEBHOOK_SECRET", "")

# Maximum clock skew between signing and verification, in milliseconds
REPLAY_WINDOW_MS = int(os.environ.get("MARKET22_REPLAY_WINDOW_MS", "180000"))

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6381/0")

DEDUP_TTL_SECONDS = int(os.environ.get("WEBHOOK_DEDUP_TTL_SECONDS", "86400"))
