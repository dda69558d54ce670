"""Best-effort progress events over Redis pub/sub.

UI collaborators subscribe to these channels to refresh progress views.
Publishing never fails the operation that triggered it.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

CHANNEL_STREAK_CLAIMED = "pubsub:streak_claimed"
CHANNEL_LEVEL_UP = "pubsub:level_up"
CHANNEL_REFERRAL_APPLIED = "pubsub:referral_applied"
CHANNEL_CASE_COMPLETED = "pubsub:case_completed"
CHANNEL_HINT_PURCHASED = "pubsub:hint_purchased"


async def publish_event(redis: object, channel: str, payload: dict[str, Any]) -> bool:
    """Publish a JSON payload. Returns False when Redis is absent or publishing failed."""
    if redis is None:
        return False
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s event", channel, exc_info=True)
        return False
    return True


async def publish_level_up(redis: object, user_id: str, old_level: int, new_level: int) -> None:
    await publish_event(redis, CHANNEL_LEVEL_UP, {
        "user_id": user_id,
        "old_level": old_level,
        "new_level": new_level,
    })
