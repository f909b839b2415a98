"""Live negotiation updates over Redis pub/sub."""

from __future__ import annotations

import json
import logging
import uuid

import redis

from src.config import settings

logger = logging.getLogger(__name__)


def negotiation_channel(negotiation_id: uuid.UUID | str) -> str:
    return f"{settings.negotiation_broadcast_channel_prefix}.{negotiation_id}"


class Broadcaster:
    """Publishes JSON envelopes ``{"event": ..., "data": ...}`` to a channel.

    The client is created lazily from ``redis_url``. Publishing is
    best-effort; a Redis failure is logged and reported as ``False``.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self._redis = redis_client

    def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(settings.redis_url, decode_responses=True)
        return self._redis

    def publish(self, channel: str, event: str, data: dict) -> bool:
        envelope = json.dumps({"event": event, "data": data}, default=str)
        try:
            receivers = self._get_redis().publish(channel, envelope)
        except redis.RedisError:
            logger.exception("Broadcast of %s on %s failed", event, channel)
            return False
        logger.debug("Broadcast %s on %s to %s subscribers", event, channel, receivers)
        return True
