import json
import logging
from datetime import datetime, timezone

import redis.asyncio as redis
from redis.exceptions import RedisError

from forum.config import settings

logger = logging.getLogger(__name__)

POST_CREATED = "post.created"
COMMENT_CREATED = "comment.created"


class NotificationPublisher:
    """
    Fire-and-forget notification dispatch over Redis pub/sub.

    ``publish`` never raises: when Redis is unavailable or a publish
    fails the event is logged and dropped, so a notification problem can
    never fail the request that triggered it.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._published: int = 0
        self._dropped: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except RedisError as exc:
            logger.warning("Redis ping failed, notifications disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def publish(self, action: str, payload: dict) -> None:
        """Publish *payload* tagged with *action* on the notification channel."""
        message = {
            "action": action,
            "payload": payload,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        if not self._redis:
            self._dropped += 1
            logger.debug("Notification %s dropped (no Redis): %s", action, payload)
            return
        try:
            await self._redis.publish(settings.NOTIFICATION_CHANNEL, json.dumps(message, default=str))
            self._published += 1
        except RedisError as exc:
            self._dropped += 1
            logger.warning("Notification %s not delivered: %s", action, exc)

    @property
    def stats(self) -> dict:
        return {"published": self._published, "dropped": self._dropped}


# Module-level singleton shared across all request handlers.
notifier = NotificationPublisher()
