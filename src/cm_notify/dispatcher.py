"""NotificationDispatcher — fire-and-forget fan-out over Redis pub/sub.

Called only after the money-moving transaction has committed. Delivery (push,
email, in-app) is owned by a separate consumer of the channel; a failure here
is logged and never propagates to the caller.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as aioredis

from config.settings import settings
from src.cm_common.datetime_utils import utc_now
from src.cm_common.redis_client import get_redis

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] | None = None,
        channel: str | None = None,
    ) -> None:
        self._redis_factory = redis_factory or get_redis
        self._channel = channel or settings.NOTIFICATION_CHANNEL

    async def publish(
        self, event: str, recipients: list[str], payload: dict[str, Any]
    ) -> bool:
        """Publish ``event`` for ``recipients``. Returns False if delivery failed."""
        message = json.dumps(
            {
                "event": event,
                "recipients": recipients,
                "payload": payload,
                "sent_at": utc_now().isoformat(),
            },
            default=str,
        )
        try:
            client = await self._redis_factory()
            await client.publish(self._channel, message)
        except Exception:
            logger.warning(
                "Notification %s for %s not published", event, recipients, exc_info=True
            )
            return False
        logger.debug("Published %s to %s", event, self._channel)
        return True
