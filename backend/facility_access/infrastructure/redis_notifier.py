"""
Redis pub/sub delivery of facility events.

Channel per facility: "{NOTIFY_CHANNEL_PREFIX}:{facility_code}". The realtime
broadcast side subscribes there and pushes availability to connected clients.

Failure policy: best effort. A publish that errors or exceeds
NOTIFY_TIMEOUT_SECONDS is logged and counted, and the caller moves on.
"""

import asyncio
import json
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from facility_access.core.config import get_settings
from facility_access.core.logging import get_logger
from facility_access.core.metrics import record_notification
from facility_access.infrastructure.redis_client import get_redis
from facility_access.services.interfaces.notifier import FacilityEvent, Notifier

logger = get_logger(__name__)


class RedisNotifier(Notifier):

    def __init__(
        self,
        client_factory: Callable[[], Awaitable[Optional[redis.Redis]]] = get_redis,
        channel_prefix: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self._client_factory = client_factory
        self._channel_prefix = channel_prefix or settings.NOTIFY_CHANNEL_PREFIX
        self._timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT_SECONDS

    def channel_for(self, facility: str) -> str:
        return f"{self._channel_prefix}:{facility}"

    async def publish(self, event: FacilityEvent) -> bool:
        channel = self.channel_for(event.facility)
        try:
            client = await self._client_factory()
            if client is None:
                record_notification("skipped")
                return False
            message = json.dumps(event.to_payload())
            await asyncio.wait_for(client.publish(channel, message), timeout=self._timeout)
        except Exception as e:
            record_notification("failed")
            logger.warning(
                "notification_failed",
                channel=channel,
                outcome=event.outcome,
                error=str(e) or type(e).__name__,
            )
            return False

        record_notification("sent")
        logger.debug("notification_sent", channel=channel, outcome=event.outcome)
        return True
