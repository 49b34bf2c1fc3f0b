"""
Tests for Redis event publishing with stub clients.
"""

import asyncio
import json
from datetime import date

import pytest

from facility_access.infrastructure.redis_notifier import RedisNotifier
from facility_access.services.interfaces.notifier import FacilityEvent

EVENT = FacilityEvent(facility="pool", member_id=7, slot_id=3, session_date=date(2025, 3, 3), outcome="admitted")


class StubRedis:
    def __init__(self, delay: float = 0.0, error: Exception = None):
        self.published = []
        self.delay = delay
        self.error = error

    async def publish(self, channel, message):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.published.append((channel, message))
        return 1


def factory_for(client):
    async def factory():
        return client

    return factory


@pytest.mark.asyncio
async def test_publishes_json_on_facility_channel():
    client = StubRedis()
    notifier = RedisNotifier(factory_for(client), channel_prefix="facility-events")

    assert await notifier.publish(EVENT) is True
    channel, message = client.published[0]
    assert channel == "facility-events:pool"
    assert json.loads(message) == {
        "facility": "pool",
        "member_id": 7,
        "slot_id": 3,
        "session_date": "2025-03-03",
        "outcome": "admitted",
    }


@pytest.mark.asyncio
async def test_redis_unavailable_is_skipped():
    assert await RedisNotifier(factory_for(None)).publish(EVENT) is False


@pytest.mark.asyncio
async def test_publish_error_is_swallowed():
    notifier = RedisNotifier(factory_for(StubRedis(error=ConnectionError("reset by peer"))))
    assert await notifier.publish(EVENT) is False


@pytest.mark.asyncio
async def test_slow_publish_times_out():
    notifier = RedisNotifier(factory_for(StubRedis(delay=1.0)), timeout=0.01)
    assert await notifier.publish(EVENT) is False
