"""
Schedule catalog: the active time slots of a facility.

CACHING STRATEGY
================

What we cache:
  - The active slot list of one facility, JSON-serialized TimeSlotView rows
  - Key pattern: "catalog:slots:{facility_id}"

Why:
  - Every scan reads the catalog, and it changes a few times a term
  - Redis ~1ms vs a database round trip on the admission hot path

Invalidation:
  - Catalog administration calls invalidate_catalog_cache() after an edit
  - TTL (CATALOG_CACHE_TTL) as safety net

Failure policy:
  - Each Redis round trip gets CATALOG_CACHE_TIMEOUT_SECONDS, far below the
    storage budget. A server that stalls or drops is a cache miss, and the
    shared client sits out its reconnect cooldown
  - The database load is a storage operation of its own (run_with_retry), run
    before the admission attempt opens its transaction

Capacity is NOT served from here for enforcement: the occupancy counter row
is the authority, and the slot capacity read here is only the limit passed
into the conditional increment.

The catalog also refuses data the resolver must not see: two active slots
of the same day starting at the same moment raise ConfigurationFault.
"""

import asyncio
import json
from datetime import date
from typing import Optional

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.core.config import get_settings
from facility_access.core.exceptions import ConfigurationFault
from facility_access.core.logging import get_logger
from facility_access.core.metrics import record_catalog_cache
from facility_access.infrastructure.redis_client import get_redis, mark_redis_unavailable
from facility_access.models.time_slot import DAY_NAMES, TimeSlot
from facility_access.schemas.time_slot import TimeSlotView
from facility_access.services.storage import run_with_retry

logger = get_logger(__name__)

REDIS_DOWN_ERRORS = (asyncio.TimeoutError, RedisError, OSError)

_NO_CLIENT = object()


def _cache_key(facility_id: int) -> str:
    return f"catalog:slots:{facility_id}"


async def _cache_call(call):
    """One Redis round trip within CATALOG_CACHE_TIMEOUT_SECONDS, or _NO_CLIENT when Redis is off."""
    timeout = get_settings().CATALOG_CACHE_TIMEOUT_SECONDS
    client = await asyncio.wait_for(get_redis(), timeout=timeout)
    if not client:
        return _NO_CLIENT
    return await asyncio.wait_for(call(client), timeout=timeout)


def _cache_failed(event: str, key: str, error: Exception) -> None:
    if isinstance(error, REDIS_DOWN_ERRORS):
        mark_redis_unavailable(error)
    logger.error(event, key=key, error=str(error) or type(error).__name__)


async def _get_cached_slots(facility_id: int) -> Optional[list[TimeSlotView]]:
    key = _cache_key(facility_id)
    try:
        data = await _cache_call(lambda client: client.get(key))
    except Exception as e:
        record_catalog_cache("error")
        _cache_failed("catalog_cache_get_error", key, e)
        return None

    if data is _NO_CLIENT:
        return None
    if data is None:
        record_catalog_cache("miss")
        return None

    record_catalog_cache("hit")
    return [TimeSlotView.model_validate(item) for item in json.loads(data)]


async def _set_cached_slots(facility_id: int, slots: list[TimeSlotView]) -> None:
    key = _cache_key(facility_id)
    ttl = get_settings().CATALOG_CACHE_TTL
    payload = json.dumps([slot.model_dump(mode="json") for slot in slots])
    try:
        if await _cache_call(lambda client: client.setex(key, ttl, payload)) is not _NO_CLIENT:
            logger.debug("catalog_cache_set", key=key, ttl=ttl, slots=len(slots))
    except Exception as e:
        _cache_failed("catalog_cache_set_error", key, e)


async def invalidate_catalog_cache(facility_id: int) -> None:
    """Drop the cached slot list of one facility (called after catalog edits)."""
    key = _cache_key(facility_id)
    try:
        if await _cache_call(lambda client: client.delete(key)) is not _NO_CLIENT:
            logger.info("catalog_cache_invalidated", facility_id=facility_id)
    except Exception as e:
        _cache_failed("catalog_cache_invalidation_error", key, e)


async def load_active_slots(db: AsyncSession, facility_id: int) -> list[TimeSlotView]:
    """All active slots of a facility, any weekday, ordered by start time."""
    cached = await _get_cached_slots(facility_id)
    if cached is not None:
        return cached

    async def attempt() -> list[TimeSlotView]:
        result = await db.execute(
            select(TimeSlot)
            .where(TimeSlot.facility_id == facility_id, TimeSlot.is_active.is_(True))
            .order_by(TimeSlot.start_time.asc(), TimeSlot.id.asc())
        )
        rows = [TimeSlotView.model_validate(row) for row in result.scalars().all()]
        await db.commit()
        return rows

    slots = await run_with_retry(db, "catalog_load", attempt)
    await _set_cached_slots(facility_id, slots)
    return slots


def validate_catalog(slots: list[TimeSlotView], on_date: date) -> None:
    """Raise ConfigurationFault if the slots running on `on_date` are not resolvable."""
    weekday = DAY_NAMES[on_date.weekday()]
    seen = {}
    for slot in slots:
        if not runs_on(slot, on_date):
            continue
        other = seen.get(slot.start_time)
        if other is not None:
            raise ConfigurationFault(
                "duplicate-slot-start",
                f"slots {other} and {slot.id} both start at {slot.start_time.isoformat()} on {weekday}",
            )
        seen[slot.start_time] = slot.id


def runs_on(slot: TimeSlotView, on_date: date) -> bool:
    """True if the slot is held on `on_date` (daily slots run every day)."""
    return slot.day_of_week is None or slot.day_of_week.lower() == DAY_NAMES[on_date.weekday()]


async def get_slot(db: AsyncSession, slot_id: int) -> Optional[TimeSlotView]:
    """One slot by id, straight from the database (waitlist path, not cached)."""
    result = await db.execute(select(TimeSlot).where(TimeSlot.id == slot_id))
    slot = result.scalar_one_or_none()
    return TimeSlotView.model_validate(slot) if slot else None
