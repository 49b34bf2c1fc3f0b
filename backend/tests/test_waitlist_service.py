"""
Tests for the waitlist manager: positions, leaving, promotion bookkeeping.
"""

import asyncio
from datetime import time, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from facility_access.models.time_slot import TimeSlot
from facility_access.services import waitlist_service
from facility_access.services.results import Accepted, Denied, DenialKind
from facility_access.services.waitlist_service import WaitlistManager


async def join(session_factory, manager, member, slot_id, session_date):
    async with session_factory() as session:
        return await manager.join(session, member, slot_id, session_date)


@pytest.mark.asyncio
async def test_join_assigns_increasing_positions(session_factory, pool, make_member, session_date, notifier):
    manager = WaitlistManager(notifier)

    first = await join(session_factory, manager, make_member(1), pool.morning.id, session_date)
    second = await join(session_factory, manager, make_member(2), pool.morning.id, session_date)

    assert isinstance(first, Accepted)
    assert (first.entry.position, second.entry.position) == (1, 2)
    assert first.entry.status == "pending"
    assert [(e.facility, e.outcome) for e in notifier.events] == [
        ("pool", "waitlist-joined"),
        ("pool", "waitlist-joined"),
    ]


@pytest.mark.asyncio
async def test_positions_are_per_session(session_factory, pool, make_member, session_date):
    manager = WaitlistManager()
    await join(session_factory, manager, make_member(1), pool.morning.id, session_date)

    other_slot = await join(session_factory, manager, make_member(2), pool.late.id, session_date)
    assert other_slot.entry.position == 1


@pytest.mark.asyncio
async def test_second_join_is_already_waitlisted(session_factory, pool, make_member, session_date):
    manager = WaitlistManager()
    await join(session_factory, manager, make_member(1), pool.morning.id, session_date)

    again = await join(session_factory, manager, make_member(1), pool.morning.id, session_date)
    assert isinstance(again, Denied)
    assert again.kind == DenialKind.ALREADY_WAITLISTED

    async with session_factory() as session:
        entries = await manager.list_entries(session, pool.morning.id, session_date)
    assert len(entries) == 1


@pytest.mark.asyncio
async def test_join_unknown_slot(session_factory, pool, make_member, session_date):
    result = await join(session_factory, WaitlistManager(), make_member(1), 9999, session_date)
    assert result.kind == DenialKind.NO_SLOT_AVAILABLE


@pytest.mark.asyncio
async def test_concurrent_joins_get_gap_free_positions(session_factory, pool, make_member, session_date):
    manager = WaitlistManager()
    members = range(1, 11)

    results = await asyncio.gather(
        *(join(session_factory, manager, make_member(m), pool.morning.id, session_date) for m in members)
    )

    assert all(isinstance(r, Accepted) for r in results)
    assert sorted(r.entry.position for r in results) == list(range(1, 11))


@pytest.mark.asyncio
async def test_concurrent_duplicate_joins_leave_no_gap(session_factory, pool, make_member, session_date):
    manager = WaitlistManager()
    results = await asyncio.gather(
        *(join(session_factory, manager, make_member(1), pool.morning.id, session_date) for _ in range(3))
    )
    assert sum(isinstance(r, Accepted) for r in results) == 1

    after = await join(session_factory, manager, make_member(2), pool.morning.id, session_date)
    assert after.entry.position == 2


@pytest.mark.asyncio
async def test_leave_keeps_other_positions(session_factory, pool, make_member, session_date):
    manager = WaitlistManager()
    for member_id in (1, 2, 3):
        await join(session_factory, manager, make_member(member_id), pool.morning.id, session_date)

    async with session_factory() as session:
        left = await manager.leave(session, make_member(2), pool.morning.id, session_date)
    async with session_factory() as session:
        entries = await manager.list_entries(session, pool.morning.id, session_date)

    assert isinstance(left, Accepted)
    assert [(e.member_id, e.position, e.status) for e in entries] == [
        (1, 1, "pending"),
        (2, 2, "cancelled"),
        (3, 3, "pending"),
    ]


@pytest.mark.asyncio
async def test_leave_when_not_waitlisted(session_factory, pool, make_member, session_date):
    async with session_factory() as session:
        result = await WaitlistManager().leave(session, make_member(1), pool.morning.id, session_date)
    assert result.kind == DenialKind.NOT_WAITLISTED


@pytest.mark.asyncio
async def test_rejoin_after_leaving_goes_to_the_back(session_factory, pool, make_member, session_date):
    manager = WaitlistManager()
    await join(session_factory, manager, make_member(1), pool.morning.id, session_date)
    await join(session_factory, manager, make_member(2), pool.morning.id, session_date)
    async with session_factory() as session:
        await manager.leave(session, make_member(1), pool.morning.id, session_date)

    rejoined = await join(session_factory, manager, make_member(1), pool.morning.id, session_date)
    assert rejoined.entry.position == 3


@pytest.mark.asyncio
async def test_peek_next_skips_cancelled_and_notified(session_factory, pool, make_member, session_date):
    manager = WaitlistManager()
    entries = [
        (await join(session_factory, manager, make_member(m), pool.morning.id, session_date)).entry
        for m in (1, 2, 3)
    ]

    async with session_factory() as session:
        await manager.leave(session, make_member(1), pool.morning.id, session_date)
    async with session_factory() as session:
        await manager.mark(session, entries[1].id, "notified")
    async with session_factory() as session:
        head = await manager.peek_next(session, pool.morning.id, session_date)

    assert head.member_id == 3


@pytest.mark.asyncio
async def test_peek_next_on_empty_waitlist(session_factory, pool, session_date):
    async with session_factory() as session:
        assert await WaitlistManager().peek_next(session, pool.morning.id, session_date) is None


@pytest.mark.asyncio
async def test_mark_follows_allowed_transitions(session_factory, pool, make_member, session_date, notifier):
    manager = WaitlistManager(notifier)
    entry = (await join(session_factory, manager, make_member(1), pool.morning.id, session_date)).entry

    async with session_factory() as session:
        notified = await manager.mark(session, entry.id, "notified")
    async with session_factory() as session:
        confirmed = await manager.mark(session, entry.id, "confirmed")
    async with session_factory() as session:
        back = await manager.mark(session, entry.id, "pending")

    assert notified.entry.status == "notified"
    assert confirmed.entry.status == "confirmed"
    assert back.kind == DenialKind.INVALID_TRANSITION
    assert notifier.events[-1].outcome == "waitlist-confirmed"


@pytest.mark.asyncio
async def test_mark_unknown_entry(session_factory, pool):
    async with session_factory() as session:
        result = await WaitlistManager().mark(session, 4242, "notified")
    assert result.kind == DenialKind.NOT_WAITLISTED


@pytest.mark.asyncio
async def test_join_only_on_days_the_slot_runs(db_session, session_factory, pool, make_member, session_date):
    tuesday_swim = TimeSlot(
        facility_id=pool.facility.id, start_time=time(20, 0), end_time=time(21, 0),
        day_of_week="tuesday", capacity=5, restriction="open",
    )
    db_session.add(tuesday_swim)
    await db_session.commit()
    manager = WaitlistManager()

    monday = await join(session_factory, manager, make_member(1), tuesday_swim.id, session_date)
    tuesday = await join(session_factory, manager, make_member(1), tuesday_swim.id, session_date + timedelta(days=1))

    assert monday.kind == DenialKind.NO_SLOT_AVAILABLE
    assert isinstance(tuesday, Accepted)
    assert tuesday.entry.position == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["join", "leave", "mark"])
async def test_no_storage_access_after_commit(
    session_factory, pool, make_member, session_date, notifier, monkeypatch, operation
):
    manager = WaitlistManager(notifier)
    member = make_member(1)
    if operation != "join":
        entry = (await join(session_factory, manager, member, pool.morning.id, session_date)).entry
        notifier.events.clear()

    real_run_with_retry = waitlist_service.run_with_retry

    async def run_then_lose_connection(db, name, attempt, **kwargs):
        result = await real_run_with_retry(db, name, attempt, **kwargs)

        async def connection_lost(*args, **kw):
            raise OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly"))

        monkeypatch.setattr(db, "execute", connection_lost)
        monkeypatch.setattr(db, "commit", connection_lost)
        return result

    monkeypatch.setattr(waitlist_service, "run_with_retry", run_then_lose_connection)
    async with session_factory() as session:
        if operation == "join":
            result = await manager.join(session, member, pool.morning.id, session_date)
        elif operation == "leave":
            result = await manager.leave(session, member, pool.morning.id, session_date)
        else:
            result = await manager.mark(session, entry.id, "notified")

    assert isinstance(result, Accepted)
    assert [event.facility for event in notifier.events] == ["pool"]
