"""
Attendance persistence with race-free capacity enforcement.

CONCURRENCY STRATEGY: conditional increment on a counter row
=============================================================

Problem:
  Two members scan for the last free place at the same moment.
  Both count 19 of 20 records, both insert. Result: 21 in the pool.
  Or one member double-scans and both requests pass the duplicate check.

Solution (one transaction per admission):
  1. Make sure the counter row (facility, slot_scope, date) exists:
       INSERT .. ON CONFLICT DO NOTHING
  2. Claim a place:
       UPDATE slot_occupancy SET admitted = admitted + 1
       WHERE <key> AND admitted < :capacity
     0 rows affected -> the session is full, nothing was written
  3. Insert the attendance record. The unique constraint
     (facility, member, slot_scope, date) rejects a concurrent duplicate;
     the rollback also returns the place claimed in step 2.
  4. Commit.

  The UPDATE takes the row lock, and PostgreSQL re-evaluates the WHERE
  clause against the committed row after waiting for it, so concurrent
  claims serialize on that single row and can never push `admitted` past
  capacity. SQLite runs the whole transaction under BEGIN IMMEDIATE.

Alternatives considered:
  - COUNT(*) then INSERT: needs SERIALIZABLE plus retry on serialization
    failures to be correct; under READ COMMITTED it overbooks.
  - SELECT .. FOR UPDATE on the slot row: correct, but locks the catalog row
    for all dates at once.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.core.logging import get_logger
from facility_access.models.attendance import AttendanceRecord, SlotOccupancy
from facility_access.services.storage import run_with_retry

logger = get_logger(__name__)

CLAIM_COMMITTED = "committed"
CLAIM_FULL = "full"
CLAIM_DUPLICATE = "duplicate"


@dataclass(frozen=True)
class ClaimOutcome:
    status: str
    record: Optional[AttendanceRecord] = None
    admitted: Optional[int] = None


def insert_ignore(db: AsyncSession, model, index_elements: list[str], **values):
    """INSERT .. ON CONFLICT DO NOTHING for the dialect behind the session."""
    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    return insert(model).values(**values).on_conflict_do_nothing(index_elements=index_elements)


async def find_attendance(
    db: AsyncSession,
    facility_id: int,
    member_id: int,
    slot_scope: int,
    session_date: date,
) -> Optional[AttendanceRecord]:
    """Look up by the same key the uniqueness constraint uses."""
    result = await db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.facility_id == facility_id,
            AttendanceRecord.member_id == member_id,
            AttendanceRecord.slot_scope == slot_scope,
            AttendanceRecord.session_date == session_date,
        )
    )
    return result.scalar_one_or_none()


async def claim_and_record(
    db: AsyncSession,
    *,
    facility_id: int,
    member_id: int,
    time_slot_id: Optional[int],
    slot_scope: int,
    session_date: date,
    capacity: Optional[int],
    check_in_time: datetime,
    method: str,
) -> ClaimOutcome:
    """
    Claim one place and write the attendance record in a single transaction.
    Commits on success, rolls back otherwise. `capacity=None` means unlimited.
    """
    key = (
        SlotOccupancy.facility_id == facility_id,
        SlotOccupancy.slot_scope == slot_scope,
        SlotOccupancy.session_date == session_date,
    )

    await db.execute(
        insert_ignore(
            db,
            SlotOccupancy,
            ["facility_id", "slot_scope", "session_date"],
            facility_id=facility_id,
            slot_scope=slot_scope,
            session_date=session_date,
            admitted=0,
        )
    )

    claim = update(SlotOccupancy).where(*key)
    if capacity is not None:
        claim = claim.where(SlotOccupancy.admitted < capacity)
    claim = (
        claim.values(admitted=SlotOccupancy.admitted + 1)
        .returning(SlotOccupancy.admitted)
        .execution_options(synchronize_session=False)
    )
    admitted = (await db.execute(claim)).scalar_one_or_none()

    if admitted is None:
        # Full, or full because this very member won a concurrent duplicate race
        existing = await find_attendance(db, facility_id, member_id, slot_scope, session_date)
        await db.rollback()
        if existing is not None:
            return ClaimOutcome(CLAIM_DUPLICATE)
        logger.info("capacity_claim_rejected", slot_scope=slot_scope, capacity=capacity)
        return ClaimOutcome(CLAIM_FULL)

    record = AttendanceRecord(
        facility_id=facility_id,
        time_slot_id=time_slot_id,
        slot_scope=slot_scope,
        member_id=member_id,
        session_date=session_date,
        check_in_time=check_in_time,
        check_in_method=method,
    )
    db.add(record)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("duplicate_admission_rejected", member_id=member_id, slot_scope=slot_scope)
        return ClaimOutcome(CLAIM_DUPLICATE)

    await db.commit()
    return ClaimOutcome(CLAIM_COMMITTED, record=record, admitted=admitted)


async def occupancy_for_date(db: AsyncSession, facility_id: int, session_date: date) -> dict[int, int]:
    """slot_scope -> admitted count for one facility and date."""
    result = await db.execute(
        select(SlotOccupancy.slot_scope, SlotOccupancy.admitted).where(
            SlotOccupancy.facility_id == facility_id,
            SlotOccupancy.session_date == session_date,
        )
    )
    return {scope: admitted for scope, admitted in result.all()}


async def member_history(db: AsyncSession, member_id: int, limit: int = 30) -> list[AttendanceRecord]:
    """A member's most recent check-ins across facilities."""

    async def attempt() -> list[AttendanceRecord]:
        result = await db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.member_id == member_id)
            .order_by(AttendanceRecord.check_in_time.desc(), AttendanceRecord.id.desc())
            .limit(limit)
        )
        records = list(result.scalars().all())
        await db.commit()
        return records

    return await run_with_retry(db, "member_history", attempt)
