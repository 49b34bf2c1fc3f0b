"""
Waitlist manager for full sessions.

Positions
---------
`join` allocates the next position for (slot, date) by advancing the
`waitlist_counters` row with UPDATE .. RETURNING inside the join transaction.
The row lock serializes concurrent joins, and a join that fails afterwards
(the member already has a pending entry) rolls the counter back with it, so
positions form a gap-free, strictly increasing sequence in join order.

Promotion
---------
Nothing here moves people into a session automatically. The scheduler that
notices freed capacity uses `peek_next` and `mark` to notify and confirm the
head of the queue.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.core.logging import get_logger
from facility_access.core.metrics import record_waitlist_operation
from facility_access.models.facility import Facility
from facility_access.models.time_slot import TimeSlot
from facility_access.models.waitlist import WAITLIST_TRANSITIONS, WaitlistCounter, WaitlistEntry
from facility_access.schemas.member import MemberProfile
from facility_access.services import catalog_service
from facility_access.services.attendance_store import insert_ignore
from facility_access.services.interfaces.notifier import FacilityEvent, Notifier
from facility_access.services.interfaces.null_notifier import NullNotifier
from facility_access.services.results import Accepted, Denied, DenialKind, WaitlistResult
from facility_access.services.storage import run_with_retry

logger = get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_CANCELLED = "cancelled"


class WaitlistManager:

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier or NullNotifier()

    async def join(
        self,
        db: AsyncSession,
        member: MemberProfile,
        slot_id: int,
        session_date: date,
    ) -> WaitlistResult:
        result, facility = await run_with_retry(
            db, "waitlist_join", lambda: self._join(db, member.id, slot_id, session_date)
        )
        await self._finish("join", result, facility, member.id, slot_id, session_date, "waitlist-joined")
        return result

    async def leave(
        self,
        db: AsyncSession,
        member: MemberProfile,
        slot_id: int,
        session_date: date,
    ) -> WaitlistResult:
        result, facility = await run_with_retry(
            db, "waitlist_leave", lambda: self._leave(db, member.id, slot_id, session_date)
        )
        await self._finish("leave", result, facility, member.id, slot_id, session_date, "waitlist-left")
        return result

    async def peek_next(self, db: AsyncSession, slot_id: int, session_date: date) -> Optional[WaitlistEntry]:
        """Head of the queue: the pending entry with the lowest position."""

        async def attempt():
            result = await db.execute(
                select(WaitlistEntry)
                .where(
                    WaitlistEntry.time_slot_id == slot_id,
                    WaitlistEntry.session_date == session_date,
                    WaitlistEntry.status == STATUS_PENDING,
                )
                .order_by(WaitlistEntry.position.asc())
                .limit(1)
            )
            entry = result.scalar_one_or_none()
            await db.commit()
            return entry

        return await run_with_retry(db, "waitlist_peek", attempt)

    async def list_entries(self, db: AsyncSession, slot_id: int, session_date: date) -> list[WaitlistEntry]:
        """Every entry of a session, in queue order, whatever its status."""

        async def attempt():
            result = await db.execute(
                select(WaitlistEntry)
                .where(WaitlistEntry.time_slot_id == slot_id, WaitlistEntry.session_date == session_date)
                .order_by(WaitlistEntry.position.asc())
            )
            entries = list(result.scalars().all())
            await db.commit()
            return entries

        return await run_with_retry(db, "waitlist_list", attempt)

    async def mark(self, db: AsyncSession, entry_id: int, status: str) -> WaitlistResult:
        """Move an entry to notified / confirmed / cancelled."""
        result, facility = await run_with_retry(db, "waitlist_mark", lambda: self._mark(db, entry_id, status))
        if isinstance(result, Accepted):
            entry = result.entry
            await self._finish(
                "mark", result, facility, entry.member_id, entry.time_slot_id, entry.session_date, f"waitlist-{status}"
            )
        else:
            record_waitlist_operation("mark", result.kind.value)
        return result

    # -- attempts ----------------------------------------------------------
    #
    # Each attempt returns (result, facility code). The code is read inside the
    # same transaction so nothing touches storage after the commit.

    async def _join(
        self, db: AsyncSession, member_id: int, slot_id: int, session_date: date
    ) -> tuple[WaitlistResult, Optional[str]]:
        slot = await catalog_service.get_slot(db, slot_id)
        if slot is None or not slot.is_active or not catalog_service.runs_on(slot, session_date):
            await db.rollback()
            return Denied(DenialKind.NO_SLOT_AVAILABLE), None

        if await self._pending_entry(db, member_id, slot_id, session_date) is not None:
            await db.rollback()
            return Denied(DenialKind.ALREADY_WAITLISTED), None

        await db.execute(
            insert_ignore(
                db,
                WaitlistCounter,
                ["time_slot_id", "session_date"],
                time_slot_id=slot_id,
                session_date=session_date,
                last_position=0,
            )
        )
        position = (
            await db.execute(
                update(WaitlistCounter)
                .where(WaitlistCounter.time_slot_id == slot_id, WaitlistCounter.session_date == session_date)
                .values(last_position=WaitlistCounter.last_position + 1)
                .returning(WaitlistCounter.last_position)
                .execution_options(synchronize_session=False)
            )
        ).scalar_one()

        entry = WaitlistEntry(
            time_slot_id=slot_id,
            member_id=member_id,
            session_date=session_date,
            position=position,
            status=STATUS_PENDING,
        )
        db.add(entry)
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent join by the same member got in first
            await db.rollback()
            return Denied(DenialKind.ALREADY_WAITLISTED), None

        await db.refresh(entry)
        facility = await self._facility_code(db, slot_id)
        await db.commit()
        logger.info("waitlist_joined", entry_id=entry.id, slot_id=slot_id, position=position)
        return Accepted(entry), facility

    async def _leave(
        self, db: AsyncSession, member_id: int, slot_id: int, session_date: date
    ) -> tuple[WaitlistResult, Optional[str]]:
        entry = await self._pending_entry(db, member_id, slot_id, session_date)
        if entry is None:
            await db.rollback()
            return Denied(DenialKind.NOT_WAITLISTED), None

        entry.status = STATUS_CANCELLED
        await db.flush()
        await db.refresh(entry)
        facility = await self._facility_code(db, slot_id)
        await db.commit()
        logger.info("waitlist_left", entry_id=entry.id, slot_id=slot_id, position=entry.position)
        return Accepted(), facility

    async def _mark(self, db: AsyncSession, entry_id: int, status: str) -> tuple[WaitlistResult, Optional[str]]:
        result = await db.execute(select(WaitlistEntry).where(WaitlistEntry.id == entry_id).with_for_update())
        entry = result.scalar_one_or_none()
        if entry is None:
            await db.rollback()
            return Denied(DenialKind.NOT_WAITLISTED), None

        if status not in WAITLIST_TRANSITIONS.get(entry.status, ()):
            logger.info("waitlist_transition_rejected", entry_id=entry_id, current=entry.status, requested=status)
            await db.rollback()
            return Denied(DenialKind.INVALID_TRANSITION, f"{entry.status}->{status}"), None

        entry.status = status
        await db.flush()
        await db.refresh(entry)
        facility = await self._facility_code(db, entry.time_slot_id)
        await db.commit()
        logger.info("waitlist_marked", entry_id=entry_id, status=status)
        return Accepted(entry), facility

    async def _pending_entry(
        self, db: AsyncSession, member_id: int, slot_id: int, session_date: date
    ) -> Optional[WaitlistEntry]:
        result = await db.execute(
            select(WaitlistEntry).where(
                WaitlistEntry.member_id == member_id,
                WaitlistEntry.time_slot_id == slot_id,
                WaitlistEntry.session_date == session_date,
                WaitlistEntry.status == STATUS_PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def _facility_code(self, db: AsyncSession, slot_id: int) -> Optional[str]:
        result = await db.execute(
            select(Facility.code).join(TimeSlot, TimeSlot.facility_id == Facility.id).where(TimeSlot.id == slot_id)
        )
        return result.scalar_one_or_none()

    # -- bookkeeping -------------------------------------------------------

    async def _finish(
        self,
        operation: str,
        result: WaitlistResult,
        facility: Optional[str],
        member_id: int,
        slot_id: int,
        session_date: date,
        outcome: str,
    ) -> None:
        if isinstance(result, Denied):
            record_waitlist_operation(operation, result.kind.value)
            return
        record_waitlist_operation(operation, "ok")
        event = FacilityEvent(
            facility=facility or "unknown",
            member_id=member_id,
            slot_id=slot_id,
            session_date=session_date,
            outcome=outcome,
        )
        try:
            await self.notifier.publish(event)
        except Exception as e:
            logger.error("notifier_raised", error=str(e))
