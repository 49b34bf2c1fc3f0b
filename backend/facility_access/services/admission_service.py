"""
Admission controller: one facility's decision pipeline for a check-in.

States of one attempt:

  Received -> TokenValidated -> SlotResolved -> EligibilityChecked
           -> EntitlementChecked -> DuplicateChecked -> CapacityChecked
           -> Committed

Any checkpoint may branch to Denied(reason). Checks run strictly in this
order and the first failure is the reported reason, so the member always
gets the most actionable message (fix your profile before pay, pay before
"session full").

Denials are returned, not raised. A catalog ConfigurationFault is logged
loudly and becomes a fail-closed denial. Transient storage errors are retried
by run_with_retry and surface as TransientStorageFailure.
"""

import time
from datetime import date, datetime, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.core.config import get_settings
from facility_access.core.exceptions import ConfigurationFault
from facility_access.core.logging import bind_admission_context, get_logger
from facility_access.core.metrics import admission_latency, record_admission, record_configuration_fault
from facility_access.models.attendance import OPEN_ACCESS_SCOPE
from facility_access.models.facility import EntranceToken, Facility
from facility_access.models.subscription import Subscription
from facility_access.schemas.member import MemberProfile
from facility_access.schemas.time_slot import TimeSlotView
from facility_access.services import attendance_store, catalog_service
from facility_access.services.eligibility import is_eligible
from facility_access.services.interfaces.notifier import FacilityEvent, Notifier
from facility_access.services.interfaces.null_notifier import NullNotifier
from facility_access.services.results import AdmissionResult, Committed, Denied, DenialKind
from facility_access.services.slot_resolver import resolve_slot, slots_for_day
from facility_access.services.storage import run_with_retry
from facility_access.services.subscription_gate import check_entitled

logger = get_logger(__name__)

METHOD_QR_SCAN = "qr_scan"
METHOD_MANUAL = "manual"


class AdmissionController:
    """
    Admission pipeline bound to one facility.

    Holds no per-request state; all shared state lives in the database.
    Build one per request (the token router does) or share one per facility.
    """

    def __init__(
        self,
        facility: Facility,
        notifier: Optional[Notifier] = None,
        *,
        grace_window: Optional[timedelta] = None,
        early_arrival: Optional[str] = None,
        privileged_tiers: Optional[Iterable[str]] = None,
        payment_grace_days: Optional[int] = None,
        timezone: Optional[str] = None,
    ):
        settings = get_settings()
        self.facility_id = facility.id
        self.facility_code = facility.code
        self.scheduled = facility.is_scheduled
        self.facility_restriction = facility.restriction
        self.daily_capacity = facility.daily_capacity
        self.notifier = notifier or NullNotifier()
        self.grace_window = grace_window or timedelta(minutes=settings.GRACE_WINDOW_MINUTES)
        self.early_arrival = early_arrival or settings.EARLY_ARRIVAL_POLICY
        self.privileged_tiers = frozenset(privileged_tiers or settings.PRIVILEGED_TIERS)
        self.payment_grace_days = (
            payment_grace_days if payment_grace_days is not None else settings.PAYMENT_GRACE_DAYS
        )
        self.tz = ZoneInfo(timezone or settings.FACILITY_TIMEZONE)

    # -- public operations -------------------------------------------------

    async def admit(
        self,
        db: AsyncSession,
        token: str,
        member: MemberProfile,
        now: Optional[datetime] = None,
    ) -> AdmissionResult:
        """Check-in by entrance token scan."""
        return await self._run(db, member, now, token=token, method=METHOD_QR_SCAN)

    async def admit_manual(
        self,
        db: AsyncSession,
        member: MemberProfile,
        now: Optional[datetime] = None,
    ) -> AdmissionResult:
        """Staff check-in at the desk. Same checks, minus the token."""
        return await self._run(db, member, now, token=None, method=METHOD_MANUAL)

    def local_now(self, now: Optional[datetime] = None) -> datetime:
        """`now` as facility wall-clock time. Naive values are taken as local already."""
        if now is None:
            return datetime.now(self.tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    # -- pipeline ----------------------------------------------------------

    async def _run(
        self,
        db: AsyncSession,
        member: MemberProfile,
        now: Optional[datetime],
        *,
        token: Optional[str],
        method: str,
    ) -> AdmissionResult:
        local = self.local_now(now)
        bind_admission_context(facility=self.facility_code, member_id=member.id)
        started = time.perf_counter()

        # Loaded ahead of the admission transaction and outside its storage timeout
        slots = await catalog_service.load_active_slots(db, self.facility_id) if self.scheduled else None

        result = await run_with_retry(
            db,
            "admit",
            lambda: self._attempt(db, member, local, slots, token=token, method=method),
        )

        admission_latency.observe(time.perf_counter() - started)
        if isinstance(result, Committed):
            record_admission(self.facility_code, "committed")
            await self._notify(member, result)
        else:
            record_admission(self.facility_code, result.kind.value)
            logger.info("admission_denied", reason=result.reason, method=method)
        return result

    async def _attempt(
        self,
        db: AsyncSession,
        member: MemberProfile,
        local: datetime,
        slots: Optional[list[TimeSlotView]],
        *,
        token: Optional[str],
        method: str,
    ) -> AdmissionResult:
        session_date = local.date()

        # 1. Token
        if token is not None and not await self._token_is_active(db, token):
            return await self._deny(db, DenialKind.INVALID_TOKEN)

        # 2. Slot
        slot = None
        slot_reason = None
        if self.scheduled:
            try:
                catalog_service.validate_catalog(slots, session_date)
            except ConfigurationFault as fault:
                record_configuration_fault(fault.kind)
                logger.error("catalog_configuration_fault", kind=fault.kind, detail=fault.detail)
                return await self._deny(db, DenialKind.CONFIGURATION_FAULT, fault.kind)

            resolution = resolve_slot(slots, local, self.grace_window, self.early_arrival)
            if not resolution.ok:
                return await self._deny(db, resolution.error)
            slot = resolution.slot
            slot_reason = resolution.reason

        restriction = slot.restriction if slot is not None else self.facility_restriction
        capacity = slot.capacity if slot is not None else self.daily_capacity
        slot_scope = slot.id if slot is not None else OPEN_ACCESS_SCOPE

        # 3. Eligibility
        eligibility = is_eligible(member, restriction, self.privileged_tiers)
        if not eligibility.eligible:
            if eligibility.reason == "invalid-restriction":
                record_configuration_fault("invalid-restriction")
                logger.error(
                    "catalog_configuration_fault",
                    kind="invalid-restriction",
                    restriction=restriction,
                    slot_id=slot.id if slot is not None else None,
                )
            return await self._deny(db, DenialKind.ELIGIBILITY, eligibility.reason)

        # 4. Entitlement
        subscription = await self._subscription_for(db, member.id)
        entitlement = check_entitled(subscription, session_date, self.payment_grace_days)
        if not entitlement.entitled:
            return await self._deny(db, DenialKind.ENTITLEMENT, entitlement.reason)

        # 5. Duplicate (fast path; the unique constraint is the real guard)
        existing = await attendance_store.find_attendance(
            db, self.facility_id, member.id, slot_scope, session_date
        )
        if existing is not None:
            return await self._deny(db, DenialKind.ALREADY_ADMITTED)

        # 6 + 7. Capacity claim and commit, atomically
        outcome = await attendance_store.claim_and_record(
            db,
            facility_id=self.facility_id,
            member_id=member.id,
            time_slot_id=slot.id if slot is not None else None,
            slot_scope=slot_scope,
            session_date=session_date,
            capacity=capacity,
            check_in_time=local,
            method=method,
        )
        if outcome.status == attendance_store.CLAIM_DUPLICATE:
            return Denied(DenialKind.ALREADY_ADMITTED)
        if outcome.status == attendance_store.CLAIM_FULL:
            return Denied(DenialKind.CAPACITY_EXCEEDED)

        logger.info(
            "admission_committed",
            attendance_id=outcome.record.id,
            slot_id=slot.id if slot is not None else None,
            slot_reason=slot_reason,
            admitted=outcome.admitted,
            capacity=capacity,
            method=method,
        )
        return Committed(
            record=outcome.record,
            slot=slot,
            slot_reason=slot_reason,
            admitted_count=outcome.admitted,
        )

    # -- helpers -----------------------------------------------------------

    async def _deny(self, db: AsyncSession, kind: DenialKind, detail: Optional[str] = None) -> Denied:
        # Denials never leave writes behind; close the read transaction too
        await db.rollback()
        return Denied(kind, detail)

    async def _token_is_active(self, db: AsyncSession, token: str) -> bool:
        result = await db.execute(
            select(EntranceToken.id).where(
                EntranceToken.token == token,
                EntranceToken.facility_id == self.facility_id,
                EntranceToken.is_active.is_(True),
            )
        )
        return result.first() is not None

    async def _subscription_for(self, db: AsyncSession, member_id: int) -> Optional[Subscription]:
        result = await db.execute(
            select(Subscription).where(
                Subscription.member_id == member_id,
                Subscription.facility_id == self.facility_id,
            )
        )
        return result.scalar_one_or_none()

    async def _notify(self, member: MemberProfile, result: Committed) -> None:
        event = FacilityEvent(
            facility=self.facility_code,
            member_id=member.id,
            slot_id=result.record.time_slot_id,
            session_date=result.record.session_date,
            outcome="admitted",
        )
        try:
            await self.notifier.publish(event)
        except Exception as e:
            # Notifier implementations should not raise; never let one undo a commit
            logger.error("notifier_raised", error=str(e))


async def availability(
    db: AsyncSession,
    facility: Facility,
    on_date: date,
) -> list[dict]:
    """Admitted / capacity / remaining per slot (or for the whole day at open-access facilities)."""
    # A retried read rolls back and expires `facility`; take what we need first
    facility_id = facility.id
    scheduled = facility.is_scheduled
    restriction = facility.restriction
    daily_capacity = facility.daily_capacity

    async def read_counts() -> dict[int, int]:
        counts = await attendance_store.occupancy_for_date(db, facility_id, on_date)
        await db.commit()
        return counts

    counts = await run_with_retry(db, "availability", read_counts)

    if not scheduled:
        admitted = counts.get(OPEN_ACCESS_SCOPE, 0)
        return [{
            "slot_id": None,
            "start_time": None,
            "end_time": None,
            "restriction": restriction,
            "capacity": daily_capacity,
            "admitted": admitted,
            "remaining": None if daily_capacity is None else max(daily_capacity - admitted, 0),
        }]

    slots = slots_for_day(await catalog_service.load_active_slots(db, facility_id), on_date)
    rows = []
    for slot in slots:
        admitted = counts.get(slot.id, 0)
        rows.append({
            "slot_id": slot.id,
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "restriction": slot.restriction,
            "capacity": slot.capacity,
            "admitted": admitted,
            "remaining": max(slot.capacity - admitted, 0),
        })
    return rows
