"""
Facility endpoints: staff check-in, live availability and member history.
"""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.api.deps import denial_exception, get_now
from facility_access.api.routes.scan import admission_response
from facility_access.db.session import get_db
from facility_access.models.facility import Facility
from facility_access.schemas.admission import (
    AdmissionResponse,
    AttendanceResponse,
    AvailabilityResponse,
    ManualCheckInRequest,
    SlotAvailability,
)
from facility_access.services import attendance_store
from facility_access.services.admission_service import AdmissionController, availability
from facility_access.services.interfaces.notifier import Notifier
from facility_access.services.notifier_factory import get_notifier
from facility_access.services.results import Denied
from facility_access.services.token_router import get_facility

router = APIRouter(tags=["Facilities"])


async def _facility_or_404(db: AsyncSession, code: str) -> Facility:
    facility = await get_facility(db, code)
    if not facility:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Facility '{code}' not found",
        )
    return facility


@router.post(
    "/facilities/{code}/manual-checkin",
    response_model=AdmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def manual_checkin(
    code: str,
    request: ManualCheckInRequest,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: Notifier = Depends(get_notifier),
):
    """Desk check-in by staff: every admission check except the token."""
    facility = await _facility_or_404(db, code)
    controller = AdmissionController(facility, notifier)
    result = await controller.admit_manual(db, request.member, now)
    if isinstance(result, Denied):
        raise denial_exception(result)
    return admission_response(controller.facility_code, result)


@router.get("/facilities/{code}/availability", response_model=AvailabilityResponse)
async def facility_availability(
    code: str,
    on_date: Optional[date] = Query(default=None, alias="date"),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Admitted, capacity and remaining places per session of a day (today by default)."""
    facility = await _facility_or_404(db, code)
    facility_code = facility.code
    if on_date is None:
        on_date = AdmissionController(facility).local_now(now).date()
    rows = await availability(db, facility, on_date)
    return AvailabilityResponse(
        facility=facility_code,
        date=on_date,
        slots=[SlotAvailability(**row) for row in rows],
    )


@router.get("/members/{member_id}/attendance", response_model=list[AttendanceResponse])
async def member_attendance(
    member_id: int,
    limit: int = Query(default=30, gt=0, le=200),
    db: AsyncSession = Depends(get_db),
):
    """A member's most recent check-ins, newest first."""
    return await attendance_store.member_history(db, member_id, limit)
