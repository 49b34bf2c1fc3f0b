"""
Entrance scan endpoint: route the token, then run the facility's admission pipeline.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.api.deps import denial_exception, get_now
from facility_access.db.session import get_db
from facility_access.schemas.admission import AdmissionResponse, AttendanceResponse, ScanRequest
from facility_access.services.interfaces.notifier import Notifier
from facility_access.services.notifier_factory import get_notifier
from facility_access.services.results import Committed, Denied
from facility_access.services.token_router import route

router = APIRouter(tags=["Admission"])


def admission_response(facility: str, result: Committed) -> AdmissionResponse:
    slot = result.slot
    return AdmissionResponse(
        message="Check-in successful. Enjoy your session!",
        facility=facility,
        attendance=AttendanceResponse.model_validate(result.record),
        slot_start=slot.start_time if slot else None,
        slot_end=slot.end_time if slot else None,
        slot_reason=result.slot_reason,
        admitted_count=result.admitted_count,
    )


@router.post("/scan", response_model=AdmissionResponse, status_code=status.HTTP_201_CREATED)
async def scan(
    request: ScanRequest,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Check a member in by entrance token.

    The token decides the facility. Denials come back with a machine
    `reason` code and a message the scanner can show as is.
    """
    handle = await route(db, request.token, notifier)
    if isinstance(handle, Denied):
        raise denial_exception(handle)

    controller = handle.controller()
    result = await controller.admit(db, request.token, request.member, now)
    if isinstance(result, Denied):
        raise denial_exception(result)
    return admission_response(controller.facility_code, result)
