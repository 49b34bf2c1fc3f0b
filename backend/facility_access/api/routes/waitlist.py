"""
Waitlist endpoints for full sessions.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from facility_access.api.deps import denial_exception
from facility_access.db.session import get_db
from facility_access.schemas.waitlist import (
    WaitlistEntryResponse,
    WaitlistLeaveResponse,
    WaitlistMarkRequest,
    WaitlistRequest,
)
from facility_access.services.interfaces.notifier import Notifier
from facility_access.services.notifier_factory import get_notifier
from facility_access.services.results import Denied
from facility_access.services.waitlist_service import WaitlistManager

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


def get_waitlist_manager(notifier: Notifier = Depends(get_notifier)) -> WaitlistManager:
    return WaitlistManager(notifier)


@router.post("", response_model=WaitlistEntryResponse, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    request: WaitlistRequest,
    db: AsyncSession = Depends(get_db),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    """Join the waitlist of a full session. The response carries the queue position."""
    result = await manager.join(db, request.member, request.slot_id, request.session_date)
    if isinstance(result, Denied):
        raise denial_exception(result)
    return result.entry


@router.delete("", response_model=WaitlistLeaveResponse)
async def leave_waitlist(
    request: WaitlistRequest,
    db: AsyncSession = Depends(get_db),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    result = await manager.leave(db, request.member, request.slot_id, request.session_date)
    if isinstance(result, Denied):
        raise denial_exception(result)
    return WaitlistLeaveResponse(
        message="You have left the waitlist",
        slot_id=request.slot_id,
        session_date=request.session_date,
    )


@router.get("/{slot_id}/{session_date}", response_model=list[WaitlistEntryResponse])
async def list_waitlist(
    slot_id: int,
    session_date: date,
    db: AsyncSession = Depends(get_db),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    """All entries of a session in queue order, cancelled ones included."""
    return await manager.list_entries(db, slot_id, session_date)


@router.get("/{slot_id}/{session_date}/next", response_model=Optional[WaitlistEntryResponse])
async def next_in_line(
    slot_id: int,
    session_date: date,
    db: AsyncSession = Depends(get_db),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    """The pending entry with the lowest position, or null when nobody waits."""
    return await manager.peek_next(db, slot_id, session_date)


@router.patch("/entries/{entry_id}", response_model=WaitlistEntryResponse)
async def mark_entry(
    entry_id: int,
    request: WaitlistMarkRequest,
    db: AsyncSession = Depends(get_db),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    """Move an entry along: pending -> notified -> confirmed, or cancelled."""
    result = await manager.mark(db, entry_id, request.status)
    if isinstance(result, Denied):
        raise denial_exception(result)
    return result.entry
