"""
Pydantic schemas for waitlist request/response validation.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from facility_access.schemas.member import MemberProfile


class WaitlistRequest(BaseModel):
    member: MemberProfile
    slot_id: int = Field(..., gt=0)
    session_date: date


class WaitlistEntryResponse(BaseModel):
    id: int
    time_slot_id: int
    member_id: int
    session_date: date
    position: int
    status: str

    model_config = {"from_attributes": True}


class WaitlistMarkRequest(BaseModel):
    status: Literal["notified", "confirmed", "cancelled"]


class WaitlistLeaveResponse(BaseModel):
    message: str
    slot_id: int
    session_date: date
