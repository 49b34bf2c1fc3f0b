"""
Pydantic schemas for admission request/response validation.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field

from facility_access.schemas.member import MemberProfile


class ScanRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=255)
    member: MemberProfile


class ManualCheckInRequest(BaseModel):
    member: MemberProfile


class AttendanceResponse(BaseModel):
    id: int
    facility_id: int
    time_slot_id: Optional[int] = None
    member_id: int
    session_date: date
    check_in_time: datetime
    check_in_method: str

    model_config = {"from_attributes": True}


class AdmissionResponse(BaseModel):
    message: str
    facility: str
    attendance: AttendanceResponse
    slot_start: Optional[time] = None
    slot_end: Optional[time] = None
    slot_reason: Optional[str] = None
    admitted_count: Optional[int] = None


class SlotAvailability(BaseModel):
    slot_id: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    restriction: str
    capacity: Optional[int] = None
    admitted: int
    remaining: Optional[int] = None


class AvailabilityResponse(BaseModel):
    facility: str
    date: date
    slots: list[SlotAvailability]
