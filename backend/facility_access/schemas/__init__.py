from facility_access.schemas.member import Gender, MemberProfile
from facility_access.schemas.time_slot import TimeSlotView
from facility_access.schemas.admission import (
    ScanRequest, ManualCheckInRequest, AttendanceResponse, AdmissionResponse, AvailabilityResponse,
)
from facility_access.schemas.waitlist import WaitlistRequest, WaitlistEntryResponse, WaitlistMarkRequest

__all__ = [
    "Gender", "MemberProfile", "TimeSlotView",
    "ScanRequest", "ManualCheckInRequest", "AttendanceResponse", "AdmissionResponse", "AvailabilityResponse",
    "WaitlistRequest", "WaitlistEntryResponse", "WaitlistMarkRequest",
]
