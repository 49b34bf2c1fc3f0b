from facility_access.models.facility import Facility, EntranceToken
from facility_access.models.time_slot import TimeSlot
from facility_access.models.subscription import Subscription
from facility_access.models.attendance import AttendanceRecord, SlotOccupancy
from facility_access.models.waitlist import WaitlistEntry, WaitlistCounter

__all__ = [
    "Facility", "EntranceToken",
    "TimeSlot",
    "Subscription",
    "AttendanceRecord", "SlotOccupancy",
    "WaitlistEntry", "WaitlistCounter",
]
