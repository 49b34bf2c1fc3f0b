"""
Read-only view of a time slot, as served by the schedule catalog.
Also the shape cached in Redis.
"""

from datetime import time
from typing import Optional

from pydantic import BaseModel


class TimeSlotView(BaseModel):
    id: int
    facility_id: int
    start_time: time
    end_time: time
    day_of_week: Optional[str] = None
    capacity: int
    restriction: str
    is_active: bool = True

    model_config = {"from_attributes": True, "frozen": True}
