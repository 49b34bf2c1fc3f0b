"""
Recurring time slot of a scheduled facility.

Owned by catalog administration; the engine only reads active rows.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, Time
from sqlalchemy.orm import relationship

from facility_access.db.base import Base, TimestampMixin

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class TimeSlot(Base, TimestampMixin):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    day_of_week = Column(String(9), nullable=True)  # NULL = every day
    capacity = Column(Integer, nullable=False, default=20)
    restriction = Column(String(20), nullable=False, default="open")
    is_active = Column(Boolean, nullable=False, default=True)

    facility = relationship("Facility", back_populates="time_slots")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_slot_time_order"),
        CheckConstraint("capacity > 0", name="check_slot_capacity_positive"),
        # The catalog query: active slots of one facility ordered by start
        Index("ix_time_slots_facility_active_start", "facility_id", "is_active", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<TimeSlot(id={self.id}, {self.start_time}-{self.end_time}, "
            f"restriction={self.restriction}, capacity={self.capacity})>"
        )
