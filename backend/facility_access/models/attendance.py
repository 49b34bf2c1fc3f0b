"""
Attendance records and the per-session occupancy counter.

Key design decisions:
- Unique constraint on (facility, member, slot_scope, session_date) makes a
  second admission for the same session impossible, whatever the interleaving
- `slot_scope` mirrors `time_slot_id` but is 0 for open-access facilities:
  NULLs never collide in a unique constraint, so the nullable FK alone could
  not enforce one admission per member per day at the gym
- `slot_occupancy.admitted` is only changed by a conditional increment
  (`admitted < capacity`), which is what keeps concurrent admissions from
  overshooting capacity
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from facility_access.db.base import Base, TimestampMixin

CHECK_IN_METHODS = ("qr_scan", "manual")
OPEN_ACCESS_SCOPE = 0


class AttendanceRecord(Base, TimestampMixin):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=True)
    slot_scope = Column(Integer, nullable=False, default=OPEN_ACCESS_SCOPE)
    member_id = Column(Integer, nullable=False, index=True)
    session_date = Column(Date, nullable=False)
    check_in_time = Column(DateTime(timezone=True), nullable=False)
    check_in_method = Column(String(20), nullable=False, default="qr_scan")

    __table_args__ = (
        UniqueConstraint(
            "facility_id", "member_id", "slot_scope", "session_date",
            name="uq_attendance_member_session",
        ),
        CheckConstraint("check_in_method IN ('qr_scan', 'manual')", name="check_attendance_method"),
        Index("ix_attendance_session", "facility_id", "slot_scope", "session_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceRecord(id={self.id}, member={self.member_id}, "
            f"slot={self.time_slot_id}, date={self.session_date})>"
        )


class SlotOccupancy(Base):
    __tablename__ = "slot_occupancy"

    facility_id = Column(Integer, ForeignKey("facilities.id", ondelete="CASCADE"), primary_key=True)
    slot_scope = Column(Integer, primary_key=True)
    session_date = Column(Date, primary_key=True)
    admitted = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("admitted >= 0", name="check_occupancy_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<SlotOccupancy(facility={self.facility_id}, scope={self.slot_scope}, admitted={self.admitted})>"
