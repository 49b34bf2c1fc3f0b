"""
Waitlist entries and their per-session position sequence.

Key design decisions:
- Positions are unique within (slot, date); they are never renumbered, a
  member who leaves is marked cancelled
- Partial unique index: at most one *pending* entry per member per session,
  so a member who left may join again at the back of the queue
- `waitlist_counters.last_position` is advanced with UPDATE .. RETURNING in
  the same transaction as the insert, so concurrent joins never share or
  skip a position
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)

from facility_access.db.base import Base, TimestampMixin

WAITLIST_STATUSES = ("pending", "notified", "confirmed", "cancelled")

# status -> statuses it may move to
WAITLIST_TRANSITIONS = {
    "pending": ("notified", "confirmed", "cancelled"),
    "notified": ("confirmed", "cancelled"),
    "confirmed": (),
    "cancelled": (),
}


class WaitlistEntry(Base, TimestampMixin):
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, index=True)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False)
    member_id = Column(Integer, nullable=False, index=True)
    session_date = Column(Date, nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")

    __table_args__ = (
        UniqueConstraint("time_slot_id", "session_date", "position", name="uq_waitlist_position"),
        Index(
            "uq_waitlist_pending_member",
            "time_slot_id", "member_id", "session_date",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        CheckConstraint("position > 0", name="check_waitlist_position_positive"),
        CheckConstraint(
            "status IN ('pending', 'notified', 'confirmed', 'cancelled')",
            name="check_waitlist_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<WaitlistEntry(id={self.id}, slot={self.time_slot_id}, member={self.member_id}, "
            f"position={self.position}, status={self.status})>"
        )


class WaitlistCounter(Base):
    __tablename__ = "waitlist_counters"

    time_slot_id = Column(Integer, ForeignKey("time_slots.id", ondelete="CASCADE"), primary_key=True)
    session_date = Column(Date, primary_key=True)
    last_position = Column(Integer, nullable=False, default=0)
