"""
Facility and entrance token registry.

Key design decisions:
- `entrance_tokens.token` is globally unique, so one token can never belong to
  two facilities; the router still refuses to guess if the data says otherwise
- Open-access facilities (a gym) have no time slots; they carry the
  eligibility restriction and an optional daily capacity themselves
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from facility_access.db.base import Base, TimestampMixin

FACILITY_KIND_SCHEDULED = "scheduled"
FACILITY_KIND_OPEN_ACCESS = "open_access"


class Facility(Base, TimestampMixin):
    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False, default=FACILITY_KIND_SCHEDULED)
    daily_capacity = Column(Integer, nullable=True)  # open-access only, NULL = unlimited
    restriction = Column(String(20), nullable=False, default="open")
    is_active = Column(Boolean, nullable=False, default=True)

    tokens = relationship("EntranceToken", back_populates="facility", lazy="selectin")
    time_slots = relationship("TimeSlot", back_populates="facility")

    __table_args__ = (
        CheckConstraint(
            f"kind IN ('{FACILITY_KIND_SCHEDULED}', '{FACILITY_KIND_OPEN_ACCESS}')",
            name="check_facility_kind",
        ),
        CheckConstraint("daily_capacity IS NULL OR daily_capacity > 0", name="check_daily_capacity_positive"),
    )

    @property
    def is_scheduled(self) -> bool:
        return self.kind == FACILITY_KIND_SCHEDULED

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, code={self.code}, kind={self.kind})>"


class EntranceToken(Base, TimestampMixin):
    __tablename__ = "entrance_tokens"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(255), unique=True, nullable=False, index=True)
    label = Column(String(255), nullable=True)  # e.g. "north entrance"
    is_active = Column(Boolean, nullable=False, default=True)

    facility = relationship("Facility", back_populates="tokens")

    def __repr__(self) -> str:
        return f"<EntranceToken(id={self.id}, facility={self.facility_id}, active={self.is_active})>"
