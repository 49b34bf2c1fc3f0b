"""
Member subscription, one per member per facility.

Written only by the payment collaborator; the subscription gate reads it.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Date, ForeignKey, Integer, String, UniqueConstraint

from facility_access.db.base import Base, TimestampMixin

SUBSCRIPTION_STATUSES = ("pending", "active", "suspended", "cancelled", "expired")


class Subscription(Base, TimestampMixin):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, nullable=False, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    payment_due = Column(Boolean, nullable=False, default=False)
    next_payment_date = Column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("member_id", "facility_id", name="uq_subscription_member_facility"),
        CheckConstraint(
            "status IN ('pending', 'active', 'suspended', 'cancelled', 'expired')",
            name="check_subscription_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, member={self.member_id}, status={self.status}, due={self.payment_due})>"
