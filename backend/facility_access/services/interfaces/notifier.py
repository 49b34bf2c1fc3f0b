"""
Notification port towards the broadcast collaborator.
Allows swapping the delivery mechanism without touching admission logic.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class FacilityEvent:
    """What the broadcast side learns after a commit or a waitlist change."""

    facility: str
    member_id: int
    slot_id: Optional[int]
    session_date: date
    outcome: str  # admitted, waitlist-joined, waitlist-left, waitlist-<status>

    def to_payload(self) -> dict:
        payload = asdict(self)
        payload["session_date"] = self.session_date.isoformat()
        return payload


class Notifier(ABC):
    """
    Interface for fire-and-forget notifications.

    Implementations:
    - RedisNotifier: publish on a Redis pub/sub channel per facility
    - NullNotifier: drop events (Redis disabled, tests)

    `publish` must never raise and must return quickly: a lost notification
    never rolls back or delays an admission decision.
    """

    @abstractmethod
    async def publish(self, event: FacilityEvent) -> bool:
        """
        Deliver one event.

        Returns:
            True if handed to the transport, False if dropped
        """
        pass
