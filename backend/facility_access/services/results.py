"""
Typed outcomes of engine operations.

Denials are expected, frequent outcomes and travel as values. Every denial
carries a machine reason code the calling surface can turn into an
actionable message (see REASON_MESSAGES).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class DenialKind(str, Enum):
    INVALID_TOKEN = "invalid-token"
    UNKNOWN_TOKEN = "unknown-token"
    AMBIGUOUS_TOKEN = "ambiguous-token"
    NO_SLOT_AVAILABLE = "no-slot-available"
    SESSION_WINDOW_ENDED = "session-window-ended"
    ELIGIBILITY = "eligibility"
    ENTITLEMENT = "entitlement"
    ALREADY_ADMITTED = "already-admitted"
    CAPACITY_EXCEEDED = "capacity-exceeded"
    ALREADY_WAITLISTED = "already-waitlisted"
    NOT_WAITLISTED = "not-waitlisted"
    INVALID_TRANSITION = "invalid-transition"
    CONFIGURATION_FAULT = "configuration-fault"


@dataclass(frozen=True)
class Denied:
    kind: DenialKind
    detail: Optional[str] = None

    @property
    def reason(self) -> str:
        """Reason code, e.g. `capacity-exceeded` or `eligibility:gender-mismatch`."""
        if self.detail and self.kind in (DenialKind.ELIGIBILITY, DenialKind.ENTITLEMENT):
            return f"{self.kind.value}:{self.detail}"
        return self.kind.value

    @property
    def message(self) -> str:
        return REASON_MESSAGES.get(self.reason) or REASON_MESSAGES.get(self.kind.value, self.reason)

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class Committed:
    record: Any  # AttendanceRecord
    slot: Any = None  # TimeSlotView, None for open-access facilities
    slot_reason: Optional[str] = None
    admitted_count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Accepted:
    """Successful waitlist operation. `entry` is None for a plain acknowledgement."""

    entry: Any = None

    @property
    def ok(self) -> bool:
        return True


AdmissionResult = Union[Committed, Denied]
WaitlistResult = Union[Accepted, Denied]


REASON_MESSAGES = {
    "invalid-token": "This entrance code is not valid for this facility.",
    "unknown-token": "Invalid or inactive entrance code.",
    "ambiguous-token": "This entrance code is misconfigured. Please contact staff.",
    "no-slot-available": "No session is available right now.",
    "session-window-ended": "All sessions for today have ended. Please check back tomorrow.",
    "eligibility": "You are not eligible for this session.",
    "eligibility:gender-not-set": "Please complete your profile (gender) to use this session.",
    "eligibility:gender-mismatch": "This session is restricted to another group.",
    "eligibility:privileged-tier-required": "This session is reserved for faculty, postgraduates and alumni.",
    "eligibility:invalid-restriction": "This session is misconfigured. Please contact staff.",
    "entitlement": "Your membership does not currently allow entry.",
    "entitlement:no-subscription": "No membership found. Please register first.",
    "entitlement:payment-overdue": "Your membership payment is overdue. Please pay to continue.",
    "already-admitted": "You have already checked in for this session.",
    "capacity-exceeded": "This session is full. Would you like to join the waitlist?",
    "already-waitlisted": "You are already on the waitlist for this session.",
    "not-waitlisted": "You are not on the waitlist for this session.",
    "invalid-transition": "The waitlist entry cannot move to that status.",
    "configuration-fault": "Entry is unavailable due to a configuration problem. Please contact staff.",
}
