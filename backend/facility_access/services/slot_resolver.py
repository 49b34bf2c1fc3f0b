"""
Slot resolution: which slot a scan at `now` belongs to.

Pure and synchronous. The caller passes local wall-clock time of the
facility; the input sequence is never reordered or mutated.

Order of rules:
  1. `now` inside [start, end) of a slot            -> that slot
  2. a slot starts within the grace window of `now` -> that upcoming slot
  3. earlier than the first slot minus grace        -> first slot, or
                                                      no-slot-available when
                                                      early arrivals are rejected
  4. at or after the end of the last slot           -> session-window-ended
  5. in a long gap between two slots                -> the next slot
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from facility_access.models.time_slot import DAY_NAMES
from facility_access.services.results import DenialKind

DEFAULT_GRACE_WINDOW = timedelta(minutes=10)

EARLY_ARRIVAL_ACCEPT = "accept"
EARLY_ARRIVAL_REJECT = "reject"


@dataclass(frozen=True)
class SlotResolution:
    slot: Optional[object] = None
    reason: Optional[str] = None
    error: Optional[DenialKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def day_name(moment: datetime) -> str:
    return DAY_NAMES[moment.weekday()]


def slots_for_day(slots: Iterable, moment: datetime) -> list:
    """Active slots that run on the weekday of `moment`, sorted by start time (new list)."""
    today = day_name(moment)
    todays = [
        slot for slot in slots
        if slot.is_active and (slot.day_of_week is None or slot.day_of_week.lower() == today)
    ]
    return sorted(todays, key=lambda slot: slot.start_time)


def _seconds(value) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def resolve_slot(
    slots: Iterable,
    now: datetime,
    grace: timedelta = DEFAULT_GRACE_WINDOW,
    early_arrival: str = EARLY_ARRIVAL_ACCEPT,
) -> SlotResolution:
    ordered = slots_for_day(slots, now)
    if not ordered:
        return SlotResolution(error=DenialKind.NO_SLOT_AVAILABLE)

    current = _seconds(now)
    grace_seconds = int(grace.total_seconds())

    for slot in ordered:
        if _seconds(slot.start_time) <= current < _seconds(slot.end_time):
            return SlotResolution(slot=slot, reason="current_slot")

    for slot in ordered:
        start = _seconds(slot.start_time)
        if current < start <= current + grace_seconds:
            return SlotResolution(slot=slot, reason="within_grace_window")

    first = ordered[0]
    if current < _seconds(first.start_time):
        if early_arrival == EARLY_ARRIVAL_REJECT:
            return SlotResolution(error=DenialKind.NO_SLOT_AVAILABLE)
        return SlotResolution(slot=first, reason="before_first_slot")

    if current >= _seconds(ordered[-1].end_time):
        return SlotResolution(error=DenialKind.SESSION_WINDOW_ENDED)

    for slot in ordered:
        if current < _seconds(slot.start_time):
            return SlotResolution(slot=slot, reason="next_upcoming_slot")

    # Not reachable while every slot has end > start; fail closed regardless
    return SlotResolution(error=DenialKind.NO_SLOT_AVAILABLE)
