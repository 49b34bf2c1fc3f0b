"""
Tests for slot resolution: rule order, grace window, early arrivals, end of day.
"""

from datetime import datetime, time, timedelta

import pytest

from facility_access.schemas.time_slot import TimeSlotView
from facility_access.services.results import DenialKind
from facility_access.services.slot_resolver import (
    EARLY_ARRIVAL_REJECT,
    resolve_slot,
    slots_for_day,
)

MONDAY = datetime(2025, 3, 3)
GRACE = timedelta(minutes=10)


def slot(slot_id, start, end, day=None, active=True, capacity=2):
    return TimeSlotView(
        id=slot_id,
        facility_id=1,
        start_time=start,
        end_time=end,
        day_of_week=day,
        capacity=capacity,
        restriction="open",
        is_active=active,
    )


def at(hour, minute=0, second=0):
    return MONDAY.replace(hour=hour, minute=minute, second=second)


MORNING = slot(1, time(8, 0), time(10, 0))
LATE_MORNING = slot(2, time(10, 0), time(12, 0))
EVENING = slot(3, time(18, 0), time(20, 0))


def test_early_arrival_within_grace_resolves_to_upcoming_slot():
    resolution = resolve_slot([MORNING], at(7, 52), GRACE)
    assert resolution.slot == MORNING
    assert resolution.reason == "within_grace_window"


def test_back_to_back_slots_resolve_to_current_not_ended():
    resolution = resolve_slot([MORNING, LATE_MORNING], at(10, 1), GRACE)
    assert resolution.ok
    assert resolution.slot == LATE_MORNING
    assert resolution.reason == "current_slot"


def test_start_is_inclusive_and_end_is_exclusive():
    assert resolve_slot([MORNING, LATE_MORNING], at(8, 0), GRACE).slot == MORNING
    assert resolve_slot([MORNING, LATE_MORNING], at(10, 0), GRACE).slot == LATE_MORNING


def test_current_slot_wins_over_next_starting_within_grace():
    resolution = resolve_slot([MORNING, LATE_MORNING], at(9, 55), GRACE)
    assert resolution.slot == MORNING
    assert resolution.reason == "current_slot"


def test_very_early_arrival_accepted_as_first_slot_by_default():
    resolution = resolve_slot([EVENING, MORNING], at(6, 0), GRACE)
    assert resolution.slot == MORNING
    assert resolution.reason == "before_first_slot"


def test_very_early_arrival_rejected_when_policy_says_so():
    resolution = resolve_slot([MORNING], at(6, 0), GRACE, early_arrival=EARLY_ARRIVAL_REJECT)
    assert not resolution.ok
    assert resolution.error == DenialKind.NO_SLOT_AVAILABLE


def test_grace_applies_even_when_early_arrivals_are_rejected():
    resolution = resolve_slot([MORNING], at(7, 50), GRACE, early_arrival=EARLY_ARRIVAL_REJECT)
    assert resolution.slot == MORNING


def test_after_last_slot_the_session_window_has_ended():
    resolution = resolve_slot([MORNING, LATE_MORNING], at(12, 0), GRACE)
    assert resolution.error == DenialKind.SESSION_WINDOW_ENDED
    assert resolution.slot is None


def test_gap_between_slots_resolves_to_next_slot():
    resolution = resolve_slot([MORNING, EVENING], at(14, 0), GRACE)
    assert resolution.slot == EVENING
    assert resolution.reason == "next_upcoming_slot"


def test_no_slots_means_no_slot_available():
    assert resolve_slot([], at(9, 0), GRACE).error == DenialKind.NO_SLOT_AVAILABLE


def test_inactive_and_other_weekday_slots_are_ignored():
    tuesday_only = slot(4, time(8, 0), time(10, 0), day="tuesday")
    inactive = slot(5, time(8, 0), time(10, 0), active=False)
    monday = slot(6, time(11, 0), time(12, 0), day="Monday")

    resolution = resolve_slot([tuesday_only, inactive, monday], at(9, 0), GRACE)
    assert resolution.slot == monday
    assert slots_for_day([tuesday_only, inactive, monday], at(9, 0)) == [monday]


def test_slot_ending_just_before_midnight():
    night = slot(7, time(22, 0), time(23, 59, 59))
    assert resolve_slot([night], at(23, 59, 30), GRACE).slot == night
    assert resolve_slot([night], at(23, 59, 59), GRACE).error == DenialKind.SESSION_WINDOW_ENDED


@pytest.mark.parametrize("hour,minute", [(6, 0), (7, 52), (8, 0), (9, 59), (10, 1), (14, 0), (19, 30), (21, 0)])
def test_resolution_is_deterministic_and_input_is_not_reordered(hour, minute):
    slots = [EVENING, LATE_MORNING, MORNING]
    snapshot = list(slots)

    first = resolve_slot(slots, at(hour, minute), GRACE)
    second = resolve_slot(list(reversed(slots)), at(hour, minute), GRACE)

    assert first == second
    assert slots == snapshot
