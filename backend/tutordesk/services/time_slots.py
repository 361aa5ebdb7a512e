"""Morning/afternoon/evening segments of the day.

The three segments are contiguous, half-open and together cover
``[morning_start, day_end)``. Availability records carry one flag per
segment, so any interval is checked against the subset of segments it
touches.
"""
from __future__ import annotations

from typing import Optional

from tutordesk.core.config import Settings
from tutordesk.core.exceptions import ConfigurationError
from tutordesk.schemas.scheduling import MINUTES_PER_DAY, Interval, TimeSlot
from tutordesk.services.intervals import format_minutes, intervals_overlap, parse_hhmm

SLOT_ORDER: tuple[TimeSlot, ...] = (TimeSlot.morning, TimeSlot.afternoon, TimeSlot.evening)

SLOT_NAMES = {
    TimeSlot.morning: "Morning",
    TimeSlot.afternoon: "Afternoon",
    TimeSlot.evening: "Evening",
}


class TimeSlotTaxonomy:
    def __init__(
        self,
        morning_start: int = 6 * 60,
        afternoon_start: int = 12 * 60,
        evening_start: int = 19 * 60,
        day_end: int = MINUTES_PER_DAY,
    ) -> None:
        bounds = [morning_start, afternoon_start, evening_start, day_end]
        if bounds[0] < 0 or bounds[-1] > MINUTES_PER_DAY:
            raise ConfigurationError("Time slot boundaries must lie within the day")
        if any(later <= earlier for earlier, later in zip(bounds, bounds[1:])):
            raise ConfigurationError("Time slot boundaries must be strictly increasing")
        self.ranges: dict[TimeSlot, Interval] = {
            slot: Interval(start=bounds[index], end=bounds[index + 1])
            for index, slot in enumerate(SLOT_ORDER)
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "TimeSlotTaxonomy":
        return cls(*settings.slot_boundaries())

    def slot_range(self, slot: TimeSlot | str) -> Interval:
        return self.ranges[TimeSlot(slot)]

    def touched_slots(self, interval: Interval) -> tuple[TimeSlot, ...]:
        return tuple(slot for slot in SLOT_ORDER if intervals_overlap(self.ranges[slot], interval))

    def slot_for_minute(self, minute: int) -> Optional[TimeSlot]:
        for slot in SLOT_ORDER:
            slot_range = self.ranges[slot]
            if slot_range.start <= minute < slot_range.end:
                return slot
        return None

    def slot_for_start_time(self, value: str | None) -> Optional[TimeSlot]:
        if not value:
            return None
        return self.slot_for_minute(parse_hhmm(value))

    def label(self, slot: TimeSlot | str) -> str:
        slot_range = self.slot_range(slot)
        return (
            f"{SLOT_NAMES[TimeSlot(slot)]} "
            f"({format_minutes(slot_range.start)}-{format_minutes(slot_range.end)})"
        )

    def labels(self) -> dict[TimeSlot, str]:
        return {slot: self.label(slot) for slot in SLOT_ORDER}


DEFAULT_TAXONOMY = TimeSlotTaxonomy()
SLOT_RANGES = DEFAULT_TAXONOMY.ranges
SLOT_LABELS = DEFAULT_TAXONOMY.labels()


def is_valid_time_slot(value) -> bool:
    try:
        TimeSlot(value)
    except ValueError:
        return False
    return True


def slot_range(slot: TimeSlot | str) -> Interval:
    return DEFAULT_TAXONOMY.slot_range(slot)


def touched_slots(interval: Interval, taxonomy: TimeSlotTaxonomy = DEFAULT_TAXONOMY) -> tuple[TimeSlot, ...]:
    return taxonomy.touched_slots(interval)


def slot_for_start_time(value: str | None, taxonomy: TimeSlotTaxonomy = DEFAULT_TAXONOMY) -> Optional[TimeSlot]:
    return taxonomy.slot_for_start_time(value)
