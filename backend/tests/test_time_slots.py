import pytest

from tutordesk.core.config import Settings
from tutordesk.core.exceptions import ConfigurationError, InvalidIntervalError
from tutordesk.schemas.scheduling import Interval, TimeSlot
from tutordesk.services.intervals import format_minutes, intervals_overlap, make_interval, parse_hhmm
from tutordesk.services.time_slots import (
    SLOT_LABELS,
    SLOT_RANGES,
    TimeSlotTaxonomy,
    is_valid_time_slot,
    slot_for_start_time,
    touched_slots,
)


def test_canonical_ranges_cover_the_day_contiguously():
    assert SLOT_RANGES[TimeSlot.morning] == Interval(start=360, end=720)
    assert SLOT_RANGES[TimeSlot.afternoon] == Interval(start=720, end=1140)
    assert SLOT_RANGES[TimeSlot.evening] == Interval(start=1140, end=1440)
    assert SLOT_LABELS[TimeSlot.afternoon] == "Afternoon (12:00-19:00)"


def test_touching_endpoints_do_not_overlap():
    assert not intervals_overlap(Interval(start=570, end=600), Interval(start=600, end=660))
    assert not intervals_overlap(Interval(start=600, end=660), Interval(start=570, end=600))
    assert intervals_overlap(Interval(start=570, end=601), Interval(start=600, end=660))
    assert intervals_overlap(Interval(start=600, end=660), Interval(start=610, end=620))


@pytest.mark.parametrize(
    ("start", "end", "expected"),
    [
        ("10:00", "11:00", (TimeSlot.morning,)),
        ("11:30", "13:00", (TimeSlot.morning, TimeSlot.afternoon)),
        ("12:00", "13:00", (TimeSlot.afternoon,)),
        ("11:00", "12:00", (TimeSlot.morning,)),
        ("18:00", "19:00", (TimeSlot.afternoon,)),
        ("18:30", "19:30", (TimeSlot.afternoon, TimeSlot.evening)),
        ("11:00", "20:00", (TimeSlot.morning, TimeSlot.afternoon, TimeSlot.evening)),
        ("02:00", "05:00", ()),
        ("05:00", "06:00", ()),
        ("05:30", "06:30", (TimeSlot.morning,)),
    ],
)
def test_touched_slots(start, end, expected):
    assert touched_slots(make_interval(start, end)) == expected


def test_slot_for_start_time_uses_half_open_ranges():
    assert slot_for_start_time("06:00") == TimeSlot.morning
    assert slot_for_start_time("11:59") == TimeSlot.morning
    assert slot_for_start_time("12:00") == TimeSlot.afternoon
    assert slot_for_start_time("19:00") == TimeSlot.evening
    assert slot_for_start_time("05:59") is None
    assert slot_for_start_time("") is None


def test_parse_and_format_times():
    assert parse_hhmm("9:05") == 545
    assert parse_hhmm("09:30:59") == 570
    assert parse_hhmm("24:00") == 1440
    assert format_minutes(1140) == "19:00"
    for bad in ("25:00", "24:30", "9am", "", None):
        with pytest.raises(InvalidIntervalError):
            parse_hhmm(bad)


def test_reversed_or_empty_interval_is_rejected():
    with pytest.raises(InvalidIntervalError):
        make_interval("11:00", "10:00")
    with pytest.raises(InvalidIntervalError) as exc_info:
        Interval(start=600, end=600)
    assert exc_info.value.details == {"start": 600, "end": 600}
    with pytest.raises(InvalidIntervalError):
        Interval(start=-5, end=30)


def test_taxonomy_from_settings():
    settings = Settings(_env_file=None, morning_start="08:00", afternoon_start="13:00", evening_start="18:00", day_end="21:00")
    taxonomy = TimeSlotTaxonomy.from_settings(settings)
    assert taxonomy.slot_range("evening") == Interval(start=1080, end=1260)
    assert taxonomy.touched_slots(make_interval("12:00", "13:00")) == (TimeSlot.morning,)
    assert taxonomy.slot_for_start_time("12:30") == TimeSlot.morning
    assert taxonomy.slot_for_start_time("21:30") is None


def test_taxonomy_rejects_unordered_boundaries():
    with pytest.raises(ConfigurationError):
        TimeSlotTaxonomy(600, 500, 900, 1000)


def test_is_valid_time_slot():
    assert is_valid_time_slot("morning")
    assert is_valid_time_slot(TimeSlot.evening)
    assert not is_valid_time_slot("night")


def test_interval_from_clock_strings():
    assert Interval.from_hhmm("09:30", "10:45") == Interval(start=570, end=645)
    assert Interval.from_hhmm("19:00:00", "24:00") == Interval(start=1140, end=1440)
    with pytest.raises(InvalidIntervalError):
        Interval.from_hhmm("11:00", "10:00")
    with pytest.raises(InvalidIntervalError):
        Interval.from_hhmm("9am", "10:00")
