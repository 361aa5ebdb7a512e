from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tutordesk.core.exceptions import InvalidIntervalError

MINUTES_PER_DAY = 24 * 60

SubjectId = int | str
BookingId = int | str


class TimeSlot(str, Enum):
    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


class RestrictionPolicy(str, Enum):
    unrestricted = "unrestricted"
    checked = "checked"

    @classmethod
    def from_flag(cls, flag: int | None, default: Optional["RestrictionPolicy"] = None) -> "RestrictionPolicy":
        # Legacy teacher column: 0 skips availability, 1 enforces it, anything else is a data gap.
        if isinstance(flag, bool):
            flag = None
        if flag == 1:
            return cls.checked
        if flag == 0:
            return cls.unrestricted
        return default if default is not None else cls.unrestricted

    @classmethod
    def coerce(cls, value, default: "RestrictionPolicy") -> "RestrictionPolicy":
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return cls.from_flag(value, default)
        if isinstance(value, str):
            stripped = value.strip().lower()
            if stripped in ("0", "1"):
                return cls.from_flag(int(stripped), default)
            try:
                return cls(stripped)
            except ValueError:
                return default
        return default


class Interval(BaseModel):
    """Half-open ``[start, end)`` range in minutes since local midnight."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int

    @model_validator(mode="after")
    def validate_bounds(self) -> "Interval":
        if self.start < 0 or self.end > MINUTES_PER_DAY:
            raise InvalidIntervalError(
                f"Interval [{self.start}, {self.end}) falls outside the day",
                start=self.start,
                end=self.end,
            )
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Interval start {self.start} must be before end {self.end}",
                start=self.start,
                end=self.end,
            )
        return self

    @classmethod
    def from_hhmm(cls, start: str, end: str) -> "Interval":
        from tutordesk.services.intervals import parse_hhmm

        return cls(start=parse_hhmm(start), end=parse_hhmm(end))


class Booking(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: BookingId
    subject_id: SubjectId
    interval: Interval
    status: BookingStatus = BookingStatus.pending
    student_id: Optional[SubjectId] = None
    date: Optional[dt.date] = None

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.cancelled


class AvailabilityRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_id: SubjectId
    date: dt.date
    morning: bool = False
    afternoon: bool = False
    evening: bool = False

    def slot_value(self, slot: TimeSlot) -> bool:
        return getattr(self, TimeSlot(slot).value)


class ResolveResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    busy: frozenset[SubjectId] = Field(default_factory=frozenset)
    unavailable: frozenset[SubjectId] = Field(default_factory=frozenset)
    touched_slots: tuple[TimeSlot, ...] = ()

    def is_eligible(self, subject_id: SubjectId) -> bool:
        return subject_id not in self.busy and subject_id not in self.unavailable

    def eligible(self, subjects) -> list[SubjectId]:
        return [subject_id for subject_id in subjects if self.is_eligible(subject_id)]


class TeacherStatus(BaseModel):
    has_class: bool = False
    is_unavailable: bool = False

    @property
    def hint(self) -> Optional[str]:
        if self.has_class:
            return "booked"
        if self.is_unavailable:
            return "unavailable"
        return None


class ConflictCheck(BaseModel):
    has_conflicts: bool
    type: Literal["none", "duplicate", "overlap_teacher", "overlap_student"] = "none"
    message: str = ""
    existing: Optional[Booking] = None
