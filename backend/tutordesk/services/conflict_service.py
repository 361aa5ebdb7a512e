from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Optional, Union

from tutordesk.core.config import Settings, get_settings
from tutordesk.schemas.scheduling import (
    AvailabilityRecord,
    Booking,
    BookingId,
    ConflictCheck,
    Interval,
    ResolveResult,
    RestrictionPolicy,
    SubjectId,
    TeacherStatus,
)
from tutordesk.services.intervals import ensure_valid_interval, intervals_overlap
from tutordesk.services.time_slots import DEFAULT_TAXONOMY, TimeSlotTaxonomy

logger = logging.getLogger(__name__)

AvailabilityKey = tuple[SubjectId, dt.date]
AvailabilityLookup = Union[
    Callable[[SubjectId, dt.date], Optional[AvailabilityRecord]],
    Mapping[AvailabilityKey, AvailabilityRecord],
]
PolicyLookup = Union[
    Callable[[SubjectId], Optional[RestrictionPolicy]],
    Mapping[SubjectId, RestrictionPolicy],
]


def build_availability_index(records: Iterable[AvailabilityRecord]) -> dict[AvailabilityKey, AvailabilityRecord]:
    index: dict[AvailabilityKey, AvailabilityRecord] = {}
    for record in records:
        index[(record.subject_id, record.date)] = record
    return index


def _availability_getter(availability: AvailabilityLookup | None):
    if availability is None:
        return lambda subject_id, on_date: None
    if isinstance(availability, Mapping):
        return lambda subject_id, on_date: availability.get((subject_id, on_date))
    return availability


def _policy_getter(policy: PolicyLookup | None):
    if policy is None:
        return lambda subject_id: None
    if isinstance(policy, Mapping):
        return policy.get
    return policy


def busy_subjects(
    target: Interval,
    bookings: Iterable[Booking] | None,
    exclude_booking_id: BookingId | None = None,
) -> set[SubjectId]:
    busy: set[SubjectId] = set()
    for booking in bookings or ():
        if not booking.is_active:
            continue
        if exclude_booking_id is not None and str(booking.id) == str(exclude_booking_id):
            continue
        if intervals_overlap(booking.interval, target):
            busy.add(booking.subject_id)
    return busy


def resolve(
    target: Interval,
    bookings: Iterable[Booking] | None,
    availability: AvailabilityLookup | None,
    policy: PolicyLookup | None,
    subjects: Iterable[SubjectId] | None,
    date: dt.date,
    exclude_booking_id: BookingId | None = None,
    *,
    taxonomy: TimeSlotTaxonomy = DEFAULT_TAXONOMY,
    default_policy: RestrictionPolicy = RestrictionPolicy.unrestricted,
    missing_record_available: bool = True,
) -> ResolveResult:
    """Classify ``subjects`` as busy and/or unavailable for ``target`` on ``date``.

    Busy: an active booking other than ``exclude_booking_id`` overlaps the
    target. Unavailable: the subject's policy is checked and its record for
    the date has ``False`` on any slot the target touches. Subjects without a
    record, or without a known policy, are treated as available unless the
    caller opts out of that through ``missing_record_available`` and
    ``default_policy``.

    The availability lookup must reflect committed data only.
    """
    ensure_valid_interval(target)

    busy = busy_subjects(target, bookings, exclude_booking_id)
    slots = taxonomy.touched_slots(target)
    get_record = _availability_getter(availability)
    get_policy = _policy_getter(policy)

    unavailable: set[SubjectId] = set()
    for subject_id in subjects or ():
        if RestrictionPolicy.coerce(get_policy(subject_id), default_policy) is RestrictionPolicy.unrestricted:
            continue
        record = get_record(subject_id, date)
        if record is None:
            if not missing_record_available and slots:
                unavailable.add(subject_id)
            continue
        for slot in slots:
            if not record.slot_value(slot):
                unavailable.add(subject_id)
                break

    logger.debug(
        "Resolved [%s, %s) on %s: %d busy, %d unavailable",
        target.start,
        target.end,
        date,
        len(busy),
        len(unavailable),
    )
    return ResolveResult(busy=frozenset(busy), unavailable=frozenset(unavailable), touched_slots=slots)


def teacher_status_hints(result: ResolveResult, subjects: Iterable[SubjectId]) -> dict[SubjectId, TeacherStatus]:
    return {
        subject_id: TeacherStatus(
            has_class=subject_id in result.busy,
            is_unavailable=subject_id in result.unavailable,
        )
        for subject_id in subjects
    }


def order_candidates(
    subjects: Iterable[SubjectId],
    policy: PolicyLookup | None,
    default_policy: RestrictionPolicy = RestrictionPolicy.unrestricted,
) -> list[SubjectId]:
    # Checked teachers are listed first in the booking form, each group keeps its order.
    get_policy = _policy_getter(policy)
    checked: list[SubjectId] = []
    unrestricted: list[SubjectId] = []
    for subject_id in subjects:
        if RestrictionPolicy.coerce(get_policy(subject_id), default_policy) is RestrictionPolicy.checked:
            checked.append(subject_id)
        else:
            unrestricted.append(subject_id)
    return checked + unrestricted


def check_schedule_conflicts(
    bookings: Iterable[Booking] | None,
    teacher_id: SubjectId | None,
    student_id: SubjectId | None,
    target: Interval,
    exclude_booking_id: BookingId | None = None,
) -> ConflictCheck:
    ensure_valid_interval(target)
    active = [
        booking
        for booking in bookings or ()
        if booking.is_active
        and (exclude_booking_id is None or str(booking.id) != str(exclude_booking_id))
    ]

    for booking in active:
        if (
            teacher_id is not None
            and booking.subject_id == teacher_id
            and booking.student_id == student_id
            and booking.interval == target
        ):
            return ConflictCheck(
                has_conflicts=True,
                type="duplicate",
                message="An identical booking already exists",
                existing=booking,
            )

    if teacher_id is not None:
        for booking in active:
            if booking.subject_id == teacher_id and intervals_overlap(booking.interval, target):
                return ConflictCheck(
                    has_conflicts=True,
                    type="overlap_teacher",
                    message="Teacher already has a booking in this time range",
                    existing=booking,
                )

    if student_id is not None:
        for booking in active:
            if booking.student_id == student_id and intervals_overlap(booking.interval, target):
                return ConflictCheck(
                    has_conflicts=True,
                    type="overlap_student",
                    message="Student already has a booking in this time range",
                    existing=booking,
                )

    return ConflictCheck(has_conflicts=False)


class ConflictResolver:
    """``resolve`` bound to the configured slot taxonomy and fail-open defaults."""

    def __init__(self, settings: Settings | None = None, taxonomy: TimeSlotTaxonomy | None = None) -> None:
        settings = settings or get_settings()
        self.taxonomy = taxonomy or TimeSlotTaxonomy.from_settings(settings)
        self.default_policy = RestrictionPolicy(settings.default_restriction_policy)
        self.missing_record_available = settings.availability_missing_record_available

    def resolve(
        self,
        target: Interval,
        bookings: Iterable[Booking] | None,
        availability: AvailabilityLookup | None,
        policy: PolicyLookup | None,
        subjects: Iterable[SubjectId] | None,
        date: dt.date,
        exclude_booking_id: BookingId | None = None,
    ) -> ResolveResult:
        return resolve(
            target,
            bookings,
            availability,
            policy,
            subjects,
            date,
            exclude_booking_id,
            taxonomy=self.taxonomy,
            default_policy=self.default_policy,
            missing_record_available=self.missing_record_available,
        )

    def status_hints(
        self,
        target: Interval,
        bookings: Iterable[Booking] | None,
        availability: AvailabilityLookup | None,
        policy: PolicyLookup | None,
        subjects: Iterable[SubjectId],
        date: dt.date,
        exclude_booking_id: BookingId | None = None,
    ) -> dict[SubjectId, TeacherStatus]:
        subjects = list(subjects)
        result = self.resolve(target, bookings, availability, policy, subjects, date, exclude_booking_id)
        return teacher_status_hints(result, subjects)

    def order_candidates(self, subjects: Iterable[SubjectId], policy: PolicyLookup | None) -> list[SubjectId]:
        return order_candidates(subjects, policy, self.default_policy)
