"""SQLAlchemy-backed implementation of the scheduling store contracts.

Reads return the value objects the resolver and the staging grids consume.
Writes come back through ``persist`` callables that apply a whole batch in a
single transaction, so a failed batch leaves every row untouched.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Literal

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutordesk.core.config import get_settings
from tutordesk.core.exceptions import AppError, PersistFailure, ResourceNotFoundError
from tutordesk.models import (
    CourseArrangement,
    StudentDailyAvailability,
    Teacher,
    TeacherDailyAvailability,
)
from tutordesk.models.people import STATUS_DELETED
from tutordesk.schemas.scheduling import AvailabilityRecord, Booking, BookingStatus, RestrictionPolicy
from tutordesk.schemas.staging import AvailabilityTriple, AvailabilityUpdate, FeeUpdate, FeeValues
from tutordesk.services.intervals import make_interval

logger = logging.getLogger(__name__)

SubjectKind = Literal["teacher", "student"]
SessionFactory = Callable[[], Session]

AVAILABILITY_MODELS = {
    "teacher": (TeacherDailyAvailability, "teacher_id"),
    "student": (StudentDailyAvailability, "student_id"),
}


def _availability_model(kind: SubjectKind):
    try:
        return AVAILABILITY_MODELS[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown availability kind: {kind}") from exc


def _to_booking(row: CourseArrangement) -> Booking | None:
    try:
        return Booking(
            id=row.id,
            subject_id=row.teacher_id,
            student_id=row.student_id,
            interval=make_interval(row.start_time, row.end_time),
            status=BookingStatus(row.status),
            date=row.arr_date,
        )
    except (AppError, ValueError, ValidationError) as exc:
        logger.warning("Skipping malformed booking %s: %s", row.id, exc)
        return None


def fetch_bookings(db: Session, on_date: dt.date, teacher_ids: Iterable[int] | None = None) -> list[Booking]:
    query = select(CourseArrangement).where(
        CourseArrangement.arr_date == on_date,
        CourseArrangement.teacher_id.is_not(None),
    )
    if teacher_ids is not None:
        query = query.where(CourseArrangement.teacher_id.in_(list(teacher_ids)))
    rows = db.execute(query.order_by(CourseArrangement.id)).scalars().all()
    return [booking for booking in (_to_booking(row) for row in rows) if booking is not None]


def fetch_availability(
    db: Session,
    kind: SubjectKind,
    subject_ids: Iterable[int],
    start_date: dt.date,
    end_date: dt.date | None = None,
) -> list[AvailabilityRecord]:
    model, subject_column = _availability_model(kind)
    column = getattr(model, subject_column)
    rows = db.execute(
        select(model)
        .where(column.in_(list(subject_ids)), model.date >= start_date, model.date <= (end_date or start_date))
        .order_by(column, model.date)
    ).scalars().all()
    return [
        AvailabilityRecord(
            subject_id=row.subject_id,
            date=row.date,
            morning=bool(row.morning_available),
            afternoon=bool(row.afternoon_available),
            evening=bool(row.evening_available),
        )
        for row in rows
    ]


def fetch_restriction_policy(
    db: Session,
    teacher_ids: Iterable[int],
    default: RestrictionPolicy | None = None,
) -> dict[int, RestrictionPolicy]:
    if default is None:
        default = RestrictionPolicy(get_settings().default_restriction_policy)
    rows = db.execute(select(Teacher.id, Teacher.restriction).where(Teacher.id.in_(list(teacher_ids)))).all()
    return {teacher_id: RestrictionPolicy.from_flag(restriction, default) for teacher_id, restriction in rows}


def fetch_active_teacher_ids(db: Session) -> list[int]:
    return list(
        db.execute(select(Teacher.id).where(Teacher.status != STATUS_DELETED).order_by(Teacher.id)).scalars().all()
    )


def load_availability_baseline(
    db: Session,
    kind: SubjectKind,
    subject_ids: Iterable[int],
    start_date: dt.date,
    end_date: dt.date | None = None,
) -> dict[tuple[int, dt.date], AvailabilityTriple]:
    return {
        (record.subject_id, record.date): AvailabilityTriple(
            morning=record.morning,
            afternoon=record.afternoon,
            evening=record.evening,
        )
        for record in fetch_availability(db, kind, subject_ids, start_date, end_date)
    }


def load_fee_baseline(db: Session, booking_ids: Iterable[int]) -> dict[int, FeeValues]:
    rows = db.execute(select(CourseArrangement).where(CourseArrangement.id.in_(list(booking_ids)))).scalars().all()
    return {
        row.id: FeeValues(transport_fee=row.transport_fee or 0.0, other_fee=row.other_fee or 0.0)
        for row in rows
    }


def apply_availability_updates(db: Session, kind: SubjectKind, updates: Sequence[AvailabilityUpdate]) -> int:
    model, subject_column = _availability_model(kind)
    column = getattr(model, subject_column)
    changed = 0
    for update in updates:
        row = db.execute(
            select(model).where(column == update.subject_id, model.date == update.date)
        ).scalar_one_or_none()
        if row is None:
            row = model(**{subject_column: update.subject_id}, date=update.date)
            db.add(row)
        elif (
            bool(row.morning_available) == update.morning
            and bool(row.afternoon_available) == update.afternoon
            and bool(row.evening_available) == update.evening
        ):
            continue
        row.morning_available = update.morning
        row.afternoon_available = update.afternoon
        row.evening_available = update.evening
        changed += 1
    db.flush()
    return changed


def apply_fee_updates(db: Session, updates: Sequence[FeeUpdate]) -> int:
    changed = 0
    for update in updates:
        row = db.get(CourseArrangement, update.booking_id)
        if row is None:
            raise ResourceNotFoundError("Booking", str(update.booking_id))
        if row.transport_fee == update.transport_fee and row.other_fee == update.other_fee:
            continue
        row.transport_fee = update.transport_fee
        row.other_fee = update.other_fee
        changed += 1
    db.flush()
    return changed


def run_in_transaction(session_factory: SessionFactory, work: Callable[[Session], int]) -> int:
    try:
        with session_factory() as db:
            with db.begin():
                return work(db)
    except (SQLAlchemyError, ResourceNotFoundError) as exc:
        raise PersistFailure(f"Store rejected the batch: {exc}", details={"error": exc.__class__.__name__}) from exc


def make_availability_persist(session_factory: SessionFactory, kind: SubjectKind):
    _availability_model(kind)

    async def persist(updates: list[AvailabilityUpdate]) -> None:
        changed = await asyncio.to_thread(
            run_in_transaction,
            session_factory,
            lambda db: apply_availability_updates(db, kind, updates),
        )
        logger.info("Stored %d %s availability row(s), %d unchanged", changed, kind, len(updates) - changed)

    return persist


def make_fee_persist(session_factory: SessionFactory):
    async def persist(updates: list[FeeUpdate]) -> None:
        changed = await asyncio.to_thread(
            run_in_transaction,
            session_factory,
            lambda db: apply_fee_updates(db, updates),
        )
        logger.info("Stored fees for %d booking(s), %d unchanged", changed, len(updates) - changed)

    return persist
