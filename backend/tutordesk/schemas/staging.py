from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tutordesk.schemas.scheduling import BookingId, SubjectId


class AvailabilityTriple(BaseModel):
    model_config = ConfigDict(frozen=True)

    morning: bool = False
    afternoon: bool = False
    evening: bool = False


class FeeValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    transport_fee: float = Field(default=0.0, ge=0)
    other_fee: float = Field(default=0.0, ge=0)


class AvailabilityUpdate(BaseModel):
    """Complete row sent to the store; the store API never accepts partial rows."""

    model_config = ConfigDict(frozen=True)

    subject_id: SubjectId
    date: dt.date
    morning: bool
    afternoon: bool
    evening: bool


class FeeUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    booking_id: BookingId
    transport_fee: float = Field(ge=0)
    other_fee: float = Field(ge=0)


class CommitResult(BaseModel):
    grid: str
    committed: int = 0
    keys: list[Any] = Field(default_factory=list)
    still_pending: int = 0
