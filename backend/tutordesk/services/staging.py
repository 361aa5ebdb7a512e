"""Pending-edit overlay for the availability and fee grids.

A grid renders ``get_effective(key)`` for every cell: the overlay entry
merged over the last committed baseline. Edits only touch the overlay.
``commit`` hands complete rows to the store and, only once the store
accepts them, folds them into the baseline. A rejected commit leaves the
overlay and the baseline exactly as they were.
"""
from __future__ import annotations

import datetime as dt
import inspect
import logging
from collections.abc import Awaitable, Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel

from tutordesk.core.config import get_settings
from tutordesk.core.exceptions import StagingLimitError, UnknownFieldError
from tutordesk.schemas.scheduling import SubjectId
from tutordesk.schemas.staging import (
    AvailabilityTriple,
    AvailabilityUpdate,
    CommitResult,
    FeeUpdate,
    FeeValues,
)

logger = logging.getLogger(__name__)

ValuesT = TypeVar("ValuesT", bound=BaseModel)
UpdateT = TypeVar("UpdateT")

Persist = Callable[[list], Awaitable[None] | None]


@dataclass(frozen=True)
class OverlayEntry:
    """Staged values for one key. May hold any subset of the grid's fields."""

    values: Mapping[str, Any]

    def merged_over(self, baseline: ValuesT) -> ValuesT:
        return baseline.model_copy(update=dict(self.values))


@dataclass(frozen=True)
class Effective(Generic[ValuesT]):
    values: ValuesT
    changed: frozenset[str] = field(default_factory=frozenset)

    @property
    def dirty(self) -> bool:
        return bool(self.changed)


class BaselineSnapshot(Generic[ValuesT]):
    """Last committed values per key, as fetched from the store."""

    def __init__(self, values_model: type[ValuesT], rows: Mapping[Hashable, ValuesT] | None = None) -> None:
        self.values_model = values_model
        self._rows: dict[Hashable, ValuesT] = dict(rows or {})

    def get(self, key: Hashable) -> ValuesT:
        row = self._rows.get(key)
        if row is None:
            return self.values_model()
        return row

    def advance(self, key: Hashable, values: ValuesT) -> None:
        self._rows[key] = values

    def replace(self, rows: Mapping[Hashable, ValuesT]) -> None:
        self._rows = dict(rows)


class StagingManager(Generic[ValuesT, UpdateT]):
    def __init__(
        self,
        grid: str,
        baseline: BaselineSnapshot[ValuesT],
        make_update: Callable[[Hashable, ValuesT], UpdateT],
        *,
        max_pending: int | None = None,
    ) -> None:
        self.grid = grid
        self.baseline = baseline
        self.make_update = make_update
        self.max_pending = max_pending if max_pending is not None else get_settings().staging_max_pending_changes
        self.fields: tuple[str, ...] = tuple(baseline.values_model.model_fields)
        self._overlay: dict[Hashable, OverlayEntry] = {}
        self._in_flight: list[frozenset[Hashable]] = []

    # -- reads -------------------------------------------------------------

    def get_baseline(self, key: Hashable) -> ValuesT:
        return self.baseline.get(key)

    def get_effective(self, key: Hashable) -> Effective[ValuesT]:
        base = self.baseline.get(key)
        entry = self._overlay.get(key)
        if entry is None:
            return Effective(values=base)
        values = entry.merged_over(base)
        changed = frozenset(name for name in self.fields if getattr(values, name) != getattr(base, name))
        return Effective(values=values, changed=changed)

    def changed_fields(self, key: Hashable) -> frozenset[str]:
        return self.get_effective(key).changed

    def is_dirty(self, key: Hashable) -> bool:
        return key in self._overlay

    def has_changes(self) -> bool:
        return bool(self._overlay)

    def change_count(self) -> int:
        return len(self._overlay)

    def pending_keys(self) -> list[Hashable]:
        return list(self._overlay)

    def is_committing(self) -> bool:
        return bool(self._in_flight)

    # -- edits -------------------------------------------------------------

    def toggle(self, key: Hashable, field_name: str) -> Effective[ValuesT]:
        self._check_field(field_name, bool)
        current = self.get_effective(key).values
        return self._stage(key, current.model_copy(update={field_name: not getattr(current, field_name)}))

    def set_value(self, key: Hashable, field_name: str, value: Any) -> Effective[ValuesT]:
        self._check_field(field_name)
        current = self.get_effective(key).values
        # Re-validate so field constraints (e.g. non-negative fees) apply to edits.
        staged = self.baseline.values_model.model_validate({**current.model_dump(), field_name: value})
        return self._stage(key, staged)

    def discard(self, keys: Iterable[Hashable] | None = None) -> list[Hashable]:
        if keys is None:
            dropped = list(self._overlay)
            self._overlay.clear()
        else:
            dropped = [key for key in keys if self._overlay.pop(key, None) is not None]
        if dropped:
            logger.debug("Discarded %d pending change(s) on grid %s", len(dropped), self.grid)
        return dropped

    def load_baseline(self, rows: Mapping[Hashable, ValuesT]) -> None:
        self.baseline.replace(rows)
        for key in list(self._overlay):
            self._prune(key)

    # -- commit ------------------------------------------------------------

    async def commit(self, persist: Persist) -> CommitResult:
        snapshot = dict(self._overlay)
        if not snapshot:
            return CommitResult(grid=self.grid, still_pending=0)

        committed = {key: entry.merged_over(self.baseline.get(key)) for key, entry in snapshot.items()}
        updates = [self.make_update(key, values) for key, values in committed.items()]
        in_flight = frozenset(snapshot)
        self._in_flight.append(in_flight)
        try:
            outcome = persist(updates)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.warning(
                "Commit of %d change(s) on grid %s failed: %s",
                len(updates),
                self.grid,
                exc.__class__.__name__,
            )
            raise
        finally:
            self._in_flight.remove(in_flight)

        for key, values in committed.items():
            self.baseline.advance(key, values)
            if self._overlay.get(key) is snapshot[key]:
                del self._overlay[key]
            else:
                # Edited again while the commit was in flight; keep the newer edit.
                self._prune(key)

        logger.info("Committed %d change(s) on grid %s", len(committed), self.grid)
        return CommitResult(
            grid=self.grid,
            committed=len(committed),
            keys=list(committed),
            still_pending=len(self._overlay),
        )

    # -- internals ---------------------------------------------------------

    def _check_field(self, field_name: str, kind: type | None = None) -> None:
        if field_name not in self.fields:
            raise UnknownFieldError(self.grid, field_name)
        if kind is not None and self.baseline.values_model.model_fields[field_name].annotation is not kind:
            raise UnknownFieldError(self.grid, field_name, reason="non-toggleable field")

    def _stage(self, key: Hashable, values: ValuesT) -> Effective[ValuesT]:
        if key not in self._overlay and len(self._overlay) >= self.max_pending:
            raise StagingLimitError(self.grid, self.max_pending)
        self._overlay[key] = OverlayEntry(values=values.model_dump())
        self._prune(key)
        return self.get_effective(key)

    def _prune(self, key: Hashable) -> None:
        # Keys inside an in-flight commit stay staged until it resolves.
        if any(key in keys for keys in self._in_flight):
            return
        entry = self._overlay.get(key)
        if entry is not None and entry.merged_over(self.baseline.get(key)) == self.baseline.get(key):
            del self._overlay[key]


AvailabilityKey = tuple[SubjectId, dt.date]
AvailabilityStaging = StagingManager[AvailabilityTriple, AvailabilityUpdate]
FeeStaging = StagingManager[FeeValues, FeeUpdate]


def _availability_update(key: AvailabilityKey, values: AvailabilityTriple) -> AvailabilityUpdate:
    subject_id, on_date = key
    return AvailabilityUpdate(subject_id=subject_id, date=on_date, **values.model_dump())


def _fee_update(key: Hashable, values: FeeValues) -> FeeUpdate:
    return FeeUpdate(booking_id=key, **values.model_dump())


def availability_staging(
    kind: Literal["teacher", "student"],
    rows: Mapping[AvailabilityKey, AvailabilityTriple] | None = None,
    *,
    max_pending: Optional[int] = None,
) -> AvailabilityStaging:
    return StagingManager(
        f"{kind}_availability",
        BaselineSnapshot(AvailabilityTriple, rows),
        _availability_update,
        max_pending=max_pending,
    )


def fee_staging(rows: Mapping[Hashable, FeeValues] | None = None, *, max_pending: Optional[int] = None) -> FeeStaging:
    return StagingManager("schedule_fees", BaselineSnapshot(FeeValues, rows), _fee_update, max_pending=max_pending)
