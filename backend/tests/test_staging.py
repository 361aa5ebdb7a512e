import asyncio
from datetime import date

import pytest
from pydantic import ValidationError

from tutordesk.core.exceptions import PersistFailure, StagingLimitError, UnknownFieldError
from tutordesk.schemas.staging import AvailabilityTriple, AvailabilityUpdate, FeeUpdate, FeeValues
from tutordesk.services.staging import availability_staging, fee_staging

DAY = date(2026, 3, 2)
NEXT_DAY = date(2026, 3, 3)


@pytest.fixture
def grid():
    return availability_staging(
        "teacher",
        {
            (1, DAY): AvailabilityTriple(morning=True, afternoon=True, evening=False),
            (2, DAY): AvailabilityTriple(morning=False, afternoon=True, evening=True),
        },
        max_pending=50,
    )


class RecordingPersist:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def __call__(self, updates):
        self.calls.append(list(updates))
        if self.error is not None:
            raise self.error


def test_effective_state_defaults_to_baseline(grid):
    effective = grid.get_effective((1, DAY))
    assert effective.values == AvailabilityTriple(morning=True, afternoon=True, evening=False)
    assert not effective.dirty
    # Cells never fetched render as not available.
    assert grid.get_effective((9, DAY)).values == AvailabilityTriple()


def test_toggle_overlays_full_triple_without_touching_baseline(grid):
    effective = grid.toggle((1, DAY), "evening")

    assert effective.values.evening is True
    assert effective.values.morning is True
    assert effective.changed == frozenset({"evening"})
    assert grid.get_baseline((1, DAY)).evening is False
    assert grid.has_changes()
    assert grid.change_count() == 1
    assert grid.is_dirty((1, DAY))


def test_toggle_back_to_baseline_prunes_key(grid):
    grid.toggle((1, DAY), "morning")
    grid.toggle((1, DAY), "afternoon")
    grid.toggle((1, DAY), "morning")
    assert grid.changed_fields((1, DAY)) == frozenset({"afternoon"})

    grid.toggle((1, DAY), "afternoon")
    assert not grid.has_changes()
    assert grid.get_effective((1, DAY)).values == grid.get_baseline((1, DAY))


def test_keys_are_independent(grid):
    grid.toggle((1, DAY), "morning")
    grid.toggle((1, NEXT_DAY), "morning")
    grid.toggle((2, DAY), "evening")

    assert grid.change_count() == 3
    assert grid.get_effective((1, NEXT_DAY)).values.morning is True
    assert grid.get_effective((2, DAY)).values.evening is False


def test_discard_everything_or_a_subset(grid):
    grid.toggle((1, DAY), "morning")
    grid.toggle((2, DAY), "morning")
    grid.toggle((3, DAY), "morning")

    assert grid.discard([(2, DAY), (8, DAY)]) == [(2, DAY)]
    assert grid.pending_keys() == [(1, DAY), (3, DAY)]

    grid.discard()
    assert not grid.has_changes()
    assert grid.get_effective((1, DAY)).values.morning is True


def test_unknown_or_non_boolean_field_is_rejected(grid):
    with pytest.raises(UnknownFieldError):
        grid.toggle((1, DAY), "night")
    fees = fee_staging()
    with pytest.raises(UnknownFieldError):
        fees.toggle(1, "transport_fee")


def test_pending_key_limit():
    grid = availability_staging("student", max_pending=2)
    grid.toggle((1, DAY), "morning")
    grid.toggle((2, DAY), "morning")
    grid.toggle((2, DAY), "evening")
    with pytest.raises(StagingLimitError):
        grid.toggle((3, DAY), "morning")
    assert grid.change_count() == 2


def test_commit_sends_complete_rows_and_advances_baseline(grid):
    grid.toggle((1, DAY), "evening")
    grid.toggle((5, NEXT_DAY), "afternoon")
    persist = RecordingPersist()

    result = asyncio.run(grid.commit(persist))

    assert persist.calls == [
        [
            AvailabilityUpdate(subject_id=1, date=DAY, morning=True, afternoon=True, evening=True),
            AvailabilityUpdate(subject_id=5, date=NEXT_DAY, morning=False, afternoon=True, evening=False),
        ]
    ]
    assert result.committed == 2
    assert result.still_pending == 0
    assert not grid.has_changes()
    assert grid.get_baseline((1, DAY)).evening is True
    assert grid.get_effective((5, NEXT_DAY)).values.afternoon is True
    assert not grid.is_committing()


def test_commit_with_nothing_staged_skips_persist(grid):
    persist = RecordingPersist()
    result = asyncio.run(grid.commit(persist))
    assert persist.calls == []
    assert result.committed == 0


def test_failed_commit_leaves_state_untouched(grid):
    grid.toggle((1, DAY), "evening")
    before = grid.get_effective((1, DAY))
    failure = PersistFailure("store unavailable")

    with pytest.raises(PersistFailure) as exc_info:
        asyncio.run(grid.commit(RecordingPersist(error=failure)))

    assert exc_info.value is failure
    assert grid.get_effective((1, DAY)) == before
    assert grid.is_dirty((1, DAY))
    assert grid.get_baseline((1, DAY)).evening is False
    assert not grid.is_committing()


def test_commit_clears_only_its_snapshot(grid):
    async def scenario():
        release = asyncio.Event()

        async def slow_persist(updates):
            await release.wait()

        grid.toggle((1, DAY), "evening")
        task = asyncio.create_task(grid.commit(slow_persist))
        await asyncio.sleep(0)
        assert grid.is_committing()
        assert grid.is_dirty((1, DAY))

        grid.toggle((2, DAY), "morning")
        release.set()
        return await task

    result = asyncio.run(scenario())

    assert result.keys == [(1, DAY)]
    assert result.still_pending == 1
    assert not grid.is_dirty((1, DAY))
    assert grid.is_dirty((2, DAY))
    assert grid.get_effective((2, DAY)).values.morning is True


def test_key_edited_during_commit_stays_dirty(grid):
    async def scenario():
        release = asyncio.Event()

        async def slow_persist(updates):
            await release.wait()

        grid.toggle((1, DAY), "evening")
        task = asyncio.create_task(grid.commit(slow_persist))
        await asyncio.sleep(0)
        # Flipping back mid-flight must not be lost once the commit lands.
        grid.toggle((1, DAY), "evening")
        assert grid.is_dirty((1, DAY))
        release.set()
        await task

    asyncio.run(scenario())

    assert grid.get_baseline((1, DAY)).evening is True
    assert grid.is_dirty((1, DAY))
    assert grid.get_effective((1, DAY)).values.evening is False


def test_sync_persist_is_accepted(grid):
    received = []
    grid.toggle((2, DAY), "morning")
    asyncio.run(grid.commit(received.extend))
    assert [update.subject_id for update in received] == [2]
    assert not grid.has_changes()


def test_load_baseline_prunes_entries_matching_new_rows(grid):
    grid.toggle((1, DAY), "evening")
    grid.toggle((2, DAY), "morning")
    grid.load_baseline(
        {
            (1, DAY): AvailabilityTriple(morning=True, afternoon=True, evening=True),
            (2, DAY): AvailabilityTriple(morning=False, afternoon=True, evening=True),
        }
    )
    assert grid.pending_keys() == [(2, DAY)]


def test_fee_grid_shares_the_commit_contract():
    fees = fee_staging({41: FeeValues(transport_fee=12.5, other_fee=0.0)})
    fees.set_value(41, "other_fee", "3.5")
    fees.set_value(42, "transport_fee", 8)
    with pytest.raises(ValidationError):
        fees.set_value(41, "transport_fee", -1)

    assert fees.get_effective(41).values == FeeValues(transport_fee=12.5, other_fee=3.5)

    with pytest.raises(PersistFailure):
        asyncio.run(fees.commit(RecordingPersist(error=PersistFailure("rejected"))))
    assert fees.get_baseline(41).other_fee == 0.0
    assert fees.change_count() == 2

    persist = RecordingPersist()
    asyncio.run(fees.commit(persist))
    assert persist.calls[0] == [
        FeeUpdate(booking_id=41, transport_fee=12.5, other_fee=3.5),
        FeeUpdate(booking_id=42, transport_fee=8.0, other_fee=0.0),
    ]
    assert fees.get_baseline(42).transport_fee == 8.0
    assert not fees.has_changes()
