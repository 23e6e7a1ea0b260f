import os
import sys
import datetime
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from errors import InvalidState, PersistenceError
from set_ledger import SetLedger
from workout_schema import ExercisePrescription, SetDraft
from workout_store import MemoryWorkoutStore


class FlakyStore(MemoryWorkoutStore):
    def __init__(self) -> None:
        super().__init__()
        self.offline = False

    async def append_logged_set(self, *args, **kwargs):
        if self.offline:
            raise ConnectionError("store offline")
        return await super().append_logged_set(*args, **kwargs)


async def open_session(store: MemoryWorkoutStore) -> str:
    return await store.create_workout_session(
        "t1", "student-1", datetime.datetime.now(datetime.timezone.utc)
    )


SQUAT = ExercisePrescription(id="squat", name="Squat", target_sets=3, target_reps="5")


@pytest.mark.asyncio
async def test_sequence_numbers_are_contiguous():
    store = MemoryWorkoutStore()
    sid = await open_session(store)
    ledger = SetLedger(store)
    for reps in (5, 5, 4):
        await ledger.confirm_set(sid, SQUAT, SetDraft(reps=reps, load=100))
    assert [s.set_number for s in store.sets_for(sid, "squat")] == [1, 2, 3]
    assert [s.set_number for s in ledger.entries("squat")] == [1, 2, 3]
    assert ledger.logged_count("squat") == 3
    assert ledger.is_complete(SQUAT)


@pytest.mark.asyncio
async def test_confirm_beyond_target_is_rejected():
    store = MemoryWorkoutStore()
    sid = await open_session(store)
    ledger = SetLedger(store)
    single = SQUAT.model_copy(update={"target_sets": 1})
    await ledger.confirm_set(sid, single, SetDraft(reps=5, load=80))
    with pytest.raises(InvalidState):
        await ledger.confirm_set(sid, single, SetDraft(reps=5, load=80))
    assert ledger.logged_count("squat") == 1
    assert len(store.sets) == 1


@pytest.mark.asyncio
async def test_confirm_without_session_is_rejected():
    ledger = SetLedger(MemoryWorkoutStore())
    with pytest.raises(InvalidState):
        await ledger.confirm_set(None, SQUAT, SetDraft(reps=5))


@pytest.mark.asyncio
async def test_draft_carries_load_to_next_set():
    store = MemoryWorkoutStore()
    sid = await open_session(store)
    ledger = SetLedger(store)
    ledger.update_draft(reps=5, load=100, note="tough")
    logged = await ledger.confirm_set(sid, SQUAT)
    assert logged.note == "tough"
    assert ledger.draft.set_number == 2
    assert ledger.draft.reps == 0
    assert ledger.draft.load == 100
    assert ledger.draft.note is None
    assert ledger.reset_draft() == SetDraft()


@pytest.mark.asyncio
async def test_failed_write_leaves_ledger_and_draft_unchanged():
    store = FlakyStore()
    sid = await open_session(store)
    ledger = SetLedger(store)
    assert ledger.draft == SetDraft()
    store.offline = True
    with pytest.raises(PersistenceError):
        await ledger.confirm_set(sid, SQUAT, SetDraft(reps=6, load=90, note="retry me"))
    assert ledger.logged_count("squat") == 0
    assert ledger.draft.reps == 6
    assert ledger.draft.load == 90
    assert ledger.draft.note == "retry me"
    store.offline = False
    logged = await ledger.confirm_set(sid, SQUAT)
    assert logged.set_number == 1
    assert logged.reps == 6


def test_adjust_draft_clamps_at_zero():
    ledger = SetLedger(MemoryWorkoutStore(), rep_increment=1, load_increment=2.5)
    ledger.adjust_draft(reps_steps=3, load_steps=2)
    assert ledger.draft.reps == 3
    assert ledger.draft.load == 5.0
    ledger.adjust_draft(reps_steps=-10, load_steps=-10)
    assert ledger.draft.reps == 0
    assert ledger.draft.load == 0.0


def test_negative_values_rejected():
    ledger = SetLedger(MemoryWorkoutStore())
    with pytest.raises(ValueError):
        ledger.update_draft(reps=-1)
    with pytest.raises(ValueError):
        SetDraft(load=-2.5)
