import logging
from typing import Optional

from errors import InvalidState, PersistenceError
from workout_schema import ExercisePrescription, LoggedSet, SetDraft
from workout_store import WorkoutStore

logger = logging.getLogger(__name__)


class SetLedger:
    """Per-exercise record of confirmed sets for one session.

    Every set is written to the store before it is added here, so the
    in-memory counts never run ahead of what was persisted. The ledger also
    owns the draft of the set being entered.
    """

    def __init__(
        self,
        store: WorkoutStore,
        rep_increment: int = 1,
        load_increment: float = 2.5,
    ) -> None:
        self.store = store
        self.rep_increment = rep_increment
        self.load_increment = load_increment
        self._entries: dict[str, list[LoggedSet]] = {}
        self.draft = SetDraft()

    def logged_count(self, exercise_id: str) -> int:
        return len(self._entries.get(exercise_id, []))

    def entries(self, exercise_id: str) -> list[LoggedSet]:
        return list(self._entries.get(exercise_id, []))

    def counts(self) -> dict[str, int]:
        return {eid: len(sets) for eid, sets in self._entries.items()}

    def is_complete(self, exercise: ExercisePrescription) -> bool:
        return self.logged_count(exercise.id) >= exercise.target_sets

    def reset_draft(self) -> SetDraft:
        self.draft = SetDraft()
        return self.draft

    def update_draft(
        self,
        reps: Optional[int] = None,
        load: Optional[float] = None,
        note: Optional[str] = None,
    ) -> SetDraft:
        updated = self.draft.model_copy()
        if reps is not None:
            updated.reps = reps
        if load is not None:
            updated.load = load
        if note is not None:
            updated.note = note or None
        self.draft = updated
        return self.draft

    def adjust_draft(self, reps_steps: int = 0, load_steps: int = 0) -> SetDraft:
        """Step reps and load up or down, never below zero."""
        reps = max(0, self.draft.reps + reps_steps * self.rep_increment)
        load = max(0.0, self.draft.load + load_steps * self.load_increment)
        return self.update_draft(reps=reps, load=load)

    async def confirm_set(
        self,
        session_id: Optional[str],
        exercise: ExercisePrescription,
        draft: Optional[SetDraft] = None,
    ) -> LoggedSet:
        if session_id is None:
            raise InvalidState("no active session")
        count = self.logged_count(exercise.id)
        if count >= exercise.target_sets:
            raise InvalidState(
                f"{exercise.name} already has {count}/{exercise.target_sets} sets"
            )
        set_number = count + 1
        # an explicit draft becomes the in-progress draft, so a failed write
        # leaves the submitted values in place for the retry
        if draft is not None:
            self.draft = draft.model_copy(update={"set_number": set_number})
        entry = self.draft
        try:
            set_id = await self.store.append_logged_set(
                session_id,
                exercise.id,
                set_number,
                entry.reps,
                entry.load,
                entry.note or None,
            )
        except Exception as e:
            logger.warning(
                "set %d of %s not saved: %s", set_number, exercise.id, e
            )
            raise PersistenceError(str(e)) from e
        logged = LoggedSet(
            id=str(set_id),
            session_id=session_id,
            exercise_id=exercise.id,
            set_number=set_number,
            reps=entry.reps,
            load=entry.load,
            note=entry.note or None,
        )
        self._entries.setdefault(exercise.id, []).append(logged)
        # next set starts with the same working load
        self.draft = SetDraft(set_number=set_number + 1, load=entry.load)
        logger.info(
            "set %d of %s logged: %d x %s", set_number, exercise.id, entry.reps, entry.load
        )
        return logged
