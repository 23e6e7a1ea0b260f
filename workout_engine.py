"""Active workout engine.

:class:`ProgressionStateMachine` drives one live workout: it starts the
session, keeps the exercise cursor, accepts sets for the current exercise,
moves strictly forward and finishes the session. Each instance belongs to a
single workout view and must be closed when that view goes away.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Optional

from errors import InvalidState
from session_clock import SessionClock, format_elapsed
from session_recorder import SessionRecorder
from set_ledger import SetLedger
from snapshot_loader import TrainingSnapshotLoader
from workout_schema import (
    ExercisePrescription,
    LoggedSet,
    SessionProgress,
    SetDraft,
    TrainingSnapshot,
    WorkoutSession,
)
from workout_store import WorkoutStore

logger = logging.getLogger(__name__)


class WorkoutStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    FINISHED = "finished"


class ProgressionStateMachine:
    """Controller for one start-to-finish attempt at a training."""

    def __init__(
        self,
        snapshot: TrainingSnapshot,
        performer_id: str,
        store: WorkoutStore,
        clock: SessionClock | None = None,
        recorder: SessionRecorder | None = None,
        ledger: SetLedger | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.performer_id = performer_id
        self.store = store
        self.clock = clock or SessionClock()
        self.recorder = recorder or SessionRecorder(store)
        self.ledger = ledger or SetLedger(store)
        self.status = WorkoutStatus.NOT_STARTED
        self.cursor = 0
        self.closed = False
        self._lock = asyncio.Lock()

    @classmethod
    async def load(
        cls,
        store: WorkoutStore,
        performer_id: str,
        training_id: Optional[str] = None,
        **kwargs,
    ) -> "ProgressionStateMachine":
        snapshot = await TrainingSnapshotLoader(store).load(performer_id, training_id)
        return cls(snapshot, performer_id, store, **kwargs)

    @property
    def session_id(self) -> Optional[str]:
        session = self.recorder.session
        return session.id if session is not None else None

    @property
    def session(self) -> Optional[WorkoutSession]:
        return self.recorder.session

    @property
    def current_exercise(self) -> Optional[ExercisePrescription]:
        if not self.snapshot.exercises:
            return None
        return self.snapshot.exercises[self.cursor]

    @property
    def is_last(self) -> bool:
        return self.cursor >= len(self.snapshot.exercises) - 1

    @property
    def draft(self) -> SetDraft:
        return self.ledger.draft

    def _require(self, status: WorkoutStatus, action: str) -> None:
        if self.closed:
            raise InvalidState(f"cannot {action}: workout view closed")
        if self.status is not status:
            raise InvalidState(f"cannot {action} while {self.status.value}")

    @contextlib.asynccontextmanager
    async def _operation(self, action: str):
        # one mutation at a time; a second request while one is pending is refused
        if self._lock.locked():
            raise InvalidState(f"cannot {action}: another operation is in progress")
        async with self._lock:
            yield

    async def start(self) -> str:
        async with self._operation("start"):
            self._require(WorkoutStatus.NOT_STARTED, "start")
            if not self.snapshot.exercises:
                raise InvalidState(f"training {self.snapshot.id} has no exercises")
            session_id = await self.recorder.create_session(
                self.snapshot.id, self.performer_id
            )
            self.status = WorkoutStatus.ACTIVE
            self.cursor = 0
            self.ledger.reset_draft()
            self.clock.start()
            return session_id

    async def confirm_set(
        self, exercise_id: str, draft: SetDraft | None = None
    ) -> LoggedSet:
        async with self._operation("confirm set"):
            self._require(WorkoutStatus.ACTIVE, "confirm set")
            exercise = self.current_exercise
            if exercise_id != exercise.id:
                raise InvalidState(
                    f"sets can only be added to the current exercise {exercise.id}"
                )
            return await self.ledger.confirm_set(self.session_id, exercise, draft)

    async def advance(self) -> ExercisePrescription:
        async with self._operation("advance"):
            self._require(WorkoutStatus.ACTIVE, "advance")
            exercise = self.current_exercise
            if not self.ledger.is_complete(exercise):
                raise InvalidState(
                    f"{exercise.name} has {self.ledger.logged_count(exercise.id)}"
                    f"/{exercise.target_sets} sets logged"
                )
            if self.is_last:
                raise InvalidState("already at the last exercise; finish instead")
            self.cursor += 1
            self.ledger.reset_draft()
            logger.info(
                "session %s moved to exercise %d/%d",
                self.session_id,
                self.cursor + 1,
                len(self.snapshot.exercises),
            )
            return self.current_exercise

    async def finish(self, notes: Optional[str] = None) -> WorkoutSession:
        async with self._operation("finish"):
            self._require(WorkoutStatus.ACTIVE, "finish")
            was_running = self.clock.running
            # freeze the clock so the stored duration matches what was sent
            self.clock.pause()
            try:
                session = await self.recorder.finalize_session(
                    self.session_id, self.clock.elapsed(), notes
                )
            except Exception:
                if was_running:
                    self.clock.resume()
                raise
            await self.clock.stop()
            self.status = WorkoutStatus.FINISHED
            self.ledger.reset_draft()
            return session

    def pause(self) -> None:
        self._require(WorkoutStatus.ACTIVE, "pause")
        if self._lock.locked():
            raise InvalidState("cannot pause: another operation is in progress")
        self.clock.pause()

    def resume(self) -> None:
        self._require(WorkoutStatus.ACTIVE, "resume")
        if self._lock.locked():
            raise InvalidState("cannot resume: another operation is in progress")
        self.clock.resume()

    def update_draft(
        self,
        reps: Optional[int] = None,
        load: Optional[float] = None,
        note: Optional[str] = None,
    ) -> SetDraft:
        self._require(WorkoutStatus.ACTIVE, "edit the draft")
        return self.ledger.update_draft(reps, load, note)

    def adjust_draft(self, reps_steps: int = 0, load_steps: int = 0) -> SetDraft:
        self._require(WorkoutStatus.ACTIVE, "edit the draft")
        return self.ledger.adjust_draft(reps_steps, load_steps)

    def logged_sets(self, exercise_id: str) -> list[LoggedSet]:
        return self.ledger.entries(exercise_id)

    def progress(self) -> SessionProgress:
        exercise = self.current_exercise
        active = self.status is WorkoutStatus.ACTIVE and not self.closed
        total = len(self.snapshot.exercises)
        elapsed = self.clock.elapsed()
        return SessionProgress(
            status=self.status.value,
            cursor=self.cursor,
            exercise_count=total,
            current_exercise_id=exercise.id if exercise is not None else None,
            logged_counts={
                ex.id: self.ledger.logged_count(ex.id) for ex in self.snapshot.exercises
            },
            elapsed_seconds=elapsed,
            formatted_time=format_elapsed(elapsed),
            paused=self.clock.paused,
            draft=self.ledger.draft if active else None,
            session_id=self.session_id,
            can_advance=active
            and not self.is_last
            and self.ledger.is_complete(exercise),
            can_finish=active,
            progress=(self.cursor + 1) / total if total else 0.0,
        )

    def close(self) -> None:
        """Tear the workout view down; confirmed sets stay stored."""
        if self.closed:
            return
        self.closed = True
        self.clock.close()
        self.ledger.reset_draft()
        if self.status is WorkoutStatus.ACTIVE:
            logger.info("session %s left unfinished", self.session_id)

    async def aclose(self) -> None:
        await self.clock.stop()
        self.close()

    async def __aenter__(self) -> "ProgressionStateMachine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
