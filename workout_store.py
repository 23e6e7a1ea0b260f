"""Storage boundary used by the active workout engine.

The engine only talks to a :class:`WorkoutStore`. Three implementations are
provided: :class:`SQLiteWorkoutStore` for a local database,
:class:`RemoteWorkoutStore` for the hosted REST API and
:class:`MemoryWorkoutStore` for dry runs.
"""
from __future__ import annotations

import asyncio
import datetime
import itertools
from typing import Iterable, Optional

from client import ApiError, CoachClient
from db import (
    AsyncTrainingRepository,
    AsyncWorkoutSessionRepository,
    AsyncWorkoutSetRepository,
)
from errors import NotFound
from workout_schema import (
    CorrectionEntry,
    ExercisePrescription,
    LoggedSet,
    TrainingSnapshot,
    WorkoutSession,
)


class WorkoutStore:
    """Abstract persistence boundary for one performer's workouts."""

    async def load_active_training(
        self, performer_id: str, training_id: Optional[str] = None
    ) -> TrainingSnapshot:
        raise NotImplementedError()

    async def create_workout_session(
        self, training_id: str, performer_id: str, started_at: datetime.datetime
    ) -> str:
        raise NotImplementedError()

    async def append_logged_set(
        self,
        session_id: str,
        exercise_id: str,
        set_number: int,
        reps: int,
        load: float,
        note: Optional[str] = None,
    ) -> str:
        raise NotImplementedError()

    async def finalize_workout_session(
        self,
        session_id: str,
        duration_minutes: int,
        ended_at: datetime.datetime,
        notes: Optional[str] = None,
    ) -> None:
        raise NotImplementedError()


def snapshot_from_rows(
    training_row: tuple, exercise_rows: Iterable[tuple], correction_rows: Iterable[tuple]
) -> TrainingSnapshot:
    """Build a snapshot from training, exercise and correction rows."""
    corrections: dict[str, list[CorrectionEntry]] = {}
    for exercise_id, cid, kind, content, file_url, created_at in correction_rows:
        corrections.setdefault(exercise_id, []).append(
            CorrectionEntry(
                id=cid,
                kind=kind,
                content=content,
                file_url=file_url,
                created_at=created_at,
            )
        )
    exercises = [
        ExercisePrescription(
            id=eid,
            name=name,
            target_sets=sets,
            target_reps=reps,
            rest=rest,
            notes=notes,
            demo_video_url=video_url,
            position=position,
            corrections=tuple(corrections.get(eid, [])),
        )
        for eid, name, sets, reps, rest, notes, video_url, position in exercise_rows
    ]
    tid, name, notes = training_row
    return TrainingSnapshot(id=tid, name=name, notes=notes, exercises=tuple(exercises))


class SQLiteWorkoutStore(WorkoutStore):
    """Store backed by the local SQLite database through aiosqlite."""

    def __init__(self, db_path: str = "coach.db") -> None:
        self.trainings = AsyncTrainingRepository(db_path)
        self.sessions = AsyncWorkoutSessionRepository(db_path)
        self.sets = AsyncWorkoutSetRepository(db_path)

    async def load_active_training(self, performer_id, training_id=None):
        row = await self.trainings.fetch_active(performer_id, training_id)
        if row is None:
            raise NotFound(f"no active training for performer {performer_id}")
        exercises = await self.trainings.fetch_exercises(row[0])
        corrections = await self.trainings.fetch_corrections(row[0])
        return snapshot_from_rows(row, exercises, corrections)

    async def create_workout_session(self, training_id, performer_id, started_at):
        return await self.sessions.create(
            training_id, performer_id, started_at.isoformat(timespec="seconds")
        )

    async def append_logged_set(
        self, session_id, exercise_id, set_number, reps, load, note=None
    ):
        return await self.sets.add(session_id, exercise_id, set_number, reps, load, note)

    async def finalize_workout_session(
        self, session_id, duration_minutes, ended_at, notes=None
    ):
        await self.sessions.finish(
            session_id, duration_minutes, ended_at.isoformat(timespec="seconds"), notes
        )


class RemoteWorkoutStore(WorkoutStore):
    """Store reached over the REST API.

    ``requests`` is blocking, so each call runs in a worker thread to keep
    the clock ticking while a request is outstanding.
    """

    def __init__(self, client: CoachClient) -> None:
        self.client = client

    async def load_active_training(self, performer_id, training_id=None):
        try:
            data = await asyncio.to_thread(
                self.client.active_training, performer_id, training_id
            )
        except ApiError as e:
            if e.status_code == 404:
                raise NotFound(e.detail) from e
            raise
        return TrainingSnapshot.model_validate(data)

    async def create_workout_session(self, training_id, performer_id, started_at):
        return await asyncio.to_thread(
            self.client.create_session,
            training_id,
            performer_id,
            started_at.isoformat(timespec="seconds"),
        )

    async def append_logged_set(
        self, session_id, exercise_id, set_number, reps, load, note=None
    ):
        return await asyncio.to_thread(
            self.client.add_set, session_id, exercise_id, set_number, reps, load, note
        )

    async def finalize_workout_session(
        self, session_id, duration_minutes, ended_at, notes=None
    ):
        await asyncio.to_thread(
            self.client.finish_session,
            session_id,
            duration_minutes,
            ended_at.isoformat(timespec="seconds"),
            notes,
        )


class MemoryWorkoutStore(WorkoutStore):
    """In-process store keeping everything in dictionaries."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.trainings: dict[str, list[tuple[TrainingSnapshot, bool]]] = {}
        self.sessions: dict[str, WorkoutSession] = {}
        self.sets: list[LoggedSet] = []

    def add_training(
        self, performer_id: str, snapshot: TrainingSnapshot, active: bool = True
    ) -> None:
        entries = self.trainings.setdefault(performer_id, [])
        if active:
            entries[:] = [(snap, False) for snap, _ in entries]
        entries.append((snapshot, active))

    def sets_for(self, session_id: str, exercise_id: str) -> list[LoggedSet]:
        return [
            s
            for s in self.sets
            if s.session_id == session_id and s.exercise_id == exercise_id
        ]

    async def load_active_training(self, performer_id, training_id=None):
        for snapshot, active in reversed(self.trainings.get(performer_id, [])):
            if active and (training_id is None or snapshot.id == training_id):
                return snapshot
        raise NotFound(f"no active training for performer {performer_id}")

    async def create_workout_session(self, training_id, performer_id, started_at):
        session_id = f"session-{next(self._ids)}"
        self.sessions[session_id] = WorkoutSession(
            id=session_id,
            training_id=training_id,
            performer_id=performer_id,
            started_at=started_at,
        )
        return session_id

    async def append_logged_set(
        self, session_id, exercise_id, set_number, reps, load, note=None
    ):
        if session_id not in self.sessions:
            raise ValueError("workout session not found")
        if any(s.set_number == set_number for s in self.sets_for(session_id, exercise_id)):
            raise ValueError("set already logged")
        logged = LoggedSet(
            id=f"set-{next(self._ids)}",
            session_id=session_id,
            exercise_id=exercise_id,
            set_number=set_number,
            reps=reps,
            load=load,
            note=note,
        )
        self.sets.append(logged)
        return logged.id

    async def finalize_workout_session(
        self, session_id, duration_minutes, ended_at, notes=None
    ):
        if session_id not in self.sessions:
            raise ValueError("workout session not found")
        session = self.sessions[session_id]
        self.sessions[session_id] = session.model_copy(
            update={
                "ended_at": ended_at,
                "duration_minutes": duration_minutes,
                "finished": True,
                "notes": notes if notes is not None else session.notes,
            }
        )
